"""
Docker Engine lifecycle driver.

Manages the containers of one pool, identified by a ``key=value`` label,
all created from the same image.
"""

import threading
import time
from typing import Dict, List, Optional
import logging

import docker
from docker.errors import DockerException, NotFound

from .lifecycle import ContainerDriver, LifecycleDriverError

logger = logging.getLogger(__name__)


class DockerContainerDriver(ContainerDriver):
    """Starts and stops pool containers through the Docker SDK"""

    def __init__(self,
                 image: str,
                 pool_label: str = "elastic-balancer.pool=default",
                 terminate_mode: bool = False,
                 stop_timeout: int = 10,
                 base_url: Optional[str] = None,
                 environment: Optional[Dict[str, str]] = None,
                 cache_ttl: float = 5.0,
                 client=None):
        self.image = image
        self.pool_label = pool_label
        self.terminate_mode = terminate_mode
        self.stop_timeout = stop_timeout
        self.environment = environment or {}
        self.cache_ttl = cache_ttl

        label_key, _, label_value = pool_label.partition("=")
        self._labels = {label_key: label_value}

        self._lock = threading.RLock()
        self._cache: Optional[List] = None
        self._cache_time = 0.0

        if client is not None:
            self.client = client
        else:
            try:
                self.client = docker.DockerClient(base_url=base_url) if base_url else docker.from_env()
                logger.info("Docker client initialized successfully")
            except DockerException as e:
                raise LifecycleDriverError(f"Failed to initialize Docker client: {e}") from e

    def _load_containers(self) -> List:
        """Containers of the pool in any state, cached for ``cache_ttl`` seconds"""
        with self._lock:
            if self._cache is not None and time.monotonic() - self._cache_time < self.cache_ttl:
                return self._cache

            try:
                containers = self.client.containers.list(all=True, filters={"label": self.pool_label})
            except DockerException as e:
                raise LifecycleDriverError(f"Failed to list containers: {e}") from e

            self._cache = containers
            self._cache_time = time.monotonic()
            return containers

    def _invalidate(self):
        with self._lock:
            self._cache = None

    def list_all_containers(self) -> int:
        # exited containers stay registered unless terminate mode removed them
        return len(self._load_containers())

    def list_running_containers(self) -> int:
        return sum(1 for c in self._load_containers() if c.status == "running")

    def start_containers(self, count: int) -> int:
        started = 0
        try:
            for _ in range(count):
                container = self.client.containers.run(
                    self.image,
                    detach=True,
                    labels=self._labels,
                    environment=self.environment
                )
                started += 1
                logger.debug(f"Started container {container.id}")
        except DockerException as e:
            raise LifecycleDriverError(f"Failed to start container ({started}/{count} started): {e}") from e
        finally:
            self._invalidate()

        logger.info(f"Started {started}/{count} containers from {self.image}")
        return started

    def kill_containers(self, count: int) -> int:
        running = [c for c in self._load_containers() if c.status == "running"]
        # Newest first
        running.sort(key=lambda c: c.attrs.get("Created", ""), reverse=True)

        stopped = 0
        try:
            for container in running[:count]:
                try:
                    container.stop(timeout=self.stop_timeout)
                    if self.terminate_mode:
                        container.remove(force=True)
                except NotFound:
                    logger.info(f"Container {container.id} already gone")
                    continue
                stopped += 1
        except DockerException as e:
            raise LifecycleDriverError(f"Failed to stop container ({stopped}/{count} stopped): {e}") from e
        finally:
            self._invalidate()

        logger.info(f"Stopped {stopped}/{count} containers")
        return stopped

    def refresh_inventory(self) -> None:
        self._invalidate()
        self._load_containers()

    def close(self) -> None:
        try:
            self.client.close()
        except DockerException as e:
            logger.error(f"Error closing Docker client: {e}")
