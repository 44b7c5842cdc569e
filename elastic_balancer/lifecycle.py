"""
Container lifecycle driver contract and in-process implementations.

The balancer never talks to a container platform directly. It calls a
``ContainerDriver``: list all, list running, start N, kill N, refresh.
"""

import threading
import time
import uuid
from abc import ABC, abstractmethod
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from datetime import datetime, timezone, timedelta
from enum import Enum
from typing import Dict, List, Optional, Callable, Any
import logging

logger = logging.getLogger(__name__)


class LifecycleDriverError(Exception):
    """Raised when a lifecycle driver call fails"""
    pass


class DriverTimeoutError(LifecycleDriverError):
    """Raised when a lifecycle driver call does not return in time"""
    pass


class ContainerDriver(ABC):
    """Abstract contract consumed by the balancer"""

    @abstractmethod
    def list_all_containers(self) -> int:
        """Number of containers registered in the pool, whatever their state"""
        pass

    @abstractmethod
    def list_running_containers(self) -> int:
        """Number of containers currently running"""
        pass

    @abstractmethod
    def start_containers(self, count: int) -> int:
        """Start ``count`` containers and return how many were started"""
        pass

    @abstractmethod
    def kill_containers(self, count: int) -> int:
        """Stop ``count`` containers and return how many were stopped"""
        pass

    @abstractmethod
    def refresh_inventory(self) -> None:
        """Force a reload so the next list call reflects the platform state"""
        pass

    def close(self) -> None:
        """Release driver resources"""
        pass


class ContainerState(Enum):
    """States of container instances"""
    PENDING = "pending"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    FAILED = "failed"


@dataclass
class ContainerInstance:
    """A container tracked by the in-memory driver"""
    id: str
    state: ContainerState
    created_at: datetime
    started_at: Optional[datetime] = None
    stopped_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def uptime(self) -> Optional[timedelta]:
        """Get container uptime"""
        if self.started_at:
            end_time = self.stopped_at or datetime.now(timezone.utc)
            return end_time - self.started_at
        return None

    @property
    def is_registered(self) -> bool:
        return self.state != ContainerState.STOPPED


class InMemoryContainerDriver(ContainerDriver):
    """
    Container pool kept in process memory.

    Starting a container registers it and marks it running; killing one
    stops the newest running containers first. Useful for dry runs and
    tests where no container platform is available.
    """

    def __init__(self, name: str = "default", startup_delay: float = 0.0):
        self.name = name
        self.startup_delay = startup_delay
        self._containers: Dict[str, ContainerInstance] = {}
        self._lock = threading.RLock()
        self._refresh_count = 0
        self._last_refresh: Optional[datetime] = None

        self._container_started_callbacks: List[Callable[[ContainerInstance], None]] = []
        self._container_stopped_callbacks: List[Callable[[ContainerInstance], None]] = []

    def add_container_started_callback(self, callback: Callable[[ContainerInstance], None]):
        """Add callback for when a container starts"""
        with self._lock:
            self._container_started_callbacks.append(callback)

    def add_container_stopped_callback(self, callback: Callable[[ContainerInstance], None]):
        """Add callback for when a container stops"""
        with self._lock:
            self._container_stopped_callbacks.append(callback)

    def add_containers(self, count: int, state: ContainerState = ContainerState.RUNNING) -> List[str]:
        """Register existing containers without going through a start, e.g. to seed a pool"""
        now = datetime.now(timezone.utc)
        added = []
        with self._lock:
            for _ in range(count):
                container = ContainerInstance(
                    id=f"container-{uuid.uuid4().hex[:8]}",
                    state=state,
                    created_at=now,
                    started_at=now if state == ContainerState.RUNNING else None
                )
                self._containers[container.id] = container
                added.append(container.id)
        return added

    def list_all_containers(self) -> int:
        with self._lock:
            return sum(1 for c in self._containers.values() if c.is_registered)

    def list_running_containers(self) -> int:
        with self._lock:
            return sum(1 for c in self._containers.values() if c.state == ContainerState.RUNNING)

    def start_containers(self, count: int) -> int:
        started = 0
        for _ in range(count):
            if self._start_single_container():
                started += 1

        logger.info(f"Started {started}/{count} containers in pool '{self.name}'")
        return started

    def _start_single_container(self) -> Optional[str]:
        with self._lock:
            container = ContainerInstance(
                id=f"container-{uuid.uuid4().hex[:8]}",
                state=ContainerState.STARTING,
                created_at=datetime.now(timezone.utc)
            )
            self._containers[container.id] = container

        if self.startup_delay:
            time.sleep(self.startup_delay)

        with self._lock:
            container.state = ContainerState.RUNNING
            container.started_at = datetime.now(timezone.utc)
            callbacks = list(self._container_started_callbacks)

        for callback in callbacks:
            try:
                callback(container)
            except Exception as e:
                logger.error(f"Error in container started callback: {e}")

        logger.debug(f"Container {container.id} started")
        return container.id

    def kill_containers(self, count: int) -> int:
        with self._lock:
            running = [
                c for c in self._containers.values()
                if c.state == ContainerState.RUNNING
            ]
            # Newest first, so long-lived containers keep serving
            running.sort(key=lambda c: c.uptime or timedelta(0))

            stopped = []
            for container in running[:count]:
                container.state = ContainerState.STOPPED
                container.stopped_at = datetime.now(timezone.utc)
                stopped.append(container)
            callbacks = list(self._container_stopped_callbacks)

        for container in stopped:
            for callback in callbacks:
                try:
                    callback(container)
                except Exception as e:
                    logger.error(f"Error in container stopped callback: {e}")

        logger.info(f"Stopped {len(stopped)}/{count} containers in pool '{self.name}'")
        return len(stopped)

    def refresh_inventory(self) -> None:
        with self._lock:
            self._refresh_count += 1
            self._last_refresh = datetime.now(timezone.utc)

    def get_container(self, container_id: str) -> Optional[ContainerInstance]:
        with self._lock:
            return self._containers.get(container_id)

    def get_containers_by_state(self, state: ContainerState) -> List[ContainerInstance]:
        with self._lock:
            return [c for c in self._containers.values() if c.state == state]

    def cleanup_stopped_containers(self) -> int:
        """Forget stopped and failed containers"""
        with self._lock:
            finished = [
                container_id for container_id, container in self._containers.items()
                if container.state in (ContainerState.STOPPED, ContainerState.FAILED)
            ]
            for container_id in finished:
                del self._containers[container_id]

        if finished:
            logger.info(f"Cleaned up {len(finished)} stopped containers")
        return len(finished)

    def get_pool_statistics(self) -> Dict[str, Any]:
        """Get container pool statistics"""
        with self._lock:
            by_state = defaultdict(int)
            for container in self._containers.values():
                by_state[container.state.value] += 1

            return {
                "pool_name": self.name,
                "total_containers": len(self._containers),
                "containers_by_state": dict(by_state),
                "refresh_count": self._refresh_count,
                "last_refresh": self._last_refresh
            }


class TimedContainerDriver(ContainerDriver):
    """
    Runs every call of a wrapped driver on a dedicated thread pool with a
    timeout.

    Failures of the wrapped driver surface as ``LifecycleDriverError``; a
    call that exceeds ``timeout`` raises ``DriverTimeoutError``. A call that
    already started is left running in the background, one still queued is
    cancelled.
    """

    def __init__(self, driver: ContainerDriver, timeout: float = 30.0, max_workers: int = 4):
        self.driver = driver
        self.timeout = timeout
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="lifecycle-driver"
        )

    def _call(self, operation: str, func: Callable[..., Any], *args) -> Any:
        future = self._executor.submit(func, *args)
        try:
            return future.result(timeout=self.timeout)
        except FuturesTimeoutError:
            # Only drops the call if it is still queued behind a hung one
            future.cancel()
            raise DriverTimeoutError(f"{operation} timed out after {self.timeout}s")
        except LifecycleDriverError:
            raise
        except Exception as e:
            raise LifecycleDriverError(f"{operation} failed: {e}") from e

    def list_all_containers(self) -> int:
        return self._call("list_all_containers", self.driver.list_all_containers)

    def list_running_containers(self) -> int:
        return self._call("list_running_containers", self.driver.list_running_containers)

    def start_containers(self, count: int) -> int:
        return self._call("start_containers", self.driver.start_containers, count)

    def kill_containers(self, count: int) -> int:
        return self._call("kill_containers", self.driver.kill_containers, count)

    def refresh_inventory(self) -> None:
        self._call("refresh_inventory", self.driver.refresh_inventory)

    def close(self) -> None:
        self._executor.shutdown(wait=False)
        self.driver.close()
