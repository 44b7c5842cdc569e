"""
Elastic balancer: the scheduled scoring-and-scaling loop.

Each cycle reads the container inventory, pauses if the pool is below its
minimum, computes the balance score from the load counters and issues one
bounded start or kill command. Cycles run serially on a single fixed-rate
timer thread. On-demand provisioning shares the same cycle lock, so a
provision burst and a scheduled cycle never mutate the pool at once.
"""

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional, Any
import logging

from .config import ConfigError, DriverConfig, ElasticBalancerConfig
from .counters import LoadCounters
from .decision import ScalingCommand, ScalingDecisionEngine
from .lifecycle import (
    ContainerDriver, InMemoryContainerDriver, LifecycleDriverError, TimedContainerDriver
)
from .metrics import BalancerMetrics
from .scoring import ScoreOutcome, calculate_score

logger = logging.getLogger(__name__)


class BalancerState(Enum):
    """Scheduler states"""
    IDLE = "idle"
    BALANCING = "balancing"


@dataclass
class CycleReport:
    """What happened during one balancing cycle"""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    all_containers: Optional[int] = None
    running_containers: Optional[int] = None
    score: Optional[ScoreOutcome] = None
    command: Optional[ScalingCommand] = None
    paused: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "timestamp": self.timestamp.isoformat(),
            "all_containers": self.all_containers,
            "running_containers": self.running_containers,
            "score": self.score.score if self.score else None,
            "score_fallback": self.score.fallback if self.score else None,
            "action": self.command.action.value if self.command else None,
            "count": self.command.count if self.command else None,
            "paused": self.paused,
            "error": self.error
        }


class ElasticBalancer:
    """
    Scales a container pool up and down from live load counters.

    The balancer is constructed explicitly and handed to whatever needs it
    (server startup, HTTP handlers, CLI). Lifecycle driver calls go through
    a ``TimedContainerDriver`` so a hung platform call fails the cycle
    instead of blocking the timer forever.
    """

    def __init__(self,
                 config: ElasticBalancerConfig,
                 driver: ContainerDriver,
                 counters: Optional[LoadCounters] = None,
                 metrics: Optional[BalancerMetrics] = None):
        self._validate_config(config)

        self.config = config
        self.counters = counters or LoadCounters()
        self.metrics = metrics or BalancerMetrics(
            prefix=config.monitoring.metrics_prefix,
            enabled=config.monitoring.enable_metrics
        )

        if isinstance(driver, TimedContainerDriver):
            self.driver = driver
        else:
            self.driver = TimedContainerDriver(driver, timeout=config.schedule.call_timeout)

        self.engine = ScalingDecisionEngine(config.balancer, self.driver, self.metrics)

        self._lock = threading.RLock()
        self._cycle_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._timer_thread: Optional[threading.Thread] = None
        self._provision_executor: Optional[ThreadPoolExecutor] = None

        self._running = False
        self._state = BalancerState.IDLE
        self._cycle_count = 0
        self._last_report: Optional[CycleReport] = None

        logger.info("Elastic Balancer loaded")

    @staticmethod
    def _validate_config(config: ElasticBalancerConfig):
        if config.balancer.tolerance_threshold <= 0:
            raise ConfigError("tolerance_threshold parameter does not exist or is not positive")

    @property
    def state(self) -> BalancerState:
        with self._lock:
            return self._state

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def start(self):
        """Start the fixed-rate balancing timer"""
        with self._lock:
            if self._running:
                return

            if self._timer_thread is not None and self._timer_thread.is_alive():
                logger.warning("Previous balancer timer is still finishing a cycle, not starting another")
                return

            self._running = True
            self._stop_event.clear()
            self._timer_thread = threading.Thread(
                target=self._timer_loop,
                name="ElasticBalancer",
                daemon=True
            )
            self._timer_thread.start()
            logger.info(f"Elastic balancer started (first cycle in {self.config.schedule.initial_delay}s, "
                        f"every {self.config.schedule.interval}s)")

    def stop(self, timeout: float = 10.0):
        """Stop the timer, waiting up to ``timeout`` seconds for an in-flight cycle"""
        with self._lock:
            if not self._running:
                return
            self._running = False
            self._stop_event.set()
            thread = self._timer_thread

        if thread and thread.is_alive():
            thread.join(timeout=timeout)

        logger.info("Elastic balancer stopped")

    def close(self):
        """Stop the timer and release executors and the driver"""
        self.stop()
        with self._lock:
            if self._provision_executor is not None:
                self._provision_executor.shutdown(wait=False)
                self._provision_executor = None
        self.driver.close()

    def _timer_loop(self):
        """Run cycles at a fixed rate; overrun ticks are coalesced into one"""
        interval = self.config.schedule.interval
        next_run = time.monotonic() + self.config.schedule.initial_delay

        while not self._stop_event.is_set():
            delay = next_run - time.monotonic()
            if delay > 0 and self._stop_event.wait(delay):
                break

            try:
                self.balance()
            except Exception as e:
                logger.error(f"Error in elastic balancer cycle: {e}")

            next_run += interval
            now = time.monotonic()
            if next_run <= now:
                missed = int((now - next_run) // interval)
                if missed:
                    logger.warning(f"Balancer cycle overran its interval, skipping {missed} ticks")
                    next_run += missed * interval

    def balance(self) -> CycleReport:
        """Run one balancing cycle"""
        with self._cycle_lock:
            self._set_state(BalancerState.BALANCING)
            try:
                report = self._run_cycle()
            finally:
                self._set_state(BalancerState.IDLE)

            with self._lock:
                self._cycle_count += 1
                self._last_report = report
            return report

    def _set_state(self, state: BalancerState):
        with self._lock:
            self._state = state

    def _run_cycle(self) -> CycleReport:
        report = CycleReport()
        balancer_config = self.config.balancer
        min_containers = balancer_config.min_containers

        try:
            report.all_containers = self.driver.list_all_containers()
        except LifecycleDriverError as e:
            logger.error(f"Could not read container inventory, skipping cycle: {e}")
            report.error = str(e)
            return report

        if report.all_containers < min_containers:
            logger.info(f"Registered containers ({report.all_containers}) don't reach the minimum "
                        f"({min_containers}), ElasticBalance PAUSED!")
            report.paused = True
            return report

        logger.debug("Calculating balancer score...")
        load = self.counters.snapshot()
        report.score = calculate_score(
            load.queued_jobs,
            load.running_workers,
            balancer_config.tolerance_threshold,
            fallback_score=min_containers,
            metrics=self.metrics
        )

        try:
            report.running_containers = self.driver.list_running_containers()
            report.command = self.engine.apply(
                report.score.score, load.running_workers, report.running_containers
            )
        except LifecycleDriverError as e:
            logger.error(f"Lifecycle driver failed, skipping remaining commands this cycle: {e}")
            report.error = str(e)

        return report

    def trigger_provision(self) -> Optional[ScalingCommand]:
        """
        Top the pool up to ``max_containers`` in a single burst.

        Does nothing unless provisioning is allowed in the configuration.
        Driver failures are logged and yield ``None``; nothing is raised.
        """
        balancer_config = self.config.balancer
        if not balancer_config.allow_provision_containers:
            logger.debug("Container provisioning is disabled, ignoring trigger")
            return None

        logger.info("Triggered Container Provision...")
        with self._cycle_lock:
            try:
                self.driver.refresh_inventory()
                current_containers = self.driver.list_all_containers()
                max_containers = balancer_config.max_containers

                logger.info(f"Current containers {current_containers}, Max containers {max_containers}")

                if max_containers <= current_containers:
                    return ScalingCommand.noop(current_containers)

                containers_to_provision = max_containers - current_containers
                # Unreachable while current_containers >= 0; kept as a ceiling.
                if containers_to_provision > max_containers:
                    logger.warning("MAX provision containers reached!")
                    containers_to_provision = max_containers

                logger.info(f"Loading {containers_to_provision} new containers")
                self.driver.start_containers(containers_to_provision)
                return ScalingCommand.start(containers_to_provision, max_containers)

            except LifecycleDriverError as e:
                logger.error(f"Container provision failed: {e}")
                return None

    def submit_provision(self) -> "Future[Optional[ScalingCommand]]":
        """Run ``trigger_provision`` on the balancer's own worker thread"""
        with self._lock:
            if self._provision_executor is None:
                self._provision_executor = ThreadPoolExecutor(
                    max_workers=1,
                    thread_name_prefix="balancer-provision"
                )
            return self._provision_executor.submit(self.trigger_provision)

    def get_status(self) -> Dict[str, Any]:
        """Get balancer status"""
        with self._lock:
            return {
                "running": self._running,
                "state": self._state.value,
                "cycle_count": self._cycle_count,
                "last_report": self._last_report.to_dict() if self._last_report else None,
                "initial_delay": self.config.schedule.initial_delay,
                "interval": self.config.schedule.interval,
                "balancer": {
                    "allow_provision_containers": self.config.balancer.allow_provision_containers,
                    "tolerance_threshold": self.config.balancer.tolerance_threshold,
                    "min_containers": self.config.balancer.min_containers,
                    "max_containers": self.config.balancer.max_containers,
                    "max_boots_per_cycle": self.config.balancer.max_boots_per_cycle,
                    "max_shutdowns_per_cycle": self.config.balancer.max_shutdowns_per_cycle
                }
            }


def create_driver(driver_config: DriverConfig) -> ContainerDriver:
    """Build the lifecycle driver named in the configuration"""
    if driver_config.driver == "docker":
        from .docker_driver import DockerContainerDriver
        return DockerContainerDriver(
            image=driver_config.image,
            pool_label=driver_config.pool_label,
            terminate_mode=driver_config.terminate_mode,
            stop_timeout=driver_config.stop_timeout,
            base_url=driver_config.docker_base_url
        )
    return InMemoryContainerDriver()


def build_balancer(config: ElasticBalancerConfig,
                   driver: Optional[ContainerDriver] = None,
                   counters: Optional[LoadCounters] = None,
                   metrics: Optional[BalancerMetrics] = None) -> ElasticBalancer:
    """
    Compose a balancer and its collaborators from configuration.

    The caller owns the returned instance and passes it to whatever needs
    to report load or trigger provisioning.
    """
    if driver is None:
        driver = create_driver(config.driver)
    return ElasticBalancer(config, driver, counters=counters, metrics=metrics)
