"""
Scaling decisions derived from the balance score.

``decide`` is pure: it turns a score and live counts into a bounded
``ScalingCommand``. ``ScalingDecisionEngine`` issues that command to a
lifecycle driver and records what was issued.

Clamps run in a fixed order: first the pool bounds (min/max containers),
then the per-cycle rate limit (max boots/shutdowns).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
import logging

from .config import BalancerConfig
from .lifecycle import ContainerDriver
from .metrics import BalancerMetrics, CONTAINERS_KILLED_METRIC, CONTAINERS_STARTED_METRIC

logger = logging.getLogger(__name__)


class ScalingAction(Enum):
    """Kind of command issued in a cycle"""
    START = "start"
    KILL = "kill"
    NOOP = "noop"


@dataclass(frozen=True)
class ScalingCommand:
    """A single bounded lifecycle command"""
    action: ScalingAction
    count: int = 0
    containers_after_balance: int = 0

    def __post_init__(self):
        if self.count < 0:
            raise ValueError("count must be non-negative")

    @classmethod
    def start(cls, count: int, containers_after_balance: int = 0) -> "ScalingCommand":
        return cls(ScalingAction.START, count, containers_after_balance)

    @classmethod
    def kill(cls, count: int, containers_after_balance: int = 0) -> "ScalingCommand":
        return cls(ScalingAction.KILL, count, containers_after_balance)

    @classmethod
    def noop(cls, containers_after_balance: int = 0) -> "ScalingCommand":
        return cls(ScalingAction.NOOP, 0, containers_after_balance)


def pool_bounds_clamp(sign: int, containers_after_balance: int, running_workers: int,
                      min_containers: int, max_containers: int) -> int:
    """
    Clamp the post-balance container target to the pool bounds.

    Shrinking: if removing ``containers_after_balance`` from the running
    workers would reach or cross ``min_containers``, the target becomes
    ``min_containers``. Growing: the target is capped at ``max_containers``.
    """
    if sign < 0:
        if running_workers - containers_after_balance <= min_containers:
            return min_containers
    elif sign > 0:
        if containers_after_balance >= max_containers:
            return max_containers
    return containers_after_balance


def rate_limit_clamp(count: int, max_per_cycle: int) -> int:
    """Cap the number of containers touched in a single cycle"""
    if count > max_per_cycle:
        return max_per_cycle
    return count


def decide(score: int, running_workers: int, running_containers: int,
           config: BalancerConfig) -> ScalingCommand:
    """Map a balance score onto a bounded start, kill or no-op command"""
    containers_after_balance = abs(score)
    sign = (score > 0) - (score < 0)

    if sign < 0:
        logger.debug(f"Negative score (removing containers) | {running_workers} workers "
                     f"{containers_after_balance} score = {running_workers - containers_after_balance}")
        containers_after_balance = pool_bounds_clamp(
            sign, containers_after_balance, running_workers,
            config.min_containers, config.max_containers
        )
        containers_to_kill = abs(running_containers - containers_after_balance)
        if containers_to_kill > config.max_shutdowns_per_cycle:
            logger.info(f"Max containers to kill limit reached! Want to kill {containers_to_kill} "
                        f"and MAX is {config.max_shutdowns_per_cycle}")
        containers_to_kill = rate_limit_clamp(containers_to_kill, config.max_shutdowns_per_cycle)
        return ScalingCommand.kill(containers_to_kill, containers_after_balance)

    if sign > 0:
        logger.debug(f"Positive score (adding containers) | {running_workers} workers + "
                     f"{containers_after_balance} score = {running_workers + containers_after_balance}")
        containers_after_balance = pool_bounds_clamp(
            sign, containers_after_balance, running_workers,
            config.min_containers, config.max_containers
        )
        containers_to_start = abs(containers_after_balance - running_containers)
        if containers_to_start > config.max_boots_per_cycle:
            logger.info(f"Max containers to start limit reached! Want to boot {containers_to_start} "
                        f"and MAX is {config.max_boots_per_cycle}")
        containers_to_start = rate_limit_clamp(containers_to_start, config.max_boots_per_cycle)
        return ScalingCommand.start(containers_to_start, containers_after_balance)

    logger.debug(f"Null score (keeping containers) | {running_workers} workers "
                 f"{containers_after_balance} score = {running_workers - containers_after_balance}")
    return ScalingCommand.noop(containers_after_balance)


class ScalingDecisionEngine:
    """Decides a command for a score and issues it to the lifecycle driver"""

    def __init__(self, config: BalancerConfig, driver: ContainerDriver,
                 metrics: Optional[BalancerMetrics] = None):
        self.config = config
        self.driver = driver
        self.metrics = metrics

    def apply(self, score: int, running_workers: int, running_containers: int) -> ScalingCommand:
        """
        Decide and issue the command for this cycle.

        Raises:
            LifecycleDriverError: If the driver rejects the command; the
                metric for the command is not recorded in that case
        """
        if running_containers != running_workers:
            logger.warning(f"Workers & Containers don't match [ {running_workers} Workers vs "
                           f"{running_containers} Containers ]")

        command = decide(score, running_workers, running_containers, self.config)

        if command.action == ScalingAction.KILL:
            logger.info(f"Killing {command.count} containers, left "
                        f"{command.containers_after_balance} containers")
            self.driver.kill_containers(command.count)
            self._record(CONTAINERS_KILLED_METRIC, command.count)
        elif command.action == ScalingAction.START:
            logger.info(f"Adding {command.count} containers, "
                        f"{command.containers_after_balance} containers present")
            self.driver.start_containers(command.count)
            self._record(CONTAINERS_STARTED_METRIC, command.count)

        return command

    def _record(self, name: str, value: int):
        if self.metrics is not None:
            self.metrics.gauge(name, value)
