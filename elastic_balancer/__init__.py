"""
Elastic Balancer

Autoscaling control loop for a pool of worker containers backing a
job-processing server.
"""

from .config import (
    ConfigManager, ElasticBalancerConfig, BalancerConfig, ScheduleConfig,
    DriverConfig, MonitoringConfig, ConfigError, load_config_from_file,
    load_config_with_env_override, create_default_config_file
)
from .counters import AtomicCounter, LoadCounters, LoadSnapshot
from .metrics import BalancerMetrics, MetricSeries, MetricType
from .scoring import ScoreComputationError, ScoreOutcome, calculate_score, raw_balance_score
from .lifecycle import (
    ContainerDriver, ContainerInstance, ContainerState,
    InMemoryContainerDriver, TimedContainerDriver, LifecycleDriverError,
    DriverTimeoutError
)
from .decision import (
    ScalingAction, ScalingCommand, ScalingDecisionEngine, decide,
    pool_bounds_clamp, rate_limit_clamp
)
from .balancer import BalancerState, CycleReport, ElasticBalancer, build_balancer, create_driver

# Other modules available for advanced usage:
# - elastic_balancer.docker_driver: Docker Engine lifecycle driver (requires docker)
# - elastic_balancer.cli: Command-line interface (requires typer)

__version__ = "0.1.0"

__all__ = [
    "ConfigManager",
    "ElasticBalancerConfig",
    "BalancerConfig",
    "ScheduleConfig",
    "DriverConfig",
    "MonitoringConfig",
    "ConfigError",
    "load_config_from_file",
    "load_config_with_env_override",
    "create_default_config_file",
    "AtomicCounter",
    "LoadCounters",
    "LoadSnapshot",
    "BalancerMetrics",
    "MetricSeries",
    "MetricType",
    "ScoreComputationError",
    "ScoreOutcome",
    "calculate_score",
    "raw_balance_score",
    "ContainerDriver",
    "ContainerInstance",
    "ContainerState",
    "InMemoryContainerDriver",
    "TimedContainerDriver",
    "LifecycleDriverError",
    "DriverTimeoutError",
    "ScalingAction",
    "ScalingCommand",
    "ScalingDecisionEngine",
    "decide",
    "pool_bounds_clamp",
    "rate_limit_clamp",
    "BalancerState",
    "CycleReport",
    "ElasticBalancer",
    "build_balancer",
    "create_driver",
]
