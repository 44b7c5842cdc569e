"""
Configuration management for the elastic balancer.
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, Union, List
from dataclasses import dataclass, field, asdict


class ConfigError(Exception):
    """Raised when configuration is invalid or cannot be loaded"""
    pass


@dataclass(frozen=True)
class BalancerConfig:
    """Static balancing parameters, loaded once at startup"""
    tolerance_threshold: int
    allow_provision_containers: bool = False
    min_containers: int = 1
    max_containers: int = 10
    max_boots_per_cycle: int = 2
    max_shutdowns_per_cycle: int = 2

    def __post_init__(self):
        if self.tolerance_threshold <= 0:
            raise ConfigError("tolerance_threshold must be a positive integer")

        if self.min_containers < 0:
            raise ValueError("min_containers must be non-negative")

        if self.max_containers < self.min_containers:
            raise ValueError("max_containers must be >= min_containers")

        if self.max_boots_per_cycle < 0:
            raise ValueError("max_boots_per_cycle must be non-negative")

        if self.max_shutdowns_per_cycle < 0:
            raise ValueError("max_shutdowns_per_cycle must be non-negative")


@dataclass
class ScheduleConfig:
    """Timer and driver call timing"""
    initial_delay: float = 15.0  # seconds
    interval: float = 60.0  # seconds
    call_timeout: float = 30.0  # seconds per lifecycle call

    def __post_init__(self):
        if self.initial_delay < 0:
            raise ValueError("initial_delay must be non-negative")

        if self.interval <= self.initial_delay:
            raise ValueError("interval must be greater than initial_delay")

        if self.call_timeout <= 0:
            raise ValueError("call_timeout must be positive")


@dataclass
class DriverConfig:
    """Container lifecycle driver selection"""
    driver: str = "memory"  # memory, docker
    image: Optional[str] = None
    pool_label: str = "elastic-balancer.pool=default"
    terminate_mode: bool = False  # remove containers after stopping them
    stop_timeout: int = 10  # seconds
    docker_base_url: Optional[str] = None  # None uses the environment

    def __post_init__(self):
        valid_drivers = ["memory", "docker"]
        if self.driver not in valid_drivers:
            raise ValueError(f"driver must be one of {valid_drivers}")

        if self.driver == "docker" and not self.image:
            raise ValueError("image is required for the docker driver")

        if "=" not in self.pool_label:
            raise ValueError("pool_label must look like 'key=value'")

        if self.stop_timeout < 0:
            raise ValueError("stop_timeout must be non-negative")


@dataclass
class MonitoringConfig:
    """Configuration for logging and metrics"""
    log_level: str = "INFO"
    enable_metrics: bool = True
    metrics_prefix: str = "elastic_balancer"
    metrics_export_format: str = "json"  # json, prometheus

    def __post_init__(self):
        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level not in valid_log_levels:
            raise ValueError(f"log_level must be one of {valid_log_levels}")

        valid_formats = ["json", "prometheus"]
        if self.metrics_export_format not in valid_formats:
            raise ValueError(f"metrics_export_format must be one of {valid_formats}")


@dataclass
class ElasticBalancerConfig:
    """Root configuration object"""
    balancer: BalancerConfig
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    driver: DriverConfig = field(default_factory=DriverConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)


# Used when generating a default config file; tolerance_threshold has no
# implicit default and must always be set explicitly.
DEFAULT_TOLERANCE_THRESHOLD = 5


class ConfigManager:
    """
    Manages loading, validation, and merging of configuration from multiple sources.

    Supports loading from:
    - YAML files
    - Environment variables
    - Python dictionaries
    """

    def __init__(self):
        self._config: Optional[ElasticBalancerConfig] = None
        self._config_sources: List[str] = []

    def load_from_file(self, config_path: Union[str, Path]) -> ElasticBalancerConfig:
        """
        Load configuration from a YAML file.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Loaded configuration

        Raises:
            ConfigError: If file cannot be loaded or is invalid
        """
        config_path = Path(config_path)

        if not config_path.exists():
            raise ConfigError(f"Configuration file not found: {config_path}")

        try:
            with open(config_path, 'r') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in config file {config_path}: {e}")

        if data is None:
            data = {}

        try:
            config = self._create_config_from_dict(data)
        except ConfigError:
            raise
        except Exception as e:
            raise ConfigError(f"Failed to load config file {config_path}: {e}")

        self._config = config
        self._config_sources.append(f"file:{config_path}")
        return config

    def load_from_dict(self, config_dict: Dict[str, Any]) -> ElasticBalancerConfig:
        """
        Load configuration from a dictionary.

        Args:
            config_dict: Configuration dictionary

        Returns:
            Loaded configuration
        """
        try:
            config = self._create_config_from_dict(config_dict)
        except ConfigError:
            raise
        except Exception as e:
            raise ConfigError(f"Failed to load config from dictionary: {e}")

        self._config = config
        self._config_sources.append("dict")
        return config

    def load_from_env(self, prefix: str = "ELASTIC_BALANCER_") -> Dict[str, Any]:
        """
        Load configuration values from environment variables.

        Args:
            prefix: Prefix for environment variables

        Returns:
            Nested dictionary of configuration values from environment
        """
        env_config: Dict[str, Dict[str, Any]] = {
            'balancer': {},
            'schedule': {},
            'driver': {},
            'monitoring': {}
        }

        section_mapping = {
            'tolerance_threshold': 'balancer',
            'allow_provision_containers': 'balancer',
            'min_containers': 'balancer',
            'max_containers': 'balancer',
            'max_boots_per_cycle': 'balancer',
            'max_shutdowns_per_cycle': 'balancer',
            'initial_delay': 'schedule',
            'interval': 'schedule',
            'call_timeout': 'schedule',
            'driver': 'driver',
            'image': 'driver',
            'pool_label': 'driver',
            'terminate_mode': 'driver',
            'stop_timeout': 'driver',
            'docker_base_url': 'driver',
            'log_level': 'monitoring',
            'enable_metrics': 'monitoring',
            'metrics_prefix': 'monitoring',
            'metrics_export_format': 'monitoring'
        }

        for key, value in os.environ.items():
            if not key.startswith(prefix):
                continue

            config_key = key[len(prefix):].lower()
            section = section_mapping.get(config_key)
            if section is None:
                continue

            if value.lower() in ('true', 'false'):
                converted_value = value.lower() == 'true'
            elif value.lstrip('-').isdigit():
                converted_value = int(value)
            elif self._is_float(value):
                converted_value = float(value)
            else:
                converted_value = value

            env_config[section][config_key] = converted_value

        env_config = {k: v for k, v in env_config.items() if v}

        if env_config:
            self._config_sources.append(f"env:{prefix}")

        return env_config

    def merge_configs(self, base: ElasticBalancerConfig,
                      overrides: Dict[str, Any]) -> ElasticBalancerConfig:
        """
        Apply a (possibly partial) nested dictionary on top of a configuration.

        Args:
            base: Configuration to start from
            overrides: Values taking precedence over ``base``

        Returns:
            Merged configuration
        """
        merged_dict = self._deep_merge_dicts(asdict(base), overrides)

        try:
            merged_config = self._create_config_from_dict(merged_dict)
        except ConfigError:
            raise
        except Exception as e:
            raise ConfigError(f"Failed to merge configuration: {e}")

        self._config = merged_config
        self._config_sources.append("merged")
        return merged_config

    def load_default_config(self) -> ElasticBalancerConfig:
        """Load a default configuration"""
        config = ElasticBalancerConfig(
            balancer=BalancerConfig(tolerance_threshold=DEFAULT_TOLERANCE_THRESHOLD)
        )
        self._config = config
        self._config_sources.append("default")
        return config

    def get_config(self) -> Optional[ElasticBalancerConfig]:
        """Get currently loaded configuration"""
        return self._config

    def get_config_sources(self) -> List[str]:
        """Get list of configuration sources that were loaded"""
        return self._config_sources.copy()

    def save_to_file(self, config_path: Union[str, Path],
                     config: Optional[ElasticBalancerConfig] = None) -> None:
        """
        Save configuration to a YAML file.

        Raises:
            ConfigError: If configuration cannot be saved
        """
        if config is None:
            config = self._config

        if config is None:
            raise ConfigError("No configuration to save")

        config_path = Path(config_path)

        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(config_path, 'w') as f:
                yaml.dump(asdict(config), f, default_flow_style=False, indent=2)
        except OSError as e:
            raise ConfigError(f"Failed to save config to {config_path}: {e}")

    def _create_config_from_dict(self, data: Dict[str, Any]) -> ElasticBalancerConfig:
        """Create configuration object from dictionary"""
        balancer_data = data.get('balancer') or {}
        if 'tolerance_threshold' not in balancer_data:
            raise ConfigError("tolerance_threshold parameter does not exist")

        return ElasticBalancerConfig(
            balancer=BalancerConfig(**balancer_data),
            schedule=ScheduleConfig(**(data.get('schedule') or {})),
            driver=DriverConfig(**(data.get('driver') or {})),
            monitoring=MonitoringConfig(**(data.get('monitoring') or {}))
        )

    def _deep_merge_dicts(self, dict1: Dict[str, Any], dict2: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries"""
        result = dict1.copy()

        for key, value in dict2.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge_dicts(result[key], value)
            else:
                result[key] = value

        return result

    def _is_float(self, value: str) -> bool:
        """Check if string represents a float"""
        try:
            float(value)
            return True
        except ValueError:
            return False


def load_config_from_file(config_path: Union[str, Path]) -> ElasticBalancerConfig:
    """Convenience function to load configuration from a file."""
    manager = ConfigManager()
    return manager.load_from_file(config_path)


def load_config_with_env_override(config_path: Optional[Union[str, Path]] = None,
                                  env_prefix: str = "ELASTIC_BALANCER_") -> ElasticBalancerConfig:
    """
    Load configuration from file with environment variable overrides.

    Args:
        config_path: Path to configuration file (optional)
        env_prefix: Prefix for environment variables

    Returns:
        Configuration with environment overrides applied
    """
    manager = ConfigManager()

    if config_path:
        base_config = manager.load_from_file(config_path)
    else:
        base_config = manager.load_default_config()

    env_config_dict = manager.load_from_env(env_prefix)
    if env_config_dict:
        return manager.merge_configs(base_config, env_config_dict)

    return base_config


def create_default_config_file(config_path: Union[str, Path]) -> None:
    """
    Create a default configuration file with example values.

    Args:
        config_path: Path where to create the configuration file
    """
    manager = ConfigManager()
    config = ElasticBalancerConfig(
        balancer=BalancerConfig(
            tolerance_threshold=DEFAULT_TOLERANCE_THRESHOLD,
            allow_provision_containers=False,
            min_containers=1,
            max_containers=10,
            max_boots_per_cycle=2,
            max_shutdowns_per_cycle=2
        ),
        driver=DriverConfig(driver="memory")
    )
    manager.save_to_file(config_path, config)
