"""
Pytest configuration and fixtures for elastic balancer tests
"""
import pytest
import tempfile
from pathlib import Path
from unittest.mock import Mock

import yaml

from elastic_balancer.config import (
    BalancerConfig, ElasticBalancerConfig, MonitoringConfig, ScheduleConfig
)
from elastic_balancer.lifecycle import ContainerDriver


def make_config(**balancer_overrides) -> ElasticBalancerConfig:
    """Build a config with fast timing and the given balancer values"""
    balancer_values = {
        "tolerance_threshold": 5,
        "allow_provision_containers": False,
        "min_containers": 2,
        "max_containers": 10,
        "max_boots_per_cycle": 3,
        "max_shutdowns_per_cycle": 3,
    }
    balancer_values.update(balancer_overrides)
    return ElasticBalancerConfig(
        balancer=BalancerConfig(**balancer_values),
        schedule=ScheduleConfig(initial_delay=0.0, interval=0.05, call_timeout=1.0),
        monitoring=MonitoringConfig(log_level="DEBUG")
    )


def make_mock_driver(all_containers: int = 5, running_containers: int = 5) -> Mock:
    """Lifecycle driver mock reporting fixed container counts"""
    driver = Mock(spec=ContainerDriver)
    driver.list_all_containers.return_value = all_containers
    driver.list_running_containers.return_value = running_containers
    driver.start_containers.side_effect = lambda count: count
    driver.kill_containers.side_effect = lambda count: count
    driver.refresh_inventory.return_value = None
    return driver


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config_file(temp_dir):
    """Write a valid YAML configuration and return its path"""
    config_path = temp_dir / "balancer.yaml"
    config_path.write_text(yaml.dump({
        "balancer": {
            "tolerance_threshold": 5,
            "allow_provision_containers": True,
            "min_containers": 2,
            "max_containers": 10,
            "max_boots_per_cycle": 3,
            "max_shutdowns_per_cycle": 2,
        },
        "schedule": {
            "initial_delay": 1,
            "interval": 30,
        },
        "monitoring": {
            "log_level": "WARNING",
        },
    }))
    return config_path


@pytest.fixture
def mock_driver():
    return make_mock_driver()
