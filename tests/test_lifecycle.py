"""
Tests for lifecycle drivers.
"""

import threading
import pytest
from unittest.mock import Mock

from elastic_balancer.lifecycle import (
    ContainerDriver, ContainerState, DriverTimeoutError,
    InMemoryContainerDriver, LifecycleDriverError, TimedContainerDriver
)

from conftest import make_mock_driver


class TestContainerState:
    """Test ContainerState enum"""

    def test_container_states(self):
        assert ContainerState.PENDING.value == "pending"
        assert ContainerState.STARTING.value == "starting"
        assert ContainerState.RUNNING.value == "running"
        assert ContainerState.STOPPING.value == "stopping"
        assert ContainerState.STOPPED.value == "stopped"
        assert ContainerState.FAILED.value == "failed"


class TestInMemoryContainerDriver:
    """Test InMemoryContainerDriver class"""

    def setup_method(self):
        self.driver = InMemoryContainerDriver("test_pool")

    def test_driver_creation(self):
        assert self.driver.name == "test_pool"
        assert self.driver.list_all_containers() == 0
        assert self.driver.list_running_containers() == 0

    def test_start_containers(self):
        assert self.driver.start_containers(3) == 3

        assert self.driver.list_all_containers() == 3
        assert self.driver.list_running_containers() == 3
        assert len(self.driver.get_containers_by_state(ContainerState.RUNNING)) == 3

    def test_start_zero_containers(self):
        assert self.driver.start_containers(0) == 0
        assert self.driver.list_all_containers() == 0

    def test_kill_containers(self):
        self.driver.start_containers(4)

        assert self.driver.kill_containers(3) == 3
        assert self.driver.list_running_containers() == 1
        assert self.driver.list_all_containers() == 1

    def test_kill_more_than_running(self):
        self.driver.start_containers(2)

        assert self.driver.kill_containers(5) == 2
        assert self.driver.list_running_containers() == 0

    def test_kill_stops_newest_first(self):
        oldest = self.driver.add_containers(1)[0]
        self.driver.get_container(oldest).started_at = (
            self.driver.get_container(oldest).started_at.replace(year=2000)
        )
        self.driver.start_containers(2)

        self.driver.kill_containers(2)

        assert self.driver.get_container(oldest).state == ContainerState.RUNNING

    def test_seeded_containers_in_other_states(self):
        """Registered but not running containers count towards all containers only"""
        self.driver.add_containers(2)
        self.driver.add_containers(1, state=ContainerState.PENDING)
        self.driver.add_containers(1, state=ContainerState.FAILED)

        assert self.driver.list_all_containers() == 4
        assert self.driver.list_running_containers() == 2

    def test_callbacks(self):
        started, stopped = [], []
        self.driver.add_container_started_callback(lambda c: started.append(c.id))
        self.driver.add_container_stopped_callback(lambda c: stopped.append(c.id))

        self.driver.start_containers(2)
        self.driver.kill_containers(1)

        assert len(started) == 2
        assert len(stopped) == 1
        assert stopped[0] in started

    def test_failing_callback_does_not_break_start(self):
        def broken(container):
            raise RuntimeError("callback failure")

        self.driver.add_container_started_callback(broken)

        assert self.driver.start_containers(1) == 1

    def test_refresh_and_statistics(self):
        self.driver.start_containers(2)
        self.driver.kill_containers(1)
        self.driver.refresh_inventory()

        stats = self.driver.get_pool_statistics()

        assert stats["pool_name"] == "test_pool"
        assert stats["total_containers"] == 2
        assert stats["containers_by_state"] == {"running": 1, "stopped": 1}
        assert stats["refresh_count"] == 1
        assert stats["last_refresh"] is not None

    def test_cleanup_stopped_containers(self):
        self.driver.start_containers(3)
        self.driver.kill_containers(2)

        assert self.driver.cleanup_stopped_containers() == 2
        assert self.driver.get_pool_statistics()["total_containers"] == 1

    def test_concurrent_starts(self):
        threads = [threading.Thread(target=self.driver.start_containers, args=(5,)) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert self.driver.list_running_containers() == 20


class TestTimedContainerDriver:
    """Test TimedContainerDriver class"""

    def test_delegates_calls(self):
        inner = make_mock_driver(all_containers=7, running_containers=4)
        driver = TimedContainerDriver(inner, timeout=1.0)

        try:
            assert driver.list_all_containers() == 7
            assert driver.list_running_containers() == 4
            assert driver.start_containers(2) == 2
            assert driver.kill_containers(1) == 1
            driver.refresh_inventory()
        finally:
            driver.close()

        inner.start_containers.assert_called_once_with(2)
        inner.kill_containers.assert_called_once_with(1)
        inner.refresh_inventory.assert_called_once()
        inner.close.assert_called_once()

    def test_timeout_raises_driver_timeout(self):
        release = threading.Event()
        inner = make_mock_driver()
        inner.start_containers.side_effect = lambda count: release.wait(5.0)
        driver = TimedContainerDriver(inner, timeout=0.05)

        try:
            with pytest.raises(DriverTimeoutError, match="start_containers timed out"):
                driver.start_containers(1)
        finally:
            release.set()
            driver.close()

    def test_queued_call_is_cancelled_on_timeout(self):
        """A call stuck behind a hung one never reaches the wrapped driver"""
        release = threading.Event()
        inner = make_mock_driver()
        inner.start_containers.side_effect = lambda count: release.wait(5.0)
        driver = TimedContainerDriver(inner, timeout=0.05, max_workers=1)

        try:
            with pytest.raises(DriverTimeoutError):
                driver.start_containers(1)
            with pytest.raises(DriverTimeoutError, match="kill_containers timed out"):
                driver.kill_containers(2)
        finally:
            release.set()
            driver._executor.shutdown(wait=True)
            driver.close()

        inner.start_containers.assert_called_once_with(1)
        inner.kill_containers.assert_not_called()

    def test_timeout_is_a_driver_error(self):
        assert issubclass(DriverTimeoutError, LifecycleDriverError)

    def test_unexpected_errors_are_wrapped(self):
        inner = make_mock_driver()
        inner.kill_containers.side_effect = RuntimeError("platform exploded")
        driver = TimedContainerDriver(inner, timeout=1.0)

        try:
            with pytest.raises(LifecycleDriverError, match="kill_containers failed: platform exploded"):
                driver.kill_containers(2)
        finally:
            driver.close()

    def test_driver_errors_pass_through(self):
        inner = make_mock_driver()
        inner.list_all_containers.side_effect = LifecycleDriverError("no inventory")
        driver = TimedContainerDriver(inner, timeout=1.0)

        try:
            with pytest.raises(LifecycleDriverError, match="^no inventory$"):
                driver.list_all_containers()
        finally:
            driver.close()

    def test_base_contract_is_abstract(self):
        with pytest.raises(TypeError):
            ContainerDriver()

    def test_wraps_any_driver(self):
        inner = Mock(spec=ContainerDriver)
        inner.list_running_containers.return_value = 0
        driver = TimedContainerDriver(inner)

        try:
            assert driver.list_running_containers() == 0
        finally:
            driver.close()
