"""Shared fixtures."""

import pytest

from chatlayer.config.schema import LifecycleConfig
from chatlayer.metrics import get_metrics
from chatlayer.rooms.lifecycle import RoomLifecycleManager
from chatlayer.rooms.status import RoomStatusHolder

from fakes import FakeChannelProvider, make_features


@pytest.fixture(autouse=True)
def reset_metrics():
    get_metrics().reset()
    yield
    get_metrics().reset()


@pytest.fixture
def lifecycle_config():
    """Short timings so retry and timeout paths run quickly."""
    return LifecycleConfig(transient_detach_timeout=0.05, retry_delay=0.01)


@pytest.fixture
def provider():
    return FakeChannelProvider()


@pytest.fixture
def features():
    return make_features(3)


@pytest.fixture
def status_log():
    """List that collects every status a holder moves to."""
    return []


@pytest.fixture
def manager(features, lifecycle_config, status_log):
    status = RoomStatusHolder("room-1")
    status.on_change(lambda change: status_log.append(change))
    return RoomLifecycleManager(status, features, config=lifecycle_config)
