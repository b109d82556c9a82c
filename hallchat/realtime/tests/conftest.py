from __future__ import annotations

import pytest

from hallchat.realtime.hub import RealtimeHub
from hallchat.realtime.tests.utils import FakeDirectory
from hallchat.realtime.tests.utils import FakeStore


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory("alice", "bob", "carol", "dave")


@pytest.fixture
def hub(store, directory) -> RealtimeHub:
    return RealtimeHub(store, directory)


@pytest.fixture
def registry(hub):
    return hub.registry


@pytest.fixture
def connect(hub):
    """Attach and announce a connection in one step."""

    def _connect(connection_id: str, user_id: str | None = None):
        hub.registry.attach(connection_id)
        if user_id is not None:
            hub.registry.announce(connection_id, user_id)
        return connection_id

    return _connect
