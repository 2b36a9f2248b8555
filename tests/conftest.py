"""Pytest fixtures for DreamJar tests."""

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from dreamjar.bridge import ChainBridge
from dreamjar.config import DreamJarConfig
from dreamjar.events import InMemoryEventBus, Notifier
from dreamjar.service import DreamJarService
from dreamjar.store import DreamJarStore

START = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock; call it to read the current time."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingBridge(ChainBridge):
    def __init__(self, fail: bool = False):
        self.calls: list[tuple] = []
        self.fail = fail

    def _record(self, *call: Any) -> None:
        self.calls.append(call)
        if self.fail:
            raise RuntimeError("relayer unavailable")

    def propose_on_chain(self, ref: str) -> None:
        self._record("propose", ref)

    def vote_on_chain(self, proposal_id: int, choice: bool) -> None:
        self._record("vote", proposal_id, choice)

    def execute_on_chain(self, proposal_id: int) -> None:
        self._record("execute", proposal_id)

    def distribute_rewards(self, wish_id: str) -> None:
        self._record("distribute", wish_id)


class RecordingNotifier(Notifier):
    def __init__(self):
        self.sent: list[tuple[str, str, str]] = []

    def notify(self, user_id: str, kind: str, message: str) -> None:
        self.sent.append((user_id, kind, message))


@pytest.fixture
def clock():
    """Fake clock starting at a fixed instant.

    Returns:
        FakeClock instance
    """
    return FakeClock()


@pytest.fixture
def store(tmp_path):
    """Create a DreamJarStore backed by a temporary database.

    Args:
        tmp_path: pytest's built-in temporary directory fixture

    Returns:
        DreamJarStore instance
    """
    return DreamJarStore(tmp_path / "dreamjar.sqlite")


@pytest.fixture
def bridge():
    return RecordingBridge()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def event_bus():
    """In-memory bus that records every published event.

    Returns:
        (bus, events) where events collects (name, payload) tuples
    """
    bus = InMemoryEventBus()
    events: list[tuple[str, dict]] = []
    for name in ("wish_resolved", "vote_cast", "proposal_executed"):
        bus.subscribe(name, lambda n, p: events.append((n, p)))
    return bus, events


@pytest.fixture
def config(tmp_path):
    """Small quorums so tests stay short.

    Returns:
        DreamJarConfig instance
    """
    return DreamJarConfig(
        db_path=tmp_path / "dreamjar.sqlite",
        quorum_threshold=3,
        proposal_quorum_threshold=3,
        admin_user_ids=["admin"],
    )


@pytest.fixture
def service(store, config, clock, bridge, notifier, event_bus):
    """Fully wired DreamJarService with recording collaborators.

    Returns:
        DreamJarService instance
    """
    bus, _ = event_bus
    return DreamJarService(
        store,
        config,
        bridge=bridge,
        notifier=notifier,
        event_bus=bus,
        clock=clock,
    )


@pytest.fixture
def make_wish(service, clock):
    """Factory creating an active wish due in 30 days.

    Returns:
        Callable returning the created Wish
    """

    def _make(creator: str = "alice", **kwargs: Any):
        params = {
            "title": "Run a marathon",
            "stake_amount": 1_000,
            "deadline": clock() + timedelta(days=30),
            "proof_method": "media",
        }
        params.update(kwargs)
        return service.create_wish(creator, **params)

    return _make


@pytest.fixture
def media_proof():
    return {"content_uri": "ipfs://bafy-proof", "content_hash": "sha256:abc123"}


@pytest.fixture
def pending_wish(service, make_wish, media_proof):
    """Factory creating a wish that already has proof submitted.

    Returns:
        Callable returning the wish id
    """

    def _make(creator: str = "alice", **kwargs: Any) -> str:
        wish = make_wish(creator, **kwargs)
        service.submit_proof(wish.wish_id, creator, media_proof)
        return wish.wish_id

    return _make
