# tests/test_broadcast.py
"""Tests for the connection registry and broadcast groups."""

import pytest

from storefront_chat.services.broadcast import BroadcastHub

from tests.conftest import FakeConnection


def _hub_with(*connections: FakeConnection) -> BroadcastHub:
    hub = BroadcastHub()
    for connection in connections:
        hub.register(connection)
    return hub


@pytest.mark.asyncio
async def test_emit_to_group_reaches_members_only() -> None:
    """Group frames are delivered to subscribed connections and nobody else."""
    alice, bob, outsider = FakeConnection("a"), FakeConnection("b"), FakeConnection("c")
    hub = _hub_with(alice, bob, outsider)
    hub.subscribe(10, "a")
    hub.subscribe(10, "b")

    delivered = await hub.emit_to_group(10, {"event": "typing", "data": {}})

    assert delivered == 2
    assert alice.names() == ["typing"]
    assert bob.names() == ["typing"]
    assert outsider.frames == []


@pytest.mark.asyncio
async def test_emit_to_group_excludes_sender() -> None:
    alice, bob = FakeConnection("a"), FakeConnection("b")
    hub = _hub_with(alice, bob)
    hub.subscribe(10, "a")
    hub.subscribe(10, "b")

    delivered = await hub.emit_to_group(10, {"event": "typing", "data": {}}, exclude="a")

    assert delivered == 1
    assert alice.frames == []
    assert bob.names() == ["typing"]


@pytest.mark.asyncio
async def test_emit_all_reaches_every_connection() -> None:
    """Global frames ignore group membership."""
    alice, bob = FakeConnection("a"), FakeConnection("b")
    hub = _hub_with(alice, bob)
    hub.subscribe(10, "a")

    delivered = await hub.emit_all({"event": "user online", "data": {}})

    assert delivered == 2
    assert bob.names() == ["user online"]


@pytest.mark.asyncio
async def test_failed_send_drops_connection_without_affecting_others() -> None:
    """A broken connection is unregistered and the rest still receive the frame."""
    healthy, broken = FakeConnection("ok"), FakeConnection("gone", broken=True)
    hub = _hub_with(healthy, broken)
    hub.subscribe(3, "ok")
    hub.subscribe(3, "gone")

    delivered = await hub.emit_to_group(3, {"event": "new message", "data": {}})

    assert delivered == 1
    assert healthy.names() == ["new message"]
    assert not hub.is_registered("gone")
    assert hub.members(3) == {"ok"}


@pytest.mark.asyncio
async def test_send_to_unknown_connection_returns_false() -> None:
    hub = BroadcastHub()
    assert await hub.send("missing", {"event": "typing", "data": {}}) is False


def test_subscribe_requires_registration() -> None:
    hub = BroadcastHub()
    with pytest.raises(KeyError):
        hub.subscribe(1, "missing")


def test_unregister_removes_from_all_groups() -> None:
    """Unregistering forgets the connection everywhere and prunes empty groups."""
    hub = _hub_with(FakeConnection("a"), FakeConnection("b"))
    hub.subscribe(1, "a")
    hub.subscribe(2, "a")
    hub.subscribe(2, "b")

    assert hub.unregister("a") is True
    assert hub.members(1) == set()
    assert hub.members(2) == {"b"}
    assert hub.connection_count() == 1
    assert hub.unregister("a") is False

