"""Tests for the realtime bridge: invalidation on insert and subscription teardown."""
import asyncio

import pytest
from fastapi.testclient import TestClient

from roomshare.core import dependencies
from roomshare.core.query_cache import conversations_key, messages_key


async def _settle():
    for _ in range(20):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_subscribe_filters_by_conversation(bridge, store, directory):
    conversation_id = "c-1"

    async with bridge.watch(conversation_id) as subscription:
        (channel,) = store.channels
        (binding,) = channel.bindings

        assert binding["event"] == "INSERT"
        assert binding["table"] == "messages"
        assert binding["filter"] == f"conversation_id=eq.{conversation_id}"
        assert subscription in bridge.active

    assert store.channels == []
    assert store.removed_channels == [channel]
    assert bridge.active == set()


@pytest.mark.asyncio
async def test_insert_invalidates_and_refetches(bridge, store, cache, directory, channel, alice, bob):
    conversation, _ = await directory.get_or_create(alice, bob)
    refreshed = []

    async def on_change():
        refreshed.append(
            await cache.fetch(messages_key(conversation.id), lambda: channel.history(conversation.id))
        )

    await cache.fetch(messages_key(conversation.id), lambda: channel.history(conversation.id))
    await cache.fetch(conversations_key(alice), lambda: directory.list_for_user(alice))

    async with bridge.watch(conversation.id, on_change=on_change) as subscription:
        await channel.send(conversation.id, bob, alice, "ping")
        await _settle()

        assert subscription.events_received == 1
        assert [m.content for m in refreshed[-1]] == ["ping"]
        assert not cache.contains(conversations_key(alice))


@pytest.mark.asyncio
async def test_other_conversations_do_not_signal(bridge, directory, channel, alice, bob, carol):
    with_bob, _ = await directory.get_or_create(alice, bob)
    with_carol, _ = await directory.get_or_create(alice, carol)

    async with bridge.watch(with_bob.id) as subscription:
        await channel.send(with_carol.id, carol, alice, "not for this view")
        await _settle()

        assert subscription.events_received == 0


@pytest.mark.asyncio
async def test_teardown_on_error_path(bridge, store):
    with pytest.raises(RuntimeError):
        async with bridge.watch("c-1"):
            raise RuntimeError("view crashed")

    assert store.channels == []
    assert bridge.active == set()


@pytest.mark.asyncio
async def test_switching_conversations_keeps_one_channel(bridge, store):
    for conversation_id in ("c-1", "c-2", "c-3"):
        async with bridge.watch(conversation_id):
            assert len(store.channels) == 1

    assert store.channels == []
    assert len(store.removed_channels) == 3


@pytest.mark.asyncio
async def test_no_events_after_close(bridge, directory, channel, alice, bob):
    conversation, _ = await directory.get_or_create(alice, bob)
    calls = []

    async def on_change():
        calls.append(1)

    subscription = await bridge.subscribe(conversation.id, on_change)
    await subscription.close()
    await subscription.close()

    await channel.send(conversation.id, alice, bob, "after close")
    await _settle()

    assert calls == []
    assert subscription.closed


@pytest.mark.asyncio
async def test_failed_subscribe_releases_channel(bridge, store):
    store.fail_subscribe = True

    with pytest.raises(ConnectionError):
        await bridge.subscribe("c-1")

    assert store.channels == []
    assert len(store.removed_channels) == 1
    assert bridge.active == set()


@pytest.mark.asyncio
async def test_newer_event_supersedes_running_refresh(bridge, directory, channel, alice, bob):
    conversation, _ = await directory.get_or_create(alice, bob)
    started, finished = [], []
    gate = asyncio.Event()

    async def on_change():
        started.append(1)
        await gate.wait()
        finished.append(1)

    async with bridge.watch(conversation.id, on_change=on_change):
        await channel.send(conversation.id, alice, bob, "one")
        await _settle()
        await channel.send(conversation.id, alice, bob, "two")
        await _settle()

        gate.set()
        await _settle()

    assert len(started) == 2
    assert len(finished) == 1


@pytest.mark.asyncio
async def test_close_all(bridge, store):
    await bridge.subscribe("c-1")
    await bridge.subscribe("c-2")

    await bridge.close_all()

    assert bridge.active == set()
    assert store.channels == []


@pytest.mark.asyncio
async def test_shutdown_closes_the_process_bridge(store, cache):
    bridge = await dependencies.get_realtime_bridge(client=store, cache=cache)
    await bridge.subscribe("c-1")
    await bridge.subscribe("c-2")

    await dependencies.close_realtime_bridge()

    assert store.channels == []
    assert bridge.active == set()
    assert dependencies._bridge is None
    # nothing left to close
    await dependencies.close_realtime_bridge()


def test_app_shutdown_closes_open_subscriptions(app, store, cache):
    async def open_subscription():
        bridge = await dependencies.get_realtime_bridge(client=store, cache=cache)
        await bridge.subscribe("c-1")

    with TestClient(app) as test_client:
        test_client.portal.call(open_subscription)
        assert len(store.channels) == 1

    assert store.channels == []
