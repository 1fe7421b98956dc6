import asyncio
import logging

from fieldservice.lifecycle.feed import ChangeEvent, ChangeFeed, UPDATE, RECONNECT
from fieldservice.lifecycle.manager import TicketManager
from fieldservice.lifecycle.notifier import CollectingNotifier
from fieldservice.lifecycle.stores.base import TICKETS
from fieldservice.lifecycle.stores.local import STORAGE_KEY
from tests.test_utils_seed import identity, local_store, StepClock


def _manager(store, ident, debounce=60):
    return TicketManager(store, ident, notifier=CollectingNotifier(), clock=StepClock(), debounce_seconds=debounce)


def _count_fetches(store):
    calls = []
    original = store._fetch_tickets

    def counting(role, user_id):
        calls.append(user_id)
        return original(role, user_id)

    store._fetch_tickets = counting
    return calls


def test_feed_release_stops_callbacks():
    feed = ChangeFeed()
    seen = []
    sub = feed.subscribe(TICKETS, seen.append)
    feed.publish(ChangeEvent(TICKETS, UPDATE, 't1'))
    sub.release()
    feed.publish(ChangeEvent(TICKETS, UPDATE, 't2'))
    assert [e.ticket_id for e in seen] == ['t1']
    assert feed.subscriber_count == 0
    assert not sub.active


def test_feed_drops_while_disconnected_and_signals_reconnect():
    feed = ChangeFeed()
    seen = []
    with feed.subscribe(TICKETS, seen.append):
        feed.disconnect()
        feed.publish(ChangeEvent(TICKETS, UPDATE, 't1'))
        assert seen == []
        feed.reconnect()
        assert [e.kind for e in seen] == [RECONNECT]
    assert feed.subscriber_count == 0


def test_broken_subscriber_does_not_break_publisher(caplog):
    feed = ChangeFeed()
    seen = []

    def boom(event):
        raise RuntimeError('subscriber bug')

    feed.subscribe(TICKETS, boom)
    feed.subscribe(TICKETS, seen.append)
    with caplog.at_level(logging.ERROR, logger='fieldservice.lifecycle.feed'):
        feed.publish(ChangeEvent(TICKETS, UPDATE, 't1'))
    assert len(seen) == 1
    assert 'subscriber failed' in caplog.text


def test_store_subscription_filters_by_visibility(tmp_path):
    store = local_store(tmp_path)
    seen = []
    store.subscribe(seen.append, 'field_engineer', 'e1')

    async def scenario():
        async with _manager(store, identity('a1', 'admin')) as admin:
            await admin.load_all()
            t = await admin.create({'title': 'A', 'location': 'B'})
            assert seen == []
            await admin.assign(t.id, 'e1')
            assert [e.ticket_id for e in seen] == [t.id]
            # unassigning still reaches the previous assignee
            await admin.assign(t.id, None)
            assert len(seen) == 2
            assert 'e1' in seen[-1].audience

    asyncio.run(scenario())


def test_burst_of_events_coalesces_into_one_reload(tmp_path):
    store = local_store(tmp_path)
    calls = _count_fetches(store)

    async def scenario():
        async with _manager(store, identity('e1', 'field_engineer'), debounce=0.01) as m:
            await m.load_all()
            assert len(calls) == 1
            for _ in range(5):
                store.feed.publish(ChangeEvent(TICKETS, UPDATE, 'x', audience=frozenset({'e1'})))
            await asyncio.sleep(0)
            await m.drain()
            assert len(calls) == 2

    asyncio.run(scenario())


def test_remote_write_reaches_other_session(tmp_path):
    store = local_store(tmp_path)

    async def scenario():
        async with _manager(store, identity('e1', 'field_engineer'), debounce=0.01) as watcher, \
                _manager(store, identity('s1', 'supervisor')) as writer:
            await watcher.load_all()
            await writer.load_all()
            t = await writer.create({'title': 'A', 'location': 'B'})
            await writer.assign(t.id, 'e1')
            await asyncio.sleep(0)
            await watcher.drain()
            assert [x.id for x in watcher.tickets] == [t.id]
            assert watcher.get(t.id).assigned_to == 'e1'
            assert len(watcher.get_ticket_activities(t.id)) == 2

    asyncio.run(scenario())


def test_reconnect_triggers_immediate_full_reload(tmp_path):
    store = local_store(tmp_path)

    async def scenario():
        async with _manager(store, identity('a1', 'admin')) as watcher, \
                _manager(store, identity('e1', 'field_engineer')) as writer:
            await watcher.load_all()
            await writer.load_all()
            store.feed.disconnect()
            t = await writer.create({'title': 'A', 'location': 'B'})
            await asyncio.sleep(0)
            await watcher.drain()
            assert watcher.tickets == []
            # debounce is 60s; a reconnect must not wait for it
            store.feed.reconnect()
            await asyncio.sleep(0)
            await asyncio.wait_for(watcher.drain(), timeout=5)
            assert [x.id for x in watcher.tickets] == [t.id]

    asyncio.run(scenario())


def test_close_releases_subscription_and_cancels_reload(tmp_path):
    store = local_store(tmp_path)
    calls = _count_fetches(store)

    async def scenario():
        m = _manager(store, identity('e1', 'field_engineer'))
        await m.load_all()
        await m.load_all()
        assert store.feed.subscriber_count == 1
        store.feed.publish(ChangeEvent(TICKETS, UPDATE, 'x', audience=frozenset({'e1'})))
        await asyncio.sleep(0)
        await m.close()
        assert not m.subscribed
        assert store.feed.subscriber_count == 0
        store.feed.publish(ChangeEvent(TICKETS, UPDATE, 'y', audience=frozenset({'e1'})))
        await asyncio.sleep(0)
        await m.drain()

    asyncio.run(scenario())
    assert len(calls) == 2


def test_background_reload_failure_is_only_logged(tmp_path, caplog):
    store = local_store(tmp_path)

    async def scenario():
        async with _manager(store, identity('e1', 'field_engineer'), debounce=0.01) as m:
            await m.load_all()
            t = await m.create({'title': 'A', 'location': 'B'})
            store.storage.set_item(STORAGE_KEY, '[]')
            store.feed.publish(ChangeEvent(TICKETS, UPDATE, t.id, audience=frozenset({'e1'})))
            await asyncio.sleep(0)
            await m.drain()
            assert [x.id for x in m.tickets] == [t.id]
            return m.notifier

    with caplog.at_level(logging.WARNING, logger='fieldservice.lifecycle.manager'):
        notifier = asyncio.run(scenario())
    assert 'background ticket refresh failed' in caplog.text
    assert all(n.level != 'warning' for n in notifier.notices)
