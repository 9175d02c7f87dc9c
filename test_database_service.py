import asyncio
import logging
import threading

import pytest

from app.database.database_service import DatabaseService
from app.services.sync_manager import SyncManager

pytestmark = pytest.mark.asyncio


class StubDoc:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data
        self.exists = data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class StubWatch:
    """Stands in for a Firestore Watch; fires whether or not it was unsubscribed."""

    def __init__(self, callback, fail_unsubscribe=False):
        self.callback = callback
        self.fail_unsubscribe = fail_unsubscribe
        self.unsubscribed = False

    def fire(self, docs):
        self.callback(docs, [], None)

    def unsubscribe(self):
        self.unsubscribed = True
        if self.fail_unsubscribe:
            raise RuntimeError("watch already closed")


class StubRef:
    def __init__(self, client, path):
        self.client = client
        self.path = path
        self.filters = []

    def where(self, filter=None):
        self.filters.append((filter.field_path, filter.op_string, filter.value))
        return self

    def limit(self, count):
        return self

    def document(self, document_id):
        return StubRef(self.client, f"{self.path}/{document_id}")

    def on_snapshot(self, callback):
        if self.client.refuse_listen:
            raise RuntimeError("permission denied")
        watch = StubWatch(callback, fail_unsubscribe=self.client.fail_unsubscribe)
        self.client.watches.append((self, watch))
        return watch


class StubClient:
    def __init__(self):
        self.refuse_listen = False
        self.fail_unsubscribe = False
        self.watches = []

    def collection(self, name):
        return StubRef(self, name)


@pytest.fixture
def client():
    return StubClient()


@pytest.fixture
def db(client):
    return DatabaseService(client)


def fire_from_watch_thread(watch, docs):
    worker = threading.Thread(target=watch.fire, args=(docs,))
    worker.start()
    worker.join()


async def test_snapshot_from_watch_thread_is_delivered_on_the_loop(client, db):
    delivered = []
    loop_thread = threading.get_ident()
    db.listen(
        "announcements",
        [("status", "==", "published")],
        lambda documents: delivered.append((threading.get_ident(), documents)),
        lambda e: None,
    )
    ref, watch = client.watches[0]
    assert ref.filters == [("status", "==", "published")]

    await asyncio.to_thread(watch.fire, [StubDoc("a1", {"title": "Clean-up drive"})])
    await asyncio.sleep(0)

    assert delivered == [(loop_thread, [{"title": "Clean-up drive", "id": "a1"}])]


async def test_nothing_is_delivered_after_teardown(client, db):
    delivered = []
    teardown = db.listen("announcements", None, delivered.append, lambda e: None)
    _, watch = client.watches[0]

    teardown()
    await asyncio.to_thread(watch.fire, [StubDoc("a1", {"title": "Late"})])
    await asyncio.sleep(0)

    assert watch.unsubscribed
    assert delivered == []


async def test_snapshot_queued_before_teardown_is_dropped(client, db):
    delivered = []
    teardown = db.listen("announcements", None, delivered.append, lambda e: None)
    _, watch = client.watches[0]

    # handed to the loop but not yet run when the listener closes
    fire_from_watch_thread(watch, [StubDoc("a1", {"title": "In flight"})])
    teardown()
    await asyncio.sleep(0)

    assert delivered == []


async def test_listener_setup_failure_reports_error_and_returns_noop_teardown(client, db):
    client.refuse_listen = True
    errors = []

    teardown = db.listen("announcements", None, lambda documents: None, errors.append)
    teardown()

    assert [str(e) for e in errors] == ["permission denied"]
    assert client.watches == []


async def test_setup_failure_leaves_subscription_inactive(client, db):
    client.refuse_listen = True
    sync = SyncManager(db)

    subscription = sync.subscribe("officials", lambda snapshot: None)

    assert not subscription.active
    assert sync.active_subscriptions == 0


async def test_unsubscribe_error_is_logged_not_raised(client, db, caplog):
    client.fail_unsubscribe = True
    teardown = db.listen("announcements", None, lambda documents: None, lambda e: None)

    with caplog.at_level(logging.WARNING):
        teardown()
        teardown()

    _, watch = client.watches[0]
    assert watch.unsubscribed
    assert [r.message for r in caplog.records if r.name == "app.database.database_service"] == ["Error closing listener for announcements: watch already closed"]


async def test_document_listener_delivers_empty_list_once_document_is_gone(client, db):
    delivered = []
    db.listen_document("users", "u1", delivered.append, lambda e: None)
    ref, watch = client.watches[0]
    assert ref.path == "users/u1"

    await asyncio.to_thread(watch.fire, [StubDoc("u1", {"fullName": "Juan"})])
    await asyncio.to_thread(watch.fire, [StubDoc("u1", None)])
    await asyncio.sleep(0)

    assert delivered == [[{"fullName": "Juan", "id": "u1"}], []]


async def test_subscription_receives_records_from_watch_thread(client, db):
    sync = SyncManager(db)
    snapshots = []
    subscription = sync.subscribe("officials", snapshots.append)
    _, watch = client.watches[0]

    await asyncio.to_thread(watch.fire, [StubDoc("o1", {"name": "Kap. Reyes", "position": "Captain"})])
    await asyncio.sleep(0)
    subscription()
    await asyncio.to_thread(watch.fire, [])
    await asyncio.sleep(0)

    assert [[r.id for r in snapshot] for snapshot in snapshots] == [["o1"]]
    assert watch.unsubscribed
