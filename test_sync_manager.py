import pytest

from app.core.exceptions import FetchError, NotFoundError, RecordValidationError, StoreWriteError, UnknownCollectionError
from app.models.records import Announcement, Record
from app.models.timestamps import PendingTimestamp, ResolvedTimestamp

pytestmark = pytest.mark.asyncio


async def test_add_returns_pending_timestamps_and_snapshot_resolves_them(sync):
    snapshots = []
    unsubscribe = sync.subscribe("announcements", snapshots.append)

    record = await sync.add("announcements", {"title": "Clean-up drive", "description": "Saturday 7am"})

    assert record.id
    assert isinstance(record.createdAt, PendingTimestamp)
    assert not record.createdAt.is_durable

    latest = snapshots[-1]
    assert [r.id for r in latest] == [record.id]
    assert isinstance(latest[0], Announcement)
    assert isinstance(latest[0].createdAt, ResolvedTimestamp)
    assert latest[0].createdAt.is_durable
    unsubscribe()


async def test_subscribe_delivers_current_contents_first(store, sync):
    store.seed("officials", "o1", {"name": "Kap. Reyes", "position": "Captain"})
    snapshots = []

    unsubscribe = sync.subscribe("officials", snapshots.append)

    assert len(snapshots) == 1
    assert [r.id for r in snapshots[0]] == ["o1"]
    unsubscribe()


async def test_every_snapshot_is_the_full_collection(sync):
    snapshots = []
    unsubscribe = sync.subscribe("officials", snapshots.append)

    first = await sync.add("officials", {"name": "Kap. Reyes", "position": "Captain"})
    second = await sync.add("officials", {"name": "Kgd. Cruz", "position": "Councilor"})
    await sync.update("officials", first.id, {"contact": "09171234567"})

    assert [len(s) for s in snapshots] == [0, 1, 2, 2]
    assert {r.id for r in snapshots[-1]} == {first.id, second.id}
    unsubscribe()


async def test_filtered_subscription_only_sees_matching_records(sync):
    mine = []
    unsubscribe = sync.subscribe_filtered("feedback", ("userId", "u1"), mine.append)

    await sync.add("feedback", {"message": "Streetlight out", "userId": "u1"})
    await sync.add("feedback", {"message": "Loud karaoke", "userId": "u2"})

    assert all(r.userId == "u1" for snapshot in mine for r in snapshot)
    assert len(mine[-1]) == 1
    unsubscribe()


async def test_unsubscribe_stops_delivery_and_is_idempotent(sync):
    snapshots = []
    unsubscribe = sync.subscribe("announcements", snapshots.append)
    assert sync.active_subscriptions == 1

    unsubscribe()
    unsubscribe()
    await sync.add("announcements", {"title": "After", "description": "should not arrive"})

    assert len(snapshots) == 1
    assert sync.active_subscriptions == 0


async def test_unsubscribe_all_closes_every_listener(store, sync):
    sync.subscribe("announcements", lambda s: None)
    sync.subscribe("officials", lambda s: None)

    sync.unsubscribe_all()

    assert sync.active_subscriptions == 0
    assert store.listeners == []


async def test_raising_subscriber_keeps_receiving(sync):
    calls = []

    def on_change(snapshot):
        calls.append(len(snapshot))
        raise RuntimeError("render failed")

    unsubscribe = sync.subscribe("announcements", on_change)
    await sync.add("announcements", {"title": "A", "description": "B"})

    assert calls == [0, 1]
    unsubscribe()


async def test_listener_failure_drops_the_subscription(store, sync):
    store.fail("listen", "announcements")

    subscription = sync.subscribe("announcements", lambda s: None)

    assert not subscription.active
    assert sync.active_subscriptions == 0


async def test_add_strips_server_managed_fields(store, sync):
    record = await sync.add("announcements", {
        "id": "forged",
        "createdAt": "2001-01-01T00:00:00Z",
        "title": "Notice",
        "description": "Water interruption",
    })

    assert record.id != "forged"
    stored = store.docs("announcements")[record.id]
    assert "id" not in stored
    assert stored["createdAt"].year != 2001


async def test_add_rejects_missing_required_fields(sync):
    with pytest.raises(RecordValidationError) as exc:
        await sync.add("announcements", {"title": "No body"})

    assert exc.value.errors == {"description": "description is required."}


async def test_add_rejects_blank_title(sync):
    with pytest.raises(RecordValidationError) as exc:
        await sync.add("announcements", {"title": "   ", "description": "x"})

    assert "title" in exc.value.errors


async def test_add_pins_record_id(store, sync):
    record = await sync.add("users", {"fullName": "Juan", "email": "juan@example.com"}, record_id="uid_9")

    assert record.id == "uid_9"
    assert store.docs("users")["uid_9"]["status"] == "pending"


async def test_update_missing_record_raises_not_found(sync):
    with pytest.raises(NotFoundError):
        await sync.update("announcements", "missing", {"title": "x"})


async def test_update_validates_only_supplied_fields(store, sync):
    store.seed("emergencyAlerts", "a1", {"title": "Flood", "description": "Evacuate"})

    with pytest.raises(RecordValidationError) as exc:
        await sync.update("emergencyAlerts", "a1", {"severity": "Catastrophic"})
    assert "severity" in exc.value.errors

    changes = await sync.update("emergencyAlerts", "a1", {"severity": "High"})
    assert changes["severity"] == "High"
    assert isinstance(changes["updatedAt"], PendingTimestamp)
    assert store.docs("emergencyAlerts")["a1"]["title"] == "Flood"


async def test_update_transport_failure(store, sync):
    store.seed("officials", "o1", {"name": "A", "position": "B"})
    store.fail("update_document", "officials")

    with pytest.raises(StoreWriteError):
        await sync.update("officials", "o1", {"contact": "x"})


async def test_batch_update_is_all_or_nothing(store, sync):
    store.seed("officials", "o1", {"name": "A", "position": "B"})

    with pytest.raises(NotFoundError):
        await sync.batch_update("officials", [("o1", {"color": "red"}), ("o2", {"color": "blue"})])
    assert "color" not in store.docs("officials")["o1"]

    await sync.batch_update("officials", [("o1", {"color": "red"})])
    assert store.docs("officials")["o1"]["color"] == "red"


async def test_unknown_and_archive_collections_are_rejected(sync):
    with pytest.raises(UnknownCollectionError):
        await sync.get_all("reservations")
    with pytest.raises(UnknownCollectionError):
        sync.subscribe("archived_announcements", lambda s: None)


async def test_one_shot_read_degrades_to_empty_on_transport_failure(store, sync):
    store.seed("announcements", "a1", {"title": "T", "description": "D"})
    store.fail("query_documents", "announcements")

    assert await sync.get_all("announcements") == []
    with pytest.raises(FetchError):
        await sync.fetch_all("announcements")


async def test_legacy_documents_fall_back_to_bare_record(store, sync):
    store.seed("announcements", "old", {"headline": "Pre-migration notice"})

    records = await sync.get_all("announcements")

    assert type(records[0]) is Record
    assert records[0].headline == "Pre-migration notice"


async def test_get_returns_none_for_missing(sync):
    assert await sync.get("officials", "nope") is None


async def test_export_degrades_per_section(store, sync):
    store.seed("announcements", "a1", {"title": "T", "description": "D"})
    store.fail("query_documents", "feedback")

    export = await sync.export_data()

    assert [a["id"] for a in export["announcements"]] == ["a1"]
    assert export["feedback"] == []


async def test_added_record_reads_back_with_server_fields(sync):
    fields = {"name": "Kgd. Santos", "position": "Councilor", "contact": "09170000000"}

    record = await sync.add("officials", fields)
    (stored,) = await sync.get_all("officials")

    assert stored.id == record.id
    assert stored.model_dump(include=set(fields)) == fields
    assert stored.createdAt.is_durable and stored.updatedAt.is_durable
