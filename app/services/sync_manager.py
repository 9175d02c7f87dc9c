"""
Realtime sync layer.

A SyncManager is created once by the application root and handed to whatever
needs collection data. It exposes one-shot reads, push subscriptions that
always deliver the full snapshot, validated writes, and the
archive-then-delete removal path. It keeps no durable state of its own: the
only thing it owns is the table of live subscriptions so they can be torn
down together.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from itertools import count
import logging

from ..core.exceptions import (
    FetchError,
    NotFoundError,
    StoreWriteError,
    UnknownCollectionError,
)
from ..database.collections import EXPORT_COLLECTIONS, is_archive_collection, is_known_collection
from ..database.database_service import NOT_FOUND
from ..models.records import Record, to_record, validate_new, validate_partial
from ..models.timestamps import PendingTimestamp
from .archive_service import ArchiveService

logger = logging.getLogger(__name__)

Snapshot = List[Record]
OnChange = Callable[[Snapshot], None]

RECORD_TIMESTAMPS = ("createdAt", "updatedAt")


class Subscription:
    """
    Handle for one live listener. Calling it unsubscribes.

    Unsubscribing is synchronous and idempotent; once it returns the
    ``on_change`` callback is never invoked again.
    """

    def __init__(self, manager: "SyncManager", handle: int, collection: str,
                 filter_clause: Optional[Tuple[str, Any]], on_change: OnChange):
        self.manager = manager
        self.handle = handle
        self.collection = collection
        self.filter_clause = filter_clause
        self.on_change = on_change
        self.active = True
        self.deliveries = 0
        self._teardown: Optional[Callable[[], None]] = None

    def deliver(self, documents: List[Dict[str, Any]]):
        if not self.active:
            return
        snapshot = [to_record(self.collection, document) for document in documents]
        self.deliveries += 1
        try:
            self.on_change(snapshot)
        except Exception as e:
            logger.error(f"Subscriber {self.handle} on {self.collection} raised: {str(e)}")

    def fail(self, error: Exception):
        logger.error(f"Subscription {self.handle} to {self.collection} failed: {str(error)}")
        self.manager._drop(self.handle)
        self.close()

    def close(self):
        if not self.active:
            return
        self.active = False
        if self._teardown is not None:
            self._teardown()
            self._teardown = None

    def __call__(self):
        self.manager._drop(self.handle)
        self.close()


class SyncManager:
    def __init__(self, store, archive_service: Optional[ArchiveService] = None):
        self.db = store
        self.archive_service = archive_service or ArchiveService(store)
        self._subscriptions: Dict[int, Subscription] = {}
        self._handles = count(1)

    # ===== Helpers =====

    @staticmethod
    def _check_collection(collection: str):
        if not is_known_collection(collection) or is_archive_collection(collection):
            raise UnknownCollectionError(collection)

    def _drop(self, handle: int):
        self._subscriptions.pop(handle, None)

    @property
    def active_subscriptions(self) -> int:
        return len(self._subscriptions)

    # ===== One-shot reads =====

    async def fetch_all(self, collection: str) -> Snapshot:
        """Full current snapshot of a collection. Raises FetchError on transport failure."""
        self._check_collection(collection)
        success, documents, error = await self.db.query_documents(collection)
        if not success:
            raise FetchError(collection, error)
        return [to_record(collection, document) for document in documents]

    async def get_all(self, collection: str) -> Snapshot:
        """Best-effort read for informational display: failures are logged and degrade to []."""
        try:
            return await self.fetch_all(collection)
        except FetchError as e:
            logger.error(f"Error fetching {collection}: {e.detail}")
            return []

    async def query(self, collection: str, field: str, value: Any) -> Snapshot:
        self._check_collection(collection)
        success, documents, error = await self.db.query_documents(collection, filters=[(field, "==", value)])
        if not success:
            raise FetchError(collection, error)
        return [to_record(collection, document) for document in documents]

    async def get(self, collection: str, record_id: str) -> Optional[Record]:
        self._check_collection(collection)
        success, document, error = await self.db.get_document(collection, record_id)
        if not success:
            raise FetchError(collection, error)
        return to_record(collection, document) if document is not None else None

    # ===== Subscriptions =====

    def _listen(self, collection: str, filter_clause: Optional[Tuple[str, Any]], on_change: OnChange) -> Subscription:
        self._check_collection(collection)
        handle = next(self._handles)
        subscription = Subscription(self, handle, collection, filter_clause, on_change)
        self._subscriptions[handle] = subscription

        filters = [(filter_clause[0], "==", filter_clause[1])] if filter_clause else None
        teardown = self.db.listen(collection, filters, subscription.deliver, subscription.fail)
        if subscription.active:
            subscription._teardown = teardown
        else:
            # listener failed during registration
            teardown()

        logger.info(f"Subscription {handle} opened on {collection}" + (f" where {filter_clause[0]} == {filter_clause[1]!r}" if filter_clause else ""))
        return subscription

    def subscribe(self, collection: str, on_change: OnChange) -> Subscription:
        """
        Push every full snapshot of ``collection`` to ``on_change``: once with
        the current contents, then after each change. Call the returned handle
        exactly once to stop.
        """
        return self._listen(collection, None, on_change)

    def subscribe_filtered(self, collection: str, where: Tuple[str, Any], on_change: OnChange) -> Subscription:
        """Same as subscribe, restricted server-side to documents with ``field == value``."""
        field, value = where
        return self._listen(collection, (field, value), on_change)

    def subscribe_document(self, collection: str, record_id: str, on_change: Callable[[Optional[Record]], None]) -> Subscription:
        """Follow a single document; ``on_change`` gets the record, or None once it is gone."""
        self._check_collection(collection)
        handle = next(self._handles)
        subscription = Subscription(
            self, handle, collection, ("id", record_id),
            lambda snapshot: on_change(snapshot[0] if snapshot else None),
        )
        self._subscriptions[handle] = subscription

        teardown = self.db.listen_document(collection, record_id, subscription.deliver, subscription.fail)
        if subscription.active:
            subscription._teardown = teardown
        else:
            teardown()

        logger.info(f"Subscription {handle} opened on {collection}/{record_id}")
        return subscription

    def unsubscribe_all(self):
        for subscription in list(self._subscriptions.values()):
            subscription()
        logger.info("All subscriptions closed")

    # ===== Writes =====

    async def add(self, collection: str, fields: Dict[str, Any], record_id: Optional[str] = None) -> Record:
        """
        Validate and append a record. The returned record carries the new id
        and pending (client-side) timestamps; the server values arrive with
        the next snapshot. ``record_id`` pins the document id (profiles are
        keyed by auth uid); otherwise the server assigns one.
        """
        self._check_collection(collection)
        data = validate_new(collection, fields)
        success, record_id, error = await self.db.create_document(
            collection, data, document_id=record_id, server_timestamps=RECORD_TIMESTAMPS
        )
        if not success:
            raise StoreWriteError(collection, error)

        logger.info(f"Added {collection}/{record_id}")
        stamp = PendingTimestamp.now()
        return to_record(collection, {**data, "id": record_id}).model_copy(
            update={"createdAt": stamp, "updatedAt": stamp}
        )

    async def update(
        self,
        collection: str,
        record_id: str,
        fields: Dict[str, Any],
        server_timestamps: Iterable[str] = (),
    ) -> Dict[str, Any]:
        """
        Merge validated fields into an existing record and refresh updatedAt.
        Extra ``server_timestamps`` (e.g. verifiedAt) are stamped by the server.

        Returns the applied changes with a pending updatedAt.
        """
        self._check_collection(collection)
        data = validate_partial(collection, fields)
        stamps = ("updatedAt",) + tuple(server_timestamps)
        success, error = await self.db.update_document(collection, record_id, data, server_timestamps=stamps)
        if not success:
            if error == NOT_FOUND:
                raise NotFoundError(collection, record_id)
            raise StoreWriteError(collection, error)

        logger.info(f"Updated {collection}/{record_id}: {sorted(data)}")
        return {"id": record_id, **data, "updatedAt": PendingTimestamp.now()}

    async def batch_update(self, collection: str, updates: List[Tuple[str, Dict[str, Any]]]):
        """Apply several validated merges atomically."""
        self._check_collection(collection)
        validated = [(record_id, validate_partial(collection, fields)) for record_id, fields in updates]
        success, error = await self.db.batch_update(collection, validated, server_timestamps=("updatedAt",))
        if not success:
            if error == NOT_FOUND:
                raise NotFoundError(collection, ",".join(record_id for record_id, _ in updates))
            raise StoreWriteError(collection, error)
        logger.info(f"Batch updated {len(validated)} record(s) in {collection}")

    async def remove(
        self,
        collection: str,
        record_id: str,
        actor_id: Optional[str] = None,
        actor_email: Optional[str] = None,
    ) -> bool:
        """
        Archive-then-delete. The delete only runs after the archive copy is
        written; an archive failure raises ArchiveFailedError and leaves the
        record in place. Removing a missing id is a no-op.

        Returns True if a record was removed, False if there was nothing to remove.
        """
        self._check_collection(collection)
        archived = await self.archive_service.archive_record(collection, record_id, actor_id, actor_email)
        if not archived:
            return False

        success, error = await self.db.delete_document(collection, record_id)
        if not success:
            raise StoreWriteError(collection, error)

        logger.info(f"Deleted {collection}/{record_id} after archiving")
        return True

    async def clear_collection(
        self,
        collection: str,
        actor_id: Optional[str] = None,
        actor_email: Optional[str] = None,
    ) -> int:
        """
        Archive and delete every record, one record at a time. A failure
        stops the sweep: records before it are archived and deleted, the rest
        are untouched.
        """
        records = await self.fetch_all(collection)
        removed = 0
        for record in records:
            if await self.remove(collection, record.id, actor_id, actor_email):
                removed += 1
        logger.info(f"Cleared {removed} record(s) from {collection}")
        return removed

    async def export_data(self, collections: Iterable[str] = EXPORT_COLLECTIONS) -> Dict[str, List[Dict[str, Any]]]:
        """JSON-ready dump of the main sections (best effort per section)."""
        export = {}
        for collection in collections:
            records = await self.get_all(collection)
            export[collection] = [record.model_dump(mode="json") for record in records]
        return export

