"""
Thin async adapter over Cloud Firestore.

Every call returns a ``(success, payload, error)`` style tuple instead of
raising, so callers decide how to degrade. Blocking SDK calls run in a worker
thread; realtime snapshot callbacks, which Firestore fires on its own watch
thread, are handed back to the event loop that registered the listener.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
import asyncio
import logging

from firebase_admin import firestore
from google.api_core.exceptions import NotFound
from google.cloud.firestore_v1 import FieldFilter

from .firestore_client import get_firestore_client

logger = logging.getLogger(__name__)

NOT_FOUND = "not found"

Filters = Optional[List[Tuple[str, str, Any]]]
SnapshotCallback = Callable[[List[Dict[str, Any]]], None]
ErrorCallback = Callable[[Exception], None]


def _document_to_dict(doc) -> Dict[str, Any]:
    data = doc.to_dict() or {}
    data["id"] = doc.id
    return data


class DatabaseService:
    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_firestore_client()
        return self._client

    def _query(self, collection: str, filters: Filters = None, limit: Optional[int] = None):
        query = self.client.collection(collection)
        for field, op, value in filters or []:
            query = query.where(filter=FieldFilter(field, op, value))
        if limit:
            query = query.limit(limit)
        return query

    @staticmethod
    def _with_server_timestamps(data: Dict[str, Any], server_timestamps: Iterable[str]) -> Dict[str, Any]:
        payload = dict(data)
        for field in server_timestamps:
            payload[field] = firestore.SERVER_TIMESTAMP
        return payload

    async def get_document(self, collection: str, document_id: str) -> Tuple[bool, Optional[Dict[str, Any]], Optional[str]]:
        """Fetch one document. A missing document is ``(True, None, None)``."""
        try:
            doc = await asyncio.to_thread(self.client.collection(collection).document(document_id).get)
            if not doc.exists:
                return True, None, None
            return True, _document_to_dict(doc), None
        except Exception as e:
            logger.error(f"Error getting {collection}/{document_id}: {str(e)}")
            return False, None, str(e)

    async def query_documents(
        self,
        collection: str,
        filters: Filters = None,
        limit: Optional[int] = None,
    ) -> Tuple[bool, List[Dict[str, Any]], Optional[str]]:
        try:
            query = self._query(collection, filters, limit)
            docs = await asyncio.to_thread(lambda: list(query.stream()))
            return True, [_document_to_dict(doc) for doc in docs], None
        except Exception as e:
            logger.error(f"Error querying {collection}: {str(e)}")
            return False, [], str(e)

    async def create_document(
        self,
        collection: str,
        data: Dict[str, Any],
        document_id: Optional[str] = None,
        server_timestamps: Iterable[str] = (),
    ) -> Tuple[bool, Optional[str], Optional[str]]:
        """Create a document; Firestore assigns the id unless one is given."""
        try:
            payload = self._with_server_timestamps(data, server_timestamps)
            doc_ref = self.client.collection(collection).document(document_id) if document_id \
                else self.client.collection(collection).document()
            await asyncio.to_thread(doc_ref.set, payload)
            return True, doc_ref.id, None
        except Exception as e:
            logger.error(f"Error creating document in {collection}: {str(e)}")
            return False, None, str(e)

    async def update_document(
        self,
        collection: str,
        document_id: str,
        data: Dict[str, Any],
        server_timestamps: Iterable[str] = (),
    ) -> Tuple[bool, Optional[str]]:
        """Merge fields into an existing document. Missing id -> ``(False, NOT_FOUND)``."""
        try:
            payload = self._with_server_timestamps(data, server_timestamps)
            doc_ref = self.client.collection(collection).document(document_id)
            await asyncio.to_thread(doc_ref.update, payload)
            return True, None
        except NotFound:
            return False, NOT_FOUND
        except Exception as e:
            logger.error(f"Error updating {collection}/{document_id}: {str(e)}")
            return False, str(e)

    async def delete_document(self, collection: str, document_id: str) -> Tuple[bool, Optional[str]]:
        try:
            doc_ref = self.client.collection(collection).document(document_id)
            await asyncio.to_thread(doc_ref.delete)
            return True, None
        except Exception as e:
            logger.error(f"Error deleting {collection}/{document_id}: {str(e)}")
            return False, str(e)

    async def batch_update(
        self,
        collection: str,
        updates: List[Tuple[str, Dict[str, Any]]],
        server_timestamps: Iterable[str] = (),
    ) -> Tuple[bool, Optional[str]]:
        """Apply several merges in one atomic write batch."""
        try:
            batch = self.client.batch()
            stamps = tuple(server_timestamps)
            for document_id, data in updates:
                doc_ref = self.client.collection(collection).document(document_id)
                batch.update(doc_ref, self._with_server_timestamps(data, stamps))
            await asyncio.to_thread(batch.commit)
            return True, None
        except NotFound:
            return False, NOT_FOUND
        except Exception as e:
            logger.error(f"Error batch updating {collection}: {str(e)}")
            return False, str(e)

    @staticmethod
    def _watch(ref, label: str, to_documents, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> Callable[[], None]:
        """
        Attach a Firestore watch to ``ref``. Firestore calls back on its own
        thread; each snapshot is handed to the loop that registered the
        listener. Nothing is delivered once the returned teardown has run,
        including snapshots already queued on the loop.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        closed = False

        def dispatch(documents):
            if not closed:
                on_snapshot(documents)

        def handle(snapshots, changes, read_time):
            documents = to_documents(snapshots)
            if loop is None:
                dispatch(documents)
            elif not loop.is_closed():
                loop.call_soon_threadsafe(dispatch, documents)

        try:
            watch = ref.on_snapshot(handle)
        except Exception as e:
            logger.error(f"Error setting up listener for {label}: {str(e)}")
            on_error(e)
            return lambda: None

        def teardown():
            nonlocal closed
            if closed:
                return
            closed = True
            try:
                watch.unsubscribe()
            except Exception as e:
                logger.warning(f"Error closing listener for {label}: {str(e)}")

        return teardown

    def listen(
        self,
        collection: str,
        filters: Filters,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Callable[[], None]:
        """
        Register a realtime listener on a collection (or an equality-filtered
        subset of it). ``on_snapshot`` receives the full list of documents,
        first with the current contents and then after every change.

        Returns a teardown function.
        """
        try:
            query = self._query(collection, filters)
        except Exception as e:
            logger.error(f"Error building listener query for {collection}: {str(e)}")
            on_error(e)
            return lambda: None
        return self._watch(
            query,
            collection,
            lambda docs: [_document_to_dict(doc) for doc in docs],
            on_snapshot,
            on_error,
        )

    def listen_document(
        self,
        collection: str,
        document_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Callable[[], None]:
        """Like ``listen`` for a single document: delivers ``[doc]`` or ``[]``."""
        try:
            ref = self.client.collection(collection).document(document_id)
        except Exception as e:
            logger.error(f"Error building listener for {collection}/{document_id}: {str(e)}")
            on_error(e)
            return lambda: None
        return self._watch(
            ref,
            f"{collection}/{document_id}",
            lambda docs: [_document_to_dict(doc) for doc in docs if doc.exists],
            on_snapshot,
            on_error,
        )


database_service = DatabaseService()
