import copy
from datetime import datetime, timezone
from itertools import count

import pytest

from app.database.database_service import NOT_FOUND
from app.services.sync_manager import SyncManager


class FakeDocumentStore:
    """
    In-memory stand-in for DatabaseService: same tuple API, plus realtime
    listeners that get the full snapshot on registration and after every write.
    """

    def __init__(self, data=None):
        # collection -> id -> doc
        self.storage = {c: {i: dict(d) for i, d in docs.items()} for c, docs in (data or {}).items()}
        self.writes = []
        # (method, collection) -> successful calls left before it starts failing
        self.failures = {}
        self.listeners = []
        self._ids = count(1)

    # ----- test controls -----

    def fail(self, method, collection, after=0):
        self.failures[(method, collection)] = after

    def heal(self):
        self.failures.clear()

    def seed(self, collection, document_id, doc):
        self.storage.setdefault(collection, {})[document_id] = dict(doc)

    def docs(self, collection):
        return self.storage.get(collection, {})

    def _failing(self, method, collection):
        key = (method, collection)
        if key not in self.failures:
            return False
        if self.failures[key] > 0:
            self.failures[key] -= 1
            return False
        return True

    @staticmethod
    def _matches(doc, filters):
        return all(op == "==" and doc.get(field) == value for field, op, value in filters or [])

    def _snapshot(self, collection, filters=None):
        return [
            {**copy.deepcopy(doc), "id": doc_id}
            for doc_id, doc in self.docs(collection).items()
            if self._matches(doc, filters)
        ]

    def _notify(self, collection):
        for listener in list(self.listeners):
            if listener["collection"] != collection:
                continue
            if "document_id" in listener:
                doc = self.docs(collection).get(listener["document_id"])
                listener["on_snapshot"]([{**copy.deepcopy(doc), "id": listener["document_id"]}] if doc is not None else [])
            else:
                listener["on_snapshot"](self._snapshot(collection, listener["filters"]))

    @staticmethod
    def _stamp(data, server_timestamps):
        now = datetime.now(timezone.utc)
        return {**data, **{field: now for field in server_timestamps}}

    # ----- DatabaseService API -----

    async def get_document(self, collection, document_id):
        if self._failing("get_document", collection):
            return False, None, "unavailable"
        doc = self.docs(collection).get(document_id)
        if doc is None:
            return True, None, None
        return True, {**copy.deepcopy(doc), "id": document_id}, None

    async def query_documents(self, collection, filters=None, limit=None):
        if self._failing("query_documents", collection):
            return False, [], "unavailable"
        documents = self._snapshot(collection, filters)
        return True, documents[:limit] if limit else documents, None

    async def create_document(self, collection, data, document_id=None, server_timestamps=()):
        if self._failing("create_document", collection):
            return False, None, "write rejected"
        document_id = document_id or f"doc_{next(self._ids)}"
        self.storage.setdefault(collection, {})[document_id] = self._stamp(copy.deepcopy(data), server_timestamps)
        self.writes.append(("create", collection, document_id))
        self._notify(collection)
        return True, document_id, None

    async def update_document(self, collection, document_id, data, server_timestamps=()):
        if self._failing("update_document", collection):
            return False, "write rejected"
        doc = self.docs(collection).get(document_id)
        if doc is None:
            return False, NOT_FOUND
        doc.update(self._stamp(copy.deepcopy(data), server_timestamps))
        self.writes.append(("update", collection, document_id))
        self._notify(collection)
        return True, None

    async def delete_document(self, collection, document_id):
        if self._failing("delete_document", collection):
            return False, "write rejected"
        self.docs(collection).pop(document_id, None)
        self.writes.append(("delete", collection, document_id))
        self._notify(collection)
        return True, None

    async def batch_update(self, collection, updates, server_timestamps=()):
        if self._failing("batch_update", collection):
            return False, "write rejected"
        if any(document_id not in self.docs(collection) for document_id, _ in updates):
            return False, NOT_FOUND
        for document_id, data in updates:
            self.docs(collection)[document_id].update(self._stamp(copy.deepcopy(data), server_timestamps))
            self.writes.append(("update", collection, document_id))
        self._notify(collection)
        return True, None

    def listen(self, collection, filters, on_snapshot, on_error):
        if self._failing("listen", collection):
            on_error(Exception("listen rejected"))
            return lambda: None
        listener = {"collection": collection, "filters": filters, "on_snapshot": on_snapshot}
        self.listeners.append(listener)
        on_snapshot(self._snapshot(collection, filters))
        return lambda: self.listeners.remove(listener) if listener in self.listeners else None

    def listen_document(self, collection, document_id, on_snapshot, on_error):
        if self._failing("listen", collection):
            on_error(Exception("listen rejected"))
            return lambda: None
        listener = {"collection": collection, "document_id": document_id, "on_snapshot": on_snapshot}
        self.listeners.append(listener)
        doc = self.docs(collection).get(document_id)
        on_snapshot([{**copy.deepcopy(doc), "id": document_id}] if doc is not None else [])
        return lambda: self.listeners.remove(listener) if listener in self.listeners else None


class FakeNotifier:
    def __init__(self, succeed=True, raise_error=False):
        self.succeed = succeed
        self.raise_error = raise_error
        self.sent = []

    async def send_approval_notification(self, email, full_name):
        return self._send("approved", email, full_name, None)

    async def send_decline_notification(self, email, full_name, decline_reason):
        return self._send("declined", email, full_name, decline_reason)

    def _send(self, kind, email, full_name, reason):
        if self.raise_error:
            raise RuntimeError("smtp down")
        self.sent.append((kind, email, full_name, reason))
        return self.succeed


class FakeIdentity:
    def __init__(self):
        self.users = {}
        self.deleted = []
        self.passwords = {}

    async def create_user(self, email, password, display_name=None):
        if any(u["email"] == email for u in self.users.values()):
            raise Exception("User creation failed: EMAIL_EXISTS")
        uid = f"uid_{len(self.users) + 1}"
        self.users[uid] = {"uid": uid, "email": email}
        self.passwords[email] = (uid, password)
        return {"uid": uid, "email": email}

    async def sign_in_with_password(self, email, password):
        uid, expected = self.passwords.get(email, (None, None))
        if uid is None or password != expected:
            return None
        return {"idToken": f"token-{uid}", "refreshToken": "refresh", "expiresIn": "3600", "localId": uid}

    async def delete_user(self, uid):
        self.deleted.append(uid)
        self.users.pop(uid, None)


def resident(status="verified", **extra):
    return {
        "fullName": "Juan Dela Cruz",
        "email": "juan@example.com",
        "role": "resident",
        "status": status,
        "purok": "Purok 1",
        "houseNumber": "12",
        "address": "Purok 1 12",
        "contactNumber": "09171234567",
        **extra,
    }


def admin(**extra):
    return {"fullName": "Maria Santos", "email": "admin@example.com", "role": "admin", "status": "verified", **extra}


@pytest.fixture
def store():
    return FakeDocumentStore()


@pytest.fixture
def sync(store):
    return SyncManager(store)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def identity():
    return FakeIdentity()
