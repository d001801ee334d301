"""
Mock Firestore client for local development without Firebase credentials.

Implements the subset of the google-cloud-firestore client API that the
app uses: collection and document references, set/update/delete,
equality queries, write batches and on_snapshot watches. Data lives in
memory and is optionally mirrored to a JSON file.

Watch callbacks are delivered synchronously after each commit, in commit
order, with the same (docs, changes, read_time) signature as the real client.
"""

import copy
import json
import logging
import os
import threading
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from firebase_admin import firestore
from google.api_core.exceptions import NotFound

logger = logging.getLogger(__name__)

_SUPPORTED_OPERATORS = ("==", "!=", "in")


class ChangeType(Enum):
    ADDED = 1
    REMOVED = 2
    MODIFIED = 3


class MockDocumentChange:
    def __init__(self, type: ChangeType, document: "MockDocumentSnapshot", old_index: int, new_index: int):
        self.type = type
        self.document = document
        self.old_index = old_index
        self.new_index = new_index


class MockDocumentSnapshot:
    def __init__(self, reference: "MockDocumentReference", data: Optional[dict], read_time: datetime):
        self.reference = reference
        self._data = copy.deepcopy(data) if data is not None else None
        self.read_time = read_time

    @property
    def id(self) -> str:
        return self.reference.id

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> Optional[dict]:
        if self._data is None:
            return None
        return copy.deepcopy(self._data)

    def get(self, field_path: str) -> Any:
        value: Any = self._data or {}
        for part in field_path.split("."):
            if not isinstance(value, dict) or part not in value:
                raise KeyError(field_path)
            value = value[part]
        return copy.deepcopy(value)


class MockDocumentReference:
    def __init__(self, client: "MockFirestore", collection_id: str, document_id: str):
        self._client = client
        self._collection_id = collection_id
        self.id = document_id

    @property
    def path(self) -> str:
        return f"{self._collection_id}/{self.id}"

    @property
    def parent(self) -> "MockCollectionReference":
        return MockCollectionReference(self._client, self._collection_id)

    def get(self) -> MockDocumentSnapshot:
        return self._client._get_document(self)

    def set(self, document_data: dict, merge: bool = False) -> None:
        self._client._commit([("set", self, document_data, merge)])

    def update(self, field_updates: dict) -> None:
        self._client._commit([("update", self, field_updates, False)])

    def delete(self) -> None:
        self._client._commit([("delete", self, None, False)])


class MockQuery:
    def __init__(
        self,
        client: "MockFirestore",
        collection_id: str,
        filters: Optional[List[Tuple[str, str, Any]]] = None,
        limit_count: Optional[int] = None,
    ):
        self._client = client
        self._collection_id = collection_id
        self._filters = list(filters or [])
        self._limit = limit_count

    def where(self, field_path: str, op_string: str, value: Any) -> "MockQuery":
        if op_string not in _SUPPORTED_OPERATORS:
            raise ValueError(f"Mock Firestore does not support operator {op_string!r}")
        return MockQuery(self._client, self._collection_id, self._filters + [(field_path, op_string, value)], self._limit)

    def limit(self, count: int) -> "MockQuery":
        return MockQuery(self._client, self._collection_id, self._filters, count)

    def _matches(self, data: dict) -> bool:
        for field_path, op_string, expected in self._filters:
            actual = _read_path(data, field_path)
            if op_string == "==" and actual != expected:
                return False
            if op_string == "!=" and actual == expected:
                return False
            if op_string == "in" and actual not in expected:
                return False
        return True

    def _select(self, documents: Dict[str, dict]) -> Dict[str, dict]:
        selected = {}
        for doc_id, data in documents.items():
            if self._limit is not None and len(selected) >= self._limit:
                break
            if self._matches(data):
                selected[doc_id] = data
        return selected

    def stream(self):
        for snapshot in self._client._run_query(self):
            yield snapshot

    def get(self) -> List[MockDocumentSnapshot]:
        return list(self.stream())

    def on_snapshot(self, callback: Callable) -> "MockWatch":
        return self._client._watch(self, callback)


class MockCollectionReference(MockQuery):
    def __init__(self, client: "MockFirestore", collection_id: str):
        super().__init__(client, collection_id)

    @property
    def id(self) -> str:
        return self._collection_id

    def document(self, document_id: Optional[str] = None) -> MockDocumentReference:
        if document_id is None:
            document_id = uuid.uuid4().hex[:20]
        return MockDocumentReference(self._client, self._collection_id, document_id)

    def add(self, document_data: dict, document_id: Optional[str] = None) -> Tuple[datetime, MockDocumentReference]:
        doc_ref = self.document(document_id)
        doc_ref.set(document_data)
        return _now(), doc_ref


class MockWriteBatch:
    def __init__(self, client: "MockFirestore"):
        self._client = client
        self._writes: List[Tuple[str, MockDocumentReference, Optional[dict], bool]] = []

    def __len__(self) -> int:
        return len(self._writes)

    def set(self, reference: MockDocumentReference, document_data: dict, merge: bool = False) -> None:
        self._writes.append(("set", reference, document_data, merge))

    def update(self, reference: MockDocumentReference, field_updates: dict) -> None:
        self._writes.append(("update", reference, field_updates, False))

    def delete(self, reference: MockDocumentReference) -> None:
        self._writes.append(("delete", reference, None, False))

    def commit(self) -> List[datetime]:
        writes, self._writes = self._writes, []
        self._client._commit(writes)
        return [_now() for _ in writes]


class MockWatch:
    def __init__(self, client: "MockFirestore", query: MockQuery, callback: Callable):
        self._client = client
        self.query = query
        self.callback = callback

    def unsubscribe(self) -> None:
        self._client._remove_watch(self)


class MockFirestore:
    """
    Thread-safe in-memory document store with Firestore client semantics.

    A commit (single write or batch) is applied all-or-nothing: if any
    update targets a missing document, NotFound is raised and nothing changes.
    """

    def __init__(self, path: Optional[str] = None):
        self._path = path
        self._lock = threading.RLock()
        self._data: Dict[str, Dict[str, dict]] = {}
        self._watches: List[MockWatch] = []
        if path and os.path.exists(path):
            with open(path, "r", encoding="utf-8") as f:
                self._data = json.load(f)
            logger.info(f"[MOCK FIRESTORE] Loaded {sum(len(d) for d in self._data.values())} documents from {path}")

    def collection(self, collection_id: str) -> MockCollectionReference:
        return MockCollectionReference(self, collection_id)

    def collections(self) -> List[MockCollectionReference]:
        with self._lock:
            return [MockCollectionReference(self, name) for name in self._data]

    def document(self, document_path: str) -> MockDocumentReference:
        collection_id, document_id = document_path.split("/", 1)
        return MockDocumentReference(self, collection_id, document_id)

    def batch(self) -> MockWriteBatch:
        return MockWriteBatch(self)

    def _get_document(self, reference: MockDocumentReference) -> MockDocumentSnapshot:
        with self._lock:
            data = self._data.get(reference._collection_id, {}).get(reference.id)
            return MockDocumentSnapshot(reference, data, _now())

    def _run_query(self, query: MockQuery) -> List[MockDocumentSnapshot]:
        with self._lock:
            documents = query._select(self._data.get(query._collection_id, {}))
            read_time = _now()
            return [
                MockDocumentSnapshot(MockDocumentReference(self, query._collection_id, doc_id), data, read_time)
                for doc_id, data in documents.items()
            ]

    def _commit(self, writes: List[Tuple[str, MockDocumentReference, Optional[dict], bool]]) -> None:
        if not writes:
            return

        with self._lock:
            touched = {ref._collection_id for _, ref, _, _ in writes}
            before = {name: copy.deepcopy(self._data.get(name, {})) for name in touched}
            staged = copy.deepcopy(before)

            for op, ref, payload, merge in writes:
                documents = staged[ref._collection_id]
                if op == "delete":
                    documents.pop(ref.id, None)
                elif op == "update":
                    if ref.id not in documents:
                        raise NotFound(f"No document to update: {ref.path}")
                    _apply_field_updates(documents[ref.id], payload)
                elif merge:
                    _apply_field_updates(documents.setdefault(ref.id, {}), _flatten(payload))
                else:
                    if any(value is firestore.DELETE_FIELD for value in payload.values()):
                        raise ValueError("DELETE_FIELD is only allowed in update() or set(merge=True)")
                    documents[ref.id] = {key: _resolve(value) for key, value in payload.items()}

            self._data.update(staged)
            self._persist()
            watches = list(self._watches)

        for watch in watches:
            name = watch.query._collection_id
            if name in touched:
                self._deliver(watch, before[name], staged[name])

    def _watch(self, query: MockQuery, callback: Callable) -> MockWatch:
        watch = MockWatch(self, query, callback)
        with self._lock:
            self._watches.append(watch)
            current = copy.deepcopy(self._data.get(query._collection_id, {}))
        self._deliver(watch, {}, current, initial=True)
        return watch

    def _remove_watch(self, watch: MockWatch) -> None:
        with self._lock:
            if watch in self._watches:
                self._watches.remove(watch)

    def _deliver(self, watch: MockWatch, before: Dict[str, dict], after: Dict[str, dict], initial: bool = False) -> None:
        query = watch.query
        old = query._select(before)
        new = query._select(after)
        read_time = _now()

        def snapshot(doc_id: str, data: dict) -> MockDocumentSnapshot:
            return MockDocumentSnapshot(MockDocumentReference(self, query._collection_id, doc_id), data, read_time)

        old_ids = list(old)
        new_ids = list(new)
        changes = []
        for doc_id in old_ids:
            if doc_id not in new:
                changes.append(MockDocumentChange(ChangeType.REMOVED, snapshot(doc_id, old[doc_id]), old_ids.index(doc_id), -1))
        for doc_id in new_ids:
            if doc_id not in old:
                changes.append(MockDocumentChange(ChangeType.ADDED, snapshot(doc_id, new[doc_id]), -1, new_ids.index(doc_id)))
            elif old[doc_id] != new[doc_id]:
                changes.append(
                    MockDocumentChange(ChangeType.MODIFIED, snapshot(doc_id, new[doc_id]), old_ids.index(doc_id), new_ids.index(doc_id))
                )

        if not changes and not initial:
            return

        docs = [snapshot(doc_id, data) for doc_id, data in new.items()]
        watch.callback(docs, changes, read_time)

    def _persist(self) -> None:
        if not self._path:
            return
        with open(self._path, "w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=2, default=str)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _resolve(value: Any) -> Any:
    if value is firestore.SERVER_TIMESTAMP:
        return _now()
    if isinstance(value, dict):
        return {key: _resolve(inner) for key, inner in value.items()}
    return copy.deepcopy(value)


def _read_path(data: dict, field_path: str) -> Any:
    value: Any = data
    for part in field_path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _flatten(data: dict, prefix: str = "") -> Dict[str, Any]:
    """Turn nested dicts into dotted field paths, as set(merge=True) does."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        path = f"{prefix}{key}"
        if isinstance(value, dict) and value:
            flat.update(_flatten(value, f"{path}."))
        else:
            flat[path] = value
    return flat


def _apply_field_updates(document: dict, field_updates: dict) -> None:
    for field_path, value in field_updates.items():
        parts = field_path.split(".")
        target = document
        for part in parts[:-1]:
            if not isinstance(target.get(part), dict):
                target[part] = {}
            target = target[part]
        if value is firestore.DELETE_FIELD:
            target.pop(parts[-1], None)
        else:
            target[parts[-1]] = _resolve(value)


def get_mock_db(path: Optional[str] = None) -> MockFirestore:
    return MockFirestore(path)
