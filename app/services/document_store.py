"""
Document Store Service.
JSON documents kept in SQLite, addressed by collection path and document id.
Every committed write is published on the change feed.
"""
import json
import logging
import os
import sqlite3
import threading
import uuid
from copy import deepcopy
from datetime import datetime, date, timezone
from typing import Any, Callable, Dict, List, Optional

from .change_feed import ChangeEvent, ChangeFeed, ChangeKind
from ..errors import NotFoundError, TravelAppError

logger = logging.getLogger(__name__)


class AlreadyExistsError(TravelAppError):
    status_code = 409


class _Sentinel:
    def __init__(self, name: str):
        self.name = name

    def __repr__(self):
        return self.name


SERVER_TIMESTAMP = _Sentinel("SERVER_TIMESTAMP")
DELETE_FIELD = _Sentinel("DELETE_FIELD")


class ArrayUnion:
    """Append values to an array field, skipping ones already present."""

    def __init__(self, *values):
        self.values = list(values)


class ArrayRemove:
    """Remove every occurrence of the values from an array field."""

    def __init__(self, *values):
        self.values = list(values)


def _json_default(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _get_path(doc: dict, path: str) -> Any:
    current: Any = doc
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


def _resolve(value: Any, existing: Any) -> Any:
    if value is SERVER_TIMESTAMP:
        return datetime.now(timezone.utc).isoformat()
    if isinstance(value, ArrayUnion):
        current = list(existing) if isinstance(existing, list) else []
        return current + [v for v in value.values if v not in current]
    if isinstance(value, ArrayRemove):
        current = list(existing) if isinstance(existing, list) else []
        return [v for v in current if v not in value.values]
    if isinstance(value, dict):
        return {k: _resolve(v, None) for k, v in value.items() if v is not DELETE_FIELD}
    return value


def apply_changes(doc: dict, changes: dict) -> dict:
    """Apply a dotted-path update (with sentinels) to a copy of the document."""
    result = deepcopy(doc)
    for key, value in changes.items():
        parts = key.split(".")
        target = result
        for part in parts[:-1]:
            if not isinstance(target.get(part), dict):
                target[part] = {}
            target = target[part]
        leaf = parts[-1]
        if value is DELETE_FIELD:
            target.pop(leaf, None)
        else:
            target[leaf] = _resolve(value, target.get(leaf))
    return result


def _deep_merge(doc: dict, data: dict) -> dict:
    result = deepcopy(doc)
    for key, value in data.items():
        if value is DELETE_FIELD:
            result.pop(key, None)
        elif isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = _resolve(value, result.get(key))
    return result


class DocumentStore:
    """Document store over a single SQLite connection."""

    def __init__(self, db_path: str, feed: Optional[ChangeFeed] = None):
        if db_path != ":memory:":
            directory = os.path.dirname(os.path.abspath(db_path))
            os.makedirs(directory, exist_ok=True)

        self.db_path = db_path
        self.feed = feed or ChangeFeed()
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute(
            "CREATE TABLE IF NOT EXISTS documents ("
            " collection TEXT NOT NULL,"
            " id TEXT NOT NULL,"
            " data TEXT NOT NULL,"
            " PRIMARY KEY (collection, id))"
        )

    def close(self):
        with self._lock:
            self._conn.close()

    # Low-level helpers (caller holds the lock)

    def _read(self, collection: str, doc_id: str) -> Optional[Dict]:
        row = self._conn.execute(
            "SELECT data FROM documents WHERE collection = ? AND id = ?",
            (collection, doc_id),
        ).fetchone()
        if row is None:
            return None
        doc = json.loads(row["data"])
        doc["id"] = doc_id
        return doc

    def _write(self, collection: str, doc_id: str, doc: dict):
        data = {k: v for k, v in doc.items() if k != "id"}
        self._conn.execute(
            "INSERT OR REPLACE INTO documents (collection, id, data) VALUES (?, ?, ?)",
            (collection, doc_id, json.dumps(data, default=_json_default)),
        )

    def _normalize(self, doc: dict, doc_id: str) -> dict:
        stored = json.loads(json.dumps(doc, default=_json_default))
        stored["id"] = doc_id
        return stored

    async def _publish(self, collection: str, doc_id: str, kind: ChangeKind,
                       before: Optional[dict], after: Optional[dict]):
        await self.feed.publish(ChangeEvent(collection, doc_id, kind, before, after))

    # Reads

    async def get(self, collection: str, doc_id: str) -> Optional[Dict]:
        """Fetch a document by id, or None."""
        with self._lock:
            return self._read(collection, doc_id)

    async def query(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict]:
        """Fetch all documents of a collection whose dotted fields equal the filter values."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT id, data FROM documents WHERE collection = ? ORDER BY id",
                (collection,),
            ).fetchall()

        results = []
        for row in rows:
            doc = json.loads(row["data"])
            doc["id"] = row["id"]
            if all(_get_path(doc, path) == value for path, value in (filters or {}).items()):
                results.append(doc)
        return results

    # Writes

    async def create(self, collection: str, data: dict, doc_id: Optional[str] = None) -> str:
        """Create a new document. Raises AlreadyExistsError when the id is taken."""
        doc_id = doc_id or uuid.uuid4().hex
        with self._lock:
            if self._read(collection, doc_id) is not None:
                raise AlreadyExistsError(f"{collection}/{doc_id} already exists")
            after = self._normalize(_deep_merge({}, data), doc_id)
            self._write(collection, doc_id, after)

        await self._publish(collection, doc_id, ChangeKind.CREATED, None, after)
        return doc_id

    async def set(self, collection: str, doc_id: str, data: dict, merge: bool = False) -> Dict:
        """Create or overwrite a document; with merge, nested dicts are merged instead."""
        with self._lock:
            before = self._read(collection, doc_id)
            base = before if (merge and before) else {}
            after = self._normalize(_deep_merge(base, data), doc_id)
            self._write(collection, doc_id, after)

        kind = ChangeKind.UPDATED if before is not None else ChangeKind.CREATED
        await self._publish(collection, doc_id, kind, before, after)
        return after

    async def update(self, collection: str, doc_id: str, changes: dict) -> Dict:
        """Apply dotted-path changes to an existing document."""
        with self._lock:
            before = self._read(collection, doc_id)
            if before is None:
                raise NotFoundError(f"{collection}/{doc_id} not found")
            after = self._normalize(apply_changes(before, changes), doc_id)
            self._write(collection, doc_id, after)

        await self._publish(collection, doc_id, ChangeKind.UPDATED, before, after)
        return after

    async def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document. Returns False when it did not exist."""
        with self._lock:
            before = self._read(collection, doc_id)
            if before is None:
                return False
            self._conn.execute(
                "DELETE FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            )

        await self._publish(collection, doc_id, ChangeKind.DELETED, before, None)
        return True

    async def transaction(
        self,
        collection: str,
        doc_id: str,
        fn: Callable[[dict], Optional[dict]],
    ) -> Optional[Dict]:
        """
        Atomic read-modify-write of a single document.

        Args:
            fn: receives the current document and returns dotted-path changes,
                or None to leave it untouched. Raising aborts the transaction.

        Returns:
            The updated document, or None when fn made no changes.
        """
        with self._lock:
            self._conn.execute("BEGIN IMMEDIATE")
            try:
                before = self._read(collection, doc_id)
                if before is None:
                    raise NotFoundError(f"{collection}/{doc_id} not found")
                changes = fn(deepcopy(before))
                if not changes:
                    self._conn.execute("COMMIT")
                    return None
                after = self._normalize(apply_changes(before, changes), doc_id)
                self._write(collection, doc_id, after)
                self._conn.execute("COMMIT")
            except Exception:
                self._conn.execute("ROLLBACK")
                raise

        await self._publish(collection, doc_id, ChangeKind.UPDATED, before, after)
        return after
