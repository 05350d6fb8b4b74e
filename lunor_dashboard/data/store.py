"""Key-value document stores backing the dashboard.

Documents live in named collections and are addressed by a string key.
Writes use field-level set semantics with dotted paths (``"settings.prefix"``
or ``"channels.1234"``), so concurrent writers to different fields never
clobber each other. Each single operation is atomic; nothing spans more
than one document.

Documents may carry an expiry datetime (``expires_at`` by default). Expired
documents are removed by :meth:`DocumentStore.delete_expired`, and backends
that can expire documents on their own do so once
:meth:`DocumentStore.ensure_expiry` has been called.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from ..errors import StoreUnavailable

log = logging.getLogger("lunor.store")

Document = dict[str, Any]


class DocumentStore(ABC):
    """Abstract document store."""

    @abstractmethod
    async def find_one(self, collection: str, key: str) -> Document | None:
        """Return the document stored under ``key`` or ``None``."""

    @abstractmethod
    async def find_all(self, collection: str) -> list[Document]:
        """Return every document in ``collection``."""

    @abstractmethod
    async def insert_if_absent(
        self, collection: str, key: str, document: Document
    ) -> Document:
        """Store ``document`` unless ``key`` exists; return the stored one."""

    @abstractmethod
    async def upsert_fields(
        self,
        collection: str,
        key: str,
        fields: Document,
        on_insert: Document | None = None,
    ) -> Document:
        """Set dotted ``fields`` on ``key``, creating it if needed.

        ``on_insert`` holds dotted fields applied only when the document is
        created. Its paths must not overlap with ``fields``. Returns the
        document after the update.
        """

    @abstractmethod
    async def delete(self, collection: str, key: str) -> bool:
        """Remove ``key``. Returns ``False`` if it was already gone."""

    @abstractmethod
    async def delete_expired(
        self, collection: str, now: datetime, field: str = "expires_at"
    ) -> int:
        """Remove documents whose ``field`` is at or before ``now``."""

    async def ensure_expiry(self, collection: str, field: str = "expires_at") -> None:
        """Let the backend expire documents on ``field`` by itself, if it can."""

    async def close(self) -> None:
        """Release backend resources."""


def set_path(document: Document, path: str, value: Any) -> None:
    """Assign ``value`` at dotted ``path`` inside ``document``."""
    parts = path.split(".")
    node = document
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[parts[-1]] = value


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class MemoryDocumentStore(DocumentStore):
    """Process-local store. Used in tests and as the base of the JSON store."""

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, Document]] = {}
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Persistence hook
    # ------------------------------------------------------------------
    def _commit(self) -> None:
        """Called after each mutation while the lock is held."""

    def _commit_or_restore(self, snapshot: dict[str, dict[str, Document]]) -> None:
        # A failed commit must not leave the unsaved change visible.
        try:
            self._commit()
        except StoreUnavailable:
            self._collections = snapshot
            raise

    # ------------------------------------------------------------------
    def _bucket(self, collection: str) -> dict[str, Document]:
        return self._collections.setdefault(collection, {})

    async def find_one(self, collection: str, key: str) -> Document | None:
        doc = self._collections.get(collection, {}).get(key)
        return copy.deepcopy(doc) if doc is not None else None

    async def find_all(self, collection: str) -> list[Document]:
        return [
            copy.deepcopy(d) for d in self._collections.get(collection, {}).values()
        ]

    async def insert_if_absent(
        self, collection: str, key: str, document: Document
    ) -> Document:
        async with self._lock:
            if key not in self._collections.get(collection, {}):
                snapshot = copy.deepcopy(self._collections)
                self._bucket(collection)[key] = copy.deepcopy(document)
                self._commit_or_restore(snapshot)
            return copy.deepcopy(self._collections[collection][key])

    async def upsert_fields(
        self,
        collection: str,
        key: str,
        fields: Document,
        on_insert: Document | None = None,
    ) -> Document:
        async with self._lock:
            snapshot = copy.deepcopy(self._collections)
            bucket = self._bucket(collection)
            doc = bucket.get(key)
            if doc is None:
                doc = {}
                for path, value in (on_insert or {}).items():
                    set_path(doc, path, copy.deepcopy(value))
                bucket[key] = doc
            for path, value in fields.items():
                set_path(doc, path, copy.deepcopy(value))
            self._commit_or_restore(snapshot)
            return copy.deepcopy(doc)

    async def delete(self, collection: str, key: str) -> bool:
        async with self._lock:
            if key not in self._collections.get(collection, {}):
                return False
            snapshot = copy.deepcopy(self._collections)
            del self._collections[collection][key]
            self._commit_or_restore(snapshot)
            return True

    async def delete_expired(
        self, collection: str, now: datetime, field: str = "expires_at"
    ) -> int:
        now = as_utc(now)
        async with self._lock:
            bucket = self._collections.get(collection, {})
            expired = [
                key
                for key, doc in bucket.items()
                if isinstance(doc.get(field), datetime) and as_utc(doc[field]) <= now
            ]
            if not expired:
                return 0
            snapshot = copy.deepcopy(self._collections)
            for key in expired:
                del bucket[key]
            self._commit_or_restore(snapshot)
            return len(expired)


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return {"$date": as_utc(value).isoformat()}
    raise TypeError(f"{type(value).__name__} is not JSON serialisable")


def _decode(obj: dict[str, Any]) -> Any:
    if set(obj) == {"$date"}:
        return datetime.fromisoformat(obj["$date"])
    return obj


class JSONDocumentStore(MemoryDocumentStore):
    """Document store persisted to a single JSON file.

    The whole file is rewritten on every mutation. Writes go to a temporary
    file first and are moved into place with :func:`os.replace`. Datetimes
    are written as ``{"$date": "<iso 8601>"}``.
    """

    def __init__(self, path: str = "lunor_data.json") -> None:
        super().__init__()
        self.path = path
        self._load()

    def _load(self) -> None:
        """Load store contents from ``self.path`` if it exists."""
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f, object_hook=_decode)
        except (OSError, ValueError) as exc:
            log.error("Failed to load document store from %s: %s", self.path, exc)
            raise StoreUnavailable("Cannot read document store") from exc

        self._collections = {
            name: {str(k): v for k, v in docs.items()}
            for name, docs in data.get("collections", {}).items()
            if isinstance(docs, dict)
        }

    def _commit(self) -> None:
        self.save()

    def save(self) -> None:
        """Persist the current state atomically."""
        tmp = self.path + ".tmp"
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(
                    {"collections": self._collections},
                    f,
                    indent=2,
                    ensure_ascii=False,
                    default=_encode,
                )
            os.replace(tmp, self.path)
        except (OSError, TypeError) as exc:
            log.error("Failed to write document store to %s: %s", self.path, exc)
            raise StoreUnavailable("Cannot write document store") from exc
