"""MongoDB implementation of :class:`~lunor_dashboard.data.store.DocumentStore`.

Keys map to ``_id`` and field updates map to ``$set`` / ``$setOnInsert`` with
``upsert=True``. MongoDB's unique ``_id`` index serializes concurrent first
writes to the same key.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from pymongo import AsyncMongoClient, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..errors import StoreUnavailable
from .store import Document, DocumentStore

log = logging.getLogger("lunor.store")


def _strip_id(doc: dict[str, Any] | None) -> Document | None:
    if doc is None:
        return None
    doc = dict(doc)
    doc.pop("_id", None)
    return doc


class MongoDocumentStore(DocumentStore):
    """Document store backed by a MongoDB database."""

    def __init__(
        self,
        uri: str = "",
        database: str = "lunor",
        client: AsyncMongoClient | None = None,
    ) -> None:
        self.client = client or AsyncMongoClient(uri)
        self.db = self.client[database]

    # ------------------------------------------------------------------
    async def find_one(self, collection: str, key: str) -> Document | None:
        try:
            doc = await self.db[collection].find_one({"_id": key})
        except PyMongoError as exc:
            log.error("find_one failed collection=%s key=%s: %s", collection, key, exc)
            raise StoreUnavailable(f"Cannot read {collection}") from exc
        return _strip_id(doc)

    async def find_all(self, collection: str) -> list[Document]:
        try:
            docs = [doc async for doc in self.db[collection].find({})]
        except PyMongoError as exc:
            log.error("find failed collection=%s: %s", collection, exc)
            raise StoreUnavailable(f"Cannot read {collection}") from exc
        return [_strip_id(d) for d in docs]

    async def insert_if_absent(
        self, collection: str, key: str, document: Document
    ) -> Document:
        col = self.db[collection]
        try:
            try:
                doc = await col.find_one_and_update(
                    {"_id": key},
                    {"$setOnInsert": document},
                    upsert=True,
                    return_document=ReturnDocument.AFTER,
                )
            except DuplicateKeyError:
                # Lost the upsert race; the other writer's document wins.
                doc = await col.find_one({"_id": key})
        except PyMongoError as exc:
            log.error(
                "insert_if_absent failed collection=%s key=%s: %s", collection, key, exc
            )
            raise StoreUnavailable(f"Cannot write {collection}") from exc
        return _strip_id(doc) or {}

    async def upsert_fields(
        self,
        collection: str,
        key: str,
        fields: Document,
        on_insert: Document | None = None,
    ) -> Document:
        update: dict[str, Any] = {}
        if fields:
            update["$set"] = fields
        if on_insert:
            update["$setOnInsert"] = on_insert
        if not update:
            return await self.find_one(collection, key) or {}
        try:
            doc = await self.db[collection].find_one_and_update(
                {"_id": key},
                update,
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as exc:
            log.error(
                "upsert_fields failed collection=%s key=%s: %s", collection, key, exc
            )
            raise StoreUnavailable(f"Cannot write {collection}") from exc
        return _strip_id(doc) or {}

    async def delete(self, collection: str, key: str) -> bool:
        try:
            result = await self.db[collection].delete_one({"_id": key})
        except PyMongoError as exc:
            log.error("delete failed collection=%s key=%s: %s", collection, key, exc)
            raise StoreUnavailable(f"Cannot delete from {collection}") from exc
        return result.deleted_count > 0

    async def delete_expired(
        self, collection: str, now: datetime, field: str = "expires_at"
    ) -> int:
        try:
            result = await self.db[collection].delete_many({field: {"$lte": now}})
        except PyMongoError as exc:
            log.error("delete_expired failed collection=%s: %s", collection, exc)
            raise StoreUnavailable(f"Cannot delete from {collection}") from exc
        return result.deleted_count

    async def ensure_expiry(self, collection: str, field: str = "expires_at") -> None:
        """Create a TTL index so MongoDB drops documents once ``field`` passes."""
        try:
            await self.db[collection].create_index(
                field, expireAfterSeconds=0, name=f"ttl_{field}"
            )
        except PyMongoError as exc:
            log.error("create_index failed collection=%s: %s", collection, exc)
            raise StoreUnavailable(f"Cannot index {collection}") from exc

    async def close(self) -> None:
        await self.client.close()
