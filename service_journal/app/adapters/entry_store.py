"""
MongoDB persistence for journal entries.

All operations filter on both the record key and the owner's uid, so a key
that belongs to somebody else is indistinguishable from a missing one.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import DESCENDING, AsyncMongoClient

from shared.errors import NotFoundError, StoreUnavailableError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

COLLECTION_NAME = "entries"

DEFAULT_LIST_LIMIT = 20
MAX_LIST_LIMIT = 100


def clamp_limit(raw: Any, default: int = DEFAULT_LIST_LIMIT) -> int:
    """Coerce a client-supplied page size into [1, MAX_LIST_LIMIT].

    Missing or non-numeric values fall back to ``default``.
    """
    if raw is None or raw == "":
        value = default
    else:
        try:
            value = int(raw)
        except (TypeError, ValueError):
            value = default
    return max(1, min(value, MAX_LIST_LIMIT))


def _parse_key(entry_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(entry_id)
    except (InvalidId, TypeError):
        return None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat().replace("+00:00", "Z")
    return value


@dataclass
class JournalEntry:
    """Stored journal entry as returned to its owner."""

    id: str
    owner_id: str
    entry: str
    created_at: Optional[datetime]
    ai: Optional[Dict[str, Any]] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "JournalEntry":
        return cls(
            id=str(doc["_id"]),
            owner_id=doc.get("userId", ""),
            entry=doc.get("entry", ""),
            created_at=doc.get("createdAt"),
            ai=doc.get("ai"),
            updated_at=doc.get("updatedAt"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "userId": self.owner_id,
            "entry": self.entry,
            "createdAt": _isoformat(self.created_at),
        }
        if self.ai is not None:
            data["ai"] = self.ai
        if self.updated_at is not None:
            data["updatedAt"] = _isoformat(self.updated_at)
        return data


class EntryStore:
    """Owner-scoped CRUD over the ``entries`` collection.

    The Mongo client is created and pinged once, on first use, and shared by
    every request afterwards.
    """

    def __init__(
        self,
        uri: Optional[str],
        db_name: str = "homi",
        *,
        server_selection_timeout_ms: int = 5000,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.uri = uri
        self.db_name = db_name
        self.server_selection_timeout_ms = server_selection_timeout_ms
        self.metrics = metrics
        self.logger = get_logger("journal.entry_store")
        self._client: Optional[AsyncMongoClient] = None
        self._collection = None
        self._lock = asyncio.Lock()

    @property
    def configured(self) -> bool:
        return bool(self.uri)

    async def _get_collection(self):
        if self._collection is not None:
            return self._collection

        async with self._lock:
            if self._collection is not None:
                return self._collection

            if not self.uri:
                raise StoreUnavailableError("MONGODB_URI is not set")

            client = AsyncMongoClient(
                self.uri,
                tz_aware=True,
                serverSelectionTimeoutMS=self.server_selection_timeout_ms,
            )
            try:
                await client.admin.command("ping")
            except Exception as e:
                await client.close()
                self.logger.error("Failed to connect to MongoDB", error=str(e))
                raise StoreUnavailableError("Could not connect to store") from e

            self._client = client
            self._collection = client[self.db_name][COLLECTION_NAME]
            self.logger.info("MongoDB connection established", db=self.db_name)
            return self._collection

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
            self._collection = None

    async def insert(self, owner_id: str, text: str, ai_result: Optional[Dict[str, Any]] = None) -> str:
        """Insert a new entry and return its key."""
        collection = await self._get_collection()
        document: Dict[str, Any] = {
            "userId": owner_id,
            "entry": text,
            "createdAt": _utcnow(),
        }
        if ai_result is not None:
            document["ai"] = ai_result

        result = await self._run("insert", collection.insert_one(document))
        return str(result.inserted_id)

    async def list(self, owner_id: str, limit: int = DEFAULT_LIST_LIMIT) -> List[JournalEntry]:
        """Newest-first entries of ``owner_id``."""
        collection = await self._get_collection()
        cursor = (
            collection.find({"userId": owner_id})
            .sort("createdAt", DESCENDING)
            .limit(clamp_limit(limit))
        )
        docs = await self._run("list", cursor.to_list())
        return [JournalEntry.from_document(doc) for doc in docs]

    async def update(self, owner_id: str, entry_id: str, text: str) -> None:
        """Replace the text of an owned entry; NotFoundError if none matches."""
        key = _parse_key(entry_id)
        if key is None:
            raise NotFoundError()

        collection = await self._get_collection()
        result = await self._run(
            "update",
            collection.update_one(
                {"_id": key, "userId": owner_id},
                {"$set": {"entry": text, "updatedAt": _utcnow()}},
            ),
        )
        if result.matched_count == 0:
            raise NotFoundError()

    async def delete(self, owner_id: str, entry_id: str) -> None:
        """Delete an owned entry; NotFoundError if none matches."""
        key = _parse_key(entry_id)
        if key is None:
            raise NotFoundError()

        collection = await self._get_collection()
        result = await self._run("delete", collection.delete_one({"_id": key, "userId": owner_id}))
        if result.deleted_count == 0:
            raise NotFoundError()

    async def _run(self, operation: str, awaitable):
        try:
            result = await awaitable
        except Exception as e:
            self._record(operation, "error")
            self.logger.error("Store operation failed", operation=operation, error=str(e))
            raise StoreUnavailableError(f"Store {operation} failed") from e
        self._record(operation, "ok")
        return result

    def _record(self, operation: str, outcome: str) -> None:
        if self.metrics is not None:
            self.metrics.increment_counter("store_operations_total", operation=operation, outcome=outcome)
