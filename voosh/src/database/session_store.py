"""
Voosh - Chat Transcript Store
===============================
Async per-session chat transcript backed by MongoDB via ``motor``.

Collection schema (``chat_sessions``)::

    {
        "session_id": str,
        "entries": [{"query": str, "answer": str, "context_summary": str, "timestamp": int}, ...],
        "created_at": datetime,
        "updated_at": datetime,
        "expires_at": datetime     # TTL index: the document disappears after this
    }

Design decisions:
  • **Session isolation** — every query filters by ``session_id``.
  • **Bounded list** — appends keep only the last ``max_entries`` entries.
  • **Sliding expiry** — each append pushes ``expires_at`` forward by the
    TTL (30 days by default).
  • **Best effort** — a failing write is logged, never raised, so a chat
    turn still returns its answer; a failing read yields an empty history.
  • **Injected collection** — the motor client is owned by the application
    container; this class never creates connections.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import motor.motor_asyncio
from pymongo import ASCENDING
from pymongo.errors import PyMongoError

from voosh.src.utils.logger import get_logger

logger = get_logger(__name__)

ChatEntry = dict[str, object]


class MongoSessionManager:
    """
    Session-keyed transcript list with a TTL.

    Parameters
    ----------
    collection
        A ``motor`` collection (``AsyncIOMotorCollection``).
    max_entries
        Entries kept per session; older ones are trimmed on append.
    ttl_seconds
        Lifetime of a session after its last append.
    """

    __slots__ = ("_collection", "_max_entries", "_ttl")

    def __init__(self, collection: motor.motor_asyncio.AsyncIOMotorCollection, max_entries: int = 1000, ttl_seconds: int = 60 * 60 * 24 * 30) -> None:
        self._collection = collection
        self._max_entries = max_entries
        self._ttl = timedelta(seconds=ttl_seconds)


    @classmethod
    def from_client(cls, client: motor.motor_asyncio.AsyncIOMotorClient, db_name: str, collection_name: str = "chat_sessions", **kwargs: int) -> "MongoSessionManager":
        return cls(client[db_name][collection_name], **kwargs)


    async def ensure_indexes(self) -> None:
        """Create the ``session_id`` lookup index and the ``expires_at`` TTL index."""
        await self._collection.create_index([("session_id", ASCENDING)], unique=True)
        await self._collection.create_index([("expires_at", ASCENDING)], expireAfterSeconds=0)
        logger.info("[SESSION] Indexes ensured (ttl=%ds, max_entries=%d).", int(self._ttl.total_seconds()), self._max_entries)


    async def append_entry(self, session_id: str, entry: ChatEntry) -> None:
        """Append one turn (upsert on first write), trim to the last N, refresh expiry."""
        now = datetime.now(timezone.utc)
        update = {
            "$push": {"entries": {"$each": [entry], "$slice": -self._max_entries}},
            "$set": {"updated_at": now, "expires_at": now + self._ttl},
            "$setOnInsert": {"created_at": now},
        }
        try:
            await self._collection.update_one({"session_id": session_id}, update, upsert=True)
        except PyMongoError as exc:
            logger.warning("[SESSION] Append failed for session '%s': %s", session_id, exc)


    async def get_history(self, session_id: str) -> list[ChatEntry]:
        """All stored turns of a session, oldest first; ``[]`` for unknown sessions."""
        try:
            doc = await self._collection.find_one({"session_id": session_id}, {"entries": 1, "_id": 0})
        except PyMongoError as exc:
            logger.warning("[SESSION] History read failed for session '%s': %s", session_id, exc)
            return []
        if doc is None:
            return []
        return list(doc.get("entries", []))


    async def clear_session(self, session_id: str) -> bool:
        """Delete a session entirely.  Returns True if removed."""
        try:
            result = await self._collection.delete_one({"session_id": session_id})
        except PyMongoError as exc:
            logger.warning("[SESSION] Clear failed for session '%s': %s", session_id, exc)
            return False
        return result.deleted_count > 0
