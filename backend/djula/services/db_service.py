# /djula/services/db_service.py

import re
import asyncio
import logging
from motor.motor_asyncio import AsyncIOMotorClient
from datetime import datetime, timezone
from typing import List, Optional, Dict, Any, Tuple

from djula.config.settings import settings
from djula.utils.circuit_breaker import CircuitBreaker
from djula.utils.metrics import database_operations_counter

logger = logging.getLogger(__name__)

# Collections
MESSAGES = "conversation_messages"
INTENTS = "conversation_intents"
STATES = "conversation_states"
MESSAGE_LOGS = "message_logs"
SECURITY_EVENTS = "security_events"


class DatabaseService:
    """
    Durable conversation storage in MongoDB: message history, the intent log,
    per-customer session states and the outbound message log.

    Read and write helpers used by the conversation engine raise on failure so
    callers can decide how to degrade; housekeeping helpers swallow errors.
    """

    def __init__(self, mongo_uri: str):
        try:
            self.client = AsyncIOMotorClient(
                mongo_uri,
                maxPoolSize=settings.max_pool_size,
                minPoolSize=settings.min_pool_size,
                tls=settings.mongo_ssl,
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=10000
            )
            self.db = self.client.get_default_database()
            self.circuit_breaker = CircuitBreaker("database")
            self.timeout = settings.store_timeout_seconds
            logger.info("MongoDB client initialized successfully.")
        except Exception as e:
            logger.error(f"Error initializing MongoDB client: {e}")
            raise

    # ==================== Helper Methods ====================

    async def _db_call(self, operation_name: str, operation) -> Any:
        """Runs one operation under the store timeout and circuit breaker, counting the outcome."""
        try:
            result = await self.circuit_breaker.call(lambda: asyncio.wait_for(operation(), timeout=self.timeout))
        except Exception:
            database_operations_counter.labels(operation=operation_name, status="failed").inc()
            raise
        database_operations_counter.labels(operation=operation_name, status="success").inc()
        return result

    async def _safe_db_operation(self, operation_name: str, operation, default_return: Any = None) -> Any:
        try:
            return await self._db_call(operation_name, operation)
        except Exception as e:
            logger.exception(f"Database operation '{operation_name}' failed: {type(e).__name__}")
            return default_return

    def _now_utc(self) -> datetime:
        return datetime.now(timezone.utc)

    # ==================== Index Management ====================

    async def create_indexes(self) -> None:
        """Create all necessary database indexes on startup."""
        indexes = [
            (MESSAGES, [("customer_id", 1), ("timestamp", -1)], {}),
            (INTENTS, [("customer_id", 1), ("timestamp", -1)], {}),
            (STATES, [("customer_id", 1)], {"unique": True}),
            (MESSAGE_LOGS, [("wamid", 1)], {"unique": True, "sparse": True}),
            (SECURITY_EVENTS, [("timestamp", -1)], {}),
            (MESSAGE_LOGS, [("phone", 1), ("timestamp", -1)], {}),
        ]

        for collection, keys, options in indexes:
            try:
                await self.db[collection].create_index(keys, **options)
                logger.debug(f"Created index on {collection}: {keys}")
            except Exception as e:
                logger.error(f"Failed to create index on {collection} {keys}: {e}")

        logger.info("Database indexes created successfully.")

    async def health_check(self) -> bool:
        try:
            await self.client.admin.command('ping')
            return True
        except Exception as e:
            logger.error(f"MongoDB health check failed: {e}")
            return False

    # ==================== Conversation History ====================

    async def get_recent_messages(self, customer_id: str, limit: int) -> List[Dict[str, Any]]:
        """Returns the `limit` most recent messages, oldest first."""
        async def operation():
            cursor = self.db[MESSAGES].find({"customer_id": customer_id}, {"_id": 0}).sort("timestamp", -1).limit(limit)
            return await cursor.to_list(length=limit)

        documents = await self._db_call("get_recent_messages", operation)
        return list(reversed(documents))

    async def append_messages(self, customer_id: str, messages: List[Dict[str, Any]]) -> None:
        if not messages:
            return
        documents = [{**message, "customer_id": customer_id} for message in messages]
        await self._db_call("append_messages", lambda: self.db[MESSAGES].insert_many(documents, ordered=True))

    async def search_messages(self, customer_id: str, query: str, limit: int = 10, offset: int = 0) -> List[Dict[str, Any]]:
        """Case-insensitive substring search over one customer's history, newest first."""
        async def operation():
            cursor = (
                self.db[MESSAGES]
                .find({"customer_id": customer_id, "content": {"$regex": re.escape(query), "$options": "i"}}, {"_id": 0})
                .sort("timestamp", -1)
                .skip(offset)
                .limit(limit)
            )
            return await cursor.to_list(length=limit)

        return await self._db_call("search_messages", operation)

    async def get_message_stats(self, customer_id: str) -> Tuple[int, Optional[datetime], Optional[datetime]]:
        """Returns (total messages, first timestamp, last timestamp)."""
        async def operation():
            collection = self.db[MESSAGES]
            total = await collection.count_documents({"customer_id": customer_id})
            first = await collection.find_one({"customer_id": customer_id}, sort=[("timestamp", 1)])
            last = await collection.find_one({"customer_id": customer_id}, sort=[("timestamp", -1)])
            return total, first, last

        total, first, last = await self._db_call("get_message_stats", operation)
        return total, first["timestamp"] if first else None, last["timestamp"] if last else None

    # ==================== Intent Log ====================

    async def append_intent(self, customer_id: str, intent: Dict[str, Any]) -> None:
        document = {**intent, "customer_id": customer_id, "timestamp": self._now_utc()}
        await self._db_call("append_intent", lambda: self.db[INTENTS].insert_one(document))

    async def get_last_intent(self, customer_id: str) -> Optional[Dict[str, Any]]:
        return await self._db_call(
            "get_last_intent",
            lambda: self.db[INTENTS].find_one({"customer_id": customer_id}, {"_id": 0, "customer_id": 0, "timestamp": 0}, sort=[("timestamp", -1)]),
        )

    async def get_intent_counts(self, customer_id: str, top: int = 3) -> List[Tuple[str, int]]:
        """Returns the `top` most frequent intent types as (type, count) pairs."""
        pipeline = [
            {"$match": {"customer_id": customer_id}},
            {"$group": {"_id": "$type", "count": {"$sum": 1}}},
            {"$sort": {"count": -1}},
            {"$limit": top},
        ]

        async def operation():
            return await self.db[INTENTS].aggregate(pipeline).to_list(length=top)

        rows = await self._db_call("get_intent_counts", operation)
        return [(row["_id"], row["count"]) for row in rows]

    # ==================== Session State ====================

    async def get_session_state(self, customer_id: str) -> Optional[Dict[str, Any]]:
        return await self._db_call(
            "get_session_state",
            lambda: self.db[STATES].find_one({"customer_id": customer_id}, {"_id": 0, "customer_id": 0, "updated_at": 0}),
        )

    async def save_session_state(self, customer_id: str, state: Dict[str, Any]) -> None:
        await self._db_call(
            "save_session_state",
            lambda: self.db[STATES].update_one(
                {"customer_id": customer_id},
                {"$set": {**state, "updated_at": self._now_utc()}},
                upsert=True,
            ),
        )

    async def delete_conversation(self, customer_id: str) -> None:
        """Removes the history, intent log and session state of one customer."""
        async def operation():
            await self.db[MESSAGES].delete_many({"customer_id": customer_id})
            await self.db[INTENTS].delete_many({"customer_id": customer_id})
            await self.db[STATES].delete_one({"customer_id": customer_id})

        await self._db_call("delete_conversation", operation)

    # ==================== Message Logging ====================

    async def log_message(self, message_data: Dict[str, Any]) -> None:
        """Logs an inbound or outbound WhatsApp message."""
        message_data.setdefault("timestamp", self._now_utc())
        await self._safe_db_operation("log_message", lambda: self.db[MESSAGE_LOGS].insert_one(message_data))

    async def log_security_event(self, event_type: str, ip_address: str, details: Dict[str, Any]) -> None:
        event = {"event_type": event_type, "ip_address": ip_address, "details": details, "timestamp": self._now_utc()}
        await self._safe_db_operation("log_security_event", lambda: self.db[SECURITY_EVENTS].insert_one(event))


# Globally accessible instance
db_service = DatabaseService(settings.mongo_uri)
