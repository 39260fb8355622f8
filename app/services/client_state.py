"""Per-user key-value state standing in for the dashboard's local storage."""

import logging
from typing import Optional

from pydantic import ValidationError as SchemaError
from redis.asyncio import Redis

from app.schemas_v1 import PaymentSession

logger = logging.getLogger(__name__)

PAYMENT_SESSION_KEY = "payment_session"


class ClientStateStore:
    """Redis-backed store; every key is namespaced by user id."""

    def __init__(self, client: Redis, ttl_seconds: Optional[int] = None):
        self._client = client
        self._ttl = ttl_seconds

    @staticmethod
    def _key(user_id: str, key: str) -> str:
        return f"client:{user_id}:{key}"

    async def get(self, user_id: str, key: str) -> Optional[str]:
        return await self._client.get(self._key(user_id, key))

    async def set(self, user_id: str, key: str, value: str) -> None:
        await self._client.set(self._key(user_id, key), value, ex=self._ttl)

    async def delete(self, user_id: str, key: str) -> None:
        await self._client.delete(self._key(user_id, key))


class PaymentSessionStore:
    """The single "payment initiated but not confirmed" record per user."""

    def __init__(self, state: ClientStateStore):
        self._state = state

    async def save(self, user_id: str, session: PaymentSession) -> None:
        await self._state.set(user_id, PAYMENT_SESSION_KEY, session.model_dump_json(by_alias=True))

    async def load(self, user_id: str) -> Optional[PaymentSession]:
        raw = await self._state.get(user_id, PAYMENT_SESSION_KEY)
        if raw is None:
            return None
        try:
            return PaymentSession.model_validate_json(raw)
        except SchemaError:
            logger.warning("Discarding unreadable payment session for user %s", user_id)
            await self.clear(user_id)
            return None

    async def clear(self, user_id: str) -> None:
        await self._state.delete(user_id, PAYMENT_SESSION_KEY)
