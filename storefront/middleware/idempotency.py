"""
Idempotency Middleware for Checkout.

Prevents duplicate orders from browsers that double-submit the checkout
form. Uses Redis to store the first response per Idempotency-Key.

The key is claimed with SET NX before the handler runs, so two concurrent
submissions cannot both place an order: the loser replays the cached
response, or gets a conflict while the first request is still running.

Usage:
    @router.post("")
    async def create_order(
        body: CreateOrderBody,
        idempotency_key: str = Header(None, alias="Idempotency-Key"),
        ...
    ):
        return await idempotency.ensure_idempotent(
            key=idempotency_key,
            scope=identity.user_id if identity else guest_scope(body.guest_email, body.phone),
            endpoint="/api/orders",
            handler=place_order,
        )
"""

import json
import hashlib
import logging
from datetime import timedelta
from typing import Callable, Any, Optional

from redis.asyncio import Redis, from_url
from redis.exceptions import RedisError

from storefront.config import get_settings
from storefront.errors import ConflictError

logger = logging.getLogger(__name__)
settings = get_settings()

IN_PROGRESS = "in-progress"

# Redis outages degrade to "no cache"; they never block checkout.
CACHE_ERRORS = (RedisError, OSError)


class IdempotencyError(Exception):
    """Raised for idempotency-related issues."""
    pass


class IdempotencyInProgressError(ConflictError):
    """A request with the same key is still being processed."""

    def __init__(self, key: str):
        self.key = key
        super().__init__("A request with this Idempotency-Key is already in progress")


class IdempotencyMiddleware:
    """
    Redis-backed idempotency for checkout.

    Features:
    - Claims the key atomically before running the handler
    - Caches operation results by idempotency key
    - Configurable TTL (IDEMPOTENCY_TTL_HOURS)
    - Per-caller + endpoint scoping
    """

    def __init__(self, redis: Optional[Redis] = None, ttl_hours: Optional[int] = None):
        self.redis = redis or from_url(settings.REDIS_URL, decode_responses=True)
        self.ttl_hours = ttl_hours or settings.IDEMPOTENCY_TTL_HOURS

    @property
    def ttl_seconds(self) -> int:
        return int(timedelta(hours=self.ttl_hours).total_seconds())

    async def ensure_idempotent(
        self,
        key: str,
        scope: str,
        endpoint: str,
        handler: Callable,
        *args,
        **kwargs
    ) -> Any:
        """
        Execute handler with idempotency protection.

        Args:
            key: Client-provided idempotency key (UUID recommended)
            scope: Caller identity, or a hash of the guest contact
            endpoint: API endpoint being called
            handler: Async function returning a JSON-serializable result

        Returns:
            Result from handler (or cached result if duplicate)

        Raises:
            IdempotencyInProgressError: the same key is still being handled.
        """
        if not key:
            raise IdempotencyError("Idempotency-Key header is required for this operation")

        cache_key = self._build_cache_key(key, scope, endpoint)

        cached = await self._read(cache_key)
        if cached is not None:
            return self._replay(cached, key)

        if not await self._claim(cache_key):
            cached = await self._read(cache_key)
            if cached is not None:
                return self._replay(cached, key)
            raise IdempotencyInProgressError(key)

        try:
            result = await handler(*args, **kwargs)
        except Exception as e:
            # Don't cache errors - release the claim to allow retry
            logger.error(f"Idempotency handler failed: {e}")
            await self._release(cache_key)
            raise

        try:
            await self.redis.setex(cache_key, self.ttl_seconds, json.dumps(result, default=str))
            logger.debug(f"Idempotency cached result for key {key[:8]}...")
        except CACHE_ERRORS as e:
            # The operation already committed; the caller must still get its result.
            logger.warning(f"Failed to cache idempotent result for key {key[:8]}...: {e}")
        return result

    def _replay(self, cached: str, key: str) -> Any:
        if cached == IN_PROGRESS:
            raise IdempotencyInProgressError(key)
        logger.info(f"Idempotency cache hit for key {key[:8]}... - returning cached result")
        return json.loads(cached)

    async def _read(self, cache_key: str) -> Optional[str]:
        try:
            return await self.redis.get(cache_key)
        except CACHE_ERRORS as e:
            logger.warning(f"Idempotency cache read failed, treating as miss: {e}")
            return None

    async def _claim(self, cache_key: str) -> bool:
        # SET NX EX: only one request may own the key
        try:
            return bool(await self.redis.set(cache_key, IN_PROGRESS, nx=True, ex=self.ttl_seconds))
        except CACHE_ERRORS as e:
            logger.warning(f"Idempotency claim failed, proceeding without lock: {e}")
            return True

    async def _release(self, cache_key: str) -> None:
        try:
            await self.redis.delete(cache_key)
        except CACHE_ERRORS as e:
            logger.warning(f"Failed to release idempotency claim {cache_key}: {e}")

    def _build_cache_key(self, key: str, scope: str, endpoint: str) -> str:
        """
        Build unique Redis key for this operation.

        Format: idempotency:{scope}:{endpoint_hash}:{key}
        """
        endpoint_hash = hashlib.sha256(endpoint.encode()).hexdigest()[:8]
        return f"idempotency:{scope}:{endpoint_hash}:{key}"


def guest_scope(email: Optional[str], phone: Optional[str]) -> str:
    """Per-guest scope derived from the contact details, never stored in clear."""
    contact = (email or "").strip().lower() or (phone or "").strip()
    return f"guest-{hashlib.sha256(contact.encode()).hexdigest()[:16]}"


# Singleton instance
_idempotency_middleware = None


def get_idempotency_middleware() -> IdempotencyMiddleware:
    """Get or create the idempotency middleware singleton."""
    global _idempotency_middleware
    if _idempotency_middleware is None:
        _idempotency_middleware = IdempotencyMiddleware()
    return _idempotency_middleware
