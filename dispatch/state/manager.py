"""Redis-based state manager with optimistic multi-key transactions."""

import json
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Iterator, TypeVar

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, WatchError
from redis.exceptions import TimeoutError as RedisTimeoutError

from dispatch.config import get_settings
from dispatch.errors import ConflictError, InternalError, StorageUnavailableError
from dispatch.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def _encode(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return value


def _decode(value: Any) -> Any:
    if value is None:
        return None
    try:
        return json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return value


@contextmanager
def storage_guard(operation: str) -> Iterator[None]:
    """Translate Redis failures into retryable service errors."""
    try:
        yield
    except (RedisTimeoutError, RedisConnectionError) as e:
        logger.error("storage_unavailable", operation=operation, error=str(e))
        raise StorageUnavailableError("Storage is temporarily unavailable") from e
    except WatchError:
        raise
    except RedisError as e:
        logger.error("storage_error", operation=operation, error=str(e))
        raise InternalError("Storage operation failed") from e


class Transaction:
    """Reads under WATCH, buffers writes until the owning manager commits."""

    def __init__(self, pipe: Any):
        self._pipe = pipe
        self._writes: list[tuple[str, tuple[Any, ...]]] = []

    async def get(self, key: str) -> Any:
        """Watch ``key`` and return its decoded value."""
        await self._pipe.watch(key)
        return _decode(await self._pipe.get(key))

    async def exists(self, key: str) -> bool:
        await self._pipe.watch(key)
        return bool(await self._pipe.exists(key))

    def set(self, key: str, value: Any) -> None:
        self._writes.append(("set", (key, _encode(value))))

    def delete(self, *keys: str) -> None:
        self._writes.append(("delete", keys))

    def sadd(self, key: str, *members: str) -> None:
        self._writes.append(("sadd", (key, *members)))

    def srem(self, key: str, *members: str) -> None:
        self._writes.append(("srem", (key, *members)))

    def zadd(self, key: str, mapping: dict[str, float]) -> None:
        self._writes.append(("zadd", (key, mapping)))

    def zrem(self, key: str, *members: str) -> None:
        self._writes.append(("zrem", (key, *members)))

    async def commit(self) -> None:
        self._pipe.multi()
        for name, args in self._writes:
            getattr(self._pipe, name)(*args)
        await self._pipe.execute()


class StateManager:
    """Centralized state management using Redis."""

    def __init__(self, redis_client: redis.Redis | None = None) -> None:
        settings = get_settings()
        self.redis_client: redis.Redis | None = redis_client
        self.redis_url = settings.redis_url
        self.timeout = settings.storage_timeout
        self.retries = settings.transaction_retries

    async def connect(self) -> None:
        """Establish Redis connection."""
        if self.redis_client is None:
            self.redis_client = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=self.timeout,
                socket_connect_timeout=self.timeout,
            )
            logger.info("redis_connected", url=self.redis_url)

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self.redis_client:
            await self.redis_client.aclose()
            self.redis_client = None
            logger.info("redis_disconnected")

    async def ping(self) -> bool:
        if not self.redis_client:
            await self.connect()

        with storage_guard("ping"):
            return bool(await self.redis_client.ping())

    async def get(self, key: str) -> Any:
        """Get a value from Redis."""
        if not self.redis_client:
            await self.connect()

        with storage_guard("get"):
            value = await self.redis_client.get(key)
        return _decode(value)

    async def mget(self, keys: list[str]) -> list[Any]:
        """Get several values at once, ``None`` for missing keys."""
        if not keys:
            return []
        if not self.redis_client:
            await self.connect()

        with storage_guard("mget"):
            values = await self.redis_client.mget(keys)
        return [_decode(value) for value in values]

    async def smembers(self, key: str) -> set[str]:
        if not self.redis_client:
            await self.connect()

        with storage_guard("smembers"):
            return set(await self.redis_client.smembers(key))

    async def zrange(
        self,
        key: str,
        start: int = 0,
        end: int = -1,
        desc: bool = False,
    ) -> list[str]:
        """Get members from a sorted set."""
        if not self.redis_client:
            await self.connect()

        with storage_guard("zrange"):
            return await self.redis_client.zrange(key, start, end, desc=desc)

    async def purge(self, *patterns: str) -> int:
        """Delete every key matching any of ``patterns``. Returns the count."""
        if not self.redis_client:
            await self.connect()

        deleted = 0
        with storage_guard("purge"):
            for pattern in patterns:
                keys = [key async for key in self.redis_client.scan_iter(match=pattern)]
                if keys:
                    deleted += await self.redis_client.delete(*keys)

        logger.info("state_purged", patterns=list(patterns), deleted=deleted)
        return deleted

    async def transaction(
        self,
        operation: str,
        func: Callable[[Transaction], Awaitable[T]],
    ) -> T:
        """
        Run ``func`` as one optimistic read-validate-write unit.

        ``func`` reads through the transaction (each read WATCHes its key),
        raises to abort, and stages writes. Staged writes are applied in a
        single MULTI/EXEC. If a watched key changed in between, the whole
        unit is re-run from scratch.

        Args:
            operation: Name used in log lines
            func: Coroutine function receiving the Transaction

        Returns:
            Whatever ``func`` returned on the committed attempt
        """
        if not self.redis_client:
            await self.connect()

        for attempt in range(1, self.retries + 1):
            with storage_guard(operation):
                async with self.redis_client.pipeline(transaction=True) as pipe:
                    tx = Transaction(pipe)
                    try:
                        result = await func(tx)
                        await tx.commit()
                    except WatchError:
                        logger.info(
                            "transaction_retry", operation=operation, attempt=attempt
                        )
                        continue
                    return result

        logger.warning("transaction_exhausted", operation=operation, attempts=self.retries)
        raise ConflictError("Concurrent modification, please retry")

