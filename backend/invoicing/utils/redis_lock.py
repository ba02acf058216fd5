"""Redis-based distributed locking utilities."""

from collections.abc import Generator
from contextlib import contextmanager

import redis

from invoicing.utils.redis import redis_client


class LockUnavailable(Exception):
    """Raised when lock cannot be acquired and raise_exc=True."""

    pass


@contextmanager
def RedisLock(
    key: str,
    ttl: int = 60,
    *,
    raise_exc: bool = False,
    client: redis.Redis | None = None,
) -> Generator[bool, None, None]:
    """Distributed lock using Redis SET NX with TTL.

    Yields True when the lock was acquired. When it was not, either raises
    LockUnavailable (raise_exc=True) or yields False so the caller can skip its work:

        with RedisLock("invoices:sweep", ttl=300) as acquired:
            if not acquired:
                return
            run_sweep()

    The lock is released on exit; the TTL only matters if the holder dies.

    Args:
        key: Redis key for the lock (will be prefixed with "RedisLock:")
        ttl: Time-to-live in seconds
        raise_exc: If True, raise LockUnavailable when lock not acquired.
        client: Redis client to use instead of the shared one.
    """
    conn = client or redis_client
    full_key = f"RedisLock:{key}"
    acquired = bool(conn.set(full_key, "1", nx=True, ex=ttl))

    if not acquired:
        if raise_exc:
            raise LockUnavailable(f"Could not acquire lock: {full_key}")
        yield False
        return

    try:
        yield True
    finally:
        conn.delete(full_key)
