"""Tests for the Redis lock context manager."""

from unittest.mock import MagicMock

import pytest

from invoicing.utils.redis_lock import LockUnavailable, RedisLock


def _client(acquired: bool) -> MagicMock:
    client = MagicMock()
    client.set.return_value = acquired
    return client


def test_acquires_and_releases():
    client = _client(True)

    with RedisLock("sweep", ttl=30, client=client) as acquired:
        assert acquired is True
        client.delete.assert_not_called()

    client.set.assert_called_once_with("RedisLock:sweep", "1", nx=True, ex=30)
    client.delete.assert_called_once_with("RedisLock:sweep")


def test_releases_on_error():
    client = _client(True)

    with pytest.raises(RuntimeError):
        with RedisLock("sweep", client=client):
            raise RuntimeError("boom")

    client.delete.assert_called_once_with("RedisLock:sweep")


def test_busy_lock_yields_false():
    client = _client(False)

    with RedisLock("sweep", client=client) as acquired:
        assert acquired is False

    client.delete.assert_not_called()


def test_busy_lock_raises_when_requested():
    client = _client(False)

    with pytest.raises(LockUnavailable):
        with RedisLock("sweep", raise_exc=True, client=client):
            pytest.fail("lock body must not run")

    client.delete.assert_not_called()
