"""Utilities for order processing, including Redis-based concurrency control."""

import uuid
import logging
from contextlib import contextmanager
from django.core.cache import cache

logger = logging.getLogger(__name__)


class LockNotAcquired(Exception):
    """Another worker holds the lock."""


def get_dispatch_lock_key(order_id):
    """Generate Redis lock key for dispatching one order upstream."""
    return f"dispatch_lock:{order_id}"


def get_poll_lock_key():
    return "reconciliation_poll_lock"


@contextmanager
def cache_lock(lock_key, timeout=30):
    """
    Hold a short-lived lock in the shared cache.

    Uses ``cache.add`` (SET if Not eXists on Redis) so only one process
    acquires the key. The lock is released only by the holder that set it;
    if the holder dies the key expires after ``timeout`` seconds.

    Raises:
        LockNotAcquired: the key is already held
    """
    lock_id = str(uuid.uuid4())

    if not cache.add(lock_key, lock_id, timeout):
        logger.info(f"Failed to acquire lock {lock_key}")
        raise LockNotAcquired(lock_key)

    try:
        yield lock_id
    finally:
        if cache.get(lock_key) == lock_id:
            cache.delete(lock_key)
