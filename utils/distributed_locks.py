"""
Cache-backed mutual exclusion.

Locks live in the default Django cache (Redis in deployment), so they hold
across web workers and Celery workers alike. A lock is an ``add``-only key
whose value is the holder's token; it expires on its own if the holder dies.
"""

import functools
import logging
import time
import uuid
from contextlib import contextmanager

from django.core.cache import cache

logger = logging.getLogger(__name__)

LOCK_KEY_PREFIX = "lock:"


class DistributedLock:
    """A named lock shared by every process that talks to the same cache."""

    def __init__(self, key, expires=60, timeout=10, poll_interval=0.1):
        """
        Args:
            key (str): Lock name, e.g. ``organizer_rules:<organizer id>``
            expires (int): Seconds before an abandoned lock frees itself
            timeout (float): Seconds to keep retrying; 0 tries exactly once
            poll_interval (float): Seconds between retries
        """
        self.key = f"{LOCK_KEY_PREFIX}{key}"
        self.expires = expires
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.token = uuid.uuid4().hex

    def acquire(self):
        """Return True once the lock is held, False when ``timeout`` runs out."""
        deadline = time.monotonic() + self.timeout
        attempts = 0

        while True:
            attempts += 1
            if cache.add(self.key, self.token, self.expires):
                logger.debug(f"Lock {self.key} acquired after {attempts} attempt(s)")
                return True
            if time.monotonic() >= deadline:
                break
            time.sleep(self.poll_interval)

        logger.warning(f"Lock {self.key} still busy after {self.timeout}s ({attempts} attempts)")
        return False

    def is_held(self):
        return cache.get(self.key) == self.token

    def release(self):
        """
        Drop the lock if this holder still owns it.

        A lock that expired and was taken by someone else is left alone.
        """
        if not self.is_held():
            logger.warning(f"Lock {self.key} expired before release")
            return False
        cache.delete(self.key)
        logger.debug(f"Lock {self.key} released")
        return True


@contextmanager
def distributed_lock(key, expires=60, timeout=10, poll_interval=0.1):
    """
    Hold ``key`` for the duration of the block.

    Yields:
        bool: whether the lock was obtained; the caller decides what a busy
        lock means (rule writes raise, background tasks skip)
    """
    lock = DistributedLock(key, expires, timeout, poll_interval)
    acquired = lock.acquire()
    try:
        yield acquired
    finally:
        if acquired:
            lock.release()


def with_distributed_lock(key_func=None, expires=60, timeout=10, poll_interval=0.1, on_busy=None):
    """
    Run the decorated function only while holding a lock.

    Args:
        key_func (callable, optional): Builds the lock name from the call's
            arguments; defaults to the function name
        expires, timeout, poll_interval: As for ``DistributedLock``
        on_busy (callable, optional): Called with the same arguments when the
            lock cannot be obtained; its return value is returned instead

    Returns:
        callable: The decorated function
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            key = key_func(*args, **kwargs) if key_func else func.__name__

            with distributed_lock(key, expires, timeout, poll_interval) as acquired:
                if acquired:
                    return func(*args, **kwargs)

            logger.info(f"Skipped {func.__name__}, lock {key} is busy")
            if on_busy is not None:
                return on_busy(*args, **kwargs)
            return None

        return wrapper

    return decorator
