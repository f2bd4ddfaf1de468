"""
Named locks for ledger operations.

Every mutating ledger operation holds the lock of the work (``work:<id>``)
or proposal (``proposal:<id>``) it touches for its full duration. When a
proposal execution needs both, the proposal lock is always taken first.

- LocalLockManager: thread-based reentrant locks for a single process
- RedisLockManager: SET NX based locks shared by several API processes

Usage:
    from scaling import get_lock_manager

    with get_lock_manager().lock("work:3"):
        ...
"""

import threading
import time
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass


def work_lock_name(work_id: int) -> str:
    return f"work:{work_id}"


def proposal_lock_name(proposal_id: int) -> str:
    return f"proposal:{proposal_id}"


@dataclass
class LockInfo:
    """Information about a held lock."""

    name: str
    holder_id: str
    acquired_at: float
    ttl: float | None = None
    expires_at: float | None = None
    depth: int = 1


class LockManager(ABC):
    """Abstract base class for lock managers."""

    @abstractmethod
    def acquire(self, name: str, timeout: float = 30.0, ttl: float = 60.0) -> bool:
        """
        Acquire a named lock.

        Args:
            name: Lock identifier
            timeout: Maximum time to wait for lock (seconds)
            ttl: Lock time-to-live (auto-release after this time where supported)

        Returns:
            True if lock acquired, False on timeout
        """
        pass

    @abstractmethod
    def release(self, name: str) -> bool:
        """Release a named lock. Returns False if it was not held."""
        pass

    @abstractmethod
    def is_locked(self, name: str) -> bool:
        """Check if a lock is currently held."""
        pass

    @contextmanager
    def lock(self, name: str, timeout: float = 30.0, ttl: float = 60.0):
        """
        Hold a lock for the duration of a block.

        Raises:
            TimeoutError: If the lock cannot be acquired within timeout
        """
        if not self.acquire(name, timeout=timeout, ttl=ttl):
            raise TimeoutError(f"Could not acquire lock '{name}' within {timeout}s")
        try:
            yield
        finally:
            self.release(name)

    def get_info(self, name: str) -> LockInfo | None:
        """Get information about a lock (if held)."""
        return None


class LocalLockManager(LockManager):
    """
    Thread-based lock manager.

    Locks are reentrant: a thread holding ``work:1`` may acquire it again,
    and the lock is freed once every acquire has been released.
    """

    def __init__(self):
        self._locks: dict[str, threading.RLock] = {}
        self._lock_info: dict[str, LockInfo] = {}
        self._meta_lock = threading.Lock()
        self._instance_id = str(uuid.uuid4())[:8]

    def _get_lock(self, name: str) -> threading.RLock:
        with self._meta_lock:
            if name not in self._locks:
                self._locks[name] = threading.RLock()
            return self._locks[name]

    def acquire(self, name: str, timeout: float = 30.0, ttl: float = 60.0) -> bool:
        lock = self._get_lock(name)
        if not lock.acquire(timeout=timeout):
            return False

        with self._meta_lock:
            info = self._lock_info.get(name)
            if info is not None:
                info.depth += 1
            else:
                now = time.time()
                self._lock_info[name] = LockInfo(
                    name=name,
                    holder_id=f"{self._instance_id}:{threading.current_thread().name}",
                    acquired_at=now,
                    ttl=ttl,
                    expires_at=now + ttl if ttl else None,
                )
        return True

    def release(self, name: str) -> bool:
        lock = self._get_lock(name)
        try:
            lock.release()
        except RuntimeError:
            # not held by this thread
            return False

        with self._meta_lock:
            info = self._lock_info.get(name)
            if info is not None:
                info.depth -= 1
                if info.depth <= 0:
                    del self._lock_info[name]
        return True

    def is_locked(self, name: str) -> bool:
        return name in self._lock_info

    def get_info(self, name: str) -> LockInfo | None:
        return self._lock_info.get(name)

    def get_all_locks(self) -> list[LockInfo]:
        """Information about all held locks."""
        return list(self._lock_info.values())


class RedisLockManager(LockManager):
    """
    Distributed lock manager using Redis.

    Requires the redis package (``pip install collab-royalty[redis]``).
    Not reentrant: ledger operations never re-acquire a lock they hold.
    """

    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    def __init__(self, redis_url: str, key_prefix: str = "collab_royalty:lock:"):
        import redis

        self._redis = redis.from_url(redis_url)
        self._key_prefix = key_prefix
        self._instance_id = str(uuid.uuid4())
        self._held_locks: dict[str, str] = {}  # name -> lock_value

    def _key(self, name: str) -> str:
        return f"{self._key_prefix}{name}"

    def acquire(self, name: str, timeout: float = 30.0, ttl: float = 60.0) -> bool:
        key = self._key(name)
        lock_value = f"{self._instance_id}:{time.time()}"
        ttl_ms = int(ttl * 1000)

        deadline = time.time() + timeout
        retry_delay = 0.05
        while time.time() < deadline:
            if self._redis.set(key, lock_value, nx=True, px=ttl_ms):
                self._held_locks[name] = lock_value
                return True
            time.sleep(retry_delay)
            retry_delay = min(retry_delay * 1.5, 1.0)

        return False

    def release(self, name: str) -> bool:
        lock_value = self._held_locks.get(name)
        if not lock_value:
            return False

        if self._redis.eval(self.RELEASE_SCRIPT, 1, self._key(name), lock_value):
            self._held_locks.pop(name, None)
            return True
        return False

    def is_locked(self, name: str) -> bool:
        return self._redis.exists(self._key(name)) > 0

    def close(self):
        """Close the Redis connection."""
        self._redis.close()
