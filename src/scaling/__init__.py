"""
Locking infrastructure for the royalty ledger.

Single-process deployments use thread locks; set REDIS_URL to share locks
between several API processes.

Usage:
    from scaling import get_lock_manager

    with get_lock_manager().lock("work:1"):
        ...
"""

import os

from scaling.locking import (
    LocalLockManager,
    LockManager,
    proposal_lock_name,
    work_lock_name,
)

__all__ = [
    "LockManager",
    "LocalLockManager",
    "get_lock_manager",
    "reset_lock_manager",
    "work_lock_name",
    "proposal_lock_name",
]

_lock_manager: LockManager | None = None


def get_lock_manager() -> LockManager:
    """
    Get the configured lock manager.

    Uses Redis if REDIS_URL is set (requires the ``redis`` extra),
    otherwise local threading locks.
    """
    global _lock_manager
    if _lock_manager is None:
        redis_url = os.getenv("REDIS_URL")
        if redis_url:
            from scaling.locking import RedisLockManager
            _lock_manager = RedisLockManager(redis_url)
        else:
            _lock_manager = LocalLockManager()
    return _lock_manager


def reset_lock_manager() -> None:
    """Forget the cached lock manager (tests)."""
    global _lock_manager
    _lock_manager = None
