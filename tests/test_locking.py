"""
Tests for named locks (src/scaling/locking.py, src/scaling/__init__.py)
"""

import sys
import threading

import pytest

sys.path.insert(0, "src")

from scaling import (
    LocalLockManager,
    get_lock_manager,
    proposal_lock_name,
    reset_lock_manager,
    work_lock_name,
)


class TestLockNames:
    """Lock naming convention."""

    def test_work_lock_name(self):
        assert work_lock_name(7) == "work:7"

    def test_proposal_lock_name(self):
        assert proposal_lock_name(3) == "proposal:3"


class TestLocalLockManager:
    """Tests for the thread-based lock manager."""

    @pytest.fixture
    def manager(self):
        return LocalLockManager()

    def test_lock_context_releases(self, manager):
        with manager.lock("work:1"):
            assert manager.is_locked("work:1")
        assert not manager.is_locked("work:1")

    def test_released_on_exception(self, manager):
        with pytest.raises(ValueError):
            with manager.lock("work:1"):
                raise ValueError("boom")
        assert not manager.is_locked("work:1")

    def test_reentrant_depth(self, manager):
        with manager.lock("work:1"):
            with manager.lock("work:1"):
                assert manager.get_info("work:1").depth == 2
            assert manager.is_locked("work:1")
        assert manager.get_info("work:1") is None

    def test_release_unheld_returns_false(self, manager):
        assert manager.release("work:9") is False

    def test_contended_lock_times_out(self, manager):
        """A second thread cannot take a held lock."""
        acquired = threading.Event()
        done = threading.Event()

        def holder():
            with manager.lock("work:1"):
                acquired.set()
                done.wait(timeout=5)

        thread = threading.Thread(target=holder)
        thread.start()
        acquired.wait(timeout=5)
        try:
            with pytest.raises(TimeoutError):
                with manager.lock("work:1", timeout=0.05):
                    pass
        finally:
            done.set()
            thread.join()

    def test_get_all_locks(self, manager):
        with manager.lock("proposal:1"), manager.lock("work:1"):
            names = {info.name for info in manager.get_all_locks()}
        assert names == {"proposal:1", "work:1"}


class TestGetLockManager:
    """Tests for the configured lock manager."""

    def test_local_without_redis(self, monkeypatch):
        monkeypatch.delenv("REDIS_URL", raising=False)
        reset_lock_manager()
        assert isinstance(get_lock_manager(), LocalLockManager)

    def test_cached_instance(self, monkeypatch):
        monkeypatch.delenv("REDIS_URL", raising=False)
        reset_lock_manager()
        assert get_lock_manager() is get_lock_manager()
