"""
Block clocks for the royalty ledger.

Timestamps in the ledger are block heights: monotonic integers supplied by
the surrounding system. Proposal expiry and payout timestamps are compared
against the clock lazily, at the moment an operation runs.

- ManualBlockClock: explicitly advanced (tests, simulations, replays)
- WallBlockClock: derives a height from wall time at a fixed block cadence

Usage:
    clock = ManualBlockClock(start=100)
    clock.advance(1440)
    clock.now()  # 1540
"""

import threading
import time
from abc import ABC, abstractmethod

# 1440 blocks at 600 seconds each is the 10-day voting period.
DEFAULT_BLOCK_SECONDS = 600


class BlockClock(ABC):
    """Abstract monotonic clock returning the current block height."""

    @abstractmethod
    def now(self) -> int:
        """Return the current block height."""
        pass


class ManualBlockClock(BlockClock):
    """Clock that only moves when told to."""

    def __init__(self, start: int = 0):
        if start < 0:
            raise ValueError("Block height cannot be negative")
        self._height = start
        self._lock = threading.Lock()

    def now(self) -> int:
        return self._height

    def advance(self, blocks: int = 1) -> int:
        """Move the clock forward and return the new height."""
        if blocks < 0:
            raise ValueError("Block clock cannot move backwards")
        with self._lock:
            self._height += blocks
            return self._height

    def set(self, height: int) -> None:
        """Jump to a height at or after the current one."""
        with self._lock:
            if height < self._height:
                raise ValueError("Block clock cannot move backwards")
            self._height = height


class WallBlockClock(BlockClock):
    """
    Block height derived from elapsed wall time.

    Height 0 is the moment the clock was created (or ``genesis``); each
    ``block_seconds`` of monotonic time adds one block.
    """

    def __init__(self, block_seconds: float = DEFAULT_BLOCK_SECONDS, genesis: float | None = None):
        if block_seconds <= 0:
            raise ValueError("block_seconds must be positive")
        self.block_seconds = block_seconds
        self._genesis = time.monotonic() if genesis is None else genesis

    def now(self) -> int:
        elapsed = max(0.0, time.monotonic() - self._genesis)
        return int(elapsed // self.block_seconds)
