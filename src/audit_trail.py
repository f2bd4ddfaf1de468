"""
Append-only audit trail shared by the ledger components.

Each committed state change (work created, payment received, revenue
distributed, proposal created/voted/executed) appends one LedgerEvent.
Rejected operations are not recorded here; they are logged instead.
"""

import threading
from dataclasses import dataclass, field
from typing import Any


@dataclass
class LedgerEvent:
    """A committed ledger state change."""

    sequence: int
    event_type: str
    block: int
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sequence": self.sequence,
            "event_type": self.event_type,
            "block": self.block,
            "data": self.data,
        }


class AuditTrail:
    """Thread-safe, ordered list of ledger events."""

    def __init__(self):
        self._events: list[LedgerEvent] = []
        self._lock = threading.Lock()

    def emit(self, event_type: str, block: int, **data: Any) -> LedgerEvent:
        with self._lock:
            event = LedgerEvent(
                sequence=len(self._events) + 1,
                event_type=event_type,
                block=block,
                data=data,
            )
            self._events.append(event)
            return event

    def events(
        self,
        event_type: str | None = None,
        work_id: int | None = None,
        limit: int | None = None,
    ) -> list[LedgerEvent]:
        """Events in commit order, optionally filtered; ``limit`` keeps the newest."""
        with self._lock:
            selected = [
                e for e in self._events
                if (event_type is None or e.event_type == event_type)
                and (work_id is None or e.data.get("work_id") == work_id)
            ]
        if limit is not None:
            selected = selected[-limit:] if limit > 0 else []
        return selected

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
