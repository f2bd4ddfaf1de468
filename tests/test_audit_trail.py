"""
Tests for the audit trail (src/audit_trail.py)
"""

import sys

sys.path.insert(0, "src")

from audit_trail import AuditTrail


class TestAuditTrail:
    """Ordered, filterable event log."""

    def test_sequence_numbers(self):
        trail = AuditTrail()
        first = trail.emit("work_created", 0, work_id=1)
        second = trail.emit("payment_received", 2, work_id=1, amount=100)

        assert (first.sequence, second.sequence) == (1, 2)
        assert second.to_dict() == {
            "sequence": 2,
            "event_type": "payment_received",
            "block": 2,
            "data": {"work_id": 1, "amount": 100},
        }
        assert len(trail) == 2

    def test_filters(self):
        trail = AuditTrail()
        trail.emit("work_created", 0, work_id=1)
        trail.emit("work_created", 0, work_id=2)
        trail.emit("payment_received", 1, work_id=2)

        assert len(trail.events(event_type="work_created")) == 2
        assert [e.event_type for e in trail.events(work_id=2)] == ["work_created", "payment_received"]

    def test_limit_keeps_newest(self):
        trail = AuditTrail()
        for block in range(5):
            trail.emit("tick", block)

        assert [e.block for e in trail.events(limit=2)] == [3, 4]
        assert trail.events(limit=0) == []
