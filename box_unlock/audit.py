"""
Audit trail for unlock attempts.

Every accepted state transition and every refused request is
recorded. Records are immutable once stored and queryable by
attempt, actor, state and decision.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4


@dataclass(frozen=True)
class TransitionRecord:
    """Record of one coordinator decision."""
    attempt_id: str | None
    actor: str
    from_state: str
    to_state: str
    decision: str  # "accepted" or "rejected"
    reason: str = ""
    box_id: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "attempt_id": self.attempt_id,
            "actor": self.actor,
            "box_id": self.box_id,
            "from_state": self.from_state,
            "to_state": self.to_state,
            "decision": self.decision,
            "reason": self.reason,
            "metadata": self.metadata,
        }


class AuditTrail:
    """In-memory store of transition records."""

    def __init__(self, max_records: int | None = 10_000) -> None:
        self._records: list[TransitionRecord] = []
        self._max_records = max_records

    def record(self, record: TransitionRecord) -> None:
        self._records.append(record)
        if self._max_records is not None and len(self._records) > self._max_records:
            del self._records[: len(self._records) - self._max_records]

    def query(
        self,
        attempt_id: str | None = None,
        actor: str | None = None,
        to_state: str | None = None,
        decision: str | None = None,
        since: datetime | None = None,
    ) -> list[TransitionRecord]:
        """Query records by criteria."""
        results = self._records

        if attempt_id:
            results = [r for r in results if r.attempt_id == attempt_id]
        if actor:
            results = [r for r in results if r.actor == actor]
        if to_state:
            results = [r for r in results if r.to_state == to_state]
        if decision:
            results = [r for r in results if r.decision == decision]
        if since:
            results = [r for r in results if r.timestamp >= since]

        return list(results)

    def path(self, attempt_id: str) -> list[str]:
        """States an attempt moved through, starting from its first source state."""
        accepted = self.query(attempt_id=attempt_id, decision="accepted")
        if not accepted:
            return []
        return [accepted[0].from_state] + [r.to_state for r in accepted]

    def all(self) -> list[TransitionRecord]:
        return list(self._records)

    def count(self) -> int:
        return len(self._records)

    def clear(self) -> None:
        self._records.clear()
