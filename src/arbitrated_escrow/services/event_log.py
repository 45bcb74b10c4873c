"""Append-only log of observable escrow events.

Events are part of the program state: when the runtime rolls back a failed
call, the events that call appended disappear with it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from arbitrated_escrow.domain.enums import EventType


@dataclass(frozen=True)
class EscrowEvent:
    """One emitted event.

    Attributes:
        sequence: Position in the log, starting at 0.
        event_type: Which event fired.
        actor: Caller of the operation that emitted it.
        transaction_id: Transaction concerned, or None for global events.
        data: Event-specific fields (amounts, winner, old/new values).
        timestamp: Runtime timestamp of the emitting call.
    """

    sequence: int
    event_type: EventType
    actor: str
    transaction_id: int | None = None
    data: dict = field(default_factory=dict)
    timestamp: int = 0

    def to_dict(self) -> dict:
        return {
            "sequence": self.sequence,
            "event_type": self.event_type.value,
            "actor": self.actor,
            "transaction_id": self.transaction_id,
            "data": self.data,
            "timestamp": self.timestamp,
        }


class EventLog:
    """Ordered event storage. ``append`` is the only write."""

    def __init__(self, events: list[EscrowEvent] | None = None) -> None:
        self._events: list[EscrowEvent] = list(events or [])

    def append(
        self,
        event_type: EventType,
        actor: str,
        transaction_id: int | None = None,
        data: dict | None = None,
        timestamp: int = 0,
    ) -> EscrowEvent:
        event = EscrowEvent(
            sequence=len(self._events),
            event_type=event_type,
            actor=actor,
            transaction_id=transaction_id,
            data=data or {},
            timestamp=timestamp,
        )
        self._events.append(event)
        return event

    def for_transaction(self, transaction_id: int) -> list[EscrowEvent]:
        return [e for e in self._events if e.transaction_id == transaction_id]

    def all(self) -> list[EscrowEvent]:
        return list(self._events)

    def __len__(self) -> int:
        return len(self._events)
