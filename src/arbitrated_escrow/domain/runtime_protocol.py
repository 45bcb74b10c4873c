"""Ledger Runtime Protocol.

Defines the interface the escrow engine requires from the runtime that
executes it. The runtime supplies atomic call execution, the authenticated
caller, the value attached to the call, a monotonic clock, and outbound value
transfers that may fail without corrupting program state.

The domain layer has ZERO knowledge of how calls are scheduled or rolled
back; see infrastructure/ledger_runtime.py for the in-process implementation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class CallContext:
    """Per-call environment supplied by the runtime.

    Attributes:
        caller: Authenticated address that issued the call.
        value: Value attached to the call, already moved into custody.
        timestamp: Monotonically non-decreasing runtime time.
    """

    caller: str
    value: int = 0
    timestamp: int = 0


@runtime_checkable
class LedgerRuntime(Protocol):
    """Protocol that every ledger runtime must satisfy."""

    @property
    def context(self) -> CallContext | None:
        """Return the innermost active call context, or None outside a call."""
        ...

    def now(self) -> int:
        """Return a timestamp no earlier than any previously returned."""
        ...

    def transfer(self, to: str, amount: int) -> bool:
        """Send value out of custody. Returns False if the recipient rejects it."""
        ...

    def attach(self, program: StatefulProgram) -> None:
        """Register a program whose state is rolled back with failed calls."""
        ...


@runtime_checkable
class StatefulProgram(Protocol):
    """A program whose state the runtime can snapshot and roll back."""

    def snapshot(self) -> Any: ...

    def restore(self, snapshot: Any) -> None: ...
