"""In-process ledger runtime.

Executes program operations one call at a time with all-or-nothing
semantics, the way a chain executes a contract call:

    1. The attached value moves from the caller's wallet into custody.
    2. A CallContext (caller, value, timestamp) is pushed for the program.
    3. The operation runs. If it raises, wallets, custody, and every attached
       program are restored to their pre-call snapshot and the error is
       re-raised to the caller.

Addresses are keyed in canonical form (see ``normalize_address``), so a
wallet, a caller, and a receive hook match regardless of hex letter case.

Outbound transfers run the recipient's receive hook, if one is registered.
A hook that raises or returns False rejects the transfer; everything done
since the transfer began (including calls the hook re-entered) is undone
and ``transfer`` returns False.

``checkpoint`` and ``rollback`` let a caller that writes committed calls
through to storage undo them again if the write fails.

Usage:
    runtime = InMemoryLedgerRuntime()
    engine = EscrowEngine.deploy(runtime, owner=OWNER, arbitrator=ARBITRATOR)
    runtime.mint(BUYER, 10**18)
    tx_id = runtime.call(BUYER, engine.create_transaction, SELLER)
    runtime.call(BUYER, engine.deposit_payment, tx_id, value=10**18)
"""

from __future__ import annotations

import threading
import time
from collections import defaultdict
from typing import TYPE_CHECKING, Any

from arbitrated_escrow.domain.exceptions import InsufficientFundsError, InvalidAmountError
from arbitrated_escrow.domain.models import normalize_address
from arbitrated_escrow.domain.runtime_protocol import CallContext
from arbitrated_escrow.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from arbitrated_escrow.domain.runtime_protocol import StatefulProgram

    ReceiveHook = Callable[[int], bool | None]
    RuntimeCheckpoint = tuple[dict[str, int], int, list[Any]]

logger = get_logger(__name__)

CUSTODY_ACCOUNT = "custody"


class InMemoryLedgerRuntime:
    """Serial, atomic call executor with wallets and a custody balance."""

    def __init__(self, clock: Callable[[], int] | None = None) -> None:
        self._clock = clock or (lambda: int(time.time()))
        self._last_timestamp = 0
        self._wallets: defaultdict[str, int] = defaultdict(int)
        self._custody = 0
        self._programs: list[StatefulProgram] = []
        self._receivers: dict[str, ReceiveHook] = {}
        self._stack: list[CallContext] = []
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    @property
    def context(self) -> CallContext | None:
        return self._stack[-1] if self._stack else None

    @property
    def custody(self) -> int:
        """Value currently held by the attached programs."""
        return self._custody

    @custody.setter
    def custody(self, value: int) -> None:
        if value < 0:
            raise ValueError(f"Custody cannot be negative: {value}")
        self._custody = value

    def now(self) -> int:
        """Return the clock reading, never earlier than a previous reading."""
        self._last_timestamp = max(self._last_timestamp, int(self._clock()))
        return self._last_timestamp

    def attach(self, program: StatefulProgram) -> None:
        self._programs.append(program)

    # ------------------------------------------------------------------
    # Wallets
    # ------------------------------------------------------------------

    def mint(self, address: str, amount: int) -> None:
        """Create value in an external wallet (test and development faucet)."""
        if amount <= 0:
            raise InvalidAmountError(f"Mint amount must be positive, got {amount}")
        address = normalize_address(address)
        self._wallets[address] += amount
        logger.debug("ledger.minted", address=address, amount=amount)

    def balance_of(self, address: str) -> int:
        return self._wallets.get(normalize_address(address), 0)

    def register_receiver(self, address: str, hook: ReceiveHook) -> None:
        """Run ``hook(amount)`` whenever value is transferred to ``address``."""
        self._receivers[normalize_address(address)] = hook

    def unregister_receiver(self, address: str) -> None:
        self._receivers.pop(normalize_address(address), None)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def call(
        self,
        caller: str,
        fn: Callable[..., Any],
        *args: Any,
        value: int = 0,
        **kwargs: Any,
    ) -> Any:
        """Execute ``fn(*args, **kwargs)`` as one atomic call by ``caller``."""
        if value < 0:
            raise InvalidAmountError(f"Attached value cannot be negative, got {value}")
        caller = normalize_address(caller)

        with self._lock:
            available = self.balance_of(caller)
            if value > available:
                raise InsufficientFundsError(caller, value, available)

            snapshot = self._snapshot()
            self._wallets[caller] -= value
            self._custody += value
            self._stack.append(CallContext(caller=caller, value=value, timestamp=self.now()))
            try:
                return fn(*args, **kwargs)
            except Exception as exc:
                self._restore(snapshot)
                logger.debug(
                    "ledger.call_reverted",
                    caller=caller,
                    operation=getattr(fn, "__name__", repr(fn)),
                    error=str(exc),
                )
                raise
            finally:
                self._stack.pop()

    def transfer(self, to: str, amount: int) -> bool:
        """Move ``amount`` out of custody to ``to``.

        Returns False, with every effect since the transfer began undone, if
        the recipient's receive hook raises or returns False.
        """
        if amount <= 0:
            raise InvalidAmountError(f"Transfer amount must be positive, got {amount}")
        if amount > self._custody:
            raise InsufficientFundsError(CUSTODY_ACCOUNT, amount, self._custody)
        to = normalize_address(to)

        snapshot = self._snapshot()
        self._custody -= amount
        self._wallets[to] += amount

        hook = self._receivers.get(to)
        if hook is None:
            return True

        try:
            accepted = hook(amount)
        except Exception as exc:
            logger.warning("ledger.transfer_rejected", to=to, amount=amount, error=str(exc))
            accepted = False

        if accepted is False:
            self._restore(snapshot)
            return False
        return True

    # ------------------------------------------------------------------
    # Checkpoints
    # ------------------------------------------------------------------

    def checkpoint(self) -> RuntimeCheckpoint:
        """Capture wallets, custody, and every attached program's state."""
        with self._lock:
            return self._snapshot()

    def rollback(self, checkpoint: RuntimeCheckpoint) -> None:
        """Return to a checkpoint, discarding every call committed since."""
        with self._lock:
            self._restore(checkpoint)
        logger.warning("ledger.rolled_back", custody=self._custody)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _snapshot(self) -> RuntimeCheckpoint:
        return (
            dict(self._wallets),
            self._custody,
            [program.snapshot() for program in self._programs],
        )

    def _restore(self, snapshot: RuntimeCheckpoint) -> None:
        wallets, custody, program_states = snapshot
        self._wallets = defaultdict(int, wallets)
        self._custody = custody
        for program, state in zip(self._programs, program_states, strict=True):
            program.restore(state)
