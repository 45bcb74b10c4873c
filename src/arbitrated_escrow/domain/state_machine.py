"""Escrow Transaction State Machine Guard.

Uses python-statemachine to enforce legal lifecycle transitions at the domain
level. Whatever the engine or the API attempts, an illegal transition (e.g.,
AWAITING_PAYMENT -> COMPLETE) raises TransitionNotAllowed before any record
is touched.

The machine is instantiated per-check at the record's current state and is
never stored; the TransactionStore remains the single owner of state.

Transition table:
    AWAITING_PAYMENT   -> AWAITING_DELIVERY  (deposit)
    AWAITING_DELIVERY  -> COMPLETE           (confirm)
    AWAITING_DELIVERY  -> DISPUTED           (dispute)
    DISPUTED           -> COMPLETE           (release_to_seller)
    DISPUTED           -> REFUNDED           (refund_to_buyer)
"""

from __future__ import annotations

from statemachine import State, StateMachine

TRANSITION_EVENTS = (
    "deposit",
    "confirm",
    "dispute",
    "release_to_seller",
    "refund_to_buyer",
)


class TransactionStateMachine(StateMachine):
    """State machine that guards escrow transaction lifecycle transitions.

    Usage:
        sm = TransactionStateMachine(current_state="AWAITING_DELIVERY")
        sm.confirm()   # transitions to COMPLETE
        sm.status      # "COMPLETE"
    """

    # --- States ---
    AWAITING_PAYMENT = State("AWAITING_PAYMENT", initial=True)
    AWAITING_DELIVERY = State("AWAITING_DELIVERY")
    DISPUTED = State("DISPUTED")
    COMPLETE = State("COMPLETE", final=True)
    REFUNDED = State("REFUNDED", final=True)

    # --- Events / Transitions ---

    # Funding
    deposit = AWAITING_PAYMENT.to(AWAITING_DELIVERY)

    # Buyer acceptance
    confirm = AWAITING_DELIVERY.to(COMPLETE)

    # Disputes
    dispute = AWAITING_DELIVERY.to(DISPUTED)
    release_to_seller = DISPUTED.to(COMPLETE)
    refund_to_buyer = DISPUTED.to(REFUNDED)

    def __init__(self, current_state: str = "AWAITING_PAYMENT") -> None:
        """Initialize the state machine at a given state.

        Args:
            current_state: The current TransactionState value. Must match one
                of the State value strings exactly.
        """
        valid_values = {s.value for s in self.states}
        if current_state not in valid_values:
            valid = ", ".join(sorted(valid_values))
            raise ValueError(f"Unknown state '{current_state}'. Valid states: {valid}")
        super().__init__(start_value=current_state)

    @property
    def status(self) -> str:
        """Return the current state value as a string (matches TransactionState)."""
        return str(self.current_state.value)

    def get_allowed_events(self) -> list[str]:
        """Return the event names that can fire from the current state."""
        return [event.id for event in self.allowed_events]


def validate_transition(current_state: str, event_name: str) -> str:
    """Validate a transition and return the resulting state.

    Args:
        current_state: Current TransactionState value.
        event_name: The event to fire (e.g., "confirm").

    Returns:
        The new state string after the transition.

    Raises:
        TransitionNotAllowed: If the transition is illegal from current_state.
        ValueError: If the state or event name is unknown.
    """
    sm = TransactionStateMachine(current_state=current_state)

    if event_name not in TRANSITION_EVENTS:
        raise ValueError(
            f"Unknown event '{event_name}'. "
            f"Allowed events from {current_state}: {sm.get_allowed_events()}"
        )

    getattr(sm, event_name)()
    return sm.status
