"""Fee policy: splits a settled amount into protocol fee and seller net."""

from __future__ import annotations

# 10000 basis points == 100%
BPS_DENOMINATOR = 10_000

# Upper bound enforced by the configuration setter (10%).
MAX_FEE_RATE_BPS = 1_000


def compute_fee(amount: int, fee_rate_bps: int) -> tuple[int, int]:
    """Return ``(fee, net)`` for ``amount`` at ``fee_rate_bps``.

    The multiply happens before the divide so no precision is lost; floor
    division truncates toward zero for the non-negative inputs used here.
    The rate is validated where it is configured, not here.
    """
    fee = amount * fee_rate_bps // BPS_DENOMINATOR
    return fee, amount - fee


def is_valid_fee_rate(fee_rate_bps: int) -> bool:
    """Integral basis points within bounds. Booleans are not rates."""
    if isinstance(fee_rate_bps, bool) or not isinstance(fee_rate_bps, int):
        return False
    return 0 <= fee_rate_bps <= MAX_FEE_RATE_BPS
