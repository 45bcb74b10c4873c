"""Owner capability collaborator.

The engine asks one question of this collaborator: is the caller the owner?
Policies that can also hand the capability to another address implement
TransferableOwnership. SingleOwner is the default single-address
implementation and does both.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from arbitrated_escrow.domain.exceptions import InvalidPartyError, UnauthorizedError
from arbitrated_escrow.domain.models import is_null_address, normalize_address


@runtime_checkable
class OwnershipPolicy(Protocol):
    def is_owner(self, caller: str | None) -> bool: ...


@runtime_checkable
class TransferableOwnership(OwnershipPolicy, Protocol):
    def transfer_ownership(self, caller: str | None, new_owner: str) -> None: ...


class SingleOwner:
    """A single privileged owner address, stored in canonical form."""

    def __init__(self, owner: str) -> None:
        if is_null_address(owner):
            raise InvalidPartyError("Owner must be a non-null address")
        self.owner = normalize_address(owner)

    def is_owner(self, caller: str | None) -> bool:
        return caller is not None and normalize_address(caller) == self.owner

    def transfer_ownership(self, caller: str | None, new_owner: str) -> None:
        """Hand the owner capability to new_owner. Only the current owner may."""
        if not self.is_owner(caller):
            raise UnauthorizedError(caller, "owner")
        if is_null_address(new_owner):
            raise InvalidPartyError("New owner must be a non-null address")
        self.owner = normalize_address(new_owner)

    def __repr__(self) -> str:
        return f"<SingleOwner owner={self.owner}>"
