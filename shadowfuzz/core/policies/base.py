"""
Command-handler interface shared by the Loose, Strict and Discriminate policies.

Every entry point takes raw seeds, amounts and flags only; the policy resolves
them through the universe generator, calls the ledger, and reconciles the
mirror. A ledger failure surfaces as `LedgerRevert` (Loose / Strict). Strict
skips the mirror update with it; Loose applies the update anyway before
re-raising. Whether a revert ends the run is the driver's decision.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from ...ledger.interface import Ledger
from ...state.mirror import MirrorState
from ..universe import UniverseGenerator


# Operation name -> argument kinds. The driver draws arguments from this table.
#   caller : seed of the account making the call
#   owner  : seed of the account whose balance is spent (sender / owner)
#   actor  : seed of any other account (receiver / spender)
#   id     : seed resolved to a token id
#   ids    : list of token id seeds
#   amount : uint256 amount / delta
#   amounts: list of amounts
#   flag   : bool
OPERATIONS: dict[str, tuple[str, ...]] = {
    "transfer": ("caller", "owner", "actor", "id", "amount"),
    "batch_transfer": ("caller", "owner", "actor", "ids", "amounts"),
    "set_operator": ("caller", "actor", "flag"),
    "approve": ("caller", "actor", "id", "amount"),
    "increase_allowance": ("caller", "actor", "id", "amount"),
    "decrease_allowance": ("caller", "actor", "id", "amount"),
    "batch_approve": ("caller", "actor", "ids", "amounts"),
    "batch_increase_allowance": ("caller", "actor", "ids", "amounts"),
    "batch_decrease_allowance": ("caller", "actor", "ids", "amounts"),
    "register_shadow_token": ("caller", "id"),
    "transmute_to_shadow": ("caller", "owner", "id", "amount"),
    "transmute_from_shadow": ("caller", "id", "amount"),
    "batch_transmute_to_shadow": ("caller", "owner", "ids", "amounts"),
    "batch_transmute_from_shadow": ("caller", "ids", "amounts"),
}


@dataclass(frozen=True)
class OpResult:
    """Outcome of one policy entry point that did not raise."""

    operation: str
    applied: bool
    rejection: Optional[str] = None


def applied(operation: str) -> OpResult:
    return OpResult(operation=operation, applied=True)


def rejected(operation: str, reason: str) -> OpResult:
    return OpResult(operation=operation, applied=False, rejection=reason)


class LedgerTestPolicy:
    """Interface: one method per ledger operation, all seed-driven."""

    name: str = ""

    def __init__(self, mirror: MirrorState, ledger: Ledger, universe: UniverseGenerator) -> None:
        if universe.mirror is not mirror or universe.ledger is not ledger:
            raise ValueError("universe generator must share the policy's mirror and ledger")
        self.mirror = mirror
        self.ledger = ledger
        self.universe = universe

    def dispatch(self, operation: str, args: Sequence) -> OpResult:
        if operation not in OPERATIONS:
            raise ValueError(f"unknown operation: {operation!r}")
        return getattr(self, operation)(*args)

    def transfer(self, caller_seed: int, sender_seed: int, receiver_seed: int, id_seed: int, amount: int) -> OpResult:
        raise NotImplementedError

    def batch_transfer(
        self,
        caller_seed: int,
        sender_seed: int,
        receiver_seed: int,
        id_seeds: Sequence[int],
        amounts: Sequence[int],
    ) -> OpResult:
        raise NotImplementedError

    def set_operator(self, caller_seed: int, spender_seed: int, approved: bool) -> OpResult:
        raise NotImplementedError

    def approve(self, caller_seed: int, spender_seed: int, id_seed: int, amount: int) -> OpResult:
        raise NotImplementedError

    def increase_allowance(self, caller_seed: int, spender_seed: int, id_seed: int, delta: int) -> OpResult:
        raise NotImplementedError

    def decrease_allowance(self, caller_seed: int, spender_seed: int, id_seed: int, delta: int) -> OpResult:
        raise NotImplementedError

    def batch_approve(
        self, caller_seed: int, spender_seed: int, id_seeds: Sequence[int], amounts: Sequence[int]
    ) -> OpResult:
        raise NotImplementedError

    def batch_increase_allowance(
        self, caller_seed: int, spender_seed: int, id_seeds: Sequence[int], deltas: Sequence[int]
    ) -> OpResult:
        raise NotImplementedError

    def batch_decrease_allowance(
        self, caller_seed: int, spender_seed: int, id_seeds: Sequence[int], deltas: Sequence[int]
    ) -> OpResult:
        raise NotImplementedError

    def register_shadow_token(self, caller_seed: int, id_seed: int) -> OpResult:
        raise NotImplementedError

    def transmute_to_shadow(self, caller_seed: int, owner_seed: int, id_seed: int, amount: int) -> OpResult:
        raise NotImplementedError

    def transmute_from_shadow(self, caller_seed: int, id_seed: int, amount: int) -> OpResult:
        raise NotImplementedError

    def batch_transmute_to_shadow(
        self, caller_seed: int, owner_seed: int, id_seeds: Sequence[int], amounts: Sequence[int]
    ) -> OpResult:
        raise NotImplementedError

    def batch_transmute_from_shadow(
        self, caller_seed: int, id_seeds: Sequence[int], amounts: Sequence[int]
    ) -> OpResult:
        raise NotImplementedError
