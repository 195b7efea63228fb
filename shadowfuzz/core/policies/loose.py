"""
Loose policy: prepare -> call -> reconcile.

No inline assertions. The mirror is updated as if the operation did exactly
what the model says, whether the call returned or reverted: a reverted call
still reconciles (under the mirror's underflow mode) and the `LedgerRevert`
is re-raised afterwards. Divergence only shows up at the next invariant
sweep, or as a `MirrorArithmeticError` when a PANIC mirror cannot take the
update. Widest coverage of call shapes, least precision.

`apply_on_revert=False` restores rollback semantics: a revert leaves the
mirror untouched, matching a ledger that rolled back.
"""

from __future__ import annotations

from typing import Callable, Sequence

from ...ledger.errors import LedgerRevert
from ...ledger.interface import Ledger
from ...state import updates
from ...state.mirror import MirrorState, TokenId
from ..universe import UniverseGenerator
from .base import LedgerTestPolicy, OpResult, applied
from .reconcile import (
    reconcile_batch_transfer,
    reconcile_from_shadow,
    reconcile_to_shadow,
    reconcile_transfer,
)


class LoosePolicy(LedgerTestPolicy):
    name = "loose"

    def __init__(
        self,
        mirror: MirrorState,
        ledger: Ledger,
        universe: UniverseGenerator,
        *,
        apply_on_revert: bool = True,
    ) -> None:
        super().__init__(mirror, ledger, universe)
        self.apply_on_revert = bool(apply_on_revert)

    def _attempt(self, call: Callable[[], object], reconcile: Callable[[], None]) -> None:
        try:
            call()
        except LedgerRevert:
            if self.apply_on_revert:
                reconcile()
            raise
        reconcile()

    def _register_as_attempted(self, token_id: TokenId) -> None:
        # A reverted registration returns no handle; record one only if the ledger reports a new one.
        handle = self.ledger.shadow_token_of(token_id)
        if handle is None or handle == self.mirror.shadow_token_of(token_id):
            return
        updates.apply_register_shadow(self.mirror, token_id, handle)

    def transfer(self, caller_seed: int, sender_seed: int, receiver_seed: int, id_seed: int, amount: int) -> OpResult:
        caller = self.universe.select_account(caller_seed)
        sender = self.universe.select_account(sender_seed)
        receiver = self.universe.select_account(receiver_seed)
        token_id = self.universe.select_or_create_token_id(id_seed)

        self._attempt(
            lambda: self.ledger.transfer(caller, sender, receiver, token_id, amount, b""),
            lambda: reconcile_transfer(self.mirror, caller, sender, receiver, token_id, amount),
        )
        return applied("transfer")

    def batch_transfer(
        self,
        caller_seed: int,
        sender_seed: int,
        receiver_seed: int,
        id_seeds: Sequence[int],
        amounts: Sequence[int],
    ) -> OpResult:
        caller = self.universe.select_account(caller_seed)
        sender = self.universe.select_account(sender_seed)
        receiver = self.universe.select_account(receiver_seed)
        token_ids = self.universe.select_or_create_token_ids(id_seeds)

        self._attempt(
            lambda: self.ledger.batch_transfer(caller, sender, receiver, token_ids, list(amounts), b""),
            lambda: reconcile_batch_transfer(self.mirror, caller, sender, receiver, token_ids, amounts),
        )
        return applied("batch_transfer")

    def set_operator(self, caller_seed: int, spender_seed: int, approved: bool) -> OpResult:
        caller = self.universe.select_account(caller_seed)
        spender = self.universe.select_account(spender_seed)

        self._attempt(
            lambda: self.ledger.set_operator(caller, spender, approved),
            lambda: updates.apply_set_operator(self.mirror, caller, spender, approved),
        )
        return applied("set_operator")

    def approve(self, caller_seed: int, spender_seed: int, id_seed: int, amount: int) -> OpResult:
        caller = self.universe.select_account(caller_seed)
        spender = self.universe.select_account(spender_seed)
        token_id = self.universe.select_or_create_token_id(id_seed)

        self._attempt(
            lambda: self.ledger.approve(caller, spender, token_id, amount),
            lambda: updates.apply_set_allowance(self.mirror, caller, spender, token_id, amount),
        )
        return applied("approve")

    def increase_allowance(self, caller_seed: int, spender_seed: int, id_seed: int, delta: int) -> OpResult:
        caller = self.universe.select_account(caller_seed)
        spender = self.universe.select_account(spender_seed)
        token_id = self.universe.select_or_create_token_id(id_seed)

        self._attempt(
            lambda: self.ledger.increase_allowance(caller, spender, token_id, delta),
            lambda: updates.apply_increase_allowance(self.mirror, caller, spender, token_id, delta),
        )
        return applied("increase_allowance")

    def decrease_allowance(self, caller_seed: int, spender_seed: int, id_seed: int, delta: int) -> OpResult:
        caller = self.universe.select_account(caller_seed)
        spender = self.universe.select_account(spender_seed)
        token_id = self.universe.select_or_create_token_id(id_seed)

        self._attempt(
            lambda: self.ledger.decrease_allowance(caller, spender, token_id, delta),
            lambda: updates.apply_decrease_allowance(self.mirror, caller, spender, token_id, delta),
        )
        return applied("decrease_allowance")

    def batch_approve(
        self, caller_seed: int, spender_seed: int, id_seeds: Sequence[int], amounts: Sequence[int]
    ) -> OpResult:
        caller = self.universe.select_account(caller_seed)
        spender = self.universe.select_account(spender_seed)
        token_ids = self.universe.select_or_create_token_ids(id_seeds)

        self._attempt(
            lambda: self.ledger.batch_approve(caller, spender, token_ids, list(amounts)),
            lambda: updates.apply_batch_set_allowance(self.mirror, caller, spender, token_ids, amounts),
        )
        return applied("batch_approve")

    def batch_increase_allowance(
        self, caller_seed: int, spender_seed: int, id_seeds: Sequence[int], deltas: Sequence[int]
    ) -> OpResult:
        caller = self.universe.select_account(caller_seed)
        spender = self.universe.select_account(spender_seed)
        token_ids = self.universe.select_or_create_token_ids(id_seeds)

        self._attempt(
            lambda: self.ledger.batch_increase_allowance(caller, spender, token_ids, list(deltas)),
            lambda: updates.apply_batch_increase_allowance(self.mirror, caller, spender, token_ids, deltas),
        )
        return applied("batch_increase_allowance")

    def batch_decrease_allowance(
        self, caller_seed: int, spender_seed: int, id_seeds: Sequence[int], deltas: Sequence[int]
    ) -> OpResult:
        caller = self.universe.select_account(caller_seed)
        spender = self.universe.select_account(spender_seed)
        token_ids = self.universe.select_or_create_token_ids(id_seeds)

        self._attempt(
            lambda: self.ledger.batch_decrease_allowance(caller, spender, token_ids, list(deltas)),
            lambda: updates.apply_batch_decrease_allowance(self.mirror, caller, spender, token_ids, deltas),
        )
        return applied("batch_decrease_allowance")

    def register_shadow_token(self, caller_seed: int, id_seed: int) -> OpResult:
        caller = self.universe.select_account(caller_seed)
        token_id = self.universe.select_or_create_token_id(id_seed)

        try:
            handle = self.ledger.register_shadow_token(caller, token_id)
        except LedgerRevert:
            if self.apply_on_revert:
                self._register_as_attempted(token_id)
            raise
        updates.apply_register_shadow(self.mirror, token_id, handle)
        return applied("register_shadow_token")

    def transmute_to_shadow(self, caller_seed: int, owner_seed: int, id_seed: int, amount: int) -> OpResult:
        caller = self.universe.select_account(caller_seed)
        owner = self.universe.select_account(owner_seed)
        token_id = self.universe.select_or_create_token_id(id_seed)

        self._attempt(
            lambda: self.ledger.transmute_to_shadow(caller, owner, token_id, amount),
            lambda: reconcile_to_shadow(self.mirror, caller, owner, [token_id], [amount]),
        )
        return applied("transmute_to_shadow")

    def transmute_from_shadow(self, caller_seed: int, id_seed: int, amount: int) -> OpResult:
        caller = self.universe.select_account(caller_seed)
        token_id = self.universe.select_or_create_token_id(id_seed)

        self._attempt(
            lambda: self.ledger.transmute_from_shadow(caller, token_id, amount),
            lambda: reconcile_from_shadow(self.mirror, caller, [token_id], [amount]),
        )
        return applied("transmute_from_shadow")

    def batch_transmute_to_shadow(
        self, caller_seed: int, owner_seed: int, id_seeds: Sequence[int], amounts: Sequence[int]
    ) -> OpResult:
        caller = self.universe.select_account(caller_seed)
        owner = self.universe.select_account(owner_seed)
        token_ids = self.universe.select_or_create_token_ids(id_seeds)

        self._attempt(
            lambda: self.ledger.batch_transmute_to_shadow(caller, owner, token_ids, list(amounts)),
            lambda: reconcile_to_shadow(self.mirror, caller, owner, token_ids, amounts),
        )
        return applied("batch_transmute_to_shadow")

    def batch_transmute_from_shadow(
        self, caller_seed: int, id_seeds: Sequence[int], amounts: Sequence[int]
    ) -> OpResult:
        caller = self.universe.select_account(caller_seed)
        token_ids = self.universe.select_or_create_token_ids(id_seeds)

        self._attempt(
            lambda: self.ledger.batch_transmute_from_shadow(caller, token_ids, list(amounts)),
            lambda: reconcile_from_shadow(self.mirror, caller, token_ids, amounts),
        )
        return applied("batch_transmute_from_shadow")
