"""
Discriminate policy: prepare -> screen -> call -> assert post-state -> reconcile.

The precondition predicates Strict asserts after the fact are evaluated here
BEFORE the call; a failing draw is returned as a rejection without touching
the ledger or the mirror. Every call that does reach the ledger is expected to
succeed, so a revert is reported as `UnexpectedRevertError`.

Mirror arithmetic must run in PANIC mode: inputs are screened, so an
underflow would mean the screening itself is wrong.
"""

from __future__ import annotations

import logging
from typing import Callable, Sequence

from ...ledger.errors import LedgerRevert
from ...ledger.interface import Ledger
from ...state import updates
from ...state.arithmetic import UnderflowMode
from ...state.mirror import MirrorState
from .. import guards
from ..checks import (
    assert_eq,
    expect_allowance_path,
    expect_allowances,
    expect_balances,
    expect_shadow_balances,
    expect_supplies,
    observe,
)
from ..errors import UnexpectedRevertError
from ..universe import UniverseGenerator
from .base import LedgerTestPolicy, OpResult, applied, rejected
from .reconcile import (
    reconcile_batch_transfer,
    reconcile_from_shadow,
    reconcile_to_shadow,
)

logger = logging.getLogger(__name__)


class DiscriminatePolicy(LedgerTestPolicy):
    name = "discriminate"

    def __init__(self, mirror: MirrorState, ledger: Ledger, universe: UniverseGenerator) -> None:
        if mirror.underflow is not UnderflowMode.PANIC:
            raise ValueError("DiscriminatePolicy requires a PANIC-mode mirror")
        super().__init__(mirror, ledger, universe)

    def _reject(self, operation: str, reason: str) -> OpResult:
        logger.debug("%s: draw rejected (%s)", operation, reason)
        return rejected(operation, reason)

    def _call(self, operation: str, fn: Callable, *args):
        try:
            return fn(*args)
        except LedgerRevert as exc:
            raise UnexpectedRevertError(f"{operation}: screened call reverted: {exc.reason}") from exc

    # -- transfers ----------------------------------------------------------

    def _transfer(self, label, caller_seed, sender_seed, receiver_seed, id_seeds, amounts) -> OpResult:
        caller = self.universe.select_account(caller_seed)
        sender = self.universe.select_account(sender_seed)
        receiver = self.universe.select_account(receiver_seed)
        token_ids = self.universe.select_or_create_token_ids(id_seeds)

        reason = guards.batch_transfer_rejection(self.mirror, caller, sender, token_ids, amounts)
        if reason is not None:
            return self._reject(label, reason)

        if label == "transfer":
            self._call(label, self.ledger.transfer, caller, sender, receiver, token_ids[0], amounts[0], b"")
        else:
            self._call(label, self.ledger.batch_transfer, caller, sender, receiver, token_ids, list(amounts), b"")

        projected = self.mirror.copy()
        reconcile_batch_transfer(projected, caller, sender, receiver, token_ids, amounts)
        cells = {(a, t) for t in token_ids for a in (sender, receiver)}
        expect_balances(self.ledger, projected, cells, label)
        expect_supplies(self.ledger, projected, set(token_ids), label)
        expect_allowance_path(self.ledger, self.mirror, projected, caller, sender, token_ids, label)

        reconcile_batch_transfer(self.mirror, caller, sender, receiver, token_ids, amounts)
        return applied(label)

    def transfer(self, caller_seed: int, sender_seed: int, receiver_seed: int, id_seed: int, amount: int) -> OpResult:
        return self._transfer("transfer", caller_seed, sender_seed, receiver_seed, [id_seed], [amount])

    def batch_transfer(
        self,
        caller_seed: int,
        sender_seed: int,
        receiver_seed: int,
        id_seeds: Sequence[int],
        amounts: Sequence[int],
    ) -> OpResult:
        return self._transfer("batch_transfer", caller_seed, sender_seed, receiver_seed, id_seeds, amounts)

    # -- approvals ----------------------------------------------------------

    def set_operator(self, caller_seed: int, spender_seed: int, approved: bool) -> OpResult:
        caller = self.universe.select_account(caller_seed)
        spender = self.universe.select_account(spender_seed)

        self._call("set_operator", self.ledger.set_operator, caller, spender, approved)

        what = "set_operator: operator flag"
        assert_eq(observe(what, self.ledger.is_operator, caller, spender), bool(approved), what)
        updates.apply_set_operator(self.mirror, caller, spender, approved)
        return applied("set_operator")

    def _allowance_op(
        self,
        label: str,
        ledger_fn: Callable,
        update_fn: Callable,
        screen: Callable,
        caller_seed: int,
        spender_seed: int,
        id_seeds: Sequence[int],
        amounts: Sequence[int],
    ) -> OpResult:
        caller = self.universe.select_account(caller_seed)
        spender = self.universe.select_account(spender_seed)
        token_ids = self.universe.select_or_create_token_ids(id_seeds)

        reason = screen(caller, spender, token_ids, amounts)
        if reason is not None:
            return self._reject(label, reason)

        self._call(label, ledger_fn, caller, spender, token_ids, list(amounts))

        projected = self.mirror.copy()
        update_fn(projected, caller, spender, token_ids, amounts)
        expect_allowances(self.ledger, projected, {(caller, spender, t) for t in token_ids}, label)

        update_fn(self.mirror, caller, spender, token_ids, amounts)
        return applied(label)

    def _screen_approve(self, caller, spender, token_ids, amounts):
        return guards.batch_approve_rejection(token_ids, amounts)

    def _screen_increase(self, caller, spender, token_ids, deltas):
        return guards.batch_increase_rejection(self.mirror, caller, spender, token_ids, deltas)

    def _screen_decrease(self, caller, spender, token_ids, deltas):
        return guards.batch_decrease_rejection(self.mirror, caller, spender, token_ids, deltas)

    def approve(self, caller_seed: int, spender_seed: int, id_seed: int, amount: int) -> OpResult:
        return self._allowance_op(
            "approve",
            lambda c, s, ts, xs: self.ledger.approve(c, s, ts[0], xs[0]),
            updates.apply_batch_set_allowance,
            self._screen_approve,
            caller_seed, spender_seed, [id_seed], [amount],
        )

    def increase_allowance(self, caller_seed: int, spender_seed: int, id_seed: int, delta: int) -> OpResult:
        return self._allowance_op(
            "increase_allowance",
            lambda c, s, ts, xs: self.ledger.increase_allowance(c, s, ts[0], xs[0]),
            updates.apply_batch_increase_allowance,
            self._screen_increase,
            caller_seed, spender_seed, [id_seed], [delta],
        )

    def decrease_allowance(self, caller_seed: int, spender_seed: int, id_seed: int, delta: int) -> OpResult:
        return self._allowance_op(
            "decrease_allowance",
            lambda c, s, ts, xs: self.ledger.decrease_allowance(c, s, ts[0], xs[0]),
            updates.apply_batch_decrease_allowance,
            self._screen_decrease,
            caller_seed, spender_seed, [id_seed], [delta],
        )

    def batch_approve(
        self, caller_seed: int, spender_seed: int, id_seeds: Sequence[int], amounts: Sequence[int]
    ) -> OpResult:
        return self._allowance_op(
            "batch_approve",
            self.ledger.batch_approve,
            updates.apply_batch_set_allowance,
            self._screen_approve,
            caller_seed, spender_seed, id_seeds, amounts,
        )

    def batch_increase_allowance(
        self, caller_seed: int, spender_seed: int, id_seeds: Sequence[int], deltas: Sequence[int]
    ) -> OpResult:
        return self._allowance_op(
            "batch_increase_allowance",
            self.ledger.batch_increase_allowance,
            updates.apply_batch_increase_allowance,
            self._screen_increase,
            caller_seed, spender_seed, id_seeds, deltas,
        )

    def batch_decrease_allowance(
        self, caller_seed: int, spender_seed: int, id_seeds: Sequence[int], deltas: Sequence[int]
    ) -> OpResult:
        return self._allowance_op(
            "batch_decrease_allowance",
            self.ledger.batch_decrease_allowance,
            updates.apply_batch_decrease_allowance,
            self._screen_decrease,
            caller_seed, spender_seed, id_seeds, deltas,
        )

    # -- shadow tokens ------------------------------------------------------

    def register_shadow_token(self, caller_seed: int, id_seed: int) -> OpResult:
        caller = self.universe.select_account(caller_seed)
        token_id = self.universe.select_or_create_token_id(id_seed)

        reason = guards.register_rejection(self.mirror, token_id)
        if reason is not None:
            return self._reject("register_shadow_token", reason)

        handle = self._call("register_shadow_token", self.ledger.register_shadow_token, caller, token_id)

        what = "register_shadow_token: reported handle"
        assert_eq(observe(what, self.ledger.shadow_token_of, token_id), handle, what)
        what = "register_shadow_token: fresh shadow supply"
        shadow = observe(what, self.ledger.shadow_at, handle)
        assert_eq(observe(what, shadow.total_supply), 0, what)
        updates.apply_register_shadow(self.mirror, token_id, handle)
        return applied("register_shadow_token")

    def _to_shadow(self, label, caller_seed, owner_seed, id_seeds, amounts) -> OpResult:
        caller = self.universe.select_account(caller_seed)
        owner = self.universe.select_account(owner_seed)
        token_ids = self.universe.select_or_create_token_ids(id_seeds)

        reason = guards.batch_to_shadow_rejection(self.mirror, caller, owner, token_ids, amounts)
        if reason is not None:
            return self._reject(label, reason)

        if label == "transmute_to_shadow":
            self._call(label, self.ledger.transmute_to_shadow, caller, owner, token_ids[0], amounts[0])
        else:
            self._call(label, self.ledger.batch_transmute_to_shadow, caller, owner, token_ids, list(amounts))

        projected = self.mirror.copy()
        reconcile_to_shadow(projected, caller, owner, token_ids, amounts)
        expect_balances(self.ledger, projected, {(owner, t) for t in token_ids}, label)
        expect_supplies(self.ledger, projected, set(token_ids), label)
        expect_shadow_balances(self.ledger, projected, {(owner, t) for t in token_ids}, label)
        expect_allowance_path(self.ledger, self.mirror, projected, caller, owner, token_ids, label)

        reconcile_to_shadow(self.mirror, caller, owner, token_ids, amounts)
        return applied(label)

    def _from_shadow(self, label, caller_seed, id_seeds, amounts) -> OpResult:
        caller = self.universe.select_account(caller_seed)
        token_ids = self.universe.select_or_create_token_ids(id_seeds)

        reason = guards.batch_from_shadow_rejection(self.mirror, caller, token_ids, amounts)
        if reason is not None:
            return self._reject(label, reason)

        if label == "transmute_from_shadow":
            self._call(label, self.ledger.transmute_from_shadow, caller, token_ids[0], amounts[0])
        else:
            self._call(label, self.ledger.batch_transmute_from_shadow, caller, token_ids, list(amounts))

        projected = self.mirror.copy()
        reconcile_from_shadow(projected, caller, token_ids, amounts)
        expect_balances(self.ledger, projected, {(caller, t) for t in token_ids}, label)
        expect_supplies(self.ledger, projected, set(token_ids), label)
        expect_shadow_balances(self.ledger, projected, {(caller, t) for t in token_ids}, label)

        reconcile_from_shadow(self.mirror, caller, token_ids, amounts)
        return applied(label)

    def transmute_to_shadow(self, caller_seed: int, owner_seed: int, id_seed: int, amount: int) -> OpResult:
        return self._to_shadow("transmute_to_shadow", caller_seed, owner_seed, [id_seed], [amount])

    def transmute_from_shadow(self, caller_seed: int, id_seed: int, amount: int) -> OpResult:
        return self._from_shadow("transmute_from_shadow", caller_seed, [id_seed], [amount])

    def batch_transmute_to_shadow(
        self, caller_seed: int, owner_seed: int, id_seeds: Sequence[int], amounts: Sequence[int]
    ) -> OpResult:
        return self._to_shadow("batch_transmute_to_shadow", caller_seed, owner_seed, id_seeds, amounts)

    def batch_transmute_from_shadow(
        self, caller_seed: int, id_seeds: Sequence[int], amounts: Sequence[int]
    ) -> OpResult:
        return self._from_shadow("batch_transmute_from_shadow", caller_seed, id_seeds, amounts)
