"""
Strict policy: prepare -> call -> assert preconditions -> assert post-state -> reconcile.

The call happens first. If it returns, Strict asserts that the inputs must have
been legitimate (evaluated against the PRE-state mirror) and that every cell
the operation touches on the ledger equals the mirror's projected post-state.

Only meaningful when the driver tolerates reverts: an invalid call raises
`LedgerRevert` before any assertion runs, and the mirror is left as it was.
"""

from __future__ import annotations

from typing import Sequence

from ...state import updates
from .. import guards
from ..checks import (
    assert_eq,
    assert_implies,
    assert_true,
    expect_allowance_path,
    expect_allowances,
    expect_balances,
    expect_shadow_balances,
    expect_supplies,
    observe,
)
from .base import LedgerTestPolicy, OpResult, applied
from .reconcile import (
    reconcile_batch_transfer,
    reconcile_from_shadow,
    reconcile_to_shadow,
    reconcile_transfer,
)


class StrictPolicy(LedgerTestPolicy):
    name = "strict"

    # -- shared post-call checks --------------------------------------------

    def _assert_spend_preconditions(self, label, caller, owner, token_ids, amounts) -> None:
        gated = guards.needs_allowance(self.mirror, caller, owner)
        for token_id, total in guards.totals_by_id(token_ids, amounts).items():
            assert_implies(
                gated,
                guards.allowance_covers(self.mirror, owner, caller, token_id, total),
                f"{label}: allowance of {caller} over {owner} in id {token_id} must have covered {total}",
            )
            assert_true(
                guards.balance_covers(self.mirror, owner, token_id, total),
                f"{label}: balance of {owner} in id {token_id} must have covered {total}",
            )

    # -- transfers ----------------------------------------------------------

    def transfer(self, caller_seed: int, sender_seed: int, receiver_seed: int, id_seed: int, amount: int) -> OpResult:
        caller = self.universe.select_account(caller_seed)
        sender = self.universe.select_account(sender_seed)
        receiver = self.universe.select_account(receiver_seed)
        token_id = self.universe.select_or_create_token_id(id_seed)

        self.ledger.transfer(caller, sender, receiver, token_id, amount, b"")

        self._assert_spend_preconditions("transfer", caller, sender, [token_id], [amount])
        projected = self.mirror.copy()
        reconcile_transfer(projected, caller, sender, receiver, token_id, amount)
        expect_balances(self.ledger, projected, [(sender, token_id), (receiver, token_id)], "transfer")
        expect_supplies(self.ledger, projected, [token_id], "transfer")
        expect_allowance_path(self.ledger, self.mirror, projected, caller, sender, [token_id], "transfer")

        reconcile_transfer(self.mirror, caller, sender, receiver, token_id, amount)
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

        self.ledger.batch_transfer(caller, sender, receiver, token_ids, list(amounts), b"")

        assert_eq(len(token_ids), len(amounts), "batch_transfer: id and amount lists must have matched")
        self._assert_spend_preconditions("batch_transfer", caller, sender, token_ids, amounts)
        projected = self.mirror.copy()
        reconcile_batch_transfer(projected, caller, sender, receiver, token_ids, amounts)
        cells = {(a, t) for t in token_ids for a in (sender, receiver)}
        expect_balances(self.ledger, projected, cells, "batch_transfer")
        expect_supplies(self.ledger, projected, set(token_ids), "batch_transfer")
        expect_allowance_path(self.ledger, self.mirror, projected, caller, sender, token_ids, "batch_transfer")

        reconcile_batch_transfer(self.mirror, caller, sender, receiver, token_ids, amounts)
        return applied("batch_transfer")

    # -- approvals ----------------------------------------------------------

    def set_operator(self, caller_seed: int, spender_seed: int, approved: bool) -> OpResult:
        caller = self.universe.select_account(caller_seed)
        spender = self.universe.select_account(spender_seed)

        self.ledger.set_operator(caller, spender, approved)

        what = "set_operator: operator flag"
        assert_eq(observe(what, self.ledger.is_operator, caller, spender), bool(approved), what)
        updates.apply_set_operator(self.mirror, caller, spender, approved)
        return applied("set_operator")

    def _allowance_op(self, label, ledger_fn, update_fn, caller_seed, spender_seed, id_seeds, amounts, precondition):
        caller = self.universe.select_account(caller_seed)
        spender = self.universe.select_account(spender_seed)
        token_ids = self.universe.select_or_create_token_ids(id_seeds)

        ledger_fn(caller, spender, token_ids, list(amounts))

        assert_eq(len(token_ids), len(amounts), f"{label}: id and amount lists must have matched")
        if precondition is not None:
            for token_id, total in guards.totals_by_id(token_ids, amounts).items():
                assert_true(
                    precondition(self.mirror, caller, spender, token_id, total),
                    f"{label}: allowance of {spender} over {caller} in id {token_id} could not absorb {total}",
                )
        projected = self.mirror.copy()
        update_fn(projected, caller, spender, token_ids, amounts)
        expect_allowances(self.ledger, projected, {(caller, spender, t) for t in token_ids}, label)

        update_fn(self.mirror, caller, spender, token_ids, amounts)
        return applied(label)

    def approve(self, caller_seed: int, spender_seed: int, id_seed: int, amount: int) -> OpResult:
        return self._allowance_op(
            "approve",
            lambda c, s, ts, xs: self.ledger.approve(c, s, ts[0], xs[0]),
            updates.apply_batch_set_allowance,
            caller_seed, spender_seed, [id_seed], [amount],
            None,
        )

    def increase_allowance(self, caller_seed: int, spender_seed: int, id_seed: int, delta: int) -> OpResult:
        return self._allowance_op(
            "increase_allowance",
            lambda c, s, ts, xs: self.ledger.increase_allowance(c, s, ts[0], xs[0]),
            updates.apply_batch_increase_allowance,
            caller_seed, spender_seed, [id_seed], [delta],
            guards.increase_fits,
        )

    def decrease_allowance(self, caller_seed: int, spender_seed: int, id_seed: int, delta: int) -> OpResult:
        return self._allowance_op(
            "decrease_allowance",
            lambda c, s, ts, xs: self.ledger.decrease_allowance(c, s, ts[0], xs[0]),
            updates.apply_batch_decrease_allowance,
            caller_seed, spender_seed, [id_seed], [delta],
            guards.decrease_fits,
        )

    def batch_approve(
        self, caller_seed: int, spender_seed: int, id_seeds: Sequence[int], amounts: Sequence[int]
    ) -> OpResult:
        return self._allowance_op(
            "batch_approve",
            self.ledger.batch_approve,
            updates.apply_batch_set_allowance,
            caller_seed, spender_seed, id_seeds, amounts,
            None,
        )

    def batch_increase_allowance(
        self, caller_seed: int, spender_seed: int, id_seeds: Sequence[int], deltas: Sequence[int]
    ) -> OpResult:
        return self._allowance_op(
            "batch_increase_allowance",
            self.ledger.batch_increase_allowance,
            updates.apply_batch_increase_allowance,
            caller_seed, spender_seed, id_seeds, deltas,
            guards.increase_fits,
        )

    def batch_decrease_allowance(
        self, caller_seed: int, spender_seed: int, id_seeds: Sequence[int], deltas: Sequence[int]
    ) -> OpResult:
        return self._allowance_op(
            "batch_decrease_allowance",
            self.ledger.batch_decrease_allowance,
            updates.apply_batch_decrease_allowance,
            caller_seed, spender_seed, id_seeds, deltas,
            guards.decrease_fits,
        )

    # -- shadow tokens ------------------------------------------------------

    def register_shadow_token(self, caller_seed: int, id_seed: int) -> OpResult:
        caller = self.universe.select_account(caller_seed)
        token_id = self.universe.select_or_create_token_id(id_seed)

        handle = self.ledger.register_shadow_token(caller, token_id)

        assert_true(
            not self.mirror.is_registered(token_id),
            f"register_shadow_token: id {token_id} was already registered to {self.mirror.shadow_token_of(token_id)}",
        )
        assert_true(
            self.mirror.supply_of(token_id) > 0,
            f"register_shadow_token: id {token_id} had no circulating supply",
        )
        what = "register_shadow_token: reported handle"
        assert_eq(observe(what, self.ledger.shadow_token_of, token_id), handle, what)
        what = "register_shadow_token: fresh shadow supply"
        shadow = observe(what, self.ledger.shadow_at, handle)
        assert_eq(observe(what, shadow.total_supply), 0, what)

        updates.apply_register_shadow(self.mirror, token_id, handle)
        return applied("register_shadow_token")

    def _to_shadow(self, label, caller, owner, token_ids, amounts) -> OpResult:
        assert_eq(len(token_ids), len(amounts), f"{label}: id and amount lists must have matched")
        for token_id in token_ids:
            assert_true(self.mirror.is_registered(token_id), f"{label}: id {token_id} must have been registered")
        self._assert_spend_preconditions(label, caller, owner, token_ids, amounts)

        projected = self.mirror.copy()
        reconcile_to_shadow(projected, caller, owner, token_ids, amounts)
        expect_balances(self.ledger, projected, {(owner, t) for t in token_ids}, label)
        expect_supplies(self.ledger, projected, set(token_ids), label)
        expect_shadow_balances(self.ledger, projected, {(owner, t) for t in token_ids}, label)
        expect_allowance_path(self.ledger, self.mirror, projected, caller, owner, token_ids, label)

        reconcile_to_shadow(self.mirror, caller, owner, token_ids, amounts)
        return applied(label)

    def _from_shadow(self, label, caller, token_ids, amounts) -> OpResult:
        assert_eq(len(token_ids), len(amounts), f"{label}: id and amount lists must have matched")
        for token_id in token_ids:
            assert_true(self.mirror.is_registered(token_id), f"{label}: id {token_id} must have been registered")
        for token_id, total in guards.totals_by_id(token_ids, amounts).items():
            assert_true(
                guards.shadow_balance_covers(self.mirror, caller, token_id, total),
                f"{label}: shadow balance of {caller} in id {token_id} must have covered {total}",
            )

        projected = self.mirror.copy()
        reconcile_from_shadow(projected, caller, token_ids, amounts)
        expect_balances(self.ledger, projected, {(caller, t) for t in token_ids}, label)
        expect_supplies(self.ledger, projected, set(token_ids), label)
        expect_shadow_balances(self.ledger, projected, {(caller, t) for t in token_ids}, label)

        reconcile_from_shadow(self.mirror, caller, token_ids, amounts)
        return applied(label)

    def transmute_to_shadow(self, caller_seed: int, owner_seed: int, id_seed: int, amount: int) -> OpResult:
        caller = self.universe.select_account(caller_seed)
        owner = self.universe.select_account(owner_seed)
        token_id = self.universe.select_or_create_token_id(id_seed)

        self.ledger.transmute_to_shadow(caller, owner, token_id, amount)
        return self._to_shadow("transmute_to_shadow", caller, owner, [token_id], [amount])

    def transmute_from_shadow(self, caller_seed: int, id_seed: int, amount: int) -> OpResult:
        caller = self.universe.select_account(caller_seed)
        token_id = self.universe.select_or_create_token_id(id_seed)

        self.ledger.transmute_from_shadow(caller, token_id, amount)
        return self._from_shadow("transmute_from_shadow", caller, [token_id], [amount])

    def batch_transmute_to_shadow(
        self, caller_seed: int, owner_seed: int, id_seeds: Sequence[int], amounts: Sequence[int]
    ) -> OpResult:
        caller = self.universe.select_account(caller_seed)
        owner = self.universe.select_account(owner_seed)
        token_ids = self.universe.select_or_create_token_ids(id_seeds)

        self.ledger.batch_transmute_to_shadow(caller, owner, token_ids, list(amounts))
        return self._to_shadow("batch_transmute_to_shadow", caller, owner, token_ids, amounts)

    def batch_transmute_from_shadow(
        self, caller_seed: int, id_seeds: Sequence[int], amounts: Sequence[int]
    ) -> OpResult:
        caller = self.universe.select_account(caller_seed)
        token_ids = self.universe.select_or_create_token_ids(id_seeds)

        self.ledger.batch_transmute_from_shadow(caller, token_ids, list(amounts))
        return self._from_shadow("batch_transmute_from_shadow", caller, token_ids, amounts)
