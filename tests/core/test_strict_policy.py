"""StrictPolicy: call first, then precondition and post-state assertions."""

from __future__ import annotations

import pytest

from shadowfuzz.core import InvariantChecker, PolicyAssertionError, StrictPolicy
from shadowfuzz.core.universe import UniverseGenerator
from shadowfuzz.ledger import LedgerRevert, ReferenceLedger, make_faulty_ledger
from shadowfuzz.state import MirrorState

ALICE, BOB, CAROL = 1, 2, 3


def _policy(ledger=None) -> StrictPolicy:
    mirror = MirrorState()
    ledger = ReferenceLedger() if ledger is None else ledger
    return StrictPolicy(mirror, ledger, UniverseGenerator(mirror, ledger, reuse_percent=0))


def _holding(policy, seed: int):
    account = policy.universe.select_account(seed)
    token_id = next(t for t in policy.mirror.known_token_ids() if policy.mirror.balance_of(account, t) > 0)
    return account, token_id, policy.mirror.balance_of(account, token_id)


class TestApprovalPaths:
    def test_operator_takes_precedence_over_allowance(self):
        p = _policy()
        alice, token_id, _ = _holding(p, ALICE)
        bob = p.universe.select_account(BOB)
        assert p.set_operator(ALICE, BOB, True).applied
        assert p.approve(ALICE, BOB, token_id, 5).applied
        assert p.transfer(BOB, ALICE, CAROL, token_id, 1).applied
        assert p.ledger.allowance(alice, bob, token_id) == 5
        assert p.mirror.allowance_of(alice, bob, token_id) == 5

    def test_allowance_is_spent(self):
        p = _policy()
        alice, token_id, _ = _holding(p, ALICE)
        bob = p.universe.select_account(BOB)
        assert p.approve(ALICE, BOB, token_id, 5).applied
        assert p.transfer(BOB, ALICE, CAROL, token_id, 2).applied
        assert p.mirror.allowance_of(alice, bob, token_id) == 3
        assert InvariantChecker(p.mirror, p.ledger).check_all() == []

    def test_batch_increase_accumulates(self):
        p = _policy()
        alice, token_id, _ = _holding(p, ALICE)
        bob = p.universe.select_account(BOB)
        assert p.batch_increase_allowance(ALICE, BOB, [token_id, token_id], [2, 3]).applied
        assert p.ledger.allowance(alice, bob, token_id) == 5


class TestReverts:
    def test_revert_propagates_and_leaves_the_mirror(self):
        p = _policy()
        alice, token_id, amount = _holding(p, ALICE)
        with pytest.raises(LedgerRevert):
            p.transfer(BOB, ALICE, CAROL, token_id, 1)
        assert p.mirror.balance_of(alice, token_id) == amount
        assert InvariantChecker(p.mirror, p.ledger).check_all() == []

    def test_second_registration_reverts_on_a_correct_ledger(self):
        p = _policy()
        _, token_id, _ = _holding(p, ALICE)
        assert p.register_shadow_token(ALICE, token_id).applied
        with pytest.raises(LedgerRevert):
            p.register_shadow_token(ALICE, token_id)


class TestDetection:
    def test_lenient_batch(self):
        p = _policy(make_faulty_ledger("lenient_batch"))
        alice, token_id, amount = _holding(p, ALICE)
        with pytest.raises(PolicyAssertionError, match="lists must have matched"):
            p.batch_transfer(ALICE, ALICE, BOB, [token_id, token_id], [1])
        assert p.mirror.balance_of(alice, token_id) == amount

    def test_reregistration(self):
        p = _policy(make_faulty_ledger("reregister"))
        _, token_id, _ = _holding(p, ALICE)
        assert p.register_shadow_token(ALICE, token_id).applied
        with pytest.raises(PolicyAssertionError, match="already registered"):
            p.register_shadow_token(BOB, token_id)

    def test_allowance_not_spent(self):
        p = _policy(make_faulty_ledger("skip_allowance_spend"))
        _, token_id, _ = _holding(p, ALICE)
        assert p.approve(ALICE, BOB, token_id, 5).applied
        with pytest.raises(PolicyAssertionError, match="must drop"):
            p.transfer(BOB, ALICE, CAROL, token_id, 3)

    def test_supply_leak(self):
        p = _policy(make_faulty_ledger("leaky_supply"))
        _, token_id, _ = _holding(p, ALICE)
        assert p.register_shadow_token(ALICE, token_id).applied
        with pytest.raises(PolicyAssertionError, match="total supply"):
            p.batch_transmute_to_shadow(ALICE, ALICE, [token_id], [1])


class _UnreadableShadowLedger(ReferenceLedger):
    def shadow_at(self, handle):
        raise LedgerRevert("unknown handle")


class TestPostCallReads:
    def test_reverting_view_is_not_reported_as_a_revert(self):
        p = _policy(_UnreadableShadowLedger())
        _, token_id, _ = _holding(p, ALICE)
        with pytest.raises(PolicyAssertionError, match="fresh shadow supply: ledger read reverted"):
            p.register_shadow_token(ALICE, token_id)
