from __future__ import annotations

import importlib.util

import pytest

if importlib.util.find_spec("hypothesis") is None:  # pragma: no cover
    pytest.skip("hypothesis not installed", allow_module_level=True)

from hypothesis import given, strategies as st

from shadowfuzz.core import guards
from shadowfuzz.state import MAX_UINT256, MintEvent, MirrorState
from shadowfuzz.state import updates

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b0" * 20


def _mirror() -> MirrorState:
    m = MirrorState()
    m.add_account(ALICE)
    m.add_account(BOB)
    updates.apply_mint(m, MintEvent(ALICE, 1, 100))
    return m


class TestTransferRejection:
    def test_owner_within_balance(self):
        assert guards.transfer_rejection(_mirror(), ALICE, ALICE, 1, 100) is None

    def test_owner_over_balance(self):
        assert guards.transfer_rejection(_mirror(), ALICE, ALICE, 1, 101) == "balance"

    def test_spender_without_allowance(self):
        assert guards.transfer_rejection(_mirror(), BOB, ALICE, 1, 1) == "allowance"

    def test_operator_needs_no_allowance(self):
        m = _mirror()
        updates.apply_set_operator(m, ALICE, BOB, True)
        assert guards.transfer_rejection(m, BOB, ALICE, 1, 50) is None

    def test_batch_totals_duplicate_ids(self):
        m = _mirror()
        assert guards.batch_transfer_rejection(m, ALICE, ALICE, [1, 1], [60, 40]) is None
        assert guards.batch_transfer_rejection(m, ALICE, ALICE, [1, 1], [60, 41]) == "balance"

    def test_batch_shape(self):
        m = _mirror()
        assert guards.batch_transfer_rejection(m, ALICE, ALICE, [1, 1], [1]) == "length_mismatch"
        assert guards.batch_transfer_rejection(m, ALICE, ALICE, [1], [MAX_UINT256 + 1]) == "amount_range"


class TestAllowanceRejection:
    def test_increase_overflow(self):
        m = _mirror()
        updates.apply_set_allowance(m, ALICE, BOB, 1, MAX_UINT256 - 1)
        assert guards.batch_increase_rejection(m, ALICE, BOB, [1], [1]) is None
        assert guards.batch_increase_rejection(m, ALICE, BOB, [1, 1], [1, 1]) == "allowance_overflow"

    def test_decrease_underflow(self):
        m = _mirror()
        updates.apply_set_allowance(m, ALICE, BOB, 1, 5)
        assert guards.batch_decrease_rejection(m, ALICE, BOB, [1], [5]) is None
        assert guards.batch_decrease_rejection(m, ALICE, BOB, [1, 1], [3, 3]) == "allowance_underflow"

    def test_approve_only_checks_shape(self):
        assert guards.batch_approve_rejection([1, 2], [MAX_UINT256, 0]) is None
        assert guards.batch_approve_rejection([1, 2], [0]) == "length_mismatch"


class TestShadowRejection:
    def test_register(self):
        m = _mirror()
        assert guards.register_rejection(m, 2) == "no_supply"
        assert guards.register_rejection(m, 1) is None
        updates.apply_register_shadow(m, 1, "0x" + "5a" * 20)
        assert guards.register_rejection(m, 1) == "already_registered"
        assert not guards.can_register(m, 1)

    def test_to_and_from_shadow(self):
        m = _mirror()
        assert guards.to_shadow_rejection(m, ALICE, ALICE, 1, 1) == "not_registered"
        updates.apply_register_shadow(m, 1, "0x" + "5a" * 20)
        assert guards.to_shadow_rejection(m, ALICE, ALICE, 1, 100) is None
        assert guards.to_shadow_rejection(m, BOB, ALICE, 1, 1) == "allowance"
        assert guards.from_shadow_rejection(m, ALICE, 1, 1) == "shadow_balance"
        updates.apply_transmute_to_shadow(m, ALICE, 1, 10)
        assert guards.from_shadow_rejection(m, ALICE, 1, 10) is None
        assert guards.batch_from_shadow_rejection(m, ALICE, [1, 1], [5, 6]) == "shadow_balance"


@given(
    pairs=st.lists(
        st.tuples(st.integers(min_value=0, max_value=5), st.integers(min_value=0, max_value=10**30)),
        max_size=12,
    )
)
def test_totals_by_id_preserves_the_grand_total(pairs) -> None:
    ids = [p[0] for p in pairs]
    amounts = [p[1] for p in pairs]
    totals = guards.totals_by_id(ids, amounts)
    assert sum(totals.values()) == sum(amounts)
    assert set(totals) == set(ids)
