from __future__ import annotations

import pytest

from shadowfuzz.core import INVARIANT_REGISTRY, InvariantChecker, InvariantViolationError
from shadowfuzz.ledger import ReferenceLedger
from shadowfuzz.state import MintEvent, MirrorState
from shadowfuzz.state import updates

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b0" * 20


def _pair(amount: int = 100):
    """Mirror and ledger holding the same single mint."""
    mirror = MirrorState()
    ledger = ReferenceLedger()
    mirror.add_account(ALICE)
    mirror.add_account(BOB)
    mirror.add_token_id(1)
    ledger.mint(ALICE, 1, amount)
    updates.apply_mint(mirror, MintEvent(ALICE, 1, amount))
    return mirror, ledger


def test_registry_names_every_check():
    assert set(INVARIANT_REGISTRY) == {
        "inv_conservation",
        "inv_balance_fidelity",
        "inv_supply_fidelity",
        "inv_shadow_balance_fidelity",
        "inv_shadow_handle_fidelity",
        "inv_registration_write_once",
        "inv_shadow_conservation",
        "inv_allowance_fidelity",
        "inv_operator_fidelity",
        "inv_roster_coverage",
    }


def test_agreeing_states_pass():
    mirror, ledger = _pair()
    checker = InvariantChecker(mirror, ledger)
    assert checker.check_all() == []
    checker.assert_all()


def test_ledger_side_mint_breaks_fidelity():
    mirror, ledger = _pair()
    ledger.mint(BOB, 1, 5)
    checker = InvariantChecker(mirror, ledger)
    assert checker.check("inv_balance_fidelity")
    assert checker.check("inv_supply_fidelity")
    assert checker.check("inv_conservation") == []
    with pytest.raises(InvariantViolationError) as exc:
        checker.assert_all()
    assert any(v.startswith("inv_balance_fidelity: ") for v in exc.value.violations)


def test_mirror_conservation():
    mirror, ledger = _pair()
    mirror.total_supply[1] = 99
    assert InvariantChecker(mirror, ledger).check("inv_conservation")


def test_shadow_checks():
    mirror, ledger = _pair()
    handle = ledger.register_shadow_token(ALICE, 1)
    updates.apply_register_shadow(mirror, 1, handle)
    ledger.transmute_to_shadow(ALICE, ALICE, 1, 10)
    updates.apply_transmute_to_shadow(mirror, ALICE, 1, 10)
    checker = InvariantChecker(mirror, ledger)
    assert checker.check_all() == []

    mirror.shadow_balances[(BOB, 1)] = 1
    assert checker.check("inv_shadow_balance_fidelity")
    assert checker.check("inv_shadow_conservation")


def test_unmirrored_registration():
    mirror, ledger = _pair()
    ledger.register_shadow_token(BOB, 1)
    assert InvariantChecker(mirror, ledger).check("inv_registration_write_once")


def test_unresolvable_handle():
    mirror, ledger = _pair()
    updates.apply_register_shadow(mirror, 1, "0x" + "ee" * 20)
    checker = InvariantChecker(mirror, ledger)
    assert checker.check("inv_shadow_balance_fidelity")
    assert checker.check("inv_shadow_handle_fidelity")


def test_allowance_and_operator_fidelity():
    mirror, ledger = _pair()
    updates.apply_set_allowance(mirror, ALICE, BOB, 1, 7)
    updates.apply_set_operator(mirror, ALICE, BOB, True)
    checker = InvariantChecker(mirror, ledger)
    assert checker.check("inv_allowance_fidelity")
    assert checker.check("inv_operator_fidelity")
    ledger.approve(ALICE, BOB, 1, 7)
    ledger.set_operator(ALICE, BOB, True)
    assert checker.check_all() == []


def test_roster_coverage():
    mirror, ledger = _pair()
    mirror.balances[("0x" + "cc" * 20, 1)] = 0
    assert InvariantChecker(mirror, ledger).check("inv_roster_coverage")
