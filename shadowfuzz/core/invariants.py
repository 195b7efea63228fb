"""
Global invariant sweep.

Each checker compares the mirror with the ledger (or the mirror with itself)
across the whole known universe and returns a list of violation messages
(empty = holds). `InvariantChecker.check_all()` concatenates them;
`assert_all()` raises `InvariantViolationError`.

The sweep reads only. It can run after every operation or only at run
boundaries without changing the outcome of the run.
"""

from __future__ import annotations

from typing import Callable, Dict, List

from ..ledger.errors import LedgerRevert
from ..ledger.interface import Ledger
from ..state.mirror import MirrorState
from .errors import InvariantViolationError


CheckFn = Callable[[MirrorState, Ledger], List[str]]


def inv_conservation(m: MirrorState, ledger: Ledger) -> List[str]:
    """Total supply equals the sum of balances over known accounts."""
    accounts = m.known_accounts()
    out: List[str] = []
    for token_id in m.known_token_ids():
        held = sum(m.balance_of(a, token_id) for a in accounts)
        if held != m.supply_of(token_id):
            out.append(f"id {token_id}: mirror supply {m.supply_of(token_id)} != sum of balances {held}")
    return out


def inv_balance_fidelity(m: MirrorState, ledger: Ledger) -> List[str]:
    out: List[str] = []
    for account in m.known_accounts():
        for token_id in m.known_token_ids():
            observed = ledger.balance_of(account, token_id)
            expected = m.balance_of(account, token_id)
            if observed != expected:
                out.append(f"balance {account} id {token_id}: ledger {observed} != mirror {expected}")
    return out


def inv_supply_fidelity(m: MirrorState, ledger: Ledger) -> List[str]:
    out: List[str] = []
    for token_id in m.known_token_ids():
        observed = ledger.total_supply(token_id)
        if observed != m.supply_of(token_id):
            out.append(f"supply id {token_id}: ledger {observed} != mirror {m.supply_of(token_id)}")
    return out


def inv_shadow_balance_fidelity(m: MirrorState, ledger: Ledger) -> List[str]:
    out: List[str] = []
    for token_id in m.known_registered_ids():
        handle = m.shadow_token_of(token_id)
        try:
            token = ledger.shadow_at(handle)
        except LedgerRevert as exc:
            out.append(f"shadow id {token_id}: handle {handle} not resolvable ({exc.reason})")
            continue
        for account in m.known_accounts():
            observed = token.balance_of(account)
            expected = m.shadow_balance_of(account, token_id)
            if observed != expected:
                out.append(f"shadow balance {account} id {token_id}: ledger {observed} != mirror {expected}")
    return out


def inv_shadow_handle_fidelity(m: MirrorState, ledger: Ledger) -> List[str]:
    out: List[str] = []
    for token_id in m.known_registered_ids():
        observed = ledger.shadow_token_of(token_id)
        if observed != m.shadow_token_of(token_id):
            out.append(f"shadow handle id {token_id}: ledger {observed} != mirror {m.shadow_token_of(token_id)}")
    return out


def inv_registration_write_once(m: MirrorState, ledger: Ledger) -> List[str]:
    out: List[str] = []
    roster = m.known_registered_ids()
    if len(set(roster)) != len(roster):
        out.append("registered-id roster contains duplicates")
    if set(roster) != set(m.shadow_tokens):
        out.append("registered-id roster disagrees with the mirror's shadow handle table")
    for token_id in m.known_token_ids():
        if not m.is_registered(token_id) and ledger.shadow_token_of(token_id) is not None:
            out.append(f"id {token_id}: ledger reports a shadow token the mirror never registered")
    return out


def inv_shadow_conservation(m: MirrorState, ledger: Ledger) -> List[str]:
    accounts = m.known_accounts()
    out: List[str] = []
    for token_id in m.known_registered_ids():
        held = sum(m.shadow_balance_of(a, token_id) for a in accounts)
        recorded = m.shadow_supply_of(token_id)
        if held != recorded:
            out.append(f"shadow id {token_id}: balances of known accounts {held} != recorded shadow total {recorded}")
        try:
            observed = ledger.shadow_at(m.shadow_token_of(token_id)).total_supply()
        except LedgerRevert as exc:
            out.append(f"shadow id {token_id}: supply not readable ({exc.reason})")
            continue
        if observed != recorded:
            out.append(f"shadow supply id {token_id}: ledger {observed} != mirror {recorded}")
    return out


def inv_allowance_fidelity(m: MirrorState, ledger: Ledger) -> List[str]:
    out: List[str] = []
    for (owner, spender, token_id), expected in m.allowances.items():
        observed = ledger.allowance(owner, spender, token_id)
        if observed != expected:
            out.append(f"allowance {owner}->{spender} id {token_id}: ledger {observed} != mirror {expected}")
    return out


def inv_operator_fidelity(m: MirrorState, ledger: Ledger) -> List[str]:
    out: List[str] = []
    for (owner, spender), expected in m.operators.items():
        observed = ledger.is_operator(owner, spender)
        if observed != expected:
            out.append(f"operator {owner}->{spender}: ledger {observed} != mirror {expected}")
    return out


def inv_roster_coverage(m: MirrorState, ledger: Ledger) -> List[str]:
    """Every account holding a mirror cell is on the roster (so the sweeps see it)."""
    stray = sorted(a for a in m.touched_accounts() if not m.has_account(a))
    return [f"account {a} holds balances but is not a known account" for a in stray]


# ---------------------------------------------------------------------------
# Registry + checker
# ---------------------------------------------------------------------------

INVARIANT_REGISTRY: Dict[str, CheckFn] = {
    "inv_conservation": inv_conservation,
    "inv_balance_fidelity": inv_balance_fidelity,
    "inv_supply_fidelity": inv_supply_fidelity,
    "inv_shadow_balance_fidelity": inv_shadow_balance_fidelity,
    "inv_shadow_handle_fidelity": inv_shadow_handle_fidelity,
    "inv_registration_write_once": inv_registration_write_once,
    "inv_shadow_conservation": inv_shadow_conservation,
    "inv_allowance_fidelity": inv_allowance_fidelity,
    "inv_operator_fidelity": inv_operator_fidelity,
    "inv_roster_coverage": inv_roster_coverage,
}


class InvariantChecker:
    def __init__(self, mirror: MirrorState, ledger: Ledger) -> None:
        self.mirror = mirror
        self.ledger = ledger

    def check(self, inv_id: str) -> List[str]:
        return INVARIANT_REGISTRY[inv_id](self.mirror, self.ledger)

    def check_all(self) -> List[str]:
        """Return `"<inv_id>: <detail>"` for every violation (empty = all pass)."""
        return [
            f"{inv_id}: {detail}"
            for inv_id, check_fn in INVARIANT_REGISTRY.items()
            for detail in check_fn(self.mirror, self.ledger)
        ]

    def assert_all(self) -> None:
        violations = self.check_all()
        if violations:
            raise InvariantViolationError(violations)
