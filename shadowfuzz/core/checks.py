"""
Inline assertion helpers for the Strict and Discriminate policies.

Unlike bare `assert`, these survive `python -O` and raise
`PolicyAssertionError` with the label of the failed check.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Tuple

from ..ledger.errors import LedgerRevert
from ..ledger.interface import Ledger
from ..state.mirror import Account, MirrorState, TokenId
from .errors import PolicyAssertionError
from .guards import needs_allowance


def assert_true(condition: bool, label: str) -> None:
    if not condition:
        raise PolicyAssertionError(label)


def assert_eq(actual: Any, expected: Any, label: str) -> None:
    if actual != expected:
        raise PolicyAssertionError(f"{label}: expected {expected!r}, got {actual!r}")


def assert_implies(condition: bool, requirement: bool, label: str) -> None:
    """Fail iff `condition` holds and `requirement` does not."""
    if condition and not requirement:
        raise PolicyAssertionError(f"{label} (implication failed)")


def observe(label: str, read: Callable[..., Any], *args: Any) -> Any:
    """Post-call ledger read. A view that reverts here is a ledger defect, not a rejected call."""
    try:
        return read(*args)
    except LedgerRevert as exc:
        raise PolicyAssertionError(f"{label}: ledger read reverted ({exc.reason})") from exc


# ---------------------------------------------------------------------------
# SUT-versus-projection comparisons
# ---------------------------------------------------------------------------


def expect_balances(
    ledger: Ledger, projected: MirrorState, cells: Iterable[Tuple[Account, TokenId]], label: str
) -> None:
    for account, token_id in cells:
        what = f"{label}: balance of {account} in id {token_id}"
        assert_eq(observe(what, ledger.balance_of, account, token_id), projected.balance_of(account, token_id), what)


def expect_supplies(ledger: Ledger, projected: MirrorState, token_ids: Iterable[TokenId], label: str) -> None:
    for token_id in token_ids:
        what = f"{label}: total supply of id {token_id}"
        assert_eq(observe(what, ledger.total_supply, token_id), projected.supply_of(token_id), what)


def expect_allowances(
    ledger: Ledger, projected: MirrorState, cells: Iterable[Tuple[Account, Account, TokenId]], label: str
) -> None:
    for owner, spender, token_id in cells:
        what = f"{label}: allowance {owner} -> {spender} in id {token_id}"
        assert_eq(
            observe(what, ledger.allowance, owner, spender, token_id),
            projected.allowance_of(owner, spender, token_id),
            what,
        )


def expect_shadow_balances(
    ledger: Ledger, projected: MirrorState, cells: Iterable[Tuple[Account, TokenId]], label: str
) -> None:
    for account, token_id in cells:
        handle = projected.shadow_token_of(token_id)
        assert_true(handle is not None, f"{label}: id {token_id} has no shadow token in the model")
        what = f"{label}: shadow balance of {account} in id {token_id}"
        shadow = observe(what, ledger.shadow_at, handle)
        assert_eq(observe(what, shadow.balance_of, account), projected.shadow_balance_of(account, token_id), what)


def expect_allowance_path(
    ledger: Ledger,
    pre: MirrorState,
    projected: MirrorState,
    caller: Account,
    owner: Account,
    token_ids: Iterable[TokenId],
    label: str,
) -> None:
    """
    Allowance post-state of a transfer-style call.

    Which cell is expected depends on the approval path that authorized the
    call, so both branches are stated as implications.
    """
    gated = needs_allowance(pre, caller, owner)
    for token_id in set(token_ids):
        observed = observe(f"{label}: allowance of {caller} over {owner}", ledger.allowance, owner, caller, token_id)
        assert_implies(
            gated,
            observed == projected.allowance_of(owner, caller, token_id),
            f"{label}: allowance of {caller} over {owner} in id {token_id} must drop by the amount spent",
        )
        assert_implies(
            not gated,
            observed == pre.allowance_of(owner, caller, token_id),
            f"{label}: owner/operator path must leave the allowance of {caller} in id {token_id} untouched",
        )
