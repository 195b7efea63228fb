"""
Precondition predicates, evaluated against the PRE-state mirror.

Strict asserts them after a call went through ("this must have been true for
the call to be legitimate"); Discriminate evaluates the `*_rejection`
composites before calling and skips the draw when one returns a reason.

Batch predicates aggregate amounts per token id: the ledger applies elements
in order, so two entries for the same id must be covered together.
"""

from __future__ import annotations

from typing import Dict, Optional, Sequence

from ..state.arithmetic import MAX_UINT256
from ..state.mirror import Account, Amount, MirrorState, TokenId


# ---------------------------------------------------------------------------
# Primitive predicates
# ---------------------------------------------------------------------------


def amount_in_range(amount: int) -> bool:
    return isinstance(amount, int) and not isinstance(amount, bool) and 0 <= amount <= MAX_UINT256


def lengths_match(token_ids: Sequence[TokenId], amounts: Sequence[Amount]) -> bool:
    return len(token_ids) == len(amounts)


def totals_by_id(token_ids: Sequence[TokenId], amounts: Sequence[Amount]) -> Dict[TokenId, Amount]:
    out: Dict[TokenId, Amount] = {}
    for token_id, amount in zip(token_ids, amounts):
        out[token_id] = out.get(token_id, 0) + amount
    return out


def needs_allowance(mirror: MirrorState, caller: Account, owner: Account) -> bool:
    """True when neither ownership nor an operator approval authorizes `caller`."""
    return caller != owner and not mirror.is_operator(owner, caller)


def allowance_covers(
    mirror: MirrorState, owner: Account, spender: Account, token_id: TokenId, amount: Amount
) -> bool:
    return mirror.allowance_of(owner, spender, token_id) >= amount


def balance_covers(mirror: MirrorState, account: Account, token_id: TokenId, amount: Amount) -> bool:
    return mirror.balance_of(account, token_id) >= amount


def shadow_balance_covers(mirror: MirrorState, account: Account, token_id: TokenId, amount: Amount) -> bool:
    return mirror.shadow_balance_of(account, token_id) >= amount


def can_register(mirror: MirrorState, token_id: TokenId) -> bool:
    return not mirror.is_registered(token_id) and mirror.supply_of(token_id) > 0


def increase_fits(
    mirror: MirrorState, owner: Account, spender: Account, token_id: TokenId, delta: Amount
) -> bool:
    return mirror.allowance_of(owner, spender, token_id) + delta <= MAX_UINT256


def decrease_fits(
    mirror: MirrorState, owner: Account, spender: Account, token_id: TokenId, delta: Amount
) -> bool:
    return mirror.allowance_of(owner, spender, token_id) >= delta


# ---------------------------------------------------------------------------
# Composite rejections (None = the call is expected to succeed)
# ---------------------------------------------------------------------------


def _shape_rejection(token_ids: Sequence[TokenId], amounts: Sequence[Amount]) -> Optional[str]:
    if not lengths_match(token_ids, amounts):
        return "length_mismatch"
    if not all(amount_in_range(a) for a in amounts):
        return "amount_range"
    return None


def _spend_rejection(
    mirror: MirrorState,
    caller: Account,
    owner: Account,
    totals: Dict[TokenId, Amount],
) -> Optional[str]:
    gated = needs_allowance(mirror, caller, owner)
    for token_id, total in totals.items():
        if gated and not allowance_covers(mirror, owner, caller, token_id, total):
            return "allowance"
        if not balance_covers(mirror, owner, token_id, total):
            return "balance"
    return None


def batch_transfer_rejection(
    mirror: MirrorState,
    caller: Account,
    sender: Account,
    token_ids: Sequence[TokenId],
    amounts: Sequence[Amount],
) -> Optional[str]:
    reason = _shape_rejection(token_ids, amounts)
    if reason is not None:
        return reason
    return _spend_rejection(mirror, caller, sender, totals_by_id(token_ids, amounts))


def transfer_rejection(
    mirror: MirrorState, caller: Account, sender: Account, token_id: TokenId, amount: Amount
) -> Optional[str]:
    return batch_transfer_rejection(mirror, caller, sender, [token_id], [amount])


def batch_approve_rejection(token_ids: Sequence[TokenId], amounts: Sequence[Amount]) -> Optional[str]:
    return _shape_rejection(token_ids, amounts)


def batch_increase_rejection(
    mirror: MirrorState,
    owner: Account,
    spender: Account,
    token_ids: Sequence[TokenId],
    deltas: Sequence[Amount],
) -> Optional[str]:
    reason = _shape_rejection(token_ids, deltas)
    if reason is not None:
        return reason
    for token_id, total in totals_by_id(token_ids, deltas).items():
        if not increase_fits(mirror, owner, spender, token_id, total):
            return "allowance_overflow"
    return None


def batch_decrease_rejection(
    mirror: MirrorState,
    owner: Account,
    spender: Account,
    token_ids: Sequence[TokenId],
    deltas: Sequence[Amount],
) -> Optional[str]:
    reason = _shape_rejection(token_ids, deltas)
    if reason is not None:
        return reason
    for token_id, total in totals_by_id(token_ids, deltas).items():
        if not decrease_fits(mirror, owner, spender, token_id, total):
            return "allowance_underflow"
    return None


def register_rejection(mirror: MirrorState, token_id: TokenId) -> Optional[str]:
    if mirror.is_registered(token_id):
        return "already_registered"
    if mirror.supply_of(token_id) == 0:
        return "no_supply"
    return None


def batch_to_shadow_rejection(
    mirror: MirrorState,
    caller: Account,
    owner: Account,
    token_ids: Sequence[TokenId],
    amounts: Sequence[Amount],
) -> Optional[str]:
    reason = _shape_rejection(token_ids, amounts)
    if reason is not None:
        return reason
    if not all(mirror.is_registered(t) for t in token_ids):
        return "not_registered"
    return _spend_rejection(mirror, caller, owner, totals_by_id(token_ids, amounts))


def to_shadow_rejection(
    mirror: MirrorState, caller: Account, owner: Account, token_id: TokenId, amount: Amount
) -> Optional[str]:
    return batch_to_shadow_rejection(mirror, caller, owner, [token_id], [amount])


def batch_from_shadow_rejection(
    mirror: MirrorState,
    caller: Account,
    token_ids: Sequence[TokenId],
    amounts: Sequence[Amount],
) -> Optional[str]:
    reason = _shape_rejection(token_ids, amounts)
    if reason is not None:
        return reason
    if not all(mirror.is_registered(t) for t in token_ids):
        return "not_registered"
    for token_id, total in totals_by_id(token_ids, amounts).items():
        if not shadow_balance_covers(mirror, caller, token_id, total):
            return "shadow_balance"
    return None


def from_shadow_rejection(
    mirror: MirrorState, caller: Account, token_id: TokenId, amount: Amount
) -> Optional[str]:
    return batch_from_shadow_rejection(mirror, caller, [token_id], [amount])
