"""
Per-operation mirror reconciliation.

Each function composes the update rules from `state.updates` for one ledger
operation, deciding the approval path (owner / operator / allowance) from the
mirror it is given. Policies call these on the live mirror, and Strict /
Discriminate also call them on a copy to project the expected post-state.
"""

from __future__ import annotations

from typing import Sequence

from ...state import updates
from ...state.mirror import Account, Amount, MirrorState, TokenId
from .. import guards


def reconcile_transfer(
    mirror: MirrorState,
    caller: Account,
    sender: Account,
    receiver: Account,
    token_id: TokenId,
    amount: Amount,
) -> None:
    if guards.needs_allowance(mirror, caller, sender):
        updates.apply_spend_allowance(mirror, sender, caller, token_id, amount)
    updates.apply_transfer(mirror, sender, receiver, token_id, amount)


def reconcile_batch_transfer(
    mirror: MirrorState,
    caller: Account,
    sender: Account,
    receiver: Account,
    token_ids: Sequence[TokenId],
    amounts: Sequence[Amount],
) -> None:
    if guards.needs_allowance(mirror, caller, sender):
        for token_id, amount in zip(token_ids, amounts):
            updates.apply_spend_allowance(mirror, sender, caller, token_id, amount)
    updates.apply_batch_transfer(mirror, sender, receiver, token_ids, amounts)


def reconcile_to_shadow(
    mirror: MirrorState,
    caller: Account,
    owner: Account,
    token_ids: Sequence[TokenId],
    amounts: Sequence[Amount],
) -> None:
    if guards.needs_allowance(mirror, caller, owner):
        for token_id, amount in zip(token_ids, amounts):
            updates.apply_spend_allowance(mirror, owner, caller, token_id, amount)
    updates.apply_batch_transmute_to_shadow(mirror, owner, token_ids, amounts)


def reconcile_from_shadow(
    mirror: MirrorState,
    caller: Account,
    token_ids: Sequence[TokenId],
    amounts: Sequence[Amount],
) -> None:
    updates.apply_batch_transmute_from_shadow(mirror, caller, token_ids, amounts)
