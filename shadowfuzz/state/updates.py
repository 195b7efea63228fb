"""
Mirror update rules.

One function per ledger effect. Every policy calls these (and only these) to
reconcile the mirror after a SUT operation, so the model is derived once and
shared.

Semantics:
- single-item rules read the current cell and write the new value,
- batch rules apply the single-item rule per element, in order; duplicate ids
  therefore accumulate,
- batch rules do NOT check that parallel lists have equal lengths; callers
  screen that before invoking the SUT,
- amounts go through `add_u256` / `sub_u256` under the mirror's
  `UnderflowMode`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .arithmetic import MAX_UINT256, add_u256, sub_u256
from .mirror import ZERO_ACCOUNT, Account, Amount, MirrorState, ShadowHandle, TokenId


class ShadowRegistrationError(Exception):
    """Raised when an update would overwrite an already-registered shadow handle."""


@dataclass(frozen=True)
class MintEvent:
    """A privileged SUT mint that the mirror has to account for."""

    account: Account
    token_id: TokenId
    amount: Amount


def _pairs(token_ids: Sequence[TokenId], amounts: Sequence[Amount]):
    # Shortest-list iteration; callers are responsible for equal lengths.
    return zip(token_ids, amounts)


# ---------------------------------------------------------------------------
# Balances
# ---------------------------------------------------------------------------


def apply_transfer(
    mirror: MirrorState,
    sender: Account,
    receiver: Account,
    token_id: TokenId,
    amount: Amount,
    *,
    mint: bool = False,
) -> None:
    mode = mirror.underflow
    if sender != ZERO_ACCOUNT:
        key = (sender, token_id)
        mirror.balances[key] = sub_u256(mirror.balances.get(key, 0), amount, mode)
    if receiver != ZERO_ACCOUNT:
        key = (receiver, token_id)
        mirror.balances[key] = add_u256(mirror.balances.get(key, 0), amount, mode)
    if mint:
        mirror.total_supply[token_id] = add_u256(mirror.supply_of(token_id), amount, mode)


def apply_mint(mirror: MirrorState, event: MintEvent) -> None:
    apply_transfer(mirror, ZERO_ACCOUNT, event.account, event.token_id, event.amount, mint=True)


def apply_batch_transfer(
    mirror: MirrorState,
    sender: Account,
    receiver: Account,
    token_ids: Sequence[TokenId],
    amounts: Sequence[Amount],
) -> None:
    for token_id, amount in _pairs(token_ids, amounts):
        apply_transfer(mirror, sender, receiver, token_id, amount)


# ---------------------------------------------------------------------------
# Allowances / operators
# ---------------------------------------------------------------------------


def apply_spend_allowance(
    mirror: MirrorState,
    owner: Account,
    spender: Account,
    token_id: TokenId,
    amount: Amount,
) -> None:
    """Allowance consumed by a transfer-style call. Infinite allowances are kept."""
    key = (owner, spender, token_id)
    current = mirror.allowances.get(key, 0)
    if current == MAX_UINT256:
        return
    mirror.allowances[key] = sub_u256(current, amount, mirror.underflow)


def apply_set_allowance(
    mirror: MirrorState,
    owner: Account,
    spender: Account,
    token_id: TokenId,
    amount: Amount,
) -> None:
    mirror.allowances[(owner, spender, token_id)] = amount


def apply_increase_allowance(
    mirror: MirrorState,
    owner: Account,
    spender: Account,
    token_id: TokenId,
    delta: Amount,
) -> None:
    key = (owner, spender, token_id)
    mirror.allowances[key] = add_u256(mirror.allowances.get(key, 0), delta, mirror.underflow)


def apply_decrease_allowance(
    mirror: MirrorState,
    owner: Account,
    spender: Account,
    token_id: TokenId,
    delta: Amount,
) -> None:
    key = (owner, spender, token_id)
    mirror.allowances[key] = sub_u256(mirror.allowances.get(key, 0), delta, mirror.underflow)


def apply_batch_set_allowance(
    mirror: MirrorState,
    owner: Account,
    spender: Account,
    token_ids: Sequence[TokenId],
    amounts: Sequence[Amount],
) -> None:
    for token_id, amount in _pairs(token_ids, amounts):
        apply_set_allowance(mirror, owner, spender, token_id, amount)


def apply_batch_increase_allowance(
    mirror: MirrorState,
    owner: Account,
    spender: Account,
    token_ids: Sequence[TokenId],
    deltas: Sequence[Amount],
) -> None:
    for token_id, delta in _pairs(token_ids, deltas):
        apply_increase_allowance(mirror, owner, spender, token_id, delta)


def apply_batch_decrease_allowance(
    mirror: MirrorState,
    owner: Account,
    spender: Account,
    token_ids: Sequence[TokenId],
    deltas: Sequence[Amount],
) -> None:
    for token_id, delta in _pairs(token_ids, deltas):
        apply_decrease_allowance(mirror, owner, spender, token_id, delta)


def apply_set_operator(mirror: MirrorState, owner: Account, spender: Account, approved: bool) -> None:
    mirror.operators[(owner, spender)] = bool(approved)


# ---------------------------------------------------------------------------
# Shadow tokens
# ---------------------------------------------------------------------------


def apply_register_shadow(mirror: MirrorState, token_id: TokenId, handle: ShadowHandle) -> None:
    existing = mirror.shadow_token_of(token_id)
    if existing is not None:
        raise ShadowRegistrationError(
            f"token id {token_id} already registered to {existing}; refusing to overwrite with {handle}"
        )
    mirror.shadow_tokens[token_id] = handle
    mirror.add_registered_id(token_id)


def apply_transmute_to_shadow(
    mirror: MirrorState,
    account: Account,
    token_id: TokenId,
    amount: Amount,
) -> None:
    mode = mirror.underflow
    key = (account, token_id)
    mirror.balances[key] = sub_u256(mirror.balances.get(key, 0), amount, mode)
    mirror.total_supply[token_id] = sub_u256(mirror.supply_of(token_id), amount, mode)
    mirror.shadow_balances[key] = add_u256(mirror.shadow_balances.get(key, 0), amount, mode)


def apply_transmute_from_shadow(
    mirror: MirrorState,
    account: Account,
    token_id: TokenId,
    amount: Amount,
) -> None:
    mode = mirror.underflow
    key = (account, token_id)
    mirror.shadow_balances[key] = sub_u256(mirror.shadow_balances.get(key, 0), amount, mode)
    mirror.total_supply[token_id] = add_u256(mirror.supply_of(token_id), amount, mode)
    mirror.balances[key] = add_u256(mirror.balances.get(key, 0), amount, mode)


def apply_batch_transmute_to_shadow(
    mirror: MirrorState,
    account: Account,
    token_ids: Sequence[TokenId],
    amounts: Sequence[Amount],
) -> None:
    for token_id, amount in _pairs(token_ids, amounts):
        apply_transmute_to_shadow(mirror, account, token_id, amount)


def apply_batch_transmute_from_shadow(
    mirror: MirrorState,
    account: Account,
    token_ids: Sequence[TokenId],
    amounts: Sequence[Amount],
) -> None:
    for token_id, amount in _pairs(token_ids, amounts):
        apply_transmute_from_shadow(mirror, account, token_id, amount)
