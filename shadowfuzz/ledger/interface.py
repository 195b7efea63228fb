"""
Boundary between the fuzzing engine and the ledger under test.

A ledger is any object implementing `Ledger`. Mutating methods take the
acting address (`caller`) first; this is how the engine "impersonates" a
sender. A failed operation raises `LedgerRevert` and must leave the ledger
unchanged.

Shadow tokens are reached through their handle: `shadow_token_of(id)` returns
the handle (or None before registration) and `shadow_at(handle)` returns the
token object.
"""

from __future__ import annotations

from typing import Optional, Sequence

from ..state.mirror import Account, Amount, ShadowHandle, TokenId


class ShadowToken:
    """Interface of the single-id (transmuted) representation of one token id."""

    def balance_of(self, account: Account) -> Amount:
        raise NotImplementedError

    def total_supply(self) -> Amount:
        raise NotImplementedError


class Ledger:
    """Interface of a multi-id ledger with transmutable shadow tokens."""

    # -- privileged --------------------------------------------------------

    def mint(self, account: Account, token_id: TokenId, amount: Amount, data: bytes = b"") -> None:
        raise NotImplementedError

    # -- transfers ---------------------------------------------------------

    def transfer(
        self,
        caller: Account,
        sender: Account,
        receiver: Account,
        token_id: TokenId,
        amount: Amount,
        data: bytes = b"",
    ) -> None:
        raise NotImplementedError

    def batch_transfer(
        self,
        caller: Account,
        sender: Account,
        receiver: Account,
        token_ids: Sequence[TokenId],
        amounts: Sequence[Amount],
        data: bytes = b"",
    ) -> None:
        raise NotImplementedError

    # -- approvals ---------------------------------------------------------

    def set_operator(self, caller: Account, spender: Account, approved: bool) -> None:
        raise NotImplementedError

    def approve(self, caller: Account, spender: Account, token_id: TokenId, amount: Amount) -> None:
        raise NotImplementedError

    def increase_allowance(self, caller: Account, spender: Account, token_id: TokenId, delta: Amount) -> None:
        raise NotImplementedError

    def decrease_allowance(self, caller: Account, spender: Account, token_id: TokenId, delta: Amount) -> None:
        raise NotImplementedError

    def batch_approve(
        self, caller: Account, spender: Account, token_ids: Sequence[TokenId], amounts: Sequence[Amount]
    ) -> None:
        raise NotImplementedError

    def batch_increase_allowance(
        self, caller: Account, spender: Account, token_ids: Sequence[TokenId], deltas: Sequence[Amount]
    ) -> None:
        raise NotImplementedError

    def batch_decrease_allowance(
        self, caller: Account, spender: Account, token_ids: Sequence[TokenId], deltas: Sequence[Amount]
    ) -> None:
        raise NotImplementedError

    # -- shadow tokens -----------------------------------------------------

    def register_shadow_token(self, caller: Account, token_id: TokenId) -> ShadowHandle:
        raise NotImplementedError

    def transmute_to_shadow(self, caller: Account, owner: Account, token_id: TokenId, amount: Amount) -> None:
        raise NotImplementedError

    def transmute_from_shadow(self, caller: Account, token_id: TokenId, amount: Amount) -> None:
        raise NotImplementedError

    def batch_transmute_to_shadow(
        self, caller: Account, owner: Account, token_ids: Sequence[TokenId], amounts: Sequence[Amount]
    ) -> None:
        raise NotImplementedError

    def batch_transmute_from_shadow(
        self, caller: Account, token_ids: Sequence[TokenId], amounts: Sequence[Amount]
    ) -> None:
        raise NotImplementedError

    # -- reads -------------------------------------------------------------

    def balance_of(self, account: Account, token_id: TokenId) -> Amount:
        raise NotImplementedError

    def total_supply(self, token_id: TokenId) -> Amount:
        raise NotImplementedError

    def allowance(self, owner: Account, spender: Account, token_id: TokenId) -> Amount:
        raise NotImplementedError

    def is_operator(self, owner: Account, spender: Account) -> bool:
        raise NotImplementedError

    def shadow_token_of(self, token_id: TokenId) -> Optional[ShadowHandle]:
        raise NotImplementedError

    def shadow_at(self, handle: ShadowHandle) -> ShadowToken:
        raise NotImplementedError
