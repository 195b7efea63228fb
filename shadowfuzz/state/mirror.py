"""
Mirror (reference model) of a dual-representation multi-token ledger.

Tables:
- TotalSupply[TokenId] -> Amount
- Balance[Account, TokenId] -> Amount
- Allowance[Owner, Spender, TokenId] -> Amount
- Operator[Owner, Spender] -> bool
- ShadowToken[TokenId] -> handle (write-once)
- ShadowBalance[Account, TokenId] -> Amount

plus three append-only rosters (accounts, token ids, registered ids) that
drive the invariant sweep.

The store holds data only. Updates live in `updates.py` so that every policy
applies exactly the same rules.
"""

from __future__ import annotations

import copy
from typing import Dict, Optional, Set, Tuple

from .arithmetic import UnderflowMode


# Type aliases
Account = str  # 0x-prefixed 20-byte hex address
TokenId = int  # uint256
Amount = int  # uint256
ShadowHandle = str  # 0x-prefixed address of the shadow token

# Mint/burn sentinel; never a real actor.
ZERO_ACCOUNT: Account = "0x" + "00" * 20


class _Roster:
    """Append-only, order-preserving list with deduplicating insert."""

    def __init__(self) -> None:
        self._items: list = []
        self._seen: set = set()

    def add(self, item) -> bool:
        """Insert `item` if unseen. Returns True iff it was new."""
        if item in self._seen:
            return False
        self._seen.add(item)
        self._items.append(item)
        return True

    def __contains__(self, item) -> bool:
        return item in self._seen

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index: int):
        return self._items[index]

    def snapshot(self) -> tuple:
        return tuple(self._items)


class MirrorState:
    """
    Mutable mirror of the ledger under test.

    Reads of unset cells return 0 / False / None. The `underflow` mode is
    consulted by the update rules whenever they subtract or add amounts.
    """

    def __init__(self, *, underflow: UnderflowMode = UnderflowMode.PANIC) -> None:
        self.underflow = UnderflowMode.parse(underflow)
        self.total_supply: Dict[TokenId, Amount] = {}
        self.balances: Dict[Tuple[Account, TokenId], Amount] = {}
        self.allowances: Dict[Tuple[Account, Account, TokenId], Amount] = {}
        self.operators: Dict[Tuple[Account, Account], bool] = {}
        self.shadow_tokens: Dict[TokenId, ShadowHandle] = {}
        self.shadow_balances: Dict[Tuple[Account, TokenId], Amount] = {}
        self._accounts = _Roster()
        self._token_ids = _Roster()
        self._registered_ids = _Roster()

    # -- reads ---------------------------------------------------------------

    def supply_of(self, token_id: TokenId) -> Amount:
        return self.total_supply.get(token_id, 0)

    def balance_of(self, account: Account, token_id: TokenId) -> Amount:
        return self.balances.get((account, token_id), 0)

    def allowance_of(self, owner: Account, spender: Account, token_id: TokenId) -> Amount:
        return self.allowances.get((owner, spender, token_id), 0)

    def is_operator(self, owner: Account, spender: Account) -> bool:
        return self.operators.get((owner, spender), False)

    def shadow_token_of(self, token_id: TokenId) -> Optional[ShadowHandle]:
        return self.shadow_tokens.get(token_id)

    def is_registered(self, token_id: TokenId) -> bool:
        return token_id in self.shadow_tokens

    def shadow_balance_of(self, account: Account, token_id: TokenId) -> Amount:
        return self.shadow_balances.get((account, token_id), 0)

    def shadow_supply_of(self, token_id: TokenId) -> Amount:
        """Sum of recorded shadow balances for `token_id`."""
        return sum(v for (_, tid), v in self.shadow_balances.items() if tid == token_id)

    # -- rosters -------------------------------------------------------------

    def add_account(self, account: Account) -> bool:
        if account == ZERO_ACCOUNT:
            raise ValueError("the zero account cannot join the roster")
        return self._accounts.add(account)

    def add_token_id(self, token_id: TokenId) -> bool:
        return self._token_ids.add(token_id)

    def add_registered_id(self, token_id: TokenId) -> bool:
        return self._registered_ids.add(token_id)

    def has_account(self, account: Account) -> bool:
        return account in self._accounts

    def has_token_id(self, token_id: TokenId) -> bool:
        return token_id in self._token_ids

    def account_at(self, index: int) -> Account:
        return self._accounts[index]

    def token_id_at(self, index: int) -> TokenId:
        return self._token_ids[index]

    def account_count(self) -> int:
        return len(self._accounts)

    def token_id_count(self) -> int:
        return len(self._token_ids)

    def known_accounts(self) -> Tuple[Account, ...]:
        return self._accounts.snapshot()

    def known_token_ids(self) -> Tuple[TokenId, ...]:
        return self._token_ids.snapshot()

    def known_registered_ids(self) -> Tuple[TokenId, ...]:
        return self._registered_ids.snapshot()

    # -- misc ----------------------------------------------------------------

    def copy(self) -> "MirrorState":
        """Independent deep copy (used to project post-states before committing)."""
        return copy.deepcopy(self)

    def touched_accounts(self) -> Set[Account]:
        out: Set[Account] = set()
        for account, _ in self.balances:
            out.add(account)
        for account, _ in self.shadow_balances:
            out.add(account)
        return out

    def summary(self) -> Dict[str, int]:
        return {
            "accounts": len(self._accounts),
            "token_ids": len(self._token_ids),
            "registered_ids": len(self._registered_ids),
            "allowance_cells": len(self.allowances),
            "operator_cells": len(self.operators),
        }

    def __repr__(self) -> str:
        s = self.summary()
        return (
            f"MirrorState(accounts={s['accounts']}, token_ids={s['token_ids']}, "
            f"registered={s['registered_ids']}, underflow={self.underflow.value})"
        )

