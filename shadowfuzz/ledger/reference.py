"""
In-memory reference ledger.

A straightforward, correct implementation of the `Ledger` interface used as
the default fuzzing target and as a test double. It is deliberately written
imperatively (check, then mutate) and independently of the mirror update
rules, so that agreement between the two means something.

Rules:
- transfer authority: caller == sender, or caller is an operator of sender
  (allowance untouched), or allowance >= amount (decremented unless it is
  MAX_UINT256),
- batch calls require equal-length id / amount lists,
- a shadow token may be registered once per id, and only while the id has
  circulating supply,
- every failing call raises `LedgerRevert` and leaves state unchanged.
"""

from __future__ import annotations

import copy
import hashlib
from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Sequence, Tuple

from ..state.arithmetic import MAX_UINT256
from ..state.mirror import ZERO_ACCOUNT, Account, Amount, ShadowHandle, TokenId
from .errors import LedgerRevert
from .interface import Ledger, ShadowToken


SHADOW_HANDLE_DOMAIN = b"shadowfuzz.shadow-token.v1"


def derive_shadow_handle(token_id: TokenId) -> ShadowHandle:
    """Deterministic 20-byte address for the shadow token of `token_id`."""
    digest = hashlib.sha256(SHADOW_HANDLE_DOMAIN + int(token_id).to_bytes(32, "big")).hexdigest()
    return "0x" + digest[:40]


def _require_amount(value: int, *, name: str = "amount") -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0 or value > MAX_UINT256:
        raise LedgerRevert(f"{name} out of range")
    return int(value)


class ReferenceShadowToken(ShadowToken):
    """Single-id fungible token minted/burned by its parent ledger."""

    def __init__(self, handle: ShadowHandle, token_id: TokenId) -> None:
        self.handle = handle
        self.token_id = token_id
        self._balances: Dict[Account, Amount] = {}
        self._total_supply: Amount = 0

    def balance_of(self, account: Account) -> Amount:
        return self._balances.get(account, 0)

    def total_supply(self) -> Amount:
        return self._total_supply

    def _mint(self, account: Account, amount: Amount) -> None:
        if self._total_supply + amount > MAX_UINT256:
            raise LedgerRevert("shadow supply overflow")
        self._balances[account] = self.balance_of(account) + amount
        self._total_supply += amount

    def _burn(self, account: Account, amount: Amount) -> None:
        current = self.balance_of(account)
        if current < amount:
            raise LedgerRevert("insufficient shadow balance")
        self._balances[account] = current - amount
        self._total_supply -= amount

    def __repr__(self) -> str:
        return f"ReferenceShadowToken(id={self.token_id}, handle={self.handle})"


class ReferenceLedger(Ledger):
    def __init__(self) -> None:
        self._balances: Dict[Tuple[Account, TokenId], Amount] = {}
        self._supply: Dict[TokenId, Amount] = {}
        self._allowances: Dict[Tuple[Account, Account, TokenId], Amount] = {}
        self._operators: Dict[Tuple[Account, Account], bool] = {}
        self._shadow_by_id: Dict[TokenId, ReferenceShadowToken] = {}
        self._shadow_by_handle: Dict[ShadowHandle, ReferenceShadowToken] = {}

    @contextmanager
    def _atomic(self) -> Iterator[None]:
        """Roll every table back if the body raises `LedgerRevert`."""
        saved = copy.deepcopy(self.__dict__)
        try:
            yield
        except LedgerRevert:
            self.__dict__.clear()
            self.__dict__.update(saved)
            raise

    # -- internal mechanics (overridable by fault-injecting subclasses) ------

    def _credit(self, account: Account, token_id: TokenId, amount: Amount) -> None:
        supply = self._supply.get(token_id, 0)
        if supply + amount > MAX_UINT256:
            raise LedgerRevert("supply overflow")
        self._supply[token_id] = supply + amount
        self._balances[(account, token_id)] = self.balance_of(account, token_id) + amount

    def _debit(self, account: Account, token_id: TokenId, amount: Amount) -> None:
        current = self.balance_of(account, token_id)
        if current < amount:
            raise LedgerRevert("insufficient balance")
        self._balances[(account, token_id)] = current - amount
        self._supply[token_id] = self._supply.get(token_id, 0) - amount

    def _move(self, sender: Account, receiver: Account, token_id: TokenId, amount: Amount) -> None:
        current = self.balance_of(sender, token_id)
        if current < amount:
            raise LedgerRevert("insufficient balance")
        self._balances[(sender, token_id)] = current - amount
        self._balances[(receiver, token_id)] = self.balance_of(receiver, token_id) + amount

    def _spend_allowance(self, owner: Account, spender: Account, token_id: TokenId, amount: Amount) -> None:
        current = self.allowance(owner, spender, token_id)
        if current < amount:
            raise LedgerRevert("insufficient allowance")
        if current != MAX_UINT256:
            self._allowances[(owner, spender, token_id)] = current - amount

    def _authorize(self, caller: Account, owner: Account, token_id: TokenId, amount: Amount) -> None:
        if caller == owner or self.is_operator(owner, caller):
            return
        self._spend_allowance(owner, caller, token_id, amount)

    def _check_lengths(self, token_ids: Sequence[TokenId], amounts: Sequence[Amount]) -> None:
        if len(token_ids) != len(amounts):
            raise LedgerRevert("array length mismatch")

    def _check_registrable(self, token_id: TokenId) -> None:
        if token_id in self._shadow_by_id:
            raise LedgerRevert("shadow token already registered")
        if self._supply.get(token_id, 0) == 0:
            raise LedgerRevert("no circulating supply")

    def _registered(self, token_id: TokenId) -> ReferenceShadowToken:
        token = self._shadow_by_id.get(token_id)
        if token is None:
            raise LedgerRevert("shadow token not registered")
        return token

    # -- privileged --------------------------------------------------------

    def mint(self, account: Account, token_id: TokenId, amount: Amount, data: bytes = b"") -> None:
        amount = _require_amount(amount)
        if account == ZERO_ACCOUNT:
            raise LedgerRevert("mint to zero account")
        with self._atomic():
            self._credit(account, token_id, amount)

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
        amount = _require_amount(amount)
        if receiver == ZERO_ACCOUNT:
            raise LedgerRevert("transfer to zero account")
        with self._atomic():
            self._authorize(caller, sender, token_id, amount)
            self._move(sender, receiver, token_id, amount)

    def batch_transfer(
        self,
        caller: Account,
        sender: Account,
        receiver: Account,
        token_ids: Sequence[TokenId],
        amounts: Sequence[Amount],
        data: bytes = b"",
    ) -> None:
        self._check_lengths(token_ids, amounts)
        if receiver == ZERO_ACCOUNT:
            raise LedgerRevert("transfer to zero account")
        with self._atomic():
            for token_id, amount in zip(token_ids, amounts):
                amount = _require_amount(amount)
                self._authorize(caller, sender, token_id, amount)
                self._move(sender, receiver, token_id, amount)

    # -- approvals ---------------------------------------------------------

    def set_operator(self, caller: Account, spender: Account, approved: bool) -> None:
        self._operators[(caller, spender)] = bool(approved)

    def approve(self, caller: Account, spender: Account, token_id: TokenId, amount: Amount) -> None:
        self._allowances[(caller, spender, token_id)] = _require_amount(amount)

    def increase_allowance(self, caller: Account, spender: Account, token_id: TokenId, delta: Amount) -> None:
        delta = _require_amount(delta, name="delta")
        current = self.allowance(caller, spender, token_id)
        if current + delta > MAX_UINT256:
            raise LedgerRevert("allowance overflow")
        self._allowances[(caller, spender, token_id)] = current + delta

    def decrease_allowance(self, caller: Account, spender: Account, token_id: TokenId, delta: Amount) -> None:
        delta = _require_amount(delta, name="delta")
        current = self.allowance(caller, spender, token_id)
        if current < delta:
            raise LedgerRevert("allowance underflow")
        self._allowances[(caller, spender, token_id)] = current - delta

    def batch_approve(
        self, caller: Account, spender: Account, token_ids: Sequence[TokenId], amounts: Sequence[Amount]
    ) -> None:
        self._check_lengths(token_ids, amounts)
        with self._atomic():
            for token_id, amount in zip(token_ids, amounts):
                self.approve(caller, spender, token_id, amount)

    def batch_increase_allowance(
        self, caller: Account, spender: Account, token_ids: Sequence[TokenId], deltas: Sequence[Amount]
    ) -> None:
        self._check_lengths(token_ids, deltas)
        with self._atomic():
            for token_id, delta in zip(token_ids, deltas):
                self.increase_allowance(caller, spender, token_id, delta)

    def batch_decrease_allowance(
        self, caller: Account, spender: Account, token_ids: Sequence[TokenId], deltas: Sequence[Amount]
    ) -> None:
        self._check_lengths(token_ids, deltas)
        with self._atomic():
            for token_id, delta in zip(token_ids, deltas):
                self.decrease_allowance(caller, spender, token_id, delta)

    # -- shadow tokens -----------------------------------------------------

    def register_shadow_token(self, caller: Account, token_id: TokenId) -> ShadowHandle:
        self._check_registrable(token_id)
        handle = derive_shadow_handle(token_id)
        token = ReferenceShadowToken(handle, token_id)
        self._shadow_by_id[token_id] = token
        self._shadow_by_handle[handle] = token
        return handle

    def _to_shadow(self, caller: Account, owner: Account, token_id: TokenId, amount: Amount) -> None:
        amount = _require_amount(amount)
        token = self._registered(token_id)
        self._authorize(caller, owner, token_id, amount)
        self._debit(owner, token_id, amount)
        token._mint(owner, amount)

    def _from_shadow(self, caller: Account, token_id: TokenId, amount: Amount) -> None:
        amount = _require_amount(amount)
        token = self._registered(token_id)
        token._burn(caller, amount)
        self._credit(caller, token_id, amount)

    def transmute_to_shadow(self, caller: Account, owner: Account, token_id: TokenId, amount: Amount) -> None:
        with self._atomic():
            self._to_shadow(caller, owner, token_id, amount)

    def transmute_from_shadow(self, caller: Account, token_id: TokenId, amount: Amount) -> None:
        with self._atomic():
            self._from_shadow(caller, token_id, amount)

    def batch_transmute_to_shadow(
        self, caller: Account, owner: Account, token_ids: Sequence[TokenId], amounts: Sequence[Amount]
    ) -> None:
        self._check_lengths(token_ids, amounts)
        with self._atomic():
            for token_id, amount in zip(token_ids, amounts):
                self._to_shadow(caller, owner, token_id, amount)

    def batch_transmute_from_shadow(
        self, caller: Account, token_ids: Sequence[TokenId], amounts: Sequence[Amount]
    ) -> None:
        self._check_lengths(token_ids, amounts)
        with self._atomic():
            for token_id, amount in zip(token_ids, amounts):
                self._from_shadow(caller, token_id, amount)

    # -- reads -------------------------------------------------------------

    def balance_of(self, account: Account, token_id: TokenId) -> Amount:
        return self._balances.get((account, token_id), 0)

    def total_supply(self, token_id: TokenId) -> Amount:
        return self._supply.get(token_id, 0)

    def allowance(self, owner: Account, spender: Account, token_id: TokenId) -> Amount:
        return self._allowances.get((owner, spender, token_id), 0)

    def is_operator(self, owner: Account, spender: Account) -> bool:
        return self._operators.get((owner, spender), False)

    def shadow_token_of(self, token_id: TokenId) -> Optional[ShadowHandle]:
        token = self._shadow_by_id.get(token_id)
        return None if token is None else token.handle

    def shadow_at(self, handle: ShadowHandle) -> ShadowToken:
        token = self._shadow_by_handle.get(handle)
        if token is None:
            raise LedgerRevert(f"unknown shadow token {handle}")
        return token

    def __repr__(self) -> str:
        return f"ReferenceLedger(ids={len(self._supply)}, shadows={len(self._shadow_by_id)})"
