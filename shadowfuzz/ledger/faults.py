"""
Deliberately broken ledgers.

Each fault overrides one internal hook of `ReferenceLedger`. They exist to show
that the policies and the invariant sweep notice divergence; a campaign run
against any of them is expected to fail.
"""

from __future__ import annotations

from typing import Dict, Sequence, Type

from ..state.mirror import Account, Amount, TokenId
from .reference import ReferenceLedger


class SkipAllowanceSpendLedger(ReferenceLedger):
    """Checks allowances but never decrements them."""

    def _spend_allowance(self, owner: Account, spender: Account, token_id: TokenId, amount: Amount) -> None:
        if self.allowance(owner, spender, token_id) < amount:
            super()._spend_allowance(owner, spender, token_id, amount)


class LenientBatchLedger(ReferenceLedger):
    """Accepts batches whose id and amount lists differ in length."""

    def _check_lengths(self, token_ids: Sequence[TokenId], amounts: Sequence[Amount]) -> None:
        return None


class ReregisteringLedger(ReferenceLedger):
    """Lets a registered id be registered again, replacing its shadow token."""

    def _check_registrable(self, token_id: TokenId) -> None:
        if self.total_supply(token_id) == 0:
            super()._check_registrable(token_id)


class LeakySupplyLedger(ReferenceLedger):
    """Forgets to reduce total supply when value moves into the shadow token."""

    def _debit(self, account: Account, token_id: TokenId, amount: Amount) -> None:
        supply = self.total_supply(token_id)
        super()._debit(account, token_id, amount)
        self._supply[token_id] = supply


FAULTS: Dict[str, Type[ReferenceLedger]] = {
    "skip_allowance_spend": SkipAllowanceSpendLedger,
    "lenient_batch": LenientBatchLedger,
    "reregister": ReregisteringLedger,
    "leaky_supply": LeakySupplyLedger,
}


def make_faulty_ledger(name: str) -> ReferenceLedger:
    cls = FAULTS.get(name)
    if cls is None:
        choices = ", ".join(sorted(FAULTS))
        raise ValueError(f"unknown fault {name!r}; expected one of: {choices}")
    return cls()
