"""
Actor / token-id universe generator.

Maps raw fuzzer seeds to concrete accounts and token ids. Roughly 30% of draws
reuse an entity that already exists (so operations keep hitting the same
population) and the rest derive a candidate from the seed.

Funding is explicit: `ensure_funded_account()` performs a privileged SUT mint
for every genuinely new account and RETURNS the mint event instead of writing
the mirror itself. `select_account()` is the convenience wrapper policies use;
it applies the event with `updates.apply_mint`.
"""

from __future__ import annotations

import hashlib
from typing import List, Optional, Sequence, Tuple

from ..ledger.interface import Ledger
from ..state import updates
from ..state.arithmetic import UINT256_MOD
from ..state.mirror import ZERO_ACCOUNT, Account, Amount, MirrorState, TokenId
from ..state.updates import MintEvent


DEFAULT_REUSE_PERCENT = 30
DEFAULT_MAX_MINT_AMOUNT = (1 << 96) - 1

_ACCOUNT_DOMAIN = b"shadowfuzz.account.v1"
_MINT_AMOUNT_DOMAIN = b"shadowfuzz.mint-amount.v1"


def _seed_bytes(seed: int) -> bytes:
    return (int(seed) % UINT256_MOD).to_bytes(32, "big")


def _hash_int(domain: bytes, seed: int) -> int:
    return int.from_bytes(hashlib.sha256(domain + _seed_bytes(seed)).digest(), "big")


def derive_account(seed: int) -> Account:
    """Deterministic, never-zero address for `seed`."""
    data = _seed_bytes(seed)
    while True:
        digest = hashlib.sha256(_ACCOUNT_DOMAIN + data).digest()
        account = "0x" + digest[:20].hex()
        if account != ZERO_ACCOUNT:
            return account
        data = digest


def bound_amount(raw: int, lo: int, hi: int) -> int:
    """Map `raw` into [lo, hi] by modular reduction."""
    if lo > hi:
        raise ValueError(f"empty range [{lo}, {hi}]")
    return lo + (int(raw) % (hi - lo + 1))


class UniverseGenerator:
    def __init__(
        self,
        mirror: MirrorState,
        ledger: Ledger,
        *,
        reuse_percent: int = DEFAULT_REUSE_PERCENT,
        max_mint_amount: Amount = DEFAULT_MAX_MINT_AMOUNT,
    ) -> None:
        if not 0 <= reuse_percent <= 100:
            raise ValueError("reuse_percent must be within [0, 100]")
        if max_mint_amount < 1:
            raise ValueError("max_mint_amount must be positive")
        self.mirror = mirror
        self.ledger = ledger
        self.reuse_percent = int(reuse_percent)
        self.max_mint_amount = int(max_mint_amount)

    def _reuse(self, seed: int, population: int) -> bool:
        return population > 0 and int(seed) % 100 < self.reuse_percent

    def ensure_funded_account(self, seed: int) -> Tuple[Account, Optional[MintEvent]]:
        """
        Resolve `seed` to an account, funding it on the SUT if it is new.

        Returns `(account, event)`; `event` is None unless a mint happened, in
        which case the caller must apply it to the mirror.
        """
        population = self.mirror.account_count()
        if self._reuse(seed, population):
            return self.mirror.account_at(int(seed) % population), None

        account = derive_account(seed)
        if self.mirror.has_account(account):
            return account, None

        token_id = self.select_or_create_token_id(seed)
        amount = bound_amount(_hash_int(_MINT_AMOUNT_DOMAIN, seed), 1, self.max_mint_amount)
        self.ledger.mint(account, token_id, amount, b"")
        self.mirror.add_account(account)
        return account, MintEvent(account=account, token_id=token_id, amount=amount)

    def select_account(self, seed: int) -> Account:
        account, event = self.ensure_funded_account(seed)
        if event is not None:
            updates.apply_mint(self.mirror, event)
        return account

    def select_or_create_token_id(self, seed: int) -> TokenId:
        population = self.mirror.token_id_count()
        if self._reuse(seed, population):
            return self.mirror.token_id_at(int(seed) % population)
        token_id = int(seed) % UINT256_MOD
        self.mirror.add_token_id(token_id)
        return token_id

    def select_or_create_token_ids(self, seeds: Sequence[int]) -> List[TokenId]:
        return [self.select_or_create_token_id(seed) for seed in seeds]
