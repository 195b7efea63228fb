from __future__ import annotations

import pytest

from shadowfuzz.core.universe import UniverseGenerator, bound_amount, derive_account
from shadowfuzz.ledger import ReferenceLedger
from shadowfuzz.state import ZERO_ACCOUNT, MirrorState


def _universe(**kwargs) -> UniverseGenerator:
    return UniverseGenerator(MirrorState(), ReferenceLedger(), **kwargs)


class TestDerivation:
    def test_account_is_deterministic_address(self):
        a = derive_account(42)
        assert a == derive_account(42)
        assert a != derive_account(43)
        assert a.startswith("0x") and len(a) == 42
        assert a != ZERO_ACCOUNT

    def test_bound_amount(self):
        assert bound_amount(0, 1, 10) == 1
        assert bound_amount(9, 1, 10) == 10
        assert bound_amount(10, 1, 10) == 1
        with pytest.raises(ValueError):
            bound_amount(0, 5, 4)


class TestFunding:
    def test_new_account_is_funded_on_both_sides(self):
        u = _universe(reuse_percent=0)
        account, event = u.ensure_funded_account(99)
        assert event is not None
        assert event.account == account
        assert 1 <= event.amount <= u.max_mint_amount
        assert u.ledger.balance_of(account, event.token_id) == event.amount
        assert u.mirror.has_account(account)
        assert u.mirror.has_token_id(event.token_id)
        # The event is returned, not applied.
        assert u.mirror.balance_of(account, event.token_id) == 0

    def test_select_account_applies_the_mint(self):
        u = _universe(reuse_percent=0)
        account = u.select_account(99)
        ids = [t for t in u.mirror.known_token_ids() if u.mirror.balance_of(account, t) > 0]
        assert len(ids) == 1
        assert u.mirror.supply_of(ids[0]) == u.ledger.total_supply(ids[0])

    def test_known_account_is_not_funded_twice(self):
        u = _universe(reuse_percent=0)
        first = u.select_account(7)
        supply = {t: u.ledger.total_supply(t) for t in u.mirror.known_token_ids()}
        account, event = u.ensure_funded_account(7)
        assert account == first
        assert event is None
        assert {t: u.ledger.total_supply(t) for t in u.mirror.known_token_ids()} == supply

    def test_funded_id_is_the_one_the_account_seed_names(self):
        u = _universe(reuse_percent=30)
        account, event = u.ensure_funded_account(40)
        assert event.token_id == 40
        assert u.select_or_create_token_id(40) == event.token_id
        _, event = u.ensure_funded_account(41)
        assert event.token_id == 41

    def test_mint_amount_respects_cap(self):
        u = _universe(reuse_percent=0, max_mint_amount=3)
        for seed in range(30, 40):
            _, event = u.ensure_funded_account(seed)
            assert event is not None and 1 <= event.amount <= 3


class TestReuse:
    def test_empty_population_never_reuses(self):
        assert _universe(reuse_percent=100).select_account(5) == derive_account(5)
        assert _universe(reuse_percent=100).select_or_create_token_id(5) == 5

    def test_reuse_picks_by_index(self):
        u = _universe(reuse_percent=30)
        a = u.select_account(50)
        b = u.select_account(51)
        assert u.mirror.known_accounts() == (a, b)
        # 29 % 100 < 30 and 29 % 2 == 1
        assert u.select_account(29) == b
        assert u.select_account(128) == a

    def test_seeds_above_the_threshold_create(self):
        u = _universe(reuse_percent=30)
        u.select_or_create_token_id(77)
        assert u.select_or_create_token_id(31) == 31
        assert u.select_or_create_token_id(2**256 + 45) == 45

    def test_token_ids_in_bulk(self):
        u = _universe(reuse_percent=0)
        assert u.select_or_create_token_ids([3, 4, 3]) == [3, 4, 3]
        assert u.mirror.known_token_ids() == (3, 4)

    def test_rejects_bad_parameters(self):
        with pytest.raises(ValueError):
            _universe(reuse_percent=101)
        with pytest.raises(ValueError):
            _universe(max_mint_amount=0)
