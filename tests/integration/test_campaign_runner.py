from __future__ import annotations

import random

import pytest

from shadowfuzz.core import OPERATIONS
from shadowfuzz.core.universe import UniverseGenerator
from shadowfuzz.integration import ArgumentDrawer, CampaignConfig, CampaignRunner, run_campaign
from shadowfuzz.integration.campaign import fresh_seed_values
from shadowfuzz.ledger import LedgerRevert, ReferenceLedger
from shadowfuzz.state import MirrorState


class _InflatingLedger(ReferenceLedger):
    def _credit(self, account, token_id, amount):
        super()._credit(account, token_id, amount + 1)


def _closed(*args, **kwargs):
    raise LedgerRevert("closed")


class _ClosedLedger(ReferenceLedger):
    pass


for _name in OPERATIONS:
    setattr(_ClosedLedger, _name, _closed)


@pytest.mark.parametrize(
    "policy, extra",
    [
        ("loose", {"loose_apply_on_revert": False}),
        ("strict", {}),
        ("discriminate", {}),
    ],
)
def test_reference_ledger_passes(policy, extra):
    cfg = CampaignConfig(runs=2, depth=40, seed=11, policy=policy, **extra)
    report = run_campaign(cfg)
    assert report.ok, [r.failure for r in report.failures]
    totals = report.totals()
    assert totals["runs"] == 2
    assert totals["steps"] == 80
    assert totals["applied"] + totals["rejected"] + totals["reverted"] == 80
    assert all(r.sweeps == 41 for r in report.runs)


def test_loose_reconciles_reverted_calls_and_the_sweep_reports_it():
    cfg = CampaignConfig(runs=2, depth=60, seed=3, policy="loose", underflow_mode="saturate")
    report = run_campaign(cfg)
    assert not report.ok
    assert {r.failure_kind for r in report.failures} == {"InvariantViolationError"}
    assert all(r.reverted >= 1 for r in report.failures)


def test_default_discriminate_campaign_applies_every_operation():
    report = run_campaign(CampaignConfig())
    assert report.ok, [r.failure for r in report.failures]
    counts = report.op_counts()
    assert set(counts) == set(OPERATIONS)
    assert {op for op, bucket in counts.items() if bucket["applied"] == 0} == set()


def test_runs_are_reproducible():
    cfg = CampaignConfig(runs=1, depth=25, seed=5, policy="loose")
    assert run_campaign(cfg).to_dict() == run_campaign(cfg).to_dict()


def test_divergent_ledger_fails():
    cfg = CampaignConfig(runs=2, depth=10, policy="loose")
    report = CampaignRunner(cfg, _InflatingLedger).run()
    assert not report.ok
    assert len(report.failures) == 2
    assert report.failures[0].failure_kind is not None
    assert report.failures[0].trace


def test_reverts_are_tolerated_by_default():
    cfg = CampaignConfig(runs=1, depth=12, policy="strict")
    report = CampaignRunner(cfg, _ClosedLedger).run()
    assert report.ok
    assert report.runs[0].reverted == 12


def test_abort_on_failure_stops_at_first_revert():
    cfg = CampaignConfig(runs=3, depth=12, policy="strict", abort_on_failure=True)
    report = CampaignRunner(cfg, _ClosedLedger).run()
    assert len(report.runs) == 1
    run = report.runs[0]
    assert run.failure_kind == "revert"
    assert run.steps == 1
    assert run.failure.endswith("closed")


def test_sweep_only_at_end_when_check_every_is_zero():
    cfg = CampaignConfig(runs=1, depth=15, policy="discriminate", check_every=0)
    report = run_campaign(cfg)
    assert report.ok
    assert report.runs[0].sweeps == 1


def test_report_to_dict_shape():
    cfg = CampaignConfig(runs=1, depth=5, policy="strict", trace_len=3)
    data = run_campaign(cfg).to_dict()
    assert data["config"]["policy"] == "strict"
    assert set(data["totals"]) == {"runs", "failed_runs", "steps", "applied", "rejected", "reverted"}
    assert len(data["runs"][0]["trace"]) == 3
    assert set(data["op_counts"]) <= set(OPERATIONS)


class TestArgumentDrawer:
    def test_draws_match_argument_kinds(self):
        drawer = ArgumentDrawer(random.Random(0), reuse_percent=30, fresh_seeds=8, max_batch_len=3)
        allowed = set(range(30)) | set(range(30, 38))
        for _ in range(50):
            for name, kinds in OPERATIONS.items():
                args = drawer.draw(name)
                assert len(args) == len(kinds)
                for kind, value in zip(kinds, args):
                    if kind in ("caller", "owner", "actor", "id"):
                        assert value in allowed
                    elif kind in ("ids", "amounts"):
                        assert 1 <= len(value) <= 3
                    elif kind == "flag":
                        assert isinstance(value, bool)

    def test_unknown_operation(self):
        with pytest.raises(ValueError):
            ArgumentDrawer(random.Random(0)).draw("burn")

    def test_fresh_seeds_skip_the_reuse_band(self):
        assert fresh_seed_values(3, 30) == [30, 31, 32]
        assert fresh_seed_values(72, 30)[-2:] == [130, 131]
        assert fresh_seed_values(2, 100) == [0, 1]

    def test_reuse_rate_matches_reuse_percent(self):
        drawer = ArgumentDrawer(random.Random(7), reuse_percent=30, fresh_seeds=16)
        draws = [drawer.seed() for _ in range(5000)]
        rate = sum(1 for s in draws if s % 100 < 30) / len(draws)
        assert 0.27 <= rate <= 0.33
        assert len({s for s in draws if s % 100 >= 30}) == 16

    def test_draws_aim_at_live_balances(self):
        mirror = MirrorState()
        universe = UniverseGenerator(mirror, ReferenceLedger(), reuse_percent=30)
        account = universe.select_account(30)
        value = mirror.balance_of(account, 30)
        drawer = ArgumentDrawer(random.Random(1), reuse_percent=30, fresh_seeds=8, mirror=mirror)
        aimed = 0
        for _ in range(400):
            caller, owner, _, id_seed, amount = drawer.draw("transfer")
            if owner == 30 and id_seed == 30 and amount <= value:
                aimed += 1
        assert aimed >= 100

    def test_account_seed_resolves_to_the_account(self):
        mirror = MirrorState()
        universe = UniverseGenerator(mirror, ReferenceLedger(), reuse_percent=30)
        first = universe.select_account(5)
        fresh = universe.select_account(33)
        drawer = ArgumentDrawer(random.Random(0), reuse_percent=30, fresh_seeds=8, mirror=mirror)
        assert drawer.account_seed(fresh) == 33
        assert universe.select_account(drawer.account_seed(first)) == first
        assert drawer.id_seed(33) == 33
