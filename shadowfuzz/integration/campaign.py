"""
Campaign driver.

A campaign is `config.runs` independent runs. Each run starts from a fresh
ledger and an empty mirror, then executes `config.depth` randomly drawn
operations through the configured policy, sweeping the invariants every
`config.check_every` steps and once more at the end.

Arguments are drawn from a `random.Random` seeded per run, so a failing run is
reproduced by `(config.seed, run_index)` alone.
"""

from __future__ import annotations

import logging
import random
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional, Sequence

from ..core.errors import InvariantViolationError, PolicyAssertionError
from ..core.invariants import InvariantChecker
from ..core.policies import OPERATIONS, make_policy
from ..core.universe import DEFAULT_REUSE_PERCENT, UniverseGenerator, derive_account
from ..ledger.errors import LedgerRevert
from ..ledger.interface import Ledger
from ..ledger.reference import ReferenceLedger
from ..state.arithmetic import MAX_UINT256, MirrorArithmeticError, UnderflowMode
from ..state.mirror import Account, MirrorState, TokenId
from ..state.updates import ShadowRegistrationError
from .config import CampaignConfig

logger = logging.getLogger(__name__)

LedgerFactory = Callable[[], Ledger]

# Exceptions that end a run as a failure. Anything else is a harness bug and propagates.
RUN_FAILURES = (PolicyAssertionError, MirrorArithmeticError, ShadowRegistrationError)

_SMALL_AMOUNT = 1 << 32
_TYPICAL_AMOUNT = 1 << 96

# Share of draws aimed at a live mirror cell, and how strongly the other
# arguments follow that cell once one is chosen.
FOCUS_PERCENT = 50
_SAME_CALLER = 0.6
_FOCUS_ID = 0.75
_HOLDER_ID = 0.5
_FOCUS_AMOUNT = 0.7

# Which mirror table an operation spends from. Unlisted operations aim at balances.
_FOCUS_TABLE: Dict[str, str] = {
    "transmute_to_shadow": "registered",
    "batch_transmute_to_shadow": "registered",
    "transmute_from_shadow": "shadow",
    "batch_transmute_from_shadow": "shadow",
    "decrease_allowance": "allowance",
    "batch_decrease_allowance": "allowance",
}


def run_seed(campaign_seed: int, run_index: int) -> int:
    return (int(campaign_seed) * 1_000_003 + int(run_index)) % (1 << 64)


def fresh_seed_values(count: int, reuse_percent: int) -> List[int]:
    """
    `count` distinct seeds that take the universe generator's creation branch.

    Creation needs `seed % 100 >= reuse_percent`, so the values step over the
    reuse band of every hundred.
    """
    span = 100 - int(reuse_percent)
    if span <= 0:
        return list(range(count))
    return [100 * (i // span) + reuse_percent + i % span for i in range(count)]


@dataclass(frozen=True)
class _Focus:
    holder: Account
    other: Optional[Account]
    token_id: TokenId
    value: int


class ArgumentDrawer:
    """
    Draws policy arguments for one operation from its argument kinds.

    Seeds reuse an existing entity at `reuse_percent` and otherwise come from
    `fresh_seeds` creation seeds, which caps the population. When a mirror is
    attached, about half the draws aim at one live cell (a balance, shadow
    balance or allowance): the holder acts for itself, ids follow the cell
    and amounts stay within its value, so guarded operations get through.
    """

    def __init__(
        self,
        rng: random.Random,
        *,
        reuse_percent: int = DEFAULT_REUSE_PERCENT,
        fresh_seeds: int = 16,
        max_batch_len: int = 4,
        mirror: Optional[MirrorState] = None,
    ) -> None:
        if fresh_seeds < 1 or max_batch_len < 1:
            raise ValueError("fresh_seeds and max_batch_len must be positive")
        self.rng = rng
        self.reuse_percent = int(reuse_percent)
        self.max_batch_len = int(max_batch_len)
        self.mirror = mirror
        self.fresh = fresh_seed_values(int(fresh_seeds), self.reuse_percent)
        self._fresh_by_account = {
            derive_account(s): s for s in self.fresh if s % 100 >= self.reuse_percent
        }

    def seed(self) -> int:
        if self.rng.randrange(100) < self.reuse_percent:
            return self.rng.randrange(self.reuse_percent)
        return self.rng.choice(self.fresh)

    def amount(self) -> int:
        roll = self.rng.random()
        if roll < 0.10:
            return 0
        if roll < 0.35:
            return self.rng.randrange(1, _SMALL_AMOUNT)
        if roll < 0.40:
            return MAX_UINT256
        return self.rng.randrange(_TYPICAL_AMOUNT)

    def flag(self) -> bool:
        return self.rng.random() < 0.5

    def batch_len(self) -> int:
        return self.rng.randint(1, self.max_batch_len)

    # -- mirror-aimed draws ----------------------------------------------------

    def account_seed(self, account: Account) -> int:
        """A seed that resolves to `account`, or a plain draw if none is known."""
        seed = self._fresh_by_account.get(account)
        if seed is not None:
            return seed
        # Reuse seed r resolves to roster entry r % population, so r below both bounds is exact.
        m = self.mirror
        if m is not None:
            for index in range(min(self.reuse_percent, m.account_count())):
                if m.account_at(index) == account:
                    return index
        return self.seed()

    def id_seed(self, token_id: TokenId) -> int:
        """A seed that resolves to `token_id`, or a plain draw if none is known."""
        if token_id % 100 >= self.reuse_percent:
            return token_id
        m = self.mirror
        if m is not None:
            for index in range(min(self.reuse_percent, m.token_id_count())):
                if m.token_id_at(index) == token_id:
                    return index
        return self.seed()

    def _cells(self, table: str) -> List[_Focus]:
        m = self.mirror
        if table == "shadow":
            return [_Focus(a, None, t, v) for (a, t), v in m.shadow_balances.items() if v > 0]
        if table == "allowance":
            return [_Focus(o, s, t, v) for (o, s, t), v in m.allowances.items() if v > 0]
        balances = [_Focus(a, None, t, v) for (a, t), v in m.balances.items() if v > 0]
        if table == "registered":
            registered = [c for c in balances if m.is_registered(c.token_id)]
            return registered or balances
        return balances

    def focus(self, operation: str) -> Optional[_Focus]:
        if self.mirror is None or self.rng.randrange(100) >= FOCUS_PERCENT:
            return None
        cells = self._cells(_FOCUS_TABLE.get(operation, "balance"))
        return self.rng.choice(cells) if cells else None

    def _id(self, focus: Optional[_Focus], holder_seed: int) -> int:
        if focus is not None and self.rng.random() < _FOCUS_ID:
            return self.id_seed(focus.token_id)
        # A fresh account seed also names the id it was funded with.
        if self.rng.random() < _HOLDER_ID:
            return holder_seed
        return self.seed()

    def _amount(self, focus: Optional[_Focus], parts: int) -> int:
        if focus is not None and self.rng.random() < _FOCUS_AMOUNT:
            return self.rng.randint(0, focus.value // parts)
        return self.amount()

    def draw(self, operation: str) -> List[Any]:
        kinds = OPERATIONS.get(operation)
        if kinds is None:
            raise ValueError(f"unknown operation: {operation!r}")
        focus = self.focus(operation)
        holder_kind = "owner" if "owner" in kinds else "caller"
        holder = self.account_seed(focus.holder) if focus is not None else self.seed()

        n = self.batch_len()
        # One draw in ten gets an amounts list of independent length.
        m = self.batch_len() if self.rng.random() < 0.10 else n
        out: List[Any] = []
        for kind in kinds:
            if kind == holder_kind:
                out.append(holder)
            elif kind == "caller":
                out.append(holder if self.rng.random() < _SAME_CALLER else self.seed())
            elif kind == "actor":
                if focus is not None and focus.other is not None:
                    out.append(self.account_seed(focus.other))
                else:
                    out.append(self.seed())
            elif kind == "id":
                out.append(self._id(focus, holder))
            elif kind == "ids":
                out.append([self._id(focus, holder) for _ in range(n)])
            elif kind == "amount":
                out.append(self._amount(focus, 1))
            elif kind == "amounts":
                out.append([self._amount(focus, m) for _ in range(m)])
            elif kind == "flag":
                out.append(self.flag())
            else:
                raise ValueError(f"unknown argument kind: {kind!r}")
        return out


@dataclass
class RunReport:
    run_index: int
    seed: int
    steps: int = 0
    applied: int = 0
    rejected: int = 0
    reverted: int = 0
    sweeps: int = 0
    failure: Optional[str] = None
    failure_kind: Optional[str] = None
    trace: List[str] = field(default_factory=list)
    op_counts: Dict[str, Dict[str, int]] = field(default_factory=dict)
    universe: Dict[str, int] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.failure is None

    def count(self, operation: str, outcome: str) -> None:
        bucket = self.op_counts.setdefault(operation, {"applied": 0, "rejected": 0, "reverted": 0})
        bucket[outcome] += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_index": self.run_index,
            "seed": self.seed,
            "ok": self.ok,
            "steps": self.steps,
            "applied": self.applied,
            "rejected": self.rejected,
            "reverted": self.reverted,
            "sweeps": self.sweeps,
            "failure": self.failure,
            "failure_kind": self.failure_kind,
            "trace": list(self.trace),
            "op_counts": {k: dict(v) for k, v in sorted(self.op_counts.items())},
            "universe": dict(self.universe),
        }


@dataclass
class CampaignReport:
    config: CampaignConfig
    runs: List[RunReport] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(r.ok for r in self.runs)

    @property
    def failures(self) -> List[RunReport]:
        return [r for r in self.runs if not r.ok]

    def totals(self) -> Dict[str, int]:
        return {
            "runs": len(self.runs),
            "failed_runs": len(self.failures),
            "steps": sum(r.steps for r in self.runs),
            "applied": sum(r.applied for r in self.runs),
            "rejected": sum(r.rejected for r in self.runs),
            "reverted": sum(r.reverted for r in self.runs),
        }

    def op_counts(self) -> Dict[str, Dict[str, int]]:
        out: Dict[str, Dict[str, int]] = {}
        for r in self.runs:
            for op, bucket in r.op_counts.items():
                agg = out.setdefault(op, {"applied": 0, "rejected": 0, "reverted": 0})
                for k, v in bucket.items():
                    agg[k] += v
        return {k: out[k] for k in sorted(out)}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "config": self.config.to_dict(),
            "totals": self.totals(),
            "op_counts": self.op_counts(),
            "runs": [r.to_dict() for r in self.runs],
        }


def _format_call(operation: str, args: Sequence[Any]) -> str:
    return f"{operation}({', '.join(repr(a) for a in args)})"


class CampaignRunner:
    def __init__(self, config: CampaignConfig, ledger_factory: Optional[LedgerFactory] = None) -> None:
        self.config = config
        self.ledger_factory: LedgerFactory = ledger_factory or ReferenceLedger

    def _mirror_mode(self) -> UnderflowMode:
        if self.config.policy == "discriminate":
            return UnderflowMode.PANIC
        return self.config.underflow

    def run_once(self, run_index: int) -> RunReport:
        cfg = self.config
        seed = run_seed(cfg.seed, run_index)
        rng = random.Random(seed)
        ledger = self.ledger_factory()
        mirror = MirrorState(underflow=self._mirror_mode())
        universe = UniverseGenerator(
            mirror, ledger, reuse_percent=cfg.reuse_percent, max_mint_amount=cfg.max_mint_amount
        )
        options = {"apply_on_revert": cfg.loose_apply_on_revert} if cfg.policy == "loose" else {}
        policy = make_policy(cfg.policy, mirror, ledger, universe, **options)
        drawer = ArgumentDrawer(
            rng,
            reuse_percent=cfg.reuse_percent,
            fresh_seeds=cfg.fresh_seeds,
            max_batch_len=cfg.max_batch_len,
            mirror=mirror,
        )
        checker = InvariantChecker(mirror, ledger)

        report = RunReport(run_index=run_index, seed=seed)
        trace: Deque[str] = deque(maxlen=cfg.trace_len)
        op_names = list(OPERATIONS)

        def fail(kind: str, detail: str) -> None:
            report.failure_kind = kind
            report.failure = detail
            logger.warning("run %d (seed %d) failed at step %d: %s: %s", run_index, seed, report.steps, kind, detail)

        for step in range(1, cfg.depth + 1):
            operation = rng.choice(op_names)
            args = drawer.draw(operation)
            trace.append(_format_call(operation, args))
            report.steps = step

            try:
                result = policy.dispatch(operation, args)
            except LedgerRevert as exc:
                report.reverted += 1
                report.count(operation, "reverted")
                logger.debug("run %d step %d: %s reverted (%s)", run_index, step, operation, exc.reason)
                if cfg.abort_on_failure:
                    fail("revert", f"{operation}: {exc.reason}")
                    break
            except RUN_FAILURES as exc:
                fail(type(exc).__name__, str(exc))
                break
            else:
                outcome = "applied" if result.applied else "rejected"
                if result.applied:
                    report.applied += 1
                else:
                    report.rejected += 1
                report.count(operation, outcome)

            if cfg.check_every and step % cfg.check_every == 0:
                report.sweeps += 1
                violations = checker.check_all()
                if violations:
                    fail(InvariantViolationError.__name__, "; ".join(violations))
                    break

        if report.ok:
            report.sweeps += 1
            violations = checker.check_all()
            if violations:
                fail(InvariantViolationError.__name__, "; ".join(violations))

        report.trace = list(trace)
        report.universe = mirror.summary()
        return report

    def run(self) -> CampaignReport:
        cfg = self.config
        logger.info(
            "campaign start: policy=%s runs=%d depth=%d seed=%d", cfg.policy, cfg.runs, cfg.depth, cfg.seed
        )
        out = CampaignReport(config=cfg)
        for run_index in range(cfg.runs):
            report = self.run_once(run_index)
            out.runs.append(report)
            if not report.ok and cfg.abort_on_failure:
                break
        totals = out.totals()
        logger.info(
            "campaign done: ok=%s runs=%d failed=%d steps=%d applied=%d rejected=%d reverted=%d",
            out.ok,
            totals["runs"],
            totals["failed_runs"],
            totals["steps"],
            totals["applied"],
            totals["rejected"],
            totals["reverted"],
        )
        return out


def run_campaign(config: CampaignConfig, ledger_factory: Optional[LedgerFactory] = None) -> CampaignReport:
    return CampaignRunner(config, ledger_factory).run()
