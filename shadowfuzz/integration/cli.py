"""
Command-line entry point for fuzz campaigns.

Exit status is 0 when every run passes and 1 otherwise (2 for usage errors,
as argparse does).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from functools import partial
from pathlib import Path
from typing import List, Optional

from ..core.policies import POLICIES
from ..ledger.faults import FAULTS, make_faulty_ledger
from ..state.arithmetic import UnderflowMode
from .campaign import CampaignReport, CampaignRunner
from .config import load_config

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Model-based fuzz campaign for a multi-id ledger with shadow tokens")
    parser.add_argument("--config", type=Path, default=None, help="YAML campaign config")
    parser.add_argument("--runs", type=int, default=None, help="Independent runs")
    parser.add_argument("--depth", type=int, default=None, help="Operations per run")
    parser.add_argument("--policy", choices=sorted(POLICIES), default=None)
    parser.add_argument("--seed", type=int, default=None, help="Campaign seed")
    parser.add_argument("--check-every", type=int, default=None, help="Invariant sweep interval (0 = end of run only)")
    parser.add_argument("--underflow-mode", choices=[m.value for m in UnderflowMode], default=None)
    parser.add_argument("--fresh-seeds", type=int, default=None, help="Distinct seeds that create accounts and ids")
    parser.add_argument("--max-batch-len", type=int, default=None)
    parser.add_argument(
        "--abort-on-failure",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Treat any ledger revert as a run failure",
    )
    parser.add_argument(
        "--loose-apply-on-revert",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Loose: reconcile the mirror for reverted calls too",
    )
    parser.add_argument("--fault", choices=sorted(FAULTS), default=None, help="Run against a deliberately broken ledger")
    parser.add_argument("--json", action="store_true", help="Print the full report as JSON")
    parser.add_argument("--log-level", default="WARNING", help="Python logging level")
    return parser


def _print_summary(report: CampaignReport) -> None:
    totals = report.totals()
    status = "ok" if report.ok else "FAIL"
    print(
        f"[shadowfuzz] {status} policy={report.config.policy} runs={totals['runs']} "
        f"failed={totals['failed_runs']} steps={totals['steps']} applied={totals['applied']} "
        f"rejected={totals['rejected']} reverted={totals['reverted']}"
    )
    for op, bucket in report.op_counts().items():
        print(f"  {op}: applied={bucket['applied']} rejected={bucket['rejected']} reverted={bucket['reverted']}")
    for run in report.failures:
        print(f"  run {run.run_index} (seed {run.seed}) step {run.steps}: {run.failure_kind}: {run.failure}")
        for call in run.trace[-5:]:
            print(f"    - {call}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    overrides = {
        "runs": args.runs,
        "depth": args.depth,
        "policy": args.policy,
        "seed": args.seed,
        "check_every": args.check_every,
        "underflow_mode": args.underflow_mode,
        "fresh_seeds": args.fresh_seeds,
        "max_batch_len": args.max_batch_len,
        "abort_on_failure": args.abort_on_failure,
        "loose_apply_on_revert": args.loose_apply_on_revert,
    }
    try:
        config = load_config(args.config, overrides=overrides)
    except (OSError, ValueError) as exc:
        print(f"[shadowfuzz] config error: {exc}", file=sys.stderr)
        return 2

    factory = None
    if args.fault is not None:
        factory = partial(make_faulty_ledger, args.fault)
        logger.info("running against faulty ledger %s", args.fault)

    report = CampaignRunner(config, factory).run()
    if args.json:
        print(json.dumps(report.to_dict(), indent=2, sort_keys=True))
    else:
        _print_summary(report)
    return 0 if report.ok else 1
