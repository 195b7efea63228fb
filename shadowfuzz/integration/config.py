"""
Campaign configuration.

Precedence (later wins):
1. `CampaignConfig` defaults,
2. an optional YAML mapping (`--config FILE` / `SHADOWFUZZ_CONFIG`),
3. `SHADOWFUZZ_*` environment variables,
4. explicit overrides (CLI flags).

Numeric and boolean environment values are clamped or fall back to the
default when unparseable; YAML and override values are validated strictly.
Every source ends in `CampaignConfig.__post_init__`, which raises
`ValueError` on anything out of domain.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from ..core.policies import POLICIES
from ..core.universe import DEFAULT_MAX_MINT_AMOUNT, DEFAULT_REUSE_PERCENT
from ..state.arithmetic import MAX_UINT256, UnderflowMode


ENV_PREFIX = "SHADOWFUZZ_"


@dataclass(frozen=True)
class CampaignConfig:
    # Number of independent runs and operations per run.
    runs: int = 16
    depth: int = 128
    # If True, the first ledger revert ends the run as a failure.
    # Strict is only meaningful with this off.
    abort_on_failure: bool = False
    policy: str = "discriminate"
    seed: int = 0
    # Invariant sweep every N operations (0 = only at the end of each run).
    check_every: int = 1
    # Loose/Strict mirror arithmetic; Discriminate always panics.
    underflow_mode: str = UnderflowMode.PANIC.value
    reuse_percent: int = DEFAULT_REUSE_PERCENT
    max_mint_amount: int = DEFAULT_MAX_MINT_AMOUNT
    max_batch_len: int = 4
    # Distinct seeds that create a new account or token id; caps the population.
    # Reuse draws come on top, at `reuse_percent` of all seed draws.
    fresh_seeds: int = 16
    # Loose only: reconcile the mirror for reverted calls too (off = rollback).
    loose_apply_on_revert: bool = True
    # Recent calls kept per run for failure reports.
    trace_len: int = 32

    def __post_init__(self) -> None:
        for name in ("runs", "depth", "check_every", "max_batch_len", "trace_len", "seed", "fresh_seeds"):
            v = getattr(self, name)
            if not isinstance(v, int) or isinstance(v, bool) or v < 0:
                raise ValueError(f"{name} must be a non-negative int")
        if self.runs < 1 or self.depth < 1 or self.max_batch_len < 1 or self.fresh_seeds < 1:
            raise ValueError("runs, depth, max_batch_len and fresh_seeds must be positive")
        if self.policy not in POLICIES:
            raise ValueError(f"policy must be one of: {', '.join(sorted(POLICIES))}")
        UnderflowMode.parse(self.underflow_mode)
        if not 0 <= self.reuse_percent <= 100:
            raise ValueError("reuse_percent must be within [0, 100]")
        if not 1 <= self.max_mint_amount <= MAX_UINT256:
            raise ValueError("max_mint_amount must be within [1, 2**256 - 1]")

    @property
    def underflow(self) -> UnderflowMode:
        return UnderflowMode.parse(self.underflow_mode)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


_FIELD_TYPES: Dict[str, type] = {
    "runs": int,
    "depth": int,
    "abort_on_failure": bool,
    "policy": str,
    "seed": int,
    "check_every": int,
    "underflow_mode": str,
    "reuse_percent": int,
    "max_mint_amount": int,
    "max_batch_len": int,
    "fresh_seeds": int,
    "loose_apply_on_revert": bool,
    "trace_len": int,
}


def _env_int(env: Mapping[str, str], name: str, default: int, *, lo: int, hi: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return int(default)
    try:
        v = int(raw.strip(), 0)
    except ValueError:
        return int(default)
    if v < lo:
        return int(lo)
    if v > hi:
        return int(hi)
    return int(v)


def _bool_env(env: Mapping[str, str], name: str, *, default: bool) -> bool:
    raw = env.get(name)
    if raw is None:
        return bool(default)
    v = raw.strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off"}:
        return False
    return bool(default)


def _env_str(env: Mapping[str, str], name: str, default: str) -> str:
    raw = env.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    return v if v else default


def _coerce(name: str, value: Any) -> Any:
    want = _FIELD_TYPES[name]
    if want is bool:
        if not isinstance(value, bool):
            raise ValueError(f"{name} must be a bool")
        return value
    if want is int:
        if not isinstance(value, int) or isinstance(value, bool):
            raise ValueError(f"{name} must be an int")
        return int(value)
    if not isinstance(value, str):
        raise ValueError(f"{name} must be a string")
    return value.strip().lower()


def _apply_mapping(cfg: CampaignConfig, values: Mapping[str, Any], *, source: str) -> CampaignConfig:
    unknown = sorted(set(values) - set(_FIELD_TYPES))
    if unknown:
        raise ValueError(f"{source}: unknown config keys: {', '.join(unknown)}")
    return replace(cfg, **{k: _coerce(k, v) for k, v in values.items()})


def load_yaml_config(path: Path) -> Dict[str, Any]:
    obj = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    if obj is None:
        return {}
    if not isinstance(obj, Mapping):
        raise ValueError(f"{path}: config YAML must be a mapping")
    section = obj.get("campaign", obj)
    if not isinstance(section, Mapping):
        raise ValueError(f"{path}: 'campaign' section must be a mapping")
    return dict(section)


def config_from_env(cfg: CampaignConfig, env: Mapping[str, str]) -> CampaignConfig:
    p = ENV_PREFIX
    return replace(
        cfg,
        runs=_env_int(env, p + "RUNS", cfg.runs, lo=1, hi=1_000_000),
        depth=_env_int(env, p + "DEPTH", cfg.depth, lo=1, hi=1_000_000),
        abort_on_failure=_bool_env(env, p + "ABORT_ON_FAILURE", default=cfg.abort_on_failure),
        policy=_env_str(env, p + "POLICY", cfg.policy),
        seed=_env_int(env, p + "SEED", cfg.seed, lo=0, hi=MAX_UINT256),
        check_every=_env_int(env, p + "CHECK_EVERY", cfg.check_every, lo=0, hi=1_000_000),
        underflow_mode=_env_str(env, p + "UNDERFLOW_MODE", cfg.underflow_mode),
        reuse_percent=_env_int(env, p + "REUSE_PERCENT", cfg.reuse_percent, lo=0, hi=100),
        max_mint_amount=_env_int(env, p + "MAX_MINT_AMOUNT", cfg.max_mint_amount, lo=1, hi=MAX_UINT256),
        max_batch_len=_env_int(env, p + "MAX_BATCH_LEN", cfg.max_batch_len, lo=1, hi=64),
        fresh_seeds=_env_int(env, p + "FRESH_SEEDS", cfg.fresh_seeds, lo=1, hi=1_000_000),
        loose_apply_on_revert=_bool_env(env, p + "LOOSE_APPLY_ON_REVERT", default=cfg.loose_apply_on_revert),
        trace_len=_env_int(env, p + "TRACE_LEN", cfg.trace_len, lo=0, hi=10_000),
    )


def load_config(
    path: Optional[Path] = None,
    *,
    env: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> CampaignConfig:
    """Build a `CampaignConfig` from defaults, YAML, environment and overrides."""
    env = os.environ if env is None else env
    cfg = CampaignConfig()

    if path is None:
        raw_path = env.get(ENV_PREFIX + "CONFIG", "").strip()
        path = Path(raw_path) if raw_path else None
    if path is not None:
        cfg = _apply_mapping(cfg, load_yaml_config(path), source=str(path))

    cfg = config_from_env(cfg, env)

    if overrides:
        cfg = _apply_mapping(cfg, {k: v for k, v in overrides.items() if v is not None}, source="overrides")
    return cfg
