"""
Command-execution policies.

All three share one interface (`LedgerTestPolicy`) and the same mirror update
rules; they differ only in what surrounds the ledger call.
"""

from __future__ import annotations

from typing import Any, Dict, Type

from ...ledger.interface import Ledger
from ...state.mirror import MirrorState
from ..universe import UniverseGenerator
from .base import OPERATIONS, LedgerTestPolicy, OpResult
from .discriminate import DiscriminatePolicy
from .loose import LoosePolicy
from .strict import StrictPolicy

POLICIES: Dict[str, Type[LedgerTestPolicy]] = {
    LoosePolicy.name: LoosePolicy,
    StrictPolicy.name: StrictPolicy,
    DiscriminatePolicy.name: DiscriminatePolicy,
}


def make_policy(
    name: str, mirror: MirrorState, ledger: Ledger, universe: UniverseGenerator, **options: Any
) -> LedgerTestPolicy:
    """Build a policy by name; `options` go to its constructor (e.g. `apply_on_revert` for Loose)."""
    cls = POLICIES.get(str(name).strip().lower())
    if cls is None:
        choices = ", ".join(sorted(POLICIES))
        raise ValueError(f"unknown policy {name!r}; expected one of: {choices}")
    return cls(mirror, ledger, universe, **options)


__all__ = [
    "OPERATIONS",
    "POLICIES",
    "DiscriminatePolicy",
    "LedgerTestPolicy",
    "LoosePolicy",
    "OpResult",
    "StrictPolicy",
    "make_policy",
]
