"""
Universe generation, command-execution policies and the invariant sweep
"""

from .errors import InvariantViolationError, PolicyAssertionError, UnexpectedRevertError
from .invariants import INVARIANT_REGISTRY, InvariantChecker
from .policies import (
    OPERATIONS,
    POLICIES,
    DiscriminatePolicy,
    LedgerTestPolicy,
    LoosePolicy,
    OpResult,
    StrictPolicy,
    make_policy,
)
from .universe import UniverseGenerator, derive_account

__all__ = [
    "InvariantViolationError",
    "PolicyAssertionError",
    "UnexpectedRevertError",
    "INVARIANT_REGISTRY",
    "InvariantChecker",
    "OPERATIONS",
    "POLICIES",
    "DiscriminatePolicy",
    "LedgerTestPolicy",
    "LoosePolicy",
    "OpResult",
    "StrictPolicy",
    "make_policy",
    "UniverseGenerator",
    "derive_account",
]
