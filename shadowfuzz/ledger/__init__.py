"""
Ledger-under-test boundary and the in-memory reference ledger
"""

from .errors import LedgerRevert
from .faults import FAULTS, make_faulty_ledger
from .interface import Ledger, ShadowToken
from .reference import ReferenceLedger, ReferenceShadowToken, derive_shadow_handle

__all__ = [
    "LedgerRevert",
    "FAULTS",
    "make_faulty_ledger",
    "Ledger",
    "ShadowToken",
    "ReferenceLedger",
    "ReferenceShadowToken",
    "derive_shadow_handle",
]
