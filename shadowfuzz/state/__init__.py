"""
Mirror state for the shadowfuzz engine
"""

from .arithmetic import MAX_UINT256, MirrorArithmeticError, UnderflowMode
from .mirror import ZERO_ACCOUNT, Account, Amount, MirrorState, ShadowHandle, TokenId
from .updates import MintEvent, ShadowRegistrationError

__all__ = [
    "MAX_UINT256",
    "MirrorArithmeticError",
    "UnderflowMode",
    "ZERO_ACCOUNT",
    "Account",
    "Amount",
    "MirrorState",
    "ShadowHandle",
    "TokenId",
    "MintEvent",
    "ShadowRegistrationError",
]
