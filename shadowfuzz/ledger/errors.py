"""Exception raised by ledgers under test when an operation fails."""

from __future__ import annotations


class LedgerRevert(Exception):
    """A ledger operation was rejected and left no state change behind."""

    def __init__(self, reason: str) -> None:
        self.reason = str(reason)
        super().__init__(self.reason)
