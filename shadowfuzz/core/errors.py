"""Exception types for the shadowfuzz policies and invariant sweep."""

from __future__ import annotations


class PolicyAssertionError(Exception):
    """Raised when an inline Strict/Discriminate check fails."""


class UnexpectedRevertError(PolicyAssertionError):
    """Raised when a call that passed every Discriminate guard still reverted."""


class InvariantViolationError(Exception):
    """Raised when the global invariant sweep finds one or more violations."""

    def __init__(self, violations: list[str]) -> None:
        self.violations = violations
        super().__init__(f"invariant violations: {'; '.join(violations)}")
