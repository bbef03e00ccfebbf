"""
Outcome of an operation against an optional dependency.

Cache and blob storage failures are absorbed rather than raised; callers
(and tests) inspect the outcome to tell a real success from a degraded path.
"""

from enum import Enum


class Outcome(str, Enum):
    """Result of a best-effort operation."""
    APPLIED = "applied"                            # Operation took effect
    SKIPPED_UNCONFIGURED = "skipped-unconfigured"  # Dependency not configured or not connected
    FAILED_ABSORBED = "failed-absorbed"            # Dependency errored; error logged and swallowed

    @property
    def applied(self) -> bool:
        return self is Outcome.APPLIED
