"""Multi-layer duplicate detection for rules.

A chain of similarity strategies, ordered from cheapest to most expensive,
run by ``DuplicateDetector``.
"""

from ruledup.dedup.result import (
    DuplicateResult,
    DuplicateType,
    HealthCheckResult,
    MatchResult,
    RuleRef,
)
from ruledup.dedup.detector import DuplicateDetector, build_default_strategies

__all__ = [
    "DuplicateDetector",
    "DuplicateResult",
    "DuplicateType",
    "HealthCheckResult",
    "MatchResult",
    "RuleRef",
    "build_default_strategies",
]
