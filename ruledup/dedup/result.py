"""Data classes for duplicate detection results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class DuplicateType(str, Enum):
    EXACT = "exact"
    SEMANTIC = "semantic"
    STRUCTURAL = "structural"
    CONTENT = "content"
    NONE = "none"


@dataclass
class MatchResult:
    """One strategy's verdict for one candidate rule.

    Attributes:
        rule_id: Id of the candidate (existing) rule.
        similarity: Weighted similarity in [0, 1].
        confidence: How much the strategy trusts ``similarity``, in [0, 1].
        match_details: Strategy-specific score breakdown.
        explanation: Human-readable summary of the match.
        strategy: Name of the strategy that produced the result.
    """

    rule_id: str
    similarity: float
    confidence: float
    match_details: Dict[str, Any] = field(default_factory=dict)
    explanation: str = ""
    strategy: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ruleId": self.rule_id,
            "similarity": self.similarity,
            "confidence": self.confidence,
            "matchDetails": self.match_details,
            "explanation": self.explanation,
            "strategy": self.strategy,
        }


@dataclass
class RuleRef:
    """Lightweight reference to a matched existing rule."""

    id: str
    title: str
    category: str
    severity: str
    similarity: float
    strategy: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "category": self.category,
            "severity": self.severity,
            "similarity": self.similarity,
            "strategy": self.strategy,
        }


@dataclass
class DuplicateResult:
    """Verdict of a ``DuplicateDetector.check_duplicate`` call.

    Attributes:
        is_duplicate: Whether the best match reached the warning threshold.
        similarity: Similarity of the representative match (0.0 when none).
        duplicate_type: Which strategy family produced the representative match.
        reason: Human-readable explanation of the verdict.
        confidence: Confidence in the verdict.
        matched_rules: References to every rule the firing strategy returned,
            best first.
        match_details: Score breakdown of the representative match keyed by
            strategy name.
        diagnostics: Every result list a strategy produced during the call,
            keyed by strategy name.
    """

    is_duplicate: bool
    similarity: float = 0.0
    duplicate_type: DuplicateType = DuplicateType.NONE
    reason: str = ""
    confidence: float = 0.0
    matched_rules: List[RuleRef] = field(default_factory=list)
    match_details: Dict[str, Any] = field(default_factory=dict)
    diagnostics: Dict[str, List[MatchResult]] = field(default_factory=dict)

    @property
    def best_match(self) -> Optional[RuleRef]:
        return self.matched_rules[0] if self.matched_rules else None

    @classmethod
    def failed(cls, message: str) -> "DuplicateResult":
        """Degraded verdict returned when the pipeline raised."""
        return cls(
            is_duplicate=False,
            confidence=0.3,
            reason=f"detection failed: {message}",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isDuplicate": self.is_duplicate,
            "similarity": self.similarity,
            "duplicateType": self.duplicate_type.value,
            "reason": self.reason,
            "confidence": self.confidence,
            "matchedRules": [ref.to_dict() for ref in self.matched_rules],
            "matchDetails": self.match_details,
        }


@dataclass
class HealthCheckResult:
    """Result of ``DuplicateDetector.health_check``."""
    status: str
    healthy: bool
    issues: List[str] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)
