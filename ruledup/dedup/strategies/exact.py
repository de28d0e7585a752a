"""Lexical matching over title, description and SQL pattern.

The cheapest and most precise strategy, so the detector always runs it
first.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from ruledup.config import ExactMatchConfig
from ruledup.dedup.result import DuplicateType, MatchResult
from ruledup.dedup.strategies.base import SimilarityStrategy
from ruledup.models import Rule
from ruledup.utils.text import string_similarity, weighted_mean


@dataclass(frozen=True)
class ExactFeatures:
    title: str
    description: str
    sql_pattern: str
    category: str
    severity: str


def match_strength(similarity: float, matched_fields: int) -> str:
    if similarity >= 0.9 and matched_fields >= 4:
        return "very_strong"
    if similarity >= 0.8 and matched_fields >= 3:
        return "strong"
    if similarity >= 0.6 and matched_fields >= 2:
        return "moderate"
    return "weak"


class ExactMatcher(SimilarityStrategy):
    """Weighted normalized edit-distance similarity across rule fields."""

    config_model = ExactMatchConfig

    @property
    def name(self) -> str:
        return "exact"

    @property
    def duplicate_type(self) -> DuplicateType:
        return DuplicateType.EXACT

    def extract_features(self, rule: Rule) -> ExactFeatures:
        return ExactFeatures(
            title=self._cap(rule.title.strip()),
            description=self._cap(rule.description.strip()),
            sql_pattern=self._cap(rule.sql_pattern.strip()),
            category=rule.category,
            severity=rule.severity.value,
        )

    def prefilter(self, rule: Rule, candidates: List[Rule]) -> List[Rule]:
        candidates = super().prefilter(rule, candidates)
        if not self.config.optimizations.enable_prefiltering:
            return candidates

        min_title = self.config.thresholds.prefilter_title
        title = self._cap(rule.title.strip())
        return [
            c for c in candidates
            if c.category == rule.category
            or c.severity == rule.severity
            or string_similarity(title, self._cap(c.title.strip())) >= min_title
        ]

    def score(self, source: ExactFeatures, candidate: ExactFeatures, rule_id: str) -> MatchResult:
        weights = self.config.weights
        thresholds = self.config.thresholds

        title_sim = string_similarity(source.title, candidate.title)
        desc_sim = string_similarity(source.description, candidate.description)
        # No SQL pattern on either side is no evidence either way.
        sql_sim: Optional[float] = None
        if source.sql_pattern or candidate.sql_pattern:
            sql_sim = string_similarity(source.sql_pattern, candidate.sql_pattern)
        category_match = source.category == candidate.category
        severity_match = source.severity == candidate.severity

        similarity = min(weighted_mean([
            (title_sim, weights.title),
            (desc_sim, weights.description),
            (sql_sim, weights.sql_pattern),
            (1.0 if category_match else 0.0, weights.category),
            (1.0 if severity_match else 0.0, weights.severity),
        ]), 1.0)

        matched_fields: List[str] = []
        if title_sim >= thresholds.title:
            matched_fields.append("title")
        if desc_sim >= thresholds.description:
            matched_fields.append("description")
        if sql_sim and sql_sim >= thresholds.sql_pattern:
            matched_fields.append("sql_pattern")
        if category_match:
            matched_fields.append("category")
        if severity_match:
            matched_fields.append("severity")

        strength = match_strength(similarity, len(matched_fields))
        confidence = similarity + min(len(matched_fields) * 0.05, 0.15)
        if similarity >= 0.9:
            confidence += 0.05

        details: Dict[str, object] = {
            "title_similarity": round(title_sim, 4),
            "description_similarity": round(desc_sim, 4),
            "sql_pattern_similarity": round(sql_sim, 4) if sql_sim is not None else None,
            "category_match": category_match,
            "severity_match": severity_match,
            "matched_fields": matched_fields,
            "match_strength": strength,
        }

        return MatchResult(
            rule_id=rule_id,
            similarity=similarity,
            confidence=min(confidence, 0.99),
            match_details=details,
            explanation=self._explain(similarity, strength, matched_fields),
            strategy=self.name,
        )

    def accepts(self, result: MatchResult) -> bool:
        thresholds = self.config.thresholds
        return (
            result.similarity >= thresholds.overall
            and len(result.match_details["matched_fields"]) >= thresholds.min_matched_fields
        )

    @staticmethod
    def _explain(similarity: float, strength: str, matched_fields: List[str]) -> str:
        if not matched_fields:
            return f"No fields agree (similarity {similarity:.2f})"
        return f"{strength} lexical match on {', '.join(matched_fields)} (similarity {similarity:.2f})"

    def match_exact(self, rule: Rule, candidates) -> List[MatchResult]:
        return self.match(rule, candidates)
