"""Shape and metadata similarity, independent of exact wording.

Shape alone says little about topic, so the weighted score is gated on
shared vocabulary: rules with no words or concepts in common keep only
``lexical_anchor_floor`` of it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import FrozenSet, List

from ruledup.config import StructuralMatchConfig
from ruledup.dedup.result import DuplicateType, MatchResult
from ruledup.dedup.strategies.base import SimilarityStrategy
from ruledup.models import Rule
from ruledup.utils.text import (
    clamp,
    closeness,
    jaccard,
    ratio_similarity,
    split_sentences,
    split_words,
    tokenize,
)
from ruledup.vocab import CONCEPTS

CODE_BLOCK_RE = re.compile(r"```[\s\S]*?```")
LINK_RE = re.compile(r"https?://\S+")
LIST_ITEM_RE = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+", re.MULTILINE)

# (feature, weight) pairs; agreement means both present or both absent
FORMAT_WEIGHTS = (
    ("example_count", 0.4),
    ("code_block_count", 0.3),
    ("link_count", 0.2),
    ("list_item_count", 0.1),
)


@dataclass(frozen=True)
class StructuralFeatures:
    title_length: int
    description_length: int
    total_length: int
    word_count: int
    sentence_count: int
    avg_word_length: float
    avg_sentence_length: float
    vocabulary_richness: float
    readability: float
    code_block_count: int
    link_count: int
    list_item_count: int
    example_count: int
    category: str
    severity: str
    tag_count: int
    created_at: datetime
    updated_at: datetime
    has_metadata: bool
    tokens: FrozenSet[str]
    concepts: FrozenSet[str]


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def similarity_pattern(similarity: float) -> str:
    if similarity >= 0.9:
        return "identical"
    if similarity >= 0.7:
        return "very_similar"
    if similarity >= 0.5:
        return "similar"
    return "different"


class StructuralMatcher(SimilarityStrategy):
    """Length, complexity, format and metadata similarity."""

    config_model = StructuralMatchConfig

    @property
    def name(self) -> str:
        return "structural"

    @property
    def duplicate_type(self) -> DuplicateType:
        return DuplicateType.STRUCTURAL

    def extract_features(self, rule: Rule) -> StructuralFeatures:
        title = self._cap(rule.title)
        description = self._cap(rule.description)
        text = f"{title} {description}".strip()

        words = split_words(text)
        sentences = split_sentences(text)
        word_count = len(words)
        avg_word_length = sum(len(w) for w in words) / word_count if word_count else 0.0
        avg_sentence_length = word_count / len(sentences) if sentences else 0.0
        richness = len({w.lower() for w in words}) / word_count if word_count else 0.0
        readability = clamp(100 - (2 * avg_sentence_length + avg_word_length), 0.0, 100.0)

        example_text = "\n".join(rule.examples.bad + rule.examples.good)
        return StructuralFeatures(
            title_length=len(title),
            description_length=len(description),
            total_length=len(text),
            word_count=word_count,
            sentence_count=len(sentences),
            avg_word_length=avg_word_length,
            avg_sentence_length=avg_sentence_length,
            vocabulary_richness=richness,
            readability=readability,
            code_block_count=len(CODE_BLOCK_RE.findall(description)) + len(CODE_BLOCK_RE.findall(example_text)),
            link_count=len(LINK_RE.findall(description)),
            list_item_count=len(LIST_ITEM_RE.findall(description)),
            example_count=rule.examples.count,
            category=rule.category,
            severity=rule.severity.value,
            tag_count=len(rule.tags),
            created_at=_as_utc(rule.created_at),
            updated_at=_as_utc(rule.updated_at),
            has_metadata=bool(rule.metadata),
            tokens=frozenset(tokenize(text)),
            concepts=CONCEPTS.find(text),
        )

    # -- component similarities -------------------------------------------

    @staticmethod
    def length_similarity(a: StructuralFeatures, b: StructuralFeatures) -> float:
        return (
            0.3 * ratio_similarity(a.title_length, b.title_length)
            + 0.3 * ratio_similarity(a.description_length, b.description_length)
            + 0.2 * ratio_similarity(a.total_length, b.total_length)
            + 0.1 * ratio_similarity(a.word_count, b.word_count)
            + 0.1 * ratio_similarity(a.sentence_count, b.sentence_count)
        )

    @staticmethod
    def complexity_similarity(a: StructuralFeatures, b: StructuralFeatures) -> float:
        return (
            0.2 * ratio_similarity(a.avg_word_length, b.avg_word_length)
            + 0.3 * ratio_similarity(a.avg_sentence_length, b.avg_sentence_length)
            + 0.3 * closeness(a.vocabulary_richness, b.vocabulary_richness)
            + 0.2 * closeness(a.readability, b.readability, scale=100.0)
        )

    @staticmethod
    def format_similarity(a: StructuralFeatures, b: StructuralFeatures) -> float:
        return sum(
            weight for feature, weight in FORMAT_WEIGHTS
            if (getattr(a, feature) > 0) == (getattr(b, feature) > 0)
        )

    @staticmethod
    def lexical_anchor(a: StructuralFeatures, b: StructuralFeatures) -> float:
        return max(jaccard(a.tokens, b.tokens), jaccard(a.concepts, b.concepts))

    def metadata_similarity(self, a: StructuralFeatures, b: StructuralFeatures) -> float:
        decay_days = self.config.analysis.recency_decay_days
        days_apart = abs((a.updated_at - b.updated_at).total_seconds()) / 86400
        recency = max(0.0, 1 - days_apart / decay_days)
        return (
            (0.3 if a.category == b.category else 0.0)
            + (0.2 if a.severity == b.severity else 0.0)
            + (0.2 if (a.tag_count > 0) == (b.tag_count > 0) else 0.0)
            + 0.2 * recency
            + (0.1 if a.has_metadata == b.has_metadata else 0.0)
        )

    # -- protocol ---------------------------------------------------------

    def score(self, source: StructuralFeatures, candidate: StructuralFeatures, rule_id: str) -> MatchResult:
        weights = self.config.weights

        length = self.length_similarity(source, candidate)
        complexity = self.complexity_similarity(source, candidate)
        fmt = self.format_similarity(source, candidate)
        metadata = self.metadata_similarity(source, candidate)
        anchor = self.lexical_anchor(source, candidate)
        floor = self.config.analysis.lexical_anchor_floor

        weighted = (
            length * weights.length
            + complexity * weights.complexity
            + fmt * weights.format
            + metadata * weights.metadata
        ) / weights.total()
        similarity = min(weighted * (floor + (1 - floor) * anchor), 1.0)

        confidence = similarity
        if length >= 0.8 and metadata >= 0.6:
            confidence += 0.1

        pattern = similarity_pattern(similarity)
        details = {
            "length_similarity": round(length, 4),
            "complexity_similarity": round(complexity, 4),
            "format_similarity": round(fmt, 4),
            "metadata_similarity": round(metadata, 4),
            "lexical_anchor": round(anchor, 4),
            "similarity_pattern": pattern,
        }

        return MatchResult(
            rule_id=rule_id,
            similarity=similarity,
            confidence=min(confidence, 0.95),
            match_details=details,
            explanation=self._explain(pattern, details),
            strategy=self.name,
        )

    def accepts(self, result: MatchResult) -> bool:
        return result.similarity >= self.config.thresholds.overall

    @staticmethod
    def _explain(pattern: str, details: dict) -> str:
        labels = {
            "length_similarity": "length",
            "complexity_similarity": "complexity",
            "format_similarity": "format",
            "metadata_similarity": "metadata",
        }
        strong: List[str] = [label for key, label in labels.items() if details[key] >= 0.8]
        if not strong:
            return f"Structure is {pattern.replace('_', ' ')}"
        return f"Structure is {pattern.replace('_', ' ')}; close on {', '.join(strong)}"

    def match_structural(self, rule: Rule, candidates) -> List[MatchResult]:
        return self.match(rule, candidates)
