"""Concept and keyword overlap using curated bilingual vocabularies.

Dictionary based rather than embedding based: results are deterministic and
every point of similarity can be traced to a shared term.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import FrozenSet, List, Tuple

from ruledup.config import SemanticMatchConfig
from ruledup.dedup.result import DuplicateType, MatchResult
from ruledup.dedup.strategies.base import SimilarityStrategy
from ruledup.models import Rule
from ruledup.utils.text import jaccard, tokenize, top_terms
from ruledup.vocab import (
    ACTIONS,
    CONCEPTS,
    DOMAIN_PATTERNS,
    NEGATIVE_WORDS,
    OBJECTS,
    POSITIVE_WORDS,
    TECHNICAL_TERMS,
)


@dataclass(frozen=True)
class SemanticFeatures:
    concepts: FrozenSet[str]
    keywords: Tuple[str, ...]
    technical_terms: FrozenSet[str]
    actions: FrozenSet[str]
    objects: FrozenSet[str]
    domains: FrozenSet[str]
    sentiment: str


def classify_domains(text: str) -> FrozenSet[str]:
    return frozenset(name for name, pattern in DOMAIN_PATTERNS.items() if pattern.search(text))


def classify_sentiment(text: str) -> str:
    positive = len(POSITIVE_WORDS.find(text))
    negative = len(NEGATIVE_WORDS.find(text))
    if positive > negative:
        return "positive"
    if negative > positive:
        return "negative"
    return "neutral"


def domain_similarity(a: FrozenSet[str], b: FrozenSet[str]) -> float:
    """1.0 for a shared domain, 0.3 for disjoint domains, 0.2 when either is unclassified."""
    if not a or not b:
        return 0.2
    return 1.0 if a & b else 0.3


class SemanticMatcher(SimilarityStrategy):
    """Weighted overlap of concepts, keywords, domains, context and technical terms."""

    config_model = SemanticMatchConfig

    @property
    def name(self) -> str:
        return "semantic"

    @property
    def duplicate_type(self) -> DuplicateType:
        return DuplicateType.SEMANTIC

    def extract_features(self, rule: Rule) -> SemanticFeatures:
        analysis = self.config.analysis
        text = f"{self._cap(rule.title)} {self._cap(rule.description)}"

        counts = Counter(tokenize(text, min_length=analysis.min_keyword_length))
        return SemanticFeatures(
            concepts=CONCEPTS.find(text),
            keywords=top_terms(counts, analysis.max_keywords),
            technical_terms=TECHNICAL_TERMS.find(text),
            actions=ACTIONS.find(text),
            objects=OBJECTS.find(text),
            domains=classify_domains(text),
            sentiment=classify_sentiment(text),
        )

    def score(self, source: SemanticFeatures, candidate: SemanticFeatures, rule_id: str) -> MatchResult:
        weights = self.config.weights

        source_keywords = frozenset(source.keywords)
        candidate_keywords = frozenset(candidate.keywords)

        concept_overlap = jaccard(source.concepts, candidate.concepts)
        keyword_similarity = jaccard(source_keywords, candidate_keywords)
        domain_sim = domain_similarity(source.domains, candidate.domains)
        action_overlap = jaccard(source.actions, candidate.actions)
        contextual = (
            (0.3 if source.sentiment == candidate.sentiment else 0.0)
            + 0.3 * action_overlap
            + 0.4 * jaccard(source.objects, candidate.objects)
        )
        technical = jaccard(source.technical_terms, candidate.technical_terms)

        similarity = (
            concept_overlap * weights.concept
            + keyword_similarity * weights.keyword
            + domain_sim * weights.domain
            + contextual * weights.context
            + technical * weights.technical
        ) / weights.total()

        shared_concepts = sorted(source.concepts & candidate.concepts)
        shared_keywords = sorted(source_keywords & candidate_keywords)
        if source.actions and candidate.actions:
            intent_similarity = action_overlap
        else:
            intent_similarity = 0.5

        confidence = similarity
        if len(shared_concepts) >= 2:
            confidence += 0.1
        if len(shared_keywords) >= 3:
            confidence += 0.05

        details = {
            "concept_overlap": round(concept_overlap, 4),
            "keyword_similarity": round(keyword_similarity, 4),
            "domain_similarity": round(domain_sim, 4),
            "contextual_similarity": round(contextual, 4),
            "technical_similarity": round(technical, 4),
            "shared_concepts": shared_concepts,
            "shared_keywords": shared_keywords,
            "topic_match": domain_sim >= self.config.thresholds.topic_match,
            "intent_similarity": round(intent_similarity, 4),
        }

        return MatchResult(
            rule_id=rule_id,
            similarity=min(similarity, 1.0),
            confidence=min(confidence, 0.95),
            match_details=details,
            explanation=self._explain(details, source, candidate),
            strategy=self.name,
        )

    def accepts(self, result: MatchResult) -> bool:
        thresholds = self.config.thresholds
        details = result.match_details
        return (
            result.similarity >= thresholds.overall
            and details["concept_overlap"] >= thresholds.concept_overlap
            and len(details["shared_concepts"]) >= thresholds.min_shared_concepts
        )

    @staticmethod
    def _explain(details: dict, source: SemanticFeatures, candidate: SemanticFeatures) -> str:
        parts: List[str] = []
        if details["shared_concepts"]:
            parts.append(f"shares concepts {', '.join(details['shared_concepts'][:5])}")
        if details["shared_keywords"]:
            parts.append(f"{len(details['shared_keywords'])} common keywords")
        if details["topic_match"]:
            domains = sorted(source.domains & candidate.domains)
            parts.append(f"same domain ({', '.join(domains)})")
        if source.sentiment == candidate.sentiment:
            parts.append(f"same {source.sentiment} tone")
        if not parts:
            return "No shared concepts or topics"
        return "; ".join(parts)

    def match_semantic(self, rule: Rule, candidates) -> List[MatchResult]:
        return self.match(rule, candidates)
