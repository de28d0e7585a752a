"""Similarity strategies, ordered from cheapest to most expensive."""

from ruledup.dedup.strategies.base import SimilarityStrategy
from ruledup.dedup.strategies.exact import ExactMatcher
from ruledup.dedup.strategies.semantic import SemanticMatcher
from ruledup.dedup.strategies.structural import StructuralMatcher
from ruledup.dedup.strategies.content import ContentMatcher

__all__ = [
    "SimilarityStrategy",
    "ExactMatcher",
    "SemanticMatcher",
    "StructuralMatcher",
    "ContentMatcher",
]
