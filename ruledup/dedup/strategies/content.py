"""Deep content comparison: distributions, linguistic style, topics and layout.

The most expensive strategy and the fallback of last resort. Style signals
(language, formality, layout) say little on their own, so the weighted score
is anchored on shared vocabulary: two rules with no words or domain terms in
common keep only ``lexical_anchor_floor`` of their style score.
"""

from __future__ import annotations

import re
import unicodedata
from collections import Counter
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional

from ruledup.config import ContentMatchConfig
from ruledup.dedup.result import DuplicateType, MatchResult
from ruledup.dedup.strategies.base import SimilarityStrategy
from ruledup.models import Rule
from ruledup.utils.text import (
    closeness,
    evidence_jaccard,
    jaccard,
    ngrams,
    ratio_similarity,
    split_sentences,
    tokenize,
    top_terms,
    weighted_mean,
)
from ruledup.vocab import (
    ACTION_VERBS,
    CONTENT_NEGATIVE_WORDS,
    CONTENT_POSITIVE_WORDS,
    DOMAIN_TERMS,
    FORMAL_INDICATORS,
    INFORMAL_INDICATORS,
    TOPIC_WORDS,
)

_CJK_CHAR_RE = re.compile(r"[一-龥]")
_LATIN_CHAR_RE = re.compile(r"[A-Za-z]")
_LATIN_WORD_RE = re.compile(r"[A-Za-z]+")
_ACRONYM_RE = re.compile(r"(?<![A-Za-z])[A-Z]{2,}(?![A-Za-z])")
_PARAGRAPH_RE = re.compile(r"\n\s*\n")
_BULLET_RE = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+")
_CODE_BLOCK_RE = re.compile(r"```[\s\S]*?```")
_LINK_RE = re.compile(r"https?://\S+")


# ---------------------------------------------------------------------------
# Feature bundles
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TextualFeatures:
    char_frequency: Dict[str, int]
    word_frequency: Dict[str, int]
    ngram_frequency: Dict[str, int]
    punctuation_signature: str
    special_char_ratio: float


@dataclass(frozen=True)
class LinguisticFeatures:
    language: str
    formality: str
    writing_style: str
    terminology_density: float
    acronym_ratio: float


@dataclass(frozen=True)
class TopicFeatures:
    topic_words: FrozenSet[str]
    domain_terms: FrozenSet[str]
    action_verbs: FrozenSet[str]
    concept_keywords: FrozenSet[str]
    sentiment_score: float

    def all_terms(self) -> FrozenSet[str]:
        return self.topic_words | self.domain_terms | self.action_verbs | self.concept_keywords


@dataclass(frozen=True)
class LayoutFeatures:
    paragraph_count: int
    avg_paragraph_length: float
    bullet_ratio: float
    code_example_count: int
    link_count: int


@dataclass(frozen=True)
class ContentFeatures:
    textual: TextualFeatures
    linguistic: LinguisticFeatures
    topics: TopicFeatures
    layout: LayoutFeatures


def detect_language(text: str) -> str:
    cjk = len(_CJK_CHAR_RE.findall(text))
    latin = len(_LATIN_CHAR_RE.findall(text))
    letters = cjk + latin
    if letters == 0:
        return "unknown"
    if cjk / letters > 0.7:
        return "chinese"
    if latin / letters > 0.7:
        return "english"
    return "mixed"


def detect_formality(text: str) -> str:
    formal = len(FORMAL_INDICATORS.find(text))
    informal = len(INFORMAL_INDICATORS.find(text))
    if formal > informal:
        return "formal"
    if informal > 0:
        return "informal"
    return "technical"


def writing_style(avg_sentence_tokens: float) -> str:
    if avg_sentence_tokens > 20:
        return "detailed"
    if avg_sentence_tokens > 15:
        return "comprehensive"
    if avg_sentence_tokens > 10:
        return "balanced"
    return "concise"


def similarity_type(similarity: float) -> str:
    if similarity >= 0.9:
        return "identical"
    if similarity >= 0.7:
        return "very_similar"
    if similarity >= 0.5:
        return "similar"
    if similarity >= 0.3:
        return "related"
    return "different"


def _is_punctuation(char: str) -> bool:
    return unicodedata.category(char).startswith("P")


# ---------------------------------------------------------------------------
# Matcher
# ---------------------------------------------------------------------------


class ContentMatcher(SimilarityStrategy):
    """Textual, linguistic, topical and layout similarity."""

    config_model = ContentMatchConfig

    @property
    def name(self) -> str:
        return "content"

    @property
    def duplicate_type(self) -> DuplicateType:
        return DuplicateType.CONTENT

    # -- extraction -------------------------------------------------------

    def extract_features(self, rule: Rule) -> ContentFeatures:
        title = self._cap(rule.title)
        description = self._cap(rule.description)
        text = f"{title}\n\n{description}".strip()
        tokens = tokenize(text)

        return ContentFeatures(
            textual=self._textual(text, tokens),
            linguistic=self._linguistic(text, tokens),
            topics=self._topics(text, tokens),
            layout=self._layout(description, rule),
        )

    def _textual(self, text: str, tokens: List[str]) -> TextualFeatures:
        analysis = self.config.analysis
        chars = Counter(c for c in text.lower() if not c.isspace())
        ngram_counts = Counter(ngrams(tokens, analysis.ngram_size))
        punctuation = sorted({c for c in text if _is_punctuation(c)})
        special = sum(
            1 for c in text
            if not c.isspace() and not c.isalnum() and not _CJK_CHAR_RE.match(c)
        )
        return TextualFeatures(
            char_frequency=dict(chars),
            word_frequency=dict(Counter(tokens)),
            ngram_frequency={
                gram: count for gram, count in ngram_counts.items()
                if count >= analysis.min_ngram_frequency
            },
            punctuation_signature="".join(punctuation)[:20],
            special_char_ratio=special / len(text) if text else 0.0,
        )

    @staticmethod
    def _linguistic(text: str, tokens: List[str]) -> LinguisticFeatures:
        sentences = split_sentences(text)
        avg_sentence_tokens = len(tokens) / len(sentences) if sentences else 0.0
        latin_words = _LATIN_WORD_RE.findall(text)
        term_hits = len(DOMAIN_TERMS.occurrences(text))
        return LinguisticFeatures(
            language=detect_language(text),
            formality=detect_formality(text),
            writing_style=writing_style(avg_sentence_tokens),
            terminology_density=min(1.0, term_hits / len(tokens)) if tokens else 0.0,
            acronym_ratio=len(_ACRONYM_RE.findall(text)) / len(latin_words) if latin_words else 0.0,
        )

    def _topics(self, text: str, tokens: List[str]) -> TopicFeatures:
        analysis = self.config.analysis
        positive = len(CONTENT_POSITIVE_WORDS.find(text))
        negative = len(CONTENT_NEGATIVE_WORDS.find(text))
        sentiment = (positive - negative) / (positive + negative) if positive + negative else 0.0
        frequent = top_terms(Counter(tokens), analysis.max_concept_keywords, min_count=2)
        return TopicFeatures(
            topic_words=TOPIC_WORDS.find(text),
            domain_terms=DOMAIN_TERMS.find(text),
            action_verbs=ACTION_VERBS.find(text),
            concept_keywords=frozenset(frequent),
            sentiment_score=sentiment,
        )

    @staticmethod
    def _layout(description: str, rule: Rule) -> LayoutFeatures:
        paragraphs = [p for p in _PARAGRAPH_RE.split(description) if p.strip()]
        lines = [line for line in description.splitlines() if line.strip()]
        bullets = sum(1 for line in lines if _BULLET_RE.match(line))
        return LayoutFeatures(
            paragraph_count=len(paragraphs),
            avg_paragraph_length=sum(len(p) for p in paragraphs) / len(paragraphs) if paragraphs else 0.0,
            bullet_ratio=bullets / len(lines) if lines else 0.0,
            code_example_count=rule.examples.count + len(_CODE_BLOCK_RE.findall(description)),
            link_count=len(_LINK_RE.findall(description)),
        )

    # -- component similarities -------------------------------------------

    @staticmethod
    def textual_similarity(a: TextualFeatures, b: TextualFeatures) -> Dict[str, Optional[float]]:
        words = evidence_jaccard(a.word_frequency.keys(), b.word_frequency.keys())
        grams = evidence_jaccard(a.ngram_frequency.keys(), b.ngram_frequency.keys())
        punctuation = 1.0 if a.punctuation_signature == b.punctuation_signature else 0.0
        special = closeness(a.special_char_ratio, b.special_char_ratio)
        return {
            "word": words,
            "ngram": grams,
            "punctuation": punctuation,
            "special_chars": special,
            "overall": weighted_mean([(words, 0.4), (grams, 0.3), (punctuation, 0.2), (special, 0.1)]),
        }

    @staticmethod
    def linguistic_similarity(a: LinguisticFeatures, b: LinguisticFeatures) -> float:
        return (
            (0.3 if a.language == b.language else 0.0)
            + (0.3 if a.formality == b.formality else 0.0)
            + (0.2 if a.writing_style == b.writing_style else 0.0)
            + 0.1 * closeness(a.terminology_density, b.terminology_density)
            + 0.1 * closeness(a.acronym_ratio, b.acronym_ratio)
        )

    @staticmethod
    def topic_similarity(a: TopicFeatures, b: TopicFeatures) -> float:
        return weighted_mean([
            (evidence_jaccard(a.topic_words, b.topic_words), 0.3),
            (evidence_jaccard(a.domain_terms, b.domain_terms), 0.3),
            (evidence_jaccard(a.action_verbs, b.action_verbs), 0.2),
            (evidence_jaccard(a.concept_keywords, b.concept_keywords), 0.1),
            (closeness(a.sentiment_score, b.sentiment_score, scale=2.0), 0.1),
        ])

    @staticmethod
    def layout_similarity(a: LayoutFeatures, b: LayoutFeatures) -> float:
        return (
            0.2 * ratio_similarity(a.paragraph_count, b.paragraph_count)
            + 0.2 * ratio_similarity(a.avg_paragraph_length, b.avg_paragraph_length)
            + 0.2 * closeness(a.bullet_ratio, b.bullet_ratio)
            + 0.2 * ratio_similarity(a.code_example_count, b.code_example_count)
            + 0.2 * ratio_similarity(a.link_count, b.link_count)
        )

    # -- protocol ---------------------------------------------------------

    def score(self, source: ContentFeatures, candidate: ContentFeatures, rule_id: str) -> MatchResult:
        weights = self.config.weights
        floor = self.config.analysis.lexical_anchor_floor

        textual = self.textual_similarity(source.textual, candidate.textual)
        linguistic = self.linguistic_similarity(source.linguistic, candidate.linguistic)
        topical = self.topic_similarity(source.topics, candidate.topics)
        layout = self.layout_similarity(source.layout, candidate.layout)

        weighted = weighted_mean([
            (textual["overall"], weights.textual),
            (linguistic, weights.linguistic),
            (topical, weights.semantic),
            (layout, weights.structural),
        ])
        term_overlap = jaccard(source.topics.all_terms(), candidate.topics.all_terms())
        anchor = max(textual["word"] or 0.0, term_overlap)
        similarity = min(weighted * (floor + (1 - floor) * anchor), 1.0)

        confidence = min((similarity + textual["overall"] * 0.3 + topical * 0.2) / 1.5, 0.95)
        kind = similarity_type(similarity)

        details = {
            "textual_similarity": round(textual["overall"], 4),
            "word_similarity": None if textual["word"] is None else round(textual["word"], 4),
            "ngram_similarity": None if textual["ngram"] is None else round(textual["ngram"], 4),
            "character_overlap": round(
                jaccard(source.textual.char_frequency.keys(), candidate.textual.char_frequency.keys()), 4
            ),
            "linguistic_similarity": round(linguistic, 4),
            "semantic_similarity": round(topical, 4),
            "structural_similarity": round(layout, 4),
            "lexical_anchor": round(anchor, 4),
            "similarity_type": kind,
            "key_similarities": self._key_similarities(source, candidate),
            "key_differences": self._key_differences(source, candidate, anchor),
        }

        return MatchResult(
            rule_id=rule_id,
            similarity=similarity,
            confidence=confidence,
            match_details=details,
            explanation=self._explain(kind, details),
            strategy=self.name,
        )

    def accepts(self, result: MatchResult) -> bool:
        return result.similarity >= self.config.thresholds.overall

    # -- explanations -----------------------------------------------------

    @staticmethod
    def _key_similarities(a: ContentFeatures, b: ContentFeatures) -> List[str]:
        found: List[str] = []
        if a.linguistic.language == b.linguistic.language:
            found.append(f"same language ({a.linguistic.language})")
        if a.linguistic.formality == b.linguistic.formality:
            found.append(f"same formality ({a.linguistic.formality})")
        if a.linguistic.writing_style == b.linguistic.writing_style:
            found.append(f"same writing style ({a.linguistic.writing_style})")
        shared_terms = sorted(a.topics.domain_terms & b.topics.domain_terms)
        if shared_terms:
            found.append(f"shared domain terms: {', '.join(shared_terms[:5])}")
        shared_actions = sorted(a.topics.action_verbs & b.topics.action_verbs)
        if shared_actions:
            found.append(f"shared actions: {', '.join(shared_actions[:5])}")
        return found

    @staticmethod
    def _key_differences(a: ContentFeatures, b: ContentFeatures, anchor: float) -> List[str]:
        found: List[str] = []
        if a.linguistic.language != b.linguistic.language:
            found.append(f"language differs ({a.linguistic.language} vs {b.linguistic.language})")
        if a.linguistic.formality != b.linguistic.formality:
            found.append(f"formality differs ({a.linguistic.formality} vs {b.linguistic.formality})")
        if abs(a.topics.sentiment_score - b.topics.sentiment_score) > 0.5:
            found.append("sentiment differs")
        if a.layout.paragraph_count != b.layout.paragraph_count:
            found.append(f"paragraph count differs ({a.layout.paragraph_count} vs {b.layout.paragraph_count})")
        if anchor < 0.1:
            found.append("little shared vocabulary")
        return found

    @staticmethod
    def _explain(kind: str, details: dict) -> str:
        summary = f"Content is {kind.replace('_', ' ')}"
        if details["key_similarities"]:
            summary += f"; {details['key_similarities'][0]}"
        if details["key_differences"]:
            summary += f"; {details['key_differences'][0]}"
        return summary

    def match_content(self, rule: Rule, candidates) -> List[MatchResult]:
        return self.match(rule, candidates)
