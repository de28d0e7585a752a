"""Text normalization and similarity helpers shared by the matchers."""

from __future__ import annotations

import re
from collections import Counter
from typing import AbstractSet, Iterable, List, Optional, Sequence, Tuple

from rapidfuzz.distance import Levenshtein

from ruledup.vocab import CHINESE_STOP_WORDS, STOP_WORDS

_WHITESPACE_RE = re.compile(r"\s+")
_PUNCT_RE = re.compile(r"[^\w\s]")
_SENTENCE_RE = re.compile(r"[.!?。！？]+")
_SCRIPT_RUN_RE = re.compile(r"[一-龥]+|[^\W一-龥]+")
_CJK_STOP_RE = re.compile(
    "|".join(re.escape(w) for w in sorted(CHINESE_STOP_WORDS, key=len, reverse=True))
)


def truncate(text: str, limit: int) -> str:
    """Cap text length before any quadratic-time work."""
    if not text:
        return ""
    return text if len(text) <= limit else text[:limit]


def normalize_text(text: str) -> str:
    """Lowercase, strip punctuation (keeping CJK and alphanumerics), collapse whitespace."""
    if not text:
        return ""
    text = _PUNCT_RE.sub(" ", text.lower())
    return _WHITESPACE_RE.sub(" ", text).strip()


def split_words(text: str) -> List[str]:
    return text.split() if text else []


def split_sentences(text: str) -> List[str]:
    if not text:
        return []
    return [s for s in _SENTENCE_RE.split(text) if s.strip()]


def tokenize(
    text: str,
    stop_words: AbstractSet[str] = STOP_WORDS,
    min_length: int = 2,
) -> List[str]:
    """Split text into comparable tokens.

    Latin-script runs become lowercase words. CJK runs have no word
    boundaries, so stop words split them first and each remaining run is
    turned into overlapping character bigrams.
    """
    if not text:
        return []
    text = _CJK_STOP_RE.sub(" ", text.lower())
    tokens: List[str] = []
    for run in _SCRIPT_RUN_RE.findall(text):
        if "一" <= run[0] <= "龥":
            if len(run) == 1:
                if min_length <= 1:
                    tokens.append(run)
                continue
            tokens.extend(run[i:i + 2] for i in range(len(run) - 1))
        elif len(run) >= min_length and run not in stop_words:
            tokens.append(run)
    return tokens


def ngrams(tokens: Sequence[str], size: int) -> List[str]:
    if size <= 1:
        return list(tokens)
    return [" ".join(tokens[i:i + size]) for i in range(len(tokens) - size + 1)]


def top_terms(counts: Counter, limit: int, min_count: int = 1) -> Tuple[str, ...]:
    """Most frequent terms; ties keep first-seen order."""
    return tuple(term for term, count in counts.most_common() if count >= min_count)[:limit]


# ---------------------------------------------------------------------------
# Similarity primitives
# ---------------------------------------------------------------------------


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def ratio_similarity(a: float, b: float) -> float:
    """1.0 if both are zero, 0.0 if exactly one is, else min/max."""
    if a == 0 and b == 0:
        return 1.0
    if a == 0 or b == 0:
        return 0.0
    return min(a, b) / max(a, b)


def closeness(a: float, b: float, scale: float = 1.0) -> float:
    """1 minus the absolute difference on a ``scale``-wide range, clamped to [0, 1]."""
    return clamp(1.0 - abs(a - b) / scale)


def jaccard(a: AbstractSet, b: AbstractSet) -> float:
    """Jaccard index; 0.0 when either side is empty."""
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def evidence_jaccard(a: AbstractSet, b: AbstractSet) -> Optional[float]:
    """Jaccard index, or None when neither side has anything to compare."""
    if not a and not b:
        return None
    return jaccard(a, b)


def weighted_mean(pairs: Iterable[Tuple[Optional[float], float]]) -> float:
    """Weighted mean over (score, weight) pairs, skipping ``None`` scores."""
    total = 0.0
    weight_sum = 0.0
    for score, weight in pairs:
        if score is None:
            continue
        total += score * weight
        weight_sum += weight
    return total / weight_sum if weight_sum > 0 else 0.0


def string_similarity(a: str, b: str) -> float:
    """Normalized edit-distance similarity with a small token-overlap bonus.

    Returns 0.0 when either side is empty and 1.0 for identical strings.
    The bonus (at most 0.2) rewards a shared leading word, a shared
    vocabulary and similar lengths.
    """
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0

    s1 = normalize_text(a)
    s2 = normalize_text(b)
    longer = max(len(s1), len(s2))
    if longer == 0:
        return 0.0
    if s1 == s2:
        return 1.0

    distance = Levenshtein.distance(s1, s2)
    base = (longer - distance) / longer

    words1 = s1.split(" ")
    words2 = s2.split(" ")
    bonus = 0.0
    if words1[0] == words2[0] and len(words1[0]) > 2:
        bonus += 0.05
    bonus += jaccard(set(words1), set(words2)) * 0.1
    if min(len(s1), len(s2)) / longer > 0.8:
        bonus += 0.02

    return min(base + min(bonus, 0.2), 1.0)
