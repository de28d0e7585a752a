"""Base protocol shared by every similarity strategy.

A strategy turns rules into feature bundles, scores pairs of bundles and
filters the scores with its own thresholds. ``match`` runs that pipeline over
a candidate list; the orchestrator only ever calls ``match``.
"""

from __future__ import annotations

import abc
import copy
import hashlib
import threading
from typing import Any, Dict, Iterable, List, Mapping, Optional, Type

from pydantic import BaseModel

from ruledup.cache import MemoryCache, make_cache_key
from ruledup.config import merge_config
from ruledup.dedup.result import DuplicateType, MatchResult
from ruledup.models import Rule
from ruledup.utils.logger import log_debug, log_error, log_info
from ruledup.utils.text import truncate


def candidate_digest(candidates: Iterable[Rule]) -> str:
    """Order-sensitive hash of a candidate list's ids and contents."""
    digest = hashlib.md5(usedforsecurity=False)
    for candidate in candidates:
        digest.update(candidate.id.encode("utf-8"))
        digest.update(b"\x1f")
        digest.update(candidate.content_fingerprint().encode("ascii"))
        digest.update(b"\x1e")
    return digest.hexdigest()


class SimilarityStrategy(abc.ABC):
    """Abstract base for duplicate-detection strategies.

    Subclasses set ``config_model`` and implement ``extract_features``,
    ``score`` and ``accepts``. Caches are created per instance from the
    config's ``optimizations`` section and are never shared.
    """

    config_model: Type[BaseModel]

    def __init__(self, config: Optional[BaseModel] = None):
        self.config = config if config is not None else self.config_model()
        self.invocations = 0
        self.candidates_scored = 0
        self.errors = 0
        self._stats_lock = threading.Lock()
        self._build_caches()

    # -- protocol ---------------------------------------------------------

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Short machine-readable name used in results and logs."""

    @property
    @abc.abstractmethod
    def duplicate_type(self) -> DuplicateType:
        """Duplicate type reported when this strategy wins."""

    @abc.abstractmethod
    def extract_features(self, rule: Rule) -> Any:
        """Build this strategy's feature bundle for ``rule``."""

    @abc.abstractmethod
    def score(self, source: Any, candidate: Any, rule_id: str) -> MatchResult:
        """Score two feature bundles; ``rule_id`` identifies the candidate."""

    @abc.abstractmethod
    def accepts(self, result: MatchResult) -> bool:
        """Whether ``result`` passes this strategy's thresholds."""

    def prefilter(self, rule: Rule, candidates: List[Rule]) -> List[Rule]:
        """Cheap rejection before scoring. The default only drops ``rule`` itself."""
        return [c for c in candidates if c.id != rule.id]

    # -- pipeline ---------------------------------------------------------

    def _cap(self, text: str) -> str:
        return truncate(text, self.config.optimizations.max_text_length)

    def features_for(self, rule: Rule) -> Any:
        """Feature bundle for ``rule``, served from cache when enabled."""
        if not self.config.optimizations.enable_caching:
            return self.extract_features(rule)

        key = make_cache_key("features", rule.id, rule.content_fingerprint())
        features = self._feature_cache.get(key)
        if features is None:
            features = self.extract_features(rule)
            self._feature_cache.set(key, features)
        return features

    def compare(self, rule: Rule, candidate: Rule) -> MatchResult:
        """Unfiltered score of ``candidate`` against ``rule``."""
        return self.score(self.features_for(rule), self.features_for(candidate), candidate.id)

    def match(self, rule: Rule, candidates: Iterable[Rule]) -> List[MatchResult]:
        """Score every candidate and return the accepted ones, best first.

        A candidate whose scoring raises is logged and skipped. Ties keep
        the candidates' original order.
        """
        candidates = list(candidates)
        with self._stats_lock:
            self.invocations += 1

        caching = self.config.optimizations.enable_caching
        cache_key = None
        if caching:
            cache_key = make_cache_key(
                "results", rule.id, rule.content_fingerprint(), candidate_digest(candidates)
            )
            cached = self._result_cache.get(cache_key)
            if cached is not None:
                log_debug("Match results served from cache", strategy=self.name, rule_id=rule.id)
                return copy.deepcopy(cached)

        pool = self.prefilter(rule, candidates)
        source = self.features_for(rule)
        results: List[MatchResult] = []
        errors = 0

        for candidate in pool:
            try:
                result = self.score(source, self.features_for(candidate), candidate.id)
            except Exception as e:
                errors += 1
                log_error(
                    "Candidate scoring failed",
                    strategy=self.name,
                    rule_id=rule.id,
                    candidate_id=candidate.id,
                    error=str(e),
                )
                continue

            if result.similarity > 0 and self.accepts(result):
                results.append(result)

        results.sort(key=lambda r: r.similarity, reverse=True)

        with self._stats_lock:
            self.candidates_scored += len(pool)
            self.errors += errors

        if caching and not errors:
            self._result_cache.set(cache_key, copy.deepcopy(results))

        log_debug(
            "Strategy finished",
            strategy=self.name,
            rule_id=rule.id,
            candidates=len(candidates),
            scored=len(pool),
            matches=len(results),
        )
        return results

    # -- management -------------------------------------------------------

    def _build_caches(self) -> None:
        opt = self.config.optimizations
        self._feature_cache = MemoryCache(
            max_size=opt.max_cache_size, ttl_seconds=opt.cache_ttl_seconds, name=f"{self.name}_features"
        )
        self._result_cache = MemoryCache(
            max_size=opt.max_cache_size, ttl_seconds=opt.cache_ttl_seconds, name=f"{self.name}_results"
        )

    def update_config(self, patch: Mapping[str, Any]) -> None:
        """Deep-merge ``patch`` into the config; caches are rebuilt.

        Raises:
            pydantic.ValidationError: if the merged config is invalid. The
                current config is left untouched in that case.
        """
        self.config = merge_config(self.config, patch)
        self._build_caches()
        log_info("Matcher configuration updated", strategy=self.name)

    def clear_cache(self) -> None:
        self._feature_cache.clear()
        self._result_cache.clear()

    def cache_utilization(self) -> float:
        return max(self._feature_cache.utilization(), self._result_cache.utilization())

    def get_stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            counters = {
                "invocations": self.invocations,
                "candidates_scored": self.candidates_scored,
                "errors": self.errors,
            }
        return {
            "name": self.name,
            **counters,
            "feature_cache": self._feature_cache.get_stats(),
            "result_cache": self._result_cache.get_stats(),
        }
