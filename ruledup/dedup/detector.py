"""Orchestrator for the duplicate-detection waterfall.

The ``DuplicateDetector`` runs strategies in order from cheapest to most
expensive and stops at the first strategy that returns any match. Only
existing rules of the candidate's category are compared.
"""

from __future__ import annotations

import copy
import threading
from datetime import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel

from ruledup.cache import MemoryCache, make_cache_key
from ruledup.config import DetectorConfig, get_config, merge_config
from ruledup.dedup.result import (
    DuplicateResult,
    DuplicateType,
    HealthCheckResult,
    MatchResult,
    RuleRef,
)
from ruledup.dedup.strategies import (
    ContentMatcher,
    ExactMatcher,
    SemanticMatcher,
    SimilarityStrategy,
    StructuralMatcher,
)
from ruledup.loader import load_rules_from_directory
from ruledup.models import Rule
from ruledup.performance import PerformanceMetrics
from ruledup.utils.logger import (
    configure_logging,
    log_debug,
    log_duplicate_detection,
    log_error,
    log_info,
    preview,
)

RuleSource = Union[str, Path, Iterable[Union[Rule, Mapping[str, Any]]]]
Pool = Mapping[str, Tuple[Rule, ...]]

_EMPTY_POOL: Pool = MappingProxyType({})


def build_default_strategies(config: Optional[DetectorConfig] = None) -> List[SimilarityStrategy]:
    """Build the default ordered chain of similarity strategies.

    The order matters, cheapest first:
      1. ExactMatcher      – edit distance over a few fields
      2. SemanticMatcher   – vocabulary lookups and set overlaps
      3. StructuralMatcher – length, format and metadata statistics
      4. ContentMatcher    – distributions, style and layout
    """
    config = config or get_config()
    return [
        ExactMatcher(config.exact),
        SemanticMatcher(config.semantic),
        StructuralMatcher(config.structural),
        ContentMatcher(config.content),
    ]


class DuplicateDetector:
    """Decide whether a rule duplicates one already in the pool.

    Args:
        config: Detector configuration. Defaults to ``get_config()``.
        strategies: Ordered strategies to run. Defaults to
            ``build_default_strategies(config)``.

    Usage::

        detector = DuplicateDetector()
        detector.load_existing_rules("rules/")
        result = detector.check_duplicate(rule)
        if result.is_duplicate:
            ...
    """

    def __init__(
        self,
        config: Optional[DetectorConfig] = None,
        strategies: Optional[List[SimilarityStrategy]] = None,
    ):
        self.config = config if config is not None else get_config()
        configure_logging(self.config.log_level, self.config.log_format)
        self.strategies = (
            strategies if strategies is not None else build_default_strategies(self.config)
        )
        self.metrics = PerformanceMetrics()
        self._cache = self._new_cache()
        # (generation, pool), swapped as one object so readers see a matching pair
        self._pool_state: Tuple[int, Pool] = (0, _EMPTY_POOL)
        self._pool_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self.checks = 0
        self.duplicates_found = 0
        self.failures = 0

    def _new_cache(self) -> MemoryCache:
        return MemoryCache(
            max_size=self.config.max_cache_entries,
            ttl_seconds=self.config.cache_ttl_seconds,
            name="detector_results",
        )

    # -- pool -------------------------------------------------------------

    @property
    def pool(self) -> Pool:
        """Current pool; a reader keeps a consistent snapshot for its whole call."""
        return self._pool_state[1]

    @property
    def pool_size(self) -> int:
        return sum(len(rules) for rules in self.pool.values())

    def load_existing_rules(self, source: RuleSource) -> None:
        """Replace the pool with the rules from ``source``.

        ``source`` is either a directory (scanned for ``approved/**/*.md``)
        or an iterable of ``Rule`` objects or mappings. The new pool is built
        fully before it replaces the old one.
        """
        if isinstance(source, (str, Path)):
            rules = load_rules_from_directory(
                source, max_description_length=self.config.max_description_length
            )
        else:
            rules = [r if isinstance(r, Rule) else Rule.model_validate(r) for r in source]

        grouped: Dict[str, List[Rule]] = {}
        for rule in rules:
            grouped.setdefault(rule.category, []).append(rule)
        pool = MappingProxyType({category: tuple(items) for category, items in grouped.items()})

        with self._pool_lock:
            self._pool_state = (self._pool_state[0] + 1, pool)
            self._cache.clear()

        log_info(
            "Existing rules loaded",
            rule_count=len(rules),
            category_count=len(pool),
            categories=sorted(pool),
        )

    # -- detection --------------------------------------------------------

    def check_duplicate(self, rule: Union[Rule, Mapping[str, Any]]) -> DuplicateResult:
        """Run the waterfall for ``rule``. Never raises.

        Returns:
            ``DuplicateResult``. On an internal failure the result is a
            non-duplicate with confidence 0.3 and a ``detection failed``
            reason.
        """
        with self._stats_lock:
            self.checks += 1

        try:
            with self.metrics.time_operation("check_duplicate"):
                return self._check(rule)
        except Exception as e:
            with self._stats_lock:
                self.failures += 1
            log_error("Duplicate detection failed", error=str(e), error_type=type(e).__name__)
            return DuplicateResult.failed(str(e))

    def _check(self, rule: Union[Rule, Mapping[str, Any]]) -> DuplicateResult:
        if not isinstance(rule, Rule):
            rule = Rule.model_validate(rule)

        if rule.is_blank():
            return DuplicateResult(
                is_duplicate=False,
                confidence=0.3,
                reason="rule has no comparable text",
            )

        generation, pool = self._pool_state
        cache_key = make_cache_key(
            "check", generation, rule.id, rule.title, rule.category, rule.content_fingerprint()
        )
        cached = self._cache.get(cache_key)
        if cached is not None:
            log_debug("Detection result served from cache", rule_id=rule.id)
            return copy.deepcopy(cached)

        candidates = pool.get(rule.category, ())
        result = self._run_waterfall(rule, candidates)
        self._cache.set(cache_key, copy.deepcopy(result))
        return result

    def _run_waterfall(self, rule: Rule, candidates: Tuple[Rule, ...]) -> DuplicateResult:
        log_debug(
            "Starting duplicate detection chain",
            rule_id=rule.id,
            title=preview(rule.title),
            candidate_count=len(candidates),
            strategy_count=len(self.strategies),
        )

        if not candidates:
            return self._no_duplicate(f"no existing rules in category '{rule.category}'", {})

        diagnostics: Dict[str, List[MatchResult]] = {}
        for strategy in self.strategies:
            with self.metrics.time_operation(f"strategy.{strategy.name}"):
                results = strategy.match(rule, candidates)
            diagnostics[strategy.name] = results
            if results:
                return self._aggregate(rule, strategy, results, candidates, diagnostics)

        log_debug("No duplicates found across all strategies", rule_id=rule.id)
        return self._no_duplicate("no duplicate detected", diagnostics)

    @staticmethod
    def _no_duplicate(reason: str, diagnostics: Dict[str, List[MatchResult]]) -> DuplicateResult:
        return DuplicateResult(
            is_duplicate=False,
            similarity=0.0,
            duplicate_type=DuplicateType.NONE,
            reason=reason,
            confidence=0.9,
            diagnostics=diagnostics,
        )

    def _reported_type(self, strategy: SimilarityStrategy) -> DuplicateType:
        if strategy.duplicate_type is DuplicateType.CONTENT and self.config.report_content_as_semantic:
            return DuplicateType.SEMANTIC
        return strategy.duplicate_type

    def _aggregate(
        self,
        rule: Rule,
        strategy: SimilarityStrategy,
        results: List[MatchResult],
        candidates: Tuple[Rule, ...],
        diagnostics: Dict[str, List[MatchResult]],
    ) -> DuplicateResult:
        # Strict comparison: on ties the earliest result wins.
        best = results[0]
        for result in results[1:]:
            if result.similarity > best.similarity:
                best = result

        by_id = {c.id: c for c in candidates}
        refs: List[RuleRef] = []
        for result in sorted(results, key=lambda r: r.similarity, reverse=True):
            existing = by_id.get(result.rule_id)
            refs.append(RuleRef(
                id=result.rule_id,
                title=existing.title if existing else "",
                category=existing.category if existing else rule.category,
                severity=existing.severity.value if existing else "",
                similarity=result.similarity,
                strategy=result.strategy,
            ))

        is_duplicate = best.similarity >= self.config.warning_threshold
        best_ref = next(ref for ref in refs if ref.id == best.rule_id)
        if is_duplicate:
            reason = f"{strategy.name} match with rule '{best.rule_id}': {best.explanation}"
            with self._stats_lock:
                self.duplicates_found += 1
            log_duplicate_detection(
                best.similarity,
                best.rule_id,
                rule_id=rule.id,
                strategy=strategy.name,
            )
        else:
            reason = (
                f"closest {strategy.name} match '{best.rule_id}' is below the warning "
                f"threshold ({best.similarity:.2f} < {self.config.warning_threshold:.2f})"
            )

        return DuplicateResult(
            is_duplicate=is_duplicate,
            similarity=best.similarity,
            duplicate_type=self._reported_type(strategy),
            reason=reason,
            confidence=min(best.similarity + 0.1, 1.0),
            matched_rules=[best_ref] + [ref for ref in refs if ref is not best_ref],
            match_details={
                strategy.name: {
                    "rule_id": best.rule_id,
                    "similarity": best.similarity,
                    "confidence": best.confidence,
                    "explanation": best.explanation,
                    **best.match_details,
                }
            },
            diagnostics=diagnostics,
        )

    # -- management -------------------------------------------------------

    def clear_cache(self) -> None:
        """Drop cached results and every strategy's cached features."""
        self._cache.clear()
        for strategy in self.strategies:
            strategy.clear_cache()
        log_info("Duplicate detector caches cleared")

    def update_config(self, patch: Union[Mapping[str, Any], BaseModel]) -> None:
        """Apply a partial config update, validated before anything changes.

        Nested matcher sections (``exact``, ``semantic``, ``structural``,
        ``content``) are forwarded to the strategy with the same name.

        Raises:
            pydantic.ValidationError: if the merged config is invalid.
        """
        if isinstance(patch, BaseModel):
            patch = patch.model_dump()
        unknown = sorted(set(patch) - set(DetectorConfig.model_fields))
        if unknown:
            raise ValueError(f"Unknown configuration keys: {unknown}")
        new_config = merge_config(self.config, patch)

        for strategy in self.strategies:
            section = patch.get(strategy.name)
            if section and strategy.name in DetectorConfig.model_fields:
                strategy.update_config(getattr(new_config, strategy.name).model_dump())

        self.config = new_config
        if "log_level" in patch or "log_format" in patch:
            configure_logging(new_config.log_level, new_config.log_format)
        self._cache = self._new_cache()
        log_info("Duplicate detector configuration updated", sections=sorted(patch))

    def get_stats(self) -> Dict[str, Any]:
        pool = self.pool
        with self._stats_lock:
            counters = {
                "checks": self.checks,
                "duplicates_found": self.duplicates_found,
                "failures": self.failures,
            }
        return {
            "main": {
                "cache_size": len(self._cache),
                "cache_hit_rate_percent": round(self._cache.get_hit_rate(), 2),
                "existing_rules_count": sum(len(rules) for rules in pool.values()),
                "categories_count": len(pool),
                **counters,
            },
            "matchers": {strategy.name: strategy.get_stats() for strategy in self.strategies},
            "timings": self.metrics.get_all_stats(),
        }

    def health_check(self) -> HealthCheckResult:
        """Report healthy (no issues), degraded (one or two) or unhealthy (more)."""
        limit = self.config.health_cache_utilization
        issues: List[str] = []
        self._cache.cleanup_expired()

        if not self.pool:
            issues.append("no existing rules loaded")
        if self._cache.utilization() >= limit:
            issues.append(f"result cache near capacity ({len(self._cache)}/{self._cache.max_size})")
        for strategy in self.strategies:
            if strategy.cache_utilization() >= limit:
                issues.append(f"{strategy.name} matcher cache near capacity")
        with self._stats_lock:
            if self.checks and self.failures / self.checks > 0.1:
                issues.append(f"{self.failures} of {self.checks} checks failed")

        if not issues:
            status = "healthy"
        elif len(issues) <= 2:
            status = "degraded"
        else:
            status = "unhealthy"

        return HealthCheckResult(
            status=status,
            healthy=status == "healthy",
            issues=issues,
            details=self.get_stats(),
            timestamp=datetime.now(),
        )
