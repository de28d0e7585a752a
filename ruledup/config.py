"""Configuration management using Pydantic models and BaseSettings.

Each matcher has a strongly typed config (weights, thresholds and
optimizations). Invalid values raise ``pydantic.ValidationError`` when the
config is built, never later when a rule is scored. ``DetectorConfig`` bundles
them and reads overrides from ``RULEDUP_*`` environment variables.
"""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, TypeVar

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings

ModelT = TypeVar("ModelT", bound=BaseModel)


class _StrictModel(BaseModel):
    model_config = {"extra": "forbid", "validate_assignment": True}


class _Weights(_StrictModel):
    """Base for weight tables: every weight >= 0 and the total must be positive."""

    @model_validator(mode="after")
    def _check_total(self):
        if self.total() <= 0:
            raise ValueError(f"{type(self).__name__} weights must not all be zero")
        return self

    def total(self) -> float:
        return float(sum(getattr(self, name) for name in type(self).model_fields))


def _unit(default: float, description: str):
    return Field(default, ge=0.0, le=1.0, description=description)


def _weight(default: float, description: str):
    return Field(default, ge=0.0, description=description)


class MatcherOptimizations(_StrictModel):
    """Caching and input-size limits shared by every matcher."""
    enable_caching: bool = Field(True, description="Cache feature bundles and match lists")
    max_cache_size: int = Field(2000, ge=1, le=100000, description="Max entries per matcher cache")
    cache_ttl_seconds: float = Field(900, ge=0, description="Entry TTL in seconds (0 = never expires)")
    max_text_length: int = Field(2000, ge=16, le=100000, description="Title/description cap before extraction")


# ---------------------------------------------------------------------------
# Exact matcher
# ---------------------------------------------------------------------------


class ExactWeights(_Weights):
    title: float = _weight(0.35, "Title similarity weight")
    description: float = _weight(0.25, "Description similarity weight")
    sql_pattern: float = _weight(0.25, "SQL pattern similarity weight")
    category: float = _weight(0.10, "Category equality weight")
    severity: float = _weight(0.05, "Severity equality weight")


class ExactThresholds(_StrictModel):
    overall: float = _unit(0.7, "Minimum weighted similarity")
    title: float = _unit(0.8, "Title similarity counted as a matched field")
    description: float = _unit(0.75, "Description similarity counted as a matched field")
    sql_pattern: float = _unit(0.85, "SQL pattern similarity counted as a matched field")
    min_matched_fields: int = Field(2, ge=0, le=5, description="Minimum matched field count")
    prefilter_title: float = _unit(0.5, "Title similarity that keeps a candidate in pre-filtering")


class ExactOptimizations(MatcherOptimizations):
    enable_prefiltering: bool = Field(True, description="Drop unrelated candidates before scoring")


class ExactMatchConfig(_StrictModel):
    weights: ExactWeights = Field(default_factory=ExactWeights)
    thresholds: ExactThresholds = Field(default_factory=ExactThresholds)
    optimizations: ExactOptimizations = Field(default_factory=ExactOptimizations)


# ---------------------------------------------------------------------------
# Semantic matcher
# ---------------------------------------------------------------------------


class SemanticWeights(_Weights):
    concept: float = _weight(0.30, "Concept-set Jaccard weight")
    keyword: float = _weight(0.25, "Keyword-set Jaccard weight")
    domain: float = _weight(0.20, "Domain similarity weight")
    context: float = _weight(0.15, "Sentiment/action/object context weight")
    technical: float = _weight(0.10, "Technical-term overlap weight")


class SemanticThresholds(_StrictModel):
    overall: float = _unit(0.6, "Minimum weighted similarity")
    concept_overlap: float = _unit(0.4, "Minimum concept overlap")
    min_shared_concepts: int = Field(1, ge=0, description="Minimum shared concept count")
    topic_match: float = _unit(0.6, "Domain similarity reported as a topic match")


class SemanticAnalysis(_StrictModel):
    max_keywords: int = Field(15, ge=1, le=200, description="Top-N keywords kept per rule")
    min_keyword_length: int = Field(2, ge=1, le=10, description="Shortest keyword kept")


class SemanticMatchConfig(_StrictModel):
    weights: SemanticWeights = Field(default_factory=SemanticWeights)
    thresholds: SemanticThresholds = Field(default_factory=SemanticThresholds)
    analysis: SemanticAnalysis = Field(default_factory=SemanticAnalysis)
    optimizations: MatcherOptimizations = Field(default_factory=MatcherOptimizations)


# ---------------------------------------------------------------------------
# Structural matcher
# ---------------------------------------------------------------------------


class StructuralWeights(_Weights):
    length: float = _weight(0.30, "Length-ratio similarity weight")
    complexity: float = _weight(0.20, "Complexity similarity weight")
    format: float = _weight(0.20, "Format agreement weight")
    metadata: float = _weight(0.30, "Metadata similarity weight")


class StructuralThresholds(_StrictModel):
    overall: float = _unit(0.6, "Minimum weighted similarity")


class StructuralAnalysis(_StrictModel):
    recency_decay_days: int = Field(365, ge=1, description="Days after which recency similarity reaches 0")
    lexical_anchor_floor: float = _unit(0.35, "Share of the shape score kept when no vocabulary is shared")


class StructuralMatchConfig(_StrictModel):
    weights: StructuralWeights = Field(default_factory=StructuralWeights)
    thresholds: StructuralThresholds = Field(default_factory=StructuralThresholds)
    analysis: StructuralAnalysis = Field(default_factory=StructuralAnalysis)
    optimizations: MatcherOptimizations = Field(default_factory=MatcherOptimizations)


# ---------------------------------------------------------------------------
# Content matcher
# ---------------------------------------------------------------------------


class ContentWeights(_Weights):
    textual: float = _weight(0.30, "Textual feature weight")
    linguistic: float = _weight(0.20, "Linguistic feature weight")
    semantic: float = _weight(0.30, "Semantic feature weight")
    structural: float = _weight(0.20, "Document structure weight")


class ContentThresholds(_StrictModel):
    overall: float = _unit(0.5, "Minimum anchored similarity")


class ContentAnalysis(_StrictModel):
    ngram_size: int = Field(2, ge=1, le=5, description="Token n-gram size")
    min_ngram_frequency: int = Field(2, ge=1, description="n-grams seen fewer times are pruned")
    max_concept_keywords: int = Field(10, ge=1, le=100, description="Top concept keywords kept")
    lexical_anchor_floor: float = _unit(0.35, "Share of the style score kept when no vocabulary is shared")


class ContentMatchConfig(_StrictModel):
    weights: ContentWeights = Field(default_factory=ContentWeights)
    thresholds: ContentThresholds = Field(default_factory=ContentThresholds)
    analysis: ContentAnalysis = Field(default_factory=ContentAnalysis)
    optimizations: MatcherOptimizations = Field(default_factory=MatcherOptimizations)


# ---------------------------------------------------------------------------
# Detector
# ---------------------------------------------------------------------------


class DetectorConfig(BaseSettings):
    """Top-level configuration for ``DuplicateDetector``."""

    warning_threshold: float = Field(0.7, ge=0.0, le=1.0, description="Similarity at which a match is a duplicate")
    cache_ttl_seconds: float = Field(1800, ge=0, description="Result cache TTL in seconds")
    max_cache_entries: int = Field(1000, ge=1, le=100000, description="Max cached detection results")
    report_content_as_semantic: bool = Field(True, description="Report content matches under the semantic type")
    health_cache_utilization: float = Field(0.9, gt=0.0, le=1.0, description="Cache fill ratio reported as a health issue")
    max_description_length: int = Field(2000, ge=50, description="Description cap used by the rule loader")

    log_level: str = Field("INFO", description="Logging level")
    log_format: str = Field("%(asctime)s - %(name)s - %(levelname)s - %(message)s", description="Log format")

    exact: ExactMatchConfig = Field(default_factory=ExactMatchConfig)
    semantic: SemanticMatchConfig = Field(default_factory=SemanticMatchConfig)
    structural: StructuralMatchConfig = Field(default_factory=StructuralMatchConfig)
    content: ContentMatchConfig = Field(default_factory=ContentMatchConfig)

    model_config = {
        "env_prefix": "RULEDUP_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "extra": "ignore",
        "validate_assignment": True,
    }

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'Invalid log level: {v}. Valid options: {valid_levels}')
        return v.upper()

    def validate_configuration(self) -> List[str]:
        """Return soft configuration issues that do not prevent construction."""
        issues = []

        if self.warning_threshold < 0.5:
            issues.append("warning_threshold is very low, may report many false duplicates")
        if self.warning_threshold < self.content.thresholds.overall:
            issues.append("warning_threshold is below the content matcher threshold")
        if self.exact.thresholds.overall < self.semantic.thresholds.overall:
            issues.append("exact overall threshold is below the semantic threshold")
        if self.exact.thresholds.min_matched_fields == 0:
            issues.append("exact min_matched_fields=0 accepts matches with no agreeing field")
        if 0 < self.cache_ttl_seconds < 60:
            issues.append("cache_ttl_seconds is too low, may cause frequent cache misses")

        return issues

    def log_configuration(self) -> None:
        """Log the current configuration."""
        from ruledup.utils.logger import log_info

        log_info("Configuration loaded",
                 warning_threshold=self.warning_threshold,
                 cache_ttl_seconds=self.cache_ttl_seconds,
                 max_cache_entries=self.max_cache_entries,
                 report_content_as_semantic=self.report_content_as_semantic,
                 exact_overall=self.exact.thresholds.overall,
                 semantic_overall=self.semantic.thresholds.overall,
                 structural_overall=self.structural.thresholds.overall,
                 content_overall=self.content.thresholds.overall,
                 log_level=self.log_level)


def _deep_merge(base: Dict[str, Any], patch: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in patch.items():
        if isinstance(value, BaseModel):
            value = value.model_dump()
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def merge_config(model: ModelT, patch: Mapping[str, Any]) -> ModelT:
    """Return a new, fully validated config with ``patch`` deep-merged in.

    Raises:
        pydantic.ValidationError: if the merged config is invalid.
    """
    merged = _deep_merge(model.model_dump(), patch)
    return type(model).model_validate(merged)


# Global configuration instance (lazy loading)
_config = None


def get_config() -> DetectorConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = DetectorConfig()
    return _config


def reload_config() -> DetectorConfig:
    """Reload configuration from environment variables."""
    global _config
    _config = DetectorConfig()
    return _config
