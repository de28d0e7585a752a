"""ruledup: detect near-duplicate rules before they enter a rule base."""

from ruledup.config import DetectorConfig, get_config, reload_config
from ruledup.dedup import DuplicateDetector, DuplicateResult, DuplicateType, MatchResult
from ruledup.loader import load_rules_from_directory, parse_rule_document
from ruledup.models import Rule, RuleExamples, Severity

__version__ = "0.1.0"

__all__ = [
    "DetectorConfig",
    "DuplicateDetector",
    "DuplicateResult",
    "DuplicateType",
    "MatchResult",
    "Rule",
    "RuleExamples",
    "Severity",
    "get_config",
    "load_rules_from_directory",
    "parse_rule_document",
    "reload_config",
]
