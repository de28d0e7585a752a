"""Unit tests for the structural matcher."""

from datetime import datetime, timedelta, timezone

import pytest

from ruledup.dedup.result import DuplicateType
from ruledup.dedup.strategies import StructuralMatcher
from ruledup.dedup.strategies.structural import similarity_pattern
from ruledup.models import Rule


@pytest.fixture
def matcher():
    return StructuralMatcher()


def english_rule(rule_id, title, description, **overrides):
    fields = dict(
        id=rule_id,
        title=title,
        description=description,
        category="performance",
        severity="medium",
        tags=["sql"],
        created_at=datetime(2025, 3, 1),
        updated_at=datetime(2025, 3, 1),
        metadata={"author": "dba-team"},
    )
    fields.update(overrides)
    return Rule(**fields)


@pytest.fixture
def select_star_rule():
    return english_rule(
        "no-select-star",
        "Avoid SELECT star in queries",
        "Always list the needed columns explicitly. Selecting every column wastes bandwidth and memory.",
    )


@pytest.fixture
def similar_shape_rule():
    return english_rule(
        "explicit-columns",
        "Do not use SELECT star",
        "List the columns you need explicitly. Fetching every column wastes network bandwidth.",
    )


class TestSimilarityPattern:
    @pytest.mark.parametrize(
        "similarity, expected",
        [(0.95, "identical"), (0.75, "very_similar"), (0.55, "similar"), (0.2, "different")],
    )
    def test_bands(self, similarity, expected):
        assert similarity_pattern(similarity) == expected


class TestStructuralFeatures:
    def test_format_counts(self, matcher):
        rule = english_rule(
            "formatted",
            "Formatted rule",
            "- first point\n- second point\n```sql\nSELECT 1\n```\nSee https://example.com/docs",
            examples={"bad": ["SELECT *"], "good": ["SELECT id"]},
        )
        features = matcher.extract_features(rule)

        assert features.list_item_count == 2
        assert features.code_block_count == 1
        assert features.link_count == 1
        assert features.example_count == 2
        assert features.tag_count == 1
        assert features.has_metadata is True

    def test_empty_text(self, matcher):
        features = matcher.extract_features(Rule(id="empty"))

        assert features.word_count == 0
        assert features.sentence_count == 0
        assert features.avg_word_length == 0.0
        assert features.readability == 100.0


class TestComponentSimilarities:
    def test_format_agreement_is_presence_based(self, matcher, select_star_rule):
        with_examples = select_star_rule.model_copy(
            update={"id": "with-examples", "examples": {"bad": ["SELECT *"], "good": []}}
        )
        a = matcher.extract_features(select_star_rule)
        b = matcher.extract_features(with_examples)

        assert matcher.format_similarity(a, a) == pytest.approx(1.0)
        assert matcher.format_similarity(a, b) == pytest.approx(0.6)

    def test_metadata_recency_decays(self, matcher, select_star_rule):
        later = select_star_rule.model_copy(
            update={"id": "later", "updated_at": select_star_rule.updated_at + timedelta(days=365)}
        )
        halfway = select_star_rule.model_copy(
            update={"id": "halfway", "updated_at": select_star_rule.updated_at + timedelta(days=182.5)}
        )
        base = matcher.extract_features(select_star_rule)

        assert matcher.metadata_similarity(base, base) == pytest.approx(1.0)
        assert matcher.metadata_similarity(base, matcher.extract_features(halfway)) == pytest.approx(0.9)
        assert matcher.metadata_similarity(base, matcher.extract_features(later)) == pytest.approx(0.8)

    def test_metadata_ignores_timezone_awareness(self, matcher, select_star_rule):
        aware = select_star_rule.model_copy(
            update={"id": "aware", "updated_at": datetime(2025, 3, 1, tzinfo=timezone.utc)}
        )
        a = matcher.extract_features(select_star_rule)
        b = matcher.extract_features(aware)

        assert matcher.metadata_similarity(a, b) == pytest.approx(1.0)


class TestStructuralMatcher:
    def test_identity(self, matcher):
        assert matcher.name == "structural"
        assert matcher.duplicate_type is DuplicateType.STRUCTURAL

    def test_identical_rule(self, matcher, mock_rule, exact_copy):
        result = matcher.compare(mock_rule, exact_copy)

        assert result.similarity == pytest.approx(1.0)
        assert result.confidence == pytest.approx(0.95)
        assert result.match_details["similarity_pattern"] == "identical"

    def test_same_shape_different_words(self, matcher, select_star_rule, similar_shape_rule):
        results = matcher.match(select_star_rule, [similar_shape_rule])

        assert [r.rule_id for r in results] == ["explicit-columns"]
        details = results[0].match_details
        assert results[0].similarity > 0.7
        assert details["format_similarity"] == pytest.approx(1.0)
        assert details["metadata_similarity"] == pytest.approx(1.0)
        assert "metadata" in results[0].explanation

    def test_different_shape_rejected(self, matcher, mock_rule, backup_rule):
        result = matcher.compare(mock_rule, backup_rule)

        assert result.match_details["metadata_similarity"] == pytest.approx(0.3)
        assert result.similarity < 0.6
        assert matcher.match(mock_rule, [backup_rule]) == []

    def test_weights_are_normalized(self, select_star_rule, similar_shape_rule):
        default = StructuralMatcher().compare(select_star_rule, similar_shape_rule).similarity
        doubled = StructuralMatcher()
        doubled.update_config(
            {"weights": {"length": 0.6, "complexity": 0.4, "format": 0.4, "metadata": 0.6}}
        )

        assert doubled.compare(select_star_rule, similar_shape_rule).similarity == pytest.approx(default)

    def test_match_structural_alias(self, matcher, select_star_rule, similar_shape_rule):
        assert matcher.match_structural(select_star_rule, [similar_shape_rule])


class TestLexicalAnchor:
    @pytest.fixture
    def bare_candidate(self, mock_rule):
        return mock_rule.model_copy(
            update={"tags": [], "examples": {"bad": [], "good": []}, "metadata": {}}
        )

    @pytest.fixture
    def backup_twin(self, bare_candidate):
        """Unrelated topic with metadata identical to ``bare_candidate``."""
        return Rule(
            id="backup-twin",
            title="数据库备份策略",
            description="制定定期全量备份计划，备份文件需要异地保存，定期演练恢复流程。",
            category=bare_candidate.category,
            severity=bare_candidate.severity,
            created_at=bare_candidate.created_at,
            updated_at=bare_candidate.updated_at,
        )

    def test_shared_concept_keeps_full_score(self, matcher, select_star_rule, similar_shape_rule):
        result = matcher.compare(select_star_rule, similar_shape_rule)

        assert result.match_details["lexical_anchor"] == pytest.approx(1.0)

    def test_matching_metadata_without_shared_vocabulary_rejected(
        self, matcher, bare_candidate, backup_twin
    ):
        result = matcher.compare(bare_candidate, backup_twin)

        assert result.match_details["metadata_similarity"] == pytest.approx(1.0)
        assert result.match_details["lexical_anchor"] == 0.0
        assert result.similarity <= 0.35
        assert matcher.match(bare_candidate, [backup_twin]) == []

    def test_floor_is_configurable(self, bare_candidate, backup_twin):
        gated = StructuralMatcher().compare(bare_candidate, backup_twin).similarity
        ungated = StructuralMatcher()
        ungated.update_config({"analysis": {"lexical_anchor_floor": 1.0}})

        assert ungated.compare(bare_candidate, backup_twin).similarity == pytest.approx(gated / 0.35)


class TestStructuralMatcherProperties:
    @pytest.mark.parametrize(
        "first, second",
        [("mock_rule", "paraphrased_rule"), ("mock_rule", "backup_rule"), ("paraphrased_rule", "backup_rule")],
    )
    def test_score_is_symmetric(self, matcher, request, first, second):
        a = request.getfixturevalue(first)
        b = request.getfixturevalue(second)

        assert matcher.compare(a, b).similarity == pytest.approx(matcher.compare(b, a).similarity)
