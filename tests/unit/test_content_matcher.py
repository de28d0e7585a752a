"""Unit tests for the content matcher."""

import pytest

from ruledup.dedup.result import DuplicateType
from ruledup.dedup.strategies import ContentMatcher
from ruledup.dedup.strategies.content import (
    detect_formality,
    detect_language,
    similarity_type,
    writing_style,
)
from ruledup.models import Rule


@pytest.fixture
def matcher():
    return ContentMatcher()


class TestHelpers:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("全部是中文内容", "chinese"),
            ("english words only", "english"),
            ("SQL查询", "mixed"),
            ("12345 !!", "unknown"),
            ("", "unknown"),
        ],
    )
    def test_detect_language(self, text, expected):
        assert detect_language(text) == expected

    def test_detect_formality(self):
        assert detect_formality("必须使用索引") == "formal"
        assert detect_formality("哈哈 this is fine") == "informal"
        assert detect_formality("use an index") == "technical"

    @pytest.mark.parametrize(
        "tokens, expected",
        [(25, "detailed"), (16, "comprehensive"), (12, "balanced"), (5, "concise")],
    )
    def test_writing_style(self, tokens, expected):
        assert writing_style(tokens) == expected

    @pytest.mark.parametrize(
        "similarity, expected",
        [(0.95, "identical"), (0.8, "very_similar"), (0.6, "similar"), (0.35, "related"), (0.1, "different")],
    )
    def test_similarity_type(self, similarity, expected):
        assert similarity_type(similarity) == expected


class TestContentFeatures:
    def test_textual_features(self, matcher, mock_rule):
        textual = matcher.extract_features(mock_rule).textual

        assert textual.word_frequency["sql"] == 2
        assert "sql 查询" in textual.ngram_frequency
        assert all(count >= 2 for count in textual.ngram_frequency.values())
        assert set(textual.punctuation_signature) == {"，", "。"}

    def test_linguistic_features(self, matcher, mock_rule):
        linguistic = matcher.extract_features(mock_rule).linguistic

        assert linguistic.language == "chinese"
        assert linguistic.acronym_ratio == pytest.approx(1.0)
        assert 0 < linguistic.terminology_density <= 1.0

    def test_topic_features(self, matcher, mock_rule):
        topics = matcher.extract_features(mock_rule).topics

        assert {"sql", "查询", "索引"} <= topics.domain_terms
        assert {"优化", "避免"} <= topics.action_verbs
        assert -1.0 <= topics.sentiment_score <= 1.0

    def test_layout_features(self, matcher):
        rule = Rule(
            id="layout",
            title="Layout",
            description="First paragraph.\n\n- item one\n- item two\n\nSee https://example.com",
            examples={"bad": ["x"], "good": ["y"]},
        )
        layout = matcher.extract_features(rule).layout

        assert layout.paragraph_count == 3
        assert layout.bullet_ratio == pytest.approx(0.5)
        assert layout.code_example_count == 2
        assert layout.link_count == 1


class TestContentMatcher:
    def test_identity(self, matcher):
        assert matcher.name == "content"
        assert matcher.duplicate_type is DuplicateType.CONTENT

    def test_identical_content(self, matcher, mock_rule, exact_copy):
        result = matcher.compare(mock_rule, exact_copy)
        details = result.match_details

        assert result.similarity == pytest.approx(1.0)
        assert details["lexical_anchor"] == pytest.approx(1.0)
        assert details["similarity_type"] == "identical"
        assert details["key_differences"] == []
        assert "same language (chinese)" in details["key_similarities"]
        assert result.confidence <= 0.95

    def test_no_shared_vocabulary_is_anchored_down(self, matcher, mock_rule, backup_rule):
        result = matcher.compare(mock_rule, backup_rule)
        details = result.match_details

        assert details["lexical_anchor"] == 0.0
        assert "little shared vocabulary" in details["key_differences"]
        assert result.similarity <= 0.35
        assert matcher.match(mock_rule, [backup_rule]) == []

    def test_anchor_floor_is_configurable(self, mock_rule, backup_rule):
        anchored = ContentMatcher().compare(mock_rule, backup_rule).similarity
        unanchored = ContentMatcher()
        unanchored.update_config({"analysis": {"lexical_anchor_floor": 1.0}})

        assert unanchored.compare(mock_rule, backup_rule).similarity > anchored

    def test_missing_ngrams_do_not_count_against(self, matcher):
        a = Rule(id="a", title="Index", description="Add an index.")
        b = Rule(id="b", title="Index", description="Add an index.")
        result = matcher.compare(a, b)

        assert result.match_details["ngram_similarity"] is None
        assert result.similarity == pytest.approx(1.0)

    def test_match_content_alias(self, matcher, mock_rule, exact_copy):
        assert matcher.match_content(mock_rule, [exact_copy])[0].rule_id == "existing-rule-1"


class TestContentMatcherProperties:
    @pytest.mark.parametrize(
        "first, second",
        [
            ("mock_rule", "paraphrased_rule"),
            ("mock_rule", "backup_rule"),
            ("paraphrased_rule", "backup_rule"),
            ("mock_rule", "exact_copy"),
        ],
    )
    def test_score_is_symmetric(self, matcher, request, first, second):
        a = request.getfixturevalue(first)
        b = request.getfixturevalue(second)

        forward = matcher.compare(a, b)
        backward = matcher.compare(b, a)

        assert forward.similarity == pytest.approx(backward.similarity)
        assert forward.match_details["lexical_anchor"] == pytest.approx(
            backward.match_details["lexical_anchor"]
        )

    def test_raising_threshold_only_removes_matches(
        self, mock_rule, exact_copy, paraphrased_rule, backup_rule
    ):
        pool = [exact_copy, paraphrased_rule, backup_rule]
        accepted = []
        for overall in (0.0, 0.2, 0.4, 0.6, 0.8, 1.0):
            matcher = ContentMatcher()
            matcher.update_config({"thresholds": {"overall": overall}})
            accepted.append({r.rule_id for r in matcher.match(mock_rule, pool)})

        assert accepted[0] == {"existing-rule-1", "index-advice", "backup-rule"}
        for looser, stricter in zip(accepted, accepted[1:]):
            assert stricter <= looser
