"""Unit tests for the markdown rule loader."""

from datetime import datetime

import pytest

from ruledup.loader import (
    load_rules_from_directory,
    parse_rule_document,
    slugify,
    split_front_matter,
)


def write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


class TestSlugify:
    def test_ascii(self):
        assert slugify("Avoid SELECT *  in Queries!") == "avoid-select-in-queries"

    def test_keeps_cjk(self):
        assert slugify("SQL查询优化") == "sql查询优化"

    def test_fallback(self):
        assert slugify("!!!") == "rule"


class TestSplitFrontMatter:
    def test_no_front_matter(self):
        assert split_front_matter("# Title\nbody") == ({}, "# Title\nbody")

    def test_front_matter(self):
        front, body = split_front_matter("---\nid: r1\nseverity: high\n---\n# Title\n")
        assert front == {"id": "r1", "severity": "high"}
        assert body == "# Title\n"

    def test_non_mapping_rejected(self):
        with pytest.raises(ValueError):
            split_front_matter("---\n- a\n- b\n---\nbody")


class TestParseRuleDocument:
    def test_heading_and_body(self):
        rule = parse_rule_document("# Use indexes\n\nAdd an index on foreign keys.\n")

        assert rule.id == "use-indexes"
        assert rule.title == "Use indexes"
        assert rule.description == "Add an index on foreign keys."
        assert rule.category == "unknown"
        assert rule.status == "approved"

    def test_front_matter_overrides(self):
        text = (
            "---\n"
            "id: idx-1\n"
            "category: performance\n"
            "severity: HIGH\n"
            "sqlPattern: SELECT.*JOIN\n"
            "tags: sql, index\n"
            "examples:\n"
            "  bad: SELECT * FROM a JOIN b\n"
            "  good: [SELECT a.id FROM a JOIN b ON a.b_id = b.id]\n"
            "createdAt: 2024-01-05T10:00:00\n"
            "---\n"
            "# Index join columns\n\n"
            "Join columns need indexes.\n"
        )
        rule = parse_rule_document(text, default_category="ignored")

        assert rule.id == "idx-1"
        assert rule.category == "performance"
        assert rule.severity.value == "high"
        assert rule.sql_pattern == "SELECT.*JOIN"
        assert rule.tags == ["sql", "index"]
        assert rule.examples.bad == ["SELECT * FROM a JOIN b"]
        assert rule.examples.count == 2
        assert rule.created_at == datetime(2024, 1, 5, 10, 0)

    def test_title_falls_back_to_file_stem(self, tmp_path):
        path = write(tmp_path / "plain-rule.md", "Just some text.")
        rule = parse_rule_document(path.read_text(encoding="utf-8"), path=path)

        assert rule.title == "plain-rule"
        assert rule.description == "Just some text."

    def test_timestamps_from_mtime(self, tmp_path):
        path = write(tmp_path / "r.md", "# R\n\nbody")
        rule = parse_rule_document(path.read_text(encoding="utf-8"), path=path)

        assert rule.created_at == rule.updated_at
        assert rule.created_at == datetime.fromtimestamp(path.stat().st_mtime)

    def test_description_truncated(self):
        rule = parse_rule_document("# Long\n\n" + "x" * 100, max_description_length=50)

        assert rule.description == "x" * 50 + "..."


class TestLoadRulesFromDirectory:
    def test_missing_directory(self, tmp_path, caplog):
        with caplog.at_level("WARNING", logger="ruledup"):
            assert load_rules_from_directory(tmp_path / "nowhere") == []
        assert "Rule directory not found" in caplog.text

    def test_category_from_subdirectory(self, tmp_path):
        write(tmp_path / "approved" / "performance" / "a.md", "# Use indexes\n\nbody")
        write(tmp_path / "approved" / "misc.md", "# Misc rule\n\nbody")
        write(tmp_path / "drafts" / "draft.md", "# Draft\n\nbody")

        rules = load_rules_from_directory(tmp_path)

        by_id = {r.id: r for r in rules}
        assert set(by_id) == {"use-indexes", "misc-rule"}
        assert by_id["use-indexes"].category == "performance"
        assert by_id["misc-rule"].category == "unknown"

    def test_all_documents_when_not_approved_only(self, tmp_path):
        write(tmp_path / "approved" / "a.md", "# A\n\nbody")
        write(tmp_path / "drafts" / "b.md", "# B\n\nbody")

        rules = load_rules_from_directory(tmp_path, approved_only=False)

        assert sorted(r.id for r in rules) == ["a", "b"]

    def test_duplicate_ids_get_suffix(self, tmp_path):
        write(tmp_path / "approved" / "performance" / "a.md", "# Same title\n\none")
        write(tmp_path / "approved" / "security" / "b.md", "# Same title\n\ntwo")

        rules = load_rules_from_directory(tmp_path)

        assert [r.id for r in rules] == ["same-title", "same-title-2"]

    def test_suffix_skips_ids_already_taken(self, tmp_path):
        write(tmp_path / "approved" / "a.md", "# Foo\n\none")
        write(tmp_path / "approved" / "b.md", "# Foo\n\ntwo")
        write(tmp_path / "approved" / "c.md", "---\nid: foo-2\n---\n# Other\n\nthree")

        ids = [r.id for r in load_rules_from_directory(tmp_path)]

        assert ids == ["foo", "foo-2", "foo-2-2"]
        assert len(set(ids)) == len(ids)

    def test_suffix_skips_explicit_id_seen_earlier(self, tmp_path):
        write(tmp_path / "approved" / "a.md", "---\nid: foo-2\n---\n# Other\n\none")
        write(tmp_path / "approved" / "b.md", "# Foo\n\ntwo")
        write(tmp_path / "approved" / "c.md", "# Foo\n\nthree")

        assert [r.id for r in load_rules_from_directory(tmp_path)] == ["foo-2", "foo", "foo-3"]

    def test_malformed_document_skipped(self, tmp_path, caplog):
        write(tmp_path / "approved" / "bad.md", "---\nid: [unclosed\n---\nbody")
        write(tmp_path / "approved" / "good.md", "# Good\n\nbody")

        with caplog.at_level("WARNING", logger="ruledup"):
            rules = load_rules_from_directory(tmp_path)

        assert [r.id for r in rules] == ["good"]
        assert "Skipping unreadable rule document" in caplog.text
