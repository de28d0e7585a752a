"""Pytest configuration and fixtures for ruledup tests."""

import sys
from datetime import datetime
from pathlib import Path

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from ruledup.config import DetectorConfig  # noqa: E402
from ruledup.dedup.detector import DuplicateDetector  # noqa: E402
from ruledup.models import Rule  # noqa: E402


@pytest.fixture
def detector_config():
    """Default configuration, isolated from any local .env file."""
    return DetectorConfig(_env_file=None)


@pytest.fixture
def detector(detector_config):
    return DuplicateDetector(config=detector_config)


@pytest.fixture
def mock_rule():
    """A Chinese SQL performance rule used as the candidate in most tests."""
    return Rule(
        id="test-rule-1",
        title="SQL查询性能优化规则",
        description="优化SQL查询性能，避免全表扫描，合理使用索引提升查询效率。",
        category="performance",
        severity="high",
        sql_pattern="SELECT.*FROM.*WHERE",
        examples={
            "bad": ["SELECT * FROM users"],
            "good": ["SELECT id, name FROM users WHERE status = 1"],
        },
        tags=["sql", "performance"],
        created_at=datetime(2025, 1, 1),
        updated_at=datetime(2025, 1, 2),
        metadata={"author": "test"},
    )


@pytest.fixture
def exact_copy(mock_rule):
    """Textual copy of ``mock_rule`` under a different id."""
    return mock_rule.model_copy(update={"id": "existing-rule-1"})


@pytest.fixture
def paraphrased_rule():
    """Same topic and concepts as ``mock_rule`` in different words."""
    return Rule(
        id="index-advice",
        title="提升查询性能的索引使用建议",
        description="为SQL查询建立合适的索引，优化查询性能，避免扫描全表。",
        category="performance",
        severity="medium",
        created_at=datetime(2024, 6, 1),
        updated_at=datetime(2024, 6, 1),
    )


@pytest.fixture
def backup_rule():
    """A rule from an unrelated domain that shares no concepts with ``mock_rule``."""
    return Rule(
        id="backup-rule",
        title="数据库备份策略",
        description=(
            "制定定期全量备份与增量备份计划。备份文件需要异地保存，并且定期演练恢复流程，"
            "确保发生故障时数据可以及时恢复。参考 https://example.com/backup"
        ),
        category="performance",
        severity="low",
        created_at=datetime(2023, 3, 1),
        updated_at=datetime(2023, 3, 1),
    )
