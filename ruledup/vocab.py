"""Curated vocabularies used by the dictionary-based matchers.

All tables are built once at import time and are immutable, so they can be
shared freely between matcher instances and threads.
"""

from __future__ import annotations

import re
from types import MappingProxyType
from typing import FrozenSet, Iterable, List, Mapping, Pattern


class Vocabulary:
    """An immutable set of terms with containment search over free text.

    ASCII terms match on word boundaries (with an optional plural suffix) so
    that ``index`` finds ``indexes`` but not ``reindexing``; CJK terms match
    as plain substrings. Overlapping terms are all reported, e.g. both
    ``死锁`` and ``锁``.
    """

    def __init__(self, name: str, terms: Iterable[str]):
        self.name = name
        self.terms: FrozenSet[str] = frozenset(t.lower() for t in terms if t)
        alternatives = sorted(self.terms, key=len, reverse=True)
        body = "|".join(self._term_pattern(t) for t in alternatives)
        self._pattern: Pattern = re.compile(f"(?=({body}))")

    @staticmethod
    def _term_pattern(term: str) -> str:
        escaped = re.escape(term)
        if term.isascii():
            return rf"(?<![a-z0-9_]){escaped}(?:e?s)?(?![a-z0-9_])"
        return escaped

    def _canonical(self, matched: str) -> str:
        if matched in self.terms:
            return matched
        if matched.endswith("es") and matched[:-2] in self.terms:
            return matched[:-2]
        return matched[:-1]

    def occurrences(self, text: str) -> List[str]:
        """Every term occurrence in ``text``, in order of appearance."""
        if not text or not self.terms:
            return []
        return [self._canonical(m.group(1)) for m in self._pattern.finditer(text.lower())]

    def find(self, text: str) -> FrozenSet[str]:
        """Distinct terms contained in ``text``."""
        return frozenset(self.occurrences(text))

    def __contains__(self, token: object) -> bool:
        return isinstance(token, str) and token.lower() in self.terms

    def __len__(self) -> int:
        return len(self.terms)

    def __repr__(self) -> str:
        return f"Vocabulary({self.name!r}, {len(self.terms)} terms)"


# ---------------------------------------------------------------------------
# Tokenization
# ---------------------------------------------------------------------------


ENGLISH_STOP_WORDS: FrozenSet[str] = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "with", "by", "is", "are", "be", "this", "that", "it", "as", "from",
})

CHINESE_STOP_WORDS: FrozenSet[str] = frozenset({
    "的", "了", "是", "在", "有", "和", "与", "或", "但是", "然而", "因为",
    "所以", "如果", "我", "你", "就", "也", "很", "都", "一个",
})

STOP_WORDS: FrozenSet[str] = ENGLISH_STOP_WORDS | CHINESE_STOP_WORDS


# ---------------------------------------------------------------------------
# Semantic matcher vocabularies
# ---------------------------------------------------------------------------


CONCEPTS = Vocabulary("concepts", [
    "select", "insert", "update", "delete", "create", "drop", "alter",
    "index", "table", "view", "procedure", "function", "trigger",
    "join", "union", "group", "order", "having", "where",
    "performance", "optimization", "security", "normalization",
    "transaction", "lock", "deadlock", "backup", "restore",
    "查询", "插入", "更新", "删除", "创建", "修改", "索引",
    "表", "视图", "存储过程", "函数", "触发器", "连接",
    "性能", "优化", "安全", "规范化", "事务", "锁",
    "死锁", "备份", "恢复", "数据库", "sql",
])

TECHNICAL_TERMS = Vocabulary("technical_terms", [
    "primary key", "foreign key", "constraint", "cascade", "null", "not null",
    "unique", "auto_increment", "timestamp", "datetime", "varchar", "int",
    "decimal", "float", "boolean", "enum", "json", "xml", "blob", "text",
])

ACTIONS = Vocabulary("actions", [
    "检查", "验证", "测试", "分析", "优化", "改进", "修复", "解决",
    "check", "verify", "test", "analyze", "optimize", "improve", "fix", "solve",
    "避免", "防止", "禁止", "限制", "要求", "建议", "推荐",
    "avoid", "prevent", "recommend",
])

OBJECTS = Vocabulary("objects", [
    "数据", "表", "字段", "索引", "查询", "语句", "性能", "安全",
    "data", "table", "column", "index", "query", "statement", "performance", "security",
    "用户", "权限", "角色", "连接", "事务", "锁",
])

DOMAIN_PATTERNS: Mapping[str, Pattern] = MappingProxyType({
    "performance": re.compile(
        r"性能|优化|索引|查询计划|执行计划|\b(?:performance|optimi[sz]ation|index(?:es)?)\b", re.IGNORECASE),
    "security": re.compile(
        r"安全|权限|认证|授权|加密|\b(?:security|permissions?|auth\w*)\b", re.IGNORECASE),
    "reliability": re.compile(
        r"备份|恢复|容灾|高可用|\b(?:backups?|recovery|ha|availability)\b", re.IGNORECASE),
    "design": re.compile(
        r"设计|范式|规范化|结构|\b(?:design|normali[sz]ation|structure)\b", re.IGNORECASE),
})

POSITIVE_WORDS = Vocabulary("positive", [
    "优化", "改进", "提升", "推荐", "最佳", "optimize", "improve", "enhance", "best",
])

NEGATIVE_WORDS = Vocabulary("negative", [
    "避免", "禁止", "错误", "问题", "风险", "avoid", "prevent", "error", "issue", "risk",
])


# ---------------------------------------------------------------------------
# Content matcher vocabularies
# ---------------------------------------------------------------------------


TOPIC_WORDS = Vocabulary("topic_words", [
    "select", "insert", "update", "delete", "table", "index", "query",
    "查询", "插入", "更新", "删除", "表", "索引", "数据库",
])

DOMAIN_TERMS = Vocabulary("domain_terms", [
    "sql", "database", "query", "index", "table", "performance", "optimization",
    "数据库", "查询", "索引", "性能", "优化",
])

ACTION_VERBS = Vocabulary("action_verbs", [
    "检查", "验证", "分析", "优化", "改进", "避免", "建议", "推荐",
    "check", "verify", "analyze", "optimize", "improve", "avoid", "suggest", "recommend",
])

CONTENT_POSITIVE_WORDS = Vocabulary("content_positive", [
    "好", "优秀", "推荐", "优化", "改进", "good", "excellent", "recommend", "optimize",
])

CONTENT_NEGATIVE_WORDS = Vocabulary("content_negative", [
    "坏", "错误", "问题", "风险", "避免", "bad", "error", "issue", "risk", "avoid",
])

FORMAL_INDICATORS = Vocabulary("formal", [
    "应当", "必须", "建议", "推荐", "should", "must", "recommend", "shall",
])

INFORMAL_INDICATORS = Vocabulary("informal", [
    "哈哈", "嘿嘿", "哎呀", "哇", "lol", "haha", "oops",
])
