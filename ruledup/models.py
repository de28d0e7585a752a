"""Rule model consumed by the duplicate detector.

Rules are immutable. Text fields are coerced so that ``None`` or missing
values become empty strings, which keeps every matcher free of null checks.
"""

from __future__ import annotations

import hashlib
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RuleExamples(BaseModel):
    """Bad and good usage examples attached to a rule."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    bad: List[str] = Field(default_factory=list)
    good: List[str] = Field(default_factory=list)

    @field_validator("bad", "good", mode="before")
    @classmethod
    def _coerce_examples(cls, v: Any) -> List[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return [v] if v.strip() else []
        return [str(item) for item in v if item is not None]

    @property
    def count(self) -> int:
        return len(self.bad) + len(self.good)


class Rule(BaseModel):
    """A textual rule, either a candidate or a member of the existing pool."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(..., description="Unique id within a pool")
    title: str = ""
    description: str = ""
    category: str = "unknown"
    severity: Severity = Severity.MEDIUM
    sql_pattern: str = Field("", alias="sqlPattern")
    examples: RuleExamples = Field(default_factory=RuleExamples)
    tags: List[str] = Field(default_factory=list)
    status: str = "draft"
    created_at: datetime = Field(default_factory=datetime.now, alias="createdAt")
    updated_at: datetime = Field(default_factory=datetime.now, alias="updatedAt")
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v: Any) -> str:
        if v is None:
            raise ValueError("rule id is required")
        return str(v)

    @field_validator("title", "description", "sql_pattern", "status", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str:
        if v is None:
            return ""
        return v if isinstance(v, str) else str(v)

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, v: Any) -> str:
        if v is None or not str(v).strip():
            return "unknown"
        return str(v).strip()

    @field_validator("severity", mode="before")
    @classmethod
    def _coerce_severity(cls, v: Any) -> str:
        value = str(v.value if isinstance(v, Severity) else v or "").strip().lower()
        return value if value in {s.value for s in Severity} else Severity.MEDIUM.value

    @field_validator("examples", mode="before")
    @classmethod
    def _coerce_examples(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, v: Any) -> List[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return [t.strip() for t in v.split(",") if t.strip()]
        return [str(t) for t in v if t is not None]

    @field_validator("metadata", mode="before")
    @classmethod
    def _coerce_metadata(cls, v: Any) -> Dict[str, Any]:
        return {} if v is None else v

    @property
    def text(self) -> str:
        """Title and description joined, the text most matchers analyze."""
        return f"{self.title} {self.description}".strip()

    def is_blank(self) -> bool:
        """True when the rule carries no comparable text at all."""
        return not (self.title.strip() or self.description.strip() or self.sql_pattern.strip())

    def content_fingerprint(self) -> str:
        """Hash of every field feature extraction reads.

        Two rules with the same id but different text get different
        fingerprints, so cached feature bundles never go stale. Timestamps
        count only when given explicitly; defaulted ones differ per instance.
        """
        given = self.model_fields_set
        parts = [
            self.title,
            self.description,
            self.sql_pattern,
            self.category,
            self.severity.value,
            "\x1e".join(self.examples.bad),
            "\x1e".join(self.examples.good),
            "\x1e".join(self.tags),
            self.created_at.isoformat() if "created_at" in given else "",
            self.updated_at.isoformat() if "updated_at" in given else "",
            "1" if self.metadata else "0",
        ]
        payload = "\x1f".join(parts).encode("utf-8")
        return hashlib.md5(payload, usedforsecurity=False).hexdigest()
