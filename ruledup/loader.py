"""Rule document loader.

Parses markdown rule documents into ``Rule`` records. A document may start
with a YAML front matter block that sets any rule field; otherwise the title
comes from the first ``#`` heading and the description from the body.

Directory layout::

    rules/
      approved/
        performance/slow-query.md   -> category "performance"
        misc-rule.md                -> category from front matter or "unknown"
"""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Union

import yaml
from pydantic import ValidationError

from ruledup.models import Rule
from ruledup.utils.logger import log_info, log_warning

_FRONT_MATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)
_HEADING_RE = re.compile(r"^#[ \t]+(.+?)[ \t#]*$", re.MULTILINE)
_SLUG_RE = re.compile(r"[^a-z0-9一-龥]+")

APPROVED_DIR = "approved"


def slugify(title: str) -> str:
    """Rule id derived from a title: lowercase, runs of other characters become ``-``."""
    slug = _SLUG_RE.sub("-", title.lower()).strip("-")
    return slug or "rule"


def split_front_matter(text: str) -> tuple[Dict[str, Any], str]:
    """Return (front matter dict, remaining body)."""
    match = _FRONT_MATTER_RE.match(text)
    if not match:
        return {}, text

    data = yaml.safe_load(match.group(1)) or {}
    if not isinstance(data, dict):
        raise ValueError("front matter must be a mapping")
    return data, text[match.end():]


def parse_rule_document(
    text: str,
    path: Optional[Path] = None,
    default_category: str = "unknown",
    max_description_length: int = 2000,
) -> Rule:
    """Parse one markdown rule document.

    Raises:
        ValueError: if the front matter is malformed.
        pydantic.ValidationError: if the front matter sets invalid field values.
    """
    front, body = split_front_matter(text)

    heading = _HEADING_RE.search(body)
    title = front.get("title")
    if not title:
        title = heading.group(1).strip() if heading else (path.stem if path else "")

    description = front.get("description")
    if description is None:
        if heading:
            body = body[:heading.start()] + body[heading.end():]
        description = body.strip()
    description = str(description)
    if len(description) > max_description_length:
        description = description[:max_description_length] + "..."

    fields: Dict[str, Any] = dict(front)
    fields["title"] = str(title)
    fields["description"] = description
    fields.setdefault("id", slugify(str(title)))
    fields.setdefault("category", default_category)
    fields.setdefault("status", "approved")

    if path is not None:
        modified = datetime.fromtimestamp(path.stat().st_mtime)
        if "created_at" not in fields and "createdAt" not in fields:
            fields["created_at"] = modified
        if "updated_at" not in fields and "updatedAt" not in fields:
            fields["updated_at"] = modified

    return Rule.model_validate(fields)


def iter_rule_files(root: Path, approved_only: bool = True) -> List[Path]:
    base = root / APPROVED_DIR if approved_only else root
    if not base.is_dir():
        return []
    return sorted(p for p in base.rglob("*.md") if p.is_file())


def load_rules_from_directory(
    root: Union[str, Path],
    approved_only: bool = True,
    max_description_length: int = 2000,
) -> List[Rule]:
    """Load every rule document under ``root/approved`` (or ``root``).

    Unreadable or malformed files are logged and skipped. Ids that collide
    get a numeric suffix so every rule in the result has a unique id.
    """
    root = Path(root)
    base = root / APPROVED_DIR if approved_only else root
    if not base.is_dir():
        log_warning("Rule directory not found", path=str(base))
        return []

    rules: List[Rule] = []
    used_ids: Set[str] = set()
    skipped = 0

    for path in iter_rule_files(root, approved_only):
        relative = path.relative_to(base)
        category = relative.parts[0] if len(relative.parts) > 1 else "unknown"
        try:
            rule = parse_rule_document(
                path.read_text(encoding="utf-8"),
                path=path,
                default_category=category,
                max_description_length=max_description_length,
            )
        except (OSError, UnicodeDecodeError, ValueError, yaml.YAMLError, ValidationError) as exc:
            skipped += 1
            log_warning("Skipping unreadable rule document", path=str(path), error=str(exc))
            continue

        unique_id = rule.id
        suffix = 1
        while unique_id in used_ids:
            suffix += 1
            unique_id = f"{rule.id}-{suffix}"
        if unique_id != rule.id:
            rule = rule.model_copy(update={"id": unique_id})
        used_ids.add(unique_id)
        rules.append(rule)

    log_info(
        "Loaded rule documents",
        path=str(base),
        rule_count=len(rules),
        skipped=skipped,
    )
    return rules
