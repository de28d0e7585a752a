"""Structured logging utilities for ruledup.

Every helper takes a message plus keyword context; the context is rendered
as truncated JSON so that rule text never floods the log.
"""
import json
import logging
from typing import Any, Optional

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format=DEFAULT_LOG_FORMAT,
    datefmt='%Y-%m-%d %H:%M:%S'
)

logger = logging.getLogger('ruledup')

# Handler installed by configure_logging for a non-default format
_format_handler: Optional[logging.Handler] = None


def configure_logging(level: str = "INFO", fmt: Optional[str] = None) -> None:
    """Apply a log level and format to the ruledup logger.

    The default format is already served by the root handler, so records
    keep propagating. Any other format gets a dedicated handler and stops
    propagation to avoid printing every record twice.

    Args:
        level: Standard logging level name.
        fmt: Format string; ``None`` leaves the current format alone.
    """
    global _format_handler
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if fmt is None:
        return

    if _format_handler is not None:
        logger.removeHandler(_format_handler)
        _format_handler = None
        logger.propagate = True

    if fmt != DEFAULT_LOG_FORMAT:
        _format_handler = logging.StreamHandler()
        _format_handler.setFormatter(logging.Formatter(fmt, datefmt='%Y-%m-%d %H:%M:%S'))
        logger.addHandler(_format_handler)
        logger.propagate = False


def preview(text: str, length: int = 50) -> str:
    """Shorten rule text for log context."""
    if not text:
        return ""
    text = " ".join(text.split())
    return text if len(text) <= length else text[:length] + "..."


def safe_json(obj: Any, max_length: int = 1000) -> str:
    """Safely serialize object to JSON for log output.

    Args:
        obj: Object to serialize
        max_length: Maximum length of output string

    Returns:
        JSON string, truncated when longer than ``max_length``
    """
    try:
        json_str = json.dumps(obj, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return "<unable to serialize>"

    if len(json_str) > max_length:
        json_str = json_str[:max_length] + "... [truncated]"
    return json_str


def log_info(message: str, **kwargs) -> None:
    """Log info message with optional context."""
    if kwargs:
        logger.info(f"{message} | Context: {safe_json(kwargs)}")
    else:
        logger.info(message)


def log_warning(message: str, **kwargs) -> None:
    """Log warning message with optional context."""
    if kwargs:
        logger.warning(f"{message} | Context: {safe_json(kwargs)}")
    else:
        logger.warning(message)


def log_error(message: str, **kwargs) -> None:
    """Log error message with optional context."""
    if kwargs:
        logger.error(f"{message} | Context: {safe_json(kwargs)}")
    else:
        logger.error(message)


def log_debug(message: str, **kwargs) -> None:
    """Log debug message with optional context."""
    if not logger.isEnabledFor(logging.DEBUG):
        return
    if kwargs:
        logger.debug(f"{message} | Context: {safe_json(kwargs)}")
    else:
        logger.debug(message)


def log_duplicate_detection(score: float, existing_rule_id: str, **kwargs) -> None:
    """Log a positive duplicate verdict.

    Args:
        score: Similarity score of the representative match
        existing_rule_id: Id of the rule the candidate duplicates
        **kwargs: Additional context
    """
    log_warning("Duplicate rule detected",
                similarity_score=round(score, 4),
                existing_rule=existing_rule_id,
                **kwargs)
