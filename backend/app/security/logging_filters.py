"""Logging filters that scrub sensitive content."""

from __future__ import annotations

import logging
import re

_REDACTED = "**REDACTED**"

_SENSITIVE_PATTERN = re.compile(
    r"(Authorization: Bearer\s+[\w\.-]+"
    r"|access_token\"?\s*[:=]\s*\"?[^\",\s]+\"?"
    r"|password\"?\s*[:=]\s*\"?[^\",\s]+\"?"
    r"|(?:coupon|gift_card)_code\"?\s*[:=]\s*\"?[^\",\s]+\"?)",
    re.IGNORECASE,
)
_EMAIL_PATTERN = re.compile(r"\b([\w.+-])[\w.+-]*@([\w-]+\.[\w.-]+)\b")


def scrub(text: str) -> str:
    """Redact credentials and discount codes and mask email local parts."""
    text = _SENSITIVE_PATTERN.sub(_REDACTED, text)
    return _EMAIL_PATTERN.sub(r"\1***@\2", text)


class SensitiveFilter(logging.Filter):
    """Replace sensitive tokens in log messages with a redaction marker."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = scrub(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(
                scrub(arg) if isinstance(arg, str) else arg for arg in record.args
            )
        return True


def install_sensitive_filter(
    logger_names: tuple[str, ...] = ("uvicorn", "uvicorn.access", "uvicorn.error", ""),
) -> None:
    for name in logger_names:
        target = logging.getLogger(name)
        if not any(isinstance(flt, SensitiveFilter) for flt in target.filters):
            target.addFilter(SensitiveFilter())


__all__ = ["SensitiveFilter", "install_sensitive_filter", "scrub"]
