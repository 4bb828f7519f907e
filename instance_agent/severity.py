"""
instance_agent.severity
AUTHOR: carter-vin

Severity model for the audit logger

Ordering (level filtering only):
DEBUG < INFO < WARN < UNKNOWN < ERROR < FATAL

Routing of ERROR/FATAL is by explicit case in the logger, never by comparison.
Callers only ever see the symbolic tag ("debug", "info", ...).
"""

from __future__ import annotations

from enum import IntEnum


class Severity(IntEnum):
    DEBUG = 0
    INFO = 1
    WARN = 2
    UNKNOWN = 3
    ERROR = 4
    FATAL = 5

    @property
    def tag(self) -> str:
        return _TAGS[self]

    @property
    def initial(self) -> str:
        return self.name[0]


_TAGS = {
    Severity.DEBUG: "debug",
    Severity.INFO: "info",
    Severity.WARN: "warn",
    Severity.UNKNOWN: "unknown",
    Severity.ERROR: "error",
    Severity.FATAL: "fatal",
}

_BY_TAG = {tag: severity for severity, tag in _TAGS.items()}
_BY_TAG["warning"] = Severity.WARN


def to_tag(severity: Severity) -> str:
    return _TAGS[Severity(severity)]


def from_tag(tag: str) -> Severity:
    """
    Resolve a symbolic tag ("warn", "ERROR", "warning") to a Severity

    Raises ValueError on unknown tags
    """
    key = str(tag).strip().lower()
    if key not in _BY_TAG:
        raise ValueError(f"invalid severity: {tag}")
    return _BY_TAG[key]


def coerce(value: Severity | str | int | None) -> Severity:
    """
    Accept a Severity, tag or numeric code; None means UNKNOWN
    """
    if value is None:
        return Severity.UNKNOWN
    if isinstance(value, Severity):
        return value
    if isinstance(value, str):
        return from_tag(value)
    return Severity(value)
