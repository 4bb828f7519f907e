"""
instance_agent.audit.formatter
AUTHOR: carter-vin

Rendering for audit lines and for the local mirror of audit activity
"""

from __future__ import annotations

from datetime import datetime

from instance_agent.severity import Severity

SECTION_WIDTH = 72
SECTION_RULE = "****" * 20


def message_to_text(message: object) -> str:
    if isinstance(message, str):
        return message
    if isinstance(message, BaseException):
        return f"{message} ({type(message).__name__})"
    return str(message)


def format_line(severity: Severity, time: datetime, message: object) -> str:
    """
    "[<initial>] <HH:MM:SS>: <message>\n"

    Embedded newlines in message are kept as-is
    """
    return f"[{severity.initial}] {time.strftime('%H:%M:%S')}: {message_to_text(message)}\n"


def _center(text: str, width: int) -> str:
    # Odd padding goes to the right
    pad = width - len(text)
    if pad <= 0:
        return text
    left = pad // 2
    return " " * left + text + " " * (pad - left)


def error_banner(text: str) -> str:
    return f"*ERROR> {text}"


def status_banner(text: str) -> str:
    return f"*RS> {text}"


def section_banner(title: str) -> str:
    return f"{SECTION_RULE}\n*RS>{_center(title, SECTION_WIDTH)}****"
