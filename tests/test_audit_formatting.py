"""
Contract tests for audit line rendering and the noise filter
"""

from datetime import datetime, timezone

from instance_agent.audit.filters import is_filtered
from instance_agent.audit.formatter import format_line, section_banner
from instance_agent.severity import Severity

NOON = datetime(2026, 1, 1, 12, 5, 9, tzinfo=timezone.utc)


def test_format_line_uses_severity_initial_and_clock_time() -> None:
    assert format_line(Severity.ERROR, NOON, "boom") == "[E] 12:05:09: boom\n"
    assert format_line(Severity.UNKNOWN, NOON, "?") == "[U] 12:05:09: ?\n"


def test_format_line_keeps_embedded_newlines() -> None:
    """
    Multi-line messages pass through untouched
    """
    message = "line one\nline two"
    assert format_line(Severity.INFO, NOON, message) == "[I] 12:05:09: line one\nline two\n"
    assert message == "line one\nline two"


def test_format_line_renders_exceptions_with_class() -> None:
    assert format_line(Severity.WARN, NOON, KeyError("x")) == "[W] 12:05:09: 'x' (KeyError)\n"


def test_section_banner_centers_title() -> None:
    banner = section_banner("SECTION")
    rule, body = banner.split("\n")

    assert rule == "*" * 80
    assert body == "*RS>" + " " * 32 + "SECTION" + " " * 33 + "****"


def test_failed_script_noise_is_filtered_for_errors_only() -> None:
    """
    Redundant framework report of a failed script action is dropped at ERROR
    """
    noise = "script[install] (recipe.rb line 12) had an error:\nUnexpected exit code from action."

    assert is_filtered(Severity.ERROR, noise)
    assert not is_filtered(Severity.WARN, noise)
    assert not is_filtered(Severity.ERROR, "disk full")
