"""
Contract test for the severity model
"""

import pytest

from instance_agent.severity import Severity, coerce, from_tag, to_tag


def test_level_order_puts_unknown_between_warn_and_error() -> None:
    """
    Level filtering order is DEBUG < INFO < WARN < UNKNOWN < ERROR < FATAL
    """
    ordered = sorted(Severity)
    assert ordered == [
        Severity.DEBUG,
        Severity.INFO,
        Severity.WARN,
        Severity.UNKNOWN,
        Severity.ERROR,
        Severity.FATAL,
    ]


def test_tags_are_symbolic() -> None:
    assert to_tag(Severity.WARN) == "warn"
    assert Severity.FATAL.tag == "fatal"
    assert from_tag("ERROR") is Severity.ERROR
    assert from_tag("warning") is Severity.WARN


def test_coerce_defaults_none_to_unknown() -> None:
    assert coerce(None) is Severity.UNKNOWN
    assert coerce("info") is Severity.INFO
    assert coerce(4) is Severity.ERROR


def test_from_tag_rejects_unknown_tags() -> None:
    with pytest.raises(ValueError, match="invalid severity"):
        from_tag("loud")
