"""
Contract tests for coordinator payloads and identity resolution
"""

import pytest

from instance_agent.coordinator import AuditContent, StateUpdate
from instance_agent.identity import identity_slug, resolve_identity


def test_audit_content_payload_keys() -> None:
    assert AuditContent(kind="output", text="hi", run_id="42").to_dict() == {
        "kind": "output",
        "text": "hi",
        "run_id": "42",
    }
    assert AuditContent(kind="error", text="no", run_id="42", category="error").to_dict()["category"] == "error"


def test_audit_content_rejects_unknown_kind() -> None:
    with pytest.raises(ValueError, match="invalid audit content kind"):
        AuditContent(kind="chatter", text="", run_id="42")


def test_state_update_payload() -> None:
    assert StateUpdate(state="operational", identity="1").to_dict() == {"state": "operational", "identity": "1"}


def test_identity_precedence(monkeypatch) -> None:
    monkeypatch.setenv("INSTANCE_AGENT_IDENTITY", "from-env")

    assert resolve_identity("explicit") == "explicit"
    assert resolve_identity(None) == "from-env"

    monkeypatch.delenv("INSTANCE_AGENT_IDENTITY")
    monkeypatch.setattr("instance_agent.identity.socket.gethostname", lambda: "host-1")
    assert resolve_identity() == "host-1"


def test_identity_slug_is_filesystem_safe() -> None:
    assert identity_slug("rs-instance/42:a") == "rs-instance_42_a"
