"""
Shared fixtures: a recording coordinator and a file-backed operational log
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from instance_agent.coordinator import AuditContent, StateUpdate
from instance_agent.logging import OperationalLog
from instance_agent.sink import SinkTargets


class RecordingCoordinator:
    """
    Stand-in for the remote coordinator; keeps every push in call order
    """

    def __init__(self, *, fail_audit: bool = False, fail_state: bool = False) -> None:
        self.fail_audit = fail_audit
        self.fail_state = fail_state
        self.audit: list[AuditContent] = []
        self.states: list[StateUpdate] = []

    async def push_audit(self, content: AuditContent) -> None:
        if self.fail_audit:
            raise ConnectionError("coordinator unreachable")
        self.audit.append(content)

    async def record_state(self, update: StateUpdate) -> dict:
        if self.fail_state:
            raise ConnectionError("coordinator unreachable")
        self.states.append(update)
        return {"status": "success"}


def read_events(path: Path) -> list[dict]:
    if not path.exists():
        return []
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


@pytest.fixture
def coordinator() -> RecordingCoordinator:
    return RecordingCoordinator()


@pytest.fixture
def log_path(tmp_path: Path) -> Path:
    return tmp_path / "logs" / "operational.jsonl"


@pytest.fixture
def op_log(log_path: Path) -> OperationalLog:
    return OperationalLog(targets=SinkTargets(path=log_path, emit_stdout=False), level="debug")
