"""
instance_agent.coordinator
AUTHOR: carter-vin

Interface to the remote coordinator (audit + state recording)

The transport itself lives outside this package. Anything that provides these
two coroutines can be injected into forwarders and state stores.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol

# Content kinds understood by the coordinator's auditor
OUTPUT = "output"
ERROR = "error"
STATUS = "status"
SECTION = "section"

CONTENT_KINDS = {OUTPUT, ERROR, STATUS, SECTION}

# Event category attached to fatal errors
CATEGORY_ERROR = "error"


@dataclass(frozen=True)
class AuditContent:
    """
    One audit push
    - kind: output | error | status | section
    - run_id: audit session the content belongs to
    """

    kind: str
    text: str
    run_id: str
    category: Optional[str] = None

    def __post_init__(self) -> None:
        if self.kind not in CONTENT_KINDS:
            raise ValueError(f"invalid audit content kind: {self.kind}")

    def to_dict(self) -> dict[str, Any]:
        payload = {"kind": self.kind, "text": self.text, "run_id": self.run_id}
        if self.category is not None:
            payload["category"] = self.category
        return payload


@dataclass(frozen=True)
class StateUpdate:
    state: str
    identity: str

    def to_dict(self) -> dict[str, Any]:
        return {"state": self.state, "identity": self.identity}


class Coordinator(Protocol):
    async def push_audit(self, content: AuditContent) -> None:
        ...

    async def record_state(self, update: StateUpdate) -> Any:
        ...
