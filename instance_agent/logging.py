"""
instance_agent.logging
AUTHOR: carter-vin

Operational log: structured JSON events for local operators

Contract:
- One JSON object per line (stdout and/or file sink)
- Stable event vocabulary (allowlist)
- UTC timestamps only
- Separate from the audit stream sent to the coordinator
"""

from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from instance_agent.config import AGENT_VERSION, AgentSettings
from instance_agent.sink import SinkTargets, maybe_rotate, write_line

# Event types
VALID_EVENT_TYPES = {
    "log_debug",
    "audit_output",
    "audit_info",
    "audit_status",
    "audit_error",
    "audit_section",
    "audit_delivery_failed",
    "audit_logger_failed",
    "state_loaded",
    "state_load_failed",
    "state_transition",
    "state_synced",
    "state_sync_failed",
    "script_recorded",
    "operation_not_found",
    "operation_failed",
    "timer_failed",
    "log_rotated",
}

LEVELS = {"debug": 10, "info": 20, "warning": 30, "error": 40}

DEFAULT_MESSAGE_LIMIT = 2000


def _truncate_message(value: str, *, limit: int) -> str:
    """
    Cap message length to keep events compact
    """
    if len(value) <= limit:
        return value
    return value[:limit] + f"...[truncated {len(value) - limit} chars]"


# Time: current in UTC ISO 8601
def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _check_level(level: str) -> str:
    level = level.strip().lower()
    if level not in LEVELS:
        raise ValueError(f"invalid log level: {level}")
    return level


class OperationalLog:
    """
    Append-only local event log.

    Rules:
    - event_type in VALID_EVENT_TYPES
    - event_type, level, utc_now, agent_version always present
    - events below the configured level are dropped before serialization
    - sort_keys + compact separators for format
    """

    def __init__(
        self,
        *,
        targets: SinkTargets | None = None,
        level: str = "info",
        agent_version: str = AGENT_VERSION,
        message_limit: Optional[int] = DEFAULT_MESSAGE_LIMIT,
        on_write_error: Optional[Callable[[Exception, SinkTargets], None]] = None,
    ) -> None:
        self.targets = targets or SinkTargets()
        self.level = _check_level(level)
        self.agent_version = agent_version
        self.message_limit = message_limit
        self.on_write_error = on_write_error

    @staticmethod
    def from_settings(settings: AgentSettings) -> "OperationalLog":
        targets = SinkTargets(
            path=settings.log_path,
            emit_stdout=settings.emit_stdout,
            max_bytes=settings.log_max_bytes,
            rotate_count=settings.log_rotate_count,
        )
        return OperationalLog(targets=targets, level=settings.log_level)

    def enabled_for(self, level: str) -> bool:
        return LEVELS[_check_level(level)] >= LEVELS[self.level]

    def emit(self, event_type: str, *, level: str = "info", **fields: Any) -> bool:
        """
        Emit one event line

        Returns False when the event was below the configured level.
        Raises ValueError for unknown event types, OSError for sink failures.
        """
        if event_type not in VALID_EVENT_TYPES:
            raise ValueError(f"invalid event_type: {event_type}")

        if not self.enabled_for(level):
            return False

        message = fields.get("message")
        if self.message_limit is not None and isinstance(message, str):
            fields["message"] = _truncate_message(message, limit=self.message_limit)

        line = self._render(event_type, level, fields)

        try:
            # Rotate at most once per event, before anything is written
            rotation = maybe_rotate(self.targets)
            if rotation is not None:
                write_line(self._render("log_rotated", "info", rotation), self.targets, rotate=False)
            write_line(line, self.targets, rotate=False)
        except OSError as e:
            if self.on_write_error is not None:
                self.on_write_error(e, self.targets)
            raise
        return True

    def _render(self, event_type: str, level: str, fields: dict[str, Any]) -> str:
        payload: dict[str, Any] = {
            "event_type": event_type,
            "level": _check_level(level),
            "utc_now": utc_now_iso(),
            "agent_version": self.agent_version,
            **fields,
        }

        return json.dumps(
            payload,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
        )

    def try_emit(self, event_type: str, *, level: str = "info", **fields: Any) -> bool:
        """
        emit() for callers whose own work must not fail on a broken sink

        Returns False (and reports on stderr) when the write raised.
        """
        try:
            self.emit(event_type, level=level, **fields)
        except Exception as e:
            print(f"instance-agent: operational log write failed: {e}", file=sys.stderr)
            return False
        return True

    def debug(self, event_type: str, **fields: Any) -> bool:
        return self.emit(event_type, level="debug", **fields)

    def info(self, event_type: str, **fields: Any) -> bool:
        return self.emit(event_type, level="info", **fields)

    def warning(self, event_type: str, **fields: Any) -> bool:
        return self.emit(event_type, level="warning", **fields)

    def error(self, event_type: str, **fields: Any) -> bool:
        return self.emit(event_type, level="error", **fields)
