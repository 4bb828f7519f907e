"""
instance_agent.audit.logger
AUTHOR: carter-vin

Leveled logger facade that turns log calls from provisioning code into audit
content for one run_id.

Routing (after level check and noise filter):
- debug                -> operational log only
- info / warn / unknown -> batched audit output
- error                -> immediate audit error
- fatal                -> immediate audit error, error category
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Callable, Mapping, Optional, Sequence

from instance_agent.audit.filters import MESSAGE_FILTERS, is_filtered
from instance_agent.audit.formatter import format_line, message_to_text
from instance_agent.audit.forwarder import AuditForwarder
from instance_agent.coordinator import CATEGORY_ERROR
from instance_agent.logging import OperationalLog
from instance_agent.severity import Severity, coerce, to_tag


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AuditLogger:
    def __init__(
        self,
        forwarder: AuditForwarder,
        *,
        log: OperationalLog | None = None,
        level: Severity | str = Severity.INFO,
        default_tag: Optional[str] = None,
        filters: Mapping[Severity, Sequence[re.Pattern[str]]] = MESSAGE_FILTERS,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.forwarder = forwarder
        self.log = log if log is not None else forwarder.log
        self.default_tag = default_tag
        self.filters = filters
        self.clock = clock
        self._level = coerce(level)

    @property
    def run_id(self) -> str:
        return self.forwarder.run_id

    @property
    def level(self) -> str:
        return to_tag(self._level)

    @level.setter
    def level(self, value: Severity | str) -> None:
        self._level = coerce(value)

    def add(
        self,
        severity: Severity | str | None,
        message: object = None,
        tag: Optional[str] = None,
        block: Optional[Callable[[], object]] = None,
    ) -> bool:
        """
        Audit a message at the given severity. Always returns True.

        Message resolution: message, else block(), else tag (the default tag
        is then the emitted tag).
        """
        try:
            self._dispatch(coerce(severity), message, tag, block)
        except Exception as e:
            self._report_failure(e)
        return True

    def debug(self, message: object = None, tag: Optional[str] = None, block=None) -> bool:
        return self.add(Severity.DEBUG, message, tag, block)

    def info(self, message: object = None, tag: Optional[str] = None, block=None) -> bool:
        return self.add(Severity.INFO, message, tag, block)

    def warn(self, message: object = None, tag: Optional[str] = None, block=None) -> bool:
        return self.add(Severity.WARN, message, tag, block)

    def error(self, message: object = None, tag: Optional[str] = None, block=None) -> bool:
        return self.add(Severity.ERROR, message, tag, block)

    def fatal(self, message: object = None, tag: Optional[str] = None, block=None) -> bool:
        return self.add(Severity.FATAL, message, tag, block)

    def unknown(self, message: object = None, tag: Optional[str] = None, block=None) -> bool:
        return self.add(Severity.UNKNOWN, message, tag, block)

    def append_raw(self, text: str) -> bool:
        """
        Verbatim audit output; no level, filter or formatting
        """
        self.forwarder.append_output(text)
        return True

    def open_section(self, title: str, category: Optional[str] = None) -> bool:
        self.forwarder.create_new_section(title, category=category)
        return True

    def _dispatch(self, severity: Severity, message, tag, block) -> None:
        if severity < self._level:
            return

        tag = tag or self.default_tag
        if message is None:
            if block is not None:
                message = block()
            else:
                message = tag
                tag = self.default_tag
        if message is None:
            message = ""

        if is_filtered(severity, message, self.filters):
            return

        if severity is Severity.DEBUG:
            if self.log is not None:
                self.log.debug("log_debug", run_id=self.run_id, tag=tag, message=message_to_text(message))
            return

        line = format_line(severity, self.clock(), message)

        if severity is Severity.ERROR:
            self.forwarder.append_error(line)
        elif severity is Severity.FATAL:
            self.forwarder.append_error(line, category=CATEGORY_ERROR)
        else:
            self.forwarder.append_output(line)

    def _report_failure(self, exc: Exception) -> None:
        if self.log is None:
            return
        self.log.try_emit(
            "audit_logger_failed",
            level="error",
            run_id=self.run_id,
            error_type=type(exc).__name__,
            message=str(exc),
        )
