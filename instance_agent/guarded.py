"""
instance_agent.guarded
AUTHOR: carter-vin

Guarded operations -> failures of caller-supplied work become a recorded
last_error instead of crashing the agent

- retrieve: work returning nothing counts as "not found"
- create:   only exceptions count
- query:    work runs through an external query runner (retry/reconnect
            policy lives there), optional traceback and alerting
- add_timer: one-shot loop timer whose exceptions are contained

Only Exception subclasses are contained; KeyboardInterrupt/SystemExit pass.
"""

from __future__ import annotations

import asyncio
import traceback
from typing import Any, Callable, Optional, Protocol, TypeVar

from instance_agent.logging import OperationalLog

T = TypeVar("T")


class ErrorSink(Protocol):
    """Anything that can audit an error line (an AuditForwarder)"""

    def append_error(self, text: str, category: Optional[str] = None) -> Any:
        ...


def format_error(description: str, exc: BaseException, *, trace: bool = False) -> str:
    cause = str(exc) or type(exc).__name__
    text = f"{description}: {cause}"
    if trace:
        text += "\n" + "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)).rstrip()
    return text


class GuardedOperations:
    """
    Holds the last_error slot for whoever owns it (one per agent component)

    query_runner:
    - callable(work) -> result; defaults to calling work directly
    alert:
    - out-of-band channel, called as alert(description, exc)
    """

    def __init__(
        self,
        log: OperationalLog | None = None,
        *,
        query_runner: Optional[Callable[[Callable[[], Any]], Any]] = None,
        alert: Optional[Callable[[str, Exception], None]] = None,
    ) -> None:
        self.log = log
        self.query_runner = query_runner
        self.alert = alert
        self.last_error: Optional[str] = None

    def retrieve(
        self,
        description: str,
        work: Callable[[], T],
        forwarder: ErrorSink | None = None,
        also_log: bool = False,
    ) -> Optional[T]:
        """
        Run work; None when it returns nothing or raises
        """
        item: Optional[T] = None
        try:
            item = work()
            if not item:
                item = None
                self.last_error = f"Could not find {description}"
                if also_log:
                    self._log("operation_not_found", "warning", description=description, message=self.last_error)
        except Exception as e:
            item = None
            self._record_failure(f"Failed to retrieve {description}", e)

        if item is None:
            self._route_error(forwarder)
        return item

    def create(
        self,
        description: str,
        work: Callable[[], T],
        forwarder: ErrorSink | None = None,
    ) -> Optional[T]:
        try:
            return work()
        except Exception as e:
            self._record_failure(f"Failed to create {description}", e)
            self._route_error(forwarder)
            return None

    def query(
        self,
        description: str,
        work: Callable[[], T],
        forwarder: ErrorSink | None = None,
        *,
        include_backtrace: bool = False,
        alert: bool = False,
    ) -> Optional[T]:
        """
        Run work once through the query runner

        include_backtrace:
        - append the formatted traceback to last_error
        alert:
        - also hand the failure to the alert channel
        """
        try:
            if self.query_runner is not None:
                return self.query_runner(work)
            return work()
        except Exception as e:
            failure = f"Failed to {description}"
            self._record_failure(failure, e, include_backtrace=include_backtrace)
            self._route_error(forwarder)
            if alert:
                self._send_alert(failure, e)
            return None

    def add_timer(self, delay: float, work: Callable[[], Any]) -> asyncio.TimerHandle:
        """
        Run work after delay seconds on the running loop; failures are logged
        """
        return asyncio.get_running_loop().call_later(delay, self._run_timer, work)

    # -----------------------------
    # INTERNALS
    # -----------------------------
    def _record_failure(self, description: str, exc: Exception, *, include_backtrace: bool = False) -> None:
        self._log(
            "operation_failed",
            "error",
            description=description,
            error_type=type(exc).__name__,
            message=str(exc),
            trace=traceback.format_exc(),
        )
        self.last_error = format_error(description, exc, trace=include_backtrace)

    def _route_error(self, forwarder: ErrorSink | None) -> None:
        # The audit copy of last_error is best effort; the caller still gets None
        if forwarder is None or not self.last_error:
            return
        try:
            forwarder.append_error(self.last_error)
        except Exception as e:
            self._log(
                "operation_failed",
                "error",
                description="Failed to route error to audit",
                error_type=type(e).__name__,
                message=str(e),
            )

    def _send_alert(self, description: str, exc: Exception) -> None:
        if self.alert is None:
            return
        try:
            self.alert(description, exc)
        except Exception as e:
            self._log(
                "operation_failed",
                "error",
                description=f"Failed to send alert for {description}",
                error_type=type(e).__name__,
                message=str(e),
            )

    def _run_timer(self, work: Callable[[], Any]) -> None:
        try:
            work()
        except Exception as e:
            self._log(
                "timer_failed",
                "error",
                description="Failed time-delayed task",
                error_type=type(e).__name__,
                message=str(e),
                trace=traceback.format_exc(),
            )

    def _log(self, event_type: str, level: str, **fields: Any) -> None:
        if self.log is not None:
            self.log.try_emit(event_type, level=level, **fields)
