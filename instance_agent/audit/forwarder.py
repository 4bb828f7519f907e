"""
instance_agent.audit.forwarder
AUTHOR: carter-vin

Audit forwarder: batches output and pushes audit content to the coordinator

Ordering contract (per run_id):
- output appended before an error/status/section/info push is delivered first
  (the pending batch is flushed before any immediate push)
- pushes are scheduled as tasks in call order

Batching:
- first output opens a batch and arms a timer for max_audit_delay
- later output joins the open batch until the timer (or an immediate push) flushes it

Delivery is fire-and-forget: failures are logged locally, never retried.
Pending output is only delivered on shutdown if the owner calls aclose().
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Optional

from instance_agent.audit.formatter import error_banner, section_banner, status_banner
from instance_agent.config import MAX_AUDIT_DELAY
from instance_agent.coordinator import ERROR, OUTPUT, SECTION, STATUS, AuditContent, Coordinator
from instance_agent.logging import OperationalLog


@dataclass
class PendingBatch:
    """
    Output being coalesced for one run_id
    - first_buffered_at: loop time of the first fragment
    """

    run_id: str
    first_buffered_at: float
    fragments: list[str] = field(default_factory=list)
    timer: Optional[asyncio.TimerHandle] = None

    @property
    def accumulated_text(self) -> str:
        return "".join(self.fragments)


class AuditForwarder:
    """
    Forwards audit content for a single run_id.

    Must be used from within a running asyncio loop.
    """

    def __init__(
        self,
        run_id: str,
        coordinator: Coordinator,
        *,
        log: OperationalLog | None = None,
        max_audit_delay: float = MAX_AUDIT_DELAY,
    ) -> None:
        if max_audit_delay < 0:
            raise ValueError("max_audit_delay must be >= 0")
        self._run_id = str(run_id)
        self.coordinator = coordinator
        self.log = log
        self.max_audit_delay = max_audit_delay
        self.mirror_failures = 0
        self._pending: Optional[PendingBatch] = None
        self._inflight: set[asyncio.Task] = set()

    @property
    def run_id(self) -> str:
        return self._run_id

    @property
    def pending(self) -> Optional[PendingBatch]:
        return self._pending

    # -----------------------------
    # AUDIT SURFACE
    # -----------------------------
    def append_output(self, text: str) -> None:
        """
        Buffer output; delivered with the current batch
        """
        self._mirror("audit_output", "info", text)

        if self._pending is not None:
            self._pending.fragments.append(text)
            return

        loop = asyncio.get_running_loop()
        batch = PendingBatch(run_id=self._run_id, first_buffered_at=loop.time(), fragments=[text])
        batch.timer = loop.call_later(self.max_audit_delay, self._on_batch_timer, batch)
        self._pending = batch

    def append_error(self, text: str, category: Optional[str] = None) -> asyncio.Task:
        self.flush()
        self._mirror("audit_error", "error", error_banner(text), category=category)
        return self._push(AuditContent(kind=ERROR, text=text, run_id=self._run_id, category=category))

    def append_info(self, text: str) -> asyncio.Task:
        """
        Operator-facing note, shown in the audit output but never batched
        """
        self.flush()
        banner = status_banner(text)
        self._mirror("audit_info", "info", banner)
        return self._push(AuditContent(kind=OUTPUT, text=banner + "\n", run_id=self._run_id))

    def update_status(self, text: str) -> asyncio.Task:
        self.flush()
        self._mirror("audit_status", "info", status_banner(text))
        return self._push(AuditContent(kind=STATUS, text=text, run_id=self._run_id))

    def create_new_section(self, title: str, category: Optional[str] = None) -> asyncio.Task:
        self.flush()
        self._mirror("audit_section", "info", section_banner(title), category=category)
        return self._push(AuditContent(kind=SECTION, text=title, run_id=self._run_id, category=category))

    def flush(self) -> Optional[asyncio.Task]:
        """
        Push the pending batch now; no-op without one
        """
        batch = self._pending
        if batch is None:
            return None

        self._pending = None
        if batch.timer is not None:
            batch.timer.cancel()

        return self._push(AuditContent(kind=OUTPUT, text=batch.accumulated_text, run_id=self._run_id))

    async def drain(self) -> None:
        """
        Wait for every in-flight delivery to settle
        """
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def aclose(self) -> None:
        """
        Graceful shutdown: flush pending output and wait for delivery
        """
        self.flush()
        await self.drain()

    # -----------------------------
    # INTERNALS
    # -----------------------------
    def _on_batch_timer(self, batch: PendingBatch) -> None:
        # A stale timer must not flush a newer batch early
        if self._pending is batch:
            self.flush()

    def _push(self, content: AuditContent) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._deliver(content))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _deliver(self, content: AuditContent) -> None:
        try:
            await self.coordinator.push_audit(content)
        except Exception as e:
            self._mirror(
                "audit_delivery_failed",
                "error",
                str(e),
                kind=content.kind,
                error_type=type(e).__name__,
                bytes=len(content.text),
            )

    def _mirror(self, event_type: str, level: str, message: str, **fields: Any) -> None:
        """
        Local copy of audit activity; its failure never affects delivery
        """
        if self.log is None:
            return
        if not self.log.try_emit(event_type, level=level, run_id=self._run_id, message=message, **fields):
            self.mirror_failures += 1
