"""
Contract tests for audit batching, ordering and local mirroring
"""

import asyncio

from conftest import RecordingCoordinator, read_events

from instance_agent.audit.forwarder import AuditForwarder
from instance_agent.coordinator import CATEGORY_ERROR

DELAY = 0.05


def test_output_burst_becomes_one_push(coordinator, op_log) -> None:
    """
    Output appended inside the delay window is delivered once, in call order
    """

    async def scenario() -> None:
        forwarder = AuditForwarder("run-1", coordinator, log=op_log, max_audit_delay=DELAY)
        forwarder.append_output("A")
        forwarder.append_output("B")
        forwarder.append_output("C")
        assert forwarder.pending.accumulated_text == "ABC"
        assert coordinator.audit == []

        await asyncio.sleep(DELAY * 3)
        await forwarder.drain()
        assert forwarder.pending is None

    asyncio.run(scenario())

    assert [(c.kind, c.text, c.run_id) for c in coordinator.audit] == [("output", "ABC", "run-1")]


def test_spaced_bursts_get_their_own_push(coordinator) -> None:
    async def scenario() -> None:
        forwarder = AuditForwarder("run-1", coordinator, max_audit_delay=DELAY)
        forwarder.append_output("first")
        await asyncio.sleep(DELAY * 3)
        forwarder.append_output("second")
        await asyncio.sleep(DELAY * 3)
        await forwarder.drain()

    asyncio.run(scenario())

    assert [c.text for c in coordinator.audit] == ["first", "second"]


def test_error_flushes_pending_output_first(coordinator) -> None:
    """
    append_output("A") then append_error("B") -> output push precedes error push
    """

    async def scenario() -> None:
        forwarder = AuditForwarder("run-1", coordinator, max_audit_delay=10)
        forwarder.append_output("A")
        forwarder.append_error("B")
        await forwarder.drain()

    asyncio.run(scenario())

    assert [(c.kind, c.text) for c in coordinator.audit] == [("output", "A"), ("error", "B")]


def test_status_section_and_info_are_immediate_and_ordered(coordinator) -> None:
    async def scenario() -> None:
        forwarder = AuditForwarder("run-1", coordinator, max_audit_delay=10)
        forwarder.append_output("out-1")
        forwarder.update_status("STATUS")
        forwarder.append_output("out-2")
        forwarder.create_new_section("SECTION", category=CATEGORY_ERROR)
        forwarder.append_info("INFO")
        await forwarder.drain()

    asyncio.run(scenario())

    assert [(c.kind, c.text) for c in coordinator.audit] == [
        ("output", "out-1"),
        ("status", "STATUS"),
        ("output", "out-2"),
        ("section", "SECTION"),
        ("output", "*RS> INFO\n"),
    ]
    assert coordinator.audit[3].category == CATEGORY_ERROR


def test_early_flush_does_not_shorten_next_batch(coordinator) -> None:
    """
    The timer of a batch flushed early never fires on a later batch
    """

    async def scenario() -> None:
        forwarder = AuditForwarder("run-1", coordinator, max_audit_delay=0.3)
        forwarder.append_output("A")
        forwarder.flush()
        await asyncio.sleep(0.1)
        forwarder.append_output("B")
        # Old batch deadline (0.3) passes here, new one (0.4) has not
        await asyncio.sleep(0.25)
        assert forwarder.pending is not None
        await forwarder.aclose()

    asyncio.run(scenario())

    assert [c.text for c in coordinator.audit] == ["A", "B"]


def test_aclose_flushes_pending_output(coordinator) -> None:
    async def scenario() -> None:
        forwarder = AuditForwarder("run-1", coordinator, max_audit_delay=60)
        forwarder.append_output("tail of script output")
        await forwarder.aclose()

    asyncio.run(scenario())

    assert [c.text for c in coordinator.audit] == ["tail of script output"]


def test_every_call_is_mirrored_locally(coordinator, op_log, log_path) -> None:
    async def scenario() -> None:
        forwarder = AuditForwarder("run-7", coordinator, log=op_log, max_audit_delay=10)
        forwarder.append_output("OUTPUT")
        forwarder.append_error("ERROR")
        forwarder.update_status("STATUS")
        forwarder.append_info("INFO")
        await forwarder.drain()

    asyncio.run(scenario())

    events = [(e["event_type"], e["level"], e["message"]) for e in read_events(log_path)]
    assert events == [
        ("audit_output", "info", "OUTPUT"),
        ("audit_error", "error", "*ERROR> ERROR"),
        ("audit_status", "info", "*RS> STATUS"),
        ("audit_info", "info", "*RS> INFO"),
    ]
    assert all(e["run_id"] == "run-7" for e in read_events(log_path))


def test_delivery_failure_is_logged_not_raised(op_log, log_path) -> None:
    """
    Unreachable coordinator: caller keeps going, operator sees the failure
    """
    coordinator = RecordingCoordinator(fail_audit=True)

    async def scenario() -> None:
        forwarder = AuditForwarder("run-1", coordinator, log=op_log, max_audit_delay=10)
        forwarder.append_error("ERROR")
        await forwarder.drain()

    asyncio.run(scenario())

    failures = [e for e in read_events(log_path) if e["event_type"] == "audit_delivery_failed"]
    assert len(failures) == 1
    assert failures[0]["kind"] == "error"
    assert failures[0]["error_type"] == "ConnectionError"


def test_mirror_failure_does_not_block_delivery(coordinator, tmp_path) -> None:
    """
    A broken local log sink is counted; audit delivery still happens
    """
    from instance_agent.logging import OperationalLog
    from instance_agent.sink import SinkTargets

    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")
    broken = OperationalLog(targets=SinkTargets(path=blocker / "ops.jsonl", emit_stdout=False))

    async def scenario() -> AuditForwarder:
        forwarder = AuditForwarder("run-1", coordinator, log=broken, max_audit_delay=10)
        forwarder.append_error("ERROR")
        await forwarder.drain()
        return forwarder

    forwarder = asyncio.run(scenario())

    assert forwarder.mirror_failures == 1
    assert [c.text for c in coordinator.audit] == ["ERROR"]
