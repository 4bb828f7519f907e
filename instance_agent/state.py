"""
instance_agent.state
AUTHOR: carter-vin

Persistent instance lifecycle state (repo-local ./state)

Current responsibilities:
- Current lifecycle state (booting -> operational -> decommissioning ...)
- Append-only history of executed scripts
- Mirror every state write to the coordinator (best effort)

State file (one per identity):
- ./state/instance_<identity>.json
  {
    "identity": "<identity>",
    "state": "booting",
    "past_scripts": ["..."]
  }

Failure semantics:
- Persistence errors raise StatePersistenceError; memory is left unchanged
- A record file holding another identity raises StateConflictError
- A corrupt record is moved aside to <name>.corrupt, never overwritten
- Coordinator errors never roll back the local transition; they reach the
  caller's on_result callback and the operational log
"""

from __future__ import annotations

import asyncio
import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Optional

from instance_agent.config import DEFAULT_STATE_DIR
from instance_agent.coordinator import Coordinator, StateUpdate
from instance_agent.identity import identity_slug
from instance_agent.logging import OperationalLog
from instance_agent.outcome import Outcome

BOOTING = "booting"
OPERATIONAL = "operational"
DECOMMISSIONING = "decommissioning"
DECOMMISSIONED = "decommissioned"

# Known values only; other states pass through unvalidated
KNOWN_STATES = (BOOTING, OPERATIONAL, DECOMMISSIONING, DECOMMISSIONED)


class StatePersistenceError(RuntimeError):
    """Durable read or write of the instance record failed"""


class StateConflictError(ValueError):
    """The record file for an identity belongs to a different identity"""


@dataclass(frozen=True)
class InstanceRecord:
    """
    Stored instance state.

    past_scripts:
    - insertion order, duplicates allowed
    """

    identity: str
    state: str = BOOTING
    past_scripts: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "identity": self.identity,
            "state": self.state,
            "past_scripts": list(self.past_scripts),
        }

    @staticmethod
    def from_dict(payload: dict[str, Any]) -> "InstanceRecord":
        identity = str(payload.get("identity", "")).strip()
        state = str(payload.get("state", "")).strip()
        scripts = payload.get("past_scripts", [])

        if not identity:
            raise ValueError("record has no identity")
        if not state:
            raise ValueError("record has no state")
        if not isinstance(scripts, list):
            raise ValueError("past_scripts must be a list")

        return InstanceRecord(
            identity=identity,
            state=state,
            past_scripts=tuple(str(script) for script in scripts),
        )


def record_path(identity: str, state_dir: Path = DEFAULT_STATE_DIR) -> Path:
    return state_dir / f"instance_{identity_slug(identity)}.json"


def load_record(identity: str, *, state_dir: Path = DEFAULT_STATE_DIR) -> InstanceRecord | None:
    """
    Load the record for identity

    Returns:
    - InstanceRecord if present
    - None if missing

    Raises:
    - StateConflictError if the file belongs to another identity
    - ValueError for content that is not a valid record
    - OSError if the file cannot be read
    """
    path = record_path(identity, state_dir)
    if not path.exists():
        return None

    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError(f"{path} does not hold a JSON object")

    record = InstanceRecord.from_dict(payload)
    if record.identity != identity:
        # Slug collision between two identities
        raise StateConflictError(f"{path} belongs to identity {record.identity!r}")
    return record


def save_record(record: InstanceRecord, *, state_dir: Path = DEFAULT_STATE_DIR) -> None:
    """
    Persist record atomically (temp file + rename)

    Raises StatePersistenceError on IO errors
    """
    path = record_path(record.identity, state_dir)
    tmp_path = path.with_name(path.name + ".tmp")

    try:
        state_dir.mkdir(parents=True, exist_ok=True)
        tmp_path.write_text(
            json.dumps(record.to_dict(), sort_keys=True, separators=(",", ":")) + "\n",
            encoding="utf-8",
        )
        os.replace(tmp_path, path)
    except OSError as e:
        raise StatePersistenceError(f"failed to persist instance state to {path}: {e}") from e


def quarantine_record(path: Path) -> Path:
    """
    Move an unusable record aside as <name>.corrupt (replacing an older copy)

    Raises StatePersistenceError when the file cannot be moved
    """
    target = path.with_name(path.name + ".corrupt")
    try:
        os.replace(path, target)
    except OSError as e:
        raise StatePersistenceError(f"failed to move unreadable record {path} aside: {e}") from e
    return target


class InstanceState:
    """
    Lifecycle state machine for the current instance.

    Usage:
        state = InstanceState(coordinator, state_dir=..., log=...)
        state.init("instance-1")
        state.value = "operational"
    """

    def __init__(
        self,
        coordinator: Coordinator | None,
        *,
        state_dir: Path = DEFAULT_STATE_DIR,
        log: OperationalLog | None = None,
    ) -> None:
        self.coordinator = coordinator
        self.state_dir = Path(state_dir)
        self.log = log
        self._record: Optional[InstanceRecord] = None
        self._pending: set[asyncio.Task] = set()

    def init(
        self,
        identity: str,
        on_result: Optional[Callable[[Outcome], None]] = None,
    ) -> "InstanceState":
        """
        Make identity's record current: reload it, or start fresh as booting

        A fresh record is persisted and then reported to the coordinator like
        any other state write. A record that exists but is not valid JSON or
        not a valid record is moved aside (<name>.corrupt) first; it is never
        overwritten in place.

        Raises:
        - StateConflictError if the record file belongs to another identity
        - StatePersistenceError if the record cannot be read, moved or written
        """
        identity = identity.strip()
        if not identity:
            raise ValueError("identity must be non-empty")

        path = record_path(identity, self.state_dir)
        try:
            record = load_record(identity, state_dir=self.state_dir)
        except StateConflictError:
            raise
        except OSError as e:
            raise StatePersistenceError(f"failed to read instance state from {path}: {e}") from e
        except ValueError as e:
            moved_to = quarantine_record(path)
            self._log(
                "state_load_failed",
                "warning",
                identity=identity,
                error_type=type(e).__name__,
                message=str(e),
                moved_to=str(moved_to),
            )
            record = None

        fresh = record is None
        if fresh:
            record = InstanceRecord(identity=identity)
            save_record(record, state_dir=self.state_dir)

        self._record = record
        self._log(
            "state_loaded",
            "debug",
            identity=identity,
            state=record.state,
            past_scripts=len(record.past_scripts),
        )

        if fresh:
            self._schedule_notify(StateUpdate(state=record.state, identity=identity), on_result)
        return self

    @property
    def identity(self) -> str:
        return self._current().identity

    @property
    def value(self) -> str:
        return self._current().state

    @value.setter
    def value(self, new_state: str) -> None:
        self.set_value(new_state)

    @property
    def past_scripts(self) -> tuple[str, ...]:
        return self._current().past_scripts

    def set_value(
        self,
        new_state: str,
        on_result: Optional[Callable[[Outcome], None]] = None,
    ) -> Optional[asyncio.Task]:
        """
        Transition to new_state

        Persists synchronously, then notifies the coordinator in the background.
        Returns the notification task, or None when no event loop is running.
        """
        new_state = str(new_state).strip()
        if not new_state:
            raise ValueError("state must be non-empty")

        current = self._current()
        updated = replace(current, state=new_state)
        save_record(updated, state_dir=self.state_dir)
        self._record = updated

        self._log("state_transition", "info", identity=updated.identity, previous=current.state, state=new_state)

        return self._schedule_notify(StateUpdate(state=new_state, identity=updated.identity), on_result)

    def record_script_execution(self, script_id: str) -> None:
        current = self._current()
        updated = replace(current, past_scripts=current.past_scripts + (str(script_id),))
        save_record(updated, state_dir=self.state_dir)
        self._record = updated
        self._log("script_recorded", "debug", identity=updated.identity, script=str(script_id))

    async def drain(self) -> None:
        """
        Wait for outstanding coordinator notifications
        """
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # -----------------------------
    # INTERNALS
    # -----------------------------
    def _current(self) -> InstanceRecord:
        if self._record is None:
            raise RuntimeError("instance state not initialized; call init(identity) first")
        return self._record

    def _schedule_notify(self, update: StateUpdate, on_result) -> Optional[asyncio.Task]:
        if self.coordinator is None:
            # Offline store (operator CLI): local record only
            self._sync_failed(update, Outcome.failure("record_state", RuntimeError("no coordinator configured")), on_result)
            return None

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            self._sync_failed(update, Outcome.failure("record_state", e), on_result)
            return None

        task = loop.create_task(self._notify(update, on_result))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _notify(self, update: StateUpdate, on_result) -> Outcome:
        try:
            value = await self.coordinator.record_state(update)
        except Exception as e:
            outcome = Outcome.failure("record_state", e)
            self._sync_failed(update, outcome, on_result)
            return outcome

        outcome = Outcome.success("record_state", value)
        self._log("state_synced", "debug", identity=update.identity, state=update.state)
        if on_result is not None:
            on_result(outcome)
        return outcome

    def _sync_failed(self, update: StateUpdate, outcome: Outcome, on_result) -> None:
        self._log(
            "state_sync_failed",
            "warning",
            identity=update.identity,
            state=update.state,
            error_type=outcome.error_type,
            message=outcome.error_message,
        )
        if on_result is not None:
            on_result(outcome)

    def _log(self, event_type: str, level: str, **fields: Any) -> None:
        # Record is already durable at this point
        if self.log is not None:
            self.log.try_emit(event_type, level=level, **fields)
