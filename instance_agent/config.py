"""
instance_agent.config
AUTHOR: carter-vin

Runtime settings for the audit/state layer

Precedence:
1) explicit values (CLI options, constructor args)
2) INSTANCE_AGENT_* env vars
3) defaults below
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

AGENT_VERSION = "0.1.0"

# Max coalescing window (seconds) for batched audit output
MAX_AUDIT_DELAY = 2.0

DEFAULT_STATE_DIR = Path("state")
DEFAULT_LOG_LEVEL = "info"

STATE_DIR_ENV = "INSTANCE_AGENT_STATE_DIR"
LOG_PATH_ENV = "INSTANCE_AGENT_LOG_PATH"
LOG_LEVEL_ENV = "INSTANCE_AGENT_LOG_LEVEL"
MAX_AUDIT_DELAY_ENV = "INSTANCE_AGENT_MAX_AUDIT_DELAY"


@dataclass(frozen=True)
class AgentSettings:
    """
    Settings shared by the forwarder, state store and operational log.

    log_path:
    - None keeps the operational log on stdout only
    """

    state_dir: Path = DEFAULT_STATE_DIR
    log_path: Optional[Path] = None
    log_level: str = DEFAULT_LOG_LEVEL
    log_max_bytes: Optional[int] = None
    log_rotate_count: int = 3
    emit_stdout: bool = True
    max_audit_delay: float = MAX_AUDIT_DELAY

    @staticmethod
    def from_env(**overrides) -> "AgentSettings":
        settings = AgentSettings()

        state_dir = os.getenv(STATE_DIR_ENV)
        if state_dir:
            settings = replace(settings, state_dir=Path(state_dir))

        log_path = os.getenv(LOG_PATH_ENV)
        if log_path:
            settings = replace(settings, log_path=Path(log_path))

        log_level = os.getenv(LOG_LEVEL_ENV)
        if log_level:
            settings = replace(settings, log_level=log_level.strip().lower())

        delay = os.getenv(MAX_AUDIT_DELAY_ENV)
        if delay:
            try:
                settings = replace(settings, max_audit_delay=float(delay))
            except ValueError:
                raise ValueError(f"{MAX_AUDIT_DELAY_ENV} must be a number, got {delay!r}")

        # None means "not given" so CLI defaults don't mask env values
        explicit = {key: value for key, value in overrides.items() if value is not None}
        return replace(settings, **explicit)
