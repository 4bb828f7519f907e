"""
instance_agent.outcome
AUTHOR: carter-vin

Light result wrapper -> failures become data instead of exceptions
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class Outcome:
    """
    Normalized result of a contained call
    - ok: false=failure, error details in error fields
    - value: call result if ok=true
    """

    name: str
    ok: bool
    value: Optional[Any] = None
    error_type: Optional[str] = None
    error_message: Optional[str] = None

    @staticmethod
    def success(name: str, value: Any = None) -> "Outcome":
        return Outcome(name=name, ok=True, value=value)

    @staticmethod
    def failure(name: str, exc: BaseException) -> "Outcome":
        return Outcome(
            name=name,
            ok=False,
            error_type=type(exc).__name__,
            error_message=str(exc),
        )
