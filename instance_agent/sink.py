"""
instance_agent.sink

AUTHOR: carter-vin

OUTPUT:
- plain line sink for the operational log
- stdout and/or an append-only file

Design goals:
- Create parent directory if missing
- Flush per write so tail can see activity immediately
- Size-based rotation with numeric suffixes (log.1, log.2, ...)
- Raise on IO errors (do not silently drop data)
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional


@dataclass(frozen=True)
class SinkTargets:
    """
    Where operational log lines go.

    path:
    - None disables the file sink
    max_bytes:
    - None or <= 0 disables rotation
    """

    path: Optional[Path] = None
    emit_stdout: bool = True
    max_bytes: int | None = None
    rotate_count: int = 3


def _rotation_path(path: Path, index: int) -> Path:
    return path.with_name(f"{path.stem}.{index}{path.suffix}")


def maybe_rotate(targets: SinkTargets) -> dict[str, Any] | None:
    """
    Rotate the file sink when it exceeds max size

    Returns rotation info ({"rotated_to", "prior_size_bytes"}) or None
    """
    path = targets.path
    if path is None:
        return None

    if targets.max_bytes is None or targets.max_bytes <= 0:
        return None

    if targets.rotate_count < 1:
        return None

    if not path.exists():
        return None

    prior_size = path.stat().st_size
    if prior_size < targets.max_bytes:
        return None

    # Shift oldest first so nothing is overwritten mid-rotation
    for index in range(targets.rotate_count, 1, -1):
        src = _rotation_path(path, index - 1)
        dst = _rotation_path(path, index)
        if dst.exists():
            dst.unlink()
        if src.exists():
            src.rename(dst)

    first = _rotation_path(path, 1)
    if first.exists():
        first.unlink()
    path.rename(first)

    return {"rotated_to": str(first), "prior_size_bytes": prior_size}


def append_line(path: Path, line: str) -> None:
    """
    Append one line; exactly one trailing newline is added
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    with path.open(mode="a", encoding="utf-8", newline="\n") as f:
        f.write(line)
        f.write("\n")
        f.flush()


def write_line(line: str, targets: SinkTargets, *, rotate: bool = True) -> dict[str, Any] | None:
    """
    Write a line to every configured target.

    line:
    - single line, no trailing newline
    rotate:
    - False skips the size check (caller already rotated)

    Returns rotation info when the file sink rotated before this write.
    """
    if targets.emit_stdout:
        print(line)

    if targets.path is None:
        return None

    rotation = maybe_rotate(targets) if rotate else None
    append_line(targets.path, line)
    return rotation
