"""
instance_agent.identity

AUTHOR: carter-vin

Instance identity used to key the persisted state record

Precedence:
1) explicit value (CLI option)
2) INSTANCE_AGENT_IDENTITY env var
3) hostname
"""

from __future__ import annotations

import os
import re
import socket
from typing import Optional

IDENTITY_ENV = "INSTANCE_AGENT_IDENTITY"

# Identities become file names; keep them to a safe alphabet
_UNSAFE = re.compile(r"[^A-Za-z0-9._-]")


def resolve_identity(explicit: Optional[str] = None) -> str:
    identity = (explicit or "").strip()
    if not identity:
        identity = (os.getenv(IDENTITY_ENV) or "").strip()
    if not identity:
        identity = socket.gethostname()
    if not identity:
        raise ValueError("could not resolve instance identity")
    return identity


def identity_slug(identity: str) -> str:
    """
    File-system safe form of an identity
    """
    return _UNSAFE.sub("_", identity.strip())
