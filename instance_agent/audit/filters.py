"""
instance_agent.audit.filters
AUTHOR: carter-vin

Known-noise messages that never reach the audit stream
"""

from __future__ import annotations

import re
from typing import Mapping, Sequence

from instance_agent.severity import Severity

MESSAGE_FILTERS: Mapping[Severity, Sequence[re.Pattern[str]]] = {
    Severity.ERROR: (
        # The provisioning framework logs every failed script action before the
        # caller can handle it; the caller audits its own, better message.
        re.compile(r" \(.+ line \d+\) had an error:\nUnexpected exit code from action\."),
    ),
}


def is_filtered(
    severity: Severity,
    message: object,
    filters: Mapping[Severity, Sequence[re.Pattern[str]]] = MESSAGE_FILTERS,
) -> bool:
    patterns = filters.get(severity)
    if not patterns:
        return False
    text = message if isinstance(message, str) else str(message)
    return any(pattern.search(text) for pattern in patterns)
