"""instance_agent.audit package exports."""

from instance_agent.audit.filters import MESSAGE_FILTERS, is_filtered
from instance_agent.audit.formatter import format_line
from instance_agent.audit.forwarder import AuditForwarder, PendingBatch
from instance_agent.audit.logger import AuditLogger

__all__ = [
    "MESSAGE_FILTERS",
    "AuditForwarder",
    "AuditLogger",
    "PendingBatch",
    "format_line",
    "is_filtered",
]
