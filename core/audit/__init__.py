"""Core audit module - integration outcome tracking and persistence."""

from core.audit.events import (
    AuditBackend,
    AuditLogger,
    InMemoryAuditBackend,
    JSONFileAuditBackend,
    SQLiteAuditBackend,
    create_outcome_record,
)
from core.models.refs import AuditOutcome, OutcomeRecord

__all__ = [
    "AuditBackend",
    "AuditLogger",
    "AuditOutcome",
    "InMemoryAuditBackend",
    "JSONFileAuditBackend",
    "OutcomeRecord",
    "SQLiteAuditBackend",
    "create_outcome_record",
]
