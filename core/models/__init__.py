"""Core data models - integration outcome types."""

from core.models.refs import (
    AuditOutcome,
    OutcomeRecord,
)

__all__ = [
    "AuditOutcome",
    "OutcomeRecord",
]
