"""Outcome models for the integration audit trail."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


# =============================================================================
# Audit Outcome Models
# =============================================================================

class AuditOutcome(str, Enum):
    """Classification of one integration attempt."""
    SUCCESS = "Success"
    FAILURE = "Failure"


class OutcomeRecord(BaseModel):
    """One integration attempt as recorded in the audit store.

    Records are append-only: the pipeline creates them and never updates
    or deletes them.
    """
    event_id: str = Field(..., description="Unique record identifier")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="When the attempt finished")

    # What was exchanged
    request_body: str = Field(default="", description="Serialized request sent")
    response_body: str = Field(default="", description="Raw response body or error text")

    # Classification
    channel: str = Field(..., description="Integration channel name (e.g. NetSuite)")
    outcome: AuditOutcome = Field(..., description="Success or Failure")
    source: str = Field(..., description="Operation that produced the record")

    # Context
    record_id: Optional[str] = Field(None, description="Source order identifier")
    batch_id: Optional[str] = Field(None, description="Batch the attempt belonged to")
    status_code: Optional[int] = Field(None, description="HTTP status, if a response arrived")

    @property
    def is_success(self) -> bool:
        return self.outcome == AuditOutcome.SUCCESS
