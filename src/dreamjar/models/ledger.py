"""Pydantic models for audit ledger events."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class AuditEvent(BaseModel):
    """Append-only audit record.

    Written as JSONL to the configured audit log. Never mutate or delete.
    """

    event_id: str = Field(description="Unique event identifier (uuid4)")
    run_id: str = Field(description="Process/run identifier (uuid4)")
    ts: datetime = Field(description="Event timestamp (ISO8601 UTC)")
    event_type: str = Field(description="Event name, e.g. proof_submitted")
    subject_id: Optional[str] = Field(default=None, description="Wish or proposal the event concerns")
    payload: dict = Field(default_factory=dict, description="Event-specific data")

    model_config = {"frozen": True}
