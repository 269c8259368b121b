from typing import Optional
import uuid
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone


class ClaimEvidence(SQLModel, table=True):
    """Append-only proof attached to a claim."""

    __tablename__ = "claim_evidence"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    claim_id: uuid.UUID = Field(foreign_key="claims.id", index=True)

    type: str  # "image" or "document"
    url: str
    description: Optional[str] = None
