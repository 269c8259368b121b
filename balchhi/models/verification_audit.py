from typing import Optional
import uuid
from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone


class VerificationAudit(SQLModel, table=True):
    __tablename__ = "organization_verification_audit"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    organization_id: uuid.UUID = Field(foreign_key="organizations.id", index=True)

    action: str = Field(index=True)  # submitted, review_started, approved, rejected, ...
    previous_status: Optional[str] = None
    new_status: Optional[str] = None

    performed_by: int = Field(foreign_key="users.id")
    comments: Optional[str] = None
    details: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    rejection_reason: Optional[str] = None
    rejection_category: Optional[str] = None

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
