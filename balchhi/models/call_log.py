from typing import Optional
import uuid
from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone


class CallLog(SQLModel, table=True):
    __tablename__ = "organization_call_logs"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    organization_id: uuid.UUID = Field(foreign_key="organizations.id", index=True)
    caller_id: int = Field(foreign_key="users.id")

    phone_called: str
    phone_source: str  # provided/website/google_listing/official_directory/other
    phone_source_url: Optional[str] = None

    scheduled_at: Optional[datetime] = None
    called_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    call_duration_seconds: Optional[int] = None

    call_status: str
    answered_by: Optional[str] = None
    answered_by_position: Optional[str] = None

    verification_questions: list = Field(default_factory=list, sa_column=Column(JSON))
    call_summary: Optional[str] = None
    verification_result: Optional[bool] = None
    follow_up_required: bool = Field(default=False)
    follow_up_notes: Optional[str] = None
