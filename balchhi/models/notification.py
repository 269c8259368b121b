from typing import Optional
import uuid
from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone

class Notification(SQLModel, table=True):
    __tablename__ = "notifications"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Ownership
    user_id: int = Field(foreign_key="users.id", index=True)

    # Notification fields
    type: str = Field(index=True) # e.g. "claim_received", "claim_approved", "verification_approved"

    title: str
    body: str

    # References to the entity that triggered the notification
    data: dict = Field(default_factory=dict, sa_column=Column(JSON))

    read_at: Optional[datetime] = None
