import uuid
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone


class Handover(SQLModel, table=True):
    __tablename__ = "handovers"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    claim_id: uuid.UUID = Field(foreign_key="claims.id", index=True, unique=True)

    method: str = Field(default="meetup")  # meetup/delivery
