from typing import Optional
import uuid
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone


class Claim(SQLModel, table=True):
    __tablename__ = "claims"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: Optional[datetime] = None

    item_id: uuid.UUID = Field(foreign_key="items.id", index=True)

    # Claimant
    claimant_id: int = Field(foreign_key="users.id", index=True)

    status: str = Field(default="pending", index=True)  # pending/approved/rejected/withdrawn

    # Content
    secret_info: str
    proof_description: Optional[str] = None
    rejection_reason: Optional[str] = None

    # Review
    reviewer_id: Optional[int] = Field(default=None, foreign_key="users.id")
    reviewed_at: Optional[datetime] = None
