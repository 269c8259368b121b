from typing import Optional
import uuid
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone


class Organization(SQLModel, table=True):
    __tablename__ = "organizations"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Owning user
    admin_id: int = Field(foreign_key="users.id", index=True)

    # Profile
    name: str
    type: str  # police_station, airport, hotel, ...
    description: Optional[str] = None
    contact_email: str
    contact_phone: str
    location: str
    address: str
    is_active: bool = Field(default=True)

    # Verification (mirrors organization_verification.verification_status)
    verification_status: str = Field(default="draft", index=True)
    is_verified: bool = Field(default=False)
    trust_score: int = Field(default=0)

    # Capabilities, only true while verification_status == "approved"
    can_post_items: bool = Field(default=False)
    can_manage_claims: bool = Field(default=False)

    verification_submitted_at: Optional[datetime] = None
    verification_approved_at: Optional[datetime] = None
    verification_approved_by: Optional[int] = Field(default=None, foreign_key="users.id")

    suspended_at: Optional[datetime] = None
    suspended_by: Optional[int] = Field(default=None, foreign_key="users.id")
    suspension_reason: Optional[str] = None
