from typing import Optional
import uuid
from sqlmodel import Field, SQLModel, UniqueConstraint
from datetime import datetime, timezone


class OrganizationContact(SQLModel, table=True):
    __tablename__ = "organization_contacts"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: Optional[datetime] = None

    organization_id: uuid.UUID = Field(foreign_key="organizations.id", index=True)
    user_id: int = Field(foreign_key="users.id", index=True)

    # Contact person
    full_name: str
    position_title: str
    role: str  # owner/director/manager/it_admin/operations/hr/other
    department: Optional[str] = None
    email: str
    phone: str
    phone_alt: Optional[str] = None

    is_primary_contact: bool = Field(default=False)
    is_verified: bool = Field(default=False)

    can_manage_items: bool = Field(default=True)
    can_manage_claims: bool = Field(default=True)
    can_manage_members: bool = Field(default=False)
    can_view_analytics: bool = Field(default=True)

    is_active: bool = Field(default=True)
    deactivated_at: Optional[datetime] = None
    deactivated_by: Optional[int] = Field(default=None, foreign_key="users.id")
    deactivation_reason: Optional[str] = None

    __table_args__ = (
        UniqueConstraint(
            "organization_id",
            "user_id",
            name="uq_organization_contact"
        ),
    )
