from typing import Optional
import uuid
from sqlmodel import Field, SQLModel, UniqueConstraint
from datetime import datetime, timezone


class OrganizationMember(SQLModel, table=True):
    __tablename__ = "organization_members"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    organization_id: uuid.UUID = Field(foreign_key="organizations.id", index=True)
    user_id: int = Field(foreign_key="users.id", index=True)

    role: str = Field(default="staff")  # legacy: admin/manager/staff
    member_role: str = Field(default="org_staff")  # org_owner/org_admin/org_staff/org_viewer
    is_active: bool = Field(default=True)

    invited_by: Optional[int] = Field(default=None, foreign_key="users.id")
    accepted_at: Optional[datetime] = None

    __table_args__ = (
        UniqueConstraint(
            "organization_id",
            "user_id",
            name="uq_organization_member"
        ),
    )
