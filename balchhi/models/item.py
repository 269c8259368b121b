from typing import Optional
import uuid
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone


class Item(SQLModel, table=True):
    __tablename__ = "items"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: Optional[datetime] = None

    # Reporter info
    user_id: int = Field(foreign_key="users.id", index=True)
    organization_id: Optional[uuid.UUID] = Field(
        default=None,
        foreign_key="organizations.id",
        index=True,
    )

    # Item fields
    title: str
    category: str
    description: str
    location: str
    type: str  # "lost" or "found"
    date: Optional[datetime] = None
    image: Optional[str] = None

    # Only the claim workflow moves an item to "resolved" or back to "active"
    status: str = Field(default="active", index=True)  # active/claimed/resolved/expired/deleted
