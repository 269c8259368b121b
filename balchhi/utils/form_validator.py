from datetime import datetime, timezone
from typing import Literal, Optional
import uuid
from fastapi import HTTPException
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from balchhi.models.enums import ItemType

Category = Literal[
    "electronics",
    "documents",
    "bags",
    "keys-wallets",
    "jewelry",
    "clothing",
    "pets",
    "vehicles",
    "others",
]


class ValidatedCreateItem(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    item_type: ItemType
    title: str = Field(min_length=3, max_length=80)
    description: str = Field(min_length=20, max_length=500)
    category: Category
    date: Optional[datetime] = None
    location: str = Field(min_length=3, max_length=120)
    organization_id: Optional[uuid.UUID] = None

    @field_validator("category", mode="before")
    @classmethod
    def lower_category(cls, value):
        return value.lower() if isinstance(value, str) else value

    @field_validator("date")
    @classmethod
    def not_in_future(cls, value: Optional[datetime]):
        if value is None:
            return value

        aware = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        if aware > datetime.now(timezone.utc):
            raise ValueError("date cannot be in the future")

        return value


def validate_create_item_form(
    item_type: str,
    title: str,
    description: str,
    category: str,
    date: Optional[str],
    location: str,
    organization_id: Optional[str] = None,
) -> ValidatedCreateItem:
    """Validate the multipart item form; 400 with ``field: message`` on the first problem."""
    parsed_date = None
    if date:
        try:
            parsed_date = datetime.fromisoformat(date.replace("Z", "+00:00"))
        except ValueError:
            raise HTTPException(status_code=400, detail="Date not parseable")

    try:
        return ValidatedCreateItem(
            item_type=item_type,
            title=title,
            description=description,
            category=category,
            date=parsed_date,
            location=location,
            organization_id=organization_id or None,
        )
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"])
        raise HTTPException(status_code=400, detail=f"{field}: {first['msg']}")
