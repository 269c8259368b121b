from typing import Optional
import uuid
from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel
from datetime import date, datetime, timezone


class OrganizationVerification(SQLModel, table=True):
    __tablename__ = "organization_verification"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: Optional[datetime] = None

    organization_id: uuid.UUID = Field(foreign_key="organizations.id", unique=True, index=True)

    verification_status: str = Field(default="draft", index=True)

    # Registration
    registered_name: Optional[str] = None
    registration_type: Optional[str] = None  # company_registrar, pan, police_unit, ...
    registration_number: Optional[str] = None
    registration_date: Optional[date] = None
    registration_authority: Optional[str] = None

    # Address
    province: Optional[str] = None
    district: Optional[str] = None
    municipality: Optional[str] = None
    ward_number: Optional[str] = None
    street_address: Optional[str] = None
    postal_code: Optional[str] = None

    # Contact
    official_email: Optional[str] = None
    official_phone: Optional[str] = None
    official_phone_alt: Optional[str] = None
    official_website: Optional[str] = None

    # Derived from official_email
    email_domain: Optional[str] = None
    is_generic_email: bool = Field(default=False)
    is_trusted_domain: bool = Field(default=False)
    domain_trust_level: int = Field(default=0)

    # Documents
    registration_certificate_url: Optional[str] = None
    pan_certificate_url: Optional[str] = None
    vat_certificate_url: Optional[str] = None
    letterhead_url: Optional[str] = None
    other_documents: list = Field(default_factory=list, sa_column=Column(JSON))

    submitted_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    rejection_category: Optional[str] = None
