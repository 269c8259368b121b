"""Contact people an organization names for verification calls and follow-up.

Only one active contact per organization is primary. Removing a contact
deactivates the row, and adding the same user again brings it back.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, Field
from sqlalchemy import update
from sqlmodel import Session, select

from balchhi.models.enums import ContactRole, MemberRole
from balchhi.models.organization import Organization
from balchhi.models.organization_contact import OrganizationContact
from balchhi.models.organization_member import OrganizationMember
from balchhi.models.user import User
from balchhi.utils.errors import ConflictError, ForbiddenError, InvalidStateError, NotFoundError
from balchhi.utils.organization_service import LEGACY_ROLES
from balchhi.utils.permissions import check_permission
from balchhi.utils.verification_service import RequestContext, write_audit

logger = logging.getLogger(__name__)

# Optional columns a PATCH may set back to null
CLEARABLE_FIELDS = {"department", "phone_alt"}


class ContactCreate(BaseModel):
    user_public_id: str
    full_name: str = Field(min_length=2, max_length=120)
    position_title: str = Field(min_length=2, max_length=80)
    role: ContactRole
    department: Optional[str] = None
    email: str = Field(min_length=3)
    phone: str = Field(min_length=5)
    phone_alt: Optional[str] = None
    is_primary_contact: bool = False
    can_manage_items: bool = True
    can_manage_claims: bool = True
    can_manage_members: bool = False
    can_view_analytics: bool = True


class ContactUpdate(BaseModel):
    full_name: Optional[str] = Field(default=None, min_length=2, max_length=120)
    position_title: Optional[str] = Field(default=None, min_length=2, max_length=80)
    role: Optional[ContactRole] = None
    department: Optional[str] = None
    email: Optional[str] = Field(default=None, min_length=3)
    phone: Optional[str] = Field(default=None, min_length=5)
    phone_alt: Optional[str] = None
    is_primary_contact: Optional[bool] = None
    can_manage_items: Optional[bool] = None
    can_manage_claims: Optional[bool] = None
    can_manage_members: Optional[bool] = None
    can_view_analytics: Optional[bool] = None


def _now():
    return datetime.now(timezone.utc)


def _require(session: Session, actor_id: int, organization_id: uuid.UUID, action: str):
    if not session.get(Organization, organization_id):
        raise NotFoundError("Organization not found")

    permission = check_permission(session, actor_id, organization_id, action)
    if not permission.allowed:
        raise ForbiddenError(permission.reason or "Forbidden")


def _get_contact(session: Session, organization_id: uuid.UUID, contact_id: uuid.UUID) -> OrganizationContact:
    contact = session.get(OrganizationContact, contact_id)
    if not contact or contact.organization_id != organization_id:
        raise NotFoundError("Contact not found")

    return contact


def _clear_primary(session: Session, organization_id: uuid.UUID):
    session.execute(
        update(OrganizationContact)
        .where(OrganizationContact.organization_id == organization_id)
        .where(OrganizationContact.is_primary_contact == True)  # noqa: E712
        .values(is_primary_contact=False, updated_at=_now())
    )


def list_contacts(session: Session, organization_id: uuid.UUID, actor_id: int, include_inactive: bool = False):
    """Primary contact first, then oldest first."""
    _require(session, actor_id, organization_id, "view")

    query = (
        select(OrganizationContact, User)
        .join(User, User.id == OrganizationContact.user_id)
        .where(OrganizationContact.organization_id == organization_id)
        .order_by(OrganizationContact.is_primary_contact.desc(), OrganizationContact.created_at)
    )
    if not include_inactive:
        query = query.where(OrganizationContact.is_active == True)  # noqa: E712

    return session.exec(query).all()


def has_primary_contact(session: Session, organization_id: uuid.UUID) -> bool:
    return session.exec(
        select(OrganizationContact.id)
        .where(OrganizationContact.organization_id == organization_id)
        .where(OrganizationContact.is_primary_contact == True)  # noqa: E712
        .where(OrganizationContact.is_active == True)  # noqa: E712
    ).first() is not None


def add_contact(
    session: Session,
    organization_id: uuid.UUID,
    actor_id: int,
    payload: ContactCreate,
    context: Optional[RequestContext] = None,
) -> OrganizationContact:
    _require(session, actor_id, organization_id, "edit_verification")

    user = session.exec(select(User).where(User.public_id == payload.user_public_id)).first()
    if not user:
        raise NotFoundError("User not found")

    contact = session.exec(
        select(OrganizationContact)
        .where(OrganizationContact.organization_id == organization_id)
        .where(OrganizationContact.user_id == user.id)
    ).first()

    if contact and contact.is_active:
        raise ConflictError("This user is already a contact for this organization")

    reactivated = contact is not None
    if contact is None:
        contact = OrganizationContact(
            organization_id=organization_id,
            user_id=user.id,
            full_name=payload.full_name,
            position_title=payload.position_title,
            role=payload.role.value,
            email=payload.email,
            phone=payload.phone,
        )

    if payload.is_primary_contact:
        _clear_primary(session, organization_id)

    for key, value in payload.model_dump(exclude={"user_public_id"}).items():
        setattr(contact, key, value.value if isinstance(value, ContactRole) else value)

    contact.is_active = True
    contact.deactivated_at = None
    contact.deactivated_by = None
    contact.deactivation_reason = None
    contact.updated_at = _now()
    session.add(contact)

    # Contacts act for the organization, so they need a membership too
    member = session.exec(
        select(OrganizationMember)
        .where(OrganizationMember.organization_id == organization_id)
        .where(OrganizationMember.user_id == user.id)
    ).first()
    if member is None:
        session.add(OrganizationMember(
            organization_id=organization_id,
            user_id=user.id,
            role=LEGACY_ROLES[MemberRole.ORG_STAFF.value],
            member_role=MemberRole.ORG_STAFF.value,
            invited_by=actor_id,
            accepted_at=_now(),
        ))

    session.flush()
    write_audit(
        session,
        organization_id,
        "contact_added",
        actor_id,
        details={"contact_id": str(contact.id), "user_id": user.public_id, "reactivated": reactivated},
        context=context,
    )

    session.commit()
    session.refresh(contact)

    logger.info("Contact %s added to organization %s by user %s", contact.id, organization_id, actor_id)

    return contact


def update_contact(
    session: Session,
    organization_id: uuid.UUID,
    actor_id: int,
    contact_id: uuid.UUID,
    payload: ContactUpdate,
) -> OrganizationContact:
    _require(session, actor_id, organization_id, "edit_verification")

    contact = _get_contact(session, organization_id, contact_id)
    if not contact.is_active:
        raise InvalidStateError("Contact has been removed")

    updates = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key in CLEARABLE_FIELDS
    }
    if updates.get("is_primary_contact") and not contact.is_primary_contact:
        _clear_primary(session, organization_id)

    for key, value in updates.items():
        setattr(contact, key, value.value if isinstance(value, ContactRole) else value)
    contact.updated_at = _now()

    session.add(contact)
    session.commit()
    session.refresh(contact)

    return contact


def deactivate_contact(
    session: Session,
    organization_id: uuid.UUID,
    actor_id: int,
    contact_id: uuid.UUID,
    reason: str = "Removed by admin",
    context: Optional[RequestContext] = None,
) -> OrganizationContact:
    _require(session, actor_id, organization_id, "edit_verification")

    contact = _get_contact(session, organization_id, contact_id)
    if not contact.is_active:
        raise InvalidStateError("Contact has already been removed")

    now = _now()
    contact.is_active = False
    contact.is_primary_contact = False
    contact.deactivated_at = now
    contact.deactivated_by = actor_id
    contact.deactivation_reason = reason
    contact.updated_at = now
    session.add(contact)

    write_audit(
        session,
        organization_id,
        "contact_removed",
        actor_id,
        details={"contact_id": str(contact.id), "reason": reason},
        context=context,
    )

    session.commit()
    session.refresh(contact)

    return contact
