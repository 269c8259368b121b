import logging
import uuid
from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, Field
from sqlmodel import Session, select

from balchhi.models.enums import MemberRole
from balchhi.models.organization import Organization
from balchhi.models.organization_member import OrganizationMember
from balchhi.models.user import User
from balchhi.utils.errors import ConflictError, ForbiddenError, InvalidStateError, NotFoundError
from balchhi.utils.notification_service import emit_notification
from balchhi.utils.permissions import check_permission, get_active_membership

logger = logging.getLogger(__name__)

# member_role -> legacy role column
LEGACY_ROLES = {
    MemberRole.ORG_OWNER.value: "admin",
    MemberRole.ORG_ADMIN.value: "admin",
    MemberRole.ORG_STAFF.value: "staff",
    MemberRole.ORG_VIEWER.value: "staff",
}


class OrganizationCreate(BaseModel):
    name: str = Field(min_length=2, max_length=120)
    type: str = Field(min_length=2, max_length=40)
    description: Optional[str] = None
    contact_email: str = Field(min_length=3)
    contact_phone: str = Field(min_length=5)
    location: str = Field(min_length=2)
    address: str = Field(min_length=2)


def create_organization(session: Session, admin_id: int, payload: OrganizationCreate) -> Organization:
    """Create an organization in draft together with its owner membership, in one commit."""
    existing = session.exec(
        select(Organization).where(Organization.admin_id == admin_id)
    ).first()

    if existing:
        raise ConflictError("You already have an organization registered")

    organization = Organization(
        admin_id=admin_id,
        name=payload.name.strip(),
        type=payload.type,
        description=payload.description,
        contact_email=payload.contact_email.strip(),
        contact_phone=payload.contact_phone.strip(),
        location=payload.location.strip(),
        address=payload.address.strip(),
    )
    session.add(organization)
    session.flush()

    session.add(OrganizationMember(
        organization_id=organization.id,
        user_id=admin_id,
        role=LEGACY_ROLES[MemberRole.ORG_OWNER.value],
        member_role=MemberRole.ORG_OWNER.value,
        is_active=True,
        accepted_at=datetime.now(timezone.utc),
    ))

    session.commit()
    session.refresh(organization)

    logger.info("Organization %s created by user %s", organization.id, admin_id)

    return organization


def _require(session: Session, actor_id: int, organization_id: uuid.UUID, action: str):
    if not session.get(Organization, organization_id):
        raise NotFoundError("Organization not found")

    permission = check_permission(session, actor_id, organization_id, action)
    if not permission.allowed:
        raise ForbiddenError(permission.reason or "Forbidden")


def list_members(session: Session, organization_id: uuid.UUID, actor_id: int):
    _require(session, actor_id, organization_id, "view")

    return session.exec(
        select(OrganizationMember, User)
        .join(User, User.id == OrganizationMember.user_id)
        .where(OrganizationMember.organization_id == organization_id)
        .where(OrganizationMember.is_active == True)  # noqa: E712
        .order_by(OrganizationMember.created_at)
    ).all()


def add_member(
    session: Session,
    organization_id: uuid.UUID,
    actor_id: int,
    user_public_id: str,
    member_role: MemberRole = MemberRole.ORG_STAFF,
) -> OrganizationMember:
    _require(session, actor_id, organization_id, "manage_members")

    if member_role == MemberRole.ORG_OWNER:
        raise ForbiddenError("Ownership cannot be granted by adding a member")

    user = session.exec(select(User).where(User.public_id == user_public_id)).first()
    if not user:
        raise NotFoundError("User not found")

    member = session.exec(
        select(OrganizationMember)
        .where(OrganizationMember.organization_id == organization_id)
        .where(OrganizationMember.user_id == user.id)
    ).first()

    if member and member.is_active:
        raise ConflictError("User is already a member of this organization")

    # Re-activate a previously removed member instead of inserting a duplicate row
    if member is None:
        member = OrganizationMember(organization_id=organization_id, user_id=user.id)

    member.member_role = member_role.value
    member.role = LEGACY_ROLES[member_role.value]
    member.is_active = True
    member.invited_by = actor_id
    member.accepted_at = datetime.now(timezone.utc)

    session.add(member)
    session.commit()
    session.refresh(member)

    organization = session.get(Organization, organization_id)
    emit_notification(
        session,
        user_id=user.id,
        type="organization_member_added",
        title="Added to Organization",
        body=f"You were added to {organization.name} as {member_role.value.replace('org_', '')}.",
        data={"organization_id": organization_id},
    )

    return member


def remove_member(session: Session, organization_id: uuid.UUID, actor_id: int, user_public_id: str):
    _require(session, actor_id, organization_id, "manage_members")

    user = session.exec(select(User).where(User.public_id == user_public_id)).first()
    member = get_active_membership(session, user.id, organization_id) if user else None
    if not member:
        raise NotFoundError("Member not found")

    organization = session.get(Organization, organization_id)
    if member.member_role == MemberRole.ORG_OWNER or member.user_id == organization.admin_id:
        raise InvalidStateError("Cannot remove the organization owner")

    member.is_active = False
    session.add(member)
    session.commit()
