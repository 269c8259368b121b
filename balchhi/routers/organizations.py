import uuid
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session, select

from balchhi.db.db import get_session
from balchhi.models.enums import MemberRole
from balchhi.models.organization import Organization
from balchhi.models.user import User
from balchhi.utils import contact_service, organization_service, verification_service
from balchhi.utils.auth_helper import request_context, require_user
from balchhi.utils.email_domains import check_email_domain
from balchhi.utils.errors import ForbiddenError
from balchhi.utils.contact_service import ContactCreate, ContactUpdate
from balchhi.utils.organization_service import OrganizationCreate
from balchhi.utils.permissions import check_permission
from balchhi.utils.verification_service import RequestContext, VerificationDraft


router = APIRouter()


class MemberAddRequest(BaseModel):
    user_public_id: str
    member_role: MemberRole = MemberRole.ORG_STAFF


@router.get("")
def list_organizations(
    type: Optional[str] = None,
    verified: Optional[bool] = None,
    session: Session = Depends(get_session),
):
    query = (
        select(Organization)
        .where(Organization.is_active == True)  # noqa: E712
        .order_by(Organization.created_at.desc())
    )

    if type:
        query = query.where(Organization.type == type)

    if verified:
        query = query.where(Organization.is_verified == True)  # noqa: E712

    return {"organizations": session.exec(query).all()}


@router.post("", status_code=201)
def create_organization(
    payload: OrganizationCreate,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    organization = organization_service.create_organization(session, user.id, payload)

    return {"organization": organization}


@router.get("/{organization_id}")
def get_organization(
    organization_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    organization = session.get(Organization, organization_id)
    if not organization:
        raise HTTPException(status_code=404, detail="Organization not found")

    return {"organization": organization}


@router.get("/{organization_id}/members")
def list_members(
    organization_id: uuid.UUID,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    rows = organization_service.list_members(session, organization_id, user.id)

    return {
        "members": [
            {
                **member.model_dump(),
                "user": {"public_id": member_user.public_id, "name": member_user.name, "email": member_user.email},
            }
            for member, member_user in rows
        ]
    }


@router.post("/{organization_id}/members", status_code=201)
def add_member(
    organization_id: uuid.UUID,
    payload: MemberAddRequest,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    member = organization_service.add_member(
        session,
        organization_id,
        user.id,
        payload.user_public_id,
        payload.member_role,
    )

    return {"member": member}


@router.delete("/{organization_id}/members/{user_public_id}")
def remove_member(
    organization_id: uuid.UUID,
    user_public_id: str,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    organization_service.remove_member(session, organization_id, user.id, user_public_id)

    return {"ok": True}


@router.get("/{organization_id}/contacts")
def list_contacts(
    organization_id: uuid.UUID,
    include_inactive: bool = False,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    rows = contact_service.list_contacts(session, organization_id, user.id, include_inactive)

    return {
        "contacts": [
            {**contact.model_dump(), "user": {"public_id": contact_user.public_id, "name": contact_user.name}}
            for contact, contact_user in rows
        ]
    }


@router.post("/{organization_id}/contacts", status_code=201)
def add_contact(
    organization_id: uuid.UUID,
    payload: ContactCreate,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
    context: RequestContext = Depends(request_context),
):
    contact = contact_service.add_contact(session, organization_id, user.id, payload, context)

    return {"contact": contact}


@router.patch("/{organization_id}/contacts/{contact_id}")
def update_contact(
    organization_id: uuid.UUID,
    contact_id: uuid.UUID,
    payload: ContactUpdate,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    contact = contact_service.update_contact(session, organization_id, user.id, contact_id, payload)

    return {"contact": contact}


@router.delete("/{organization_id}/contacts/{contact_id}")
def remove_contact(
    organization_id: uuid.UUID,
    contact_id: uuid.UUID,
    reason: str = "Removed by admin",
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
    context: RequestContext = Depends(request_context),
):
    contact_service.deactivate_contact(session, organization_id, user.id, contact_id, reason, context)

    return {"message": "Contact removed successfully"}


@router.get("/{organization_id}/verification")
def get_verification(
    organization_id: uuid.UUID,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    permission = check_permission(session, user.id, organization_id, "view")
    if not permission.allowed:
        raise ForbiddenError(permission.reason or "Forbidden")

    verification = verification_service.get_verification(session, organization_id)

    return {
        "verification": verification,
        "contacts": [contact for contact, _ in contact_service.list_contacts(session, organization_id, user.id)],
        "has_primary_contact": contact_service.has_primary_contact(session, organization_id),
        "audit_trail": verification_service.audit_trail(session, organization_id, limit=20),
    }


@router.post("/{organization_id}/verification")
def save_verification_draft(
    organization_id: uuid.UUID,
    payload: VerificationDraft,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
    context: RequestContext = Depends(request_context),
):
    verification = verification_service.save_draft(session, organization_id, user.id, payload, context)

    email_validation = None
    if verification.official_email:
        email_validation = check_email_domain(verification.official_email)

    return {
        "verification": verification,
        "email_validation": email_validation,
    }


@router.put("/{organization_id}/verification")
def submit_verification(
    organization_id: uuid.UUID,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
    context: RequestContext = Depends(request_context),
):
    verification = verification_service.submit(session, organization_id, user.id, context)

    return {
        "message": "Verification submitted successfully",
        "verification": verification,
    }
