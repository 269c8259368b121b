import uuid
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlmodel import Session, func, or_, select

from balchhi.db.db import get_session
from balchhi.models.call_log import CallLog
from balchhi.models.organization import Organization
from balchhi.models.organization_verification import OrganizationVerification
from balchhi.models.user import User
from balchhi.utils import verification_service
from balchhi.utils.auth_helper import request_context, require_admin
from balchhi.utils.errors import ValidationError
from balchhi.utils.verification_service import CallLogInput, RequestContext, VerificationEvent


router = APIRouter()


class ReviewActionRequest(BaseModel):
    action: str  # start_review, schedule_call, request_documents, approve, reject, suspend, reactivate
    comments: Optional[str] = None
    rejection_reason: Optional[str] = None
    rejection_category: Optional[str] = None


@router.get("")
def list_verifications(
    status: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    query = (
        select(OrganizationVerification, Organization)
        .join(Organization, Organization.id == OrganizationVerification.organization_id)
    )
    count_query = select(func.count(OrganizationVerification.id))

    if status:
        query = query.where(OrganizationVerification.verification_status == status)
        count_query = count_query.where(OrganizationVerification.verification_status == status)

    if search:
        pattern = f"%{search}%"
        condition = or_(
            OrganizationVerification.registered_name.ilike(pattern),
            OrganizationVerification.registration_number.ilike(pattern),
        )
        query = query.where(condition)
        count_query = count_query.where(condition)

    total = session.exec(count_query).one()

    rows = session.exec(
        query
        .order_by(OrganizationVerification.submitted_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    return {
        "verifications": [
            {
                **verification.model_dump(),
                "organization": {
                    "id": organization.id,
                    "name": organization.name,
                    "type": organization.type,
                    "is_active": organization.is_active,
                },
            }
            for verification, organization in rows
        ],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": (total + limit - 1) // limit,
        },
    }


@router.get("/{organization_id}")
def get_verification_detail(
    organization_id: uuid.UUID,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    organization = session.get(Organization, organization_id)
    if not organization:
        raise HTTPException(status_code=404, detail="Organization not found")

    call_logs = session.exec(
        select(CallLog)
        .where(CallLog.organization_id == organization_id)
        .order_by(CallLog.called_at.desc())
    ).all()

    return {
        "organization": organization,
        "verification": verification_service.get_verification(session, organization_id),
        "call_logs": call_logs,
        "audit_trail": verification_service.audit_trail(session, organization_id),
    }


@router.post("/{organization_id}")
def review_verification(
    organization_id: uuid.UUID,
    payload: ReviewActionRequest,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
    context: RequestContext = Depends(request_context),
):
    try:
        event = VerificationEvent(payload.action)
    except ValueError:
        raise ValidationError("Invalid action")

    previous, new = verification_service.review(
        session,
        organization_id,
        admin.id,
        event,
        comments=payload.comments,
        rejection_reason=payload.rejection_reason,
        rejection_category=payload.rejection_category,
        context=context,
    )

    return {
        "message": f"Verification {payload.action} applied successfully",
        "previous_status": previous.value,
        "new_status": new.value,
    }


@router.get("/{organization_id}/calls")
def list_calls(
    organization_id: uuid.UUID,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    call_logs = session.exec(
        select(CallLog)
        .where(CallLog.organization_id == organization_id)
        .order_by(CallLog.called_at.desc())
    ).all()

    return {"call_logs": call_logs}


@router.post("/{organization_id}/calls", status_code=201)
def log_call(
    organization_id: uuid.UUID,
    payload: CallLogInput,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
    context: RequestContext = Depends(request_context),
):
    call_log = verification_service.record_call(session, organization_id, admin.id, payload, context)

    return {"call_log": call_log}
