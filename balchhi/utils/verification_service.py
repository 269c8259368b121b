"""Organization verification workflow.

The organization owner fills a draft and submits it; platform admins move it
through review. Every status change is applied with a conditional update on
the expected previous status and written together with its audit row and the
organization's capability flags in a single commit.
"""
import logging
import uuid
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional
from pydantic import BaseModel
from sqlalchemy import update
from sqlmodel import Session, select

from balchhi.models.call_log import CallLog
from balchhi.models.enums import CallStatus, VerificationStatus as VS
from balchhi.models.organization import Organization
from balchhi.models.organization_verification import OrganizationVerification
from balchhi.models.verification_audit import VerificationAudit
from balchhi.utils.email_domains import check_email_domain
from balchhi.utils.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from balchhi.utils.notification_service import emit_notification
from balchhi.utils.permissions import check_permission

logger = logging.getLogger(__name__)


class VerificationEvent(str, Enum):
    SUBMIT = "submit"
    START_REVIEW = "start_review"
    SCHEDULE_CALL = "schedule_call"
    REQUEST_DOCUMENTS = "request_documents"
    CALL_COMPLETED = "call_completed"
    APPROVE = "approve"
    REJECT = "reject"
    SUSPEND = "suspend"
    REACTIVATE = "reactivate"


# event -> (allowed previous statuses, next status, audit action)
VERIFICATION_TRANSITIONS = {
    VerificationEvent.SUBMIT: ({VS.DRAFT, VS.REJECTED}, VS.SUBMITTED, "submitted"),
    VerificationEvent.START_REVIEW: ({VS.SUBMITTED}, VS.UNDER_REVIEW, "review_started"),
    VerificationEvent.SCHEDULE_CALL: (
        {VS.SUBMITTED, VS.UNDER_REVIEW, VS.PENDING_DOCUMENTS}, VS.PENDING_CALL, "call_scheduled",
    ),
    VerificationEvent.REQUEST_DOCUMENTS: ({VS.UNDER_REVIEW}, VS.PENDING_DOCUMENTS, "document_requested"),
    VerificationEvent.CALL_COMPLETED: ({VS.PENDING_CALL}, VS.UNDER_REVIEW, "call_completed"),
    VerificationEvent.APPROVE: (
        {VS.UNDER_REVIEW, VS.PENDING_CALL, VS.PENDING_DOCUMENTS}, VS.APPROVED, "approved",
    ),
    VerificationEvent.REJECT: ({VS.UNDER_REVIEW, VS.PENDING_CALL}, VS.REJECTED, "rejected"),
    VerificationEvent.SUSPEND: ({VS.APPROVED}, VS.SUSPENDED, "suspended"),
    VerificationEvent.REACTIVATE: ({VS.SUSPENDED}, VS.APPROVED, "reactivated"),
}

ADMIN_ACTIONS = {
    VerificationEvent.START_REVIEW,
    VerificationEvent.SCHEDULE_CALL,
    VerificationEvent.REQUEST_DOCUMENTS,
    VerificationEvent.APPROVE,
    VerificationEvent.REJECT,
    VerificationEvent.SUSPEND,
    VerificationEvent.REACTIVATE,
}

# Statuses in which the owner may still edit the record
EDITABLE_STATUSES = {VS.DRAFT, VS.REJECTED}

REQUIRED_SUBMIT_FIELDS = [
    "registered_name",
    "registration_type",
    "registration_number",
    "province",
    "district",
    "municipality",
    "official_email",
    "official_phone",
]

OUTCOME_MESSAGES = {
    VS.UNDER_REVIEW: ("Verification Under Review", "Your organization verification is now being reviewed."),
    VS.PENDING_CALL: ("Verification Call Scheduled", "We will call your official number to confirm your details."),
    VS.PENDING_DOCUMENTS: ("Documents Requested", "Please upload the additional documents requested by our team."),
    VS.APPROVED: ("Organization Approved!", "Your organization can now post items and manage claims."),
    VS.REJECTED: ("Verification Rejected", "Your organization verification was not approved."),
    VS.SUSPENDED: ("Organization Suspended", "Your organization has been suspended."),
}


class VerificationDraft(BaseModel):
    registered_name: Optional[str] = None
    registration_type: Optional[str] = None
    registration_number: Optional[str] = None
    registration_date: Optional[date] = None
    registration_authority: Optional[str] = None
    province: Optional[str] = None
    district: Optional[str] = None
    municipality: Optional[str] = None
    ward_number: Optional[str] = None
    street_address: Optional[str] = None
    postal_code: Optional[str] = None
    official_email: Optional[str] = None
    official_phone: Optional[str] = None
    official_phone_alt: Optional[str] = None
    official_website: Optional[str] = None
    registration_certificate_url: Optional[str] = None
    pan_certificate_url: Optional[str] = None
    vat_certificate_url: Optional[str] = None
    letterhead_url: Optional[str] = None
    other_documents: Optional[list[str]] = None


class CallLogInput(BaseModel):
    phone_called: str
    phone_source: str
    call_status: CallStatus
    phone_source_url: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    answered_by: Optional[str] = None
    answered_by_position: Optional[str] = None
    verification_questions: Optional[list[dict]] = None
    call_summary: Optional[str] = None
    verification_result: Optional[bool] = None
    follow_up_required: bool = False
    follow_up_notes: Optional[str] = None
    call_duration_seconds: Optional[int] = None


class RequestContext(BaseModel):
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


def apply_verification_transition(current: str, event: VerificationEvent) -> VS:
    current = VS(current)
    allowed, next_status, _ = VERIFICATION_TRANSITIONS[event]

    if current not in allowed:
        raise InvalidStateError(f"Cannot {event.value.replace('_', ' ')} a verification that is {current.value}")

    return next_status


def capability_flags(status: str) -> dict:
    approved = status == VS.APPROVED
    return {"can_post_items": approved, "can_manage_claims": approved}


def _now():
    return datetime.now(timezone.utc)


def _get_organization(session: Session, organization_id: uuid.UUID) -> Organization:
    organization = session.get(Organization, organization_id)
    if not organization:
        raise NotFoundError("Organization not found")

    return organization


def get_verification(session: Session, organization_id: uuid.UUID) -> Optional[OrganizationVerification]:
    return session.exec(
        select(OrganizationVerification)
        .where(OrganizationVerification.organization_id == organization_id)
    ).first()


def _require_org_action(session: Session, actor_id: int, organization_id: uuid.UUID, action: str):
    permission = check_permission(session, actor_id, organization_id, action)
    if not permission.allowed:
        raise ForbiddenError(permission.reason or "Forbidden")


def write_audit(
    session: Session,
    organization_id: uuid.UUID,
    action: str,
    actor_id: int,
    previous_status: Optional[str] = None,
    new_status: Optional[str] = None,
    comments: Optional[str] = None,
    details: Optional[dict] = None,
    rejection_reason: Optional[str] = None,
    rejection_category: Optional[str] = None,
    context: Optional[RequestContext] = None,
):
    session.add(VerificationAudit(
        organization_id=organization_id,
        action=action,
        previous_status=previous_status,
        new_status=new_status,
        performed_by=actor_id,
        comments=comments,
        details=details,
        rejection_reason=rejection_reason,
        rejection_category=rejection_category,
        ip_address=context.ip_address if context else None,
        user_agent=context.user_agent if context else None,
    ))


def _transition(
    session: Session,
    organization: Organization,
    verification: OrganizationVerification,
    event: VerificationEvent,
    actor_id: int,
    extra: Optional[dict] = None,
    org_extra: Optional[dict] = None,
    comments: Optional[str] = None,
    rejection_reason: Optional[str] = None,
    rejection_category: Optional[str] = None,
    context: Optional[RequestContext] = None,
) -> tuple[VS, VS]:
    """Apply one transition plus its organization update and audit row. Does not commit."""
    previous = VS(verification.verification_status)
    next_status = apply_verification_transition(previous, event)
    now = _now()

    result = session.execute(
        update(OrganizationVerification)
        .where(OrganizationVerification.id == verification.id)
        .where(OrganizationVerification.verification_status == previous.value)
        .where(OrganizationVerification.updated_at == verification.updated_at)
        .values(verification_status=next_status.value, updated_at=now, **(extra or {}))
    )
    if result.rowcount != 1:
        session.rollback()
        logger.warning("Verification for organization %s changed before %s", organization.id, event.value)
        raise ConflictError("Verification status changed, please reload and try again")

    organization.verification_status = next_status.value
    for key, value in capability_flags(next_status).items():
        setattr(organization, key, value)
    for key, value in (org_extra or {}).items():
        setattr(organization, key, value)
    session.add(organization)

    write_audit(
        session,
        organization.id,
        VERIFICATION_TRANSITIONS[event][2],
        actor_id,
        previous_status=previous.value,
        new_status=next_status.value,
        comments=comments,
        rejection_reason=rejection_reason,
        rejection_category=rejection_category,
        context=context,
    )

    return previous, next_status


def save_draft(
    session: Session,
    organization_id: uuid.UUID,
    actor_id: int,
    fields: VerificationDraft,
    context: Optional[RequestContext] = None,
) -> OrganizationVerification:
    organization = _get_organization(session, organization_id)
    _require_org_action(session, actor_id, organization.id, "edit_verification")

    verification = get_verification(session, organization.id)
    action = "updated"

    if verification is None:
        verification = OrganizationVerification(
            organization_id=organization.id,
            verification_status=VS.DRAFT.value,
        )
        action = "created"
    elif VS(verification.verification_status) not in EDITABLE_STATUSES:
        raise InvalidStateError(
            f"Cannot modify a verification that is {verification.verification_status}"
        )

    updates = fields.model_dump(exclude_unset=True)
    for key, value in updates.items():
        setattr(verification, key, value)

    if "official_email" in updates:
        check = check_email_domain(verification.official_email or "")
        verification.email_domain = check.domain or None
        verification.is_generic_email = check.is_blocked
        verification.is_trusted_domain = check.is_approved
        verification.domain_trust_level = check.trust_level

    verification.updated_at = _now()
    session.add(verification)

    write_audit(
        session,
        organization.id,
        action,
        actor_id,
        details={"updated_fields": sorted(updates)},
        context=context,
    )

    session.commit()
    session.refresh(verification)

    return verification


def validate_for_submission(verification: OrganizationVerification):
    missing = [
        field for field in REQUIRED_SUBMIT_FIELDS
        if not (getattr(verification, field) or "").strip()
    ]
    if missing:
        raise ValidationError(f"Missing required verification fields: {', '.join(missing)}")

    check = check_email_domain(verification.official_email)
    if not check.valid:
        raise ValidationError(check.message)

    return check


def submit(
    session: Session,
    organization_id: uuid.UUID,
    actor_id: int,
    context: Optional[RequestContext] = None,
) -> OrganizationVerification:
    organization = _get_organization(session, organization_id)
    _require_org_action(session, actor_id, organization.id, "submit_verification")

    verification = get_verification(session, organization.id)
    if verification is None:
        raise ValidationError("Please complete verification details before submitting")

    apply_verification_transition(verification.verification_status, VerificationEvent.SUBMIT)
    check = validate_for_submission(verification)

    # Each submission starts a fresh review cycle
    now = _now()
    _transition(
        session,
        organization,
        verification,
        VerificationEvent.SUBMIT,
        actor_id,
        extra={
            "submitted_at": now,
            "email_domain": check.domain,
            "is_generic_email": check.is_blocked,
            "is_trusted_domain": check.is_approved,
            "domain_trust_level": check.trust_level,
        },
        org_extra={"verification_submitted_at": now},
        context=context,
    )

    session.commit()
    session.refresh(verification)

    logger.info("Organization %s submitted verification", organization.id)

    return verification


def review(
    session: Session,
    organization_id: uuid.UUID,
    actor_id: int,
    event: VerificationEvent,
    comments: Optional[str] = None,
    rejection_reason: Optional[str] = None,
    rejection_category: Optional[str] = None,
    context: Optional[RequestContext] = None,
) -> tuple[VS, VS]:
    """Apply an admin review action. Caller is responsible for checking the actor is a platform admin."""
    if event not in ADMIN_ACTIONS:
        raise ValidationError("Invalid action")

    organization = _get_organization(session, organization_id)

    verification = get_verification(session, organization.id)
    if verification is None:
        raise NotFoundError("Verification not found")

    apply_verification_transition(verification.verification_status, event)

    if event == VerificationEvent.REJECT and not (rejection_reason or "").strip():
        raise ValidationError("Rejection reason is required")

    now = _now()
    extra: dict = {}
    org_extra: dict = {}

    if event == VerificationEvent.APPROVE:
        org_extra = {
            "is_verified": True,
            "verification_approved_at": now,
            "verification_approved_by": actor_id,
        }
    elif event == VerificationEvent.REJECT:
        extra = {"rejection_reason": rejection_reason, "rejection_category": rejection_category}
    elif event == VerificationEvent.SUSPEND:
        org_extra = {
            "suspended_at": now,
            "suspended_by": actor_id,
            "suspension_reason": rejection_reason or comments,
        }
    elif event == VerificationEvent.REACTIVATE:
        org_extra = {"suspended_at": None, "suspended_by": None, "suspension_reason": None}

    previous, next_status = _transition(
        session,
        organization,
        verification,
        event,
        actor_id,
        extra=extra,
        org_extra=org_extra,
        comments=comments,
        rejection_reason=rejection_reason,
        rejection_category=rejection_category,
        context=context,
    )

    session.commit()

    logger.info(
        "Organization %s verification %s -> %s by admin %s",
        organization.id, previous.value, next_status.value, actor_id,
    )

    title, body = OUTCOME_MESSAGES.get(next_status, ("Verification Updated", "Your verification status changed."))
    if next_status == VS.REJECTED and rejection_reason:
        body = f"{body} Reason: {rejection_reason}"

    emit_notification(
        session,
        user_id=organization.admin_id,
        type=f"verification_{next_status.value}",
        title=title,
        body=body,
        data={"organization_id": organization.id, "status": next_status.value},
    )

    return previous, next_status


def record_call(
    session: Session,
    organization_id: uuid.UUID,
    actor_id: int,
    payload: CallLogInput,
    context: Optional[RequestContext] = None,
) -> CallLog:
    organization = _get_organization(session, organization_id)

    call_log = CallLog(
        organization_id=organization.id,
        caller_id=actor_id,
        phone_called=payload.phone_called,
        phone_source=payload.phone_source,
        phone_source_url=payload.phone_source_url,
        scheduled_at=payload.scheduled_at,
        call_status=payload.call_status.value,
        answered_by=payload.answered_by,
        answered_by_position=payload.answered_by_position,
        verification_questions=payload.verification_questions or [],
        call_summary=payload.call_summary,
        verification_result=payload.verification_result,
        follow_up_required=payload.follow_up_required,
        follow_up_notes=payload.follow_up_notes,
        call_duration_seconds=payload.call_duration_seconds,
    )
    session.add(call_log)

    details = {
        "phone_called": payload.phone_called,
        "phone_source": payload.phone_source,
        "call_status": payload.call_status.value,
        "verification_result": payload.verification_result,
        "answered_by": payload.answered_by,
    }

    completed = payload.call_status in (CallStatus.COMPLETED_VERIFIED, CallStatus.COMPLETED_FAILED)
    verification = get_verification(session, organization.id)

    if completed and verification and verification.verification_status == VS.PENDING_CALL:
        # Back to the reviewer once the call is done
        _transition(
            session,
            organization,
            verification,
            VerificationEvent.CALL_COMPLETED,
            actor_id,
            comments=payload.call_summary,
            context=context,
        )
    else:
        write_audit(
            session,
            organization.id,
            "call_completed" if completed else "call_logged",
            actor_id,
            comments=payload.call_summary,
            details=details,
            context=context,
        )

    session.commit()
    session.refresh(call_log)

    return call_log


def audit_trail(session: Session, organization_id: uuid.UUID, limit: Optional[int] = None):
    query = (
        select(VerificationAudit)
        .where(VerificationAudit.organization_id == organization_id)
        .order_by(VerificationAudit.created_at.desc())
    )
    if limit:
        query = query.limit(limit)

    return session.exec(query).all()
