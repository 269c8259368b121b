"""Claim lifecycle.

A claim starts ``pending`` and ends in exactly one of ``approved``,
``rejected`` or ``withdrawn``. Terminal transitions are written with a
conditional update on ``status = 'pending'`` so a claim is never processed
twice, and every primary write of an operation shares one commit.
Notifications go out only after that commit.
"""
import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from pydantic import BaseModel
from sqlalchemy import update
from sqlmodel import Session, func, select

from balchhi.models.claim import Claim
from balchhi.models.enums import ClaimStatus, HandoverMethod, ItemStatus
from balchhi.models.evidence import ClaimEvidence
from balchhi.models.handover import Handover
from balchhi.models.item import Item
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

AUTO_REJECTION_REASON = "Another claim was approved"


class ClaimEvent(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    WITHDRAW = "withdraw"


CLAIM_TRANSITIONS = {
    (ClaimStatus.PENDING, ClaimEvent.APPROVE): ClaimStatus.APPROVED,
    (ClaimStatus.PENDING, ClaimEvent.REJECT): ClaimStatus.REJECTED,
    (ClaimStatus.PENDING, ClaimEvent.WITHDRAW): ClaimStatus.WITHDRAWN,
}


class EvidenceInput(BaseModel):
    type: str
    url: str
    description: Optional[str] = None


def apply_claim_transition(current: str, event: ClaimEvent) -> ClaimStatus:
    current = ClaimStatus(current)

    next_status = CLAIM_TRANSITIONS.get((current, event))
    if next_status is None:
        raise InvalidStateError(f"Cannot {event.value} a claim that is {current.value}")

    return next_status


def _now():
    return datetime.now(timezone.utc)


def _get_claim_and_item(session: Session, claim_id: uuid.UUID) -> tuple[Claim, Item]:
    claim = session.get(Claim, claim_id)
    if not claim:
        raise NotFoundError("Claim not found")

    item = session.get(Item, claim.item_id)
    if not item:
        raise NotFoundError("Item not found")

    return claim, item


def can_review_claim(session: Session, item: Item, actor_id: int) -> bool:
    """Item owner, or org staff allowed to manage claims for the item's organization."""
    if item.user_id == actor_id:
        return True

    if item.organization_id:
        return check_permission(session, actor_id, item.organization_id, "manage_claim").allowed

    return False


def _add_evidence(session: Session, claim_id: uuid.UUID, evidence: Optional[list[EvidenceInput]]) -> int:
    for entry in evidence or []:
        session.add(ClaimEvidence(
            claim_id=claim_id,
            type=entry.type,
            url=entry.url,
            description=entry.description,
        ))

    return len(evidence or [])


def evidence_for(session: Session, claim_ids: list[uuid.UUID]) -> dict:
    """Evidence rows grouped by claim id, oldest first."""
    grouped = {claim_id: [] for claim_id in claim_ids}
    if not claim_ids:
        return grouped

    rows = session.exec(
        select(ClaimEvidence)
        .where(ClaimEvidence.claim_id.in_(claim_ids))
        .order_by(ClaimEvidence.created_at)
    ).all()

    for row in rows:
        grouped[row.claim_id].append(row)

    return grouped


def _finish_transition(session: Session, claim_id: uuid.UUID, event: ClaimEvent, values: dict):
    """Move a pending claim to the event's target status, or raise ConflictError."""
    target = CLAIM_TRANSITIONS[(ClaimStatus.PENDING, event)]

    result = session.execute(
        update(Claim)
        .where(Claim.id == claim_id)
        .where(Claim.status == ClaimStatus.PENDING.value)
        .values(status=target.value, updated_at=_now(), **values)
    )

    if result.rowcount != 1:
        session.rollback()
        logger.warning("Claim %s changed status before %s could be applied", claim_id, event.value)
        raise ConflictError("Claim has already been processed")


def _pending_count(session: Session, item_id: uuid.UUID) -> int:
    return session.exec(
        select(func.count(Claim.id))
        .where(Claim.item_id == item_id)
        .where(Claim.status == ClaimStatus.PENDING.value)
    ).one()


def _reopen_item_if_unclaimed(session: Session, item_id: uuid.UUID):
    if _pending_count(session, item_id) > 0:
        return

    session.execute(
        update(Item)
        .where(Item.id == item_id)
        .where(Item.status.in_([ItemStatus.ACTIVE.value, ItemStatus.CLAIMED.value]))
        .values(status=ItemStatus.ACTIVE.value, updated_at=_now())
    )


def create_claim(
    session: Session,
    item_id: uuid.UUID,
    claimant_id: int,
    secret_info: str,
    proof_description: Optional[str] = None,
    evidence: Optional[list[EvidenceInput]] = None,
) -> Claim:
    item = session.get(Item, item_id)
    if not item:
        raise NotFoundError("Item not found")

    if item.status != ItemStatus.ACTIVE:
        raise InvalidStateError("Item is not available for claiming")

    # Prevent self-claim
    if item.user_id == claimant_id:
        raise ForbiddenError("You cannot claim your own item")

    if not secret_info or not secret_info.strip():
        raise ValidationError("secret_info is required")

    # Prevent duplicate pending claim by same user
    existing = session.exec(
        select(Claim)
        .where(Claim.item_id == item.id)
        .where(Claim.claimant_id == claimant_id)
        .where(Claim.status == ClaimStatus.PENDING.value)
    ).first()

    if existing:
        raise ConflictError("You already have a pending claim for this item")

    claim = Claim(
        item_id=item.id,
        claimant_id=claimant_id,
        secret_info=secret_info.strip(),
        proof_description=proof_description,
    )
    session.add(claim)
    session.flush()
    _add_evidence(session, claim.id, evidence)

    session.commit()
    session.refresh(claim)

    logger.info("Claim %s created on item %s by user %s", claim.id, item.id, claimant_id)

    emit_notification(
        session,
        user_id=item.user_id,
        type="claim_received",
        title="New Claim Received",
        body=f"Someone has claimed your item '{item.title}'. Review their claim now.",
        data={"claim_id": claim.id, "item_id": item.id},
    )

    return claim


def edit_claim(
    session: Session,
    claim_id: uuid.UUID,
    actor_id: int,
    secret_info: Optional[str] = None,
    proof_description: Optional[str] = None,
    evidence: Optional[list[EvidenceInput]] = None,
) -> Claim:
    claim, item = _get_claim_and_item(session, claim_id)

    if claim.claimant_id != actor_id:
        raise ForbiddenError("Only the claimant can edit this claim")

    if claim.status != ClaimStatus.PENDING:
        raise ForbiddenError("Only pending claims can be edited")

    if secret_info is not None and not secret_info.strip():
        raise ValidationError("secret_info cannot be blank")

    if not secret_info and not proof_description and not evidence:
        raise ValidationError("Nothing to update")

    if secret_info:
        claim.secret_info = secret_info.strip()
    if proof_description:
        claim.proof_description = proof_description
    claim.updated_at = _now()

    session.add(claim)
    added = _add_evidence(session, claim.id, evidence)

    session.commit()
    session.refresh(claim)

    body = "The claimant updated their claim"
    body += f" and attached {added} new piece(s) of evidence." if added else "."

    emit_notification(
        session,
        user_id=item.user_id,
        type="claim_updated",
        title="Claim Updated",
        body=body,
        data={"claim_id": claim.id, "item_id": item.id, "new_evidence": added},
    )

    return claim


def withdraw_claim(session: Session, claim_id: uuid.UUID, actor_id: int) -> Claim:
    claim, item = _get_claim_and_item(session, claim_id)

    if claim.claimant_id != actor_id:
        raise ForbiddenError("Only claimant can withdraw claim")

    apply_claim_transition(claim.status, ClaimEvent.WITHDRAW)

    _finish_transition(session, claim.id, ClaimEvent.WITHDRAW, {})
    _reopen_item_if_unclaimed(session, item.id)

    session.commit()
    session.refresh(claim)

    logger.info("Claim %s withdrawn by user %s", claim.id, actor_id)

    emit_notification(
        session,
        user_id=item.user_id,
        type="claim_withdrawn",
        title="Claim Withdrawn",
        body=f"A claim on your item '{item.title}' was withdrawn.",
        data={"claim_id": claim.id, "item_id": item.id},
    )

    return claim


def approve_claim(session: Session, claim_id: uuid.UUID, actor_id: int) -> Claim:
    claim, item = _get_claim_and_item(session, claim_id)

    if not can_review_claim(session, item, actor_id):
        raise ForbiddenError("Only item owner or organization staff can approve/reject claims")

    apply_claim_transition(claim.status, ClaimEvent.APPROVE)

    now = _now()
    _finish_transition(session, claim.id, ClaimEvent.APPROVE, {
        "reviewer_id": actor_id,
        "reviewed_at": now,
    })

    # Only one approval may resolve the item
    resolved = session.execute(
        update(Item)
        .where(Item.id == item.id)
        .where(Item.status.in_([ItemStatus.ACTIVE.value, ItemStatus.CLAIMED.value]))
        .values(status=ItemStatus.RESOLVED.value, updated_at=now)
    )
    if resolved.rowcount != 1:
        session.rollback()
        logger.warning("Item %s was no longer claimable when approving claim %s", item.id, claim.id)
        raise ConflictError("Item is no longer available for approval")

    session.add(Handover(claim_id=claim.id, method=HandoverMethod.MEETUP.value))

    competing = session.exec(
        select(Claim)
        .where(Claim.item_id == item.id)
        .where(Claim.id != claim.id)
        .where(Claim.status == ClaimStatus.PENDING.value)
    ).all()
    competing_claimants = [(c.id, c.claimant_id) for c in competing]

    session.execute(
        update(Claim)
        .where(Claim.item_id == item.id)
        .where(Claim.id != claim.id)
        .where(Claim.status == ClaimStatus.PENDING.value)
        .values(
            status=ClaimStatus.REJECTED.value,
            rejection_reason=AUTO_REJECTION_REASON,
            reviewer_id=actor_id,
            reviewed_at=now,
            updated_at=now,
        )
    )

    session.commit()
    session.refresh(claim)

    logger.info(
        "Claim %s approved by user %s; %d competing claim(s) rejected",
        claim.id, actor_id, len(competing_claimants),
    )

    emit_notification(
        session,
        user_id=claim.claimant_id,
        type="claim_approved",
        title="Claim Approved!",
        body="Your claim has been approved. Arrange the handover now.",
        data={"claim_id": claim.id, "item_id": item.id},
    )

    for other_id, claimant_id in competing_claimants:
        emit_notification(
            session,
            user_id=claimant_id,
            type="claim_rejected",
            title="Claim Rejected",
            body=AUTO_REJECTION_REASON,
            data={"claim_id": other_id, "item_id": item.id},
        )

    return claim


def reject_claim(
    session: Session,
    claim_id: uuid.UUID,
    actor_id: int,
    rejection_reason: Optional[str] = None,
) -> Claim:
    claim, item = _get_claim_and_item(session, claim_id)

    if not can_review_claim(session, item, actor_id):
        raise ForbiddenError("Only item owner or organization staff can approve/reject claims")

    apply_claim_transition(claim.status, ClaimEvent.REJECT)

    _finish_transition(session, claim.id, ClaimEvent.REJECT, {
        "reviewer_id": actor_id,
        "reviewed_at": _now(),
        "rejection_reason": rejection_reason or None,
    })
    _reopen_item_if_unclaimed(session, item.id)

    session.commit()
    session.refresh(claim)

    logger.info("Claim %s rejected by user %s", claim.id, actor_id)

    emit_notification(
        session,
        user_id=claim.claimant_id,
        type="claim_rejected",
        title="Claim Rejected",
        body=rejection_reason or "Your claim was not approved.",
        data={"claim_id": claim.id, "item_id": item.id},
    )

    return claim
