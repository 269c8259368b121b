import uuid
from typing import Literal, Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlmodel import Session, or_, select

from balchhi.db.db import get_session
from balchhi.models.claim import Claim
from balchhi.models.item import Item
from balchhi.models.user import User
from balchhi.utils import claim_service
from balchhi.utils.auth_helper import require_user
from balchhi.utils.claim_service import EvidenceInput


router = APIRouter()


class ClaimCreateRequest(BaseModel):
    item_id: uuid.UUID
    secret_info: str = Field(min_length=1)
    proof_description: Optional[str] = None
    evidence: Optional[list[EvidenceInput]] = None


class ClaimUpdateRequest(BaseModel):
    status: Optional[Literal["approved", "rejected", "withdrawn"]] = None
    rejection_reason: Optional[str] = Field(default=None, max_length=500)
    secret_info: Optional[str] = None
    proof_description: Optional[str] = None
    evidence: Optional[list[EvidenceInput]] = None


@router.post("", status_code=201)
def create_claim(
    payload: ClaimCreateRequest,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    claim = claim_service.create_claim(
        session,
        item_id=payload.item_id,
        claimant_id=user.id,
        secret_info=payload.secret_info,
        proof_description=payload.proof_description,
        evidence=payload.evidence,
    )

    return {"claim": claim}


@router.get("")
def list_claims(
    item_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    """Claims the caller made, plus claims on items the caller owns.

    Filtering by an item the caller may review (owner, or org staff with
    ``manage_claim``) returns every claim on that item.
    """
    query = (
        select(Claim, Item)
        .join(Item, Claim.item_id == Item.id)
        .order_by(Claim.created_at.desc())
    )

    reviewable = None
    if item_id:
        query = query.where(Claim.item_id == item_id)
        reviewable = session.get(Item, item_id)

    if not (reviewable and claim_service.can_review_claim(session, reviewable, user.id)):
        query = query.where(or_(Claim.claimant_id == user.id, Item.user_id == user.id))

    if status:
        query = query.where(Claim.status == status)

    rows = session.exec(query).all()
    evidence = claim_service.evidence_for(session, [claim.id for claim, _ in rows])

    claims = []
    for claim, item in rows:
        data = claim.model_dump()
        data["item"] = {"id": item.id, "title": item.title, "type": item.type, "status": item.status}
        data["evidence"] = evidence[claim.id]

        claims.append(data)

    return {"claims": claims}


@router.get("/{claim_id}")
def get_claim(
    claim_id: uuid.UUID,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    claim = session.get(Claim, claim_id)
    if not claim:
        raise HTTPException(status_code=404, detail="Claim not found")

    item = session.get(Item, claim.item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")

    if claim.claimant_id != user.id and not claim_service.can_review_claim(session, item, user.id):
        raise HTTPException(status_code=403, detail="Not authorized to view this claim")

    data = claim.model_dump()
    data["evidence"] = claim_service.evidence_for(session, [claim.id])[claim.id]

    return {"claim": data}


@router.patch("/{claim_id}")
def update_claim(
    claim_id: uuid.UUID,
    payload: ClaimUpdateRequest,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    if payload.status == "approved":
        claim = claim_service.approve_claim(session, claim_id, user.id)
    elif payload.status == "rejected":
        claim = claim_service.reject_claim(session, claim_id, user.id, payload.rejection_reason)
    elif payload.status == "withdrawn":
        claim = claim_service.withdraw_claim(session, claim_id, user.id)
    else:
        claim = claim_service.edit_claim(
            session,
            claim_id,
            user.id,
            secret_info=payload.secret_info,
            proof_description=payload.proof_description,
            evidence=payload.evidence,
        )

    return {"claim": claim}
