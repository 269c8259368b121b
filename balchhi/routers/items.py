import uuid
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlmodel import Session, func, select

from balchhi.db.db import get_session
from balchhi.models.claim import Claim
from balchhi.models.enums import ClaimStatus
from balchhi.models.item import Item
from balchhi.models.user import User
from balchhi.utils import claim_service
from balchhi.utils.auth_helper import get_current_user_optional, require_user
from balchhi.utils.errors import ForbiddenError
from balchhi.utils.form_validator import validate_create_item_form
from balchhi.utils.permissions import check_permission
from balchhi.utils.s3_service import generate_signed_url, store_image


router = APIRouter()

MAX_UPLOAD_SIZE_MB = 5
MAX_UPLOAD_BYTES = MAX_UPLOAD_SIZE_MB * 1024 * 1024


@router.post("", status_code=201)
async def add_item(
    item_type: str = Form(...),
    title: str = Form(...),
    description: str = Form(...),
    category: str = Form(...),
    location: str = Form(...),
    date: Optional[str] = Form(None),
    organization_id: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    form = validate_create_item_form(
        item_type=item_type,
        title=title,
        description=description,
        category=category,
        date=date,
        location=location,
        organization_id=organization_id,
    )

    # Posting on behalf of an organization needs an approved organization
    if form.organization_id:
        permission = check_permission(session, user.id, form.organization_id, "post_item")
        if not permission.allowed:
            raise ForbiddenError(permission.reason or "Forbidden")

    s3_key = None
    if image is not None:
        raw_bytes = await image.read()

        if len(raw_bytes) > MAX_UPLOAD_BYTES:
            raise HTTPException(status_code=400, detail=f"Image exceeds {MAX_UPLOAD_SIZE_MB}MB limit")

        s3_key = store_image(raw_bytes, image.filename, "items")

    db_item = Item(
        user_id=user.id,
        organization_id=form.organization_id,
        title=form.title,
        description=form.description,
        category=form.category,
        date=form.date,
        location=form.location,
        type=form.item_type.value,
        image=s3_key,
    )

    session.add(db_item)
    session.commit()
    session.refresh(db_item)

    return {"item": db_item}


@router.get("/{item_id}")
async def get_item(
    item_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user=Depends(get_current_user_optional),
):
    result = session.exec(
        select(Item, User)
        .join(User, User.id == Item.user_id)
        .where(Item.id == item_id)
    ).first()

    if not result:
        raise HTTPException(404, "Item not found")

    item, owner = result

    pending_claims = session.exec(
        select(func.count(Claim.id))
        .where(Claim.item_id == item.id)
        .where(Claim.status == ClaimStatus.PENDING.value)
    ).one()

    # Anonymous visitors get the public view only
    viewer = None
    if current_user:
        viewer = session.exec(select(User).where(User.public_id == current_user["sub"])).first()

    my_claim = None
    if viewer and viewer.id != item.user_id:
        my_claim = session.exec(
            select(Claim)
            .where(Claim.item_id == item.id)
            .where(Claim.claimant_id == viewer.id)
            .order_by(Claim.created_at.desc())
        ).first()

    item_dict = item.model_dump()
    if item.image:
        item_dict["image"] = generate_signed_url(item.image)

    return {
        "item": item_dict,
        "owner": {"public_id": owner.public_id, "name": owner.name},
        "pending_claims": pending_claims,
        "is_owner": bool(viewer and viewer.id == item.user_id),
        "my_claim": {"id": my_claim.id, "status": my_claim.status} if my_claim else None,
    }


@router.get("/{item_id}/claims")
async def list_item_claims(
    item_id: uuid.UUID,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    """Every claim on an item, for whoever may review them."""
    item = session.get(Item, item_id)
    if not item:
        raise HTTPException(404, "Item not found")

    if not claim_service.can_review_claim(session, item, user.id):
        raise ForbiddenError("Only the item owner or organization staff can view its claims")

    rows = session.exec(
        select(Claim, User)
        .join(User, User.id == Claim.claimant_id)
        .where(Claim.item_id == item.id)
        .order_by(Claim.created_at.desc())
    ).all()
    evidence = claim_service.evidence_for(session, [claim.id for claim, _ in rows])

    claims = []
    for claim, claimant in rows:
        data = claim.model_dump()
        data["claimant"] = {"public_id": claimant.public_id, "name": claimant.name}
        data["evidence"] = evidence[claim.id]

        claims.append(data)

    return {"claims": claims}
