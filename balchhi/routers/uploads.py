from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from balchhi.models.user import User
from balchhi.utils.auth_helper import require_user
from balchhi.utils.s3_service import FOLDERS, generate_signed_url, store_image


router = APIRouter()

MAX_UPLOAD_SIZE_MB = 5
MAX_UPLOAD_BYTES = MAX_UPLOAD_SIZE_MB * 1024 * 1024


@router.post("", status_code=201)
async def upload_file(
    file: UploadFile = File(...),
    folder: str = Form("evidence"),
    user: User = Depends(require_user),
):
    """Store an evidence photo or verification document; returns the key to reference it by."""
    if folder not in FOLDERS:
        raise HTTPException(status_code=400, detail="Invalid upload folder")

    raw_bytes = await file.read()

    if not raw_bytes:
        raise HTTPException(status_code=400, detail="Empty file")

    if len(raw_bytes) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail=f"File exceeds {MAX_UPLOAD_SIZE_MB}MB limit")

    key = store_image(raw_bytes, file.filename, folder)

    return {"key": key, "url": generate_signed_url(key)}
