import os
from typing import Optional
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt, JWTError
from sqlmodel import Session, select

from balchhi.db.db import get_session
from balchhi.models.user import User
from balchhi.utils.verification_service import RequestContext

ALGORITHM = "HS256"

bearer_scheme = HTTPBearer(auto_error=False)


def decode_token(credentials: str) -> dict:
    return jwt.decode(credentials, os.getenv("JWT_SECRET"), algorithms=[ALGORITHM])


def get_current_user_optional(token: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)):
    if not token:
        return None

    try:
        return decode_token(token.credentials)
    except JWTError:
        return None


def get_current_user_required(token: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)):
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        return decode_token(token.credentials)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")


def get_db_user(session: Session, current_user) -> User:
    user = session.exec(
        select(User).where(User.public_id == current_user["sub"])
    ).first()

    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    return user


def require_user(
    session: Session = Depends(get_session),
    current_user=Depends(get_current_user_required),
) -> User:
    return get_db_user(session, current_user)


def require_admin(user: User = Depends(require_user)) -> User:
    if user.role != "admin":
        raise HTTPException(status_code=403, detail="This action requires platform administrator privileges")

    return user


def request_context(request: Request) -> RequestContext:
    forwarded = request.headers.get("x-forwarded-for")
    ip_address = forwarded.split(",")[0].strip() if forwarded else (request.client.host if request.client else None)

    return RequestContext(ip_address=ip_address, user_agent=request.headers.get("user-agent"))
