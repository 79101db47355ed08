from __future__ import annotations

import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backstage.auth.deps import get_current_user, get_jwt_config
from backstage.auth.jwt_tokens import create_access_token
from backstage.auth.passwords import MIN_PASSWORD_LENGTH, hash_password, verify_password
from backstage.core.config import settings
from backstage.core.db import get_db
from backstage.core.slugs import is_valid_email, normalize_email
from backstage.core.timeutil import utcnow
from backstage.models import SystemRole, User
from backstage.services import notify

log = logging.getLogger("backstage.auth")

router = APIRouter(prefix="/auth", tags=["auth"])


class SignupIn(BaseModel):
    email: str = Field(..., max_length=254)
    password: str = Field(..., max_length=256)
    full_name: str | None = Field(default=None, max_length=128)
    # where the client goes after signup (e.g. back to /accept-invitation)
    redirect_url: str | None = None


class LoginIn(BaseModel):
    email: str
    password: str


class VerifyIn(BaseModel):
    token: str = Field(..., min_length=1, max_length=64)


class ResendIn(BaseModel):
    redirect_url: str | None = None


def _set_session_cookie(response: Response, user: User) -> None:
    token = create_access_token(get_jwt_config(), user.id)
    response.set_cookie(
        key="access_token",
        value=token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        domain=settings.COOKIE_DOMAIN,
        path="/",
        max_age=settings.ACCESS_TOKEN_TTL_SECONDS,
    )


def _promote_if_whitelisted(db: Session, user: User) -> None:
    # DEV: авто-SUPER_ADMIN по whitelist
    if user.email in settings.super_admin_emails() and user.system_role != SystemRole.SUPER_ADMIN.value:
        user.system_role = SystemRole.SUPER_ADMIN.value
        db.commit()


def user_out(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "system_role": user.system_role,
        "email_verified": bool(user.email_verified),
    }


@router.post("/signup", status_code=status.HTTP_201_CREATED)
def signup(payload: SignupIn, response: Response, db: Session = Depends(get_db)):
    email = normalize_email(payload.email)
    if not is_valid_email(email):
        raise HTTPException(status_code=400, detail="Invalid email")
    if len(payload.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    if db.query(User).filter(User.email == email).one_or_none() is not None:
        raise HTTPException(status_code=409, detail="Email is already registered")

    user = User(
        email=email,
        password_hash=hash_password(payload.password),
        full_name=(payload.full_name or "").strip() or None,
        system_role=SystemRole.NONE.value,
        email_verified=False,
        email_verification_token=secrets.token_urlsafe(32),
        verification_sent_at=utcnow(),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Email is already registered")
    db.refresh(user)

    _promote_if_whitelisted(db, user)
    _set_session_cookie(response, user)
    log.info("user signed up user_id=%s", user.id)

    notify.notify_email_verification(
        email=user.email, token=user.email_verification_token, next_url=payload.redirect_url
    )

    return {**user_out(user), "redirect_url": payload.redirect_url}


@router.post("/login")
def login(payload: LoginIn, response: Response, db: Session = Depends(get_db)):
    email = normalize_email(payload.email)
    user = db.query(User).filter(User.email == email).one_or_none()
    if user is None or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")

    _promote_if_whitelisted(db, user)
    _set_session_cookie(response, user)
    return user_out(user)


@router.post("/verify")
def verify_email(payload: VerifyIn, db: Session = Depends(get_db)):
    """Consume the token from the confirmation mail. Single use."""
    user = db.query(User).filter(User.email_verification_token == payload.token).one_or_none()
    if user is None:
        raise HTTPException(status_code=404, detail="Invalid or already used token")

    user.email_verified = True
    user.email_verification_token = None
    db.commit()
    db.refresh(user)
    log.info("email verified user_id=%s", user.id)
    return user_out(user)


@router.post("/verify/resend")
def resend_verification(
    payload: ResendIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if user.email_verified:
        return {"ok": True, "sent": False}

    user.email_verification_token = secrets.token_urlsafe(32)
    user.verification_sent_at = utcnow()
    db.commit()
    sent = notify.notify_email_verification(
        email=user.email, token=user.email_verification_token, next_url=payload.redirect_url
    )
    return {"ok": True, "sent": sent}


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(response: Response):
    response.delete_cookie(key="access_token", domain=settings.COOKIE_DOMAIN, path="/")
    return

