"""Requests for backstage access from people without an account.

A request is created from the public form, confirmed through a one-time
token mailed to the given address, and reviewed by platform admins.
"""
from __future__ import annotations

import logging
import secrets

from sqlalchemy import select
from sqlalchemy.orm import Session

from backstage.core.errors import NotFoundError, PermissionDenied, ValidationError
from backstage.core.slugs import is_valid_email, normalize_email
from backstage.core.timeutil import utcnow
from backstage.models.access_request import AccessRequest
from backstage.models.enums import AccessLevel, AccessRequestRole, AccessRequestStatus
from backstage.models.user import User
from backstage.services import notify
from backstage.services.access import platform_access_level

log = logging.getLogger("backstage.access_requests")


def _require_platform_admin(db: Session, actor: User) -> None:
    lvl = platform_access_level(db, actor)
    if lvl is None or not lvl.at_least(AccessLevel.ADMIN):
        raise PermissionDenied("Platform admin access required")


def create_access_request(
    db: Session,
    *,
    name: str,
    email: str,
    role_type: str,
    message: str | None = None,
) -> AccessRequest:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Name is required")
    email_norm = normalize_email(email)
    if not is_valid_email(email_norm):
        raise ValidationError("Invalid email")
    try:
        role = AccessRequestRole((role_type or "").strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown role type: {role_type!r}")

    req = AccessRequest(
        name=name,
        email=email_norm,
        role_type=role.value,
        message=(message or "").strip() or None,
        status=AccessRequestStatus.NEW.value,
        email_verified=False,
        verification_token=secrets.token_urlsafe(32),
        verification_sent_at=utcnow(),
    )
    db.add(req)
    db.commit()
    db.refresh(req)
    log.info("access request created id=%s role=%s", req.id, req.role_type)

    notify.notify_access_request_verification(email=req.email, name=req.name, token=req.verification_token)
    return req


def verify_access_request(db: Session, *, token: str) -> AccessRequest:
    """Mark the request's email as confirmed. The token works once."""
    if not token:
        raise ValidationError("token is required")
    req = db.execute(
        select(AccessRequest).where(AccessRequest.verification_token == token)
    ).scalar_one_or_none()
    if req is None:
        raise NotFoundError("Invalid or already used token")

    req.email_verified = True
    req.verification_token = None
    db.commit()
    db.refresh(req)
    log.info("access request email verified id=%s", req.id)
    return req


def list_access_requests(db: Session, *, actor: User, status: str | None = None) -> list[AccessRequest]:
    _require_platform_admin(db, actor)

    stmt = select(AccessRequest)
    if status:
        try:
            stmt = stmt.where(AccessRequest.status == AccessRequestStatus(status).value)
        except ValueError:
            raise ValidationError(f"Unknown status: {status!r}")
    return list(
        db.execute(stmt.order_by(AccessRequest.created_at.desc(), AccessRequest.id.desc())).scalars().all()
    )


def get_access_request(db: Session, *, actor: User, request_id: int) -> AccessRequest:
    _require_platform_admin(db, actor)
    req = db.get(AccessRequest, request_id)
    if req is None:
        raise NotFoundError("Access request not found")
    return req


def review_access_request(
    db: Session,
    *,
    actor: User,
    request_id: int,
    status: str | None = None,
    admin_notes: str | None = None,
) -> AccessRequest:
    """Set status and/or notes. A status change stamps reviewer and time."""
    req = get_access_request(db, actor=actor, request_id=request_id)

    if status is not None:
        try:
            new_status = AccessRequestStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown status: {status!r}")
        req.status = new_status.value
        req.reviewed_at = utcnow()
        req.reviewed_by = actor.id

    if admin_notes is not None:
        req.admin_notes = admin_notes.strip() or None

    db.commit()
    db.refresh(req)
    log.info("access request reviewed id=%s status=%s by=%s", req.id, req.status, actor.id)
    return req
