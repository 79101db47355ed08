from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backstage.auth.deps import get_current_user
from backstage.core.db import get_db
from backstage.core.timeutil import as_utc
from backstage.models import AccessRequest, User
from backstage.services import access_requests as req_svc

router = APIRouter(tags=["access-requests"])


class AccessRequestIn(BaseModel):
    name: str = Field(..., max_length=128)
    email: str = Field(..., max_length=254)
    role_type: str = Field(..., description="musician|organizer|technician|photographer|booking|other")
    message: str | None = Field(default=None, max_length=4000)


class AccessRequestVerifyIn(BaseModel):
    token: str = Field(..., min_length=1, max_length=64)


class AccessRequestReviewIn(BaseModel):
    status: str | None = Field(default=None, description="new|approved|rejected")
    admin_notes: str | None = None


def _ts(value):
    return as_utc(value).isoformat() if value else None


def access_request_out(req: AccessRequest) -> dict:
    return {
        "id": req.id,
        "name": req.name,
        "email": req.email,
        "role_type": req.role_type,
        "message": req.message,
        "status": req.status,
        "email_verified": bool(req.email_verified),
        "verification_sent_at": _ts(req.verification_sent_at),
        "admin_notes": req.admin_notes,
        "reviewed_by": req.reviewed_by,
        "reviewed_at": _ts(req.reviewed_at),
        "created_at": _ts(req.created_at),
    }


@router.post("/access-requests", status_code=status.HTTP_201_CREATED)
def create_access_request(payload: AccessRequestIn, db: Session = Depends(get_db)):
    """Public form. The answer carries no token; it only travels by mail."""
    req = req_svc.create_access_request(db, **payload.model_dump())
    return {"id": req.id, "status": req.status, "email_verified": False}


@router.post("/access-requests/verify")
def verify_access_request(payload: AccessRequestVerifyIn, db: Session = Depends(get_db)):
    req = req_svc.verify_access_request(db, token=payload.token)
    return {"ok": True, "name": req.name}


@router.get("/admin/access-requests")
def list_access_requests(
    status_filter: str | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return [access_request_out(r) for r in req_svc.list_access_requests(db, actor=user, status=status_filter)]


@router.get("/admin/access-requests/{request_id}")
def get_access_request(
    request_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return access_request_out(req_svc.get_access_request(db, actor=user, request_id=request_id))


@router.patch("/admin/access-requests/{request_id}")
def review_access_request(
    request_id: int,
    payload: AccessRequestReviewIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    req = req_svc.review_access_request(
        db, actor=user, request_id=request_id, status=payload.status, admin_notes=payload.admin_notes
    )
    return access_request_out(req)
