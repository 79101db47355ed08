"""Invitation lifecycle: create → resolve → accept | revoke | decline.

Status only ever moves away from ``pending``; once a row is accepted, revoked
or declined it is never touched again. ``expired`` is not stored: it is
``pending`` past ``expires_at`` and is computed on read.
"""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from backstage.core.access import Action, EntityTarget
from backstage.core.config import settings
from backstage.core.errors import (
    AlreadyProcessedError,
    EmailNotVerified,
    ExpiredError,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)
from backstage.core.slugs import is_valid_email, normalize_email
from backstage.core.timeutil import as_utc, utcnow
from backstage.models.entity import Entity
from backstage.models.enums import INVITABLE_ACCESS, AccessLevel, InvitationStatus
from backstage.models.festival import Festival
from backstage.models.invitation import Invitation
from backstage.models.persona import Persona
from backstage.models.team_membership import TeamMembership
from backstage.models.user import User
from backstage.services import notify
from backstage.services.access import get_active_membership, require

log = logging.getLogger("backstage.invitations")


def new_token() -> str:
    return secrets.token_urlsafe(32)


def effective_status(inv: Invitation, now: datetime | None = None) -> InvitationStatus:
    now = now or utcnow()
    status = InvitationStatus(inv.status)
    if status == InvitationStatus.PENDING and now > as_utc(inv.expires_at):
        return InvitationStatus.EXPIRED
    return status


def is_expired(inv: Invitation, now: datetime | None = None) -> bool:
    return effective_status(inv, now) == InvitationStatus.EXPIRED


@dataclass
class InvitationView:
    """What the acceptance page shows, before anyone has signed in."""

    invitation: Invitation
    entity: Entity
    festival: Festival | None
    is_expired: bool

    def as_dict(self) -> dict[str, Any]:
        inv = self.invitation
        return {
            "id": inv.id,
            "entity_id": inv.entity_id,
            "festival_id": inv.festival_id,
            "email": inv.email,
            "invited_user_id": inv.invited_user_id,
            "invited_persona_id": inv.invited_persona_id,
            "access": inv.access,
            "role_labels": list(inv.role_labels or []),
            "status": effective_status(inv).value,
            "invited_at": as_utc(inv.invited_at).isoformat() if inv.invited_at else None,
            "expires_at": as_utc(inv.expires_at).isoformat(),
            "is_expired": self.is_expired,
            "entity": {
                "id": self.entity.id,
                "name": self.entity.name,
                "slug": self.entity.slug,
                "type": self.entity.type,
                "kind": self.entity.kind.value,
                "hero_image_url": self.entity.hero_image_url,
            },
            "festival": (
                {"id": self.festival.id, "name": self.festival.name, "slug": self.festival.slug}
                if self.festival
                else None
            ),
        }


def _view(inv: Invitation) -> InvitationView:
    return InvitationView(
        invitation=inv,
        entity=inv.entity,
        festival=inv.festival,
        is_expired=is_expired(inv),
    )


# ---------- Create ----------

def create_invitation(
    db: Session,
    *,
    inviter: User,
    access: str,
    entity_id: int | None = None,
    festival_id: int | None = None,
    email: str | None = None,
    invited_user_id: int | None = None,
    invited_persona_id: int | None = None,
    role_labels: list[str] | None = None,
) -> Invitation:
    lvl = AccessLevel.parse(access)
    if lvl is None:
        raise ValidationError(f"Unknown access level: {access!r}")
    if lvl not in INVITABLE_ACCESS:
        raise ValidationError("Owner access cannot be offered through an invitation")

    festival = None
    if festival_id is not None:
        festival = db.get(Festival, festival_id)
        if festival is None:
            raise NotFoundError("Festival not found")
        if entity_id is not None and entity_id != festival.host_entity_id:
            raise ValidationError("entity_id does not match the festival host")
        entity_id = festival.host_entity_id

    if entity_id is None:
        raise ValidationError("entity_id or festival_id is required")

    entity = db.get(Entity, entity_id)
    if entity is None:
        raise NotFoundError("Entity not found")

    email_norm = normalize_email(email) or None
    if (email_norm is None) == (invited_user_id is None):
        raise ValidationError("Exactly one of email or invited_user_id is required")

    if email_norm is not None:
        if not is_valid_email(email_norm):
            raise ValidationError("Invalid email")
        if invited_persona_id is not None:
            raise ValidationError("invited_persona_id is only valid with invited_user_id")
    else:
        if db.get(User, invited_user_id) is None:
            raise NotFoundError("Invited user not found")
        if invited_persona_id is not None:
            persona = db.get(Persona, invited_persona_id)
            if persona is None or persona.user_id != invited_user_id:
                raise ValidationError("Persona does not belong to the invited user")

    require(db, inviter, Action.INVITE, EntityTarget(entity.id))

    now = utcnow()
    inv = Invitation(
        entity_id=entity.id,
        festival_id=festival.id if festival else None,
        token=new_token(),
        email=email_norm,
        invited_user_id=invited_user_id,
        invited_persona_id=invited_persona_id,
        access=lvl.value,
        role_labels=list(dict.fromkeys(x.strip() for x in (role_labels or []) if x and x.strip())),
        status=InvitationStatus.PENDING.value,
        invited_by=inviter.id,
        invited_at=now,
        expires_at=now + timedelta(days=settings.INVITATION_TTL_DAYS),
    )
    db.add(inv)
    db.commit()
    db.refresh(inv)

    log.info(
        "invitation created id=%s entity_id=%s access=%s by=%s recipient=%s",
        inv.id,
        inv.entity_id,
        inv.access,
        inviter.id,
        "email" if inv.email else f"user:{inv.invited_user_id}",
    )

    if inv.email:
        notify.notify_invitation(
            email=inv.email,
            entity_name=festival.name if festival else entity.name,
            access=inv.access,
            token=inv.token,
            inviter_name=inviter.full_name or inviter.email,
        )

    return inv


# ---------- Resolve (read-only, works without a session) ----------

def resolve_invitation(
    db: Session,
    *,
    token: str | None = None,
    email: str | None = None,
    entity_id: int | None = None,
) -> InvitationView:
    stmt = select(Invitation).options(joinedload(Invitation.entity), joinedload(Invitation.festival))

    if token:
        inv = db.execute(stmt.where(Invitation.token == token)).scalar_one_or_none()
    elif email and entity_id is not None:
        email_norm = normalize_email(email)
        base = stmt.where(Invitation.email == email_norm, Invitation.entity_id == entity_id)
        # legacy link: the newest pending offer, otherwise the newest of any status
        inv = db.execute(
            base.where(Invitation.status == InvitationStatus.PENDING.value)
            .order_by(Invitation.invited_at.desc(), Invitation.id.desc())
            .limit(1)
        ).scalar_one_or_none()
        if inv is None:
            inv = db.execute(
                base.order_by(Invitation.invited_at.desc(), Invitation.id.desc()).limit(1)
            ).scalar_one_or_none()
    else:
        raise ValidationError("token or email+entity_id is required")

    if inv is None:
        raise NotFoundError("Invitation not found")
    return _view(inv)


def get_invitation(db: Session, invitation_id: int) -> Invitation:
    inv = db.get(Invitation, invitation_id)
    if inv is None:
        raise NotFoundError("Invitation not found")
    return inv


# ---------- Accept ----------

def _upsert_membership(db: Session, inv: Invitation, *, user_id: int) -> TeamMembership:
    offered = AccessLevel(inv.access)
    mem = get_active_membership(db, entity_id=inv.entity_id, user_id=user_id)

    if mem is None:
        mem = TeamMembership(
            entity_id=inv.entity_id,
            user_id=user_id,
            access=offered.value,
            persona_id=inv.invited_persona_id,
            role_labels=list(inv.role_labels or []),
        )
        db.add(mem)
        db.flush()
        return mem

    # the owner keeps owner; anyone else takes the offered level
    if mem.access != AccessLevel.OWNER.value:
        mem.access = offered.value
    if inv.invited_persona_id is not None and mem.persona_id is None:
        mem.persona_id = inv.invited_persona_id
    labels = list(mem.role_labels or [])
    mem.role_labels = list(dict.fromkeys(labels + list(inv.role_labels or [])))
    return mem


def _lock_invitation(db: Session, invitation_id: int) -> Invitation:
    inv = db.execute(
        select(Invitation).where(Invitation.id == invitation_id).with_for_update()
    ).scalar_one_or_none()
    if inv is None:
        raise NotFoundError("Invitation not found")
    return inv


def _accept_once(db: Session, *, invitation_id: int, user_id: int) -> TeamMembership:
    inv = _lock_invitation(db, invitation_id)
    status = InvitationStatus(inv.status)

    if status == InvitationStatus.ACCEPTED:
        if inv.accepted_user_id == user_id:
            mem = get_active_membership(db, entity_id=inv.entity_id, user_id=user_id)
            if mem is not None:
                return mem
        raise AlreadyProcessedError("Invitation has already been used")

    if status in (InvitationStatus.REVOKED, InvitationStatus.DECLINED):
        raise AlreadyProcessedError(f"Invitation was {status.value}")

    if is_expired(inv):
        raise ExpiredError("Invitation has expired")

    if inv.invited_user_id is not None and inv.invited_user_id != user_id:
        raise PermissionDenied("Invitation is addressed to another user")

    mem = _upsert_membership(db, inv, user_id=user_id)
    now = utcnow()
    inv.status = InvitationStatus.ACCEPTED.value
    inv.accepted_user_id = user_id
    inv.accepted_at = now
    inv.responded_at = now
    db.commit()
    db.refresh(mem)

    log.info(
        "invitation accepted id=%s entity_id=%s user_id=%s access=%s membership_id=%s",
        inv.id,
        inv.entity_id,
        user_id,
        inv.access,
        mem.id,
    )
    return mem


def accept_invitation(db: Session, *, invitation_id: int, user_id: int) -> TeamMembership:
    """Turn a pending invitation into an active team membership.

    Safe to call again for an invitation this user already accepted: the
    existing membership is returned and nothing new is written. Email
    ownership is checked by :func:`accept_invitation_by_token`.
    """
    try:
        return _accept_once(db, invitation_id=invitation_id, user_id=user_id)
    except IntegrityError:
        # a parallel accept inserted the active membership first; the retry
        # sees it and updates instead of inserting
        db.rollback()
        return _accept_once(db, invitation_id=invitation_id, user_id=user_id)



def accept_invitation_by_token(db: Session, *, token: str, user: User) -> TeamMembership:
    """Accept from the emailed link.

    The token is the proof the invitation reached this person. An
    email-addressed invitation also needs the session email verified and
    equal to the invited address.
    """
    inv = db.execute(select(Invitation).where(Invitation.token == token)).scalar_one_or_none()
    if inv is None:
        raise NotFoundError("Invitation not found")

    if inv.email is not None:
        if not email_matches(inv, user.email):
            raise PermissionDenied("Signed in with a different email than the invitation was sent to")
        if not user.email_verified:
            raise EmailNotVerified("Confirm your email address before accepting")

    return accept_invitation(db, invitation_id=inv.id, user_id=user.id)


# ---------- Revoke / decline ----------

def revoke_invitation(db: Session, *, actor: User, invitation_id: int) -> Invitation:
    inv = get_invitation(db, invitation_id)
    require(db, actor, Action.INVITE, EntityTarget(inv.entity_id))

    if inv.status != InvitationStatus.PENDING.value:
        return inv

    inv.status = InvitationStatus.REVOKED.value
    inv.responded_at = utcnow()
    db.commit()
    db.refresh(inv)
    log.info("invitation revoked id=%s by=%s", inv.id, actor.id)
    return inv


def decline_invitation(db: Session, *, user: User, invitation_id: int) -> Invitation:
    inv = get_invitation(db, invitation_id)
    if not _addressed_to(inv, user):
        raise PermissionDenied("Invitation is addressed to another user")

    if inv.status != InvitationStatus.PENDING.value:
        return inv

    inv.status = InvitationStatus.DECLINED.value
    inv.responded_at = utcnow()
    db.commit()
    db.refresh(inv)
    log.info("invitation declined id=%s user_id=%s", inv.id, user.id)
    return inv


def _addressed_to(inv: Invitation, user: User) -> bool:
    if inv.invited_user_id is not None:
        return inv.invited_user_id == user.id
    return bool(inv.email) and bool(user.email_verified) and email_matches(inv, user.email)


def email_matches(inv: Invitation, session_email: str | None) -> bool:
    if inv.email is None:
        return True
    return normalize_email(session_email) == inv.email


# ---------- Listings ----------

def list_entity_invitations(db: Session, *, actor: User, entity_id: int) -> list[Invitation]:
    if db.get(Entity, entity_id) is None:
        raise NotFoundError("Entity not found")
    require(db, actor, Action.INVITE, EntityTarget(entity_id))

    return list(
        db.execute(
            select(Invitation)
            .where(Invitation.entity_id == entity_id)
            .order_by(Invitation.invited_at.desc(), Invitation.id.desc())
        )
        .scalars()
        .all()
    )


def list_my_pending_invitations(db: Session, *, user: User) -> list[InvitationView]:
    """Pending offers addressed to the user; email offers only once the address is verified."""
    addressed = [Invitation.invited_user_id == user.id]
    if user.email_verified:
        addressed.append(Invitation.email == normalize_email(user.email))

    rows = (
        db.execute(
            select(Invitation)
            .options(joinedload(Invitation.entity), joinedload(Invitation.festival))
            .where(Invitation.status == InvitationStatus.PENDING.value, or_(*addressed))
            .order_by(Invitation.invited_at.desc(), Invitation.id.desc())
        )
        .scalars()
        .all()
    )
    now = utcnow()
    return [_view(inv) for inv in rows if not is_expired(inv, now)]
