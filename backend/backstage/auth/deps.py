from __future__ import annotations

from fastapi import Cookie, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from backstage.auth.jwt_tokens import JwtConfig, decode_access_token
from backstage.core.config import settings
from backstage.core.db import get_db
from backstage.models import User
from backstage.services.personas import PersonaScope, resolve_persona_scope


def get_jwt_config() -> JwtConfig:
    return JwtConfig(
        secret=settings.JWT_SECRET,
        issuer=settings.JWT_ISS,
        audience=settings.JWT_AUD,
        ttl_seconds=settings.ACCESS_TOKEN_TTL_SECONDS,
    )


def _user_from_token(db: Session, access_token: str | None) -> User | None:
    if not access_token:
        return None
    try:
        payload = decode_access_token(get_jwt_config(), access_token)
        user_id = int(payload["sub"])
    except Exception:
        return None
    return db.query(User).filter(User.id == user_id).one_or_none()


def get_current_user(
    db: Session = Depends(get_db),
    access_token: str | None = Cookie(default=None, alias="access_token"),
) -> User:
    if not access_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    user = _user_from_token(db, access_token)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    return user


def get_optional_user(
    db: Session = Depends(get_db),
    access_token: str | None = Cookie(default=None, alias="access_token"),
) -> User | None:
    """For pages that must work before the visitor has signed in."""
    return _user_from_token(db, access_token)


def get_persona_scope(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    x_persona_id: int | None = Header(default=None, alias="X-Persona-Id"),
) -> PersonaScope:
    return resolve_persona_scope(db, user=user, persona_id=x_persona_id)
