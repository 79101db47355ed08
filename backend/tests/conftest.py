import os

# Settings() is built on import, so the env has to be ready first
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("COOKIE_SECURE", "false")
os.environ.setdefault("SUPER_ADMIN_EMAILS", "root@example.com")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# FORCE model registration
import backstage.models  # noqa

from backstage.auth.passwords import hash_password
from backstage.core.db import Base, get_db
from backstage.models import Event, Festival, SystemRole, User
from backstage.services.entities import create_entity


@pytest.fixture(scope="function")
def engine():
    eng = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        Base.metadata.drop_all(bind=eng)
        eng.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture(scope="function")
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(session_factory):
    from backstage.main import app

    def override_get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    seq = {"n": 0}

    def _make(email=None, *, password="secret123", full_name=None, super_admin=False, verified=True):
        seq["n"] += 1
        user = User(
            email=email or f"user{seq['n']}@example.com",
            password_hash=hash_password(password),
            full_name=full_name,
            system_role=SystemRole.SUPER_ADMIN.value if super_admin else SystemRole.NONE.value,
            email_verified=verified,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_entity(db):
    def _make(owner, *, type="venue", name="Rockefeller", **kwargs):
        return create_entity(db, creator=owner, type=type, name=name, **kwargs)

    return _make


@pytest.fixture
def make_festival(db):
    seq = {"n": 0}

    def _make(host, *, name="Øyafestivalen"):
        seq["n"] += 1
        f = Festival(name=name, slug=f"festival-{seq['n']}", host_entity_id=host.id, created_by=host.created_by)
        db.add(f)
        db.commit()
        db.refresh(f)
        return f

    return _make


@pytest.fixture
def make_event(db):
    seq = {"n": 0}

    def _make(*, host=None, festival=None, title="Opening night"):
        seq["n"] += 1
        ev = Event(
            title=title,
            slug=f"event-{seq['n']}",
            host_entity_id=host.id if host else None,
            festival_id=festival.id if festival else None,
        )
        db.add(ev)
        db.commit()
        db.refresh(ev)
        return ev

    return _make
