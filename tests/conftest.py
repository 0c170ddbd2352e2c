import os

os.environ["DATABASE_URL"] = "sqlite:///:memory:"
for _key in ("S3_ENDPOINT_URL", "S3_ACCESS_KEY", "S3_SECRET_KEY", "IDENTITY_URL"):
    os.environ.pop(_key, None)

import uuid  # noqa: E402
from datetime import date  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.db import Base, SessionLocal, engine  # noqa: E402
from app.main import app  # noqa: E402
from app.models.letter import (  # noqa: E402
    Confidentiality,
    Letter,
    LetterDirection,
    LetterRecipient,
    LetterStatus,
)
from app.models.profile import Profile, ProfileRole  # noqa: E402
from app.services.auth_dependencies import get_blob_store, get_identity  # noqa: E402
from mocks import FakeIdentityService, InMemoryBlobStore, context_for  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def _schema():
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture()
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        cleanup = SessionLocal()
        try:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup.execute(table.delete())
            cleanup.commit()
        finally:
            cleanup.close()


def _make_profile(db_session, role, department, name):
    profile = Profile(
        id=uuid.uuid4(),
        full_name=name,
        role=role,
        department=department,
        email=f"{name.lower().replace(' ', '.')}@example.edu",
    )
    db_session.add(profile)
    db_session.commit()
    db_session.refresh(profile)
    return profile


@pytest.fixture()
def admin(db_session):
    return _make_profile(db_session, ProfileRole.ADMIN, "Procurement", "Ada Admin")


@pytest.fixture()
def secretary(db_session):
    return _make_profile(
        db_session, ProfileRole.SECRETARY, "Procurement", "Sam Secretary"
    )


@pytest.fixture()
def staff(db_session):
    return _make_profile(db_session, ProfileRole.STAFF, "Finance", "Stella Staff")


@pytest.fixture()
def other_staff(db_session):
    return _make_profile(db_session, ProfileRole.STAFF, "Estates", "Otto Other")


@pytest.fixture()
def admin_ctx(admin):
    return context_for(admin)


@pytest.fixture()
def secretary_ctx(secretary):
    return context_for(secretary)


@pytest.fixture()
def staff_ctx(staff):
    return context_for(staff)


@pytest.fixture()
def other_staff_ctx(other_staff):
    return context_for(other_staff)


@pytest.fixture()
def make_letter(db_session, secretary):
    counter = {"n": 0}

    def _make(recipients=(), **overrides):
        counter["n"] += 1
        defaults = dict(
            ref_no=f"UHAS/PROC/IN/2026/{counter['n']:04d}",
            direction=LetterDirection.INCOMING,
            status=LetterStatus.RECEIVED,
            confidentiality=Confidentiality.PUBLIC,
            date_received=date(2026, 3, 2),
            sender_name="Ministry of Health",
            subject="Tender notice",
            created_by=secretary.id,
        )
        defaults.update(overrides)
        letter = Letter(**defaults)
        db_session.add(letter)
        db_session.flush()
        for profile in recipients:
            db_session.add(LetterRecipient(letter_id=letter.id, user_id=profile.id))
        db_session.commit()
        db_session.refresh(letter)
        return letter

    return _make


@pytest.fixture()
def identity():
    return FakeIdentityService()


@pytest.fixture()
def blobs():
    return InMemoryBlobStore()


@pytest.fixture()
def client(identity, blobs):
    app.dependency_overrides[get_identity] = lambda: identity
    app.dependency_overrides[get_blob_store] = lambda: blobs
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _headers(identity, profile):
    token = identity.add_user(profile.id, profile.email)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def admin_headers(identity, admin):
    return _headers(identity, admin)


@pytest.fixture()
def auth_headers(admin_headers):
    return admin_headers


@pytest.fixture()
def secretary_headers(identity, secretary):
    return _headers(identity, secretary)


@pytest.fixture()
def staff_headers(identity, staff):
    return _headers(identity, staff)


@pytest.fixture()
def other_staff_headers(identity, other_staff):
    return _headers(identity, other_staff)
