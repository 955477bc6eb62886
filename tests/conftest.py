"""
Test configuration and fixtures.

Provides:
- A fresh in-memory SQLite database per test (schema from the ORM models)
- Clinics, users and an insurer to hang cases on
- Bearer token minting for authenticated requests
- HTTPX AsyncClient bound to an app built around the test engine
"""
import os
import uuid
from dataclasses import dataclass
from datetime import date
from typing import AsyncGenerator, Generator

# Must be set before clinicroute is imported (settings + limiter read them)
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TESTING"] = "1"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from clinicroute.core.deps import get_db
from clinicroute.core.security import create_access_token, hash_password
from clinicroute.db.base import Base
from clinicroute.db.enums import Role
from clinicroute.db.models import Case, Clinic, Insurer, User
from clinicroute.db.session import create_db_engine, create_session_factory
from clinicroute.main import create_app
from clinicroute.schemas.auth import UserSession
from clinicroute.schemas.case import CaseCreate
from clinicroute.services import case_service

TEST_PASSWORD = "Password123!"
VALID_NHS_NUMBER = "9434765919"


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def engine():
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(engine) -> Generator[Session, None, None]:
    """One session shared by the test body and every request it makes."""
    session = create_session_factory(engine)()
    yield session
    session.close()


@pytest.fixture(scope="session")
def password_hash() -> str:
    # bcrypt is slow; hash once for the whole run
    return hash_password(TEST_PASSWORD)


@pytest.fixture(scope="function")
def clinic(db: Session) -> Clinic:
    clinic = Clinic(name="Harley Street Imaging", sla_default_days=5)
    db.add(clinic)
    db.commit()
    return clinic


@pytest.fixture(scope="function")
def other_clinic(db: Session) -> Clinic:
    clinic = Clinic(name="Manchester Physio", sla_default_days=3)
    db.add(clinic)
    db.commit()
    return clinic


def make_user(
    db: Session,
    clinic: Clinic,
    role: Role,
    password_hash: str,
    first_name: str = "Test",
    last_name: str = "User",
    is_active: bool = True,
) -> User:
    user = User(
        clinic_id=clinic.id,
        email=f"{role.value.lower()}-{uuid.uuid4().hex[:8]}@test.com",
        password_hash=password_hash,
        first_name=first_name,
        last_name=last_name,
        role=role.value,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture(scope="function")
def admin(db: Session, clinic: Clinic, password_hash: str) -> User:
    return make_user(db, clinic, Role.ADMIN, password_hash, "Alex", "Morgan")


@pytest.fixture(scope="function")
def manager(db: Session, clinic: Clinic, password_hash: str) -> User:
    return make_user(db, clinic, Role.MANAGER, password_hash, "Emma", "Clarke")


@pytest.fixture(scope="function")
def clinician(db: Session, clinic: Clinic, password_hash: str) -> User:
    return make_user(db, clinic, Role.CLINICIAN, password_hash, "Sophie", "Patel")


@pytest.fixture(scope="function")
def outsider(db: Session, other_clinic: Clinic, password_hash: str) -> User:
    """Admin of a different clinic."""
    return make_user(db, other_clinic, Role.ADMIN, password_hash, "Oscar", "Outside")


@pytest.fixture(scope="function")
def insurer(db: Session) -> Insurer:
    insurer = Insurer(name="Bupa", code="BUPA", avg_response_days=3)
    db.add(insurer)
    db.commit()
    return insurer


# =============================================================================
# Auth Fixtures
# =============================================================================

def session_for(user: User) -> UserSession:
    return UserSession(
        user_id=user.id,
        clinic_id=user.clinic_id,
        role=Role(user.role),
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
    )


def auth_headers(user: User) -> dict:
    token = create_access_token(
        user_id=user.id,
        clinic_id=user.clinic_id,
        role=user.role,
        email=user.email,
        token_version=user.token_version,
    )
    return {"Authorization": f"Bearer {token}"}


@dataclass
class TestAuth:
    """Test authentication context."""
    user: User
    session: UserSession
    headers: dict


@pytest.fixture(scope="function")
def admin_auth(admin: User) -> TestAuth:
    return TestAuth(user=admin, session=session_for(admin), headers=auth_headers(admin))


@pytest.fixture(scope="function")
def manager_auth(manager: User) -> TestAuth:
    return TestAuth(user=manager, session=session_for(manager), headers=auth_headers(manager))


@pytest.fixture(scope="function")
def clinician_auth(clinician: User) -> TestAuth:
    return TestAuth(user=clinician, session=session_for(clinician), headers=auth_headers(clinician))


@pytest.fixture(scope="function")
def outsider_auth(outsider: User) -> TestAuth:
    return TestAuth(user=outsider, session=session_for(outsider), headers=auth_headers(outsider))


# =============================================================================
# Case helpers
# =============================================================================

@pytest.fixture(scope="function")
def case_body(insurer: Insurer):
    """Build a camelCase request body for POST /cases."""
    def build(**overrides) -> dict:
        payload = {
            "patientFirstName": "Jane",
            "patientLastName": "Doe",
            "patientDob": "1980-05-01",
            "patientNhsNumber": VALID_NHS_NUMBER,
            "referralType": "MRI",
            "referringClinician": "Dr Smith",
            "insurerId": str(insurer.id),
            "priority": "HIGH",
        }
        payload.update(overrides)
        return payload
    return build


@pytest.fixture(scope="function")
def make_case(db: Session, insurer: Insurer):
    """Create a case through the service as the given user."""
    def create(auth: TestAuth, **overrides) -> Case:
        data = {
            "patient_first_name": "Jane",
            "patient_last_name": "Doe",
            "patient_dob": date(1980, 5, 1),
            "referral_type": "MRI",
            "referring_clinician": "Dr Smith",
            "insurer_id": insurer.id,
        }
        data.update(overrides)
        return case_service.create_case(db, auth.session, CaseCreate(**data))
    return create


@pytest.fixture(scope="function")
def user_factory(db: Session, password_hash: str):
    def create(clinic: Clinic, role: Role = Role.CLINICIAN, **kwargs) -> User:
        return make_user(db, clinic, role, password_hash, **kwargs)
    return create


@pytest.fixture(scope="function")
def auth_for():
    """TestAuth for an arbitrary user."""
    def build(user: User) -> TestAuth:
        return TestAuth(user=user, session=session_for(user), headers=auth_headers(user))
    return build


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def app(engine, db: Session):
    app = create_app(engine=engine)

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield app
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c
