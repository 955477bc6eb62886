"""Login, registration, token verification and revocation."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from clinicroute.core import security
from clinicroute.core.config import settings
from clinicroute.db.enums import Role
from clinicroute.db.models import AuditLog, User

API = "/api/v1"
PASSWORD = "Password123!"


# =============================================================================
# Login
# =============================================================================

@pytest.mark.asyncio
async def test_login_returns_bearer_token(client, db, clinician, clinic):
    res = await client.post(
        f"{API}/auth/login",
        json={"email": clinician.email.upper(), "password": PASSWORD},
    )
    assert res.status_code == 200
    body = res.json()
    assert body["tokenType"] == "Bearer"
    assert body["expiresIn"] == settings.JWT_EXPIRES_HOURS * 3600
    assert body["user"]["id"] == str(clinician.id)
    assert body["user"]["clinicName"] == clinic.name
    assert body["user"]["role"] == "CLINICIAN"

    claims = security.decode_access_token(body["accessToken"])
    assert claims["sub"] == str(clinician.id)
    assert claims["clinic_id"] == str(clinic.id)

    db.expire_all()
    assert db.get(User, clinician.id).last_login_at is not None
    assert db.query(AuditLog).filter(AuditLog.action == "LOGIN").count() == 1


@pytest.mark.asyncio
async def test_wrong_password_is_401(client, clinician):
    res = await client.post(
        f"{API}/auth/login", json={"email": clinician.email, "password": "Wrong123!"}
    )
    assert res.status_code == 401
    assert res.json()["detail"] == "Invalid credentials"


@pytest.mark.asyncio
async def test_unknown_email_is_401(client):
    res = await client.post(
        f"{API}/auth/login", json={"email": "nobody@test.com", "password": PASSWORD}
    )
    assert res.status_code == 401


@pytest.mark.asyncio
async def test_inactive_account_cannot_log_in(client, db, clinic, user_factory):
    user = user_factory(clinic, is_active=False)
    res = await client.post(f"{API}/auth/login", json={"email": user.email, "password": PASSWORD})
    assert res.status_code == 401
    assert res.json()["detail"] == "Account is deactivated"


# =============================================================================
# Registration
# =============================================================================

def _register_body(clinic, **overrides):
    body = {
        "email": "New.Person@Test.com",
        "password": "Str0ngPass",
        "firstName": "New",
        "lastName": "Person",
        "clinicId": str(clinic.id),
    }
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_register_creates_clinician_by_default(client, db, clinic):
    res = await client.post(f"{API}/auth/register", json=_register_body(clinic))
    assert res.status_code == 201
    body = res.json()
    assert body["user"]["email"] == "new.person@test.com"
    assert body["user"]["role"] == "CLINICIAN"
    assert body["accessToken"]

    user = db.query(User).filter(User.email == "new.person@test.com").one()
    assert security.verify_password("Str0ngPass", user.password_hash)


@pytest.mark.asyncio
async def test_register_duplicate_email_is_409(client, clinic, clinician):
    res = await client.post(
        f"{API}/auth/register", json=_register_body(clinic, email=clinician.email)
    )
    assert res.status_code == 409


@pytest.mark.asyncio
async def test_register_unknown_clinic_is_404(client, clinic):
    res = await client.post(
        f"{API}/auth/register",
        json=_register_body(clinic, clinicId="00000000-0000-0000-0000-000000000000"),
    )
    assert res.status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize("password", ["short1A", "alllowercase1", "ALLUPPERCASE1", "Nodigitsorspecial"])
async def test_register_enforces_password_rules(client, clinic, password):
    res = await client.post(
        f"{API}/auth/register", json=_register_body(clinic, password=password)
    )
    assert res.status_code == 400


# =============================================================================
# Token verification
# =============================================================================

@pytest.mark.asyncio
async def test_me_returns_current_user(client, clinician_auth):
    res = await client.get(f"{API}/auth/me", headers=clinician_auth.headers)
    assert res.status_code == 200
    body = res.json()
    assert body["id"] == str(clinician_auth.user.id)
    assert body["isActive"] is True


@pytest.mark.asyncio
async def test_refresh_issues_new_token(client, clinician_auth):
    res = await client.post(f"{API}/auth/refresh", headers=clinician_auth.headers)
    assert res.status_code == 200
    assert res.json()["user"]["id"] == str(clinician_auth.user.id)


@pytest.mark.asyncio
async def test_garbage_token_is_401(client):
    res = await client.get(f"{API}/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401


@pytest.mark.asyncio
async def test_expired_token_is_401(client, clinician):
    past = datetime.now(timezone.utc) - timedelta(hours=2)
    token = jwt.encode(
        {
            "sub": str(clinician.id),
            "clinic_id": str(clinician.clinic_id),
            "role": clinician.role,
            "token_version": clinician.token_version,
            "iat": past - timedelta(hours=1),
            "exp": past,
        },
        settings.JWT_SECRET,
        algorithm="HS256",
    )
    res = await client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 401


@pytest.mark.asyncio
async def test_token_signed_with_previous_secret_still_verifies(client, clinician, monkeypatch):
    old_secret = settings.JWT_SECRET
    token = security.create_access_token(
        user_id=clinician.id,
        clinic_id=clinician.clinic_id,
        role=clinician.role,
        email=clinician.email,
        token_version=clinician.token_version,
    )
    monkeypatch.setattr(settings, "JWT_SECRET", "rotated-secret-rotated-secret-rotated")
    monkeypatch.setattr(settings, "JWT_SECRET_PREVIOUS", old_secret)

    res = await client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 200


@pytest.mark.asyncio
async def test_bumping_token_version_revokes_sessions(client, db, clinician_auth):
    clinician_auth.user.token_version += 1
    db.commit()

    res = await client.get(f"{API}/auth/me", headers=clinician_auth.headers)
    assert res.status_code == 401
    assert res.json()["detail"] == "Session revoked"


@pytest.mark.asyncio
async def test_deactivated_user_token_is_rejected(client, db, clinician_auth):
    clinician_auth.user.is_active = False
    db.commit()

    res = await client.get(f"{API}/auth/me", headers=clinician_auth.headers)
    assert res.status_code == 401


# =============================================================================
# Passwords
# =============================================================================

def test_password_longer_than_bcrypt_limit_is_refused():
    with pytest.raises(ValueError):
        security.hash_password("A1" + "x" * 80)
    assert security.verify_password("A1" + "x" * 80, "$2b$12$invalid") is False


def test_user_without_password_hash_never_matches():
    assert security.verify_password("anything", None) is False


def test_role_membership_helper():
    assert Role.has_value("ADMIN")
    assert not Role.has_value("SUPERUSER")
