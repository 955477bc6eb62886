"""Security utilities: password hashing and bearer-token signing/verification."""

import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from uuid import UUID

import jwt
from passlib.context import CryptContext

from clinicroute.core.config import settings

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of a secret
MAX_PASSWORD_BYTES = 72

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# =============================================================================
# Passwords
# =============================================================================

def is_password_too_long(password: str) -> bool:
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


def hash_password(password: str) -> str:
    if is_password_too_long(password):
        raise ValueError("Password exceeds bcrypt 72-byte limit")
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """Verify a password against a stored hash. Users without a hash never match."""
    if not hashed_password or is_password_too_long(plain_password):
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError as e:
        logger.warning("Password verification failed: invalid hash format (%s)", e)
        return False


# =============================================================================
# Access Token (bearer JWT)
# =============================================================================

def access_token_ttl_seconds() -> int:
    return settings.JWT_EXPIRES_HOURS * 3600


def create_access_token(
    user_id: UUID,
    clinic_id: UUID,
    role: str,
    email: str,
    token_version: int,
) -> str:
    """
    Create signed access JWT.

    Always signs with current secret (JWT_SECRET). Token carries the
    identity tuple plus the user's revocation version.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "clinic_id": str(clinic_id),
        "role": role,
        "email": email,
        "token_version": token_version,
        "iat": now,
        "exp": now + timedelta(seconds=access_token_ttl_seconds()),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def decode_access_token(token: str) -> dict:
    """
    Decode and verify access JWT.

    Tries current secret first, then previous (for rotation support).

    Raises:
        jwt.InvalidTokenError: If token invalid with all secrets
    """
    last_error = None
    for secret in settings.jwt_secrets:
        try:
            return jwt.decode(
                token, secret, algorithms=["HS256"], options={"require": ["sub", "exp"]}
            )
        except jwt.InvalidTokenError as e:
            last_error = e
            continue
    raise last_error  # type: ignore


# =============================================================================
# External identity tokens (RS256, JWKS)
# =============================================================================

@lru_cache(maxsize=1)
def _jwks_client(domain: str) -> jwt.PyJWKClient:
    return jwt.PyJWKClient(f"https://{domain}/.well-known/jwks.json")


def is_external_token(token: str) -> bool:
    """True when the unverified header says RS256 and an issuer is configured."""
    if not settings.external_identity_enabled:
        return False
    try:
        header = jwt.get_unverified_header(token)
    except jwt.InvalidTokenError:
        return False
    return header.get("alg") == "RS256"


def decode_external_token(token: str) -> dict:
    """
    Verify an identity-provider token against the issuer's signing keys.

    Raises:
        jwt.InvalidTokenError (or PyJWKClientError) on any verification failure
    """
    signing_key = _jwks_client(settings.AUTH0_DOMAIN).get_signing_key_from_jwt(token)
    return jwt.decode(
        token,
        signing_key.key,
        algorithms=["RS256"],
        audience=settings.AUTH0_AUDIENCE,
        issuer=f"https://{settings.AUTH0_DOMAIN}/",
    )
