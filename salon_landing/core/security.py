"""Security utilities: secret hashing and admin token checks."""

import hmac

from passlib.context import CryptContext

from salon_landing.core.config import get_settings

# ── Password / temporary secret hashing (Argon2) ─────────────

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


# ── Admin API token ───────────────────────────────────────────

def verify_admin_token(raw_token: str) -> bool:
    """Constant-time comparison against the configured admin token.

    An unset ADMIN_API_TOKEN rejects everything.
    """
    expected = get_settings().admin_api_token
    if not expected:
        return False
    return hmac.compare_digest(raw_token.encode(), expected.encode())
