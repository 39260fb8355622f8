"""Verification of access tokens issued by the external auth provider."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from app.config import get_settings

settings = get_settings()


@dataclass(frozen=True)
class AuthenticatedUser:
    id: str
    email: Optional[str] = None
    role: str = "parent"

    @property
    def is_admin(self) -> bool:
        return self.role in {"admin", "superadmin"}


def decode_access_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, settings.AUTH_JWT_SECRET, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None


def user_from_claims(payload: dict) -> Optional[AuthenticatedUser]:
    sub = payload.get("sub")
    if sub is None or str(sub).strip() == "":
        return None
    return AuthenticatedUser(
        id=str(sub),
        email=payload.get("email"),
        role=payload.get("role") or "parent",
    )


def create_access_token(subject: str, email: Optional[str] = None, role: str = "parent", expires_minutes: int = 60) -> str:
    """Mint a token the way the auth provider does; used by scripts and tests."""
    exp = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    payload = {"sub": str(subject), "email": email, "role": role, "exp": exp}
    return jwt.encode(payload, settings.AUTH_JWT_SECRET, algorithm=settings.ALGORITHM)
