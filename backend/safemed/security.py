"""Bearer token handling.

Accounts and passwords live with the external identity provider, which
issues HS256 access tokens. SafeMed only verifies them and reads the
caller's role and identifier.
"""

from dataclasses import dataclass
from enum import StrEnum

from jose import JWTError, jwt

from safemed.config import settings


class Role(StrEnum):
    doctor = "doctor"
    patient = "patient"


@dataclass(frozen=True)
class Principal:
    """Authenticated caller: a doctor_id or patient_id plus its role."""

    subject: str
    role: Role


class InvalidTokenError(Exception):
    pass


def decode_access_token(token: str) -> Principal:
    """Verify an access token and return the caller it names."""
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise InvalidTokenError("Could not validate credentials") from exc

    subject: str | None = payload.get("sub")
    token_type: str | None = payload.get("type")
    if not subject:
        raise InvalidTokenError("Token has no subject")
    if token_type and token_type != "access":
        raise InvalidTokenError("Not an access token")
    try:
        role = Role(payload.get("role"))
    except ValueError as exc:
        raise InvalidTokenError("Token has no valid role") from exc
    return Principal(subject=subject, role=role)
