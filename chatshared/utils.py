from __future__ import annotations
import re
from datetime import datetime, timezone
from typing import Optional

# ========================================
#           TIMESTAMP HELPERS
# ========================================

def iso_now() -> str:
    """
    UTC now in the same shape the server stamps messages with,
    e.g. '2024-01-01T00:00:05.123Z'.
    """
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def parse_timestamp(value: str) -> Optional[datetime]:
    """
    Parse an ISO-8601-like createdAt string. Returns None when it does not parse;
    timestamps are display metadata only.
    """
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def local_clock(value: str) -> str:
    """HH:MM:SS in local time, or the raw string if it cannot be parsed"""
    parsed = parse_timestamp(value)
    if parsed is None:
        return value
    return parsed.astimezone().strftime('%H:%M:%S')


# ========================================
#           CREDENTIAL FORM VALIDATION
# ========================================
"""
Checks applied before a login/register request leaves the client.
"""

_EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')

USERNAME_MIN = 4
USERNAME_MAX = 8
PASSWORD_MIN = 6


class CredentialError(ValueError):
    """Raised when a login/register form field is invalid."""
    pass


def is_email(s: str) -> bool:
    return bool(_EMAIL_RE.fullmatch(s))


def validate_credentials(email: str, password: str, username: Optional[str] = None,
                         registering: bool = False) -> None:
    """
    Raise CredentialError with the first failing rule.

    - email is required and must look like an address
    - username is required when registering, 4 to 8 characters
    - password is required, at least 6 characters
    """
    if not email:
        raise CredentialError("Email is required")
    if not is_email(email):
        raise CredentialError("Invalid email format")
    if registering:
        if not username:
            raise CredentialError("Username is required")
        if len(username) < USERNAME_MIN:
            raise CredentialError(f"Username must be at least {USERNAME_MIN} characters")
        if len(username) > USERNAME_MAX:
            raise CredentialError(f"Username must not exceed {USERNAME_MAX} characters")
    if not password:
        raise CredentialError("Password is required")
    if len(password) < PASSWORD_MIN:
        raise CredentialError(f"Password must be at least {PASSWORD_MIN} characters")
