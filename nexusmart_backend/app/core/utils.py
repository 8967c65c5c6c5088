"""
Core Utilities

Shared helpers used across the application.
"""
import hashlib
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """
    Return timezone-aware UTC datetime.

    Use this instead of datetime.utcnow() which returns naive datetime.
    """
    return datetime.now(timezone.utc)


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Trim and lower-case an email address; blank values become None."""
    if email is None:
        return None
    email = email.strip().lower()
    return email or None


def email_log_id(email: str) -> str:
    """Short SHA-256 prefix so addresses never reach the logs in clear text."""
    return hashlib.sha256(email.encode("utf-8")).hexdigest()[:16]
