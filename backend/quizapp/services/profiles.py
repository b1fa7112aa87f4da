"""Trainee name helpers."""

import re

from quizapp.config import settings

_LOCAL_SEPARATORS = re.compile(r"[._-]")


def _cap(s: str) -> str:
    return s[:1].upper() + s[1:].lower() if s else ""


def seed_names_from_email(email: str | None) -> tuple[str, str]:
    """``jane.doe@x`` → ("Jane", "Doe"); no separator → ("", "")."""
    local = (email or "").split("@")[0]
    if not _LOCAL_SEPARATORS.search(local):
        return "", ""
    parts = [p for p in _LOCAL_SEPARATORS.split(local) if p]
    first = _cap(parts[0]) if parts else ""
    last = _cap(parts[1]) if len(parts) > 1 else ""
    return first, last


def name_from_email(email: str | None) -> str:
    if not email:
        return "Unknown"
    parts = [p for p in _LOCAL_SEPARATORS.split(email.split("@")[0]) if p]
    if parts:
        return " ".join(_cap(p) for p in parts)
    return email


def display_name(first: str | None, last: str | None, email: str | None) -> str:
    full = " ".join(p for p in ((first or "").strip(), (last or "").strip()) if p)
    return full or name_from_email(email)


def is_admin_email(email: str) -> bool:
    return email.lower() in {e.lower() for e in settings.ADMIN_EMAILS}
