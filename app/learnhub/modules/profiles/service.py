from __future__ import annotations

import math
from datetime import datetime
from typing import TYPE_CHECKING, Any

from app.learnhub.audit import record_event
from app.learnhub.errors import Unauthorized, ValidationError

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.learnhub.models import User


# section -> accepted string fields. Anything else in the payload is dropped.
PROFILE_TEXT_FIELDS: dict[str, tuple[str, ...]] = {
    "personal": ("fullName", "phone", "dob", "address"),
    "education": ("highestDegree", "institution", "yearOfPassing", "skills"),
    "professional": ("currentCompany", "currentRole", "linkedin"),
}


def _text(value: Any) -> str:
    if value is None or value is False:
        return ""
    if isinstance(value, list):
        # skills may arrive as a list from some clients; stored comma-joined
        return ", ".join(str(v).strip() for v in value if str(v).strip())
    return str(value).strip()


def _experience_years(value: Any) -> int | float:
    if value is None or value == "" or value is False:
        return 0
    try:
        n = float(value)
    except (TypeError, ValueError):
        raise ValidationError("professional.experienceYears: Expected number")
    if not math.isfinite(n):
        raise ValidationError("professional.experienceYears: Expected number")
    return int(n) if n.is_integer() else n


def whitelist_profile(profile: dict[str, Any]) -> dict[str, Any]:
    """
    Copy only the known profile fields, coercing each leaf.
    Missing strings become "", missing experienceYears becomes 0.
    """
    safe: dict[str, Any] = {}
    for section, fields in PROFILE_TEXT_FIELDS.items():
        src = profile.get(section)
        if not isinstance(src, dict):
            src = {}
        safe[section] = {field: _text(src.get(field)) for field in fields}
    professional = profile.get("professional")
    years = professional.get("experienceYears") if isinstance(professional, dict) else None
    safe["professional"]["experienceYears"] = _experience_years(years)
    return safe


def save_profile(s: "Session", user: "User | None", raw: Any) -> dict[str, Any]:
    """
    Replace the caller's stored profile with the whitelisted payload.

    No merge with the previous profile and no concurrency check: last save wins.
    """
    if not isinstance(raw, dict):
        raise ValidationError("Invalid body")
    if user is None:
        raise Unauthorized()
    profile = raw.get("profile")
    if not profile or not isinstance(profile, dict):
        raise ValidationError("Missing profile payload")

    safe = whitelist_profile(profile)
    user.profile = safe
    user.name = safe["personal"]["fullName"] or user.name
    user.updated_at = datetime.utcnow()

    record_event(
        s,
        actor=user,
        action="profile.update",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"sections": sorted(safe)},
    )
    return safe


def get_profile(user: "User | None") -> dict[str, Any]:
    if user is None:
        raise Unauthorized()
    return {
        "id": str(user.id),
        "email": user.email,
        "name": user.name,
        "profile": user.profile or whitelist_profile({}),
    }
