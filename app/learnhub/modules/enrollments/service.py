from __future__ import annotations

import math
import re
from datetime import datetime
from typing import TYPE_CHECKING, Any

from app.learnhub.audit import record_event
from app.learnhub.errors import ValidationError
from app.learnhub.modules.catalog.models import CATALOG_MODELS
from app.learnhub.modules.catalog.service import catalog_slug_exists
from app.learnhub.modules.enrollments.models import Enrollment
from app.learnhub.modules.enrollments.utils import COURSE_TYPES, is_valid_email

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.learnhub.models import User


_CURRENCY_RE = re.compile(r"^[A-Za-z]{3}$")

# Matches the Numeric(12, 2) amount column.
MAX_AMOUNT = 9_999_999_999.99


def validate_enrollment_payload(payload: Any, *, default_currency: str = "INR") -> tuple[dict[str, Any], list[str]]:
    """
    Server-side validation of a checkout submission.

    Runs regardless of any client-side checks. Returns (clean_data, messages)
    with messages formatted "field: message". A client-sent `status` is
    accepted but ignored.
    """
    if not isinstance(payload, dict):
        return {}, ["Invalid request"]

    errors: list[str] = []
    data: dict[str, Any] = {}

    email = payload.get("userEmail")
    email = email.strip() if isinstance(email, str) else ""
    if not email:
        errors.append("userEmail: Email is required")
    elif not is_valid_email(email):
        errors.append("userEmail: Invalid email address")
    else:
        data["user_email"] = email

    course_type = payload.get("courseType")
    if course_type not in COURSE_TYPES:
        expected = " | ".join(f"'{t}'" for t in COURSE_TYPES)
        errors.append(f"courseType: Invalid enum value. Expected {expected}, received '{course_type}'")
    else:
        data["course_type"] = course_type

    slug = payload.get("courseSlug")
    slug = slug.strip() if isinstance(slug, str) else ""
    if not slug:
        errors.append("courseSlug: Course slug is required")
    else:
        data["course_slug"] = slug

    amount = payload.get("amount")
    if isinstance(amount, bool) or not isinstance(amount, (int, float)) or not math.isfinite(amount):
        errors.append("amount: Expected number")
    elif amount < 0:
        errors.append("amount: Number must be greater than or equal to 0")
    elif amount > MAX_AMOUNT:
        errors.append(f"amount: Number must be less than or equal to {MAX_AMOUNT:.2f}")
    elif round(amount, 2) != amount:
        errors.append("amount: At most 2 decimal places")
    else:
        data["amount"] = amount

    currency = payload.get("currency")
    if currency is None or currency == "":
        data["currency"] = default_currency.upper()
    elif not isinstance(currency, str) or not _CURRENCY_RE.match(currency.strip()):
        errors.append("currency: Expected a 3-letter currency code")
    else:
        data["currency"] = currency.strip().upper()

    return data, errors


def submit_enrollment(
    s: "Session",
    raw: Any,
    actor: "User | None" = None,
    *,
    default_currency: str = "INR",
) -> Enrollment:
    """
    Validate and store one enrollment/registration request with status `pending`.

    For course types that have a stored catalog, the slug must refer to an
    existing entity. The amount is stored as given.
    """
    data, errors = validate_enrollment_payload(raw, default_currency=default_currency)

    kind = data.get("course_type")
    slug = data.get("course_slug")
    if kind in CATALOG_MODELS and slug and not catalog_slug_exists(s, kind, slug):
        errors.append(f"courseSlug: Unknown {kind} '{slug}'")

    if errors:
        raise ValidationError.from_messages(errors)

    enrollment = Enrollment(
        user_email=data["user_email"],
        course_type=data["course_type"],
        course_slug=data["course_slug"],
        status="pending",
        amount=data["amount"],
        currency=data["currency"],
        user_id=actor.id if actor else None,
        created_at=datetime.utcnow(),
    )
    s.add(enrollment)
    s.flush()

    record_event(
        s,
        actor=actor,
        action="enrollment.submit",
        entity_type="Enrollment",
        entity_id=str(enrollment.id),
        metadata={
            "email": enrollment.user_email,
            "course_type": enrollment.course_type,
            "course_slug": enrollment.course_slug,
            "amount": enrollment.amount,
            "currency": enrollment.currency,
        },
    )
    return enrollment
