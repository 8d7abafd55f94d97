from __future__ import annotations

import re
from urllib.parse import urlencode

# Basic local@domain.tld shape. Deliverability is not checked.
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

COURSE_TYPES = ("skillpath", "careerpath", "course", "hackathon")

SUCCESS_PATH = "/checkout/success"


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_RE.match(value or ""))


def checkout_verb(course_type: str) -> str:
    return "registration" if course_type == "hackathon" else "enrollment"


def build_success_url(course_type: str, slug: str) -> str:
    """Where the client goes after a successful checkout. Params are display hints only."""
    return f"{SUCCESS_PATH}?{urlencode({'course': course_type, 'slug': slug})}"


def format_money(amount: float, currency: str) -> str:
    """
    Whole-unit display, e.g. format_money(4999, "inr") -> "INR 4,999".
    """
    code = (currency or "").upper()
    try:
        return f"{code} {round(float(amount)):,}"
    except (TypeError, ValueError, OverflowError):
        return f"{code} {amount}"
