from __future__ import annotations

import re
import unicodedata

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_EDGE_HYPHENS_RE = re.compile(r"^-+|-+$")
_REPEATED_HYPHENS_RE = re.compile(r"-{2,}")


def strip_accents(value: str) -> str:
    """Decompose (NFKD) and drop combining marks: "Café" -> "Cafe"."""
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def slugify(value: str | None) -> str:
    """
    Turn a display name into a URL-safe, lowercase ASCII token.

    Examples:
        >>> slugify("Café Hack! 2024")
        'cafe-hack-2024'
        >>> slugify("  --Web   Dev 101-- ")
        'web-dev-101'
        >>> slugify("")
        ''

    Never fails. An empty result means the name had no usable characters;
    callers must reject it before allocating a slug.
    """
    s = strip_accents(str(value or "")).lower()
    s = _NON_ALNUM_RE.sub("-", s)
    s = _EDGE_HYPHENS_RE.sub("", s)
    return _REPEATED_HYPHENS_RE.sub("-", s)


def split_csv(value: str) -> list[str]:
    """ "a, b,,c " -> ["a", "b", "c"] """
    return [part.strip() for part in value.split(",") if part.strip()]
