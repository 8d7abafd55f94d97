from __future__ import annotations

import math
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import IntegrityError

from app.learnhub.audit import record_event
from app.learnhub.db import unique_violation_fields
from app.learnhub.errors import ConflictError, NotFound, SlugExhausted, ValidationError
from app.learnhub.modules.catalog.models import CATALOG_MODELS, LEVELS, CatalogEntityMixin
from app.learnhub.modules.catalog.utils import slugify, split_csv

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.learnhub.models import User


DEFAULT_SLUG_MAX_ATTEMPTS = 10_000

# Accepted payload keys, in the order their errors are reported.
PAYLOAD_FIELDS = (
    "name",
    "img",
    "duration",
    "level",
    "desc",
    "skills",
    "perks",
    "syllabus",
    "rating",
    "students",
    "slug",
    "href",
)


def catalog_model(kind: str) -> type[CatalogEntityMixin]:
    model = CATALOG_MODELS.get(kind)
    if model is None:
        raise NotFound(f"Unknown catalog type '{kind}'")
    return model


# ---------- Slug allocation ----------
def ensure_unique_slug(
    s: "Session",
    model: type[CatalogEntityMixin],
    base: str,
    exclude_id: int | None = None,
    max_attempts: int = DEFAULT_SLUG_MAX_ATTEMPTS,
) -> str:
    """
    Return `base`, or `base-2`, `base-3`, ... whichever is not yet taken in the
    model's table. `exclude_id` skips the row being updated.

    Check-then-insert is not atomic; the UNIQUE constraint on `slug` is the
    final guard and surfaces a lost race as ConflictError on insert.
    """
    if not base:
        raise ValueError("name cannot be empty")

    candidate = base
    counter = 2
    for _ in range(max_attempts):
        q = s.query(model.id).filter(model.slug == candidate)
        if exclude_id is not None:
            q = q.filter(model.id != exclude_id)
        if q.first() is None:
            return candidate
        candidate = f"{base}-{counter}"
        counter += 1
    raise SlugExhausted(base, max_attempts)


# ---------- Input coercion ----------
def _to_number(value: str) -> int | float | str:
    try:
        n = float(value.strip())
    except ValueError:
        return value
    if not math.isfinite(n):
        return value
    return int(n) if n.is_integer() else n


def coerce_catalog_payload(raw: Any) -> Any:
    """
    Tolerate the loose shapes HTML forms send: comma-separated strings for
    list fields and numeric strings for number fields.

    Returns a new dict; anything that is not a dict is returned untouched so
    validation can reject it. Unparseable numbers stay strings.
    """
    if not isinstance(raw, dict):
        return raw
    norm = dict(raw)
    for key in ("skills", "perks"):
        if isinstance(norm.get(key), str):
            norm[key] = split_csv(norm[key])
    for key in ("rating", "students"):
        value = norm.get(key)
        if isinstance(value, str) and value != "":
            norm[key] = _to_number(value)
    return norm


# ---------- Validation ----------
def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _check_text(payload: dict, key: str, min_len: int, message: str, errors: list[str]) -> str | None:
    if key not in payload or payload[key] is None:
        errors.append("Required")
        return None
    value = payload[key]
    if not isinstance(value, str):
        errors.append(f"Expected string, received {_type_name(value)}")
        return None
    value = value.strip()
    if len(value) < min_len:
        errors.append(message)
        return None
    return value


def _check_string_list(value: Any, errors: list[str], *, min_len: int = 0) -> list[str] | None:
    if not isinstance(value, list):
        errors.append(f"Expected array, received {_type_name(value)}")
        return None
    out: list[str] = []
    for item in value:
        if not isinstance(item, str):
            errors.append(f"Expected string, received {_type_name(item)}")
            continue
        item = item.strip()
        if len(item) < min_len:
            errors.append(f"String must contain at least {min_len} character(s)")
            continue
        out.append(item)
    return out


def _check_syllabus(value: Any, errors: list[str]) -> list[dict[str, Any]] | None:
    if not isinstance(value, list):
        errors.append(f"Expected array, received {_type_name(value)}")
        return None
    sections: list[dict[str, Any]] = []
    for section in value:
        if not isinstance(section, dict):
            errors.append(f"Expected object, received {_type_name(section)}")
            continue
        title = _check_text(section, "title", 1, "Section title is required", errors)
        cleaned: dict[str, Any] = {"title": title}
        if section.get("items") is not None:
            cleaned["items"] = _check_string_list(section["items"], errors, min_len=1)
        sections.append(cleaned)
    return sections


def _check_number(value: Any, errors: list[str], *, minimum: float | None = None, maximum: float | None = None) -> int | float | None:
    if not _is_number(value):
        errors.append(f"Expected number, received {_type_name(value)}")
        return None
    if minimum is not None and value < minimum:
        errors.append(f"Number must be greater than or equal to {minimum:g}")
        return None
    if maximum is not None and value > maximum:
        errors.append(f"Number must be less than or equal to {maximum:g}")
        return None
    return value


def validate_catalog_payload(payload: Any) -> tuple[dict[str, Any], list[str]]:
    """
    Strict validation of a (coerced) catalog payload.

    Returns (clean_data, messages). Messages are "field: message" entries in
    field order, followed by whole-object messages such as unknown keys. Every
    problem is reported, not just the first one.
    """
    if not isinstance(payload, dict):
        return {}, [f"Expected object, received {_type_name(payload)}"]

    field_errors: dict[str, list[str]] = {k: [] for k in PAYLOAD_FIELDS}
    form_errors: list[str] = []
    data: dict[str, Any] = {}

    data["name"] = _check_text(payload, "name", 2, "Name is required", field_errors["name"])
    data["img"] = _check_text(payload, "img", 1, "Image is required", field_errors["img"])
    data["duration"] = _check_text(payload, "duration", 1, "Duration is required", field_errors["duration"])
    data["desc"] = _check_text(payload, "desc", 10, "Description is too short", field_errors["desc"])

    level = payload.get("level")
    if level is None:
        data["level"] = "Beginner"
    elif level not in LEVELS:
        expected = " | ".join(f"'{lv}'" for lv in LEVELS)
        field_errors["level"].append(f"Invalid enum value. Expected {expected}, received '{level}'")
    else:
        data["level"] = level

    for key in ("skills", "perks"):
        value = payload.get(key)
        data[key] = [] if value is None else _check_string_list(value, field_errors[key])

    syllabus = payload.get("syllabus")
    data["syllabus"] = [] if syllabus is None else _check_syllabus(syllabus, field_errors["syllabus"])

    if payload.get("rating") is not None:
        data["rating"] = _check_number(payload["rating"], field_errors["rating"], minimum=0, maximum=5)
    if payload.get("students") is not None:
        data["students"] = _check_number(payload["students"], field_errors["students"], minimum=0)

    for key in ("slug", "href"):
        value = payload.get(key)
        if value is None:
            continue
        if not isinstance(value, str):
            field_errors[key].append(f"Expected string, received {_type_name(value)}")
        else:
            data[key] = value.strip()

    unknown = [k for k in payload if k not in PAYLOAD_FIELDS]
    if unknown:
        form_errors.append("Unrecognized key(s) in object: " + ", ".join(f"'{k}'" for k in unknown))

    messages = [f"{k}: {m}" for k in PAYLOAD_FIELDS for m in field_errors[k]]
    messages.extend(form_errors)
    return data, messages


# ---------- Writer ----------
def create_catalog_entity(
    s: "Session",
    kind: str,
    raw: Any,
    actor: "User | None",
    *,
    max_attempts: int = DEFAULT_SLUG_MAX_ATTEMPTS,
) -> CatalogEntityMixin:
    """
    Coerce, validate, derive slug/href and insert one catalog entity.

    Raises ValidationError (nothing written), ConflictError (insert lost a
    slug race) or SlugExhausted. Exactly one insert is attempted; callers
    retry conflicts themselves.
    """
    model = catalog_model(kind)

    data, errors = validate_catalog_payload(coerce_catalog_payload(raw))
    if errors:
        raise ValidationError.from_messages(errors)

    # An explicitly supplied slug is only a starting point; it is still normalised and de-duplicated.
    base = slugify(data.get("slug")) or slugify(data["name"])
    if not base:
        raise ValidationError("Name cannot be empty")
    slug = ensure_unique_slug(s, model, base, max_attempts=max_attempts)
    href = f"/{model.KIND}/{slug}"

    now = datetime.utcnow()
    entity = model(
        name=data["name"],
        image=data["img"],
        duration=data["duration"],
        level=data["level"],
        description=data["desc"],
        skills=data["skills"],
        perks=data["perks"],
        syllabus=data["syllabus"],
        rating=data.get("rating"),
        students=data.get("students"),
        slug=slug,
        href=href,
        created_at=now,
        updated_at=now,
        created_by_user_id=actor.id if actor else None,
    )
    s.add(entity)
    try:
        s.flush()
    except IntegrityError as e:
        s.rollback()
        fields = unique_violation_fields(e)
        if fields is None:
            raise
        raise ConflictError(fields) from e

    record_event(
        s,
        actor=actor,
        action="catalog.create",
        entity_type=model.__name__,
        entity_id=str(entity.id),
        metadata={"name": entity.name, "slug": entity.slug, "kind": model.KIND},
    )
    return entity


# ---------- Reads ----------
def list_catalog_entities(s: "Session", kind: str) -> list[CatalogEntityMixin]:
    """Newest first."""
    model = catalog_model(kind)
    return s.query(model).order_by(model.created_at.desc(), model.id.desc()).all()


def get_catalog_entity_by_slug(s: "Session", kind: str, slug: str) -> CatalogEntityMixin:
    model = catalog_model(kind)
    entity = s.query(model).filter(model.slug == slug).one_or_none()
    if entity is None:
        raise NotFound(f"No {kind} with slug '{slug}'")
    return entity


def catalog_slug_exists(s: "Session", kind: str, slug: str) -> bool:
    model = catalog_model(kind)
    return s.query(model.id).filter(model.slug == slug).first() is not None
