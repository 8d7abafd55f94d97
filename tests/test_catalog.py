"""Tests for catalog entity creation, slug allocation and listing."""
from datetime import datetime

import pytest

from app.learnhub import create_app
from app.learnhub.db import session_scope
from app.learnhub.errors import SlugExhausted, ValidationError
from app.learnhub.models import AuditEvent, Base
from app.learnhub.modules.catalog import service as catalog_service
from app.learnhub.modules.catalog.models import Hackathon, SkillPath
from app.learnhub.modules.catalog.service import (
    coerce_catalog_payload,
    create_catalog_entity,
    ensure_unique_slug,
    validate_catalog_payload,
)

CSRF = "test-csrf-token"


def _payload(**overrides):
    data = {
        "name": "Web Dev 101",
        "img": "/images/web-dev.png",
        "duration": "12 weeks",
        "desc": "Learn HTML, CSS and JavaScript from scratch.",
    }
    data.update(overrides)
    return data


def _add_skillpath(s, slug: str) -> SkillPath:
    now = datetime.utcnow()
    sp = SkillPath(
        name=slug,
        image="x.png",
        duration="1 week",
        level="Beginner",
        description="placeholder description",
        skills=[],
        perks=[],
        syllabus=[],
        slug=slug,
        href=f"/skillpath/{slug}",
        created_at=now,
        updated_at=now,
    )
    s.add(sp)
    s.flush()
    return sp


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)
    return app


@pytest.fixture()
def client(app):
    c = app.test_client()
    with c.session_transaction() as sess:
        sess["csrf_token"] = CSRF
    return c


def _post(client, collection, payload):
    return client.post(f"/catalog/{collection}", json=payload, headers={"X-CSRF-Token": CSRF})


# ---------- HTTP ----------
def test_list_empty_no_store(client):
    r = client.get("/catalog/skillpaths")
    assert r.status_code == 200
    assert r.json == []
    assert r.headers["Cache-Control"] == "no-store"


def test_unknown_collection_404(client):
    assert client.get("/catalog/widgets").status_code == 404
    assert _post(client, "widgets", _payload()).status_code == 404


def test_create_skillpath(app, client):
    r = _post(client, "skillpaths", _payload())
    assert r.status_code == 201
    body = r.json
    assert body["slug"] == "web-dev-101"
    assert body["href"] == "/skillpath/web-dev-101"
    assert body["level"] == "Beginner"
    assert body["skills"] == [] and body["perks"] == [] and body["syllabus"] == []
    assert body["id"]
    assert body["createdAt"]

    with session_scope(app) as s:
        assert s.query(SkillPath).count() == 1
        ev = s.query(AuditEvent).filter(AuditEvent.action == "catalog.create").one()
        assert ev.entity_type == "SkillPath"
        assert ev.request_id


def test_create_hackathon_uses_its_own_type_segment(client):
    r = _post(client, "hackathons", _payload(name="Café Hack! 2024"))
    assert r.status_code == 201
    assert r.json["href"] == "/hackathon/cafe-hack-2024"


def test_same_name_gets_suffixed_slug(client):
    first = _post(client, "skillpaths", _payload())
    second = _post(client, "skillpaths", _payload())
    third = _post(client, "skillpaths", _payload())
    assert first.json["slug"] == "web-dev-101"
    assert second.json["slug"] == "web-dev-101-2"
    assert third.json["slug"] == "web-dev-101-3"
    assert third.json["href"] == "/skillpath/web-dev-101-3"


def test_slugs_are_per_collection(client):
    a = _post(client, "skillpaths", _payload())
    b = _post(client, "hackathons", _payload())
    assert a.json["slug"] == b.json["slug"] == "web-dev-101"


def test_form_shapes_are_coerced(client):
    r = _post(
        client,
        "skillpaths",
        _payload(skills="HTML, CSS,, JS ", perks="Certificate", rating="4.5", students="120"),
    )
    assert r.status_code == 201
    assert r.json["skills"] == ["HTML", "CSS", "JS"]
    assert r.json["perks"] == ["Certificate"]
    assert r.json["rating"] == 4.5
    assert r.json["students"] == 120


def test_fractional_students_are_stored(client):
    r = _post(client, "hackathons", _payload(students=1.5))
    assert r.status_code == 201
    assert r.json["students"] == 1.5

    r = _post(client, "hackathons", _payload(name="Other Hack", students=-1))
    assert r.status_code == 400
    assert r.json["error"] == "students: Number must be greater than or equal to 0"


def test_syllabus_round_trip(client):
    syllabus = [{"title": " Basics ", "items": ["HTML", "CSS"]}, {"title": "Projects"}]
    r = _post(client, "skillpaths", _payload(syllabus=syllabus, level="Advanced"))
    assert r.status_code == 201
    assert r.json["syllabus"] == [{"title": "Basics", "items": ["HTML", "CSS"]}, {"title": "Projects"}]
    assert r.json["level"] == "Advanced"


def test_short_description_rejected(app, client):
    for _ in range(2):
        r = _post(client, "skillpaths", _payload(desc="too short"))
        assert r.status_code == 400
        assert "desc: Description is too short" in r.json["error"]
    with session_scope(app) as s:
        assert s.query(SkillPath).count() == 0


def test_errors_are_aggregated(client):
    r = _post(client, "skillpaths", {"name": "x", "desc": "short", "rating": 9, "bogus": 1})
    assert r.status_code == 400
    assert r.json["error"] == (
        "name: Name is required; "
        "img: Required; "
        "duration: Required; "
        "desc: Description is too short; "
        "rating: Number must be less than or equal to 5; "
        "Unrecognized key(s) in object: 'bogus'"
    )


def test_non_object_body_rejected(client):
    r = client.post("/catalog/skillpaths", data="nope", headers={"X-CSRF-Token": CSRF, "Content-Type": "text/plain"})
    assert r.status_code == 400
    assert r.json["error"] == "Expected object, received null"


def test_name_without_usable_characters(client):
    r = _post(client, "skillpaths", _payload(name="!!!"))
    assert r.status_code == 400
    assert r.json["error"] == "Name cannot be empty"


def test_client_href_is_ignored_and_slug_is_checked(client):
    _post(client, "skillpaths", _payload(name="Other"))
    r = _post(client, "skillpaths", _payload(slug="Other", href="/evil"))
    assert r.status_code == 201
    assert r.json["slug"] == "other-2"
    assert r.json["href"] == "/skillpath/other-2"


def test_list_newest_first(client):
    _post(client, "skillpaths", _payload(name="First Path"))
    _post(client, "skillpaths", _payload(name="Second Path"))
    r = client.get("/catalog/skillpaths")
    assert [item["slug"] for item in r.json] == ["second-path", "first-path"]


def test_detail_by_slug(client):
    _post(client, "skillpaths", _payload())
    r = client.get("/catalog/skillpath/web-dev-101")
    assert r.status_code == 200
    assert r.json["name"] == "Web Dev 101"
    assert client.get("/catalog/skillpath/missing").status_code == 404
    assert client.get("/catalog/widget/web-dev-101").status_code == 404


def test_lost_slug_race_is_a_conflict(app, client, monkeypatch):
    """Two creates that both saw the slug as free: one wins, the other gets 409."""
    monkeypatch.setattr(catalog_service, "ensure_unique_slug", lambda *a, **kw: "web-dev-101")

    first = _post(client, "skillpaths", _payload())
    second = _post(client, "skillpaths", _payload())

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.json["error"] == "Duplicate value (slug). Try a different name."
    with session_scope(app) as s:
        assert [sp.slug for sp in s.query(SkillPath).all()] == ["web-dev-101"]


def test_slug_exhaustion_is_500(app, client):
    app.config["SLUG_MAX_ATTEMPTS"] = 1
    assert _post(client, "skillpaths", _payload()).status_code == 201
    r = _post(client, "skillpaths", _payload())
    assert r.status_code == 500
    assert r.json["error"] == "Internal server error"


# ---------- Service ----------
class TestEnsureUniqueSlug:
    def test_free_base_is_returned(self, app):
        with session_scope(app) as s:
            assert ensure_unique_slug(s, SkillPath, "x") == "x"

    def test_skips_taken_candidates(self, app):
        with session_scope(app) as s:
            _add_skillpath(s, "a")
            _add_skillpath(s, "a-2")
            assert ensure_unique_slug(s, SkillPath, "a") == "a-3"

    def test_exclude_id_allows_own_slug(self, app):
        with session_scope(app) as s:
            sp = _add_skillpath(s, "a")
            assert ensure_unique_slug(s, SkillPath, "a", exclude_id=sp.id) == "a"

    def test_other_collection_does_not_count(self, app):
        with session_scope(app) as s:
            _add_skillpath(s, "a")
            assert ensure_unique_slug(s, Hackathon, "a") == "a"

    def test_empty_base_is_caller_error(self, app):
        with session_scope(app) as s:
            with pytest.raises(ValueError, match="name cannot be empty"):
                ensure_unique_slug(s, SkillPath, "")

    def test_exhaustion(self, app):
        with session_scope(app) as s:
            _add_skillpath(s, "a")
            _add_skillpath(s, "a-2")
            with pytest.raises(SlugExhausted):
                ensure_unique_slug(s, SkillPath, "a", max_attempts=2)


class TestCoercion:
    def test_does_not_mutate_input(self):
        raw = {"skills": "a,b", "rating": "3"}
        out = coerce_catalog_payload(raw)
        assert out == {"skills": ["a", "b"], "rating": 3}
        assert raw == {"skills": "a,b", "rating": "3"}

    def test_unparseable_number_left_for_validation(self):
        out = coerce_catalog_payload({"rating": "high", "students": ""})
        assert out == {"rating": "high", "students": ""}
        _, errors = validate_catalog_payload(_payload(**out))
        assert "rating: Expected number, received string" in errors
        assert "students: Expected number, received string" in errors

    def test_non_dict_passthrough(self):
        assert coerce_catalog_payload(["x"]) == ["x"]


class TestValidation:
    def test_defaults(self):
        data, errors = validate_catalog_payload(_payload())
        assert errors == []
        assert data["level"] == "Beginner"
        assert data["skills"] == [] and data["perks"] == [] and data["syllabus"] == []
        assert "rating" not in data and "students" not in data

    def test_strings_are_trimmed(self):
        data, errors = validate_catalog_payload(_payload(name="  Web Dev  ", skills=[" a "]))
        assert errors == []
        assert data["name"] == "Web Dev"
        assert data["skills"] == ["a"]

    def test_level_enum(self):
        _, errors = validate_catalog_payload(_payload(level="Expert"))
        assert errors == [
            "level: Invalid enum value. Expected 'Beginner' | 'Intermediate' | 'Advanced', received 'Expert'"
        ]

    def test_syllabus_section_title_required(self):
        _, errors = validate_catalog_payload(_payload(syllabus=[{"title": "  "}, {"items": ["x"]}]))
        assert errors == ["syllabus: Section title is required", "syllabus: Required"]

    def test_students_is_any_non_negative_number(self):
        _, errors = validate_catalog_payload(_payload(students=-1))
        assert errors == ["students: Number must be greater than or equal to 0"]
        data, errors = validate_catalog_payload(_payload(students=1.5))
        assert errors == []
        assert data["students"] == 1.5

    def test_booleans_are_not_numbers(self):
        _, errors = validate_catalog_payload(_payload(rating=True))
        assert errors == ["rating: Expected number, received boolean"]

    def test_create_raises_validation_error(self, app):
        with session_scope(app) as s:
            with pytest.raises(ValidationError) as exc:
                create_catalog_entity(s, "skillpath", {"name": "ok name"}, None)
        assert "img: Required" in exc.value.message
