from __future__ import annotations

from flask import Blueprint, abort, current_app, g, jsonify, request

from app.learnhub.db import db_session
from app.learnhub.errors import AppError
from app.learnhub.modules.catalog.models import CATALOG_MODELS, COLLECTION_KINDS
from app.learnhub.modules.catalog.service import (
    create_catalog_entity,
    get_catalog_entity_by_slug,
    list_catalog_entities,
)

bp = Blueprint("catalog", __name__)


def _kind_for(collection: str) -> str:
    kind = COLLECTION_KINDS.get(collection)
    if not kind:
        abort(404)
    return kind


def _no_store(resp):
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------- List ----------
@bp.get("/catalog/<collection>")
def catalog_list(collection: str):
    kind = _kind_for(collection)
    try:
        items = list_catalog_entities(db_session(), kind)
    except Exception:
        current_app.logger.exception("[%s][GET] list failed (request_id=%s)", collection, getattr(g, "request_id", None))
        return jsonify({"error": f"Failed to fetch {collection}"}), 500
    return _no_store(jsonify([item.to_dict() for item in items]))


# ---------- Create ----------
@bp.post("/catalog/<collection>")
def catalog_create(collection: str):
    kind = _kind_for(collection)
    s = db_session()
    raw = request.get_json(silent=True)
    if isinstance(raw, dict):
        raw.pop("csrf_token", None)
    user = getattr(g, "current_user", None)

    try:
        entity = create_catalog_entity(
            s,
            kind,
            raw,
            user,
            max_attempts=current_app.config.get("SLUG_MAX_ATTEMPTS", 10_000),
        )
        s.commit()
        # Read back what storage actually holds (defaults, timestamps).
        s.refresh(entity)
    except AppError:
        s.rollback()
        raise
    except Exception:
        s.rollback()
        current_app.logger.exception("[%s][POST] create failed (request_id=%s)", collection, getattr(g, "request_id", None))
        return jsonify({"error": "Create failed"}), 500

    current_app.logger.info("Created %s slug=%s id=%s", kind, entity.slug, entity.id)
    return jsonify(entity.to_dict()), 201


# ---------- Detail ----------
@bp.get("/catalog/<kind>/<slug>")
def catalog_detail(kind: str, slug: str):
    if kind not in CATALOG_MODELS:
        abort(404)
    entity = get_catalog_entity_by_slug(db_session(), kind, slug)
    return _no_store(jsonify(entity.to_dict()))
