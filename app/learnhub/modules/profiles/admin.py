from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from app.learnhub.db import db_session
from app.learnhub.errors import AppError
from app.learnhub.modules.profiles.service import get_profile, save_profile

bp = Blueprint("profiles", __name__)


@bp.get("/profile")
def profile_get():
    return jsonify(get_profile(getattr(g, "current_user", None)))


@bp.post("/profile")
def profile_save():
    s = db_session()
    user = getattr(g, "current_user", None)
    try:
        save_profile(s, user, request.get_json(silent=True))
        s.commit()
    except AppError:
        s.rollback()
        raise
    except Exception:
        s.rollback()
        current_app.logger.exception("Save profile error (user_id=%s request_id=%s)", getattr(user, "id", None), getattr(g, "request_id", None))
        return jsonify({"error": "Server error"}), 500
    return jsonify({"ok": True})
