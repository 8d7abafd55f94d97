from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from app.learnhub.db import db_session
from app.learnhub.modules.enrollments.service import submit_enrollment
from app.learnhub.modules.enrollments.utils import build_success_url

bp = Blueprint("enrollments", __name__)


@bp.post("/enrollments")
def enrollments_create():
    s = db_session()
    enrollment = submit_enrollment(
        s,
        request.get_json(silent=True),
        getattr(g, "current_user", None),
        default_currency=current_app.config.get("DEFAULT_CURRENCY", "INR"),
    )
    s.commit()

    current_app.logger.info(
        "Enrollment %s submitted (%s/%s, %s %s)",
        enrollment.id,
        enrollment.course_type,
        enrollment.course_slug,
        enrollment.amount,
        enrollment.currency,
    )
    return jsonify(
        {
            "enrollment": enrollment.to_dict(),
            "redirect": build_success_url(enrollment.course_type, enrollment.course_slug),
        }
    ), 201
