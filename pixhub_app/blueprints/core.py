# pixhub_app/blueprints/core.py
from __future__ import annotations
from flask import Blueprint, current_app, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db

bp = Blueprint("core", __name__)


@bp.route("/health")
def health():
    try:
        db.session.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        current_app.logger.error("Health: banco indisponível: %s", e)
        database = "error"
    status = 200 if database == "ok" else 503
    return jsonify({
        "status": "ok" if status == 200 else "degraded",
        "database": database,
        "started_at": current_app.config.get("STARTED_AT"),
    }), status
