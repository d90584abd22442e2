# pixhub_app/blueprints/webhooks.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from flask import Blueprint, request, jsonify, current_app

from ..errors import NotFoundError, ValidationError
from ..services.reconciler import parse_event, reconcile

bp = Blueprint("webhooks", __name__, url_prefix="/webhooks")


@bp.route("/woovi", methods=["GET", "HEAD", "POST"])
def woovi():
    # handshake de cadastro do webhook na Woovi: GET/HEAD ou POST sem corpo JSON
    if request.method != "POST":
        return jsonify({"received": True, "handled": False})
    payload = request.get_json(silent=True)
    if not payload or not isinstance(payload, dict):
        return jsonify({"received": True, "handled": False})

    event = parse_event(payload)
    if event is None:
        current_app.logger.info("Evento Woovi ignorado: %s", payload.get("event"))
        return jsonify({"received": True, "handled": False})

    try:
        result = reconcile(event)
    except ValidationError as e:
        return jsonify({"error": e.message}), 400
    except NotFoundError as e:
        return jsonify({"error": e.message, "correlationId": event.correlation_id}), 404
    return jsonify(result.as_response())
