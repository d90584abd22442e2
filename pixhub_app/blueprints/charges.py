# pixhub_app/blueprints/charges.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from flask import Blueprint, request, jsonify

from ..decorators import current_user, merchant_required
from ..errors import NotFoundError
from ..services.charges import create_merchant_charge, create_partner_charge, create_public_charge

bp = Blueprint("charges", __name__, url_prefix="/api")


@bp.route("/charges", methods=["POST"])
@merchant_required
def merchant_charge():
    user = current_user()
    if not user:
        raise NotFoundError("Lojista não encontrado")
    return jsonify(create_merchant_charge(user, request.get_json(silent=True) or {}))


@bp.route("/public/charges", methods=["POST"])
def public_charge():
    return jsonify(create_public_charge(request.get_json(silent=True) or {}))


@bp.route("/partner/charges", methods=["POST"])
def partner_charge():
    return jsonify(create_partner_charge(request.get_json(silent=True) or {}))
