# pixhub_app/blueprints/partners.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from flask import Blueprint, request, jsonify, current_app

from ..decorators import current_user, merchant_required
from ..errors import NotFoundError
from ..services.partners import onboard_partner, sync_partners
from ..services.subaccounts import dispatch
from ..services.woovi import subaccount_gateway

bp = Blueprint("partners", __name__, url_prefix="/api")


def _merchant():
    user = current_user()
    if not user:
        raise NotFoundError("Lojista não encontrado")
    return user


@bp.route("/subaccounts", methods=["POST"])
@merchant_required
def subaccounts():
    body = request.get_json(silent=True) or {}
    data = dispatch(subaccount_gateway(), body)
    current_app.logger.info("Ação de subconta %s concluída", body.get("action"))
    return jsonify({"success": True, "data": data})


@bp.route("/partners", methods=["POST"])
@merchant_required
def create_partner():
    return jsonify(onboard_partner(_merchant(), request.get_json(silent=True) or {})), 201


@bp.route("/partners/sync", methods=["POST"])
@merchant_required
def sync():
    return jsonify(sync_partners(_merchant()))
