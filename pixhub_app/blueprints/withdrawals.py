# pixhub_app/blueprints/withdrawals.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from flask import Blueprint, request, jsonify

from ..decorators import current_user, merchant_required, partner_required
from ..errors import NotFoundError
from ..models import SplitPartner
from ..services.balance import merchant_balance, partner_balance
from ..services.withdrawals import request_merchant_withdrawal, request_partner_withdrawal

bp = Blueprint("withdrawals", __name__, url_prefix="/api")


def _merchant():
    user = current_user()
    if not user:
        raise NotFoundError("Lojista não encontrado")
    return user


def _partner_profile() -> SplitPartner:
    user = current_user()
    partner = SplitPartner.query.filter_by(auth_user_id=user.id).first() if user else None
    if not partner:
        raise NotFoundError("Perfil de parceiro não encontrado")
    return partner


@bp.route("/balance")
@merchant_required
def balance():
    return jsonify({"success": True, "balance": merchant_balance(_merchant().id).as_dict()})


@bp.route("/withdrawals", methods=["POST"])
@merchant_required
def merchant_withdrawal():
    w = request_merchant_withdrawal(_merchant(), request.get_json(silent=True) or {})
    return jsonify({"success": True, "withdrawal": w.as_dict()})


@bp.route("/partner/balance")
@partner_required
def partner_balance_view():
    return jsonify({"success": True, "balance": partner_balance(_partner_profile()).as_dict()})


@bp.route("/partner/withdrawals", methods=["POST"])
@partner_required
def partner_withdrawal():
    w = request_partner_withdrawal(_partner_profile(), request.get_json(silent=True) or {})
    return jsonify({"success": True, "withdrawal": w.as_dict()})
