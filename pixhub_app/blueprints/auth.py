# pixhub_app/blueprints/auth.py
# -*- coding: utf-8 -*-
from __future__ import annotations

from datetime import datetime

from flask import Blueprint, request, session, jsonify, current_app

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import SplitPartner, User
from ..models.user import ROLE_MERCHANT, ROLE_PARTNER

bp = Blueprint("auth", __name__, url_prefix="/auth")


def _session_user(u: User) -> dict:
    return {"id": u.id, "name": u.name, "email": u.email, "role": u.role}


@bp.route("/register", methods=["POST"])
def register():
    data = request.get_json(silent=True) or {}
    name = str(data.get("name") or "Usuário").strip()
    email = str(data.get("email") or "").strip().lower()
    pwd = data.get("password") or ""

    if not email or not pwd:
        raise ValidationError("Informe e-mail e senha.")
    if User.query.filter_by(email=email).first():
        raise ValidationError("E-mail já cadastrado.")

    partner = None
    if data.get("partnerId") not in (None, ""):
        try:
            partner = db.session.get(SplitPartner, int(data["partnerId"]))
        except (TypeError, ValueError):
            partner = None
        if not partner or (partner.email or "").lower() != email:
            raise NotFoundError("Convite de parceiro não encontrado para este e-mail.")
        if partner.auth_user_id:
            raise ValidationError("Parceiro já vinculado a um usuário.")

    u = User(name=name, email=email, role=ROLE_PARTNER if partner else ROLE_MERCHANT)
    if partner:
        u.pix_key = partner.pix_key
        u.document = partner.document
    else:
        u.pix_key = (data.get("pixKey") or None)
        u.document = (data.get("document") or None)
    u.set_password(pwd)
    db.session.add(u)
    db.session.flush()

    if partner:
        partner.auth_user_id = u.id
        partner.linked_at = datetime.utcnow()
    db.session.commit()
    current_app.logger.info("Usuário %s registrado (%s)", u.id, u.role)

    session["user"] = _session_user(u)
    return jsonify({"success": True, "user": _session_user(u)}), 201


@bp.route("/login", methods=["POST"])
def login():
    data = request.get_json(silent=True) or {}
    email = str(data.get("email") or "").strip().lower()
    pwd = data.get("password") or ""

    u = User.query.filter_by(email=email).first()
    if not u or not u.check_password(pwd) or u.status != "active":
        return jsonify({"success": False, "error": "Credenciais inválidas."}), 401

    session["user"] = _session_user(u)
    return jsonify({"success": True, "user": _session_user(u)})


@bp.route("/logout", methods=["POST"])
def logout():
    session.clear()
    return jsonify({"success": True})
