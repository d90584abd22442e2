# pixhub_app/decorators.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from functools import wraps
from flask import session, jsonify

from .extensions import db
from .models.user import User, ROLE_MERCHANT, ROLE_PARTNER


def current_user() -> User | None:
    data = session.get("user")
    if not data:
        return None
    return db.session.get(User, data.get("id"))


def partner_required(view_func):
    @wraps(view_func)
    def wrapper(*args, **kwargs):
        user = session.get("user")
        if not user:
            return jsonify({"success": False, "error": "Não autenticado"}), 401
        if user.get("role") != ROLE_PARTNER:
            return jsonify({"success": False, "error": "Acesso restrito a parceiros"}), 403
        return view_func(*args, **kwargs)
    return wrapper


def merchant_required(view_func):
    @wraps(view_func)
    def wrapper(*args, **kwargs):
        user = session.get("user")
        if not user:
            return jsonify({"success": False, "error": "Não autenticado"}), 401
        if user.get("role") != ROLE_MERCHANT:
            return jsonify({"success": False, "error": "Acesso restrito a lojistas"}), 403
        return view_func(*args, **kwargs)
    return wrapper
