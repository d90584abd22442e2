# pixhub_app/models/user.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from datetime import datetime
from ..extensions import db, bcrypt

ROLE_MERCHANT = "merchant"
ROLE_PARTNER = "partner"


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(180), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=ROLE_MERCHANT)   # merchant, partner
    status = db.Column(db.String(20), nullable=False, default="active")     # active, inactive
    # dados de saque do lojista
    pix_key = db.Column(db.String(140))
    document = db.Column(db.String(20))
    woovi_subaccount_id = db.Column(db.String(140))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def set_password(self, raw: str) -> None:
        self.password_hash = bcrypt.generate_password_hash(raw).decode("utf-8")

    def check_password(self, raw: str) -> bool:
        return bcrypt.check_password_hash(self.password_hash, raw)

    @property
    def is_merchant(self) -> bool:
        return self.role == ROLE_MERCHANT

    @property
    def payout_source(self) -> str | None:
        # a Woovi identifica a subconta pela chave PIX quando não há id próprio
        return self.woovi_subaccount_id or self.pix_key
