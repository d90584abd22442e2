# pixhub_app/models/partner.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from ..extensions import db


class SplitPartner(db.Model):
    __tablename__ = "split_partners"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), index=True, nullable=False)   # lojista dono
    auth_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), unique=True, nullable=True)  # login do parceiro
    name = db.Column(db.String(180), nullable=False)
    pix_key = db.Column(db.String(140), nullable=False, index=True)
    document = db.Column(db.String(20))
    email = db.Column(db.String(180))
    split_type = db.Column(db.String(20), nullable=False, default="percentage")  # percentage, fixed
    split_value = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))
    status = db.Column(db.String(20), nullable=False, default="active")          # active, inactive
    # null => split usa a chave PIX crua como destino
    woovi_subaccount_id = db.Column(db.String(140))
    linked_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    products = db.relationship("PartnerProduct", backref="partner", lazy="dynamic")

    @property
    def destination(self) -> str:
        return self.woovi_subaccount_id or self.pix_key

    @property
    def earnings_since(self) -> datetime | None:
        return self.linked_at or self.created_at

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "pix_key": self.pix_key,
            "email": self.email,
            "split_type": self.split_type,
            "split_value": float(self.split_value),
            "status": self.status,
            "woovi_subaccount_id": self.woovi_subaccount_id,
        }


class PartnerProduct(db.Model):
    __tablename__ = "partner_products"

    id = db.Column(db.Integer, primary_key=True)
    partner_id = db.Column(db.Integer, db.ForeignKey("split_partners.id"), index=True, nullable=False)
    name = db.Column(db.String(180), nullable=False)
    price = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))
    status = db.Column(db.String(20), nullable=False, default="active")
    sold_count = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
