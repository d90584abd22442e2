# pixhub_app/models/charge_intent.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from datetime import datetime
from ..extensions import db

INTENT_REQUESTED = "requested"      # gravado antes da chamada ao provedor
INTENT_PROVIDER_OK = "provider_ok"  # provedor criou a cobrança; registro local pendente
INTENT_FULFILLED = "fulfilled"
INTENT_FAILED = "failed"


class ChargeIntent(db.Model):
    """Outbox das cobranças: permite reconciliar o que o provedor criou e o banco local não gravou."""
    __tablename__ = "charge_intents"

    id = db.Column(db.Integer, primary_key=True)
    correlation_id = db.Column(db.String(120), unique=True, index=True, nullable=False)
    variant = db.Column(db.String(20), nullable=False)   # merchant, public, partner
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), index=True, nullable=False)
    partner_id = db.Column(db.Integer, db.ForeignKey("split_partners.id"))
    product_id = db.Column(db.Integer, db.ForeignKey("partner_products.id"))
    # preenchido assim que a Transaction local é gravada (antes da PixCharge)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"))
    request_json = db.Column(db.JSON, nullable=False, default=dict)
    provider_response = db.Column(db.JSON)
    status = db.Column(db.String(20), nullable=False, default=INTENT_REQUESTED, index=True)
    last_error = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
