# pixhub_app/models/transaction.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from datetime import datetime
from ..extensions import db


class Transaction(db.Model):
    """Venda do lojista. Valor/taxa imutáveis; status só muda via webhook ou expiração."""
    __tablename__ = "transactions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), index=True, nullable=False)
    order_id = db.Column(db.String(120), index=True, nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    fee = db.Column(db.Numeric(12, 2), nullable=False)
    net_amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_method = db.Column(db.String(20), nullable=False, default="pix")
    status = db.Column(db.String(20), nullable=False, default="pending", index=True)  # pending, approved, cancelled, refunded, expired
    customer_name = db.Column(db.String(180))
    customer_email = db.Column(db.String(180))
    customer_phone = db.Column(db.String(30))
    customer_tax_id = db.Column(db.String(20))
    pix_code = db.Column(db.Text)
    pix_qr_code = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    pix_charge = db.relationship("PixCharge", backref="transaction", uselist=False)


class PixCharge(db.Model):
    """Correlação com a cobrança no provedor (1:1 com Transaction)."""
    __tablename__ = "pix_charges"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), index=True, nullable=False)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), unique=True, nullable=False)
    woovi_charge_id = db.Column(db.String(140))
    woovi_correlation_id = db.Column(db.String(120), unique=True, index=True, nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="ACTIVE")  # vocabulário Woovi: ACTIVE, COMPLETED, EXPIRED, REFUNDED
    pix_code = db.Column(db.Text)
    qr_code_base64 = db.Column(db.Text)
    expires_at = db.Column(db.DateTime)
    paid_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class PartnerTransaction(db.Model):
    """Venda de produto de parceiro: namespace separado das vendas do lojista."""
    __tablename__ = "partner_transactions"

    id = db.Column(db.Integer, primary_key=True)
    partner_id = db.Column(db.Integer, db.ForeignKey("split_partners.id"), index=True, nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("partner_products.id"), index=True, nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    fee = db.Column(db.Numeric(12, 2), nullable=False)
    net_amount = db.Column(db.Numeric(12, 2), nullable=False)
    customer_name = db.Column(db.String(180))
    customer_email = db.Column(db.String(180))
    customer_phone = db.Column(db.String(30))
    customer_document = db.Column(db.String(20))
    status = db.Column(db.String(20), nullable=False, default="pending", index=True)  # pending, completed, cancelled, expired, refunded
    woovi_charge_id = db.Column(db.String(140))
    woovi_correlation_id = db.Column(db.String(120), unique=True, index=True, nullable=False)
    pix_code = db.Column(db.Text)
    qr_code_base64 = db.Column(db.Text)
    expires_at = db.Column(db.DateTime)
    paid_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    product = db.relationship("PartnerProduct")
