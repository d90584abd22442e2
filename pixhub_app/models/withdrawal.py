# pixhub_app/models/withdrawal.py
from __future__ import annotations
from datetime import datetime
from ..extensions import db

# pending/processing reservam saldo; nenhum saque é apagado
RESERVING_STATUSES = ("pending", "processing")


class Withdrawal(db.Model):
    __tablename__ = "withdrawals"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), index=True, nullable=False)
    partner_id = db.Column(db.Integer, db.ForeignKey("split_partners.id"), index=True, nullable=True)  # null => saque do lojista
    recipient_name = db.Column(db.String(180), nullable=False)
    document = db.Column(db.String(20), default="")
    pix_key = db.Column(db.String(140), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    fee = db.Column(db.Numeric(12, 2), nullable=False)
    total = db.Column(db.Numeric(12, 2), nullable=False)   # amount - fee
    status = db.Column(db.String(20), nullable=False, default="pending", index=True)  # pending, processing, completed, failed
    provider_response = db.Column(db.JSON)
    error_message = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "partner_id": self.partner_id,
            "recipient_name": self.recipient_name,
            "document": self.document,
            "pix_key": self.pix_key,
            "amount": float(self.amount),
            "fee": float(self.fee),
            "total": float(self.total),
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
