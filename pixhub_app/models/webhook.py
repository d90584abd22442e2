# pixhub_app/models/webhook.py
from __future__ import annotations
from datetime import datetime
from ..extensions import db


class MerchantWebhook(db.Model):
    __tablename__ = "webhooks"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), index=True, nullable=False)
    url = db.Column(db.String(512), nullable=False)
    events = db.Column(db.JSON, nullable=False, default=list)   # ex: ["payment_approved"]
    status = db.Column(db.String(20), nullable=False, default="active")
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def subscribes_to(self, event_name: str, status: str) -> bool:
        events = self.events or []
        return event_name in events or f"payment_{status}" in events
