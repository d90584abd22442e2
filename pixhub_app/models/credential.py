# pixhub_app/models/credential.py
from __future__ import annotations
from datetime import datetime
from ..extensions import db


class ApiCredential(db.Model):
    """Token Woovi do lojista (usado nas cobranças de produto de parceiro)."""
    __tablename__ = "api_credentials"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), index=True, nullable=False)
    token = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="active")
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    @classmethod
    def active_token(cls, user_id: int) -> str | None:
        cred = (cls.query.filter_by(user_id=user_id, status="active")
                .order_by(cls.created_at.desc()).first())
        return cred.token if cred else None
