# pixhub_app/models/fee_config.py
from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from flask import current_app
from ..extensions import db


class FeeConfig(db.Model):
    __tablename__ = "fee_configs"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), unique=True, index=True, nullable=False)

    pix_in_percentage = db.Column(db.Numeric(6, 2), nullable=False, default=Decimal("1.40"))
    pix_in_fixed = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.80"))   # piso da taxa
    pix_out_fixed = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))  # taxa de saque
    split_enabled = db.Column(db.Boolean, nullable=False, default=False)

    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @classmethod
    def for_user(cls, user_id: int) -> "FeeConfig":
        """Config do lojista; sem registro, devolve uma transiente com os padrões do app."""
        cfg = cls.query.filter_by(user_id=user_id).first()
        if cfg:
            return cfg
        conf = current_app.config
        return cls(
            user_id=user_id,
            pix_in_percentage=Decimal(conf["DEFAULT_PIX_IN_PERCENTAGE"]),
            pix_in_fixed=Decimal(conf["DEFAULT_PIX_IN_FIXED"]),
            pix_out_fixed=Decimal(conf["DEFAULT_PIX_OUT_FIXED"]),
            split_enabled=False,
        )
