# pixhub_app/services/notifications.py
# -*- coding: utf-8 -*-
"""Entrega dos webhooks cadastrados pelo lojista. Falha por endpoint é logada e ignorada (sem retry)."""
from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional

import requests
from flask import current_app

from ..models import MerchantWebhook, Transaction

EVENT_BY_STATUS = {
    "approved": "payment_approved",
    "expired": "payment_cancelled",
    "cancelled": "payment_cancelled",
    "refunded": "payment_refunded",
}


@dataclass
class Delivery:
    url: str
    ok: bool
    status_code: Optional[int] = None
    error: Optional[str] = None


def _iso(dt) -> Optional[str]:
    return dt.isoformat() if dt else None


def build_envelope(event_name: str, tx: Transaction, status: str, paid_at=None) -> dict:
    return {
        "event": event_name,
        "data": {
            "id": tx.id,
            "order_id": tx.order_id,
            "amount": float(tx.amount),
            "status": status,
            "customer": {"name": tx.customer_name, "email": tx.customer_email},
            "created_at": _iso(tx.created_at),
            "paid_at": _iso(paid_at),
        },
    }


def fan_out(tx: Transaction, status: str, paid_at=None) -> List[Delivery]:
    event_name = EVENT_BY_STATUS.get(status)
    if not event_name:
        return []

    hooks = (MerchantWebhook.query
             .filter_by(user_id=tx.user_id, status="active")
             .order_by(MerchantWebhook.id.asc())
             .all())
    envelope = build_envelope(event_name, tx, status, paid_at)
    timeout = current_app.config.get("MERCHANT_WEBHOOK_TIMEOUT", 5)

    deliveries: List[Delivery] = []
    for hook in hooks:
        if not hook.subscribes_to(event_name, status):
            continue
        try:
            resp = requests.post(hook.url, json=envelope, timeout=timeout,
                                 headers={"Content-Type": "application/json"})
        except requests.RequestException as e:
            current_app.logger.warning("Webhook %s (%s) falhou: %s", hook.id, hook.url, e)
            deliveries.append(Delivery(hook.url, False, error=str(e)))
            continue
        ok = 200 <= resp.status_code < 300
        if ok:
            current_app.logger.info("Webhook %s entregue: %s -> %s", hook.id, event_name, hook.url)
        else:
            current_app.logger.warning("Webhook %s respondeu HTTP %s (%s)", hook.id, resp.status_code, hook.url)
        deliveries.append(Delivery(hook.url, ok, status_code=resp.status_code))
    return deliveries
