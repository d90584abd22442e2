# pixhub_app/services/reconciler.py
# -*- coding: utf-8 -*-
"""
Reconciliação dos webhooks da Woovi.

O correlationID é procurado em dois namespaces, nesta ordem:
  1) cobranças do lojista (PixCharge + Transaction)  -> dispara webhooks do lojista
  2) vendas de parceiro (PartnerTransaction)          -> contador de vendas do produto

Toda transição é um UPDATE condicional no status atual (compare-and-set):
  approved  <- pending | expired | approved
  expired   <- pending | expired
  refunded  <- approved | refunded
Transição não aplicável (ex.: expiração depois do pagamento) não altera nada.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Optional, Protocol, Tuple

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import PartnerProduct, PartnerTransaction, PixCharge, Transaction
from .notifications import Delivery, fan_out
from .woovi import parse_provider_datetime

STATUS_APPROVED = "approved"
STATUS_EXPIRED = "expired"
STATUS_REFUNDED = "refunded"

EVENT_CHARGE_COMPLETED = "OPENPIX:CHARGE_COMPLETED"
EVENT_CHARGE_EXPIRED = "OPENPIX:CHARGE_EXPIRED"
EVENT_TRANSACTION_RECEIVED = "OPENPIX:TRANSACTION_RECEIVED"
EVENT_REFUND_RECEIVED = "OPENPIX:TRANSACTION_REFUND_RECEIVED"

# evento -> (família, status resultante)
EVENT_STATUS: Dict[str, Tuple[str, str]] = {
    EVENT_CHARGE_COMPLETED: ("charge", STATUS_APPROVED),
    EVENT_CHARGE_EXPIRED: ("charge", STATUS_EXPIRED),
    EVENT_TRANSACTION_RECEIVED: ("pix", STATUS_APPROVED),
    EVENT_REFUND_RECEIVED: ("pix", STATUS_REFUNDED),
}

ALLOWED_FROM: Dict[str, FrozenSet[str]] = {
    STATUS_APPROVED: frozenset({"pending", STATUS_EXPIRED, STATUS_APPROVED}),
    STATUS_EXPIRED: frozenset({"pending", STATUS_EXPIRED}),
    STATUS_REFUNDED: frozenset({STATUS_APPROVED, STATUS_REFUNDED}),
}

# vocabulário da Woovi espelhado na PixCharge
PROVIDER_STATUS = {
    STATUS_APPROVED: "COMPLETED",
    STATUS_EXPIRED: "EXPIRED",
    STATUS_REFUNDED: "REFUNDED",
}


@dataclass(frozen=True)
class ProviderEvent:
    name: str
    status: str
    correlation_id: Optional[str]
    paid_at: Optional[datetime] = None


@dataclass
class ReconcileResult:
    namespace: str
    correlation_id: str
    record_id: int
    status: str
    applied: bool
    deliveries: List[Delivery] = field(default_factory=list)

    def as_response(self) -> Dict[str, Any]:
        key = "transactionId" if self.namespace == "merchant" else "partnerTransactionId"
        return {
            "success": True,
            "correlationId": self.correlation_id,
            "status": self.status,
            key: self.record_id,
            "applied": self.applied,
        }


def _block(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key)
    return value if isinstance(value, dict) else {}


def parse_event(payload: Dict[str, Any]) -> Optional[ProviderEvent]:
    """
    None para evento desconhecido (reconhecido e ignorado).
    Blocos fora do formato viram vazios: sem correlationID o webhook responde 400.
    """
    name = payload.get("event")
    if not isinstance(name, str) or name not in EVENT_STATUS:
        return None
    family, status = EVENT_STATUS[name]

    if family == "charge":
        charge = _block(payload, "charge")
        correlation_id = charge.get("correlationID")
        paid_at = None
        if status == STATUS_APPROVED:
            paid_at = parse_provider_datetime(charge.get("paidAt")) or datetime.utcnow()
    else:
        pix = _block(payload, "pix")
        correlation_id = _block(pix, "charge").get("correlationID")
        paid_at = parse_provider_datetime(pix.get("time")) if status == STATUS_APPROVED else None

    if not isinstance(correlation_id, str) or not correlation_id.strip():
        correlation_id = None
    return ProviderEvent(name=name, status=status, correlation_id=correlation_id, paid_at=paid_at)


def _compare_and_set(model, record_id: int, allowed, values: Dict[str, Any]) -> bool:
    rows = (db.session.query(model)
            .filter(model.id == record_id, model.status.in_(list(allowed)))
            .update(values, synchronize_session=False))
    return rows == 1


# ---------------------------------------------------------------------
# Namespaces
# ---------------------------------------------------------------------
class Reconcilable(Protocol):
    namespace: str

    def find_by_correlation_id(self, correlation_id: str) -> Optional[Any]: ...

    def apply(self, record: Any, event: ProviderEvent, notify: bool = True) -> ReconcileResult: ...


class MerchantChargeStore:
    namespace = "merchant"

    def find_by_correlation_id(self, correlation_id: str) -> Optional[PixCharge]:
        return PixCharge.query.filter_by(woovi_correlation_id=correlation_id).first()

    def apply(self, charge: PixCharge, event: ProviderEvent, notify: bool = True) -> ReconcileResult:
        tx = charge.transaction
        target = event.status
        now = datetime.utcnow()

        applied = _compare_and_set(Transaction, tx.id, ALLOWED_FROM[target], {"status": target, "updated_at": now})
        if applied:
            values: Dict[str, Any] = {"status": PROVIDER_STATUS[target], "updated_at": now}
            if event.paid_at is not None:
                values["paid_at"] = event.paid_at
            db.session.query(PixCharge).filter(PixCharge.id == charge.id).update(values, synchronize_session=False)
        db.session.commit()
        db.session.refresh(tx)
        db.session.refresh(charge)

        result = ReconcileResult(self.namespace, charge.woovi_correlation_id, tx.id, tx.status, applied)
        if not applied:
            current_app.logger.info(
                "Transição %s ignorada para %s (status atual: %s)", target, charge.woovi_correlation_id, tx.status)
            return result

        current_app.logger.info("Transação %s -> %s (%s)", tx.id, target, event.name)
        if notify:
            result.deliveries = fan_out(tx, target, charge.paid_at)
        return result


class PartnerSaleStore:
    namespace = "partner"
    LOCAL_STATUS = {STATUS_APPROVED: "completed", STATUS_EXPIRED: "expired", STATUS_REFUNDED: "refunded"}

    def find_by_correlation_id(self, correlation_id: str) -> Optional[PartnerTransaction]:
        return PartnerTransaction.query.filter_by(woovi_correlation_id=correlation_id).first()

    def _local(self, statuses) -> set:
        return {self.LOCAL_STATUS.get(s, s) for s in statuses}

    def apply(self, sale: PartnerTransaction, event: ProviderEvent, notify: bool = True) -> ReconcileResult:
        target = self.LOCAL_STATUS[event.status]
        allowed = self._local(ALLOWED_FROM[event.status])
        values: Dict[str, Any] = {"status": target, "updated_at": datetime.utcnow()}
        if event.paid_at is not None:
            values["paid_at"] = event.paid_at

        # primeira transição (sai de outro status) x replay (já está no alvo)
        first = _compare_and_set(PartnerTransaction, sale.id, allowed - {target}, values)
        replay = not first and _compare_and_set(PartnerTransaction, sale.id, {target}, values)
        db.session.commit()
        db.session.refresh(sale)

        applied = first or replay
        result = ReconcileResult(self.namespace, sale.woovi_correlation_id, sale.id, sale.status, applied)
        if not applied:
            current_app.logger.info(
                "Transição %s ignorada para venda %s (status atual: %s)", target, sale.id, sale.status)
            return result

        current_app.logger.info("Venda de parceiro %s -> %s (%s)", sale.id, target, event.name)
        if first and target == "completed":
            self._count_sale(sale)
        return result

    def _count_sale(self, sale: PartnerTransaction) -> None:
        try:
            (db.session.query(PartnerProduct)
             .filter(PartnerProduct.id == sale.product_id)
             .update({PartnerProduct.sold_count: PartnerProduct.sold_count + 1}, synchronize_session=False))
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.warning("Não foi possível incrementar vendas do produto %s", sale.product_id)


STORES: Tuple[Reconcilable, ...] = (MerchantChargeStore(), PartnerSaleStore())


def locate(correlation_id: str) -> Optional[Tuple[Reconcilable, Any]]:
    for store in STORES:
        record = store.find_by_correlation_id(correlation_id)
        if record is not None:
            return store, record
    return None


def reconcile(event: ProviderEvent) -> ReconcileResult:
    if not event.correlation_id:
        raise ValidationError("correlationID ausente no evento")
    found = locate(event.correlation_id)
    if found is None:
        current_app.logger.warning("correlationID %s não encontrado (%s)", event.correlation_id, event.name)
        raise NotFoundError("Cobrança não encontrada", payload={"correlationId": event.correlation_id})
    store, record = found
    return store.apply(record, event)
