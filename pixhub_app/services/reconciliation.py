# pixhub_app/services/reconciliation.py
# -*- coding: utf-8 -*-
"""
Sweep periódico (APScheduler / `flask reconcile-charges`):
  - intents 'provider_ok' antigos: grava o que faltou localmente
  - intents 'requested' antigos (timeout na criação): consulta a Woovi pelo correlationID
  - cobranças pendentes vencidas: expira (mesma transição condicional do webhook, sem webhooks do lojista)
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import PixHubError, ProviderError
from ..extensions import db
from ..models import ChargeIntent, PartnerTransaction, PixCharge, Transaction
from ..models.charge_intent import INTENT_FAILED, INTENT_PROVIDER_OK, INTENT_REQUESTED
from .charges import ChargeVariant, client_for, materialize_intent
from .reconciler import STATUS_EXPIRED, MerchantChargeStore, PartnerSaleStore, ProviderEvent

EXPIRY_SWEEP = "EXPIRY_SWEEP"


@dataclass
class SweepReport:
    backfilled: int = 0
    failed: int = 0
    still_pending: int = 0
    expired: int = 0


def _claim(intent: ChargeIntent, cutoff: datetime) -> bool:
    """
    Reserva o intent para este sweep: UPDATE condicional no status e no updated_at.
    Intent tocado depois do cutoff (request ainda em andamento ou outro sweep) fica de fora.
    """
    rows = (db.session.query(ChargeIntent)
            .filter(ChargeIntent.id == intent.id,
                    ChargeIntent.status == intent.status,
                    ChargeIntent.updated_at <= cutoff)
            .update({"updated_at": datetime.utcnow()}, synchronize_session=False))
    db.session.commit()
    if rows != 1:
        return False
    db.session.refresh(intent)
    return True


def _backfill(intent: ChargeIntent, report: SweepReport) -> None:
    try:
        materialize_intent(intent)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Backfill do intent %s falhou", intent.correlation_id)
        report.still_pending += 1
        return
    current_app.logger.info("Intent %s reconciliado", intent.correlation_id)
    report.backfilled += 1


def _query_provider(intent: ChargeIntent, report: SweepReport) -> None:
    try:
        client = client_for(ChargeVariant(intent.variant), intent.user_id)
        data = client.get_charge(intent.correlation_id)
    except ProviderError as e:
        intent.last_error = e.message
        if e.provider_status == 404:
            intent.status = INTENT_FAILED
            report.failed += 1
        else:
            report.still_pending += 1
        db.session.commit()
        return
    except PixHubError as e:
        intent.last_error = e.message
        db.session.commit()
        report.still_pending += 1
        return

    intent.provider_response = data
    intent.status = INTENT_PROVIDER_OK
    db.session.commit()
    _backfill(intent, report)


def _expire_pending(now: datetime, report: SweepReport) -> None:
    merchant_store, partner_store = MerchantChargeStore(), PartnerSaleStore()

    charges = (PixCharge.query.join(Transaction, PixCharge.transaction_id == Transaction.id)
               .filter(Transaction.status == "pending",
                       PixCharge.expires_at.isnot(None),
                       PixCharge.expires_at < now)
               .all())
    for charge in charges:
        event = ProviderEvent(EXPIRY_SWEEP, STATUS_EXPIRED, charge.woovi_correlation_id)
        if merchant_store.apply(charge, event, notify=False).applied:
            report.expired += 1

    sales = (PartnerTransaction.query
             .filter(PartnerTransaction.status == "pending",
                     PartnerTransaction.expires_at.isnot(None),
                     PartnerTransaction.expires_at < now)
             .all())
    for sale in sales:
        event = ProviderEvent(EXPIRY_SWEEP, STATUS_EXPIRED, sale.woovi_correlation_id)
        if partner_store.apply(sale, event, notify=False).applied:
            report.expired += 1


def reconcile_charge_intents(now: Optional[datetime] = None) -> SweepReport:
    now = now or datetime.utcnow()
    report = SweepReport()

    cutoff = now - timedelta(minutes=current_app.config["RECONCILE_STALE_MINUTES"])

    pending_backfill = (ChargeIntent.query
                        .filter(ChargeIntent.status == INTENT_PROVIDER_OK, ChargeIntent.updated_at <= cutoff)
                        .order_by(ChargeIntent.id.asc())
                        .all())
    for intent in pending_backfill:
        if _claim(intent, cutoff):
            _backfill(intent, report)

    stale = (ChargeIntent.query
             .filter(ChargeIntent.status == INTENT_REQUESTED, ChargeIntent.created_at <= cutoff)
             .order_by(ChargeIntent.id.asc())
             .all())
    for intent in stale:
        if _claim(intent, cutoff):
            _query_provider(intent, report)

    _expire_pending(now, report)
    current_app.logger.info(
        "Reconciliação: backfilled=%s failed=%s pending=%s expired=%s",
        report.backfilled, report.failed, report.still_pending, report.expired)
    return report
