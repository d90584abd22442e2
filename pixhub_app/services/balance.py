# pixhub_app/services/balance.py
# -*- coding: utf-8 -*-
"""
Saldos calculados na leitura (não existe saldo em cache).

Lojista:  disponível = Σ net_amount aprovadas − sacado − reservado
Parceiro: disponível = Σ comissões − sacado − saques pendentes
Saque debita `amount` (a taxa de saque também sai do saldo).
"""
from __future__ import annotations
from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import Dict

from sqlalchemy import func

from fees import commission, q2, D
from ..extensions import db
from ..models import SplitPartner, Transaction, Withdrawal
from ..models.withdrawal import RESERVING_STATUSES

CANCELLED_STATUSES = ("cancelled", "refunded", "expired")


def _money_dict(obj) -> Dict[str, float]:
    return {k: float(v) for k, v in asdict(obj).items()}


@dataclass
class MerchantBalance:
    approved_gross: Decimal
    approved_net: Decimal
    pending_amount: Decimal
    cancelled_amount: Decimal
    total_withdrawn: Decimal
    reserved: Decimal
    available: Decimal

    def as_dict(self) -> Dict[str, float]:
        return _money_dict(self)


@dataclass
class PartnerBalance:
    total_earned: Decimal
    total_withdrawn: Decimal
    pending_withdrawals: Decimal
    available_balance: Decimal

    def as_dict(self) -> Dict[str, float]:
        return _money_dict(self)


def _withdrawal_totals(query) -> tuple:
    rows = (query.with_entities(Withdrawal.status, func.sum(Withdrawal.amount))
            .group_by(Withdrawal.status).all())
    by_status = {status: q2(total) for status, total in rows}
    withdrawn = by_status.get("completed", Decimal("0.00"))
    reserved = q2(sum((by_status.get(s, Decimal("0")) for s in RESERVING_STATUSES), Decimal("0")))
    return withdrawn, reserved


def merchant_balance(user_id: int) -> MerchantBalance:
    rows = (db.session.query(Transaction.status,
                             func.sum(Transaction.amount),
                             func.sum(Transaction.net_amount))
            .filter(Transaction.user_id == user_id)
            .group_by(Transaction.status)
            .all())
    gross = {status: q2(a) for status, a, _ in rows}
    net = {status: q2(n) for status, _, n in rows}

    approved_net = net.get("approved", Decimal("0.00"))
    cancelled = q2(sum((gross.get(s, Decimal("0")) for s in CANCELLED_STATUSES), Decimal("0")))
    withdrawn, reserved = _withdrawal_totals(
        Withdrawal.query.filter(Withdrawal.user_id == user_id, Withdrawal.partner_id.is_(None)))

    return MerchantBalance(
        approved_gross=gross.get("approved", Decimal("0.00")),
        approved_net=approved_net,
        pending_amount=gross.get("pending", Decimal("0.00")),
        cancelled_amount=cancelled,
        total_withdrawn=withdrawn,
        reserved=reserved,
        available=q2(approved_net - withdrawn - reserved),
    )


def partner_earnings(partner: SplitPartner) -> Decimal:
    """Comissão sobre o líquido de cada venda aprovada do lojista desde o vínculo do parceiro."""
    query = Transaction.query.filter(Transaction.user_id == partner.user_id, Transaction.status == "approved")
    since = partner.earnings_since
    if since is not None:
        query = query.filter(Transaction.created_at >= since)
    total = Decimal("0")
    for (net_amount,) in query.with_entities(Transaction.net_amount).all():
        total += commission(partner.split_type, partner.split_value, D(net_amount))
    return q2(total)


def partner_balance(partner: SplitPartner) -> PartnerBalance:
    earned = partner_earnings(partner)
    withdrawn, pending = _withdrawal_totals(Withdrawal.query.filter(Withdrawal.partner_id == partner.id))
    return PartnerBalance(
        total_earned=earned,
        total_withdrawn=withdrawn,
        pending_withdrawals=pending,
        available_balance=q2(earned - withdrawn - pending),
    )
