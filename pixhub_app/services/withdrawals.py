# pixhub_app/services/withdrawals.py
# -*- coding: utf-8 -*-
"""
Saques (lojista e parceiro).

Checagem de saldo e reserva (INSERT do Withdrawal) acontecem na mesma transação,
com a linha do dono travada (SELECT ... FOR UPDATE): dois saques simultâneos
não passam juntos pela checagem.
"""
from __future__ import annotations
from decimal import Decimal
from typing import Any, Dict

from flask import current_app

from fees import parse_amount, q2, to_cents
from ..errors import InsufficientBalanceError, ProviderError, ProviderTimeout, ValidationError
from ..extensions import db
from ..models import FeeConfig, SplitPartner, User, Withdrawal
from .balance import merchant_balance, partner_balance
from .woovi import SubaccountGateway, subaccount_gateway


def _amount_and_fee(body: Dict[str, Any], merchant_id: int):
    amount = parse_amount((body or {}).get("amount"))
    if amount is None:
        raise ValidationError("amount é obrigatório e deve ser um valor positivo com até 2 casas decimais")
    fee = q2(FeeConfig.for_user(merchant_id).pix_out_fixed)
    if amount <= fee:
        raise ValidationError(f"O valor do saque deve ser maior que a taxa de R$ {fee}")
    return amount, fee


def _reject_if_insufficient(amount: Decimal, available: Decimal) -> None:
    if amount > available:
        db.session.rollback()
        raise InsufficientBalanceError(
            "Saldo insuficiente", payload={"availableBalance": float(available)})


def _payout(gateway: SubaccountGateway, w: Withdrawal, source: str) -> Withdrawal:
    log = current_app.logger
    if w.status != "processing":
        w.status = "processing"
        db.session.commit()

    log.info("Saque %s: retirando %s da subconta", w.id, w.total)
    try:
        data = gateway.withdraw(source, to_cents(w.total))
    except ProviderTimeout as e:
        # resultado desconhecido: continua 'processing' (reservado) até conferência manual
        log.error("Saque %s sem confirmação da Woovi (timeout)", w.id)
        raise ProviderTimeout(e.message, payload={"withdrawal": w.as_dict()}) from e
    except ProviderError as e:
        w.status = "failed"
        w.error_message = e.message
        w.provider_response = e.body if isinstance(e.body, dict) else None
        db.session.commit()
        log.warning("Saque %s falhou: %s", w.id, e.message)
        raise ProviderError(e.message, provider_status=e.provider_status, body=e.body,
                            payload={"withdrawal": w.as_dict()}) from e

    w.provider_response = data
    if w.fee and w.fee > 0:
        try:
            gateway.debit(source, to_cents(w.fee), f"Taxa de saque - ID: {w.id}")
        except (ProviderError, ProviderTimeout) as e:
            # saque já foi feito; a taxa fica pendente de cobrança
            log.warning("Débito da taxa do saque %s falhou: %s", w.id, e.message)

    w.status = "completed"
    db.session.commit()
    log.info("Saque %s concluído", w.id)
    return w


def request_merchant_withdrawal(user: User, body: Dict[str, Any]) -> Withdrawal:
    amount, fee = _amount_and_fee(body, user.id)
    source = user.payout_source
    if not source:
        raise ValidationError("Cadastre uma chave PIX ou subconta para sacar")
    gateway = subaccount_gateway()

    db.session.query(User).filter(User.id == user.id).with_for_update().one()
    balance = merchant_balance(user.id)
    _reject_if_insufficient(amount, balance.available)

    w = Withdrawal(
        user_id=user.id,
        partner_id=None,
        recipient_name=user.name,
        document=user.document or "",
        pix_key=user.pix_key or source,
        amount=amount,
        fee=fee,
        total=q2(amount - fee),
        status="pending",
    )
    db.session.add(w)
    db.session.commit()
    current_app.logger.info("Saque %s reservado para lojista %s (valor=%s taxa=%s)", w.id, user.id, amount, fee)
    return _payout(gateway, w, source)


def request_partner_withdrawal(partner: SplitPartner, body: Dict[str, Any]) -> Withdrawal:
    amount, fee = _amount_and_fee(body, partner.user_id)
    source = partner.destination
    gateway = subaccount_gateway()

    db.session.query(SplitPartner).filter(SplitPartner.id == partner.id).with_for_update().one()
    balance = partner_balance(partner)
    _reject_if_insufficient(amount, balance.available_balance)

    w = Withdrawal(
        user_id=partner.user_id,
        partner_id=partner.id,
        recipient_name=partner.name,
        document=partner.document or "",
        pix_key=partner.pix_key,
        amount=amount,
        fee=fee,
        total=q2(amount - fee),
        status="processing",
    )
    db.session.add(w)
    db.session.commit()
    current_app.logger.info("Saque %s reservado para parceiro %s (valor=%s taxa=%s)", w.id, partner.id, amount, fee)
    return _payout(gateway, w, source)
