# pixhub_app/services/charges.py
# -*- coding: utf-8 -*-
"""
Criação de cobranças PIX (lojista autenticado, pública e produto de parceiro).

Fluxo comum às três variantes:
  1) resolve dono, taxa e split
  2) grava ChargeIntent 'requested' (commit) ANTES de chamar a Woovi
  3) POST /charge
       - erro do provedor  -> intent 'failed', nenhum registro local
       - timeout           -> intent continua 'requested' (o sweep consulta a Woovi depois)
  4) intent 'provider_ok' com a resposta
  5) registros locais (Transaction -> PixCharge, ou PartnerTransaction) -> intent 'fulfilled'
     falha aqui = PersistenceError (500) com as referências que já existem no provedor
"""
from __future__ import annotations

import re
import time
import uuid
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from fees import compute_splits, fee_breakdown, parse_amount, to_cents, D
from ..errors import (
    CredentialError, NotFoundError, PersistenceError, ProviderError, ProviderTimeout, ValidationError,
)
from ..extensions import db
from ..models import (
    ApiCredential, ChargeIntent, FeeConfig, PartnerProduct, PartnerTransaction, PixCharge,
    SplitPartner, Transaction, User,
)
from ..models.charge_intent import INTENT_FAILED, INTENT_FULFILLED, INTENT_PROVIDER_OK
from ..models.user import ROLE_MERCHANT
from .woovi import WooviClient, charge_of, parse_provider_datetime


class ChargeVariant(str, Enum):
    MERCHANT = "merchant"
    PUBLIC = "public"
    PARTNER = "partner"


NAMESPACE_MERCHANT = "merchant"
NAMESPACE_PARTNER = "partner"


@dataclass(frozen=True)
class VariantPolicy:
    correlation_prefix: str
    # chave de config que liga o corte de split >= valor; None => variante sem split
    split_cap_flag: Optional[str]
    merchant_credential: bool
    namespace: str


POLICIES: Dict[ChargeVariant, VariantPolicy] = {
    ChargeVariant.MERCHANT: VariantPolicy("pix_", "SPLIT_CAP_MERCHANT_CHARGE", False, NAMESPACE_MERCHANT),
    ChargeVariant.PUBLIC: VariantPolicy("pix_pub_", "SPLIT_CAP_PUBLIC_CHARGE", False, NAMESPACE_MERCHANT),
    ChargeVariant.PARTNER: VariantPolicy("pix_ptn_", None, True, NAMESPACE_PARTNER),
}


def _digits(value) -> str:
    return re.sub(r"\D", "", str(value or ""))


def _clean(value) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


@dataclass
class Customer:
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    tax_id: Optional[str] = None

    @classmethod
    def from_body(cls, body: Dict[str, Any]) -> "Customer":
        nested = body.get("customer") if isinstance(body.get("customer"), dict) else {}
        return cls(
            name=_clean(body.get("customerName") or nested.get("name")),
            email=_clean(body.get("customerEmail") or nested.get("email")),
            phone=_clean(body.get("customerPhone") or nested.get("phone")),
            tax_id=_clean(body.get("customerTaxId") or nested.get("taxId") or nested.get("document")),
        )

    def as_provider(self) -> Optional[Dict[str, str]]:
        """Bloco customer da Woovi; None quando não há identificador (nome sozinho não basta)."""
        block: Dict[str, str] = {}
        if self.email:
            block["email"] = self.email
        phone = _digits(self.phone)
        if len(phone) >= 10:
            block["phone"] = phone
        tax_id = _digits(self.tax_id)
        if len(tax_id) >= 11:
            block["taxID"] = tax_id
        if not block:
            return None
        block["name"] = self.name or "Cliente"
        return block


@dataclass
class ChargeRequest:
    amount: Decimal
    customer: Customer
    order_id: Optional[str]
    expires_in: int
    description: Optional[str] = None


def parse_charge_request(body: Dict[str, Any]) -> ChargeRequest:
    if not isinstance(body, dict):
        raise ValidationError("Corpo JSON inválido")
    amount = parse_amount(body.get("amount"))
    if amount is None:
        raise ValidationError("amount é obrigatório e deve ser um valor positivo com até 2 casas decimais")

    expires_in = body.get("expiresIn")
    if expires_in in (None, ""):
        expires_in = current_app.config["DEFAULT_CHARGE_EXPIRES_IN"]
    elif isinstance(expires_in, bool):
        raise ValidationError("expiresIn deve ser um inteiro positivo (segundos)")
    else:
        try:
            expires_in = int(expires_in)
        except (TypeError, ValueError):
            raise ValidationError("expiresIn deve ser um inteiro positivo (segundos)")
    if expires_in <= 0:
        raise ValidationError("expiresIn deve ser um inteiro positivo (segundos)")

    order_id = _clean(body.get("orderId"))
    return ChargeRequest(
        amount=amount,
        customer=Customer.from_body(body),
        order_id=order_id[:120] if order_id else None,
        expires_in=expires_in,
        description=_clean(body.get("description") or body.get("productName")),
    )


def new_correlation_id(variant: ChargeVariant) -> str:
    prefix = POLICIES[variant].correlation_prefix
    return f"{prefix}{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


def _payment_link(charge: Dict[str, Any], correlation_id: str) -> Optional[str]:
    if charge.get("paymentLinkUrl"):
        return charge["paymentLinkUrl"]
    base = current_app.config.get("PAYMENT_LINK_BASE_URL")
    if base:
        return f"{base.rstrip('/')}/{correlation_id}"
    return None


# ---------------------------------------------------------------------
# Resolução de dono/parceiro
# ---------------------------------------------------------------------
def _active_merchant(merchant_id) -> User:
    try:
        merchant_id = int(merchant_id)
    except (TypeError, ValueError):
        raise NotFoundError("Lojista não encontrado")
    user = db.session.get(User, merchant_id)
    if not user or user.role != ROLE_MERCHANT or user.status != "active":
        raise NotFoundError("Lojista não encontrado")
    return user


def _split_lines(merchant: User, fee_cfg: FeeConfig, amount: Decimal, variant: ChargeVariant):
    policy = POLICIES[variant]
    if policy.split_cap_flag is None or not fee_cfg.split_enabled:
        return []
    partners = (SplitPartner.query
                .filter_by(user_id=merchant.id, status="active")
                .order_by(SplitPartner.id.asc())
                .all())
    if not partners:
        return []
    cap = bool(current_app.config.get(policy.split_cap_flag))
    lines = compute_splits(partners, to_cents(amount), cap_at_amount=cap)
    current_app.logger.info("Split calculado: %s parceiro(s) (cap=%s)", len(lines), cap)
    return lines


# ---------------------------------------------------------------------
# Registros locais (também usados pelo backfill da reconciliação)
# ---------------------------------------------------------------------
def _provider_fields(intent: ChargeIntent) -> Dict[str, Any]:
    data = intent.provider_response or {}
    charge = charge_of(data)
    req = intent.request_json or {}
    fallback_expiry = parse_provider_datetime(req.get("expires_at"))
    return {
        "charge_id": charge.get("transactionID") or charge.get("identifier") or charge.get("globalID"),
        "pix_code": charge.get("brCode") or data.get("brCode"),
        "qr_code": charge.get("qrCodeImage"),
        "expires_at": parse_provider_datetime(charge.get("expiresDate")) or fallback_expiry,
    }


def _build_transaction(intent: ChargeIntent) -> Transaction:
    req = intent.request_json
    cust = req.get("customer") or {}
    prov = _provider_fields(intent)
    return Transaction(
        user_id=intent.user_id,
        order_id=req["order_id"],
        amount=D(req["amount"]),
        fee=D(req["fee"]),
        net_amount=D(req["net_amount"]),
        payment_method="pix",
        status="pending",
        customer_name=cust.get("name"),
        customer_email=cust.get("email"),
        customer_phone=cust.get("phone"),
        customer_tax_id=cust.get("tax_id"),
        pix_code=prov["pix_code"],
        pix_qr_code=prov["qr_code"],
    )


def _build_pix_charge(intent: ChargeIntent, tx: Transaction) -> PixCharge:
    prov = _provider_fields(intent)
    return PixCharge(
        user_id=intent.user_id,
        transaction_id=tx.id,
        woovi_charge_id=prov["charge_id"],
        woovi_correlation_id=intent.correlation_id,
        amount=tx.amount,
        status="ACTIVE",
        pix_code=prov["pix_code"],
        qr_code_base64=prov["qr_code"],
        expires_at=prov["expires_at"],
    )


def _build_partner_transaction(intent: ChargeIntent) -> PartnerTransaction:
    req = intent.request_json
    cust = req.get("customer") or {}
    prov = _provider_fields(intent)
    return PartnerTransaction(
        partner_id=intent.partner_id,
        product_id=intent.product_id,
        amount=D(req["amount"]),
        fee=D(req["fee"]),
        net_amount=D(req["net_amount"]),
        customer_name=cust.get("name"),
        customer_email=cust.get("email"),
        customer_phone=cust.get("phone"),
        customer_document=cust.get("tax_id"),
        status="pending",
        woovi_charge_id=prov["charge_id"],
        woovi_correlation_id=intent.correlation_id,
        pix_code=prov["pix_code"],
        qr_code_base64=prov["qr_code"],
        expires_at=prov["expires_at"],
    )


def materialize_intent(intent: ChargeIntent) -> Dict[str, Any]:
    """
    Grava o que falta localmente para um intent aceito pelo provedor e marca 'fulfilled'.
    Idempotente: reaproveita Transaction/PixCharge/PartnerTransaction já existentes.
    Cada escrita é commitada separadamente (Transaction sobrevive a falha da PixCharge).
    """
    if POLICIES[ChargeVariant(intent.variant)].namespace == NAMESPACE_PARTNER:
        ptx = PartnerTransaction.query.filter_by(woovi_correlation_id=intent.correlation_id).first()
        if ptx is None:
            ptx = _build_partner_transaction(intent)
            db.session.add(ptx)
            db.session.commit()
        intent.status = INTENT_FULFILLED
        db.session.commit()
        return {"partner_transaction": ptx}

    tx = db.session.get(Transaction, intent.transaction_id) if intent.transaction_id else None
    if tx is None:
        tx = _build_transaction(intent)
        db.session.add(tx)
        db.session.flush()
        intent.transaction_id = tx.id
        db.session.commit()

    pc = PixCharge.query.filter_by(woovi_correlation_id=intent.correlation_id).first()
    if pc is None:
        pc = _build_pix_charge(intent, tx)
        db.session.add(pc)
        db.session.commit()

    intent.status = INTENT_FULFILLED
    db.session.commit()
    return {"transaction": tx, "pix_charge": pc}


# ---------------------------------------------------------------------
# Esqueleto comum
# ---------------------------------------------------------------------
def _execute(
    variant: ChargeVariant,
    merchant: User,
    req: ChargeRequest,
    fee_cfg: FeeConfig,
    client: WooviClient,
    *,
    partner: Optional[SplitPartner] = None,
    product: Optional[PartnerProduct] = None,
) -> Dict[str, Any]:
    log = current_app.logger
    breakdown = fee_breakdown(req.amount, fee_cfg.pix_in_percentage, fee_cfg.pix_in_fixed)
    splits = _split_lines(merchant, fee_cfg, req.amount, variant)
    correlation_id = new_correlation_id(variant)
    order_id = req.order_id or f"ORD-{int(time.time() * 1000)}"
    expires_at = datetime.utcnow() + timedelta(seconds=req.expires_in)

    if product is not None:
        comment = f"Pagamento: {product.name}"
    else:
        comment = req.description or f"Pagamento {req.order_id or correlation_id}"

    payload: Dict[str, Any] = {
        "correlationID": correlation_id,
        "value": breakdown.amount_cents,
        "comment": comment,
        "expiresIn": req.expires_in,
    }
    customer_block = req.customer.as_provider()
    if customer_block:
        payload["customer"] = customer_block
    if splits:
        payload["splits"] = [s.as_provider_split() for s in splits]
    if partner is not None:
        payload["destination"] = partner.destination

    intent = ChargeIntent(
        correlation_id=correlation_id,
        variant=variant.value,
        user_id=merchant.id,
        partner_id=partner.id if partner else None,
        product_id=product.id if product else None,
        request_json={
            "amount": str(breakdown.amount),
            "fee": str(breakdown.fee),
            "net_amount": str(breakdown.net_amount),
            "order_id": order_id,
            "expires_in": req.expires_in,
            "expires_at": expires_at.isoformat(),
            "customer": asdict(req.customer),
            "splits": [{"destination": s.destination, "value_cents": s.value_cents} for s in splits],
        },
    )
    db.session.add(intent)
    db.session.commit()

    log.info("Criando cobrança %s (%s) valor=%s splits=%s", correlation_id, variant.value, breakdown.amount, len(splits))
    try:
        data = client.create_charge(payload)
    except ProviderTimeout as e:
        intent.last_error = e.message
        db.session.commit()
        raise ProviderTimeout(e.message, payload={"correlationId": correlation_id}) from e
    except ProviderError as e:
        intent.status = INTENT_FAILED
        intent.last_error = e.message
        db.session.commit()
        raise

    intent.provider_response = data
    intent.status = INTENT_PROVIDER_OK
    db.session.commit()

    try:
        records = materialize_intent(intent)
    except SQLAlchemyError as e:
        db.session.rollback()
        log.exception("Cobrança %s criada na Woovi sem registro local completo", correlation_id)
        intent.last_error = str(e)[:500]
        db.session.commit()
        raise PersistenceError(
            "Cobrança criada no provedor, mas não foi possível registrá-la localmente",
            payload={"correlationId": correlation_id, "transactionId": intent.transaction_id},
        )

    charge = charge_of(data)
    prov = _provider_fields(intent)
    response: Dict[str, Any] = {
        "success": True,
        "orderId": order_id,
        "correlationId": correlation_id,
        "amount": float(breakdown.amount),
        "fee": float(breakdown.fee),
        "netAmount": float(breakdown.net_amount),
        "pixCode": prov["pix_code"],
        "qrCodeImage": prov["qr_code"],
        "expiresAt": prov["expires_at"].isoformat() if prov["expires_at"] else None,
        "paymentLinkUrl": _payment_link(charge, correlation_id),
    }
    if "partner_transaction" in records:
        ptx = records["partner_transaction"]
        response["transactionId"] = ptx.id
        response["partnerTransactionId"] = ptx.id
        response["chargeId"] = prov["charge_id"]
    else:
        response["transactionId"] = records["transaction"].id
        response["splitEnabled"] = bool(fee_cfg.split_enabled)
        response["splitsCount"] = len(splits)
    log.info("Cobrança %s registrada (transação %s)", correlation_id, response["transactionId"])
    return response


def client_for(variant: ChargeVariant, merchant_id: int) -> WooviClient:
    """Produto de parceiro usa o token Woovi do lojista; as demais variantes, a chave da plataforma."""
    if POLICIES[variant].merchant_credential:
        token = ApiCredential.active_token(merchant_id)
        if not token:
            raise CredentialError("Credenciais de API não configuradas")
        return WooviClient.from_app(api_key=token)
    return WooviClient.from_app()


def _int_id(value, message: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise NotFoundError(message)


# ---------------------------------------------------------------------
# Variantes
# ---------------------------------------------------------------------
def create_merchant_charge(merchant: User, body: Dict[str, Any]) -> Dict[str, Any]:
    req = parse_charge_request(body)
    fee_cfg = FeeConfig.for_user(merchant.id)
    client = client_for(ChargeVariant.MERCHANT, merchant.id)
    return _execute(ChargeVariant.MERCHANT, merchant, req, fee_cfg, client)


def create_public_charge(body: Dict[str, Any]) -> Dict[str, Any]:
    req = parse_charge_request(body)
    merchant_id = body.get("merchantId")
    if merchant_id in (None, ""):
        raise ValidationError("merchantId é obrigatório")
    merchant = _active_merchant(merchant_id)
    fee_cfg = FeeConfig.for_user(merchant.id)
    client = client_for(ChargeVariant.PUBLIC, merchant.id)
    return _execute(ChargeVariant.PUBLIC, merchant, req, fee_cfg, client)


def create_partner_charge(body: Dict[str, Any]) -> Dict[str, Any]:
    partner_id, product_id = body.get("partnerId"), body.get("productId")
    if partner_id in (None, "") or product_id in (None, ""):
        raise ValidationError("partnerId e productId são obrigatórios")
    req = parse_charge_request(body)

    partner = SplitPartner.query.filter_by(
        id=_int_id(partner_id, "Parceiro não encontrado"), status="active").first()
    if not partner:
        raise NotFoundError("Parceiro não encontrado")
    product = PartnerProduct.query.filter_by(
        id=_int_id(product_id, "Produto não encontrado"), partner_id=partner.id, status="active").first()
    if not product:
        raise NotFoundError("Produto não encontrado")
    merchant = db.session.get(User, partner.user_id)
    if not merchant:
        raise NotFoundError("Lojista não encontrado")

    client = client_for(ChargeVariant.PARTNER, merchant.id)
    fee_cfg = FeeConfig.for_user(merchant.id)
    return _execute(ChargeVariant.PARTNER, merchant, req, fee_cfg, client, partner=partner, product=product)
