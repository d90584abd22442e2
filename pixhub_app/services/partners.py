# pixhub_app/services/partners.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from decimal import Decimal, InvalidOperation
from typing import Any, Dict

from flask import current_app

from fees import MAX_AMOUNT, SPLIT_FIXED, SPLIT_PERCENTAGE, q2
from ..errors import PixHubError, ValidationError
from ..extensions import db
from ..models import SplitPartner, User
from .woovi import SubaccountGateway, subaccount_gateway, subaccount_id_of


def _split_value(raw, split_type: str) -> Decimal:
    try:
        value = Decimal(str(raw).strip())
    except (InvalidOperation, AttributeError):
        raise ValidationError("splitValue inválido")
    if not value.is_finite() or value <= 0:
        raise ValidationError("splitValue deve ser maior que zero")
    if value > MAX_AMOUNT:
        raise ValidationError("splitValue acima do limite")
    if split_type == SPLIT_PERCENTAGE and value > 100:
        raise ValidationError("splitValue percentual deve ser no máximo 100")
    return q2(value)


def onboard_partner(merchant: User, body: Dict[str, Any]) -> Dict[str, Any]:
    """
    Cadastra parceiro de split. A subconta na Woovi é best-effort:
    se falhar, o parceiro fica sem woovi_subaccount_id e o split usa a chave PIX.
    """
    body = body or {}
    name = str(body.get("name") or "").strip()
    pix_key = str(body.get("pixKey") or "").strip()
    if not name or not pix_key:
        raise ValidationError("name e pixKey são obrigatórios")
    split_type = str(body.get("splitType") or SPLIT_PERCENTAGE).strip().lower()
    if split_type not in (SPLIT_PERCENTAGE, SPLIT_FIXED):
        raise ValidationError("splitType deve ser 'percentage' ou 'fixed'")
    split_value = _split_value(body.get("splitValue"), split_type)

    partner = SplitPartner(
        user_id=merchant.id,
        name=name,
        pix_key=pix_key,
        document=str(body.get("document") or "").strip() or None,
        email=str(body.get("email") or "").strip().lower() or None,
        split_type=split_type,
        split_value=split_value,
        status="active",
    )

    warning = None
    try:
        data = subaccount_gateway().create(name, pix_key)
        partner.woovi_subaccount_id = subaccount_id_of(data)
    except PixHubError as e:
        # CredentialError/ProviderError/ProviderTimeout: não bloqueia o cadastro
        warning = e.message
        current_app.logger.warning("Subconta não criada para parceiro %s: %s", name, e.message)

    db.session.add(partner)
    db.session.commit()
    current_app.logger.info("Parceiro %s cadastrado (subconta=%s)", partner.id, partner.woovi_subaccount_id)

    out: Dict[str, Any] = {
        "success": True,
        "partner": partner.as_dict(),
        "subaccountCreated": partner.woovi_subaccount_id is not None,
    }
    if warning:
        out["warning"] = warning
    return out


def _all_subaccounts(gateway: SubaccountGateway, page_size: int = 100):
    skip = 0
    while True:
        page = gateway.list(skip=skip, limit=page_size)
        yield from page
        if len(page) < page_size:
            return
        skip += page_size


def sync_partners(merchant: User) -> Dict[str, Any]:
    """Preenche woovi_subaccount_id dos parceiros do lojista casando pela chave PIX."""
    gateway = subaccount_gateway()
    by_pix_key = {}
    for sub in _all_subaccounts(gateway):
        key = (sub.get("pixKey") or "").strip()
        if key:
            by_pix_key[key] = subaccount_id_of(sub)

    partners = SplitPartner.query.filter_by(user_id=merchant.id).order_by(SplitPartner.id.asc()).all()
    updated = []
    for partner in partners:
        if partner.woovi_subaccount_id:
            continue
        sub_id = by_pix_key.get(partner.pix_key.strip())
        if sub_id:
            partner.woovi_subaccount_id = sub_id
            updated.append(partner.id)
    db.session.commit()
    current_app.logger.info("Sync de subcontas: %s parceiro(s) atualizados de %s", len(updated), len(partners))
    return {
        "success": True,
        "checked": len(partners),
        "updated": len(updated),
        "updatedPartnerIds": updated,
        "providerSubaccounts": len(by_pix_key),
    }
