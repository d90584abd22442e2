# pixhub_app/services/subaccounts.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Tuple

from ..errors import ValidationError
from .woovi import SubaccountGateway


class SubaccountAction(str, Enum):
    CREATE = "create"
    LIST = "list"
    GET = "get"
    DELETE = "delete"
    WITHDRAW = "withdraw"
    DEBIT = "debit"
    TRANSFER = "transfer"


@dataclass(frozen=True)
class _ActionSpec:
    required: Tuple[str, ...]
    run: Callable[[SubaccountGateway, Dict[str, Any]], Any]


def _cents(body: Dict[str, Any]) -> int:
    try:
        value = int(body["value"])
    except (TypeError, ValueError):
        raise ValidationError("value deve ser um inteiro em centavos")
    if value <= 0:
        raise ValidationError("value deve ser maior que zero")
    return value


def _list_args(body: Dict[str, Any]) -> Tuple[int, int]:
    try:
        return int(body.get("skip") or 0), int(body.get("limit") or 100)
    except (TypeError, ValueError):
        raise ValidationError("skip/limit inválidos")


# tabela de despacho: uma entrada por ação do enum
ACTIONS: Dict[SubaccountAction, _ActionSpec] = {
    SubaccountAction.CREATE: _ActionSpec(
        ("name", "pixKey"), lambda gw, b: gw.create(b["name"], b["pixKey"])),
    SubaccountAction.LIST: _ActionSpec(
        (), lambda gw, b: gw.list(*_list_args(b))),
    SubaccountAction.GET: _ActionSpec(
        ("subaccountId",), lambda gw, b: gw.get(b["subaccountId"])),
    SubaccountAction.DELETE: _ActionSpec(
        ("subaccountId",), lambda gw, b: gw.delete(b["subaccountId"])),
    SubaccountAction.WITHDRAW: _ActionSpec(
        ("subaccountId", "value"), lambda gw, b: gw.withdraw(b["subaccountId"], _cents(b))),
    SubaccountAction.DEBIT: _ActionSpec(
        ("subaccountId", "value"), lambda gw, b: gw.debit(b["subaccountId"], _cents(b), b.get("description") or "")),
    SubaccountAction.TRANSFER: _ActionSpec(
        ("fromSubaccountId", "toSubaccountId", "value"),
        lambda gw, b: gw.transfer(b["fromSubaccountId"], b["toSubaccountId"], _cents(b))),
}


def parse_action(raw) -> SubaccountAction:
    if not raw:
        raise ValidationError("action é obrigatório")
    try:
        return SubaccountAction(str(raw).strip().lower())
    except ValueError:
        raise ValidationError(f"Ação desconhecida: {raw}")


def dispatch(gateway: SubaccountGateway, body: Dict[str, Any]) -> Any:
    action = parse_action(body.get("action"))
    spec = ACTIONS[action]
    missing = [f for f in spec.required if body.get(f) in (None, "")]
    if missing:
        raise ValidationError(f"{', '.join(missing)} obrigatório(s) para {action.value}")
    return spec.run(gateway, body)
