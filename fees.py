# fees.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Iterable, List, Optional

ROUND = ROUND_HALF_UP
CENT = Decimal("0.01")
# teto das colunas Numeric(12, 2)
MAX_AMOUNT = Decimal("9999999999.99")
HUNDRED = Decimal(100)

SPLIT_PERCENTAGE = "percentage"
SPLIT_FIXED = "fixed"


def D(x) -> Decimal:
    if isinstance(x, Decimal):
        return x
    if x is None:
        return Decimal("0")
    if isinstance(x, (int, float)):
        return Decimal(str(x))
    s = str(x).strip()
    # aceita "1.234,56" e "1234,56"
    if "." in s and "," in s and s.rfind(",") > s.rfind("."):
        s = s.replace(".", "").replace(",", ".")
    else:
        s = s.replace(",", ".")
    try:
        return Decimal(s or "0")
    except InvalidOperation:
        return Decimal("0")


def q2(x) -> Decimal:
    return D(x).quantize(CENT, rounding=ROUND)


def to_cents(x) -> int:
    """Valor monetário (reais) -> centavos inteiros, arredondando meio para cima."""
    return int((D(x) * HUNDRED).quantize(Decimal("1"), rounding=ROUND))


def from_cents(cents: int) -> Decimal:
    return (Decimal(int(cents)) / HUNDRED).quantize(CENT)


def _round_cents(x: Decimal) -> int:
    return int(x.quantize(Decimal("1"), rounding=ROUND))


# ---------------------------------------------------------------------
# Taxa da plataforma
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class FeeBreakdown:
    amount: Decimal
    fee: Decimal
    net_amount: Decimal

    @property
    def amount_cents(self) -> int:
        return to_cents(self.amount)


def compute_fee(amount, pct_fee, min_fixed_fee) -> Decimal:
    """
    Taxa = o MAIOR entre o percentual e o piso fixo (nunca a soma).
    Ex.: 1,40% com piso R$ 0,80 -> fee(50,00)=0,80 ; fee(100,00)=1,40
    """
    amount_cents = to_cents(amount)
    pct_cents = _round_cents(Decimal(amount_cents) * D(pct_fee) / HUNDRED)
    floor_cents = to_cents(min_fixed_fee)
    return from_cents(max(pct_cents, floor_cents))


def fee_breakdown(amount, pct_fee, min_fixed_fee) -> FeeBreakdown:
    amount_cents = to_cents(amount)
    fee = compute_fee(amount, pct_fee, min_fixed_fee)
    net_cents = amount_cents - to_cents(fee)
    return FeeBreakdown(amount=from_cents(amount_cents), fee=fee, net_amount=from_cents(net_cents))


# ---------------------------------------------------------------------
# Split entre parceiros
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class SplitLine:
    destination: str
    value_cents: int

    @property
    def value(self) -> Decimal:
        return from_cents(self.value_cents)

    def as_provider_split(self) -> dict:
        return {"pixKey": self.destination, "value": self.value_cents, "splitType": "SPLIT_SUB_ACCOUNT"}


def _get(partner: Any, *names: str, default=None):
    for name in names:
        if isinstance(partner, dict):
            if name in partner:
                return partner[name]
        elif hasattr(partner, name):
            return getattr(partner, name)
    return default


def split_value_cents(split_type: str, split_value, amount_cents: int) -> int:
    if split_type == SPLIT_PERCENTAGE:
        return _round_cents(Decimal(amount_cents) * D(split_value) / HUNDRED)
    return _round_cents(D(split_value) * HUNDRED)


def compute_splits(partners: Iterable[Any], amount_cents: int, cap_at_amount: bool = False) -> List[SplitLine]:
    """
    Linhas de split na ordem dos parceiros. Só parceiros 'active'.
    Descarta linha <= 0; com cap_at_amount também descarta linha >= valor total.
    Não valida a soma das linhas (o provedor rejeita excesso).
    """
    lines: List[SplitLine] = []
    for p in partners:
        if _get(p, "status") != "active":
            continue
        value = split_value_cents(_get(p, "split_type", "splitType"), _get(p, "split_value", "splitValue"), amount_cents)
        if value <= 0:
            continue
        if cap_at_amount and value >= amount_cents:
            continue
        lines.append(SplitLine(destination=_get(p, "pix_key", "pixKey"), value_cents=value))
    return lines


def commission(split_type: str, split_value, base_amount) -> Decimal:
    """Comissão do parceiro sobre o valor líquido de uma venda."""
    if split_type == SPLIT_PERCENTAGE:
        return q2(D(base_amount) * D(split_value) / HUNDRED)
    return q2(split_value)


def parse_amount(value) -> Optional[Decimal]:
    """Valor de entrada da API: positivo, no máximo 2 casas. None se inválido."""
    if value is None or isinstance(value, bool):
        return None
    try:
        d = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    if not d.is_finite() or d <= 0 or d > MAX_AMOUNT:
        return None
    if d != d.quantize(CENT):
        return None
    return d.quantize(CENT)
