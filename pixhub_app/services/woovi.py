# pixhub_app/services/woovi.py
# -*- coding: utf-8 -*-
"""
Cliente HTTP da Woovi/OpenPix.

- Uma chamada síncrona por operação, timeout limitado (WOOVI_TIMEOUT), sem retry.
- Não-2xx vira ProviderError com a mensagem do provedor sem alteração
  (error || message || "HTTP <status>").
- Timeout vira ProviderTimeout: o resultado no provedor é desconhecido.
- Nada é persistido aqui; quem chama registra o resultado.
"""
from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests
from flask import current_app

from ..errors import CredentialError, ProviderError, ProviderTimeout


class WooviClient:
    def __init__(self, api_key: str, base_url: str, timeout: float = 15):
        if not api_key:
            raise CredentialError("Credencial da Woovi não configurada")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_app(cls, api_key: Optional[str] = None) -> "WooviClient":
        conf = current_app.config
        return cls(
            api_key if api_key is not None else conf.get("WOOVI_API_KEY", ""),
            conf["WOOVI_API_BASE"],
            conf.get("WOOVI_TIMEOUT", 15),
        )

    # ------------------------------------------------------------------
    def _headers(self) -> Dict[str, str]:
        return {"Authorization": self.api_key, "Content-Type": "application/json"}

    def _request(self, method: str, path: str, *, json: Any = None, params: Optional[dict] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        send = {"GET": requests.get, "POST": requests.post, "DELETE": requests.delete}[method]
        kwargs: Dict[str, Any] = {"headers": self._headers(), "timeout": self.timeout}
        if json is not None:
            kwargs["json"] = json
        if params:
            kwargs["params"] = params

        current_app.logger.info("Woovi %s %s", method, path)
        try:
            resp = send(url, **kwargs)
        except requests.Timeout as e:
            current_app.logger.error("Woovi timeout %s %s: %s", method, path, e)
            raise ProviderTimeout("Tempo esgotado aguardando a Woovi") from e
        except requests.RequestException as e:
            current_app.logger.error("Woovi indisponível %s %s: %s", method, path, e)
            raise ProviderError(f"Falha de comunicação com a Woovi: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {"data": data}

        if not 200 <= resp.status_code < 300:
            message = data.get("error") or data.get("message") or f"HTTP {resp.status_code}"
            current_app.logger.warning("Woovi erro %s %s [%s]: %s", method, path, resp.status_code, message)
            raise ProviderError(str(message), provider_status=resp.status_code, body=data)
        return data

    # ------------------------------------------------------------------
    # Cobranças
    # ------------------------------------------------------------------
    def create_charge(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/charge", json=payload)

    def get_charge(self, correlation_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/charge/{quote(correlation_id, safe='')}")


class SubaccountGateway:
    """Subcontas de parceiros. Valores sempre em centavos."""

    def __init__(self, client: WooviClient):
        self.client = client

    @staticmethod
    def _path(subaccount_id: str) -> str:
        # a Woovi aceita a chave PIX como identificador da subconta
        return f"/subaccount/{quote(str(subaccount_id), safe='')}"

    def create(self, name: str, pix_key: str) -> Dict[str, Any]:
        data = self.client._request("POST", "/subaccount", json={"name": name, "pixKey": pix_key})
        return data.get("subaccount") or data.get("SubAccount") or data

    def list(self, skip: int = 0, limit: int = 100) -> List[Dict[str, Any]]:
        data = self.client._request("GET", "/subaccount", params={"skip": skip, "limit": limit})
        return data.get("subaccounts") or []

    def get(self, subaccount_id: str) -> Dict[str, Any]:
        data = self.client._request("GET", self._path(subaccount_id))
        return data.get("subaccount") or data.get("SubAccount") or data

    def delete(self, subaccount_id: str) -> Dict[str, Any]:
        return self.client._request("DELETE", self._path(subaccount_id))

    def withdraw(self, subaccount_id: str, value_cents: int) -> Dict[str, Any]:
        return self.client._request("POST", self._path(subaccount_id) + "/withdraw", json={"value": int(value_cents)})

    def debit(self, subaccount_id: str, value_cents: int, description: str = "") -> Dict[str, Any]:
        body: Dict[str, Any] = {"value": int(value_cents)}
        if description:
            body["description"] = description
        return self.client._request("POST", self._path(subaccount_id) + "/debit", json=body)

    def transfer(self, from_id: str, to_id: str, value_cents: int) -> Dict[str, Any]:
        return self.client._request("POST", "/subaccount/transfer", json={
            "fromSubaccountId": from_id,
            "toSubaccountId": to_id,
            "value": int(value_cents),
        })


def subaccount_gateway() -> SubaccountGateway:
    return SubaccountGateway(WooviClient.from_app())


def subaccount_id_of(data: Dict[str, Any]) -> Optional[str]:
    return data.get("subaccountId") or data.get("id") or data.get("pixKey")


def parse_provider_datetime(value) -> Optional[datetime]:
    """ISO-8601 da Woovi ("2024-01-01T12:00:00.000Z") -> datetime UTC ingênuo (padrão do banco)."""
    if not value:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def charge_of(data: Dict[str, Any]) -> Dict[str, Any]:
    """Resposta de /charge vem como {"charge": {...}, "brCode": ...}; aceita também o objeto cru."""
    charge = data.get("charge")
    return charge if isinstance(charge, dict) else data
