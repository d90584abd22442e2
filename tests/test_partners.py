# tests/test_partners.py
# -*- coding: utf-8 -*-
import pytest

from pixhub_app.models import SplitPartner


def _partner(db_session, partner_id):
    db_session.expire_all()
    return db_session.get(SplitPartner, partner_id)


# -------------------------------------------------------------------
# Cadastro de parceiro
# -------------------------------------------------------------------
def test_onboard_partner_creates_subaccount(logged_merchant, merchant, db_session, woovi):
    r = logged_merchant.post("/api/partners", json={
        "name": "Afiliado", "pixKey": "afiliado@pix.test", "splitType": "percentage", "splitValue": 12.5,
        "email": "Afiliado@Mail.com"})
    assert r.status_code == 201
    body = r.get_json()
    assert body["subaccountCreated"] is True
    assert "warning" not in body
    assert woovi.last_payload("POST", "/subaccount") == {"name": "Afiliado", "pixKey": "afiliado@pix.test"}

    p = _partner(db_session, body["partner"]["id"])
    assert p.user_id == merchant.id
    assert p.woovi_subaccount_id == "sub_afiliado@pix.test"
    assert p.email == "afiliado@mail.com"
    assert float(p.split_value) == 12.5


def test_onboard_partner_survives_provider_failure(logged_merchant, db_session, woovi):
    woovi.fail("POST", "/subaccount", status=400, error="Chave PIX inválida")
    r = logged_merchant.post("/api/partners", json={
        "name": "Afiliado", "pixKey": "x@pix.test", "splitType": "fixed", "splitValue": "3.00"})
    assert r.status_code == 201
    body = r.get_json()
    assert body["subaccountCreated"] is False
    assert body["warning"] == "Chave PIX inválida"
    p = _partner(db_session, body["partner"]["id"])
    assert p.woovi_subaccount_id is None
    assert p.destination == "x@pix.test"


def test_onboard_partner_survives_provider_timeout(logged_merchant, woovi):
    woovi.timeout("POST", "/subaccount")
    r = logged_merchant.post("/api/partners", json={"name": "A", "pixKey": "a@pix.test", "splitValue": "5"})
    assert r.status_code == 201
    assert r.get_json()["subaccountCreated"] is False


@pytest.mark.parametrize("body", [
    {"pixKey": "a@pix.test", "splitValue": "5"},
    {"name": "A", "splitValue": "5"},
    {"name": "A", "pixKey": "a@pix.test", "splitType": "outro", "splitValue": "5"},
    {"name": "A", "pixKey": "a@pix.test", "splitValue": "0"},
    {"name": "A", "pixKey": "a@pix.test", "splitValue": "-1"},
    {"name": "A", "pixKey": "a@pix.test", "splitValue": "abc"},
    {"name": "A", "pixKey": "a@pix.test", "splitType": "percentage", "splitValue": "150"},
    {"name": "A", "pixKey": "a@pix.test", "splitType": "fixed", "splitValue": "1e12"},
])
def test_onboard_partner_validation(logged_merchant, db_session, woovi, body):
    r = logged_merchant.post("/api/partners", json=body)
    assert r.status_code == 400
    assert woovi.provider_calls() == []


def test_fixed_split_can_exceed_100(logged_merchant, woovi):
    r = logged_merchant.post("/api/partners", json={
        "name": "A", "pixKey": "a@pix.test", "splitType": "fixed", "splitValue": "150"})
    assert r.status_code == 201


def test_partner_routes_require_merchant(client, logged_partner):
    assert logged_partner.post("/api/partners", json={}).status_code == 403
    assert logged_partner.post("/api/subaccounts", json={"action": "list"}).status_code == 403


# -------------------------------------------------------------------
# Sincronização de subcontas
# -------------------------------------------------------------------
def test_sync_fills_subaccount_by_pix_key(logged_merchant, merchant, make_partner, db_session, woovi):
    a = make_partner(merchant, pix_key="a@pix.test")
    b = make_partner(merchant, pix_key="b@pix.test")
    c = make_partner(merchant, pix_key="c@pix.test", woovi_subaccount_id="sub_antiga")
    woovi.subaccounts.extend([
        {"name": "A", "pixKey": "a@pix.test", "subaccountId": "sub_a"},
        {"name": "C", "pixKey": "c@pix.test", "subaccountId": "sub_c"},
        {"name": "Z", "pixKey": "z@pix.test"},
    ])

    r = logged_merchant.post("/api/partners/sync")
    assert r.status_code == 200
    body = r.get_json()
    assert body["checked"] == 3
    assert body["updated"] == 1
    assert body["updatedPartnerIds"] == [a.id]
    assert body["providerSubaccounts"] == 3

    assert _partner(db_session, a.id).woovi_subaccount_id == "sub_a"
    assert _partner(db_session, b.id).woovi_subaccount_id is None
    assert _partner(db_session, c.id).woovi_subaccount_id == "sub_antiga"


def test_sync_pages_through_subaccounts(logged_merchant, merchant, make_partner, db_session, woovi, monkeypatch):
    from pixhub_app.services.woovi import SubaccountGateway
    late = make_partner(merchant, pix_key="k104@pix.test")
    woovi.subaccounts.extend({"pixKey": f"k{i}@pix.test", "subaccountId": f"sub_{i}"} for i in range(105))
    monkeypatch.setattr(SubaccountGateway, "list",
                        lambda self, skip=0, limit=100: woovi.subaccounts[skip:skip + limit])

    r = logged_merchant.post("/api/partners/sync")
    assert r.status_code == 200
    assert r.get_json()["providerSubaccounts"] == 105
    assert _partner(db_session, late.id).woovi_subaccount_id == "sub_104"


def test_sync_propagates_provider_error(logged_merchant, woovi):
    woovi.fail("GET", "/subaccount", status=401, error="appID inválido")
    r = logged_merchant.post("/api/partners/sync")
    assert r.status_code == 502
    assert r.get_json()["error"] == "appID inválido"


# -------------------------------------------------------------------
# Gateway de subcontas (/api/subaccounts)
# -------------------------------------------------------------------
@pytest.mark.parametrize("body", [
    {},
    {"action": "explodir"},
    {"action": "create", "name": "A"},
    {"action": "get"},
    {"action": "withdraw", "subaccountId": "s1"},
    {"action": "withdraw", "subaccountId": "s1", "value": 0},
    {"action": "withdraw", "subaccountId": "s1", "value": "dez"},
    {"action": "transfer", "fromSubaccountId": "s1", "value": 100},
])
def test_subaccount_action_validation(logged_merchant, woovi, body):
    r = logged_merchant.post("/api/subaccounts", json=body)
    assert r.status_code == 400
    assert r.get_json()["success"] is False
    assert woovi.provider_calls() == []


@pytest.mark.parametrize("body,method,path,payload", [
    ({"action": "create", "name": "A", "pixKey": "a@pix.test"},
     "POST", "/subaccount", {"name": "A", "pixKey": "a@pix.test"}),
    ({"action": "get", "subaccountId": "a@pix.test"}, "GET", "/subaccount/a%40pix.test", None),
    ({"action": "delete", "subaccountId": "s1"}, "DELETE", "/subaccount/s1", None),
    ({"action": "withdraw", "subaccountId": "s1", "value": 500},
     "POST", "/subaccount/s1/withdraw", {"value": 500}),
    ({"action": "debit", "subaccountId": "s1", "value": 150, "description": "Ajuste"},
     "POST", "/subaccount/s1/debit", {"value": 150, "description": "Ajuste"}),
    ({"action": "transfer", "fromSubaccountId": "s1", "toSubaccountId": "s2", "value": 300},
     "POST", "/subaccount/transfer", {"fromSubaccountId": "s1", "toSubaccountId": "s2", "value": 300}),
])
def test_subaccount_actions_hit_provider(logged_merchant, woovi, body, method, path, payload):
    r = logged_merchant.post("/api/subaccounts", json=body)
    assert r.status_code == 200, r.get_json()
    assert r.get_json()["success"] is True
    calls = woovi.provider_calls(method, path)
    assert len(calls) == 1
    assert calls[0][2].get("json") == payload


def test_subaccount_list_passes_paging(logged_merchant, woovi):
    woovi.subaccounts.append({"pixKey": "a@pix.test", "subaccountId": "sub_a"})
    r = logged_merchant.post("/api/subaccounts", json={"action": "LIST", "skip": 10, "limit": 5})
    assert r.status_code == 200
    assert r.get_json()["data"] == [{"pixKey": "a@pix.test", "subaccountId": "sub_a"}]
    _, _, kw = woovi.provider_calls("GET", "/subaccount")[0]
    assert kw["params"] == {"skip": 10, "limit": 5}


def test_subaccount_provider_error_is_forwarded(logged_merchant, woovi):
    woovi.fail("POST", "/subaccount/s1/withdraw", status=400, error="Subconta sem saldo")
    r = logged_merchant.post("/api/subaccounts", json={"action": "withdraw", "subaccountId": "s1", "value": 100})
    assert r.status_code == 502
    assert r.get_json()["error"] == "Subconta sem saldo"


def test_subaccount_without_credential(app, logged_merchant, woovi, monkeypatch):
    monkeypatch.setitem(app.config, "WOOVI_API_KEY", "")
    r = logged_merchant.post("/api/subaccounts", json={"action": "list"})
    assert r.status_code == 400
    assert woovi.provider_calls() == []
