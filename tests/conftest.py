# tests/conftest.py
# -*- coding: utf-8 -*-
import os
import re
import uuid
import tempfile
from decimal import Decimal

import pytest
import requests
from sqlalchemy import event

# =====================================================================================
# Ambiente de testes (antes de importar config/pixhub_app: TestingConfig lê o env no import)
# =====================================================================================
_fd, DB_PATH = tempfile.mkstemp(prefix="pixhub_test_", suffix=".sqlite")
os.close(_fd)
os.environ["APP_ENV"] = "testing"
os.environ["DISABLE_SCHEDULER"] = "1"
os.environ.setdefault("SECRET_KEY", "testing-secret")
os.environ["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{DB_PATH}"

WOOVI_BASE = "https://woovi.test/api/v1"


def _set_sqlite_pragmas(dbapi_conn, _conn_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=30000")
    cursor.close()


# =====================================================================================
# App Flask com SQLite temporário e schema criado uma vez por sessão
# =====================================================================================
@pytest.fixture(scope="session")
def app():
    from pixhub_app import create_app
    from pixhub_app.extensions import db

    app = create_app()
    with app.app_context():
        event.listen(db.engine, "connect", _set_sqlite_pragmas)
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.engine.dispose()
    try:
        os.remove(DB_PATH)
    except OSError:
        pass


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db_session(app):
    from pixhub_app.extensions import db
    with app.app_context():
        try:
            yield db.session
        finally:
            db.session.rollback()
            db.session.close()


# =====================================================================================
# Woovi fake: roteia requests.get/post/delete, registra chamadas
#   - URLs em WOOVI_BASE: API do provedor
#   - demais URLs: webhooks dos lojistas
# =====================================================================================
class FakeResponse:
    def __init__(self, status_code=200, json_data=None, text=""):
        self.status_code = status_code
        self._json = json_data
        self.text = text

    def json(self):
        if self._json is None:
            raise ValueError("sem JSON")
        return self._json


class WooviFake:
    def __init__(self):
        self.calls = []          # (method, path, kwargs) na API Woovi
        self.hook_calls = []     # (url, json) nos webhooks de lojista
        self.hook_results = {}   # url -> status int ou exceção
        self.overrides = []      # (method, regex, status, json, exc)
        self.charges = {}        # correlationID -> charge (para GET /charge/<id>)
        self.subaccounts = []

    # ---------------------------------------------------------------- configuração
    def override(self, method, pattern, status=200, json=None, exc=None):
        self.overrides.append((method.upper(), re.compile(pattern), status, json, exc))

    def fail(self, method, pattern, status=400, error="erro do provedor"):
        self.override(method, pattern, status=status, json={"error": error})

    def timeout(self, method, pattern):
        self.override(method, pattern, exc=requests.Timeout("timeout"))

    # ---------------------------------------------------------------- consultas
    def provider_calls(self, method=None, pattern=None):
        out = []
        for m, path, kw in self.calls:
            if method and m != method.upper():
                continue
            if pattern and not re.fullmatch(pattern, path):
                continue
            out.append((m, path, kw))
        return out

    def last_payload(self, method, pattern):
        calls = self.provider_calls(method, pattern)
        return calls[-1][2].get("json") if calls else None

    # ---------------------------------------------------------------- roteamento
    def request(self, method, url, **kwargs):
        if not url.startswith(WOOVI_BASE):
            self.hook_calls.append((url, kwargs.get("json")))
            result = self.hook_results.get(url, 200)
            if isinstance(result, Exception):
                raise result
            return FakeResponse(result, {})

        path = url[len(WOOVI_BASE):]
        self.calls.append((method, path, kwargs))
        for m, rx, status, body, exc in reversed(self.overrides):
            if m == method and rx.fullmatch(path):
                if exc is not None:
                    raise exc
                return FakeResponse(status, body)
        return self._default(method, path, kwargs.get("json") or {})

    def _default(self, method, path, body):
        if method == "POST" and path == "/charge":
            cid = body["correlationID"]
            charge = {
                "correlationID": cid,
                "value": body["value"],
                "status": "ACTIVE",
                "brCode": f"000201BR.GOV.BCB.PIX-{cid}",
                "qrCodeImage": f"https://woovi.test/qr/{cid}.png",
                "transactionID": f"tx_{cid}",
                "paymentLinkUrl": f"https://woovi.test/pay/{cid}",
            }
            self.charges[cid] = charge
            return FakeResponse(200, {"charge": charge, "correlationID": cid, "brCode": charge["brCode"]})
        if method == "GET" and path.startswith("/charge/"):
            charge = self.charges.get(path[len("/charge/"):])
            if not charge:
                return FakeResponse(404, {"error": "charge not found"})
            return FakeResponse(200, {"charge": charge})
        if method == "POST" and path == "/subaccount":
            sub = {"name": body["name"], "pixKey": body["pixKey"], "subaccountId": f"sub_{body['pixKey']}"}
            self.subaccounts.append(sub)
            return FakeResponse(200, {"subaccount": sub})
        if method == "GET" and path == "/subaccount":
            return FakeResponse(200, {"subaccounts": list(self.subaccounts)})
        if method == "POST" and path == "/subaccount/transfer":
            return FakeResponse(200, {"transaction": {"value": body.get("value")}})
        if method == "POST" and path.endswith("/withdraw"):
            return FakeResponse(200, {"transaction": {"value": body.get("value"), "status": "COMPLETED"}})
        if method == "POST" and path.endswith("/debit"):
            return FakeResponse(200, {"transaction": {"value": body.get("value")}})
        if method == "GET" and path.startswith("/subaccount/"):
            return FakeResponse(200, {"subaccount": {"pixKey": path.rsplit("/", 1)[-1], "balance": 0}})
        if method == "DELETE" and path.startswith("/subaccount/"):
            return FakeResponse(200, {})
        return FakeResponse(404, {"error": f"rota fake inexistente: {method} {path}"})


@pytest.fixture(autouse=True)
def woovi(monkeypatch):
    fake = WooviFake()
    monkeypatch.setattr(requests, "get", lambda url, **k: fake.request("GET", url, **k), raising=True)
    monkeypatch.setattr(requests, "post", lambda url, **k: fake.request("POST", url, **k), raising=True)
    monkeypatch.setattr(requests, "delete", lambda url, **k: fake.request("DELETE", url, **k), raising=True)
    yield fake


# =====================================================================================
# Factories
# =====================================================================================
def _email(prefix="user"):
    return f"{prefix}+{uuid.uuid4().hex[:8]}@test.com"


@pytest.fixture
def make_merchant(db_session):
    from pixhub_app.models import User, FeeConfig

    def _make(pct="1.40", fixed="0.80", out_fixed="0.00", split_enabled=False, **kw):
        u = User(name=kw.pop("name", "Loja Teste"), email=_email("loja"), role="merchant",
                 pix_key=kw.pop("pix_key", f"loja-{uuid.uuid4().hex[:6]}@pix.test"), **kw)
        u.set_password("secret123")
        db_session.add(u)
        db_session.flush()
        db_session.add(FeeConfig(user_id=u.id, pix_in_percentage=Decimal(pct), pix_in_fixed=Decimal(fixed),
                                 pix_out_fixed=Decimal(out_fixed), split_enabled=split_enabled))
        db_session.commit()
        return u
    return _make


@pytest.fixture
def merchant(make_merchant):
    return make_merchant()


@pytest.fixture
def make_partner(db_session):
    from pixhub_app.models import SplitPartner

    def _make(merchant, split_type="percentage", split_value="10", status="active", **kw):
        p = SplitPartner(user_id=merchant.id, name=kw.pop("name", "Parceiro"),
                         pix_key=kw.pop("pix_key", f"parc-{uuid.uuid4().hex[:6]}@pix.test"),
                         split_type=split_type, split_value=Decimal(split_value), status=status, **kw)
        db_session.add(p)
        db_session.commit()
        return p
    return _make


@pytest.fixture
def make_webhook(db_session):
    from pixhub_app.models import MerchantWebhook

    def _make(merchant, url=None, events=("payment_approved",), status="active"):
        h = MerchantWebhook(user_id=merchant.id, url=url or f"https://loja.test/hook/{uuid.uuid4().hex[:6]}",
                            events=list(events), status=status)
        db_session.add(h)
        db_session.commit()
        return h
    return _make


def _login_as(client, user):
    with client.session_transaction() as sess:
        sess["user"] = {"id": user.id, "email": user.email, "name": user.name, "role": user.role}
    return client


@pytest.fixture
def login_as():
    return _login_as


@pytest.fixture
def logged_merchant(client, merchant):
    return _login_as(client, merchant)


@pytest.fixture
def partner_user(db_session, merchant, make_partner):
    """Parceiro com login vinculado (role partner)."""
    from pixhub_app.models import User
    partner = make_partner(merchant, email=_email("parceiro"))
    u = User(name=partner.name, email=partner.email, role="partner", pix_key=partner.pix_key)
    u.set_password("secret123")
    db_session.add(u)
    db_session.flush()
    partner.auth_user_id = u.id
    db_session.commit()
    return u, partner


@pytest.fixture
def logged_partner(client, partner_user):
    user, _ = partner_user
    return _login_as(client, user)
