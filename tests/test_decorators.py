# tests/test_decorators.py
from flask import session

from pixhub_app.decorators import current_user, merchant_required, partner_required


def _view():
    return "ok"


def test_anonymous_gets_401(app):
    with app.test_request_context("/"):
        for deco in (merchant_required, partner_required):
            resp, status = deco(_view)()
            assert status == 401
            assert resp.get_json()["success"] is False


def test_role_checks(app, merchant, db_session):
    with app.test_request_context("/"):
        session["user"] = {"id": merchant.id, "role": "merchant"}
        assert merchant_required(_view)() == "ok"
        resp, status = partner_required(_view)()
        assert status == 403

        session["user"] = {"id": merchant.id, "role": "partner"}
        assert partner_required(_view)() == "ok"
        assert merchant_required(_view)()[1] == 403


def test_current_user_resolves_session(app, merchant, db_session):
    with app.test_request_context("/"):
        assert current_user() is None
        session["user"] = {"id": merchant.id}
        assert current_user().id == merchant.id
        session["user"] = {"id": 999999}
        assert current_user() is None


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    body = r.get_json()
    assert body["status"] == "ok"
    assert body["database"] == "ok"
    assert body["started_at"]
