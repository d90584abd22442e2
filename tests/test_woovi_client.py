# tests/test_woovi_client.py
from datetime import datetime

import pytest
import requests

from pixhub_app.errors import CredentialError, ProviderError, ProviderTimeout
from pixhub_app.services.woovi import (SubaccountGateway, WooviClient, charge_of, parse_provider_datetime,
                                       subaccount_id_of)


@pytest.fixture
def client_(app):
    with app.app_context():
        yield WooviClient.from_app()


def test_missing_api_key_is_credential_error(app):
    with app.app_context():
        with pytest.raises(CredentialError):
            WooviClient.from_app(api_key="")


def test_authorization_header_is_raw_key(client_, woovi):
    woovi.charges["abc"] = {"correlationID": "abc", "status": "ACTIVE"}
    assert client_.get_charge("abc") == {"charge": {"correlationID": "abc", "status": "ACTIVE"}}
    _, _, kw = woovi.provider_calls("GET", "/charge/abc")[0]
    assert kw["headers"]["Authorization"] == "woovi-test-key"
    assert kw["timeout"] == client_.timeout


@pytest.mark.parametrize("body,expected", [
    ({"error": "correlationID duplicado"}, "correlationID duplicado"),
    ({"message": "Valor mínimo"}, "Valor mínimo"),
    ({}, "HTTP 422"),
    (None, "HTTP 422"),
])
def test_non_2xx_message_passthrough(client_, woovi, body, expected):
    woovi.override("POST", "/charge", status=422, json=body)
    with pytest.raises(ProviderError) as exc:
        client_.create_charge({"correlationID": "x", "value": 100})
    assert exc.value.message == expected
    assert exc.value.provider_status == 422
    assert exc.value.status_code == 502


def test_timeout_and_connection_errors(client_, woovi):
    woovi.timeout("GET", r"/charge/.*")
    with pytest.raises(ProviderTimeout):
        client_.get_charge("a")
    woovi.override("GET", r"/charge/.*", exc=requests.ConnectionError("dns"))
    with pytest.raises(ProviderError):
        client_.get_charge("a")


def test_subaccount_id_in_path_is_encoded(client_, woovi):
    SubaccountGateway(client_).withdraw("ana@pix.test", 1234)
    assert woovi.last_payload("POST", "/subaccount/ana%40pix.test/withdraw") == {"value": 1234}


def test_debit_without_description(client_, woovi):
    SubaccountGateway(client_).debit("s1", 50)
    assert woovi.last_payload("POST", "/subaccount/s1/debit") == {"value": 50}


def test_helpers():
    assert subaccount_id_of({"subaccountId": "s", "pixKey": "k"}) == "s"
    assert subaccount_id_of({"pixKey": "k"}) == "k"
    assert charge_of({"charge": {"a": 1}, "brCode": "x"}) == {"a": 1}
    assert charge_of({"a": 1}) == {"a": 1}
    assert parse_provider_datetime("2024-01-01T15:00:00.000-03:00") == datetime(2024, 1, 1, 18, 0)
    assert parse_provider_datetime("ontem") is None
    assert parse_provider_datetime(None) is None
