# pixhub_app/errors.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from flask import jsonify


class PixHubError(Exception):
    """Erro de domínio com status HTTP; renderizado como JSON pelo handler do app."""
    status_code = 400

    def __init__(self, message: str, status_code: int | None = None, payload: dict | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload or {}

    def to_dict(self) -> dict:
        body = {"success": False, "error": self.message}
        body.update(self.payload)
        return body


class ValidationError(PixHubError):
    status_code = 400


class NotFoundError(PixHubError):
    status_code = 404


class CredentialError(PixHubError):
    status_code = 400


class InsufficientBalanceError(PixHubError):
    status_code = 400


class ProviderError(PixHubError):
    """Resposta não-2xx da Woovi. Mensagem e corpo do provedor seguem sem alteração."""
    status_code = 502

    def __init__(self, message: str, provider_status: int | None = None, body=None, payload: dict | None = None):
        super().__init__(message, payload=payload)
        self.provider_status = provider_status
        self.body = body


class ProviderTimeout(PixHubError):
    # resultado desconhecido: a operação pode ter acontecido no provedor
    status_code = 504


class PersistenceError(PixHubError):
    status_code = 500


def register_error_handlers(app):
    @app.errorhandler(PixHubError)
    def _handle_pixhub_error(err: PixHubError):
        if err.status_code >= 500:
            app.logger.error("%s: %s", err.__class__.__name__, err.message)
        return jsonify(err.to_dict()), err.status_code
