"""Erros de domínio e tratamento JSON para a API.

Cada operação de serviço levanta uma destas exceções; a camada HTTP as
converte em ``{"error": ..., "code": ...}`` com o status correspondente.
"""

import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class ERPError(Exception):
    status_code = 400
    code = "erro"

    def __init__(self, message, **payload):
        super().__init__(message)
        self.message = message
        self.payload = payload

    def to_dict(self):
        data = {"error": self.message, "code": self.code}
        data.update(self.payload)
        return data


class ValidationError(ERPError):
    status_code = 400
    code = "validacao"


class AuthenticationError(ERPError):
    status_code = 401
    code = "nao_autenticado"


class PermissionDeniedError(ERPError):
    status_code = 403
    code = "acesso_negado"


class NotFoundError(ERPError):
    status_code = 404
    code = "nao_encontrado"


class ConflictError(ERPError):
    status_code = 409
    code = "conflito"


class InsufficientStockError(ERPError):
    status_code = 409
    code = "estoque_insuficiente"


class InvalidTransitionError(ERPError):
    status_code = 409
    code = "transicao_invalida"


class StoreError(ERPError):
    status_code = 503
    code = "falha_banco"


def register_error_handlers(app):
    @app.errorhandler(ERPError)
    def handle_erp_error(err):
        if err.status_code >= 500:
            logger.error("%s: %s", err.code, err.message)
        else:
            logger.info("%s: %s", err.code, err.message)
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(err):
        return jsonify({"error": err.description, "code": err.name.lower().replace(" ", "_")}), err.code
