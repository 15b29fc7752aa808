from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException
import structlog

from Modules.extensions import jwt
from Modules.models import db

logger = structlog.get_logger(__name__)

SERVER_ERROR = "Error de servidor."


def error_response(message, status_code, **extra):
    """Respuesta de error uniforme: {"error": "..."} más campos opcionales."""
    body = {"error": message}
    body.update(extra)
    return jsonify(body), status_code


def register_error_handlers(app):
    """Instala los manejadores JSON para errores HTTP, de token y de base de datos."""

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return error_response(e.description or e.name, e.code)

    @app.errorhandler(SQLAlchemyError)
    def handle_storage_error(e):
        db.session.rollback()
        logger.error("storage_error", error=str(e), exc_info=True)
        return error_response(SERVER_ERROR, 500)

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        logger.error("unexpected_error", error=str(e), exc_info=True)
        return error_response(SERVER_ERROR, 500)


# --- Errores de autenticación (Flask-JWT-Extended) ---

@jwt.unauthorized_loader
def missing_token_callback(reason):
    return error_response("Token de acceso requerido.", 401)

@jwt.invalid_token_loader
def invalid_token_callback(reason):
    return error_response("Token inválido.", 401)

@jwt.expired_token_loader
def expired_token_callback(jwt_header, jwt_payload):
    return error_response("El token ha expirado.", 401)
