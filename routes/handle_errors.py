# routes/handle_errors.py
from flask import Blueprint, current_app, jsonify
from werkzeug.exceptions import HTTPException

from excepciones import CorrespondenciaError
from extensions import db

handle_errors_bp = Blueprint('errors', __name__)


@handle_errors_bp.app_errorhandler(CorrespondenciaError)
def manejar_error_correspondencia(error):
    # Lo que haya quedado a medias en la sesión no debe sobrevivir a la petición
    db.session.rollback()
    if error.status_code >= 500:
        current_app.logger.error(f"[ERROR] {error.message}")
    else:
        current_app.logger.info(f"[{error.status_code}] {type(error).__name__}: {error.message}")
    return jsonify(error.to_dict()), error.status_code


@handle_errors_bp.app_errorhandler(HTTPException)
def manejar_error_http(error):
    return jsonify({'success': False, 'message': error.description}), error.code


@handle_errors_bp.app_errorhandler(Exception)
def manejar_error_inesperado(error):
    db.session.rollback()
    current_app.logger.exception(f"[ERROR] No controlado: {error}")
    return jsonify({'success': False, 'message': 'Error interno del servidor'}), 500
