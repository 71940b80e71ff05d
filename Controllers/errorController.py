from flask import Blueprint, current_app, request, jsonify
from werkzeug.exceptions import HTTPException

from Utils.appError import AppError

error_bp = Blueprint('errors', __name__)


@error_bp.app_errorhandler(AppError)
def handle_app_error(err):
    """Operational errors: the message is safe to show the client."""
    current_app.logger.warning(f"AppError {err.status_code} at {request.path}: {err}")
    return jsonify({
        "status": err.status,
        "message": str(err)
    }), err.status_code


@error_bp.app_errorhandler(429)
def ratelimit_handler(e):
    current_app.logger.warning(f"Rate limit hit: {request.remote_addr} {request.method} {request.path}")
    return jsonify({
        "status": "fail",
        "message": "Rate limit exceeded. Please slow down."
    }), 429


@error_bp.app_errorhandler(HTTPException)
def handle_http_error(e):
    if e.code == 404:
        current_app.logger.warning(
            f"404 Not Found | URL: {request.url} | Method: {request.method} | IP: {request.remote_addr}"
        )
    return jsonify({
        "status": "fail" if e.code < 500 else "error",
        "message": e.description
    }), e.code


@error_bp.app_errorhandler(Exception)
def handle_unexpected_error(e):
    # This includes traceback automatically
    current_app.logger.exception(
        f"Unexpected Application Error: {e} | URL: {request.url} | Method: {request.method} | IP: {request.remote_addr}"
    )
    return jsonify({
        "status": "error",
        "message": "Something went wrong on the server."
    }), 500
