import logging
from flask import jsonify
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

log = logging.getLogger(__name__)


class PortalError(Exception):
    """Base error; carries the HTTP status and any extra JSON fields."""
    status_code = 500

    def __init__(self, message, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self):
        body = {"success": False, "message": self.message}
        body.update(self.extra)
        return body


class ValidationError(PortalError):
    status_code = 400


class DuplicateKey(PortalError):
    status_code = 400


class AuthenticationError(PortalError):
    status_code = 401


class NotFound(PortalError):
    status_code = 404


class UnsupportedMediaType(PortalError):
    status_code = 400


class PayloadTooLarge(PortalError):
    status_code = 400


def register_error_handlers(app):
    @app.errorhandler(PortalError)
    def portal_error(err):
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(RequestEntityTooLarge)
    def too_large(_err):
        limit = app.config["MAX_UPLOAD_BYTES"] // (1024 * 1024)
        return portal_error(PayloadTooLarge(f"File too large. Max size is {limit} MB."))

    @app.errorhandler(HTTPException)
    def http_error(err):
        return jsonify({"success": False, "message": err.description}), err.code

    @app.errorhandler(Exception)
    def server_error(err):
        log.exception("Unhandled error: %s", err)
        return jsonify({"success": False, "message": "Server error"}), 500
