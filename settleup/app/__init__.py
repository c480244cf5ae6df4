"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time — this enables:
           - Multiple isolated test app instances
           - `flask db` / Alembic runs without starting the full server

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Configure the app logger level from LOG_LEVEL
  3. Initialise extensions (SQLAlchemy, Marshmallow) via init_app()
  4. Register route blueprints under /api/v1
  5. Register global error handlers (AppError → JSON, Exception → 500)
  6. Register a custom JSON provider that serialises Decimal as string
     (monetary amounts are transmitted as strings, never JS numbers)
"""

from __future__ import annotations

import logging
import traceback
from decimal import Decimal

from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider
from marshmallow import ValidationError

from settleup.config import config_by_name, validate_production_config


# ── Custom JSON provider ───────────────────────────────────────────────────

class DecimalJSONProvider(DefaultJSONProvider):
    """
    Extends Flask's default JSON provider to serialise Decimal as str.

    Example: Decimal("10.50") → "10.50" (not 10.5 or 10.500000001)

    Keys keep insertion order. Flask 2.3+ ignores the old JSON_SORT_KEYS
    config key; sorting is a provider attribute.
    """

    sort_keys = False

    def default(self, o):
        if isinstance(o, Decimal):
            return str(o)
        return super().default(o)


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development") -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Resolved via config_by_name in config.py.

    Returns:
        A fully configured Flask app ready to serve requests.
    """
    app = Flask(__name__)
    app.json_provider_class = DecimalJSONProvider
    app.json = DecimalJSONProvider(app)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    _configure_logging(app)

    # ── Extensions ─────────────────────────────────────────────────────────
    # Imported here (not at module top) to avoid circular imports.
    from settleup.app.extensions import db, ma
    db.init_app(app)
    ma.init_app(app)

    # ── Model registration ─────────────────────────────────────────────────
    # Populates SQLAlchemy's MetaData for create_all() and Alembic.
    with app.app_context():
        from settleup.app.models import money_request  # noqa: F401

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_cors(app)

    return app


def _configure_logging(app: Flask) -> None:
    """
    Applies LOG_LEVEL to the app logger and the settleup.* module loggers
    (engine and services log through logging.getLogger(__name__)).
    """
    level = logging.getLevelName(app.config.get("LOG_LEVEL", "INFO"))
    if not isinstance(level, int):
        level = logging.INFO

    app.logger.setLevel(level)
    logging.getLogger("settleup").setLevel(level)


def _register_blueprints(app: Flask) -> None:
    """
    Registers all route blueprints under the /api/v1 prefix.

    obligations_bp sits at /api/v1 (not /api/v1/groups) because it owns both
    /groups/<id>/obligations and /obligations/<id>.
    """
    from settleup.app.routes.obligations import obligations_bp
    from settleup.app.routes.settlements import settlements_bp

    app.register_blueprint(obligations_bp, url_prefix="/api/v1")
    app.register_blueprint(settlements_bp, url_prefix="/api/v1/groups")


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError        → structured JSON error envelope with the correct HTTP status
      ValidationError → marshmallow schema errors as MISSING_FIELD /
                        INVALID_FIELD responses (400)
      Exception       → generic INTERNAL_ERROR (500); traceback logged

    Stack traces never leave the server.
    """
    from settleup.app.errors import AppError, ErrorCode

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        """Routes never catch AppError — they let it propagate here."""
        if error.http_status >= 500:
            app.logger.error("AppError %s: %s", error.code, error.message)
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """
        Converts marshmallow ValidationError into the standard error envelope.

        Only the FIRST field error is returned. If its message is a registered
        ErrorCode constant it is used as the code; otherwise INVALID_FIELD or
        MISSING_FIELD.
        """
        messages = error.messages  # e.g. {"amount": ["INVALID_AMOUNT_PRECISION"]}

        field = None
        raw_message = "Invalid input."
        code = ErrorCode.INVALID_FIELD

        if isinstance(messages, dict):
            for field_name, field_errors in messages.items():
                field = field_name if field_name != "_schema" else None

                if isinstance(field_errors, list):
                    raw_message = field_errors[0] if field_errors else "Invalid value."
                else:
                    raw_message = str(field_errors)

                if raw_message in vars(ErrorCode).values():
                    code = raw_message
                elif str(raw_message).startswith("Missing data for required field"):
                    code = ErrorCode.MISSING_FIELD
                else:
                    code = ErrorCode.INVALID_FIELD
                break
        elif isinstance(messages, list):
            raw_message = messages[0] if messages else "Invalid input."
            if raw_message in vars(ErrorCode).values():
                code = raw_message
            elif str(raw_message).startswith("Missing data for required field"):
                code = ErrorCode.MISSING_FIELD

        response_body = {
            "error": {
                "code": code,
                "message": raw_message if raw_message not in vars(ErrorCode).values()
                else _code_to_message(code),
            }
        }
        if field is not None:
            response_body["error"]["field"] = field

        return jsonify(response_body), 400

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        """
        Catches all unhandled exceptions and returns a generic 500 response.
        HTTP exceptions (404 for unknown routes, 405, ...) keep their status.
        """
        from werkzeug.exceptions import HTTPException

        if isinstance(error, HTTPException):
            return jsonify({
                "error": {
                    "code": error.name.upper().replace(" ", "_"),  # e.g. NOT_FOUND
                    "message": error.description,
                }
            }), error.code

        app.logger.error(
            "Unhandled exception: %s\n%s",
            str(error),
            traceback.format_exc(),
        )
        return jsonify({
            "error": {
                "code": ErrorCode.INTERNAL_ERROR,
                "message": "An unexpected error occurred. Please try again later.",
            }
        }), 500


def _register_cors(app: Flask) -> None:
    """
    Adds CORS headers for browser-based local development.

    Enabled when DEBUG or TESTING is true so a frontend served from another
    local port can call the API.
    """

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allow_all = bool(app.config.get("DEBUG") or app.config.get("TESTING"))

        if allow_all:
            response.headers["Access-Control-Allow-Origin"] = origin if origin else "*"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, DELETE, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"

        return response


def _code_to_message(code: str) -> str:
    """
    Returns a human-readable default message for a known error code.
    Used when a ValidationError message IS the error code constant itself.
    """
    _messages = {
        "INVALID_AMOUNT_PRECISION": "Amount must have at most 2 decimal places.",
    }
    return _messages.get(code, "Invalid input.")
