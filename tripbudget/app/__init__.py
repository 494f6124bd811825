"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time, which enables:
           - Multiple isolated test app instances
           - Clean separation between app creation and app startup
           - Alembic to load the metadata without starting the server

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Configure logging from LOG_LEVEL
  3. Initialise SQLAlchemy via init_app()
  4. Register the budget and expense blueprints under /api/v1
  5. Register global error handlers (AppError → JSON, Exception → 500)
  6. Register a custom JSON provider to serialise Decimal as string
     (monetary amounts are transmitted as strings, never JS numbers)

Note on model imports:
  All model modules are imported inside create_app() so that SQLAlchemy's
  metadata is populated before create_all() or Alembic inspects it, and so
  the before_flush invariant guards in models/guards.py are registered.
"""

from __future__ import annotations

import logging
import traceback
from decimal import Decimal

from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException

from tripbudget.config import config_by_name, validate_production_config


# ── Custom JSON provider ───────────────────────────────────────────────────
# Flask's default JSON encoder does not handle Decimal.

class DecimalJSONProvider(DefaultJSONProvider):
    """
    Extends Flask's default JSON provider to serialise Decimal as str.

    Example: Decimal("10.50") → "10.50" (not 10.5 or 10.500000001)
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
                     Defaults to "development".
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
    from tripbudget.app.extensions import db
    db.init_app(app)

    # ── Model registration ─────────────────────────────────────────────────
    with app.app_context():
        from tripbudget.app.models import (  # noqa: F401
            budget,
            expense,
            guards,
            split,
            trip,
        )

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_cors(app)

    return app


def _configure_logging(app: Flask) -> None:
    """
    Applies LOG_LEVEL to the app logger and the tripbudget.* service loggers.
    A basic stderr handler is installed only when nothing else configured
    logging first (e.g. gunicorn or pytest's caplog).
    """
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO

    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )

    logging.getLogger("tripbudget").setLevel(level)
    app.logger.setLevel(level)


def _register_blueprints(app: Flask) -> None:
    from tripbudget.app.routes.budget import budget_bp
    from tripbudget.app.routes.expenses import expenses_bp

    app.register_blueprint(budget_bp,   url_prefix="/api/v1/trips")
    # expenses_bp owns /trips/<id>/expenses AND /expenses/<id>, so it sits at
    # the API root.
    app.register_blueprint(expenses_bp, url_prefix="/api/v1")


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError        → structured envelope, status taken from the error kind
      ValidationError → marshmallow schema errors as MISSING_FIELD /
                        INVALID_FIELD / a registered code (400)
      HTTPException   → envelope with the exception's own status (404, 405, ...)
      Exception       → generic INTERNAL_ERROR (500); traceback logged

    Stack traces never leave the server.
    """
    from tripbudget.app.errors import AppError, ErrorCode

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        """
        Routes never catch AppError; they let it propagate here.
        """
        if error.http_status >= 500:
            app.logger.error("AppError on %s %s: %r", request.method, request.path, error)
        else:
            app.logger.info(
                "%s %s rejected: %s (%s)",
                request.method, request.path, error.code, error.http_status,
            )
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """
        Returns the FIRST schema error only: one error, not many.

        If the message is itself a registered ErrorCode it is used as the code
        (with a readable default message); otherwise MISSING_FIELD or
        INVALID_FIELD is chosen from the marshmallow wording.
        """
        field, raw_message = _first_error(error.messages)

        known_codes = {
            v for k, v in vars(ErrorCode).items()
            if not k.startswith("_") and isinstance(v, str)
        }
        if raw_message in known_codes:
            code = raw_message
            message = _code_to_message(code)
        elif raw_message.startswith("Missing data for required field"):
            code = ErrorCode.MISSING_FIELD
            message = raw_message
        else:
            code = ErrorCode.INVALID_FIELD
            message = raw_message

        body = {
            "success": False,
            "message": message,
            "error": {"code": code, "message": message},
        }
        if field is not None:
            body["error"]["field"] = field
        return jsonify(body), 400

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        code = {
            404: ErrorCode.NOT_FOUND,
            405: ErrorCode.METHOD_NOT_ALLOWED,
            400: ErrorCode.INVALID_FIELD,
        }.get(error.code, ErrorCode.HTTP_ERROR)
        message = error.description or error.name
        return jsonify({
            "success": False,
            "message": message,
            "error": {"code": code, "message": message},
        }), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        app.logger.error(
            "Unhandled exception: %s\n%s",
            str(error),
            traceback.format_exc(),
        )
        message = "An unexpected error occurred. Please try again later."
        return jsonify({
            "success": False,
            "message": message,
            "error": {
                "code": ErrorCode.INTERNAL_ERROR,
                "message": message,
            },
        }), 500


def _first_error(messages, field: str | None = None) -> tuple[str | None, str]:
    """
    Walks marshmallow's nested messages to the first leaf.

    {"splits": {0: {"userId": ["Not a valid integer."]}}}
        → ("splits", "Not a valid integer.")
    The top-level key is reported as the field; "_schema" means no field.
    """
    if isinstance(messages, dict):
        for key, value in messages.items():
            if field is None and isinstance(key, str) and key != "_schema":
                return _first_error(value, key)
            return _first_error(value, field)
        return field, "Invalid input."
    if isinstance(messages, list):
        if not messages:
            return field, "Invalid input."
        return _first_error(messages[0], field)
    return field, str(messages)


def _register_cors(app: Flask) -> None:
    """
    Adds permissive CORS headers in DEBUG/TESTING so a frontend on another
    local port can call the API with Authorization headers.
    """

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allow_all = bool(app.config.get("DEBUG") or app.config.get("TESTING"))

        if allow_all:
            response.headers["Access-Control-Allow-Origin"] = origin if origin else "*"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PATCH, DELETE, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"

        return response


def _code_to_message(code: str) -> str:
    """
    Human-readable default message for a code raised as a schema message.
    """
    _messages = {
        "INVALID_AMOUNT": "Amounts must be non-negative numbers.",
        "INVALID_ID": "Ids must be positive integers.",
        "INVALID_CURRENCY": "Currency must be a 3-letter code.",
        "INVALID_SPLIT_METHOD": "splitMethod must be one of: equal, custom, percentage.",
        "INVALID_CLONE_MODE": "mode must be one of: TEMPLATE, PLANNING, FULL_HISTORY.",
        "SPLITS_REQUIRED": "splits are required for custom and percentage expenses.",
        "DUPLICATE_SPLIT_USER": "The same userId appears more than once in splits.",
        "CONFLICTING_BUDGET_INPUT": "Send either totalBudgetAmount or members, not both.",
    }
    return _messages.get(code, "Invalid input.")
