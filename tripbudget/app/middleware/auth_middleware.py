"""
middleware/auth_middleware.py — JWT authentication decorator.

The @require_auth decorator:
  1. Reads the Authorization header (expected: "Bearer <token>")
  2. Decodes and verifies the JWT signature (HS256 by default)
  3. Checks token expiry
  4. Attaches user_id (int) to flask.g for the duration of the request
  5. Raises AuthenticationError (401) if any step fails

Tokens are issued by the identity service; this app only verifies them.

Strict responsibility boundary:
  - This middleware answers "who is calling" (401) and nothing else.
  - Whether that user may touch a budget or expense is decided in the
    service layer (403).
  - Services receive user_id as a plain integer argument, with no knowledge
    of JWT or HTTP headers.

Error codes:
  TOKEN_MISSING  (401) — no Authorization header
  TOKEN_INVALID  (401) — malformed header, invalid signature, or bad payload
  TOKEN_EXPIRED  (401) — valid token but exp claim is in the past
"""

from __future__ import annotations

import functools
from typing import Callable

import jwt
from flask import current_app, g, request

from tripbudget.app.errors import AuthenticationError, ErrorCode


def require_auth(f: Callable) -> Callable:
    """
    Route decorator that enforces JWT authentication.

    Usage:
        @budget_bp.route("/<int:trip_id>/budget")
        @require_auth
        def get_budget(trip_id):
            user_id = g.user_id  # always an int when this runs
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _authenticate_request()
        return f(*args, **kwargs)

    return decorated


def _authenticate_request() -> None:
    """
    Performs the full JWT authentication sequence and sets flask.g.user_id.

    Separated from the decorator wrapper so tests can call it inside a
    test_request_context without a real view function.
    """
    auth_header = request.headers.get("Authorization", "")

    # ── Step 1: Require Authorization header ──────────────────────────────
    if not auth_header:
        raise AuthenticationError(
            ErrorCode.TOKEN_MISSING,
            "Authentication required. Provide a Bearer token in the Authorization header.",
        )

    # ── Step 2: Parse "Bearer <token>" format ─────────────────────────────
    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthenticationError(
            ErrorCode.TOKEN_INVALID,
            "Authorization header must be in the format: Bearer <token>.",
        )

    # ── Step 3: Decode and verify the JWT ─────────────────────────────────
    try:
        payload = jwt.decode(
            parts[1],
            current_app.config["JWT_SECRET_KEY"],
            algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError(
            ErrorCode.TOKEN_EXPIRED,
            "The access token has expired.",
        )
    except jwt.InvalidTokenError:
        # Bad signature, malformed token, invalid claims, ...
        raise AuthenticationError(
            ErrorCode.TOKEN_INVALID,
            "The access token is invalid or has been tampered with.",
        )

    # ── Step 4: Extract the sub (user_id) claim ───────────────────────────
    sub = payload.get("sub")
    if sub is None or isinstance(sub, bool):
        raise AuthenticationError(
            ErrorCode.TOKEN_INVALID,
            "The access token is missing the required 'sub' claim.",
        )

    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        raise AuthenticationError(
            ErrorCode.TOKEN_INVALID,
            "The 'sub' claim in the access token is not a valid user ID.",
        )
    if user_id <= 0:
        raise AuthenticationError(
            ErrorCode.TOKEN_INVALID,
            "The 'sub' claim in the access token is not a valid user ID.",
        )

    g.user_id = user_id
