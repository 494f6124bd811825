"""
utils/responses.py — Success envelope shared by the budget and expense routes.

    {"success": true, "message"?: str, "data": {"snapshot": {...}}}

Failures never come through here; they are AppError subclasses rendered by
the handlers registered in app/__init__.py.
"""

from __future__ import annotations

from flask import jsonify


def snapshot_response(snapshot: dict, status: int = 200, message: str | None = None):
    body: dict = {"success": True}
    if message:
        body["message"] = message
    body["data"] = {"snapshot": snapshot}
    return jsonify(body), status
