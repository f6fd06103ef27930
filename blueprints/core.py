"""Core routes — health checks, tips and quotes."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from helpers import random_quote, tips_for
from state_store import get_store

bp = Blueprint("core", __name__)


@bp.route("/health")
@bp.route("/healthz")
def health():
    client = current_app.extensions["chat_client"]
    return jsonify({
        "ok": True,
        "hasKey": client.configured,
        "model": client.model_name,
        "storage": "durable" if get_store().available else "memory",
    })


@bp.route("/api/tips/<role>")
def api_tips(role):
    if role not in ("student", "parent"):
        return jsonify({"error": "role must be 'student' or 'parent'"}), 404
    return jsonify({"role": role, "tips": tips_for(role)})


@bp.route("/api/quote")
def api_quote():
    return jsonify({"quote": random_quote()})
