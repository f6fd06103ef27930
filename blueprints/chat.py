"""Study coach chat routes — text transcript and image questions."""

from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required

from chat_client import ServiceError
from extensions import limiter

logger = logging.getLogger(__name__)

bp = Blueprint("chat", __name__)


def _client():
    return current_app.extensions["chat_client"]


def _service_error(e: ServiceError):
    if e.status >= 500:
        logger.warning("Chat service error: %s", e.reason)
    return jsonify({"error": e.reason, "display": e.display()}), e.status


@bp.route("/api/chat", methods=["POST"])
@login_required
@limiter.limit("30 per minute")
def api_chat():
    if (request.content_length or 0) > current_app.config.get("JSON_BODY_LIMIT", 2 * 1024 * 1024):
        return jsonify({"error": "Request body too large"}), 413
    data = request.get_json(silent=True) or {}
    try:
        text = _client().send_text(data.get("messages"))
    except ServiceError as e:
        return _service_error(e)
    return jsonify({"text": text})


@bp.route("/api/chat-image", methods=["POST"])
@login_required
@limiter.limit("10 per minute")
def api_chat_image():
    image = request.files.get("image")
    if image is None:
        return jsonify({"error": "image file is required"}), 400
    prompt = (request.form.get("prompt") or "").strip()
    if not prompt:
        return jsonify({"error": "prompt is required"}), 400

    try:
        text = _client().send_image(image.read(), image.mimetype or "image/png", prompt)
    except ServiceError as e:
        return _service_error(e)
    return jsonify({"text": text})
