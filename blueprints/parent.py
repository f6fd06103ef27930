"""Parent routes — target score, overview of recent work, score predictor."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

from estimators import compute_lock_in, predict_score
from helpers import recent_items
from state_store import Keys, get_store

bp = Blueprint("parent", __name__, url_prefix="/api/parent")

DEFAULT_PRACTICE_SLOTS = 5


@bp.route("/target-score")
@login_required
def api_target_score():
    return jsonify({"target_score": get_store().get(Keys.TARGET_SCORE, 75)})


@bp.route("/target-score", methods=["PUT", "POST"])
@login_required
def api_set_target_score():
    data = request.get_json(silent=True) or {}
    store = get_store()
    store.set(Keys.TARGET_SCORE, data.get("target_score"))
    return jsonify({"target_score": store.get(Keys.TARGET_SCORE, 75)})


@bp.route("/overview")
@login_required
def api_overview():
    store = get_store()
    exam_date = store.get(Keys.EXAM_DATE, "")
    return jsonify({
        "target_score": store.get(Keys.TARGET_SCORE, 75),
        "exam_date": exam_date,
        "lock_in": compute_lock_in(exam_date),
        "recent": recent_items(
            store.get(Keys.STUDENT_ACTIVITIES, {}),
            store.get(Keys.ATTACHMENTS, {}),
        ),
    })


@bp.route("/predict", methods=["POST"])
@login_required
def api_predict():
    data = request.get_json(silent=True) or {}
    practice = data.get("practice_scores")
    if practice is None:
        practice = [""] * DEFAULT_PRACTICE_SLOTS
    if not isinstance(practice, list):
        return jsonify({"error": "practice_scores must be a list"}), 400
    return jsonify({
        "predicted": predict_score(practice, data.get("last_exam")),
        "practice_count": len(practice),
    })
