"""Schedule routes — calendar activities, attachments, exam date and lock-in."""

from __future__ import annotations

from datetime import date

from flask import Blueprint, jsonify, request
from flask_login import login_required

from coercers import MAX_ENTRIES_PER_DATE, is_iso_date
from estimators import compute_lock_in, days_until
from helpers import month_matrix
from state_store import Keys, get_store

bp = Blueprint("schedule", __name__, url_prefix="/api/schedule")


def _exam_payload(exam_date: str) -> dict:
    return {
        "exam_date": exam_date,
        "days_left": days_until(exam_date) if exam_date else None,
        "lock_in": compute_lock_in(exam_date),
    }


@bp.route("/exam-date")
@bp.route("/lock-in")
@login_required
def api_exam_date():
    return jsonify(_exam_payload(get_store().get(Keys.EXAM_DATE, "")))


@bp.route("/exam-date", methods=["PUT", "POST"])
@login_required
def api_set_exam_date():
    data = request.get_json(silent=True) or {}
    store = get_store()
    store.set(Keys.EXAM_DATE, data.get("exam_date", ""))
    return jsonify(_exam_payload(store.get(Keys.EXAM_DATE, "")))


@bp.route("/activities")
@login_required
def api_activities():
    return jsonify({"activities": get_store().get(Keys.STUDENT_ACTIVITIES, {})})


@bp.route("/activities/<day>", methods=["POST"])
@login_required
def api_add_activity(day):
    if not is_iso_date(day):
        return jsonify({"error": "date must be YYYY-MM-DD"}), 400
    data = request.get_json(silent=True) or {}
    text = (data.get("text") or "").strip()
    if not text:
        return jsonify({"error": "text is required"}), 400

    appended = []

    def _append(activities):
        activities = activities or {}
        appended[:] = [*activities.get(day, []), text]
        return {**activities, day: appended}

    saved = get_store().update(Keys.STUDENT_ACTIVITIES, _append).get(day, [])
    return jsonify({
        "date": day,
        "activities": saved,
        "truncated": len(appended) > MAX_ENTRIES_PER_DATE,
    })


@bp.route("/attachments")
@login_required
def api_attachments():
    return jsonify({"attachments": get_store().get(Keys.ATTACHMENTS, {})})


@bp.route("/attachments/<day>", methods=["POST"])
@login_required
def api_add_attachments(day):
    if not is_iso_date(day):
        return jsonify({"error": "date must be YYYY-MM-DD"}), 400
    uploads = request.files.getlist("files")
    if not uploads:
        return jsonify({"error": "files are required"}), 400

    # Only name and size are kept; file contents are not stored.
    records = []
    for f in uploads:
        size = len(f.read())
        records.append({"name": f.filename or "file", "size": size})

    def _extend(attachments):
        attachments = attachments or {}
        return {**attachments, day: [*attachments.get(day, []), *records]}

    saved = get_store().update(Keys.ATTACHMENTS, _extend).get(day, [])
    return jsonify({"date": day, "attachments": saved})


@bp.route("/calendar")
@login_required
def api_calendar():
    today = date.today()
    try:
        year = int(request.args.get("year", today.year))
        month = int(request.args.get("month", today.month))
        weeks = month_matrix(year, month)
    except ValueError:
        return jsonify({"error": "year and month must be a valid calendar month"}), 400

    store = get_store()
    activities = store.get(Keys.STUDENT_ACTIVITIES, {})
    attachments = store.get(Keys.ATTACHMENTS, {})
    for week in weeks:
        for cell in week:
            cell["activities"] = activities.get(cell["date"], [])
            cell["attachments"] = attachments.get(cell["date"], [])
    return jsonify({"year": year, "month": month, "weeks": weeks})
