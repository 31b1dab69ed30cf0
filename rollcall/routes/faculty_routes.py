from flask import Blueprint, current_app, jsonify, request, session

from rollcall.errors import SessionNotFound
from rollcall.routes import engine, request_time, require_role
from rollcall.utils.qr_utils import render_qr_b64
from rollcall.utils.time_utils import isoformat

faculty_bp = Blueprint("faculty", __name__)


def _owned_session(session_id):
    """Load a session the logged-in instructor opened; others look unknown."""
    attendance_session = engine().sessions.require(session_id)
    if attendance_session.instructor_id != session["user_id"]:
        raise SessionNotFound(session_id)
    return attendance_session


@faculty_bp.route("/sessions", methods=["POST"])
@require_role("faculty")
def open_session():
    data = request.get_json(silent=True) or {}
    course_id = data.get("course_id")
    slot_id = data.get("slot_id")
    if not course_id or not slot_id:
        return jsonify({"success": False, "msg": "course_id and slot_id are required"}), 400

    duration = data.get("duration_seconds", current_app.config["DEFAULT_SESSION_SECONDS"])
    try:
        duration = int(duration)
    except (TypeError, ValueError):
        return jsonify({"success": False, "msg": "duration_seconds must be an integer"}), 400
    if duration <= 0:
        return jsonify({"success": False, "msg": "duration_seconds must be positive"}), 400

    at = request_time(data)
    new_session = engine().sessions.open(
        course_id, slot_id, data.get("venue", ""), duration, session["user_id"], at=at
    )
    return jsonify({"success": True, "session": new_session.to_dict(at)}), 201


@faculty_bp.route("/sessions/<session_id>/token")
@require_role("faculty")
def current_token(session_id):
    _owned_session(session_id)
    at = request_time()
    token = engine().sessions.current_token(session_id, at=at)
    attendance_session = engine().sessions.require(session_id)
    return jsonify({
        "token": token,
        "qr": render_qr_b64(token),
        "expires_at": isoformat(attendance_session.expires_at),
        "time_remaining": attendance_session.time_remaining(at),
        "rotates_in": current_app.config["TOKEN_ROTATION_SECONDS"]
        if current_app.config["TOKEN_ROTATION_ENABLED"] else None,
    })


@faculty_bp.route("/sessions/<session_id>/stop", methods=["POST"])
@require_role("faculty")
def stop_session(session_id):
    _owned_session(session_id)
    at = request_time(request.get_json(silent=True))
    stopped = engine().sessions.stop(session_id, at=at)
    return jsonify({"success": True, "session": stopped.to_dict(at)})


@faculty_bp.route("/sessions/<session_id>/manual", methods=["POST"])
@require_role("faculty")
def manual_entry(session_id):
    _owned_session(session_id)
    data = request.get_json(silent=True) or {}
    identity = data.get("identity")
    outcome = data.get("outcome")
    if not identity or not outcome:
        return jsonify({"success": False, "msg": "identity and outcome are required"}), 400

    record = engine().reconciler.apply_manual(
        session_id, identity, outcome, session["user_id"], at=request_time(data)
    )
    return jsonify({"success": True, "record": record.to_dict()}), 201


@faculty_bp.route("/sessions/<session_id>/attendance")
@require_role("faculty")
def attendance_list(session_id):
    attendance_session = _owned_session(session_id)
    reconciler = engine().reconciler
    result = {
        "session": attendance_session.to_dict(request_time()),
        "students": reconciler.roster_status(session_id),
        "summary": reconciler.summary(session_id),
    }
    if request.args.get("history") in ("1", "true", "yes"):
        result["history"] = [r.to_dict() for r in engine().ledger.query(session_id=session_id)]
    return jsonify(result)


@faculty_bp.route("/sessions")
@require_role("faculty")
def live_sessions():
    at = request_time()
    sessions = engine().sessions.live_sessions(session["user_id"], at=at)
    return jsonify({"sessions": [s.to_dict(at) for s in sessions]})
