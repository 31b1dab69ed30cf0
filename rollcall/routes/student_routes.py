from flask import Blueprint, jsonify, request, session

from rollcall.routes import engine, request_time, require_role

student_bp = Blueprint("student", __name__)

MESSAGES = {
    "invalid_code": "Invalid QR Code",
    "expired": "QR Code expired!",
    "not_enrolled": "You are not enrolled in this course",
    "already_marked": "Attendance already marked",
}


@student_bp.route("/scan_qr", methods=["POST"])
@require_role("student")
def scan_qr():
    data = request.get_json(silent=True) or {}
    token = data.get("token")
    if not token:
        return jsonify({"success": False, "msg": "No token received"}), 400

    result = engine().redeem(token, session["user_id"], at=request_time(data))
    body = result.to_dict()
    body["msg"] = "Attendance marked" if result.accepted else MESSAGES[body["reason"]]
    return jsonify(body)


@student_bp.route("/attendance")
@require_role("student")
def my_attendance():
    """The caller's effective outcome in every session they appear in."""
    ledger = engine().ledger
    by_session = {}
    for record in ledger.query(identity=session["user_id"]):
        by_session.setdefault(record.session_id, []).append(record)

    # Ledger order is oldest first, so the last record per session is the effective one
    rows = [records[-1].to_dict() for records in by_session.values()]
    rows.sort(key=lambda r: r["recorded_at"])
    return jsonify({"records": rows})
