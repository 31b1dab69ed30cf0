from datetime import datetime
from functools import wraps

from flask import abort, current_app, jsonify, request, session

from rollcall.utils.time_utils import as_naive_utc


def engine():
    return current_app.extensions["rollcall"]


def require_role(role):
    """Only let through requests whose session carries ``role``.

    Identity and role are placed in the Flask session by the external login
    flow; this layer only reads them.
    """

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if "user_id" not in session:
                return jsonify({"success": False, "msg": "Not logged in"}), 401
            if session.get("role") != role:
                return jsonify({"success": False, "msg": "Unauthorized"}), 403
            return view(*args, **kwargs)

        return wrapper

    return decorator


def request_time(data=None):
    """Attempt time from an optional ISO ``at`` field, else now.

    Only honoured in testing; live requests are always stamped by the server.
    """
    if not isinstance(data, dict):
        data = {}
    raw = data.get("at") or request.args.get("at")
    if raw and current_app.config.get("TESTING"):
        try:
            parsed = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
        except ValueError:
            abort(400, description="at must be an ISO 8601 timestamp")
        return as_naive_utc(parsed)
    return as_naive_utc(None)
