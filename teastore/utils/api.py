# --- teastore/utils/api.py ---
from datetime import datetime, timedelta, timezone

from flask import current_app, has_app_context, jsonify


def _api_time_human():
    hours = current_app.config.get("API_UTC_OFFSET_HOURS", 3) if has_app_context() else 3
    now = datetime.now(timezone.utc) + timedelta(hours=hours)
    return now.strftime("%Y-%m-%d %H:%M:%S")


def api_ok(message, data=None):
    return {
        "status": True,
        "message": message,
        "data": {
            **(data or {}),
            "API_TIME_HUMAN": _api_time_human(),
        },
    }


def api_error(message, data=None):
    return {
        "status": False,
        "message": message,
        "data": {
            **(data or {}),
            "API_TIME_HUMAN": _api_time_human(),
        },
    }


# ---- standard API response format ------------------------------------------
def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r

def err(msg, status=400, data=None):
    r = jsonify(api_error(msg, data)); r.status_code = status; return r
