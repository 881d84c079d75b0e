# backoffice_api/common/http.py
from flask import jsonify


def ok(data=None, status=200, **meta):
    """Success envelope; keyword arguments become `meta` (paging totals etc.)."""
    payload = {"success": True, "data": data}
    if meta:
        payload["meta"] = meta
    return jsonify(payload), status


def created(data):
    return ok(data, status=201)


def no_content():
    return "", 204


def fail(message="Bad Request", status=400, code=None, detail=None):
    error = {"message": message}
    if code:
        error["code"] = code
    if detail:
        error["detail"] = detail
    return jsonify({"success": False, "error": error}), status
