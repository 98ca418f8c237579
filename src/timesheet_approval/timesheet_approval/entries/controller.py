from __future__ import annotations

import logging
from dataclasses import asdict
from functools import wraps
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request, session

from ..common.datetime_utils import parse_clock_time, parse_iso_date, to_jsonable
from ..core.enums import EntryType, ReviewAction
from ..core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    DomainError,
    LockedError,
    NotFoundError,
    ValidationError,
)
from ..container import Container
from .model import EntryPatch, NewTimeEntry

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = (
    (LockedError, 423),
    (NotFoundError, 404),
    (AuthorizationError, 403),
    (AuthenticationError, 401),
    (ValidationError, 400),
)


def _status_for(error: DomainError) -> int:
    for kind, status in _STATUS_BY_ERROR:
        if isinstance(error, kind):
            return status
    return 400


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    return to_jsonable(value)


def _as_json(obj) -> Dict[str, Any]:
    return _jsonable(asdict(obj))


def _parse_entry_type(value: Any) -> EntryType:
    try:
        return EntryType(value)
    except ValueError:
        raise ValidationError(f"Unknown entry type: {value!r}")


def _parse_optional_int(value: Any, field_name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a whole number")


def _parse_hours(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError("Hours must be a number")


def _parse_text(value: Any, field_name: str) -> Optional[str]:
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{field_name} must be text")
    return value


# How each editable field is read from a JSON payload.
_FIELD_PARSERS = {
    "work_date": parse_iso_date,
    "entry_type": _parse_entry_type,
    "hours": _parse_hours,
    "client_name": lambda v: _parse_text(v, "client_name"),
    "start_time": parse_clock_time,
    "end_time": parse_clock_time,
    "note": lambda v: _parse_text(v, "note"),
    "surcharge": lambda v: _parse_optional_int(v, "Surcharge"),
    "responsible_user_id": lambda v: _parse_text(v, "responsible_user_id") or None,
    "late_reason": lambda v: _parse_text(v, "late_reason"),
}


def _parse_new_entry(data: Dict[str, Any]) -> NewTimeEntry:
    for required in ("work_date", "entry_type", "hours"):
        if data.get(required) in (None, ""):
            raise ValidationError(f"{required} is required")
    values = {name: parse(data[name]) for name, parse in _FIELD_PARSERS.items() if name in data}
    return NewTimeEntry(**values)


def _parse_patch(changes: Any) -> EntryPatch:
    if not isinstance(changes, dict):
        raise ValidationError("changes must be an object")
    allowed = EntryPatch.field_names()
    forbidden = sorted(set(changes) - allowed)
    if forbidden:
        raise ValidationError(f"Fields cannot be changed: {', '.join(forbidden)}")
    return EntryPatch(**{name: _FIELD_PARSERS[name](value) for name, value in changes.items()})


def register(app: Flask, container: Container) -> None:
    service = container.entry_service

    def login_required(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if "user_id" not in session:
                return jsonify({"error": "Login required"}), 401
            return view(*args, **kwargs)

        return wrapper

    def _current_user_id() -> str:
        return str(session["user_id"])

    def _body() -> Dict[str, Any]:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}

    @app.errorhandler(DomainError)
    def handle_domain_error(e: DomainError):
        status = _status_for(e)
        if status in (403, 423):
            logger.warning("Refused %s %s: %s", request.method, request.path, e)
        body: Dict[str, Any] = {"error": str(e)}
        if isinstance(e, LockedError) and e.locked_date is not None:
            body["locked_date"] = e.locked_date.isoformat()
        return jsonify(body), status

    @app.errorhandler(500)
    def handle_internal_error(e):
        return jsonify({"error": "Internal server error"}), 500

    @app.route("/api/entries", methods=["GET"], endpoint="list_entries")
    @login_required
    def list_entries():
        start = request.args.get("start")
        end = request.args.get("end")
        entries = service.list_entries(
            user_id=request.args.get("user_id") or _current_user_id(),
            viewer_id=_current_user_id(),
            start_date=parse_iso_date(start) if start else None,
            end_date=parse_iso_date(end) if end else None,
            include_deleted=request.args.get("include_deleted") == "1",
        )
        return jsonify({"entries": [_as_json(e) for e in entries]})

    @app.route("/api/entries", methods=["POST"], endpoint="create_entry")
    @login_required
    def create_entry():
        data = _body()
        entry = service.create_entry(
            _parse_new_entry(data),
            actor_id=_current_user_id(),
            owner_id=data.get("user_id") or None,
        )
        return jsonify({"entry": _as_json(entry)}), 201

    @app.route("/api/entries/<entry_id>", methods=["PATCH"], endpoint="update_entry")
    @login_required
    def update_entry(entry_id: str):
        data = _body()
        entry = service.update_entry(
            entry_id,
            _parse_patch(data.get("changes")),
            actor_id=_current_user_id(),
            reason=data.get("reason"),
        )
        return jsonify({"entry": _as_json(entry)})

    @app.route("/api/entries/<entry_id>", methods=["DELETE"], endpoint="delete_entry")
    @login_required
    def delete_entry(entry_id: str):
        result = service.delete_entry(entry_id, actor_id=_current_user_id(), reason=_body().get("reason"))
        payload: Dict[str, Any] = {"mode": result.mode.value}
        if result.entry is not None:
            payload["entry"] = _as_json(result.entry)
        return jsonify(payload)

    @app.route("/api/entries/<entry_id>/confirm", methods=["POST"], endpoint="confirm_entry")
    @login_required
    def confirm_entry(entry_id: str):
        entry = service.confirm_entry(entry_id, actor_id=_current_user_id())
        return jsonify({"entry": _as_json(entry)})

    @app.route("/api/entries/<entry_id>/reject", methods=["POST"], endpoint="reject_entry")
    @login_required
    def reject_entry(entry_id: str):
        entry = service.reject_entry(entry_id, actor_id=_current_user_id(), reason=_body().get("reason"))
        return jsonify({"entry": _as_json(entry)})

    @app.route("/api/entries/<entry_id>/deletion-request", methods=["POST"], endpoint="request_deletion")
    @login_required
    def request_deletion(entry_id: str):
        entry = service.request_deletion(entry_id, actor_id=_current_user_id(), reason=_body().get("reason"))
        return jsonify({"entry": _as_json(entry)})

    @app.route("/api/entries/submit", methods=["POST"], endpoint="submit_entries")
    @login_required
    def submit_entries():
        ids = _body().get("ids")
        if not isinstance(ids, list):
            raise ValidationError("ids must be a list")
        submitted = service.mark_submitted(ids, actor_id=_current_user_id())
        return jsonify({"submitted": submitted})

    @app.route("/api/entries/<entry_id>/history", methods=["GET"], endpoint="entry_history")
    @login_required
    def entry_history(entry_id: str):
        rows = service.get_history(entry_id)
        return jsonify({"history": [_as_json(r) for r in rows]})

    @app.route("/api/entries/pending-changes", methods=["GET"], endpoint="pending_changes")
    @login_required
    def pending_changes():
        entries = service.list_pending_changes(user_id=_current_user_id())
        return jsonify({"entries": [_as_json(e) for e in entries]})

    @app.route("/api/reviews", methods=["GET"], endpoint="peer_reviews")
    @login_required
    def peer_reviews():
        entries = service.list_peer_reviews(reviewer_id=_current_user_id())
        return jsonify({"entries": [_as_json(e) for e in entries]})

    @app.route("/api/reviews/<entry_id>", methods=["POST"], endpoint="process_review")
    @login_required
    def process_review(entry_id: str):
        data = _body()
        try:
            action = ReviewAction(data.get("action"))
        except ValueError:
            raise ValidationError("action must be 'confirm' or 'reject'")
        entry = service.process_review(
            entry_id,
            reviewer_id=_current_user_id(),
            action=action,
            reason=data.get("reason"),
        )
        return jsonify({"entry": _as_json(entry)})
