from __future__ import annotations

from flask import Flask, jsonify, request

from .ledger import filter_rows
from ..common.http import current_user_id, error_response, server_error
from ..container import Container
from ..core.exceptions import DomainError


def _flag(name: str) -> bool:
    return request.args.get(name, "").lower() in {"1", "true", "yes"}


def register(app: Flask, container: Container) -> None:
    @app.route("/events/<event_id>/ledger", methods=["GET"], endpoint="attendance_ledger")
    def attendance_ledger(event_id: str):
        try:
            event, rows = container.attendance_service.ledger_view(event_id=event_id, actor_id=current_user_id())
            rows = filter_rows(
                rows,
                query=request.args.get("q", ""),
                only_participants=_flag("participants"),
                only_changed=_flag("changed"),
            )
            return jsonify({"event": event.to_dict(), "rows": [r.to_dict() for r in rows]})
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Could not load attendance ledger")
