from __future__ import annotations

from flask import Flask, jsonify

from ..common.http import current_user_id, error_response, json_body, server_error
from ..common.validators import require_bool, require_int
from ..container import Container
from ..core.exceptions import AuthenticationError, DomainError


def register(app: Flask, container: Container) -> None:
    @app.route("/events/<event_id>/attendance", methods=["PUT"], endpoint="set_attending")
    def set_attending(event_id: str):
        """RSVP toggle: body ``{userId, attending}``; only the roster changes.

        ``userId`` may be omitted, in which case the logged-in user RSVPs for
        themselves. The session is checked before the body is validated.
        """
        try:
            actor_id = current_user_id()
            if actor_id is None:
                raise AuthenticationError("Login required")
            data = json_body()
            event = container.roster_service.set_attending(
                event_id=event_id,
                user_id=require_int(data.get("userId", actor_id), "userId"),
                attending=require_bool(data.get("attending"), "attending"),
                actor_id=actor_id,
            )
            return jsonify({"msg": "Attendance updated", "event": event.to_dict()})
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Attendance failed")
