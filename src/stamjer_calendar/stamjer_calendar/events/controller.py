from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.http import current_user_id, error_response, json_body, optional_revision, server_error
from ..container import Container
from ..core.exceptions import DomainError


def register(app: Flask, container: Container) -> None:
    @app.route("/events", methods=["GET"], endpoint="list_events")
    def list_events():
        try:
            events = container.event_service.list_events()
            return jsonify({"events": [e.to_dict() for e in events]})
        except Exception:
            return server_error("Could not load events")

    @app.route("/events/opkomsten", methods=["GET"], endpoint="list_opkomsten")
    def list_opkomsten():
        try:
            upcoming = request.args.get("upcoming", "").lower() in {"1", "true", "yes"}
            events = container.event_service.list_opkomsten(upcoming_from=container.today() if upcoming else None)
            return jsonify({"events": [e.to_dict() for e in events]})
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Could not load opkomsten")

    @app.route("/events/<event_id>", methods=["GET"], endpoint="get_event")
    def get_event(event_id: str):
        try:
            return jsonify(container.event_service.get_event(event_id).to_dict())
        except DomainError as e:
            return error_response(e)

    @app.route("/events", methods=["POST"], endpoint="create_event")
    def create_event():
        try:
            event = container.event_service.create_event(actor_id=current_user_id(), data=json_body())
            return jsonify(event.to_dict()), 201
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Create event failed")

    @app.route("/events/<event_id>", methods=["PUT"], endpoint="update_event")
    def update_event(event_id: str):
        try:
            data = json_body()
            revision = optional_revision(data)
            if set(data) - {"revision"} == {"attendance"}:
                # Bulk attendance save: whole-map replace.
                event = container.attendance_service.save_attendance(
                    event_id=event_id,
                    ledger=data["attendance"] or {},
                    actor_id=current_user_id(),
                    expected_revision=revision,
                )
            else:
                event = container.event_service.update_event(
                    actor_id=current_user_id(),
                    event_id=event_id,
                    changes=data,
                    expected_revision=revision,
                )
            return jsonify(event.to_dict())
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Update failed")

    @app.route("/events/<event_id>", methods=["DELETE"], endpoint="delete_event")
    def delete_event(event_id: str):
        try:
            removed = container.event_service.delete_event(actor_id=current_user_id(), event_id=event_id)
            return jsonify({"msg": "Deleted", "event": removed.to_dict()})
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Delete failed")
