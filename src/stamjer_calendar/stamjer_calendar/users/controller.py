from __future__ import annotations

from flask import Flask, jsonify, session

from ..common.http import current_user_id, error_response, json_body, server_error
from ..common.validators import require_int
from ..container import Container
from ..core.exceptions import DomainError


def register(app: Flask, container: Container) -> None:
    @app.route("/login", methods=["POST"], endpoint="login")
    def login():
        try:
            data = json_body()
            user = container.auth_service.authenticate(data.get("email", ""), data.get("password", ""))
            session.clear()
            session["user_id"] = user.user_id
            return jsonify({"user": user.to_public_dict()})
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Login failed")

    @app.route("/logout", methods=["POST"], endpoint="logout")
    def logout():
        session.clear()
        return jsonify({"msg": "Logged out"})

    @app.route("/users", methods=["GET"], endpoint="list_users")
    def list_users():
        return jsonify({"users": container.user_service.list_basic()})

    @app.route("/users/full", methods=["GET"], endpoint="list_users_full")
    def list_users_full():
        try:
            return jsonify({"users": container.user_service.list_full()})
        except Exception:
            return server_error("Could not load users")

    @app.route("/user/profile", methods=["PUT"], endpoint="update_profile")
    def update_profile():
        try:
            data = json_body()
            if data.get("userId") is None:
                return jsonify({"msg": "User ID required"}), 400
            user = container.user_service.update_profile(
                actor_id=current_user_id(),
                user_id=require_int(data["userId"], "userId"),
                active=data.get("active"),
            )
            return jsonify({"user": user.to_public_dict()})
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error("Profile update failed")
