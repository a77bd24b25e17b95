from __future__ import annotations

from datetime import timedelta

from flask import Flask, jsonify, request, session

from ..common.web import login_required
from ..container import Container


def register(app: Flask, container: Container) -> None:
    @app.route("/api/login", methods=["POST"], endpoint="login")
    def login():
        payload = request.get_json(silent=True) or request.form
        s_user = container.auth_service.authenticate(payload.get("username", ""), payload.get("password", ""))

        session.clear()
        session.permanent = bool(payload.get("remember_me"))
        app.permanent_session_lifetime = timedelta(days=7)
        session["user_id"] = s_user.user_id
        session["name"] = s_user.full_name
        session["role"] = s_user.role.value

        return jsonify({"success": True, "user": {"id": s_user.user_id, "full_name": s_user.full_name, "role": s_user.role.value}})

    @app.route("/api/logout", methods=["POST"], endpoint="logout")
    def logout():
        session.clear()
        return jsonify({"success": True})

    @app.route("/api/me", endpoint="me")
    @login_required
    def me():
        return jsonify({"success": True, "user": {"id": session["user_id"], "full_name": session.get("name"), "role": session["role"]}})
