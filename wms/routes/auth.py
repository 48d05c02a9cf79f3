# Overview: Flask API routes for login, logout, registration and user administration.

"""
Authentication routes.

Login answers 401 for bad credentials and 409 when an admin session is
already open and active (the admin lock).
"""

from flask import Blueprint, jsonify

from ..services import auth_service
from .common import json_body, json_error


auth_bp = Blueprint("auth", __name__, url_prefix="/api")


@auth_bp.post("/auth/login")
def login_route():
    try:
        data = json_body()
        username = data.get("username")
        password = data.get("password")
        if not username or not password:
            return jsonify({"error": "username and password required"}), 400

        result = auth_service.login(username, password)
        if result.error == auth_service.LOGIN_ADMIN_LOCKED:
            return jsonify({"error": "Admin is already logged in", "code": result.error}), 409
        if not result.ok:
            return jsonify({"error": "Invalid credentials", "code": result.error}), 401

        return jsonify({"user": result.user.to_dict(), "message": "Login successful"}), 200
    except Exception as exc:
        return json_error(exc, "Failed to login user")


@auth_bp.post("/auth/logout")
def logout_route():
    try:
        user_id = json_body().get("user_id")
        if not isinstance(user_id, int):
            return jsonify({"error": "user_id required"}), 400
        user = auth_service.logout(user_id)
        return jsonify({"user": user.to_dict()}), 200
    except Exception as exc:
        return json_error(exc, "Failed to logout user")


@auth_bp.post("/auth/heartbeat")
def heartbeat_route():
    try:
        user_id = json_body().get("user_id")
        if not isinstance(user_id, int):
            return jsonify({"error": "user_id required"}), 400
        user = auth_service.touch(user_id)
        return jsonify({"user": user.to_dict()}), 200
    except Exception as exc:
        return json_error(exc, "Failed to record heartbeat")


@auth_bp.post("/auth/register")
def register_route():
    try:
        data = json_body()
        created = auth_service.register_user(
            data.get("username"),
            data.get("password"),
            name=data.get("name"),
            role=data.get("role") or "employee",
        )
        if not created:
            return jsonify({"error": "Username already exists"}), 409
        user = auth_service.get_user_by_username(data["username"].strip())
        return jsonify({"user": user.to_dict()}), 201
    except Exception as exc:
        return json_error(exc, "Failed to register user")


@auth_bp.get("/users")
def list_users_route():
    users = [u.to_dict() for u in auth_service.list_users()]
    return jsonify({"items": users, "count": len(users)}), 200


@auth_bp.put("/users/<int:user_id>")
def update_user_route(user_id: int):
    try:
        data = json_body()
        user = auth_service.update_user(
            user_id,
            name=data.get("name"),
            role=data.get("role"),
            password=data.get("password"),
        )
        return jsonify({"user": user.to_dict()}), 200
    except Exception as exc:
        return json_error(exc, "Failed to update user")


@auth_bp.delete("/users/<int:user_id>")
def delete_user_route(user_id: int):
    try:
        auth_service.delete_user(user_id)
        return jsonify({"deleted": True}), 200
    except Exception as exc:
        return json_error(exc, "Failed to delete user")
