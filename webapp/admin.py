# webapp/admin.py

from flask import Blueprint, current_app, jsonify

from .api import ApiError, json_payload, get_store, current_user

admin_blueprint = Blueprint("admin", __name__)


@admin_blueprint.before_request
def require_admin():
    user = current_user()
    if user["role"] != "admin":
        raise ApiError(f"User role {user['role']} is not authorized to access this route", 403)


@admin_blueprint.route("/users", methods=["GET"])
def list_users():
    users = get_store().list_users()
    return jsonify({"success": True, "count": len(users), "data": users})


@admin_blueprint.route("/users/<user_id>", methods=["GET"])
def get_user(user_id):
    return jsonify({"success": True, "data": get_store().get_user(user_id)})


@admin_blueprint.route("/users/<user_id>/role", methods=["PUT"])
def update_role(user_id):
    role = json_payload().get("role")
    user = get_store().update_user_role(user_id, role)
    current_app.logger.info("Role of %s set to %s", user["username"], role)
    return jsonify({"success": True, "data": user})


@admin_blueprint.route("/users/<user_id>", methods=["DELETE"])
def delete_user(user_id):
    get_store().delete_user(user_id)
    current_app.logger.info("Deleted user %s and their scores", user_id)
    return jsonify({"success": True, "data": {}})


@admin_blueprint.route("/scores", methods=["GET"])
def list_scores():
    scores = get_store().list_scores()
    return jsonify({"success": True, "count": len(scores), "data": scores})


@admin_blueprint.route("/stats", methods=["GET"])
def stats():
    return jsonify({"success": True, "data": get_store().get_stats()})
