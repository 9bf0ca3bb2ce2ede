from __future__ import annotations

from flask import Blueprint, jsonify, g

from utils.decorators import get_auth_service, jwt_required, roles_required

bp = Blueprint("users", __name__)


@bp.get("/users")
@roles_required(["admin"])
def list_users():
    """
    List all users - admin
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200: { description: OK }
      401: { description: Unauthorized }
      403: { description: Insufficient role }
    """
    users = get_auth_service().list_users()
    return jsonify({"data": users, "meta": {"total": len(users)}}), 200


@bp.get("/me")
@jwt_required()
def me():
    """
    Get current user info
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    return jsonify({"data": get_auth_service().get_user(g.current_user_id)}), 200
