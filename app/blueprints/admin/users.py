import json

from flask import request, jsonify, current_app
from flask_login import current_user

from app.extensions import db
from app.models.user import User, ROLE_CHOICES, ROLE_ADMIN
from app.blueprints.users.routes import users_query, paginated_users
from app.utils.validators import parse_choice, json_object
from app.errors import NotFoundError, ConflictError
from . import bp


def _target(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None or user.is_deleted:
        raise NotFoundError("User not found")
    return user


@bp.get("/users")
def users():
    """All non-deleted users, inactive included."""
    q = users_query(include_inactive=True)
    status = (request.args.get("status") or "").strip().lower()
    if status == "active":
        q = q.where(User.is_active.is_(True))
    elif status == "inactive":
        q = q.where(User.is_active.is_(False))
    data, pagination = paginated_users(q)
    return jsonify(ok=True, data=data, pagination=pagination)


@bp.put("/users/<int:user_id>/toggle-status")
def toggle_status(user_id: int):
    user = _target(user_id)
    if user.id == current_user.id:
        raise ConflictError("You cannot deactivate your own account")
    user.is_active = not user.is_active
    db.session.commit()
    current_app.logger.info(json.dumps({
        "event": "user_status_changed", "user_id": user.id, "is_active": user.is_active, "by": current_user.id,
    }))
    return jsonify(ok=True, data=user.to_dict(),
                   message="User activated" if user.is_active else "User deactivated")


@bp.put("/users/<int:user_id>/role")
def set_role(user_id: int):
    user = _target(user_id)
    data = json_object()
    try:
        role = parse_choice(data.get("role"), ROLE_CHOICES)
    except ValueError as e:
        return jsonify(ok=False, errors={"role": f"Role {e}."}), 400
    if role is None:
        return jsonify(ok=False, errors={"role": "Role is required."}), 400

    # Safety rail: an admin cannot demote themselves (no lock-out of the last admin by accident)
    if user.id == current_user.id and role != ROLE_ADMIN:
        raise ConflictError("You cannot remove your own admin role")

    user.role = role
    db.session.commit()
    current_app.logger.info(json.dumps({
        "event": "user_role_changed", "user_id": user.id, "role": role, "by": current_user.id,
    }))
    return jsonify(ok=True, data=user.to_dict(), message="Role updated")
