import json

from flask import request, jsonify, current_app
from flask_login import current_user, logout_user
from sqlalchemy import func, or_

from app.extensions import db
from app.models.user import User, ROLE_ADMIN, ROLE_CHOICES
from app.services.persistence import soft_delete_user
from app.services.policy import login_required_json, staff_required, can_manage_user
from app.utils.validators import (
    clean_str,
    clean_email,
    is_valid_email,
    is_strong_password,
    parse_choice,
    parse_pagination,
    pagination_meta,
    json_object,
)
from app.errors import NotFoundError, AuthorizationError, ConflictError
from . import bp


def users_query(include_inactive: bool = True):
    q = db.select(User).where(User.is_deleted.is_(False))
    if not include_inactive:
        q = q.where(User.is_active.is_(True))
    search = (request.args.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        q = q.where(or_(User.email.ilike(like), User.first_name.ilike(like), User.last_name.ilike(like)))
    return q


def paginated_users(q):
    page, limit = parse_pagination(request.args)
    total = db.session.execute(db.select(func.count()).select_from(q.subquery())).scalar_one()
    rows = db.session.execute(
        q.order_by(User.created_at.desc(), User.id.desc()).offset((page - 1) * limit).limit(limit)
    ).scalars().all()
    return [u.to_dict() for u in rows], pagination_meta(page, limit, total)


def _get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None or user.is_deleted:
        raise NotFoundError("User not found")
    if not can_manage_user(current_user, user):
        raise AuthorizationError("You can only manage your own account")
    return user


@bp.get("/")
@staff_required
def list_users():
    q = users_query(include_inactive=False)
    try:
        role = parse_choice(request.args.get("role"), ROLE_CHOICES)
    except ValueError as e:
        return jsonify(ok=False, errors={"role": f"Role {e}."}), 400
    if role:
        q = q.where(User.role == role)
    data, pagination = paginated_users(q)
    return jsonify(ok=True, data=data, pagination=pagination)


@bp.get("/<int:user_id>")
@login_required_json
def get_user(user_id: int):
    return jsonify(ok=True, data=_get_user(user_id).to_dict())


@bp.put("/<int:user_id>")
@login_required_json
def update_user(user_id: int):
    user = _get_user(user_id)
    data = json_object()
    is_admin = current_user.role == ROLE_ADMIN

    if not is_admin and ("role" in data or "is_active" in data):
        raise AuthorizationError("Only admins can change role or status")

    errors = {}
    values = {}
    for field in ("first_name", "last_name"):
        if field in data:
            val = clean_str(data.get(field), max_len=50)
            if not val:
                errors[field] = "Must not be empty."
            values[field] = val
    if "email" in data:
        email = clean_email(data.get("email"))
        if not email or not is_valid_email(email):
            errors["email"] = "Email is invalid."
        values["email"] = email
    if "role" in data:
        try:
            values["role"] = parse_choice(data.get("role"), ROLE_CHOICES, default=user.role)
        except ValueError as e:
            errors["role"] = f"Role {e}."
    if "is_active" in data:
        if not isinstance(data.get("is_active"), bool):
            errors["is_active"] = "is_active must be true or false."
        else:
            values["is_active"] = data["is_active"]
    if errors:
        return jsonify(ok=False, errors=errors), 400

    if values.get("email") and values["email"] != user.email:
        taken = db.session.execute(
            db.select(User.id).where(func.lower(User.email) == values["email"], User.id != user.id)
        ).first()
        if taken:
            raise ConflictError("An account with that email already exists.")

    for key, val in values.items():
        setattr(user, key, val)
    db.session.commit()
    return jsonify(ok=True, data=user.to_dict(), message="User updated")


@bp.put("/me/password")
@login_required_json
def change_password():
    data = json_object()
    current_password = data.get("current_password") or ""
    new_password = data.get("new_password") or ""

    errors = {}
    if not isinstance(current_password, str) or not current_user.check_password(current_password):
        errors["current_password"] = "Current password is incorrect."
    if not is_strong_password(new_password):
        errors["new_password"] = "Password must be at least 8 characters."
    elif new_password == current_password:
        errors["new_password"] = "New password must differ from the current one."
    if errors:
        return jsonify(ok=False, errors=errors), 400

    current_user.set_password(new_password)
    db.session.commit()
    current_app.logger.info(json.dumps({"event": "password_changed", "user_id": current_user.id}))
    return jsonify(ok=True, message="Password changed")


@bp.delete("/<int:user_id>")
@login_required_json
def delete_user(user_id: int):
    user = _get_user(user_id)
    is_self = user.id == current_user.id
    soft_delete_user(user)
    if is_self:
        logout_user()
    return jsonify(ok=True, data={"id": user_id}, message="User deleted")
