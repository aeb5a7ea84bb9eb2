from functools import wraps
from flask import abort, request, jsonify
from flask_login import current_user
from app.extensions import db
from app.models.user import ROLE_ADMIN, ROLE_MANAGER
from app.models.project import Project
from app.models.feedback import Feedback
from app.errors import NotFoundError, AuthorizationError

def login_required_json(fn):
    @wraps(fn)
    def _wrap(*args, **kwargs):
        if not current_user.is_authenticated:
            return _abort_smart(401)
        return fn(*args, **kwargs)
    return _wrap

def role_required(*roles):
    def deco(fn):
        @wraps(fn)
        def _wrap(*args, **kwargs):
            if not current_user.is_authenticated:
                return _abort_smart(401)
            if current_user.role not in roles:
                return _abort_smart(403)
            return fn(*args, **kwargs)
        return _wrap
    return deco

def staff_required(fn):
    return role_required(ROLE_MANAGER, ROLE_ADMIN)(fn)

def admin_required(fn):
    return role_required(ROLE_ADMIN)(fn)

# --- Resource-level rules ---

def can_access_project(user, project) -> bool:
    """Owner, or any manager/admin."""
    if not getattr(user, "is_authenticated", False) or project is None:
        return False
    return project.owner_id == user.id or user.role in (ROLE_MANAGER, ROLE_ADMIN)

def can_write_project(user, project) -> bool:
    """Owner or admin (managers can read, not edit)."""
    if not getattr(user, "is_authenticated", False) or project is None:
        return False
    return project.owner_id == user.id or user.role == ROLE_ADMIN

def can_manage_user(user, target) -> bool:
    """Self or admin."""
    if not getattr(user, "is_authenticated", False) or target is None:
        return False
    return target.id == user.id or user.role == ROLE_ADMIN

def get_live_project(project_id: int):
    project = db.session.get(Project, project_id)
    if project is None or project.is_deleted:
        return None
    return project

def get_live_feedback(feedback_id: int):
    fb = db.session.get(Feedback, feedback_id)
    if fb is None or fb.is_deleted or fb.project is None or fb.project.is_deleted:
        return None
    return fb

def accessible_projects_query(user):
    """Select() of live projects `user` may see."""
    q = db.select(Project).where(Project.is_deleted.is_(False))
    if user.role not in (ROLE_MANAGER, ROLE_ADMIN):
        q = q.where(Project.owner_id == user.id)
    return q

def _abort_smart(code: int):
    # API-first: JSON unless the client clearly asked for HTML
    accept = (request.headers.get("Accept") or "").lower()
    if "text/html" in accept and "application/json" not in accept:
        abort(code)
    return jsonify({"ok": False, "error": {401: "unauthorized", 403: "forbidden", 404: "not_found"}[code], "code": code}), code

def require_project(project_id: int, write: bool = False):
    """Live project the current user may read (or write); raises otherwise."""
    project = get_live_project(project_id)
    if project is None:
        raise NotFoundError("Project not found")
    allowed = can_write_project(current_user, project) if write else can_access_project(current_user, project)
    if not allowed:
        raise AuthorizationError("You do not have access to this project")
    return project

def require_feedback(feedback_id: int, write: bool = False):
    """Feedback access follows its project: read/triage = project access, delete = project write."""
    fb = get_live_feedback(feedback_id)
    if fb is None:
        raise NotFoundError("Feedback not found")
    allowed = can_write_project(current_user, fb.project) if write else can_access_project(current_user, fb.project)
    if not allowed:
        raise AuthorizationError("You do not have access to this feedback")
    return fb
