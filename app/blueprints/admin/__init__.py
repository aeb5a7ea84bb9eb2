from flask import Blueprint
from flask_login import current_user

from app.models.user import ROLE_ADMIN
from app.services.policy import _abort_smart

bp = Blueprint("admin", __name__)

@bp.before_request
def _require_admin():
    if not current_user.is_authenticated:
        return _abort_smart(401)
    if current_user.role != ROLE_ADMIN:
        return _abort_smart(403)
    return None


# Import submodules so their routes register on the same bp
from . import users  # noqa: E402,F401
from . import settings  # noqa: E402,F401
