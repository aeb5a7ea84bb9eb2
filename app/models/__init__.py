from .user import User, ROLE_USER, ROLE_MANAGER, ROLE_ADMIN, ROLE_CHOICES
from .project import Project
from .feedback import Feedback
from .comment import Comment
from .attachment import Attachment

__all__ = [
    "User",
    "Project",
    "Feedback",
    "Comment",
    "Attachment",
    "ROLE_USER",
    "ROLE_MANAGER",
    "ROLE_ADMIN",
    "ROLE_CHOICES",
]
