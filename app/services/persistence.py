"""
Soft-delete cascades.

Rows are never hard-deleted through the API: a project takes its feedback, and
each feedback its comments and attachments, down with it. Every cascade runs in
a single transaction and either commits whole or rolls back whole.
"""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import List

from flask import current_app

from app.extensions import db
from app.models.attachment import Attachment
from app.models.comment import Comment
from app.models.feedback import Feedback
from app.models.project import Project
from app.models.user import User


def _utcnow():
    return datetime.now(timezone.utc)


def _soft_delete_feedback_children(feedback_ids: List[int]) -> None:
    if not feedback_ids:
        return
    db.session.execute(
        db.update(Comment)
        .where(Comment.feedback_id.in_(feedback_ids), Comment.is_deleted.is_(False))
        .values(is_deleted=True, updated_at=_utcnow())
    )
    db.session.execute(
        db.update(Attachment)
        .where(Attachment.feedback_id.in_(feedback_ids), Attachment.is_deleted.is_(False))
        .values(is_deleted=True)
    )


def soft_delete_feedback(feedback: Feedback) -> None:
    try:
        _soft_delete_feedback_children([feedback.id])
        feedback.is_deleted = True
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    current_app.logger.info(json.dumps({"event": "feedback_soft_deleted", "feedback_id": feedback.id}))


def soft_delete_project(project: Project) -> int:
    """Returns the number of feedback rows taken down with the project."""
    try:
        feedback_ids = list(db.session.execute(
            db.select(Feedback.id).where(Feedback.project_id == project.id, Feedback.is_deleted.is_(False))
        ).scalars())
        _soft_delete_feedback_children(feedback_ids)
        if feedback_ids:
            db.session.execute(
                db.update(Feedback)
                .where(Feedback.id.in_(feedback_ids))
                .values(is_deleted=True, updated_at=_utcnow())
            )
        project.is_deleted = True
        project.is_active = False
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    current_app.logger.info(json.dumps({
        "event": "project_soft_deleted",
        "project_id": project.id,
        "feedback_count": len(feedback_ids),
    }))
    return len(feedback_ids)


def soft_delete_user(user: User) -> None:
    """Users keep their rows (projects reference them); they just stop existing for auth."""
    user.is_deleted = True
    user.is_active = False
    db.session.commit()
    current_app.logger.info(json.dumps({"event": "user_soft_deleted", "user_id": user.id}))
