from __future__ import annotations

from sqlalchemy import func

from app.extensions import db

SEVERITY_LOW = "low"
SEVERITY_MEDIUM = "medium"
SEVERITY_HIGH = "high"
SEVERITY_CRITICAL = "critical"
SEVERITY_CHOICES = (SEVERITY_LOW, SEVERITY_MEDIUM, SEVERITY_HIGH, SEVERITY_CRITICAL)

STATUS_OPEN = "open"
STATUS_IN_PROGRESS = "in_progress"
STATUS_RESOLVED = "resolved"
STATUS_CLOSED = "closed"
STATUS_CHOICES = (STATUS_OPEN, STATUS_IN_PROGRESS, STATUS_RESOLVED, STATUS_CLOSED)

DEFAULT_CATEGORY = "general"


class Feedback(db.Model):
    __tablename__ = "feedback"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)

    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    category = db.Column(db.String(50), nullable=False, default=DEFAULT_CATEGORY, server_default=DEFAULT_CATEGORY)
    severity = db.Column(db.String(20), nullable=False, default=SEVERITY_MEDIUM, server_default=SEVERITY_MEDIUM)
    status = db.Column(db.String(20), nullable=False, default=STATUS_OPEN, server_default=STATUS_OPEN)

    # Registered author, or an anonymous client identified by email/name
    author_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    author_email = db.Column(db.String(255), nullable=True)
    author_name = db.Column(db.String(100), nullable=True)

    # Pin tool: {"x", "y", "viewport_width", "viewport_height"}
    coordinates = db.Column(db.JSON, nullable=True)
    selector = db.Column(db.String(500), nullable=True)

    ai_analysis = db.Column(db.JSON, nullable=True)
    needs_ai_regeneration = db.Column(db.Boolean, nullable=False, default=True, server_default=db.true())

    is_deleted = db.Column(db.Boolean, nullable=False, default=False, server_default=db.false())
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    project = db.relationship("Project", back_populates="feedbacks")
    author = db.relationship("User")
    comments = db.relationship("Comment", back_populates="feedback", lazy="dynamic")
    attachments = db.relationship("Attachment", back_populates="feedback", lazy="dynamic")

    __table_args__ = (
        db.CheckConstraint("severity IN ('low','medium','high','critical')", name="ck_feedback_severity_valid"),
        db.CheckConstraint("status IN ('open','in_progress','resolved','closed')", name="ck_feedback_status_valid"),
        db.Index("ix_feedback_project_created_at", "project_id", "created_at"),
        db.Index("ix_feedback_project_status", "project_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Feedback id={self.id} project_id={self.project_id} status={self.status!r}>"

    def to_dict(self, include_children: bool = False) -> dict:
        data = dict(
            id=self.id,
            project_id=self.project_id,
            title=self.title,
            description=self.description,
            category=self.category,
            severity=self.severity,
            status=self.status,
            author=self.author.to_public_dict() if self.author else None,
            author_email=self.author_email,
            author_name=self.author_name,
            coordinates=self.coordinates,
            selector=self.selector,
            ai_analysis=self.ai_analysis,
            needs_ai_regeneration=self.needs_ai_regeneration,
            created_at=self.created_at.isoformat() if self.created_at else None,
            updated_at=self.updated_at.isoformat() if self.updated_at else None,
        )
        if include_children:
            data["comments"] = [c.to_dict() for c in self.live_comments()]
            data["attachments"] = [a.to_dict() for a in self.live_attachments()]
        else:
            data["comment_count"] = self.comments.filter_by(is_deleted=False).count()
        return data

    def live_comments(self):
        from app.models.comment import Comment
        return self.comments.filter_by(is_deleted=False).order_by(Comment.created_at.asc(), Comment.id.asc()).all()

    def live_attachments(self):
        from app.models.attachment import Attachment
        return self.attachments.filter_by(is_deleted=False).order_by(Attachment.id.asc()).all()
