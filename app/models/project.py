from __future__ import annotations

from sqlalchemy import Index, func

from app.extensions import db


class Project(db.Model):
    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500), nullable=False, server_default="")
    url = db.Column(db.String(500), nullable=True)

    # Exactly one owner; users are never hard-deleted so RESTRICT is safe
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)

    # Lifecycle
    is_active = db.Column(db.Boolean, nullable=False, default=True, server_default=db.true())
    is_deleted = db.Column(db.Boolean, nullable=False, default=False, server_default=db.false())
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    owner = db.relationship("User", back_populates="projects")
    feedbacks = db.relationship("Feedback", back_populates="project", lazy="dynamic")

    __table_args__ = (
        Index("ix_projects_lower_name", func.lower(name)),
        Index("ix_projects_owner_deleted", owner_id, is_deleted),
    )

    def __repr__(self) -> str:
        return f"<Project id={self.id} name={self.name!r} active={self.is_active}>"

    def to_dict(self) -> dict:
        return dict(
            id=self.id,
            name=self.name,
            description=self.description,
            url=self.url,
            owner_id=self.owner_id,
            owner=self.owner.to_public_dict() if self.owner else None,
            is_active=self.is_active,
            created_at=self.created_at.isoformat() if self.created_at else None,
            updated_at=self.updated_at.isoformat() if self.updated_at else None,
        )

    def to_context(self) -> dict:
        """Project fields the feedback classifier uses as context."""
        return dict(project_name=self.name, project_description=self.description, url=self.url)
