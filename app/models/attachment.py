from flask import url_for
from sqlalchemy import func

from app.extensions import db


class Attachment(db.Model):
    __tablename__ = "attachments"

    id = db.Column(db.Integer, primary_key=True)
    feedback_id = db.Column(db.Integer, db.ForeignKey("feedback.id", ondelete="CASCADE"), nullable=False, index=True)
    uploaded_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    filename = db.Column(db.String(255), nullable=False)  # path relative to UPLOAD_FOLDER
    original_name = db.Column(db.String(255), nullable=False)
    mime_type = db.Column(db.String(100), nullable=False)
    size = db.Column(db.Integer, nullable=False)

    is_deleted = db.Column(db.Boolean, nullable=False, default=False, server_default=db.false())
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

    feedback = db.relationship("Feedback", back_populates="attachments")

    def __repr__(self) -> str:
        return f"<Attachment id={self.id} feedback_id={self.feedback_id} name={self.original_name!r}>"

    def to_dict(self) -> dict:
        return dict(
            id=self.id,
            original_name=self.original_name,
            mime_type=self.mime_type,
            size=self.size,
            url=url_for("feedback.download_attachment", feedback_id=self.feedback_id, attachment_id=self.id),
            created_at=self.created_at.isoformat() if self.created_at else None,
        )
