from sqlalchemy import func

from app.extensions import db


class Comment(db.Model):
    __tablename__ = "comments"

    id = db.Column(db.Integer, primary_key=True)
    feedback_id = db.Column(db.Integer, db.ForeignKey("feedback.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    content = db.Column(db.Text, nullable=False)

    is_deleted = db.Column(db.Boolean, nullable=False, default=False, server_default=db.false())
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    feedback = db.relationship("Feedback", back_populates="comments")
    author = db.relationship("User")

    def __repr__(self) -> str:
        return f"<Comment id={self.id} feedback_id={self.feedback_id}>"

    def to_dict(self) -> dict:
        return dict(
            id=self.id,
            feedback_id=self.feedback_id,
            author=self.author.to_public_dict() if self.author else None,
            content=self.content,
            created_at=self.created_at.isoformat() if self.created_at else None,
        )
