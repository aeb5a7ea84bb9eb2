import json

from flask import request, jsonify, current_app, send_file
from flask_login import current_user

from app.extensions import db
from app.models.attachment import Attachment
from app.models.comment import Comment
from app.models.user import ROLE_ADMIN
from app.services import analysis, design_analyzer, storage
from app.services.persistence import soft_delete_feedback
from app.services.policy import login_required_json, staff_required, require_feedback
from app.utils.validators import clean_str, clean_text, json_object
from app.errors import NotFoundError, AuthorizationError
from .validators import validate_feedback_payload, validate_comment_payload
from . import bp

# Fields whose change makes the stored analysis stale
_ANALYSED_FIELDS = ("title", "description", "category", "severity")


@bp.get("/<int:feedback_id>")
@login_required_json
def get_feedback(feedback_id: int):
    fb = require_feedback(feedback_id)
    return jsonify(ok=True, data=fb.to_dict(include_children=True))


@bp.put("/<int:feedback_id>")
@login_required_json
def update_feedback(feedback_id: int):
    fb = require_feedback(feedback_id)
    data = json_object()
    values, errors = validate_feedback_payload(data, partial=True)
    if errors:
        return jsonify(ok=False, errors=errors), 400

    stale = False
    for key, val in values.items():
        if key in _ANALYSED_FIELDS and getattr(fb, key) != val:
            stale = True
        setattr(fb, key, val)
    if stale:
        fb.needs_ai_regeneration = True
    db.session.commit()
    return jsonify(ok=True, data=fb.to_dict(), message="Feedback updated")


@bp.delete("/<int:feedback_id>")
@login_required_json
def delete_feedback(feedback_id: int):
    fb = require_feedback(feedback_id, write=True)
    soft_delete_feedback(fb)
    return jsonify(ok=True, data={"id": fb.id}, message="Feedback deleted")


@bp.post("/<int:feedback_id>/regenerate-ai")
@login_required_json
def regenerate_ai(feedback_id: int):
    fb = require_feedback(feedback_id)
    data = json_object()
    result = analysis.regenerate_feedback_analysis(
        fb,
        user_feedback=clean_text(data.get("user_feedback")),
        implementation_results=clean_text(data.get("implementation_results")),
    )
    db.session.commit()
    return jsonify(ok=True, data={"feedback": fb.to_dict(), "analysis": result.to_dict()},
                   message="Analysis regenerated")


# --- Design analyzer endpoints ---

@bp.post("/analyze")
@login_required_json
def analyze_content():
    data = json_object()
    content = clean_text(data.get("content"))
    if not content:
        return jsonify(ok=False, errors={"content": "Content is required."}), 400
    return jsonify(ok=True, data=design_analyzer.analyze(content).to_dict())


@bp.post("/recommendations")
@login_required_json
def recommendations():
    data = json_object()
    category = clean_str(data.get("category"), max_len=50)
    if not category:
        return jsonify(ok=False, errors={"category": "Category is required."}), 400
    project_type = clean_str(data.get("project_type"), max_len=50) or "web"
    return jsonify(ok=True, data={
        "category": category,
        "project_type": project_type,
        "recommendations": design_analyzer.recommendations(category, project_type),
    })


@bp.post("/accessibility-check")
@login_required_json
def accessibility_check():
    data = json_object()
    description = clean_text(data.get("description"))
    if not description:
        return jsonify(ok=False, errors={"description": "Description is required."}), 400
    return jsonify(ok=True, data=design_analyzer.evaluate_accessibility(description))


@bp.get("/ai-stats")
@staff_required
def ai_stats():
    return jsonify(ok=True, data=analysis.ai_stats())


# --- Comments ---

@bp.get("/<int:feedback_id>/comments")
@login_required_json
def list_comments(feedback_id: int):
    fb = require_feedback(feedback_id)
    return jsonify(ok=True, data=[c.to_dict() for c in fb.live_comments()])


@bp.post("/<int:feedback_id>/comments")
@login_required_json
def add_comment(feedback_id: int):
    fb = require_feedback(feedback_id)
    values, errors = validate_comment_payload(json_object())
    if errors:
        return jsonify(ok=False, errors=errors), 400

    comment = Comment(feedback_id=fb.id, author_id=current_user.id, content=values["content"])
    db.session.add(comment)
    db.session.commit()
    return jsonify(ok=True, data=comment.to_dict(), message="Comment added"), 201


@bp.delete("/<int:feedback_id>/comments/<int:comment_id>")
@login_required_json
def delete_comment(feedback_id: int, comment_id: int):
    fb = require_feedback(feedback_id)
    comment = db.session.get(Comment, comment_id)
    if comment is None or comment.is_deleted or comment.feedback_id != fb.id:
        raise NotFoundError("Comment not found")
    if comment.author_id != current_user.id and current_user.role != ROLE_ADMIN:
        raise AuthorizationError("Only the author or an admin can delete this comment")

    comment.is_deleted = True
    db.session.commit()
    return jsonify(ok=True, data={"id": comment.id}, message="Comment deleted")


# --- Attachments ---

@bp.post("/<int:feedback_id>/attachments")
@login_required_json
def upload_attachment(feedback_id: int):
    fb = require_feedback(feedback_id)
    file = request.files.get("file")
    if file is None:
        return jsonify(ok=False, errors={"file": "File is required."}), 400
    try:
        rel_path, original_name, mime, size = storage.save_attachment(file, fb.id)
    except storage.UploadRejected as e:
        return jsonify(ok=False, errors={"file": str(e)}), 400

    att = Attachment(
        feedback_id=fb.id,
        uploaded_by_id=current_user.id,
        filename=rel_path,
        original_name=original_name,
        mime_type=mime,
        size=size,
    )
    db.session.add(att)
    db.session.commit()

    current_app.logger.info(json.dumps({
        "event": "attachment_uploaded", "feedback_id": fb.id, "attachment_id": att.id, "size": size,
    }))
    return jsonify(ok=True, data=att.to_dict(), message="File uploaded"), 201


@bp.get("/<int:feedback_id>/attachments/<int:attachment_id>")
@login_required_json
def download_attachment(feedback_id: int, attachment_id: int):
    fb = require_feedback(feedback_id)
    att = db.session.get(Attachment, attachment_id)
    if att is None or att.is_deleted or att.feedback_id != fb.id:
        raise NotFoundError("Attachment not found")
    try:
        path = storage.resolve(att.filename)
    except storage.UploadRejected:
        raise NotFoundError("Attachment not found")
    if not path.is_file():
        raise NotFoundError("Attachment file is missing")
    return send_file(path, mimetype=att.mime_type, download_name=att.original_name, as_attachment=False)
