import json

from flask import request, jsonify, current_app
from flask_login import current_user
from sqlalchemy import func, or_

from app.extensions import db, limiter
from app.models.feedback import Feedback, SEVERITY_CHOICES, STATUS_CHOICES
from app.models.project import Project
from app.services import analysis
from app.services.persistence import soft_delete_project
from app.services.policy import login_required_json, require_project, accessible_projects_query
from app.blueprints.feedback.validators import validate_feedback_payload
from app.utils.validators import (
    clean_str,
    too_long,
    is_valid_url,
    parse_choice,
    parse_pagination,
    pagination_meta,
    json_object,
)
from . import bp

NAME_MAX = 100
DESCRIPTION_MAX = 500


def _create_limit():
    return current_app.config.get("RATELIMIT_CREATE", "20 per minute")


def _validate_project(data, partial=False):
    errors = {}
    values = {}
    if not partial or "name" in data:
        if too_long(data.get("name"), NAME_MAX):
            errors["name"] = f"Name must be at most {NAME_MAX} characters."
        else:
            name = clean_str(data.get("name"), max_len=NAME_MAX)
            if not name:
                errors["name"] = "Name is required."
            values["name"] = name
    if not partial or "description" in data:
        if too_long(data.get("description"), DESCRIPTION_MAX):
            errors["description"] = f"Description must be at most {DESCRIPTION_MAX} characters."
        else:
            values["description"] = clean_str(data.get("description"), max_len=DESCRIPTION_MAX) or ""
    if not partial or "url" in data:
        url = clean_str(data.get("url"), max_len=500)
        if not is_valid_url(url):
            errors["url"] = "URL must start with http:// or https://"
        values["url"] = url
    if partial and "is_active" in data:
        if not isinstance(data.get("is_active"), bool):
            errors["is_active"] = "is_active must be true or false."
        else:
            values["is_active"] = data["is_active"]
    return values, errors


def _feedback_counts(project_id: int) -> dict:
    rows = db.session.execute(
        db.select(Feedback.status, func.count(Feedback.id))
        .where(Feedback.project_id == project_id, Feedback.is_deleted.is_(False))
        .group_by(Feedback.status)
    ).all()
    counts = {s: 0 for s in STATUS_CHOICES}
    counts.update({status: n for status, n in rows})
    counts["total"] = sum(n for _, n in rows)
    return counts


@bp.get("/")
@login_required_json
def list_projects():
    page, limit = parse_pagination(request.args)
    search = (request.args.get("search") or "").strip()

    q = accessible_projects_query(current_user)
    if search:
        like = f"%{search}%"
        q = q.where(or_(Project.name.ilike(like), Project.description.ilike(like)))

    total = db.session.execute(db.select(func.count()).select_from(q.subquery())).scalar_one()
    items = db.session.execute(
        q.order_by(Project.created_at.desc(), Project.id.desc()).offset((page - 1) * limit).limit(limit)
    ).scalars().all()

    data = []
    for p in items:
        row = p.to_dict()
        row["feedback_count"] = p.feedbacks.filter_by(is_deleted=False).count()
        data.append(row)
    return jsonify(ok=True, data=data, pagination=pagination_meta(page, limit, total))


@bp.post("/")
@login_required_json
def create_project():
    data = json_object()
    values, errors = _validate_project(data)
    if errors:
        return jsonify(ok=False, errors=errors), 400

    project = Project(owner_id=current_user.id, **values)
    db.session.add(project)
    db.session.commit()

    current_app.logger.info(json.dumps({"event": "project_created", "project_id": project.id, "owner_id": current_user.id}))
    return jsonify(ok=True, data=project.to_dict(), message="Project created"), 201


@bp.get("/<int:project_id>")
@login_required_json
def get_project(project_id: int):
    project = require_project(project_id)
    data = project.to_dict()
    data["feedback_counts"] = _feedback_counts(project.id)
    return jsonify(ok=True, data=data)


@bp.put("/<int:project_id>")
@login_required_json
def update_project(project_id: int):
    project = require_project(project_id, write=True)
    data = json_object()
    values, errors = _validate_project(data, partial=True)
    if errors:
        return jsonify(ok=False, errors=errors), 400

    for key, val in values.items():
        setattr(project, key, val)
    db.session.commit()
    return jsonify(ok=True, data=project.to_dict(), message="Project updated")


@bp.delete("/<int:project_id>")
@login_required_json
def delete_project(project_id: int):
    project = require_project(project_id, write=True)
    removed = soft_delete_project(project)
    return jsonify(ok=True, data={"id": project.id, "feedback_deleted": removed}, message="Project deleted")


@bp.get("/<int:project_id>/feedback")
@login_required_json
def list_project_feedback(project_id: int):
    project = require_project(project_id)
    page, limit = parse_pagination(request.args)

    errors = {}
    try:
        status = parse_choice(request.args.get("status"), STATUS_CHOICES)
    except ValueError as e:
        errors["status"] = f"Status {e}."
    try:
        severity = parse_choice(request.args.get("severity"), SEVERITY_CHOICES)
    except ValueError as e:
        errors["severity"] = f"Severity {e}."
    if errors:
        return jsonify(ok=False, errors=errors), 400

    q = db.select(Feedback).where(Feedback.project_id == project.id, Feedback.is_deleted.is_(False))
    if status:
        q = q.where(Feedback.status == status)
    if severity:
        q = q.where(Feedback.severity == severity)
    search = (request.args.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        q = q.where(or_(Feedback.title.ilike(like), Feedback.description.ilike(like)))

    total = db.session.execute(db.select(func.count()).select_from(q.subquery())).scalar_one()
    items = db.session.execute(
        q.order_by(Feedback.created_at.desc(), Feedback.id.desc()).offset((page - 1) * limit).limit(limit)
    ).scalars().all()
    return jsonify(ok=True, data=[fb.to_dict() for fb in items], pagination=pagination_meta(page, limit, total))


@bp.post("/<int:project_id>/feedback")
@limiter.limit(_create_limit)
def create_feedback(project_id: int):
    """
    Public: clients leave feedback without an account (author_email/author_name),
    signed-in users are recorded as the author. The analysis runs inline; if it
    fails the feedback is still stored and flagged for regeneration.
    """
    project = db.session.get(Project, project_id)
    if project is None or project.is_deleted or not project.is_active:
        return jsonify(ok=False, error="not_found", code=404, message="Project not found"), 404

    data = json_object()
    values, errors = validate_feedback_payload(data)
    if not current_user.is_authenticated and not values.get("author_email") and "author_email" not in errors:
        errors["author_email"] = "Email is required for anonymous feedback."
    if errors:
        return jsonify(ok=False, errors=errors), 400

    explicit_severity = "severity" in values
    fb = Feedback(project_id=project.id, **values)
    fb.project = project
    if current_user.is_authenticated:
        fb.author_id = current_user.id
        fb.author_email = fb.author_email or current_user.email
        fb.author_name = fb.author_name or current_user.full_name or None
    db.session.add(fb)
    db.session.flush()  # get fb.id for logs

    analysis.try_analyze_feedback(fb, explicit_severity=explicit_severity)
    db.session.commit()

    current_app.logger.info(json.dumps({
        "event": "feedback_created",
        "feedback_id": fb.id,
        "project_id": project.id,
        "analyzed": fb.ai_analysis is not None,
    }))
    return jsonify(ok=True, data=fb.to_dict(), message="Feedback created"), 201
