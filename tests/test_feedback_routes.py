import io

import pytest

from app.extensions import db
from app.models.feedback import Feedback
from app.services import analysis, classifier
from app.services.ai_provider import ProviderUnavailable, normalize

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _create(client, project_id, **payload):
    payload.setdefault("title", "Кнопка оплати")
    payload.setdefault("description", "Кнопка не працює на телефоні")
    return client.post(f"/api/projects/{project_id}/feedback", json=payload)


# --- Public creation + analysis ---

def test_anonymous_feedback_needs_email(client, project):
    r = _create(client, project)
    assert r.status_code == 400
    assert "author_email" in r.get_json()["errors"]


def test_anonymous_feedback_is_analysed(client, project):
    r = _create(client, project, author_email="Client@Example.com", author_name="Client")
    assert r.status_code == 201
    data = r.get_json()["data"]
    assert data["author_email"] == "client@example.com"
    assert data["author"] is None
    assert data["needs_ai_regeneration"] is False
    assert data["ai_analysis"]["category"] == "form_issues"
    assert data["ai_analysis"]["source"] == "mock"
    # no explicit severity: the analysed priority becomes the severity
    assert data["severity"] == data["ai_analysis"]["priority"] == "critical"


def test_explicit_severity_is_kept(client, project, owner, login):
    login(owner)
    r = _create(client, project, severity="LOW", category="bug")
    data = r.get_json()["data"]
    assert data["severity"] == "low"
    assert data["ai_analysis"]["priority"] == "low"
    assert data["ai_analysis"]["categories"][0] == "bug"
    assert data["author"]["id"] == owner


def test_feedback_on_inactive_or_missing_project(client, owner, make_project):
    inactive = make_project(owner, is_active=False)
    assert _create(client, inactive, author_email="a@b.co").status_code == 404
    assert _create(client, 9999, author_email="a@b.co").status_code == 404


def test_create_validation_errors(client, project):
    r = _create(client, project, title="", description="d" * 2001, coordinates={"x": 1}, author_email="bad")
    assert r.status_code == 400
    assert set(r.get_json()["errors"]) == {"title", "description", "coordinates", "author_email"}


def test_analysis_failure_still_creates_feedback(app, client, project, monkeypatch):
    def boom(*a, **kw):
        raise RuntimeError("classifier exploded")
    monkeypatch.setattr(analysis, "run_analysis", boom)

    r = _create(client, project, author_email="a@b.co")
    assert r.status_code == 201
    data = r.get_json()["data"]
    assert data["ai_analysis"] is None
    assert data["needs_ai_regeneration"] is True


class _FailingProvider:
    def analyze(self, *a, **kw):
        raise ProviderUnavailable("OpenAI unavailable (server) after 3 attempt(s)")


class _EchoProvider:
    def analyze(self, text, context=None, *, baseline):
        return normalize({"category": "ux_issues", "priority": "low", "score": 91, "tasks": ["Одне завдання"]}, baseline)


def test_provider_failure_falls_back_to_classifier(app, client, project, monkeypatch):
    monkeypatch.setitem(app.config, "AI_PROVIDER", "openai")
    monkeypatch.setitem(app.config, "OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr(analysis, "OpenAIProvider", _FailingProvider)

    r = _create(client, project, author_email="a@b.co")
    assert r.status_code == 201
    data = r.get_json()["data"]
    assert data["ai_analysis"]["source"] == "mock"
    assert data["ai_analysis"]["category"] == "form_issues"


def test_provider_result_is_used_when_available(app, client, project, monkeypatch):
    monkeypatch.setitem(app.config, "AI_PROVIDER", "openai")
    monkeypatch.setitem(app.config, "OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr(analysis, "OpenAIProvider", _EchoProvider)

    r = _create(client, project, author_email="a@b.co", severity="high")
    ai = r.get_json()["data"]["ai_analysis"]
    assert ai["source"] == "openai"
    assert ai["score"] == 91
    assert ai["tasks"] == ["Одне завдання"]
    # explicit severity beats the provider's priority
    assert ai["priority"] == "high"
    assert ai["estimated_hours"] == 2  # 1 task * 1.5 * 1.3


def test_normalize_clamps_and_caps_provider_output():
    baseline = classifier.classify("не видно")
    result = normalize({
        "category": "made_up",
        "priority": "URGENT",
        "score": 250,
        "tasks": [f"task {i}" for i in range(10)] + ["task 0"],
        "suggestions": "not a list",
        "analysis_text": "  ",
    }, baseline)
    assert result.category == baseline.category
    assert result.priority == baseline.priority
    assert result.score == classifier.SCORE_MAX
    assert result.tasks == [f"task {i}" for i in range(6)]
    assert result.suggestions == baseline.suggestions
    assert result.analysis_text == baseline.analysis_text


# --- Read / update / delete ---

@pytest.fixture()
def feedback_id(client, project):
    return _create(client, project, author_email="client@example.com").get_json()["data"]["id"]


def test_get_feedback_with_children(client, owner, feedback_id, login):
    login(owner)
    client.post(f"/api/feedback/{feedback_id}/comments", json={"content": "Перевіримо"})
    r = client.get(f"/api/feedback/{feedback_id}")
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert [c["content"] for c in data["comments"]] == ["Перевіримо"]
    assert data["attachments"] == []


def test_get_feedback_access(client, feedback_id, make_user, manager, login):
    login(make_user("stranger@example.com"))
    assert client.get(f"/api/feedback/{feedback_id}").status_code == 403
    login(manager)
    assert client.get(f"/api/feedback/{feedback_id}").status_code == 200


def test_update_status_keeps_analysis_fresh(client, owner, feedback_id, login):
    login(owner)
    r = client.put(f"/api/feedback/{feedback_id}", json={"status": "in_progress"})
    assert r.status_code == 200
    assert r.get_json()["data"]["status"] == "in_progress"
    assert r.get_json()["data"]["needs_ai_regeneration"] is False


def test_update_content_marks_analysis_stale(client, owner, feedback_id, login):
    login(owner)
    r = client.put(f"/api/feedback/{feedback_id}", json={"description": "Сайт повільно працює"})
    assert r.get_json()["data"]["needs_ai_regeneration"] is True


def test_update_rejects_bad_status(client, owner, feedback_id, login):
    login(owner)
    r = client.put(f"/api/feedback/{feedback_id}", json={"status": "done"})
    assert r.status_code == 400
    assert "status" in r.get_json()["errors"]


def test_delete_feedback_needs_project_write(app, client, owner, manager, feedback_id, login):
    login(manager)
    assert client.delete(f"/api/feedback/{feedback_id}").status_code == 403

    login(owner)
    client.post(f"/api/feedback/{feedback_id}/comments", json={"content": "x"})
    assert client.delete(f"/api/feedback/{feedback_id}").status_code == 200
    assert client.get(f"/api/feedback/{feedback_id}").status_code == 404
    with app.app_context():
        fb = db.session.get(Feedback, feedback_id)
        assert fb.is_deleted
        assert all(c.is_deleted for c in fb.comments)


# --- Regeneration ---

def test_regenerate_never_lowers_score(client, owner, feedback_id, login):
    login(owner)
    before = client.get(f"/api/feedback/{feedback_id}").get_json()["data"]["ai_analysis"]["score"]
    r = client.post(f"/api/feedback/{feedback_id}/regenerate-ai",
                    json={"user_feedback": "Ще й на планшеті", "implementation_results": "Кнопку збільшили"})
    assert r.status_code == 200
    ai = r.get_json()["data"]["analysis"]
    assert ai["score"] >= before
    assert ai["suggestions"][0] == classifier.PRIOR_ANALYSIS_NOTE
    assert ai["suggestions"][-1] == classifier.USER_FEEDBACK_NOTE
    assert ai["usability_insights"][0] == classifier.IMPLEMENTATION_NOTE
    assert r.get_json()["data"]["feedback"]["needs_ai_regeneration"] is False


def test_regenerate_requires_access(client, feedback_id):
    assert client.post(f"/api/feedback/{feedback_id}/regenerate-ai", json={}).status_code == 401


# --- Design analyzer endpoints ---

def test_analyze_endpoint(client, owner, login):
    login(owner)
    r = client.post("/api/feedback/analyze", json={"content": "Мені не подобається колір"})
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["category"] == "colors"
    assert data["sentiment"] == "negative"
    assert client.post("/api/feedback/analyze", json={}).status_code == 400


def test_recommendations_endpoint(client, owner, login):
    login(owner)
    r = client.post("/api/feedback/recommendations", json={"category": "typography", "project_type": "mobile"})
    assert r.status_code == 200
    assert len(r.get_json()["data"]["recommendations"]) == 3


def test_accessibility_endpoint(client, owner, login):
    login(owner)
    r = client.post("/api/feedback/accessibility-check", json={"description": "Лендінг"})
    assert r.get_json()["data"]["score"] == 7.2


def test_ai_stats_staff_only(client, owner, manager, feedback_id, login):
    login(owner)
    assert client.get("/api/feedback/ai-stats").status_code == 403

    login(manager)
    r = client.get("/api/feedback/ai-stats")
    assert r.status_code == 200
    stats = r.get_json()["data"]
    assert stats["total_feedback"] == 1
    assert stats["total_analyzed"] == 1
    assert stats["top_categories"] == [{"category": "form_issues", "count": 1}]
    assert stats["priorities"]["critical"] == 1
    assert stats["pending_regeneration"] == 0


# --- Comments ---

def test_comment_delete_author_or_admin(client, owner, manager, admin, feedback_id, login):
    login(manager)
    cid = client.post(f"/api/feedback/{feedback_id}/comments", json={"content": "Від менеджера"}).get_json()["data"]["id"]

    login(owner)
    assert client.delete(f"/api/feedback/{feedback_id}/comments/{cid}").status_code == 403

    login(admin)
    assert client.delete(f"/api/feedback/{feedback_id}/comments/{cid}").status_code == 200
    assert client.get(f"/api/feedback/{feedback_id}/comments").get_json()["data"] == []
    assert client.delete(f"/api/feedback/{feedback_id}/comments/{cid}").status_code == 404


def test_empty_comment_rejected(client, owner, feedback_id, login):
    login(owner)
    r = client.post(f"/api/feedback/{feedback_id}/comments", json={"content": "   "})
    assert r.status_code == 400


# --- Attachments ---

def _upload(client, feedback_id, content, name="shot.png"):
    return client.post(
        f"/api/feedback/{feedback_id}/attachments",
        data={"file": (io.BytesIO(content), name)},
        content_type="multipart/form-data",
    )


def test_upload_and_download_attachment(client, owner, feedback_id, login):
    login(owner)
    r = _upload(client, feedback_id, PNG)
    assert r.status_code == 201
    att = r.get_json()["data"]
    assert att["mime_type"] == "image/png"
    assert att["size"] == len(PNG)
    assert att["original_name"] == "shot.png"

    got = client.get(att["url"])
    assert got.status_code == 200
    assert got.data == PNG
    assert got.mimetype == "image/png"

    detail = client.get(f"/api/feedback/{feedback_id}").get_json()["data"]
    assert [a["id"] for a in detail["attachments"]] == [att["id"]]


def test_upload_rejects_non_images(client, owner, feedback_id, login):
    login(owner)
    r = _upload(client, feedback_id, b"#!/bin/sh\necho hi\n", name="evil.png")
    assert r.status_code == 400
    assert "file" in r.get_json()["errors"]


def test_upload_rejects_large_files(app, client, owner, feedback_id, login, monkeypatch):
    monkeypatch.setitem(app.config, "ATTACHMENT_MAX_BYTES", 16)
    login(owner)
    assert _upload(client, feedback_id, PNG).status_code == 400


def test_upload_requires_file(client, owner, feedback_id, login):
    login(owner)
    r = client.post(f"/api/feedback/{feedback_id}/attachments", data={}, content_type="multipart/form-data")
    assert r.status_code == 400


def test_malformed_public_feedback_is_rejected(client, project):
    r = _create(client, project, author_email=123)
    assert r.status_code == 400
    assert r.get_json()["errors"]["author_email"] == "Email is invalid."

    r = client.post(f"/api/projects/{project}/feedback", json=["not", "an", "object"])
    assert r.status_code == 400
    assert "__all__" in r.get_json()["errors"]


def test_non_object_bodies_on_feedback_routes(client, owner, feedback_id, login):
    login(owner)
    for url in (f"/api/feedback/{feedback_id}/regenerate-ai", "/api/feedback/analyze",
                "/api/feedback/recommendations", f"/api/feedback/{feedback_id}/comments"):
        assert client.post(url, json=[1, 2]).status_code == 400, url
    assert client.put(f"/api/feedback/{feedback_id}", json="text").status_code == 400
