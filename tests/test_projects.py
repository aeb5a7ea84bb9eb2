from app.extensions import db
from app.models.feedback import Feedback
from app.models.project import Project


def test_create_project(client, owner, login):
    login(owner)
    r = client.post("/api/projects", json={"name": "  Shop  redesign ", "description": "New checkout", "url": "https://shop.example"})
    assert r.status_code == 201
    data = r.get_json()["data"]
    assert data["name"] == "Shop redesign"
    assert data["owner_id"] == owner
    assert data["owner"]["email"] == "owner@example.com"


def test_create_project_validation(client, owner, login):
    login(owner)
    r = client.post("/api/projects", json={"name": "x" * 101, "url": "not-a-url", "description": "d" * 501})
    assert r.status_code == 400
    assert set(r.get_json()["errors"]) == {"name", "url", "description"}


def test_projects_require_login(client):
    assert client.get("/api/projects").status_code == 401
    assert client.post("/api/projects", json={"name": "x"}).status_code == 401


def test_list_only_own_projects_for_users(client, owner, make_user, make_project, login):
    other = make_user("other@example.com")
    make_project(owner, name="Mine")
    make_project(other, name="Theirs")

    login(owner)
    body = client.get("/api/projects").get_json()
    assert [p["name"] for p in body["data"]] == ["Mine"]
    assert body["pagination"]["total"] == 1


def test_managers_see_all_projects(client, owner, manager, make_project, login):
    make_project(owner, name="A")
    make_project(owner, name="B")
    login(manager)
    body = client.get("/api/projects?limit=1").get_json()
    assert body["pagination"] == {"page": 1, "limit": 1, "total": 2, "pages": 2}
    assert len(body["data"]) == 1


def test_search_projects(client, owner, make_project, login):
    make_project(owner, name="Landing page")
    make_project(owner, name="Mobile app")
    login(owner)
    body = client.get("/api/projects?search=mobile").get_json()
    assert [p["name"] for p in body["data"]] == ["Mobile app"]


def test_get_project_access(client, owner, project, make_user, login):
    stranger = make_user("stranger@example.com")
    login(stranger)
    assert client.get(f"/api/projects/{project}").status_code == 403

    login(owner)
    r = client.get(f"/api/projects/{project}")
    assert r.status_code == 200
    assert r.get_json()["data"]["feedback_counts"]["total"] == 0


def test_get_missing_project(client, owner, login):
    login(owner)
    r = client.get("/api/projects/9999")
    assert r.status_code == 404
    assert r.get_json()["error"] == "not_found"


def test_update_project_owner_and_admin_only(client, project, manager, admin, login):
    login(manager)
    assert client.put(f"/api/projects/{project}", json={"name": "Nope"}).status_code == 403

    login(admin)
    r = client.put(f"/api/projects/{project}", json={"name": "Renamed", "is_active": False})
    assert r.status_code == 200
    assert r.get_json()["data"]["name"] == "Renamed"
    assert r.get_json()["data"]["is_active"] is False


def test_delete_project_soft_cascades(app, client, owner, project, login):
    login(owner)
    created = client.post(f"/api/projects/{project}/feedback", json={"title": "Кнопка", "description": "не видно"})
    fid = created.get_json()["data"]["id"]
    client.post(f"/api/feedback/{fid}/comments", json={"content": "seen"})

    r = client.delete(f"/api/projects/{project}")
    assert r.status_code == 200
    assert r.get_json()["data"]["feedback_deleted"] == 1

    with app.app_context():
        p = db.session.get(Project, project)
        fb = db.session.get(Feedback, fid)
        assert p.is_deleted and fb.is_deleted
        assert all(c.is_deleted for c in fb.comments)

    assert client.get(f"/api/projects/{project}").status_code == 404
    assert client.get(f"/api/feedback/{fid}").status_code == 404
    assert client.get("/api/projects").get_json()["data"] == []


def test_list_project_feedback_filters(client, owner, project, login):
    login(owner)
    client.post(f"/api/projects/{project}/feedback", json={"title": "A", "description": "не видно", "severity": "low"})
    client.post(f"/api/projects/{project}/feedback", json={"title": "B", "description": "форма не працює"})

    all_rows = client.get(f"/api/projects/{project}/feedback").get_json()
    assert all_rows["pagination"]["total"] == 2

    critical = client.get(f"/api/projects/{project}/feedback?severity=critical").get_json()
    assert [f["title"] for f in critical["data"]] == ["B"]

    found = client.get(f"/api/projects/{project}/feedback?search=видно").get_json()
    assert [f["title"] for f in found["data"]] == ["A"]

    bad = client.get(f"/api/projects/{project}/feedback?status=weird")
    assert bad.status_code == 400


def test_non_object_project_body(client, owner, project, login):
    login(owner)
    assert client.post("/api/projects", json=["name"]).status_code == 400
    r = client.put(f"/api/projects/{project}", json={"name": 7, "url": 5})
    assert r.status_code == 400
    assert set(r.get_json()["errors"]) == {"name"}
