import types
from flask import Flask
from app.services import policy

class DummyUser:
    def __init__(self, uid, role="user", auth=True):
        self.id, self.role, self.is_authenticated = uid, role, auth

def make_app():
    app = Flask(__name__); app.config.update(SECRET_KEY="x", TESTING=True)
    return app

def test_login_required_json_unauth(monkeypatch):
    app = make_app()
    @policy.login_required_json
    def v(): return "ok", 200
    monkeypatch.setattr(policy, "current_user", DummyUser(None, auth=False))
    with app.test_request_context("/x", headers={"Accept": "application/json"}):
        r = v(); assert r[1] == 401 and r[0].json["error"] == "unauthorized"

def test_role_required_forbidden(monkeypatch):
    app = make_app()
    @policy.role_required("manager", "admin")
    def v(): return "ok", 200
    monkeypatch.setattr(policy, "current_user", DummyUser(7, role="user"))
    with app.test_request_context("/x", headers={"Accept": "application/json"}):
        r = v(); assert r[1] == 403 and r[0].json["error"] == "forbidden"

def test_role_required_ok(monkeypatch):
    app = make_app()
    @policy.staff_required
    def v(): return "ok", 200
    monkeypatch.setattr(policy, "current_user", DummyUser(7, role="manager"))
    with app.test_request_context("/x", headers={"Accept": "application/json"}):
        assert v() == ("ok", 200)

def _project(owner_id):
    return types.SimpleNamespace(owner_id=owner_id)

def test_project_access_rules():
    owner, other = DummyUser(1), DummyUser(2)
    manager, admin = DummyUser(3, role="manager"), DummyUser(4, role="admin")
    p = _project(owner_id=1)

    assert policy.can_access_project(owner, p)
    assert not policy.can_access_project(other, p)
    assert policy.can_access_project(manager, p)
    assert policy.can_access_project(admin, p)

    assert policy.can_write_project(owner, p)
    assert not policy.can_write_project(manager, p)
    assert policy.can_write_project(admin, p)

def test_anonymous_has_no_access():
    anon = DummyUser(None, auth=False)
    assert not policy.can_access_project(anon, _project(owner_id=1))
    assert not policy.can_manage_user(anon, DummyUser(1))

def test_can_manage_user_self_or_admin():
    me, other, admin = DummyUser(1), DummyUser(2), DummyUser(3, role="admin")
    assert policy.can_manage_user(me, me)
    assert not policy.can_manage_user(me, other)
    assert policy.can_manage_user(admin, other)
