import os
# Ensure the app factory picks the Testing config & SQLite memory DB
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite:///:memory:")

import pytest
from app import create_app
from app.extensions import db
from app.models.user import User, ROLE_USER, ROLE_MANAGER, ROLE_ADMIN
from app.models.project import Project

PASSWORD = "Secret123!"

@pytest.fixture(scope="session")
def upload_dir(tmp_path_factory):
    return tmp_path_factory.mktemp("uploads")

@pytest.fixture(scope="session")
def app(upload_dir):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "APP_BASE_URL": "http://example.test",
        "WTF_CSRF_ENABLED": False,
        "RATELIMIT_ENABLED": False,
        "AI_PROVIDER": "mock",
        "AI_MOCK_DELAY_MIN": 0.0,
        "AI_MOCK_DELAY_MAX": 0.0,
        "UPLOAD_FOLDER": str(upload_dir),
    })
    with app.app_context():
        db.create_all()
        db.session.expire_on_commit = False  # avoid DetachedInstanceError in tests
    yield app
    with app.app_context():
        db.drop_all()

@pytest.fixture()
def client(app):
    return app.test_client()

@pytest.fixture(autouse=True)
def _db_clean(app):
    # Clean BEFORE each test
    with app.app_context():
        db.session.rollback()
        for tbl in reversed(db.metadata.sorted_tables):
            db.session.execute(tbl.delete())
        db.session.commit()
    yield
    # And AFTER each test (keeps state hermetic even if a test fails mid-transaction)
    with app.app_context():
        db.session.rollback()
        for tbl in reversed(db.metadata.sorted_tables):
            db.session.execute(tbl.delete())
        db.session.commit()

def _make_user(email, role=ROLE_USER, password=PASSWORD, **kw):
    u = User(email=email, first_name=kw.pop("first_name", "Test"), last_name=kw.pop("last_name", "User"), role=role, **kw)
    u.set_password(password)
    db.session.add(u)
    db.session.commit()
    return u

@pytest.fixture()
def make_user(app):
    def _factory(email, role=ROLE_USER, **kw):
        with app.app_context():
            return _make_user(email, role=role, **kw).id
    return _factory

@pytest.fixture()
def make_project(app):
    def _factory(owner_id, name="Landing page", **kw):
        with app.app_context():
            p = Project(name=name, description=kw.pop("description", "Marketing site"), owner_id=owner_id, **kw)
            db.session.add(p)
            db.session.commit()
            return p.id
    return _factory

@pytest.fixture()
def login(client):
    """Log the test client in as `user_id` via the Flask-Login session key."""
    def _login(user_id):
        with client.session_transaction() as s:
            s["_user_id"] = str(user_id)
            s["_fresh"] = True
        return client
    return _login

@pytest.fixture()
def owner(make_user):
    return make_user("owner@example.com")

@pytest.fixture()
def manager(make_user):
    return make_user("manager@example.com", role=ROLE_MANAGER)

@pytest.fixture()
def admin(make_user):
    return make_user("admin@example.com", role=ROLE_ADMIN)

@pytest.fixture()
def project(owner, make_project):
    return make_project(owner)
