import os
import shutil
import tempfile

# Settings are read at import time, so the test environment has to exist first.
_TEST_ROOT = tempfile.mkdtemp(prefix="school-backend-tests-")
os.environ["SCHOOL_DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_ROOT, 'school.db')}"
os.environ["SCHOOL_UPLOAD_DIR"] = os.path.join(_TEST_ROOT, "uploads")
os.environ["SCHOOL_PUBLIC_DIR"] = os.path.join(_TEST_ROOT, "public")
os.environ["SCHOOL_BCRYPT_ROUNDS"] = "4"
os.environ["SMTP_EMAIL"] = ""
os.environ["SMTP_PASSWORD"] = ""

import pytest
from fastapi.testclient import TestClient

from backend.backend import app
from backend.school_module.config import settings
from backend.school_module.database import Base, SessionLocal, engine
from backend.school_module.models import User
from backend.school_module.services import seed_default_admin
from backend.school_module.storage import ensure_upload_dirs


@pytest.fixture(autouse=True)
def fresh_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    shutil.rmtree(settings.upload_dir, ignore_errors=True)
    ensure_upload_dirs()
    db = SessionLocal()
    try:
        seed_default_admin(db)
    finally:
        db.close()
    yield


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def admin_id(db):
    return db.query(User).filter(User.username == settings.default_admin_username).one().id


@pytest.fixture
def make_teacher(client):
    def _make(name="Teacher One", username=None, phone=None):
        response = client.post(
            "/api/teachers",
            json={"name": name, "username": username or name.lower().replace(" ", "_"), "phone": phone},
        )
        assert response.status_code == 200, response.text
        return response.json()["id"]

    return _make


@pytest.fixture
def make_student(client):
    def _make(name="Student One", username=None, level_id=None, group_id=None, password=None):
        response = client.post(
            "/api/students",
            json={
                "name": name,
                "username": username or name.lower().replace(" ", "_"),
                "level_id": level_id,
                "group_id": group_id,
                "password": password,
            },
        )
        assert response.status_code == 200, response.text
        return response.json()

    return _make


@pytest.fixture
def make_level(client):
    def _make(name="Level 1"):
        response = client.post("/api/levels", json={"name": name})
        assert response.status_code == 200, response.text
        return response.json()["id"]

    return _make


@pytest.fixture
def make_group(client):
    def _make(name, level_id):
        response = client.post("/api/groups", json={"name": name, "level_id": level_id})
        assert response.status_code == 200, response.text
        return response.json()["id"]

    return _make


@pytest.fixture
def make_subject(client):
    def _make(name="Mathematics", description=None):
        response = client.post("/api/subjects", json={"name": name, "description": description})
        assert response.status_code == 200, response.text
        return response.json()["id"]

    return _make
