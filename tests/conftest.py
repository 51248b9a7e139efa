import mongomock
import pytest
from fastapi.testclient import TestClient

import main
from repositories import HeadmasterNoteRepository, SupervisionRepository, TeacherRepository
from schemas import HeadmasterNote, Supervision, SupervisionKind, Teacher


@pytest.fixture
def db():
    return mongomock.MongoClient()["sipena_test"]


@pytest.fixture
def teachers(db):
    return TeacherRepository(db)


@pytest.fixture
def admin_supervisions(db, teachers):
    return SupervisionRepository(db, SupervisionKind.admin, teachers)


@pytest.fixture
def notes(db):
    return HeadmasterNoteRepository(db)


@pytest.fixture
def make_teacher():
    def _make(**overrides):
        data = dict(name="Siti Aminah", gender="female", unit="SD", className="1A", subject="Matematika",
                    position="Guru Kelas")
        data.update(overrides)
        return Teacher(**data)
    return _make


@pytest.fixture
def make_supervision():
    def _make(**overrides):
        data = dict(teacherId="t1", teacherName="Siti Aminah", date="2024-01-10", score=80, notes="")
        data.update(overrides)
        return Supervision(**data)
    return _make


@pytest.fixture
def make_note():
    def _make(**overrides):
        data = dict(teacherId="t1", teacherName="Siti Aminah", date="2024-01-10",
                    categories=["Kinerja Mengajar"], note="Persiapan mengajar baik")
        data.update(overrides)
        return HeadmasterNote(**data)
    return _make


@pytest.fixture
def client(db):
    main.app.dependency_overrides[main.get_db] = lambda: db
    main.SESSIONS.clear()
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()
    main.SESSIONS.clear()


def _auth(client, path, **kwargs):
    token = client.post(path, **kwargs).json()["token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(client):
    return _auth(client, "/login", json={"username": "admin", "password": "sipena25"})


@pytest.fixture
def guest_headers(client):
    return _auth(client, "/login/guest")
