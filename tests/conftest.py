import io

import pytest
from httpx import AsyncClient, ASGITransport
from PIL import Image

from portal.config import Settings
from portal.main import create_app

TEACHER_EMAIL = "teacher@example.com"
TEACHER_PASSWORD = "Teacher123!"


@pytest.fixture(name="settings")
def settings_fixture(tmp_path):
    return Settings(
        SECRET_KEY="test-secret",
        DATABASE_URL=f"sqlite:///{tmp_path / 'portal.db'}",
        STORAGE_DIR=str(tmp_path / "storage"),
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture(name="app")
def app_fixture(settings):
    app = create_app(settings)
    yield app
    app.state.backend.close()


@pytest.fixture(name="backend")
def backend_fixture(app):
    return app.state.backend


@pytest.fixture(name="client")
def client_fixture(app):
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.fixture(name="subject")
def subject_fixture(backend):
    return backend.table("subjects").insert(
        {"code": "MATH101", "name": "College Algebra", "semester": "1st", "school_year": "2025-2026"}
    )[0]


def make_teacher(backend, email=TEACHER_EMAIL, password=TEACHER_PASSWORD):
    return backend.auth.sign_up(email, password, {"role": "teacher"})


def make_student(backend, student_id, full_name, email, subjects=(), password="password"):
    account = backend.auth.sign_up(
        email, password, {"role": "student", "student_id": student_id, "full_name": full_name}
    )
    return backend.table("students").insert(
        {
            "student_id": student_id,
            "full_name": full_name,
            "email": email,
            "subjects": list(subjects),
            "user_id": account.id,
        }
    )[0]


async def login(client, email, password):
    response = await client.post(
        "/auth/login", data={"email": email, "password": password}, follow_redirects=False
    )
    assert response.status_code == 303
    return response


def image_bytes(size=(40, 20), fmt="PNG", color=(200, 30, 30)):
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()
