"""
CoachDesk - Test Configuration and Fixtures
"""
import os
from datetime import timedelta
from typing import AsyncGenerator

import pytest
from faker import Faker
from httpx import ASGITransport, AsyncClient

os.environ["AUTH_MODE"] = "mock"
os.environ["SUPABASE_URL"] = "http://supabase.test"
os.environ["SUPABASE_KEY"] = "test-key"
os.environ["EMAILJS_SERVICE_ID"] = ""

from coachdesk.core import database
from coachdesk.core.config import settings
from coachdesk.core.security import get_current_user, get_password_hash, user_context
from coachdesk.main import app
from coachdesk.utils.dates import utcnow
from tests.fakes import FakeSupabase

fake = Faker()
Faker.seed(4321)


@pytest.fixture(autouse=True)
def db(monkeypatch) -> FakeSupabase:
    """Fresh in-memory store per test, injected where get_supabase() looks."""
    fake_db = FakeSupabase()
    monkeypatch.setattr(database, "_supabase_client", fake_db)
    return fake_db


@pytest.fixture(autouse=True)
def upload_dir(monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path))
    return tmp_path


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def as_user():
    """Authenticate subsequent requests as the given `users` row."""
    def _as(row: dict):
        app.dependency_overrides[get_current_user] = lambda: user_context(row)
        return row
    return _as


@pytest.fixture
def tenant(db) -> dict:
    return db.seed(
        "tenants",
        name=fake.company(),
        code=fake.unique.bothify("CTR-####"),
        subscription_plan="trial",
        trial_ends_at=(utcnow() + timedelta(days=settings.TRIAL_DAYS)).isoformat(),
        student_limit=100,
        is_active=True,
    )


@pytest.fixture
def make_user(db, tenant):
    def _make(role: str, password: str | None = None, tenant_id: str | None = None, **extra) -> dict:
        values = {
            "tenant_id": tenant_id or tenant["id"],
            "email": fake.unique.email(),
            "name": fake.name(),
            "role": role,
            "is_active": True,
            "password_hash": get_password_hash(password) if password else None,
            "requires_password_reset": False,
        }
        values.update(extra)
        return db.seed("users", **values)
    return _make


@pytest.fixture
def admin(make_user) -> dict:
    return make_user("admin")


@pytest.fixture
def teacher(make_user) -> dict:
    return make_user("teacher")


@pytest.fixture
def student(make_user) -> dict:
    return make_user("student")


@pytest.fixture
def course(db, tenant) -> dict:
    return db.seed("courses", tenant_id=tenant["id"], name="JEE Physics", fee=12000, topics=[])


@pytest.fixture
def batch(db, tenant, course, teacher, student) -> dict:
    """A batch taught by `teacher` with `student` enrolled."""
    row = db.seed(
        "batches",
        tenant_id=tenant["id"],
        name="Morning A",
        course_id=course["id"],
        teacher_id=teacher["id"],
        status="active",
        capacity=30,
    )
    db.seed("batch_students", tenant_id=tenant["id"], batch_id=row["id"], student_id=student["id"])
    return row
