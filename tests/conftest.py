"""
Pytest fixtures for the settlement service test suite.

Provides:
- a fresh in-memory SQLite database per test
- seeded subjects for one tenant (plus a foreign-tenant student)
- request contexts for every role the guard distinguishes
- a FastAPI TestClient wired to the same database with minted tokens
"""

import logging
import os

# must be set before anything under app/ reads its configuration
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("LOG_JSON", "false")

from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

import app.models  # noqa: F401
from app.core.context import TenantContext
from app.core.security import issue_token
from app.models.employee_model import Teacher, Staff
from app.models.enums import SubjectKind
from app.models.student_model import Student
from app.services.obligations import create_obligation
from app.services.subjects import SubjectRef
from app.utils.database import Base, build_engine, get_db

TENANT = "tenant-a"
OTHER_TENANT = "tenant-b"


@pytest.fixture(autouse=True)
def _restore_app_logger_level():
    # importing main configures the "app" logger; keep that from leaking between tests
    logger = logging.getLogger("app")
    level = logger.level
    yield
    logger.setLevel(level)


@pytest.fixture
def engine():
    eng = build_engine("sqlite://")
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


# ----------------------------
# Contexts
# ----------------------------
@pytest.fixture
def admin_ctx():
    return TenantContext(tenant_id=TENANT, actor_id="admin-1", role="ADMIN")


@pytest.fixture
def accountant_ctx():
    return TenantContext(tenant_id=TENANT, actor_id="acc-1", role="ACCOUNTANT")


@pytest.fixture
def teacher_role_ctx():
    return TenantContext(tenant_id=TENANT, actor_id="teacher-user-1", role="TEACHER")


@pytest.fixture
def other_tenant_ctx():
    return TenantContext(tenant_id=OTHER_TENANT, actor_id="admin-9", role="ADMIN")


# ----------------------------
# Subjects
# ----------------------------
def _add(db, row):
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture
def student(db):
    return _add(db, Student(tenant_id=TENANT, full_name="Ali Valiyev", monthly_tuition_fee=Decimal("1000000")))


@pytest.fixture
def student_without_fee(db):
    return _add(db, Student(tenant_id=TENANT, full_name="Vali Aliyev", monthly_tuition_fee=None))


@pytest.fixture
def foreign_student(db):
    return _add(db, Student(tenant_id=OTHER_TENANT, full_name="Other Tenant", monthly_tuition_fee=Decimal("500000")))


@pytest.fixture
def teacher(db):
    return _add(db, Teacher(tenant_id=TENANT, full_name="Dilnoza Karimova", monthly_salary=Decimal("3000000")))


@pytest.fixture
def staff(db):
    return _add(db, Staff(tenant_id=TENANT, full_name="Bobur Rahimov", position="Cook", monthly_salary=Decimal("2000000")))


@pytest.fixture
def student_ref(student):
    return SubjectRef(SubjectKind.STUDENT, student.student_id)


@pytest.fixture
def teacher_ref(teacher):
    return SubjectRef(SubjectKind.TEACHER, teacher.teacher_id)


@pytest.fixture
def staff_ref(staff):
    return SubjectRef(SubjectKind.STAFF, staff.staff_id)


@pytest.fixture
def tuition(db, admin_ctx, student_ref):
    """A PENDING 1 000 000 tuition obligation for September 2024."""
    result = create_obligation(db, admin_ctx, student_ref, Decimal("1000000"), month=9, year=2024)
    assert result.success, result
    return result.obligation


# ----------------------------
# HTTP
# ----------------------------
@pytest.fixture
def client(session_factory):
    from fastapi.testclient import TestClient
    from main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def bearer(tenant_id: str, actor_id: str, role: str) -> dict:
    return {"Authorization": f"Bearer {issue_token(tenant_id, actor_id, role)}"}


@pytest.fixture
def admin_headers():
    return bearer(TENANT, "admin-1", "ADMIN")


@pytest.fixture
def accountant_headers():
    return bearer(TENANT, "acc-1", "ACCOUNTANT")
