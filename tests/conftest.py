import os
import uuid
from typing import Dict, Generator, List, Optional

os.environ.setdefault("LOG_TO_FILE", "false")

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.models import (
    DocumentType,
    FacultyLoad,
    Submission,
    SubmissionStatus,
    TaskDeliverable,
    TosType,
)
from app.db.db import create_tables
from app.db.session import get_sync_session
from app.services.minio_service import get_minio_service
from app.utils.auth import AuthUtils
from app.utils.datetime_utils import naive_utc_now


# Test database setup
TEST_DATABASE_URL = "sqlite://"

ADMIN_ID = "A7"
OTHER_ADMIN_ID = "A9"
FACULTY_ID = "F-100"
OTHER_FACULTY_ID = "F-200"


@pytest.fixture
def test_engine():
    """In-memory database shared by every session of one test."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    create_tables(engine)

    yield engine
    engine.dispose()


@pytest.fixture
def db_session(test_engine) -> Generator[Session, None, None]:
    """Create a database session for each test."""
    session_maker = sessionmaker(
        bind=test_engine, class_=Session, expire_on_commit=False
    )
    session = session_maker()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


class FakeMinIOService:
    """In-memory stand-in for MinIOService"""

    def __init__(self):
        self.objects: Dict[str, bytes] = {}

    async def upload_file(self, file, prefix=None, filename=None):
        data = await file.read()
        object_name = f"{prefix}/{uuid.uuid4()}_{filename or file.filename}"
        self.objects[object_name] = data
        return {
            "object_name": object_name,
            "bucket_name": "test-bucket",
            "size": len(data),
            "content_type": file.content_type,
            "etag": "test-etag",
        }

    async def delete_file(self, object_name: str) -> bool:
        self.objects.pop(object_name, None)
        return True

    async def generate_presigned_url(self, object_name: str, expires_in_hours: int = 24):
        if object_name not in self.objects:
            raise HTTPException(status_code=404, detail=f"File '{object_name}' not found")
        return {
            "object_name": object_name,
            "presigned_url": f"http://minio.test/test-bucket/{object_name}?signature=x",
            "expires_in_hours": expires_in_hours,
            "file_size": len(self.objects[object_name]),
        }


@pytest.fixture
def fake_minio() -> FakeMinIOService:
    return FakeMinIOService()


@pytest.fixture
def client(db_session, fake_minio) -> Generator[TestClient, None, None]:
    """API client whose requests share the test's database session."""
    from app.main import app

    def _override_session():
        yield db_session

    app.dependency_overrides[get_sync_session] = _override_session
    app.dependency_overrides[get_minio_service] = lambda: fake_minio

    yield TestClient(app)

    app.dependency_overrides.clear()


def auth_headers(user_id: str, username: str, user_type: str) -> Dict[str, str]:
    token = AuthUtils.generate_access_token(user_id, username, user_type)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers() -> Dict[str, str]:
    return auth_headers(ADMIN_ID, "Admin Seven", "admin")


@pytest.fixture
def other_admin_headers() -> Dict[str, str]:
    return auth_headers(OTHER_ADMIN_ID, "Admin Nine", "admin")


@pytest.fixture
def faculty_headers() -> Dict[str, str]:
    return auth_headers(FACULTY_ID, "Maria Santos", "faculty")


@pytest.fixture
def other_faculty_headers() -> Dict[str, str]:
    return auth_headers(OTHER_FACULTY_ID, "Jose Reyes", "faculty")


# Test data factories
@pytest.fixture
def make_faculty_load(db_session: Session):
    """Create a faculty load together with its all-pending task deliverable."""

    def _make(
        faculty_id: str = FACULTY_ID,
        faculty_name: str = "Maria Santos",
        subject_code: str = "IT101",
        subject_title: str = "Introduction to Computing",
        course_section: str = "BSIT-1A",
        semester: str = "1st Semester",
        school_year: str = "2025-2026",
        with_deliverable: bool = True,
    ) -> FacultyLoad:
        faculty_load = FacultyLoad(
            faculty_id=faculty_id,
            faculty_name=faculty_name,
            subject_code=subject_code,
            subject_title=subject_title,
            course_section=course_section,
            semester=semester,
            school_year=school_year,
        )
        if with_deliverable:
            faculty_load.task_deliverable = TaskDeliverable(
                faculty_id=faculty_id,
                faculty_name=faculty_name,
                subject_code=subject_code,
                subject_title=subject_title,
                course_section=course_section,
                semester=semester,
                school_year=school_year,
            )
        db_session.add(faculty_load)
        db_session.commit()
        db_session.refresh(faculty_load)
        return faculty_load

    return _make


@pytest.fixture
def make_submission(db_session: Session):
    def _make(
        status: SubmissionStatus = SubmissionStatus.PENDING,
        document_type: DocumentType = DocumentType.SYLLABUS,
        tos_type: Optional[TosType] = None,
        faculty_id: str = FACULTY_ID,
        faculty_name: str = "Maria Santos",
        subject_code: str = "IT101",
        course_sections: Optional[List[str]] = None,
        file_name: str = "syllabus.pdf",
    ) -> Submission:
        sections = course_sections or ["BSIT-1A"]
        submission = Submission(
            faculty_id=faculty_id,
            faculty_name=faculty_name,
            file_name=file_name,
            document_type=document_type,
            tos_type=tos_type,
            status=status,
            subject_code=subject_code,
            subject_title="Introduction to Computing",
            course=", ".join(sections),
            course_sections=sections,
            semester="1st Semester",
            school_year="2025-2026",
            file_path=f"submissions/{faculty_id}/{subject_code}/{file_name}",
            original_name=file_name,
            file_size=2048,
            uploaded_at=naive_utc_now(),
        )
        db_session.add(submission)
        db_session.commit()
        db_session.refresh(submission)
        return submission

    return _make
