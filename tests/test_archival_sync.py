"""
Tests for the archive and history mirrors: exactly one row per completed
submission, no matter how often or how concurrently the sync runs.
"""

import asyncio
import threading

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker

from app.db.models import (
    ArchiveEntry,
    DocumentType,
    HistoryEntry,
    Submission,
    SubmissionStatus,
    SubmissionStatusChange,
)
from app.db.db import create_tables
from app.services.archive import ArchivalSyncService, build_snapshot
from app.services.submission_service import SubmissionService
from app.utils.datetime_utils import naive_utc_now


class TestArchivalSync:
    @pytest.mark.asyncio
    async def test_second_sync_is_skipped(self, db_session, make_submission):
        submission = make_submission(status=SubmissionStatus.COMPLETED)
        service = ArchivalSyncService(db_session)

        assert await service.sync_to_archive(submission) is True
        assert await service.sync_to_archive(submission) is False
        assert await service.sync_to_history(submission) is True

        archive_count = db_session.execute(
            select(func.count()).select_from(ArchiveEntry)
        ).scalar_one()
        history_count = db_session.execute(
            select(func.count()).select_from(HistoryEntry)
        ).scalar_one()
        assert archive_count == 1
        assert history_count == 1

    @pytest.mark.asyncio
    async def test_only_completed_submissions_are_mirrored(
        self, db_session, make_submission
    ):
        submission = make_submission(status=SubmissionStatus.REJECTED)

        with pytest.raises(ValueError, match="SUBMISSION_NOT_COMPLETED"):
            await ArchivalSyncService(db_session).sync_to_archive(submission)

    @pytest.mark.asyncio
    async def test_snapshot_copies_submission_without_faculty_id(
        self, db_session, make_submission
    ):
        submission = make_submission(
            status=SubmissionStatus.COMPLETED, course_sections=["BSIT-1A", "BSIT-1B"]
        )

        await ArchivalSyncService(db_session).sync_to_archive(submission)

        entry = db_session.execute(select(ArchiveEntry)).scalar_one()
        assert entry.file_id == submission.file_id
        assert entry.faculty_name == submission.faculty_name
        assert entry.course_sections == ["BSIT-1A", "BSIT-1B"]
        assert entry.status == SubmissionStatus.COMPLETED
        assert entry.deleted_at is None
        assert not hasattr(entry, "faculty_id")
        assert "faculty_id" not in build_snapshot(submission)


@pytest.fixture
def file_database(tmp_path):
    """File-backed SQLite so separate threads get separate connections."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    create_tables(engine)
    session_maker = sessionmaker(bind=engine, class_=Session, expire_on_commit=False)

    yield session_maker
    engine.dispose()


def _add_submission(session_maker, status: SubmissionStatus):
    with session_maker() as session:
        submission = Submission(
            faculty_id="F-100",
            faculty_name="Maria Santos",
            file_name="syllabus.pdf",
            document_type=DocumentType.SYLLABUS,
            status=status,
            subject_code="IT101",
            subject_title="Introduction to Computing",
            course="BSIT-1A",
            course_sections=["BSIT-1A"],
            semester="1st Semester",
            school_year="2025-2026",
            file_path="submissions/F-100/IT101/syllabus.pdf",
            original_name="syllabus.pdf",
            file_size=1024,
            uploaded_at=naive_utc_now(),
        )
        session.add(submission)
        session.commit()
        return submission.file_id


def _race(session_maker, work):
    """Run ``work(session)`` on two threads released together."""
    barrier = threading.Barrier(2)
    results = []
    errors = []

    def worker():
        with session_maker() as session:
            try:
                results.append(work(session, barrier))
            except Exception as e:
                errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    assert errors == []
    return results


def _count(session_maker, model):
    with session_maker() as session:
        return session.execute(select(func.count()).select_from(model)).scalar_one()


@pytest.mark.integration
class TestConcurrentArchivalSync:
    def test_racing_syncs_create_one_row(self, file_database):
        file_id = _add_submission(file_database, SubmissionStatus.COMPLETED)

        def work(session, barrier):
            row = session.get(Submission, file_id)
            barrier.wait()
            return asyncio.run(ArchivalSyncService(session).sync_to_archive(row))

        results = _race(file_database, work)

        assert sorted(results) == [False, True]
        assert _count(file_database, ArchiveEntry) == 1

    def test_racing_completions_archive_once(self, file_database):
        file_id = _add_submission(file_database, SubmissionStatus.PENDING)

        def work(session, barrier):
            barrier.wait()
            return asyncio.run(
                SubmissionService(session).transition_status(
                    str(file_id), "completed"
                )
            )

        results = _race(file_database, work)

        # The compare-and-set loser re-reads and finds nothing left to do
        assert sorted(r.changed for r in results) == [False, True]
        assert _count(file_database, ArchiveEntry) == 1
        assert _count(file_database, HistoryEntry) == 1
        assert _count(file_database, SubmissionStatusChange) == 1
