from typing import Any, Dict, Type, Union
import uuid

from fastapi import Depends
from sqlalchemy.orm import Session

from app.db.models import ArchiveEntry, HistoryEntry, Submission, SubmissionStatus
from app.db.session import get_sync_session
from app.db.upsert import insert_if_absent
from app.utils.datetime_utils import naive_utc_now
from app.utils.logging import get_logger

logger = get_logger()

MirrorModel = Type[Union[ArchiveEntry, HistoryEntry]]


def build_snapshot(submission: Submission) -> Dict[str, Any]:
    """Denormalized copy of a submission for the mirror stores (no faculty id)"""
    return {
        "file_id": submission.file_id,
        "faculty_name": submission.faculty_name,
        "file_name": submission.file_name,
        "document_type": submission.document_type,
        "tos_type": submission.tos_type,
        "status": submission.status,
        "subject_code": submission.subject_code,
        "subject_title": submission.subject_title,
        "course": submission.course,
        "course_sections": list(submission.course_sections or []),
        "semester": submission.semester,
        "school_year": submission.school_year,
        "file_path": submission.file_path,
        "original_name": submission.original_name,
        "file_size": submission.file_size,
        "uploaded_at": submission.uploaded_at,
    }


class ArchivalSyncService:
    """Copies completed submissions into the archive and history stores exactly once"""

    def __init__(self, db_session: Session):
        self.db = db_session

    async def sync_to_archive(self, submission: Submission) -> bool:
        """
        Insert the archive snapshot of a completed submission.

        Returns:
            True if a row was created, False if the submission was already archived
        """
        return self._sync(ArchiveEntry, submission)

    async def sync_to_history(self, submission: Submission) -> bool:
        """Same as sync_to_archive for the history store"""
        return self._sync(HistoryEntry, submission)

    def _sync(self, model: MirrorModel, submission: Submission) -> bool:
        if submission.status != SubmissionStatus.COMPLETED:
            raise ValueError("SUBMISSION_NOT_COMPLETED")

        now = naive_utc_now()
        values = build_snapshot(submission)
        values.update(
            {
                "id": uuid.uuid4(),
                "archived_at": now,
                "created_at": now,
                "updated_at": now,
            }
        )

        try:
            inserted = insert_if_absent(self.db, model, values, ["file_id"])
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if inserted:
            logger.info(
                "Submission mirrored",
                store=model.__tablename__,
                file_id=str(submission.file_id),
            )
        else:
            logger.debug(
                "Submission already mirrored, insert skipped",
                store=model.__tablename__,
                file_id=str(submission.file_id),
            )
        return inserted


def get_archival_sync_service(
    db_session: Session = Depends(get_sync_session),
) -> ArchivalSyncService:
    """Dependency to provide ArchivalSyncService instance"""
    return ArchivalSyncService(db_session)
