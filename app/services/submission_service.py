from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
import time
import uuid

from fastapi import Depends, UploadFile
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from app.config.settings import settings
from app.db.models import (
    DocumentType,
    FacultyLoad,
    Submission,
    SubmissionStatus,
    SubmissionStatusChange,
    SyncTarget,
    TosType,
)
from app.db.session import get_sync_session
from app.schemas.submission_schemas import (
    BulkCompleteResponse,
    FanOutStepResult,
    StatusTransitionResponse,
    SubmissionItem,
    SubmissionStatusChangeItem,
)
from app.services.archive import ArchivalSyncService
from app.services.deliverable_service import DeliverableService
from app.services.minio_service import MinIOService
from app.services.notifications import NotificationService
from app.services.sync_ledger import record_sync_failure
from app.utils.datetime_utils import naive_utc_now, to_iso, utc_now
from app.utils.logging import get_logger

logger = get_logger()

# Compare-and-set retries before giving up on a contended row
MAX_STATUS_UPDATE_ATTEMPTS = 3

OUTCOME_APPLIED = "applied"
OUTCOME_SKIPPED = "skipped"
OUTCOME_FAILED = "failed"
OUTCOME_DEFERRED = "deferred"

FanOutStep = Tuple[SyncTarget, Callable[[], Awaitable[Any]]]


def parse_file_id(file_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(file_id))
    except ValueError:
        raise ValueError("INVALID_FILE_ID")


def parse_submission_status(value: str) -> SubmissionStatus:
    try:
        return SubmissionStatus(value)
    except ValueError:
        raise ValueError("INVALID_SUBMISSION_STATUS")


def resolve_document_type(
    document_type: str, tos_type: Optional[str] = None
) -> Tuple[DocumentType, Optional[TosType]]:
    """
    Validate the upload's document type.

    A bare "tos" with a term becomes the term-specific kind, and the term-specific
    kinds imply their term.
    """
    try:
        kind = DocumentType(document_type)
    except ValueError:
        raise ValueError("INVALID_DOCUMENT_TYPE")

    term = None
    if tos_type:
        try:
            term = TosType(tos_type)
        except ValueError:
            raise ValueError("INVALID_TOS_TYPE")

    if kind == DocumentType.TOS and term is not None:
        kind = (
            DocumentType.TOS_MIDTERM
            if term == TosType.MIDTERM
            else DocumentType.TOS_FINAL
        )
    elif kind == DocumentType.TOS_MIDTERM:
        term = TosType.MIDTERM
    elif kind == DocumentType.TOS_FINAL:
        term = TosType.FINAL
    elif kind != DocumentType.TOS:
        term = None

    return kind, term


def parse_course_sections(course_sections: str) -> List[str]:
    """Split a comma separated list, dropping blanks and duplicates in order"""
    sections: List[str] = []
    for section in (course_sections or "").split(","):
        section = section.strip()
        if section and section not in sections:
            sections.append(section)
    if not sections:
        raise ValueError("INVALID_COURSE_SECTIONS")
    return sections


class SubmissionService:
    """
    Owns the submission lifecycle: upload, review transitions and the
    downstream fan-out that keeps aggregates, inboxes and mirrors in step.
    """

    def __init__(self, db_session: Session):
        self.db = db_session
        self.deliverable_service = DeliverableService(db_session)
        self.notification_service = NotificationService(db_session)
        self.archival_sync_service = ArchivalSyncService(db_session)

    # ---- Status transition ----

    async def transition_status(
        self,
        file_id: str,
        new_status: str,
        actor_id: Optional[str] = None,
        actor_name: Optional[str] = None,
    ) -> StatusTransitionResponse:
        """
        Move a submission to a new review status and fan the change out.

        The status write and its audit row commit first; each downstream step
        then runs in its own transaction and can only fail into the sync
        ledger, never back to the caller.

        Args:
            file_id: Submission id
            new_status: pending, completed, rejected or late
            actor_id: Admin performing the change
            actor_name: Admin display name

        Returns:
            StatusTransitionResponse with the stored submission and step outcomes
        """
        file_uuid = parse_file_id(file_id)

        for _ in range(MAX_STATUS_UPDATE_ATTEMPTS):
            submission = self._get_submission_for_update(file_uuid)
            if submission is None:
                self.db.rollback()
                raise ValueError("SUBMISSION_NOT_FOUND")

            try:
                target = parse_submission_status(new_status)
            except ValueError:
                self.db.rollback()
                raise

            previous_status = submission.status
            if previous_status == target:
                self.db.rollback()
                logger.info(
                    "Submission already in requested status, nothing to do",
                    file_id=str(file_uuid),
                    status=target.value,
                )
                return StatusTransitionResponse(
                    submission=self.transform_submission(submission),
                    previous_status=previous_status.value,
                    changed=False,
                )

            result = self.db.execute(
                update(Submission)
                .where(
                    Submission.file_id == file_uuid,
                    Submission.status == previous_status,
                )
                .values(status=target, updated_at=naive_utc_now())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                # Lost the race; re-read and decide again
                self.db.rollback()
                logger.info(
                    "Submission status changed concurrently, retrying",
                    file_id=str(file_uuid),
                )
                continue

            status_change_id = uuid.uuid4()
            self.db.add(
                SubmissionStatusChange(
                    id=status_change_id,
                    file_id=file_uuid,
                    actor_id=actor_id,
                    actor_name=actor_name,
                    old_status=previous_status,
                    new_status=target,
                )
            )
            self.db.commit()
            self.db.refresh(submission)
            break
        else:
            logger.error(
                "Submission status update kept losing the compare-and-set",
                file_id=str(file_uuid),
            )
            raise RuntimeError("SUBMISSION_STATUS_UPDATE_FAILED")

        logger.info(
            "Submission status updated",
            file_id=str(file_uuid),
            previous_status=previous_status.value,
            new_status=target.value,
            actor_id=actor_id,
        )

        fan_out = await self._fan_out_status_change(
            submission,
            previous_status,
            target,
            actor_id,
            actor_name,
            status_change_id=status_change_id,
        )

        return StatusTransitionResponse(
            submission=self.transform_submission(submission),
            previous_status=previous_status.value,
            changed=True,
            fan_out=fan_out,
        )

    async def _fan_out_status_change(
        self,
        submission: Submission,
        previous_status: SubmissionStatus,
        new_status: SubmissionStatus,
        actor_id: Optional[str],
        actor_name: Optional[str],
        status_change_id: Optional[uuid.UUID] = None,
    ) -> List[FanOutStepResult]:
        steps: List[FanOutStep] = [
            (
                SyncTarget.DELIVERABLES,
                lambda: self.deliverable_service.apply_submission_status(submission),
            ),
            (
                SyncTarget.FACULTY_NOTIFICATION,
                lambda: self.notification_service.notify_faculty(
                    submission,
                    previous_status,
                    new_status,
                    sender_id=actor_id,
                    sender_name=actor_name,
                ),
            ),
        ]
        if new_status == SubmissionStatus.COMPLETED:
            steps.extend(
                [
                    (
                        SyncTarget.ARCHIVE,
                        lambda: self.archival_sync_service.sync_to_archive(submission),
                    ),
                    (
                        SyncTarget.HISTORY,
                        lambda: self.archival_sync_service.sync_to_history(submission),
                    ),
                ]
            )

        context = {
            "previous_status": previous_status.value,
            "new_status": new_status.value,
            "actor_id": actor_id,
            "actor_name": actor_name,
            "status_change_id": str(status_change_id) if status_change_id else None,
        }
        return await self.run_fan_out(submission.file_id, steps, context)

    async def run_fan_out(
        self,
        file_id: uuid.UUID,
        steps: List[FanOutStep],
        context: Dict[str, Any],
    ) -> List[FanOutStepResult]:
        """
        Run downstream steps in order, each isolated, all under one deadline.

        A failing step is rolled back, logged and written to the sync ledger;
        a step that would start after the deadline is deferred to the ledger
        without running.
        """
        deadline = time.monotonic() + settings.FANOUT_DEADLINE_SECONDS
        results: List[FanOutStepResult] = []

        for target, step in steps:
            if time.monotonic() > deadline:
                logger.warning(
                    "Fan-out deadline exceeded, step deferred to reconciliation",
                    file_id=str(file_id),
                    target=target.value,
                    timestamp=utc_now().isoformat(),
                )
                record_sync_failure(
                    self.db,
                    file_id,
                    target,
                    "Fan-out deadline exceeded before the step started",
                    context,
                )
                results.append(
                    FanOutStepResult(target=target.value, outcome=OUTCOME_DEFERRED)
                )
                continue

            try:
                applied = await step()
            except Exception as e:
                self.db.rollback()
                logger.error(
                    "Downstream sync step failed",
                    file_id=str(file_id),
                    target=target.value,
                    timestamp=utc_now().isoformat(),
                    error=str(e),
                )
                record_sync_failure(self.db, file_id, target, str(e), context)
                results.append(
                    FanOutStepResult(target=target.value, outcome=OUTCOME_FAILED)
                )
                continue

            results.append(
                FanOutStepResult(
                    target=target.value,
                    outcome=OUTCOME_APPLIED if applied else OUTCOME_SKIPPED,
                )
            )

        return results

    async def bulk_complete(
        self, actor_id: Optional[str] = None, actor_name: Optional[str] = None
    ) -> BulkCompleteResponse:
        """Complete every pending or rejected submission through the normal transition"""
        try:
            file_ids = (
                self.db.execute(
                    select(Submission.file_id)
                    .where(
                        Submission.status.in_(
                            [SubmissionStatus.PENDING, SubmissionStatus.REJECTED]
                        )
                    )
                    .order_by(Submission.uploaded_at)
                )
                .scalars()
                .all()
            )
        except Exception as e:
            logger.error("Failed to select submissions for bulk completion", error=str(e))
            raise RuntimeError("BULK_COMPLETE_FAILED") from e

        completed: List[str] = []
        for file_id in file_ids:
            result = await self.transition_status(
                str(file_id),
                SubmissionStatus.COMPLETED.value,
                actor_id=actor_id,
                actor_name=actor_name,
            )
            if result.changed:
                completed.append(str(file_id))

        logger.info("Bulk completion finished", completed_count=len(completed))
        return BulkCompleteResponse(completed_count=len(completed), file_ids=completed)

    # ---- Upload ----

    async def upload_submission(
        self,
        minio_service: MinIOService,
        faculty_id: str,
        faculty_name: str,
        file: UploadFile,
        document_type: str,
        subject_code: str,
        course_sections: str,
        semester: str,
        school_year: str,
        tos_type: Optional[str] = None,
    ) -> SubmissionItem:
        """
        Store an uploaded file and register it as a pending submission.

        Every listed section must be one of the caller's faculty loads. After the
        submission commits, the aggregates are marked submitted and the admins
        get one broadcast; both are best effort and ledger-backed.
        """
        kind, term = resolve_document_type(document_type, tos_type)
        sections = parse_course_sections(course_sections)
        subject_code = subject_code.strip()

        loads = (
            self.db.execute(
                select(FacultyLoad).where(
                    FacultyLoad.faculty_id == faculty_id,
                    FacultyLoad.subject_code == subject_code,
                    FacultyLoad.course_section.in_(sections),
                )
            )
            .scalars()
            .all()
        )
        loaded_sections = {load.course_section for load in loads}
        missing = [s for s in sections if s not in loaded_sections]
        if missing:
            logger.warning(
                "Upload rejected, sections not in faculty loads",
                faculty_id=faculty_id,
                subject_code=subject_code,
                missing_sections=missing,
            )
            raise ValueError("FACULTY_LOAD_NOT_FOUND")

        upload_info = await minio_service.upload_file(
            file, prefix=f"submissions/{faculty_id}/{subject_code}"
        )

        submission = Submission(
            faculty_id=faculty_id,
            faculty_name=faculty_name,
            file_name=file.filename,
            document_type=kind,
            tos_type=term,
            status=SubmissionStatus.PENDING,
            subject_code=subject_code,
            subject_title=loads[0].subject_title,
            course=", ".join(sections),
            course_sections=sections,
            semester=semester.strip(),
            school_year=school_year.strip(),
            file_path=upload_info["object_name"],
            original_name=file.filename,
            file_size=upload_info["size"],
            uploaded_at=naive_utc_now(),
        )

        try:
            self.db.add(submission)
            self.db.commit()
            self.db.refresh(submission)
        except Exception as e:
            self.db.rollback()
            logger.error(
                "Failed to save submission, removing stored file",
                object_name=upload_info["object_name"],
                error=str(e),
            )
            await minio_service.delete_file(upload_info["object_name"])
            raise RuntimeError("SUBMISSION_UPLOAD_FAILED") from e

        logger.info(
            "Submission uploaded",
            file_id=str(submission.file_id),
            faculty_id=faculty_id,
            document_type=kind.value,
            course_sections=sections,
        )

        await self.run_fan_out(
            submission.file_id,
            [
                (
                    SyncTarget.DELIVERABLES,
                    lambda: self.deliverable_service.apply_submission_status(
                        submission
                    ),
                ),
                (
                    SyncTarget.ADMIN_NOTIFICATION,
                    lambda: self.notification_service.notify_admins(
                        submission, sender_id=faculty_id
                    ),
                ),
            ],
            {"new_status": SubmissionStatus.PENDING.value},
        )

        return self.transform_submission(submission)

    # ---- Reads ----

    async def get_submission(self, file_id: str) -> SubmissionItem:
        return self.transform_submission(self._get_submission(parse_file_id(file_id)))

    async def get_submissions(
        self,
        status: Optional[str] = None,
        faculty_id: Optional[str] = None,
        subject_code: Optional[str] = None,
        document_type: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[SubmissionItem], int]:
        """
        List submissions newest first.

        Returns:
            (items for the requested page, total matching rows)
        """
        conditions = []
        if status:
            conditions.append(Submission.status == parse_submission_status(status))
        if faculty_id:
            conditions.append(Submission.faculty_id == faculty_id)
        if subject_code:
            conditions.append(Submission.subject_code == subject_code)
        if document_type:
            try:
                conditions.append(
                    Submission.document_type == DocumentType(document_type)
                )
            except ValueError:
                raise ValueError("INVALID_DOCUMENT_TYPE")

        try:
            total = self.db.execute(
                select(func.count(Submission.file_id)).where(*conditions)
            ).scalar_one()

            submissions = (
                self.db.execute(
                    select(Submission)
                    .where(*conditions)
                    .order_by(Submission.uploaded_at.desc(), Submission.file_id)
                    .limit(page_size)
                    .offset((page - 1) * page_size)
                )
                .scalars()
                .all()
            )
            return [self.transform_submission(s) for s in submissions], total

        except Exception as e:
            logger.error("Failed to retrieve submissions", error=str(e))
            raise RuntimeError("SUBMISSIONS_RETRIEVAL_FAILED") from e

    async def get_status_history(
        self, file_id: str
    ) -> List[SubmissionStatusChangeItem]:
        file_uuid = parse_file_id(file_id)
        self._get_submission(file_uuid)

        changes = (
            self.db.execute(
                select(SubmissionStatusChange)
                .where(SubmissionStatusChange.file_id == file_uuid)
                .order_by(SubmissionStatusChange.created_at)
            )
            .scalars()
            .all()
        )
        return [
            SubmissionStatusChangeItem(
                id=str(change.id),
                file_id=str(change.file_id),
                old_status=change.old_status.value,
                new_status=change.new_status.value,
                actor_id=change.actor_id,
                actor_name=change.actor_name,
                created_at=to_iso(change.created_at),
            )
            for change in changes
        ]

    async def get_download_url(
        self, minio_service: MinIOService, file_id: str
    ) -> Dict[str, Any]:
        submission = self._get_submission(parse_file_id(file_id))
        url_info = await minio_service.generate_presigned_url(submission.file_path)
        url_info["file_name"] = submission.original_name
        return url_info

    # ---- Helpers ----

    def _get_submission(self, file_uuid: uuid.UUID) -> Submission:
        submission = self.db.execute(
            select(Submission).where(Submission.file_id == file_uuid)
        ).scalar_one_or_none()
        if submission is None:
            raise ValueError("SUBMISSION_NOT_FOUND")
        return submission

    def _get_submission_for_update(self, file_uuid: uuid.UUID) -> Optional[Submission]:
        # FOR UPDATE is dropped by dialects without row locks (SQLite)
        return self.db.execute(
            select(Submission)
            .where(Submission.file_id == file_uuid)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    @staticmethod
    def transform_submission(submission: Submission) -> SubmissionItem:
        return SubmissionItem(
            file_id=str(submission.file_id),
            faculty_id=submission.faculty_id,
            faculty_name=submission.faculty_name,
            file_name=submission.file_name,
            document_type=submission.document_type.value,
            tos_type=submission.tos_type.value if submission.tos_type else None,
            status=submission.status.value,
            subject_code=submission.subject_code,
            subject_title=submission.subject_title,
            course=submission.course,
            course_sections=list(submission.course_sections or []),
            semester=submission.semester,
            school_year=submission.school_year,
            file_path=submission.file_path,
            original_name=submission.original_name,
            file_size=submission.file_size,
            uploaded_at=to_iso(submission.uploaded_at),
            updated_at=to_iso(submission.updated_at),
        )


def get_submission_service(
    db_session: Session = Depends(get_sync_session),
) -> SubmissionService:
    """Dependency to provide SubmissionService instance"""
    return SubmissionService(db_session)
