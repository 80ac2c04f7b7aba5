from typing import Dict, List, Optional

from fastapi import Depends
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.db.models import (
    DeliverableStatus,
    DocumentType,
    FacultyLoad,
    Submission,
    SubmissionStatus,
    TaskDeliverable,
)
from app.db.session import get_sync_session
from app.schemas.deliverable_schemas import TaskDeliverableItem
from app.utils.datetime_utils import naive_utc_now, to_iso
from app.utils.logging import get_logger

logger = get_logger()

# Submission review vocabulary -> aggregate slot vocabulary. Must stay total.
SUBMISSION_TO_DELIVERABLE_STATUS: Dict[SubmissionStatus, DeliverableStatus] = {
    SubmissionStatus.PENDING: DeliverableStatus.SUBMITTED,
    SubmissionStatus.COMPLETED: DeliverableStatus.APPROVED,
    SubmissionStatus.REJECTED: DeliverableStatus.REJECTED,
    SubmissionStatus.LATE: DeliverableStatus.SUBMITTED,
}

# Every TOS variant lands in the single tos slot
DOCUMENT_TYPE_TO_SLOT: Dict[DocumentType, str] = {
    DocumentType.SYLLABUS: "syllabus",
    DocumentType.TOS: "tos",
    DocumentType.TOS_MIDTERM: "tos",
    DocumentType.TOS_FINAL: "tos",
    DocumentType.MIDTERM_EXAM: "midterm_exam",
    DocumentType.FINAL_EXAM: "final_exam",
    DocumentType.INSTRUCTIONAL_MATERIALS: "instructional_materials",
}

DELIVERABLE_SLOTS = (
    "syllabus",
    "tos",
    "midterm_exam",
    "final_exam",
    "instructional_materials",
)

OVERALL_REJECTED = "rejected"
OVERALL_PENDING = "pending"
OVERALL_COMPLETED = "completed"


def translate_status(status: SubmissionStatus) -> DeliverableStatus:
    """Translate a submission status into the aggregate's review-facing status."""
    return SUBMISSION_TO_DELIVERABLE_STATUS[status]


def slot_for_document_type(document_type: DocumentType) -> str:
    return DOCUMENT_TYPE_TO_SLOT[document_type]


def compute_overall_status(deliverable: TaskDeliverable) -> str:
    """
    Roll the five slots up into one status.

    rejected if any slot is rejected, else pending while any slot is still
    pending or awaiting review, else completed.
    """
    slot_statuses = [getattr(deliverable, slot) for slot in DELIVERABLE_SLOTS]

    if DeliverableStatus.REJECTED in slot_statuses:
        return OVERALL_REJECTED
    if any(
        s in (DeliverableStatus.PENDING, DeliverableStatus.SUBMITTED)
        for s in slot_statuses
    ):
        return OVERALL_PENDING
    return OVERALL_COMPLETED


class DeliverableService:
    """Maintains the per (subject, section) deliverable aggregates"""

    def __init__(self, db_session: Session):
        self.db = db_session

    async def apply_status(
        self,
        subject_code: str,
        course_section: str,
        kind: DocumentType,
        status: DeliverableStatus,
    ) -> bool:
        """
        Overwrite one slot of the aggregate for a subject/section.

        The write touches only the slot that belongs to ``kind`` so concurrent
        updates of different slots never clobber each other. Does not commit.

        Returns:
            False when no aggregate exists for the pair (nothing to update)
        """
        slot = slot_for_document_type(kind)
        result = self.db.execute(
            update(TaskDeliverable)
            .where(
                TaskDeliverable.subject_code == subject_code,
                TaskDeliverable.course_section == course_section,
            )
            .values({slot: status, "updated_at": naive_utc_now()})
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            logger.warning(
                "No task deliverable for subject/section, slot update skipped",
                subject_code=subject_code,
                course_section=course_section,
                slot=slot,
            )
            return False

        logger.info(
            "Task deliverable slot updated",
            subject_code=subject_code,
            course_section=course_section,
            slot=slot,
            status=status.value,
        )
        return True

    async def apply_submission_status(self, submission: Submission) -> int:
        """
        Push a submission's current status into the aggregate of every section it covers.

        Returns:
            Number of aggregates updated
        """
        deliverable_status = translate_status(submission.status)
        updated_count = 0

        for course_section in submission.course_sections:
            if await self.apply_status(
                subject_code=submission.subject_code,
                course_section=course_section,
                kind=submission.document_type,
                status=deliverable_status,
            ):
                updated_count += 1

        self.db.commit()
        return updated_count

    def create_for_faculty_load(self, faculty_load: FacultyLoad) -> TaskDeliverable:
        """Create the all-pending aggregate that belongs to a newly registered load. Does not commit."""
        existing = self.db.execute(
            select(TaskDeliverable.id).where(
                TaskDeliverable.subject_code == faculty_load.subject_code,
                TaskDeliverable.course_section == faculty_load.course_section,
            )
        ).scalar_one_or_none()

        if existing is not None:
            raise ValueError("TASK_DELIVERABLE_EXISTS")

        deliverable = TaskDeliverable(
            faculty_id=faculty_load.faculty_id,
            faculty_name=faculty_load.faculty_name,
            subject_code=faculty_load.subject_code,
            subject_title=faculty_load.subject_title,
            course_section=faculty_load.course_section,
            semester=faculty_load.semester,
            school_year=faculty_load.school_year,
        )
        faculty_load.task_deliverable = deliverable
        return deliverable

    async def get_deliverables(
        self,
        faculty_id: Optional[str] = None,
        subject_code: Optional[str] = None,
        course_section: Optional[str] = None,
        overall_status: Optional[str] = None,
    ) -> List[TaskDeliverableItem]:
        """List aggregates, optionally filtered; the overall status filter runs on the computed value."""
        if overall_status and overall_status not in (
            OVERALL_REJECTED,
            OVERALL_PENDING,
            OVERALL_COMPLETED,
        ):
            raise ValueError("INVALID_OVERALL_STATUS")

        query = select(TaskDeliverable).order_by(
            TaskDeliverable.subject_code, TaskDeliverable.course_section
        )
        if faculty_id:
            query = query.where(TaskDeliverable.faculty_id == faculty_id)
        if subject_code:
            query = query.where(TaskDeliverable.subject_code == subject_code)
        if course_section:
            query = query.where(TaskDeliverable.course_section == course_section)

        deliverables = self.db.execute(query).scalars().all()

        items = [self.transform_deliverable(d) for d in deliverables]
        if overall_status:
            items = [i for i in items if i.overall_status == overall_status]
        return items

    @staticmethod
    def transform_deliverable(deliverable: TaskDeliverable) -> TaskDeliverableItem:
        return TaskDeliverableItem(
            task_deliverables_id=str(deliverable.id),
            faculty_load_id=str(deliverable.faculty_load_id),
            faculty_id=deliverable.faculty_id,
            faculty_name=deliverable.faculty_name,
            subject_code=deliverable.subject_code,
            subject_title=deliverable.subject_title,
            course_section=deliverable.course_section,
            semester=deliverable.semester,
            school_year=deliverable.school_year,
            syllabus=deliverable.syllabus.value,
            tos=deliverable.tos.value,
            midterm_exam=deliverable.midterm_exam.value,
            final_exam=deliverable.final_exam.value,
            instructional_materials=deliverable.instructional_materials.value,
            overall_status=compute_overall_status(deliverable),
            updated_at=to_iso(deliverable.updated_at or deliverable.created_at),
        )


def get_deliverable_service(
    db_session: Session = Depends(get_sync_session),
) -> DeliverableService:
    """Dependency to provide DeliverableService instance"""
    return DeliverableService(db_session)
