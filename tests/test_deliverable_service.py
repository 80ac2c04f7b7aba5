"""
Tests for the task deliverable aggregate: vocabulary translation, slot
mapping, overall status and per-slot writes.
"""

import pytest
from sqlalchemy import select

from app.db.models import (
    DeliverableStatus,
    DocumentType,
    SubmissionStatus,
    TaskDeliverable,
)
from app.services.deliverable_service import (
    DELIVERABLE_SLOTS,
    DeliverableService,
    compute_overall_status,
    slot_for_document_type,
    translate_status,
)


class TestStatusTranslation:
    def test_every_submission_status_has_a_deliverable_status(self):
        for status in SubmissionStatus:
            assert isinstance(translate_status(status), DeliverableStatus)

    @pytest.mark.parametrize(
        "submission_status,expected",
        [
            (SubmissionStatus.PENDING, DeliverableStatus.SUBMITTED),
            (SubmissionStatus.COMPLETED, DeliverableStatus.APPROVED),
            (SubmissionStatus.REJECTED, DeliverableStatus.REJECTED),
            (SubmissionStatus.LATE, DeliverableStatus.SUBMITTED),
        ],
    )
    def test_translation_table(self, submission_status, expected):
        assert translate_status(submission_status) == expected

    def test_every_document_type_has_a_slot(self):
        for document_type in DocumentType:
            assert slot_for_document_type(document_type) in DELIVERABLE_SLOTS

    def test_tos_variants_share_one_slot(self):
        assert slot_for_document_type(DocumentType.TOS) == "tos"
        assert slot_for_document_type(DocumentType.TOS_MIDTERM) == "tos"
        assert slot_for_document_type(DocumentType.TOS_FINAL) == "tos"


class TestOverallStatus:
    def _deliverable(self, **slots):
        values = {slot: DeliverableStatus.APPROVED for slot in DELIVERABLE_SLOTS}
        values.update(slots)
        return TaskDeliverable(**values)

    def test_all_approved_is_completed(self):
        assert compute_overall_status(self._deliverable()) == "completed"

    def test_any_rejected_wins(self):
        deliverable = self._deliverable(
            syllabus=DeliverableStatus.REJECTED, tos=DeliverableStatus.PENDING
        )
        assert compute_overall_status(deliverable) == "rejected"

    def test_pending_or_submitted_slot_is_pending(self):
        assert (
            compute_overall_status(self._deliverable(tos=DeliverableStatus.PENDING))
            == "pending"
        )
        assert (
            compute_overall_status(
                self._deliverable(final_exam=DeliverableStatus.SUBMITTED)
            )
            == "pending"
        )


class TestApplyStatus:
    @pytest.mark.asyncio
    async def test_only_the_matching_slot_changes(self, db_session, make_faculty_load):
        make_faculty_load()
        service = DeliverableService(db_session)

        updated = await service.apply_status(
            "IT101", "BSIT-1A", DocumentType.TOS_MIDTERM, DeliverableStatus.APPROVED
        )
        db_session.commit()

        assert updated is True
        db_session.expire_all()
        deliverable = db_session.execute(select(TaskDeliverable)).scalar_one()
        assert deliverable.tos == DeliverableStatus.APPROVED
        assert deliverable.syllabus == DeliverableStatus.PENDING
        assert deliverable.midterm_exam == DeliverableStatus.PENDING

    @pytest.mark.asyncio
    async def test_missing_aggregate_is_skipped(self, db_session):
        service = DeliverableService(db_session)

        updated = await service.apply_status(
            "NOPE", "X", DocumentType.SYLLABUS, DeliverableStatus.APPROVED
        )

        assert updated is False

    @pytest.mark.asyncio
    async def test_submission_updates_every_listed_section(
        self, db_session, make_faculty_load, make_submission
    ):
        make_faculty_load(course_section="BSIT-1A")
        make_faculty_load(course_section="BSIT-1B")
        submission = make_submission(
            status=SubmissionStatus.REJECTED,
            course_sections=["BSIT-1A", "BSIT-1B", "BSIT-1C"],
        )

        updated_count = await DeliverableService(db_session).apply_submission_status(
            submission
        )

        # BSIT-1C has no aggregate
        assert updated_count == 2
        db_session.expire_all()
        slots = db_session.execute(select(TaskDeliverable.syllabus)).scalars().all()
        assert slots == [DeliverableStatus.REJECTED, DeliverableStatus.REJECTED]


class TestGetDeliverables:
    @pytest.mark.asyncio
    async def test_filters_on_computed_overall_status(
        self, db_session, make_faculty_load, make_submission
    ):
        make_faculty_load(course_section="BSIT-1A")
        make_faculty_load(course_section="BSIT-1B")
        submission = make_submission(
            status=SubmissionStatus.REJECTED, course_sections=["BSIT-1B"]
        )
        service = DeliverableService(db_session)
        await service.apply_submission_status(submission)

        rejected = await service.get_deliverables(overall_status="rejected")
        pending = await service.get_deliverables(overall_status="pending")

        assert [d.course_section for d in rejected] == ["BSIT-1B"]
        assert [d.course_section for d in pending] == ["BSIT-1A"]

    @pytest.mark.asyncio
    async def test_unknown_overall_status(self, db_session):
        with pytest.raises(ValueError, match="INVALID_OVERALL_STATUS"):
            await DeliverableService(db_session).get_deliverables(
                overall_status="done"
            )
