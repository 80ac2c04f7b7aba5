"""
Tests for notification emission, visibility and per-reader read state.
"""

import uuid
from datetime import timedelta

import pytest

from app.db.models import (
    AdminReviewStatus,
    NotificationAudience,
    SubmissionStatus,
)
from app.services.notifications import NotificationService

from .conftest import ADMIN_ID, FACULTY_ID, OTHER_ADMIN_ID, OTHER_FACULTY_ID

ADMIN = NotificationAudience.ADMIN
FACULTY = NotificationAudience.FACULTY


class TestAdminBroadcast:
    @pytest.mark.asyncio
    async def test_upload_broadcast_is_visible_to_every_admin(
        self, db_session, make_submission
    ):
        submission = make_submission()
        service = NotificationService(db_session)

        notification = await service.notify_admins(submission)

        assert notification.recipient_id == "all"
        assert notification.review_status == AdminReviewStatus.PENDING
        assert notification.title == "New Syllabus Submission"
        for admin_id in (ADMIN_ID, OTHER_ADMIN_ID):
            items = await service.get_notifications(ADMIN, admin_id)
            assert [i.notification_id for i in items] == [str(notification.id)]
            assert items[0].is_read is False

    @pytest.mark.asyncio
    async def test_read_state_is_per_admin(self, db_session, make_submission):
        service = NotificationService(db_session)
        notification = await service.notify_admins(make_submission())

        newly_marked = await service.mark_as_read(
            ADMIN, ADMIN_ID, str(notification.id)
        )

        assert newly_marked is True
        assert await service.get_unread_count(ADMIN, ADMIN_ID) == 0
        assert await service.get_unread_count(ADMIN, OTHER_ADMIN_ID) == 1

        first_view = await service.get_notifications(ADMIN, ADMIN_ID)
        second_view = await service.get_notifications(ADMIN, OTHER_ADMIN_ID)
        assert first_view[0].is_read is True
        assert first_view[0].read_at is not None
        assert second_view[0].is_read is False

    @pytest.mark.asyncio
    async def test_marking_twice_writes_one_marker(self, db_session, make_submission):
        service = NotificationService(db_session)
        notification = await service.notify_admins(make_submission())

        assert await service.mark_as_read(ADMIN, ADMIN_ID, str(notification.id))
        assert not await service.mark_as_read(ADMIN, ADMIN_ID, str(notification.id))

    @pytest.mark.asyncio
    async def test_mark_all_as_read(self, db_session, make_submission):
        service = NotificationService(db_session)
        await service.notify_admins(make_submission())
        await service.notify_admins(make_submission(file_name="tos.pdf"))

        assert await service.mark_all_as_read(ADMIN, OTHER_ADMIN_ID) == 2
        assert await service.mark_all_as_read(ADMIN, OTHER_ADMIN_ID) == 0
        assert await service.get_unread_count(ADMIN, OTHER_ADMIN_ID) == 0
        assert await service.get_unread_count(ADMIN, ADMIN_ID) == 2

    @pytest.mark.asyncio
    async def test_unread_only_listing(self, db_session, make_submission):
        service = NotificationService(db_session)
        first = await service.notify_admins(make_submission())
        await service.notify_admins(make_submission(file_name="exam.pdf"))
        await service.mark_as_read(ADMIN, ADMIN_ID, str(first.id))

        unread = await service.get_notifications(ADMIN, ADMIN_ID, unread_only=True)

        assert len(unread) == 1
        assert unread[0].notification_id != str(first.id)

    @pytest.mark.asyncio
    async def test_broadcast_recipient_cannot_read(self, db_session, make_submission):
        service = NotificationService(db_session)
        notification = await service.notify_admins(make_submission())

        with pytest.raises(ValueError, match="INVALID_READER"):
            await service.mark_as_read(ADMIN, "all", str(notification.id))
        with pytest.raises(ValueError, match="INVALID_READER"):
            await service.get_notifications(ADMIN, "all")

    @pytest.mark.asyncio
    async def test_review_status_update(self, db_session, make_submission):
        service = NotificationService(db_session)
        notification = await service.notify_admins(make_submission())

        item = await service.update_review_status(
            str(notification.id), "reviewed", reader_id=ADMIN_ID
        )

        assert item.review_status == "reviewed"
        with pytest.raises(ValueError, match="INVALID_REVIEW_STATUS"):
            await service.update_review_status(
                str(notification.id), "done", reader_id=ADMIN_ID
            )
        with pytest.raises(ValueError, match="NOTIFICATION_NOT_FOUND"):
            await service.update_review_status(
                str(uuid.uuid4()), "reviewed", reader_id=ADMIN_ID
            )


class TestFacultyNotifications:
    @pytest.mark.asyncio
    async def test_only_the_owner_sees_a_status_change(
        self, db_session, make_submission
    ):
        service = NotificationService(db_session)
        submission = make_submission()

        notification = await service.notify_faculty(
            submission,
            SubmissionStatus.PENDING,
            SubmissionStatus.COMPLETED,
            sender_id=ADMIN_ID,
        )

        owner_view = await service.get_notifications(FACULTY, FACULTY_ID)
        assert [i.notification_id for i in owner_view] == [str(notification.id)]
        assert owner_view[0].previous_status == "pending"
        assert owner_view[0].new_status == "completed"
        assert await service.get_notifications(FACULTY, OTHER_FACULTY_ID) == []
        # Faculty notifications never show up in an admin inbox
        assert await service.get_notifications(ADMIN, ADMIN_ID) == []

    @pytest.mark.asyncio
    async def test_other_faculty_cannot_mark_it_read(
        self, db_session, make_submission
    ):
        service = NotificationService(db_session)
        notification = await service.notify_faculty(
            make_submission(), SubmissionStatus.PENDING, SubmissionStatus.REJECTED
        )

        with pytest.raises(ValueError, match="NOTIFICATION_NOT_FOUND"):
            await service.mark_as_read(FACULTY, OTHER_FACULTY_ID, str(notification.id))

    @pytest.mark.asyncio
    async def test_unchanged_status_is_refused(self, db_session, make_submission):
        service = NotificationService(db_session)

        with pytest.raises(ValueError, match="STATUS_NOT_CHANGED"):
            await service.notify_faculty(
                make_submission(), SubmissionStatus.PENDING, SubmissionStatus.PENDING
            )

    @pytest.mark.asyncio
    async def test_newest_first(self, db_session, make_submission):
        service = NotificationService(db_session)
        submission = make_submission()
        first = await service.notify_faculty(
            submission, SubmissionStatus.PENDING, SubmissionStatus.REJECTED
        )
        second = await service.notify_faculty(
            submission, SubmissionStatus.REJECTED, SubmissionStatus.COMPLETED
        )
        first.created_at = first.created_at - timedelta(minutes=1)
        db_session.commit()

        items = await service.get_notifications(FACULTY, FACULTY_ID)

        assert [i.notification_id for i in items] == [str(second.id), str(first.id)]
