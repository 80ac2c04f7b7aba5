from typing import List, Optional
import uuid

from fastapi import Depends
from sqlalchemy import and_, desc, func, select
from sqlalchemy.orm import Session

from app.db.models import (
    BROADCAST_RECIPIENT,
    AdminReviewStatus,
    Notification,
    NotificationAudience,
    NotificationReadMarker,
    Submission,
    SubmissionStatus,
)
from app.db.session import get_sync_session
from app.db.upsert import insert_if_absent
from app.schemas.notification_schemas import NotificationItem
from app.utils.datetime_utils import naive_utc_now, to_iso
from app.utils.logging import get_logger

from .messages import build_admin_upload_message, build_faculty_status_message

logger = get_logger()


class NotificationService:
    """
    Emits and reads admin/faculty notifications.

    A notification is a single row addressed either to one recipient or to
    every member of its audience (recipient_id == "all"). Read state lives in
    NotificationReadMarker, one row per (notification, reader), so a broadcast
    read by one admin stays unread for the others.
    """

    def __init__(self, db_session: Session):
        self.db = db_session

    # ---- Emission ----

    async def notify_admins(
        self, submission: Submission, sender_id: Optional[str] = None
    ) -> Notification:
        """Create exactly one admin broadcast for a new submission"""
        try:
            content = build_admin_upload_message(submission)
            notification = Notification(
                audience=NotificationAudience.ADMIN,
                recipient_id=BROADCAST_RECIPIENT,
                sender_id=sender_id or submission.faculty_id,
                sender_name=submission.faculty_name,
                review_status=AdminReviewStatus.PENDING,
                title=content["title"],
                message=content["message"],
                new_status=submission.status,
                **self._submission_fields(submission),
            )
            self.db.add(notification)
            self.db.commit()

            logger.info(
                "Admin broadcast notification created",
                notification_id=str(notification.id),
                file_id=str(submission.file_id),
            )
            return notification

        except Exception as e:
            self.db.rollback()
            logger.error(
                "Failed to create admin notification",
                file_id=str(submission.file_id),
                error=str(e),
            )
            raise RuntimeError("ADMIN_NOTIFICATION_CREATION_FAILED") from e

    async def notify_faculty(
        self,
        submission: Submission,
        previous_status: SubmissionStatus,
        new_status: SubmissionStatus,
        sender_id: Optional[str] = None,
        sender_name: Optional[str] = None,
    ) -> Notification:
        """Create exactly one notification for the faculty that owns the submission"""
        if previous_status == new_status:
            raise ValueError("STATUS_NOT_CHANGED")

        try:
            content = build_faculty_status_message(
                submission, previous_status, new_status
            )
            notification = Notification(
                audience=NotificationAudience.FACULTY,
                recipient_id=submission.faculty_id,
                sender_id=sender_id,
                sender_name=sender_name,
                title=content["title"],
                message=content["message"],
                previous_status=previous_status,
                new_status=new_status,
                **self._submission_fields(submission),
            )
            self.db.add(notification)
            self.db.commit()

            logger.info(
                "Faculty notification created",
                notification_id=str(notification.id),
                file_id=str(submission.file_id),
                recipient_id=submission.faculty_id,
                previous_status=previous_status.value,
                new_status=new_status.value,
            )
            return notification

        except Exception as e:
            self.db.rollback()
            logger.error(
                "Failed to create faculty notification",
                file_id=str(submission.file_id),
                error=str(e),
            )
            raise RuntimeError("FACULTY_NOTIFICATION_CREATION_FAILED") from e

    # ---- Reading ----

    async def get_notifications(
        self,
        audience: NotificationAudience,
        reader_id: str,
        limit: int = 50,
        offset: int = 0,
        unread_only: bool = False,
    ) -> List[NotificationItem]:
        """
        List notifications visible to a reader, newest first.

        Args:
            audience: Which inbox to read
            reader_id: Concrete user id; "all" is not a reader
            limit: Maximum number of notifications to return
            offset: Offset for pagination
            unread_only: If True, only return rows without a read marker

        Returns:
            Notification items with per-reader read state
        """
        self._validate_reader(reader_id)

        try:
            query = (
                select(Notification, NotificationReadMarker.read_at)
                .outerjoin(
                    NotificationReadMarker,
                    self._marker_join_condition(reader_id),
                )
                .where(self._visible_to(audience, reader_id))
                .order_by(desc(Notification.created_at), desc(Notification.id))
                .limit(limit)
                .offset(offset)
            )
            if unread_only:
                query = query.where(NotificationReadMarker.id.is_(None))

            rows = self.db.execute(query).all()
            items = [
                self._transform_notification(notification, read_at)
                for notification, read_at in rows
            ]

            logger.info(
                "Retrieved notifications",
                audience=audience.value,
                reader_id=reader_id,
                count=len(items),
            )
            return items

        except Exception as e:
            logger.error(
                "Failed to get notifications",
                audience=audience.value,
                reader_id=reader_id,
                error=str(e),
            )
            raise RuntimeError("NOTIFICATIONS_RETRIEVAL_FAILED") from e

    async def get_unread_count(
        self, audience: NotificationAudience, reader_id: str
    ) -> int:
        """Count visible rows the reader has no marker for"""
        self._validate_reader(reader_id)

        try:
            result = self.db.execute(
                select(func.count(Notification.id))
                .outerjoin(
                    NotificationReadMarker,
                    self._marker_join_condition(reader_id),
                )
                .where(
                    self._visible_to(audience, reader_id),
                    NotificationReadMarker.id.is_(None),
                )
            )
            return result.scalar() or 0

        except Exception as e:
            logger.error(
                "Failed to get unread count",
                audience=audience.value,
                reader_id=reader_id,
                error=str(e),
            )
            raise RuntimeError("UNREAD_COUNT_RETRIEVAL_FAILED") from e

    # ---- Read state ----

    async def mark_as_read(
        self,
        audience: NotificationAudience,
        reader_id: str,
        notification_id: str,
    ) -> bool:
        """
        Record that a reader has read one notification.

        Returns:
            True if a new marker was written, False if it was already read
        """
        self._validate_reader(reader_id)
        notification_uuid = self._parse_notification_id(notification_id)

        visible = self.db.execute(
            select(Notification.id).where(
                Notification.id == notification_uuid,
                self._visible_to(audience, reader_id),
            )
        ).scalar_one_or_none()
        if visible is None:
            raise ValueError("NOTIFICATION_NOT_FOUND")

        try:
            inserted = insert_if_absent(
                self.db,
                NotificationReadMarker,
                {
                    "id": uuid.uuid4(),
                    "notification_id": notification_uuid,
                    "reader_id": reader_id,
                    "read_at": naive_utc_now(),
                },
                ["notification_id", "reader_id"],
            )
            self.db.commit()

            if inserted:
                logger.info(
                    "Marked notification as read",
                    notification_id=notification_id,
                    reader_id=reader_id,
                )
            return inserted

        except Exception as e:
            self.db.rollback()
            logger.error(
                "Failed to mark notification as read",
                notification_id=notification_id,
                reader_id=reader_id,
                error=str(e),
            )
            raise RuntimeError("MARK_AS_READ_FAILED") from e

    async def mark_all_as_read(
        self, audience: NotificationAudience, reader_id: str
    ) -> int:
        """Write markers for every visible unread row; returns how many were written"""
        self._validate_reader(reader_id)

        try:
            unread_ids = (
                self.db.execute(
                    select(Notification.id)
                    .outerjoin(
                        NotificationReadMarker,
                        self._marker_join_condition(reader_id),
                    )
                    .where(
                        self._visible_to(audience, reader_id),
                        NotificationReadMarker.id.is_(None),
                    )
                )
                .scalars()
                .all()
            )

            read_at = naive_utc_now()
            marked_count = 0
            for notification_id in unread_ids:
                if insert_if_absent(
                    self.db,
                    NotificationReadMarker,
                    {
                        "id": uuid.uuid4(),
                        "notification_id": notification_id,
                        "reader_id": reader_id,
                        "read_at": read_at,
                    },
                    ["notification_id", "reader_id"],
                ):
                    marked_count += 1

            self.db.commit()

            logger.info(
                "Marked all notifications as read",
                audience=audience.value,
                reader_id=reader_id,
                marked_count=marked_count,
            )
            return marked_count

        except Exception as e:
            self.db.rollback()
            logger.error(
                "Failed to mark all notifications as read",
                audience=audience.value,
                reader_id=reader_id,
                error=str(e),
            )
            raise RuntimeError("MARK_ALL_AS_READ_FAILED") from e

    async def update_review_status(
        self, notification_id: str, review_status: str, reader_id: str
    ) -> NotificationItem:
        """Annotate an admin notification with pending, reviewed or archived"""
        try:
            new_review_status = AdminReviewStatus(review_status)
        except ValueError:
            raise ValueError("INVALID_REVIEW_STATUS")

        notification_uuid = self._parse_notification_id(notification_id)
        notification = self.db.execute(
            select(Notification).where(
                Notification.id == notification_uuid,
                Notification.audience == NotificationAudience.ADMIN,
            )
        ).scalar_one_or_none()
        if notification is None:
            raise ValueError("NOTIFICATION_NOT_FOUND")

        notification.review_status = new_review_status
        self.db.commit()

        logger.info(
            "Notification review status updated",
            notification_id=notification_id,
            review_status=new_review_status.value,
        )

        read_at = self.db.execute(
            select(NotificationReadMarker.read_at).where(
                self._marker_join_condition(reader_id),
                NotificationReadMarker.notification_id == notification_uuid,
            )
        ).scalar_one_or_none()
        return self._transform_notification(notification, read_at)

    # ---- Helpers ----

    @staticmethod
    def _validate_reader(reader_id: str):
        if not reader_id or reader_id == BROADCAST_RECIPIENT:
            raise ValueError("INVALID_READER")

    @staticmethod
    def _parse_notification_id(notification_id: str) -> uuid.UUID:
        try:
            return uuid.UUID(str(notification_id))
        except ValueError:
            raise ValueError("NOTIFICATION_NOT_FOUND")

    @staticmethod
    def _visible_to(audience: NotificationAudience, reader_id: str):
        return and_(
            Notification.audience == audience,
            Notification.recipient_id.in_([reader_id, BROADCAST_RECIPIENT]),
        )

    @staticmethod
    def _marker_join_condition(reader_id: str):
        return and_(
            NotificationReadMarker.notification_id == Notification.id,
            NotificationReadMarker.reader_id == reader_id,
        )

    @staticmethod
    def _submission_fields(submission: Submission) -> dict:
        return {
            "file_id": submission.file_id,
            "file_name": submission.file_name,
            "document_type": submission.document_type,
            "tos_type": submission.tos_type,
            "subject_code": submission.subject_code,
            "subject_title": submission.subject_title,
            "course": submission.course,
            "semester": submission.semester,
            "school_year": submission.school_year,
        }

    @staticmethod
    def _transform_notification(
        notification: Notification, read_at=None
    ) -> NotificationItem:
        return NotificationItem(
            notification_id=str(notification.id),
            audience=notification.audience.value,
            recipient_id=notification.recipient_id,
            sender_id=notification.sender_id,
            sender_name=notification.sender_name,
            file_id=str(notification.file_id) if notification.file_id else None,
            file_name=notification.file_name,
            document_type=(
                notification.document_type.value
                if notification.document_type
                else None
            ),
            tos_type=notification.tos_type.value if notification.tos_type else None,
            subject_code=notification.subject_code,
            subject_title=notification.subject_title,
            course=notification.course,
            semester=notification.semester,
            school_year=notification.school_year,
            title=notification.title,
            message=notification.message,
            previous_status=(
                notification.previous_status.value
                if notification.previous_status
                else None
            ),
            new_status=(
                notification.new_status.value if notification.new_status else None
            ),
            review_status=(
                notification.review_status.value
                if notification.review_status
                else None
            ),
            is_read=read_at is not None,
            read_at=to_iso(read_at),
            created_at=to_iso(notification.created_at),
        )


def get_notification_service(
    db_session: Session = Depends(get_sync_session),
) -> NotificationService:
    """Dependency to provide NotificationService instance"""
    return NotificationService(db_session)
