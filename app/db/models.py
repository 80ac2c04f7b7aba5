from typing import Any, Dict, List, Optional
from datetime import datetime
import uuid
from sqlalchemy import (
    String,
    Integer,
    BigInteger,
    Text,
    ForeignKey,
    Enum,
    Index,
    JSON,
    Uuid,
    UniqueConstraint,
    CheckConstraint,
    DateTime,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    declared_attr,
    mapped_column,
    relationship,
)
import enum

from app.utils.datetime_utils import naive_utc_now


class Base(DeclarativeBase):
    pass


# Sentinel recipient id used for broadcast notifications
BROADCAST_RECIPIENT = "all"


# Enums
class UserType(enum.Enum):
    ADMIN = "admin"
    FACULTY = "faculty"


class SubmissionStatus(enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    REJECTED = "rejected"
    LATE = "late"


class DocumentType(enum.Enum):
    SYLLABUS = "syllabus"
    TOS = "tos"
    TOS_MIDTERM = "tos-midterm"
    TOS_FINAL = "tos-final"
    MIDTERM_EXAM = "midterm-exam"
    FINAL_EXAM = "final-exam"
    INSTRUCTIONAL_MATERIALS = "instructional-materials"


class TosType(enum.Enum):
    MIDTERM = "midterm"
    FINAL = "final"


class DeliverableStatus(enum.Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class NotificationAudience(enum.Enum):
    ADMIN = "admin"
    FACULTY = "faculty"


class AdminReviewStatus(enum.Enum):
    PENDING = "pending"
    REVIEWED = "reviewed"
    ARCHIVED = "archived"


class SyncTarget(enum.Enum):
    DELIVERABLES = "deliverables"
    FACULTY_NOTIFICATION = "faculty_notification"
    ADMIN_NOTIFICATION = "admin_notification"
    ARCHIVE = "archive"
    HISTORY = "history"


# Base model with common audit fields
class AuditMixin:
    """Mixin for common audit fields"""

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=naive_utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=naive_utc_now, onupdate=naive_utc_now
    )


# Models
class FacultyLoad(Base, AuditMixin):
    __tablename__ = "faculty_loads"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    faculty_id: Mapped[str] = mapped_column(String(64), nullable=False)
    faculty_name: Mapped[str] = mapped_column(String(255), nullable=False)
    subject_code: Mapped[str] = mapped_column(String(50), nullable=False)
    subject_title: Mapped[str] = mapped_column(String(255), nullable=False)
    course_section: Mapped[str] = mapped_column(String(100), nullable=False)
    semester: Mapped[str] = mapped_column(String(50), nullable=False)
    school_year: Mapped[str] = mapped_column(String(20), nullable=False)

    # Relationships
    task_deliverable: Mapped[Optional["TaskDeliverable"]] = relationship(
        back_populates="faculty_load",
        cascade="all, delete-orphan",
        passive_deletes=True,
        uselist=False,
    )

    # Constraints
    __table_args__ = (
        UniqueConstraint(
            "faculty_id",
            "subject_code",
            "course_section",
            "semester",
            "school_year",
            name="uq_faculty_loads_assignment",
        ),
        Index("idx_faculty_loads_faculty_id", "faculty_id"),
        Index("idx_faculty_loads_subject_section", "subject_code", "course_section"),
    )


class TaskDeliverable(Base, AuditMixin):
    __tablename__ = "task_deliverables"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    faculty_load_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("faculty_loads.id", ondelete="CASCADE"),
        nullable=False,
    )
    faculty_id: Mapped[str] = mapped_column(String(64), nullable=False)
    faculty_name: Mapped[str] = mapped_column(String(255), nullable=False)
    subject_code: Mapped[str] = mapped_column(String(50), nullable=False)
    subject_title: Mapped[str] = mapped_column(String(255), nullable=False)
    course_section: Mapped[str] = mapped_column(String(100), nullable=False)
    semester: Mapped[str] = mapped_column(String(50), nullable=False)
    school_year: Mapped[str] = mapped_column(String(20), nullable=False)
    syllabus: Mapped[DeliverableStatus] = mapped_column(
        Enum(DeliverableStatus), default=DeliverableStatus.PENDING, nullable=False
    )
    tos: Mapped[DeliverableStatus] = mapped_column(
        Enum(DeliverableStatus), default=DeliverableStatus.PENDING, nullable=False
    )
    midterm_exam: Mapped[DeliverableStatus] = mapped_column(
        Enum(DeliverableStatus), default=DeliverableStatus.PENDING, nullable=False
    )
    final_exam: Mapped[DeliverableStatus] = mapped_column(
        Enum(DeliverableStatus), default=DeliverableStatus.PENDING, nullable=False
    )
    instructional_materials: Mapped[DeliverableStatus] = mapped_column(
        Enum(DeliverableStatus), default=DeliverableStatus.PENDING, nullable=False
    )

    # Relationships
    faculty_load: Mapped["FacultyLoad"] = relationship(
        back_populates="task_deliverable"
    )

    # Constraints
    __table_args__ = (
        UniqueConstraint(
            "subject_code", "course_section", name="uq_task_deliverables_subj_sect"
        ),
        UniqueConstraint("faculty_load_id", name="uq_task_deliverables_load"),
        Index("idx_task_deliverables_faculty_id", "faculty_id"),
    )


class Submission(Base, AuditMixin):
    __tablename__ = "submissions"

    file_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    faculty_id: Mapped[str] = mapped_column(String(64), nullable=False)
    faculty_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    document_type: Mapped[DocumentType] = mapped_column(
        Enum(DocumentType), nullable=False
    )
    tos_type: Mapped[Optional[TosType]] = mapped_column(Enum(TosType))
    status: Mapped[SubmissionStatus] = mapped_column(
        Enum(SubmissionStatus), default=SubmissionStatus.PENDING, nullable=False
    )
    subject_code: Mapped[str] = mapped_column(String(50), nullable=False)
    subject_title: Mapped[str] = mapped_column(String(255), nullable=False)
    course: Mapped[str] = mapped_column(String(255), nullable=False)
    course_sections: Mapped[List[str]] = mapped_column(JSON, nullable=False)
    semester: Mapped[str] = mapped_column(String(50), nullable=False)
    school_year: Mapped[str] = mapped_column(String(20), nullable=False)
    file_path: Mapped[str] = mapped_column(String(500), nullable=False)
    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime, default=naive_utc_now, nullable=False
    )

    # Relationships
    status_changes: Mapped[List["SubmissionStatusChange"]] = relationship(
        back_populates="submission",
        cascade="all, delete-orphan",
        order_by="SubmissionStatusChange.created_at",
    )

    # Constraints
    __table_args__ = (
        CheckConstraint("file_size >= 0", name="ck_submissions_file_size"),
        Index("idx_submissions_faculty_id", "faculty_id"),
        Index("idx_submissions_status", "status"),
        Index("idx_submissions_subject_code", "subject_code"),
        Index("idx_submissions_uploaded_at", "uploaded_at"),
    )


class SubmissionStatusChange(Base, AuditMixin):
    __tablename__ = "submission_status_changes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    file_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("submissions.file_id", ondelete="CASCADE"),
        nullable=False,
    )
    actor_id: Mapped[Optional[str]] = mapped_column(String(64))
    actor_name: Mapped[Optional[str]] = mapped_column(String(255))
    old_status: Mapped[SubmissionStatus] = mapped_column(
        Enum(SubmissionStatus), nullable=False
    )
    new_status: Mapped[SubmissionStatus] = mapped_column(
        Enum(SubmissionStatus), nullable=False
    )

    # Relationships
    submission: Mapped["Submission"] = relationship(back_populates="status_changes")

    # Constraints
    __table_args__ = (
        CheckConstraint(
            "old_status != new_status", name="ck_status_changes_status_change"
        ),
        Index("idx_status_changes_file_id", "file_id"),
        Index("idx_status_changes_created_at", "created_at"),
    )


class Notification(Base, AuditMixin):
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    audience: Mapped[NotificationAudience] = mapped_column(
        Enum(NotificationAudience), nullable=False
    )
    # Either a user id or BROADCAST_RECIPIENT
    recipient_id: Mapped[str] = mapped_column(String(64), nullable=False)
    sender_id: Mapped[Optional[str]] = mapped_column(String(64))
    sender_name: Mapped[Optional[str]] = mapped_column(String(255))
    file_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    file_name: Mapped[Optional[str]] = mapped_column(String(255))
    document_type: Mapped[Optional[DocumentType]] = mapped_column(Enum(DocumentType))
    tos_type: Mapped[Optional[TosType]] = mapped_column(Enum(TosType))
    subject_code: Mapped[Optional[str]] = mapped_column(String(50))
    subject_title: Mapped[Optional[str]] = mapped_column(String(255))
    course: Mapped[Optional[str]] = mapped_column(String(255))
    semester: Mapped[Optional[str]] = mapped_column(String(50))
    school_year: Mapped[Optional[str]] = mapped_column(String(20))
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    previous_status: Mapped[Optional[SubmissionStatus]] = mapped_column(
        Enum(SubmissionStatus)
    )
    new_status: Mapped[Optional[SubmissionStatus]] = mapped_column(
        Enum(SubmissionStatus)
    )
    # Only admin notifications carry a review annotation
    review_status: Mapped[Optional[AdminReviewStatus]] = mapped_column(
        Enum(AdminReviewStatus)
    )

    # Relationships
    read_markers: Mapped[List["NotificationReadMarker"]] = relationship(
        back_populates="notification", cascade="all, delete-orphan"
    )

    # Constraints
    __table_args__ = (
        Index(
            "idx_notifications_audience_recipient",
            "audience",
            "recipient_id",
            "created_at",
        ),
        Index("idx_notifications_file_id", "file_id"),
    )


class NotificationReadMarker(Base):
    __tablename__ = "notification_read_markers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    notification_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("notifications.id", ondelete="CASCADE"),
        nullable=False,
    )
    reader_id: Mapped[str] = mapped_column(String(64), nullable=False)
    read_at: Mapped[datetime] = mapped_column(
        DateTime, default=naive_utc_now, nullable=False
    )

    # Relationships
    notification: Mapped["Notification"] = relationship(back_populates="read_markers")

    # Constraints
    __table_args__ = (
        UniqueConstraint(
            "notification_id", "reader_id", name="uq_read_markers_notif_reader"
        ),
        Index("idx_read_markers_reader_id", "reader_id"),
    )


class MirrorSnapshotMixin:
    """Denormalized submission snapshot shared by the archive and history stores.

    Faculty identity is intentionally not copied; only the display name is kept.
    """

    @declared_attr
    def file_id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            Uuid,
            ForeignKey("submissions.file_id", ondelete="CASCADE"),
            nullable=False,
        )

    faculty_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    document_type: Mapped[DocumentType] = mapped_column(
        Enum(DocumentType), nullable=False
    )
    tos_type: Mapped[Optional[TosType]] = mapped_column(Enum(TosType))
    status: Mapped[SubmissionStatus] = mapped_column(
        Enum(SubmissionStatus), nullable=False
    )
    subject_code: Mapped[str] = mapped_column(String(50), nullable=False)
    subject_title: Mapped[str] = mapped_column(String(255), nullable=False)
    course: Mapped[str] = mapped_column(String(255), nullable=False)
    course_sections: Mapped[List[str]] = mapped_column(JSON, nullable=False)
    semester: Mapped[str] = mapped_column(String(50), nullable=False)
    school_year: Mapped[str] = mapped_column(String(20), nullable=False)
    file_path: Mapped[str] = mapped_column(String(500), nullable=False)
    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    archived_at: Mapped[datetime] = mapped_column(
        DateTime, default=naive_utc_now, nullable=False
    )
    # Soft delete keeps the row so the file_id stays claimed
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)


class ArchiveEntry(Base, MirrorSnapshotMixin, AuditMixin):
    __tablename__ = "archive_entries"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Constraints
    __table_args__ = (
        UniqueConstraint("file_id", name="uq_archive_entries_file_id"),
        Index("idx_archive_entries_archived_at", "archived_at"),
        Index("idx_archive_entries_subject_code", "subject_code"),
    )


class HistoryEntry(Base, MirrorSnapshotMixin, AuditMixin):
    __tablename__ = "history_entries"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Constraints
    __table_args__ = (
        UniqueConstraint("file_id", name="uq_history_entries_file_id"),
        Index("idx_history_entries_archived_at", "archived_at"),
        Index("idx_history_entries_subject_code", "subject_code"),
    )


class SyncFailure(Base, AuditMixin):
    __tablename__ = "sync_failures"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    file_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    target: Mapped[SyncTarget] = mapped_column(Enum(SyncTarget), nullable=False)
    error_message: Mapped[str] = mapped_column(Text, nullable=False)
    context: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    attempts: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    # Earliest time the reconciler may retry; None means due now
    next_attempt_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    # Set once attempts reach the cap; the row is kept for inspection
    dead_lettered_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Constraints
    __table_args__ = (
        CheckConstraint("attempts >= 1", name="ck_sync_failures_attempts"),
        Index(
            "idx_sync_failures_due",
            "resolved_at",
            "dead_lettered_at",
            "next_attempt_at",
        ),
        Index("idx_sync_failures_file_target", "file_id", "target"),
    )
