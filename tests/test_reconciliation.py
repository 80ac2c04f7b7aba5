"""
Tests for the reconciler: ledger replay, mirror healing and the cron task.
"""

import uuid
from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import func, select

from app.config.settings import settings
from app.db.models import (
    ArchiveEntry,
    DeliverableStatus,
    HistoryEntry,
    Notification,
    NotificationAudience,
    SubmissionStatus,
    SyncFailure,
    SyncTarget,
    TaskDeliverable,
)
from app.services.archive import ArchivalSyncService, ArchiveQueryService
from app.services.notifications import NotificationService
from app.services.reconciliation_service import ReconciliationService
from app.services.submission_service import SubmissionService
from app.services.sync_ledger import record_sync_failure
from app.tasks.cron.mirror_reconciler import mirror_reconciler_task


def _count(db_session, model):
    return db_session.execute(select(func.count()).select_from(model)).scalar_one()


class TestMirrorHealing:
    @pytest.mark.asyncio
    async def test_missing_mirrors_are_created(self, db_session, make_submission):
        make_submission(status=SubmissionStatus.COMPLETED)
        make_submission(status=SubmissionStatus.COMPLETED, file_name="tos.pdf")
        make_submission(status=SubmissionStatus.REJECTED, file_name="exam.pdf")

        summary = await ReconciliationService(db_session).run()

        assert summary.archive_healed == 2
        assert summary.history_healed == 2
        assert _count(db_session, ArchiveEntry) == 2
        assert _count(db_session, HistoryEntry) == 2

    @pytest.mark.asyncio
    async def test_second_run_changes_nothing(self, db_session, make_submission):
        make_submission(status=SubmissionStatus.COMPLETED)
        service = ReconciliationService(db_session)

        await service.run()
        summary = await service.run()

        assert summary.archive_healed == 0
        assert summary.history_healed == 0
        assert _count(db_session, ArchiveEntry) == 1

    @pytest.mark.asyncio
    async def test_soft_deleted_entry_is_not_recreated(
        self, db_session, make_submission
    ):
        submission = make_submission(status=SubmissionStatus.COMPLETED)
        await ArchivalSyncService(db_session).sync_to_archive(submission)
        await ArchiveQueryService(db_session).soft_delete(
            ArchiveEntry, str(submission.file_id)
        )

        summary = await ReconciliationService(db_session).run()

        assert summary.archive_healed == 0
        assert summary.history_healed == 1
        assert _count(db_session, ArchiveEntry) == 1
        listing = await ArchiveQueryService(db_session).list_entries(ArchiveEntry)
        assert listing.total == 0


class TestLedgerReplay:
    @pytest.mark.asyncio
    async def test_deliverable_failure_is_replayed(
        self, db_session, make_faculty_load, make_submission
    ):
        make_faculty_load()
        submission = make_submission(status=SubmissionStatus.REJECTED)
        record_sync_failure(
            db_session, submission.file_id, SyncTarget.DELIVERABLES, "timeout"
        )

        summary = await ReconciliationService(db_session).run()

        assert summary.replayed == 1
        db_session.expire_all()
        deliverable = db_session.execute(select(TaskDeliverable)).scalar_one()
        assert deliverable.syllabus == DeliverableStatus.REJECTED
        failure = db_session.execute(select(SyncFailure)).scalar_one()
        assert failure.resolved_at is not None

    @pytest.mark.asyncio
    async def test_faculty_notification_is_rebuilt_from_context(
        self, db_session, make_submission
    ):
        submission = make_submission(status=SubmissionStatus.COMPLETED)
        record_sync_failure(
            db_session,
            submission.file_id,
            SyncTarget.FACULTY_NOTIFICATION,
            "inbox unavailable",
            {"previous_status": "pending", "new_status": "completed"},
        )

        summary = await ReconciliationService(db_session).run()

        assert summary.replayed == 1
        notification = db_session.execute(select(Notification)).scalar_one()
        assert notification.audience == NotificationAudience.FACULTY
        assert notification.new_status == SubmissionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_archive_failure_for_reverted_submission_is_obsolete(
        self, db_session, make_submission
    ):
        submission = make_submission(status=SubmissionStatus.REJECTED)
        record_sync_failure(db_session, submission.file_id, SyncTarget.ARCHIVE, "x")

        summary = await ReconciliationService(db_session).run()

        assert summary.obsolete == 1
        assert _count(db_session, ArchiveEntry) == 0

    @pytest.mark.asyncio
    async def test_failure_for_unknown_submission_is_obsolete(self, db_session):
        record_sync_failure(db_session, uuid.uuid4(), SyncTarget.HISTORY, "x")

        summary = await ReconciliationService(db_session).run()

        assert summary.obsolete == 1
        assert await ReconciliationService(db_session).get_failures() == []

    @pytest.mark.asyncio
    async def test_replay_that_fails_again_stays_unresolved(
        self, db_session, make_submission
    ):
        submission = make_submission()
        record_sync_failure(
            db_session, submission.file_id, SyncTarget.ADMIN_NOTIFICATION, "first"
        )

        with patch(
            "app.services.notifications.notification_service.NotificationService.notify_admins",
            side_effect=RuntimeError("still down"),
        ):
            summary = await ReconciliationService(db_session).run()

        assert summary.still_failing == 1
        failures = await ReconciliationService(db_session).get_failures()
        assert len(failures) == 1
        assert failures[0].attempts == 2
        assert failures[0].error_message == "still down"



class TestPerEventLedgerRows:
    @pytest.mark.asyncio
    async def test_each_missed_status_change_is_notified(
        self, db_session, make_submission
    ):
        submission = make_submission()
        file_id = str(submission.file_id)
        service = SubmissionService(db_session)

        with patch.object(
            NotificationService,
            "notify_faculty",
            side_effect=RuntimeError("inbox unavailable"),
        ):
            await service.transition_status(file_id, "rejected")
            await service.transition_status(file_id, "completed")

        rows = (
            db_session.execute(
                select(SyncFailure).where(
                    SyncFailure.target == SyncTarget.FACULTY_NOTIFICATION
                )
            )
            .scalars()
            .all()
        )
        assert len(rows) == 2
        assert len({row.context["status_change_id"] for row in rows}) == 2

        summary = await ReconciliationService(db_session).run()

        assert summary.replayed == 2
        notifications = db_session.execute(
            select(Notification).where(
                Notification.audience == NotificationAudience.FACULTY
            )
        ).scalars()
        assert {(n.previous_status, n.new_status) for n in notifications} == {
            (SubmissionStatus.PENDING, SubmissionStatus.REJECTED),
            (SubmissionStatus.REJECTED, SubmissionStatus.COMPLETED),
        }

    @pytest.mark.asyncio
    async def test_state_derived_targets_share_one_row(
        self, db_session, make_submission
    ):
        submission = make_submission()
        record_sync_failure(db_session, submission.file_id, SyncTarget.ARCHIVE, "a")
        record_sync_failure(db_session, submission.file_id, SyncTarget.ARCHIVE, "b")

        failure = db_session.execute(select(SyncFailure)).scalar_one()
        assert failure.attempts == 2
        assert failure.error_message == "b"


class TestReplayScheduling:
    @pytest.mark.asyncio
    async def test_failing_row_does_not_starve_newer_rows(
        self, db_session, make_faculty_load, make_submission
    ):
        make_faculty_load()
        stuck = make_submission(file_name="stuck.pdf")
        rejected = make_submission(status=SubmissionStatus.REJECTED)
        stuck_row = record_sync_failure(
            db_session, stuck.file_id, SyncTarget.ADMIN_NOTIFICATION, "down"
        )
        stuck_row.created_at = stuck_row.created_at - timedelta(minutes=1)
        db_session.commit()
        record_sync_failure(
            db_session, rejected.file_id, SyncTarget.DELIVERABLES, "timeout"
        )
        service = ReconciliationService(db_session)

        with patch.object(
            NotificationService,
            "notify_admins",
            side_effect=RuntimeError("still down"),
        ):
            first = await service.run(batch_size=1)
            second = await service.run(batch_size=1)

        assert (first.still_failing, first.replayed) == (1, 0)
        assert (second.still_failing, second.replayed) == (0, 1)
        db_session.expire_all()
        deliverable = db_session.execute(select(TaskDeliverable)).scalar_one()
        assert deliverable.syllabus == DeliverableStatus.REJECTED

        failures = await service.get_failures()
        assert [f.target for f in failures] == ["admin_notification"]
        assert failures[0].attempts == 2
        assert failures[0].next_attempt_at is not None

    @pytest.mark.asyncio
    async def test_row_is_dead_lettered_at_the_attempt_cap(
        self, db_session, make_submission, monkeypatch
    ):
        monkeypatch.setattr(settings, "RECONCILIATION_MAX_ATTEMPTS", 3)
        monkeypatch.setattr(settings, "RECONCILIATION_RETRY_BACKOFF_SECONDS", 0)
        submission = make_submission()
        record_sync_failure(
            db_session, submission.file_id, SyncTarget.ADMIN_NOTIFICATION, "down"
        )
        service = ReconciliationService(db_session)

        with patch.object(
            NotificationService,
            "notify_admins",
            side_effect=RuntimeError("still down"),
        ):
            summaries = [await service.run() for _ in range(3)]

        assert [s.still_failing for s in summaries] == [1, 0, 0]
        assert [s.dead_lettered for s in summaries] == [0, 1, 0]
        failures = await service.get_failures()
        assert failures[0].attempts == 3
        assert failures[0].dead_lettered_at is not None

        # A fresh failure of the same step puts the row back in rotation
        revived = record_sync_failure(
            db_session, submission.file_id, SyncTarget.ADMIN_NOTIFICATION, "again"
        )
        assert revived.attempts == 1
        assert revived.dead_lettered_at is None

        summary = await service.run()
        assert summary.replayed == 1

    @pytest.mark.asyncio
    async def test_scan_resolves_ledger_rows_it_healed(
        self, db_session, make_submission
    ):
        submission = make_submission(status=SubmissionStatus.COMPLETED)
        stuck = record_sync_failure(
            db_session,
            submission.file_id,
            SyncTarget.FACULTY_NOTIFICATION,
            "inbox unavailable",
            {"previous_status": "pending", "new_status": "completed"},
        )
        stuck.created_at = stuck.created_at - timedelta(minutes=1)
        db_session.commit()
        record_sync_failure(db_session, submission.file_id, SyncTarget.ARCHIVE, "x")

        with patch.object(
            NotificationService,
            "notify_faculty",
            side_effect=RuntimeError("still down"),
        ):
            summary = await ReconciliationService(db_session).run(batch_size=1)

        assert summary.still_failing == 1
        assert summary.archive_healed == 1
        assert summary.ledger_cleared == 1
        archive_row = db_session.execute(
            select(SyncFailure).where(SyncFailure.target == SyncTarget.ARCHIVE)
        ).scalar_one()
        assert archive_row.resolved_at is not None

class TestMirrorReconcilerTask:
    def test_task_runs_reconciliation(self, db_session, make_submission):
        make_submission(status=SubmissionStatus.COMPLETED)

        def _session():
            yield db_session

        with patch("app.tasks.cron.mirror_reconciler.get_sync_session", _session):
            result = mirror_reconciler_task.run("test-request")

        assert result["success"] is True
        assert result["request_id"] == "test-request"
        assert result["summary"]["archive_healed"] == 1
        assert _count(db_session, ArchiveEntry) == 1
