from typing import List, Optional

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config.settings import settings
from app.db.models import (
    ArchiveEntry,
    HistoryEntry,
    Submission,
    SubmissionStatus,
    SyncFailure,
    SyncTarget,
)
from app.db.session import get_sync_session
from app.schemas.reconciliation_schemas import ReconciliationSummary, SyncFailureItem
from app.services.archive import ArchivalSyncService
from app.services.deliverable_service import DeliverableService
from app.services.notifications import NotificationService
from app.services.sync_ledger import (
    get_due_failures,
    get_unresolved_failures,
    record_sync_failure,
    resolve_mirrored_failures,
    resolve_sync_failure,
    schedule_retry,
    transform_sync_failure,
)
from app.utils.logging import get_logger

logger = get_logger()

REPLAYED = "replayed"
OBSOLETE = "obsolete"


class ReconciliationService:
    """
    Repairs what the synchronous fan-out could not finish.

    First the due rows of the sync ledger are replayed, with exponential
    backoff between attempts and a dead letter once the attempt cap is hit.
    Then completed submissions are scanned for a missing archive or history
    mirror, and mirror rows in the ledger that the scan made redundant are
    resolved. Both passes are idempotent, so overlapping runs are harmless.
    """

    def __init__(self, db_session: Session):
        self.db = db_session
        self.deliverable_service = DeliverableService(db_session)
        self.notification_service = NotificationService(db_session)
        self.archival_sync_service = ArchivalSyncService(db_session)

    async def run(self, batch_size: Optional[int] = None) -> ReconciliationSummary:
        batch_size = batch_size or settings.RECONCILIATION_BATCH_SIZE
        summary = ReconciliationSummary()

        await self._replay_ledger(summary, batch_size)
        await self._heal_missing_mirrors(summary, batch_size)

        logger.info("Reconciliation finished", **summary.model_dump())
        return summary

    async def get_failures(self, limit: int = 100) -> List[SyncFailureItem]:
        try:
            return [
                transform_sync_failure(f)
                for f in get_unresolved_failures(self.db, limit)
            ]
        except Exception as e:
            logger.error("Failed to retrieve sync failures", error=str(e))
            raise RuntimeError("SYNC_FAILURES_RETRIEVAL_FAILED") from e

    # ---- Ledger replay ----

    async def _replay_ledger(self, summary: ReconciliationSummary, batch_size: int):
        for failure in get_due_failures(self.db, batch_size):
            failure_id = failure.id
            file_id = failure.file_id
            target = failure.target

            try:
                outcome = await self._replay(failure)
            except Exception as e:
                self.db.rollback()
                failure = self.db.get(SyncFailure, failure_id)
                dead_lettered = schedule_retry(self.db, failure, str(e))
                self.db.commit()
                if dead_lettered:
                    summary.dead_lettered += 1
                    logger.error(
                        "Sync failure dead-lettered after repeated replays",
                        file_id=str(file_id),
                        target=target.value,
                        attempts=failure.attempts,
                        error=str(e),
                    )
                else:
                    summary.still_failing += 1
                    logger.warning(
                        "Sync failure replay failed again",
                        file_id=str(file_id),
                        target=target.value,
                        attempts=failure.attempts,
                        next_attempt_at=failure.next_attempt_at.isoformat(),
                        error=str(e),
                    )
                continue

            failure = self.db.get(SyncFailure, failure_id)
            resolve_sync_failure(self.db, failure)
            self.db.commit()

            if outcome == OBSOLETE:
                summary.obsolete += 1
            else:
                summary.replayed += 1
            logger.info(
                "Sync failure resolved",
                file_id=str(file_id),
                target=target.value,
                outcome=outcome,
            )

    async def _replay(self, failure: SyncFailure) -> str:
        submission = self.db.execute(
            select(Submission).where(Submission.file_id == failure.file_id)
        ).scalar_one_or_none()
        if submission is None:
            return OBSOLETE

        target = failure.target
        context = failure.context or {}

        if target == SyncTarget.DELIVERABLES:
            # Always re-derived from the current status
            await self.deliverable_service.apply_submission_status(submission)
            return REPLAYED

        if target in (SyncTarget.ARCHIVE, SyncTarget.HISTORY):
            if submission.status != SubmissionStatus.COMPLETED:
                return OBSOLETE
            if target == SyncTarget.ARCHIVE:
                await self.archival_sync_service.sync_to_archive(submission)
            else:
                await self.archival_sync_service.sync_to_history(submission)
            return REPLAYED

        if target == SyncTarget.FACULTY_NOTIFICATION:
            previous_status = context.get("previous_status")
            new_status = context.get("new_status")
            if not previous_status or not new_status or previous_status == new_status:
                return OBSOLETE
            await self.notification_service.notify_faculty(
                submission,
                SubmissionStatus(previous_status),
                SubmissionStatus(new_status),
                sender_id=context.get("actor_id"),
                sender_name=context.get("actor_name"),
            )
            return REPLAYED

        if target == SyncTarget.ADMIN_NOTIFICATION:
            await self.notification_service.notify_admins(submission)
            return REPLAYED

        return OBSOLETE

    # ---- Mirror scan ----

    async def _heal_missing_mirrors(
        self, summary: ReconciliationSummary, batch_size: int
    ):
        for model, target in (
            (ArchiveEntry, SyncTarget.ARCHIVE),
            (HistoryEntry, SyncTarget.HISTORY),
        ):
            missing = (
                self.db.execute(
                    select(Submission)
                    .where(
                        Submission.status == SubmissionStatus.COMPLETED,
                        ~select(model.id)
                        .where(model.file_id == Submission.file_id)
                        .exists(),
                    )
                    .order_by(Submission.updated_at)
                    .limit(batch_size)
                )
                .scalars()
                .all()
            )

            for submission in missing:
                file_id = submission.file_id
                try:
                    if target == SyncTarget.ARCHIVE:
                        inserted = await self.archival_sync_service.sync_to_archive(
                            submission
                        )
                    else:
                        inserted = await self.archival_sync_service.sync_to_history(
                            submission
                        )
                except Exception as e:
                    self.db.rollback()
                    summary.scan_failures += 1
                    logger.error(
                        "Mirror heal failed",
                        file_id=str(file_id),
                        target=target.value,
                        error=str(e),
                    )
                    record_sync_failure(self.db, file_id, target, str(e))
                    continue

                if not inserted:
                    continue
                if target == SyncTarget.ARCHIVE:
                    summary.archive_healed += 1
                else:
                    summary.history_healed += 1
                logger.info(
                    "Missing mirror healed", file_id=str(file_id), target=target.value
                )

            # Rows the scan made redundant, including ones it healed just now
            cleared = resolve_mirrored_failures(self.db, model, target)
            self.db.commit()
            if cleared:
                summary.ledger_cleared += cleared
                logger.info(
                    "Mirror ledger rows resolved by the scan",
                    target=target.value,
                    count=cleared,
                )


def get_reconciliation_service(
    db_session: Session = Depends(get_sync_session),
) -> ReconciliationService:
    """Dependency to provide ReconciliationService instance"""
    return ReconciliationService(db_session)
