from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Type
import uuid

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from app.config.settings import settings
from app.db.models import SyncFailure, SyncTarget
from app.schemas.reconciliation_schemas import SyncFailureItem
from app.utils.datetime_utils import naive_utc_now, to_iso
from app.utils.logging import get_logger

logger = get_logger()

# Replays of these targets rebuild one specific event from the row's context,
# so every failure gets its own row. The other targets re-derive from the
# submission's current state and share one unresolved row per file.
PER_EVENT_TARGETS = frozenset({SyncTarget.FACULTY_NOTIFICATION})


def record_sync_failure(
    db: Session,
    file_id: uuid.UUID,
    target: SyncTarget,
    error_message: str,
    context: Optional[Dict[str, Any]] = None,
) -> Optional[SyncFailure]:
    """
    Write (or bump) the durable ledger row for a failed downstream step.

    For state-derived targets one unresolved row is kept per (file_id, target);
    a repeat failure increments its attempt counter and makes it due again. A
    dead-lettered row is revived with a fresh attempt count. The caller must
    have rolled back whatever the failed step left in the session.

    Returns:
        The ledger row, or None if the ledger itself could not be written
    """
    try:
        failure = None
        if target not in PER_EVENT_TARGETS:
            failure = db.execute(
                select(SyncFailure)
                .where(
                    SyncFailure.file_id == file_id,
                    SyncFailure.target == target,
                    SyncFailure.resolved_at.is_(None),
                )
                .order_by(SyncFailure.created_at)
                .limit(1)
            ).scalar_one_or_none()

        if failure is None:
            failure = SyncFailure(
                file_id=file_id,
                target=target,
                error_message=error_message,
                context=context,
                attempts=1,
            )
            db.add(failure)
        else:
            if failure.dead_lettered_at is not None:
                failure.attempts = 1
                failure.dead_lettered_at = None
            else:
                failure.attempts += 1
            failure.error_message = error_message
            failure.next_attempt_at = None
            if context is not None:
                failure.context = context

        db.commit()
        return failure

    except Exception as e:
        db.rollback()
        logger.opt(exception=e).error(
            "Failed to write sync failure ledger row",
            file_id=str(file_id),
            target=target.value,
            original_error=error_message,
        )
        return None


def retry_delay(attempts: int) -> timedelta:
    """Exponential backoff after the given number of failed attempts"""
    seconds = settings.RECONCILIATION_RETRY_BACKOFF_SECONDS * 2 ** max(attempts - 2, 0)
    return timedelta(
        seconds=min(seconds, settings.RECONCILIATION_RETRY_BACKOFF_MAX_SECONDS)
    )


def schedule_retry(db: Session, failure: SyncFailure, error_message: str) -> bool:
    """
    Count a failed replay and push the row back, or dead-letter it at the cap.
    Does not commit.

    Returns:
        True if the row was dead-lettered
    """
    now = naive_utc_now()
    failure.attempts += 1
    failure.error_message = error_message

    if failure.attempts >= settings.RECONCILIATION_MAX_ATTEMPTS:
        failure.dead_lettered_at = now
        failure.next_attempt_at = None
        return True

    failure.next_attempt_at = now + retry_delay(failure.attempts)
    return False


def resolve_sync_failure(db: Session, failure: SyncFailure):
    """Mark a ledger row resolved. Does not commit."""
    failure.resolved_at = naive_utc_now()


def resolve_mirrored_failures(db: Session, model: Type, target: SyncTarget) -> int:
    """
    Resolve open ``target`` rows whose file now has a row in ``model``.
    Does not commit.
    """
    result = db.execute(
        update(SyncFailure)
        .where(
            SyncFailure.target == target,
            SyncFailure.resolved_at.is_(None),
            select(model.id)
            .where(model.file_id == SyncFailure.file_id)
            .correlate(SyncFailure)
            .exists(),
        )
        .values(resolved_at=naive_utc_now())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


def get_due_failures(
    db: Session, limit: int, now: Optional[datetime] = None
) -> List[SyncFailure]:
    """
    Unresolved, live rows whose backoff has elapsed.

    Fewest attempts first so rows that keep failing cannot starve newer ones,
    then oldest first so events for one file replay in order.
    """
    now = now or naive_utc_now()
    result = db.execute(
        select(SyncFailure)
        .where(
            SyncFailure.resolved_at.is_(None),
            SyncFailure.dead_lettered_at.is_(None),
            or_(
                SyncFailure.next_attempt_at.is_(None),
                SyncFailure.next_attempt_at <= now,
            ),
        )
        .order_by(SyncFailure.attempts, SyncFailure.created_at, SyncFailure.id)
        .limit(limit)
    )
    return list(result.scalars().all())


def get_unresolved_failures(db: Session, limit: int) -> List[SyncFailure]:
    """Unresolved ledger rows, dead-lettered ones included, oldest first"""
    result = db.execute(
        select(SyncFailure)
        .where(SyncFailure.resolved_at.is_(None))
        .order_by(SyncFailure.created_at, SyncFailure.id)
        .limit(limit)
    )
    return list(result.scalars().all())


def transform_sync_failure(failure: SyncFailure) -> SyncFailureItem:
    return SyncFailureItem(
        id=str(failure.id),
        file_id=str(failure.file_id),
        target=failure.target.value,
        error_message=failure.error_message,
        context=failure.context,
        attempts=failure.attempts,
        created_at=to_iso(failure.created_at),
        updated_at=to_iso(failure.updated_at),
        next_attempt_at=to_iso(failure.next_attempt_at),
        dead_lettered_at=to_iso(failure.dead_lettered_at),
        resolved_at=to_iso(failure.resolved_at),
    )
