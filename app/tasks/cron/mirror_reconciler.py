import asyncio

from app.celery import celery
from app.db.session import get_sync_session
from app.services.reconciliation_service import ReconciliationService
from app.utils.logging import get_logger


@celery.task(bind=True, max_retries=3, default_retry_delay=60)
def mirror_reconciler_task(self, request_id: str):
    """
    Periodic task that repairs downstream state the fan-out left behind.

    Runs every 15 minutes to:
    1. Replay unresolved rows of the sync failure ledger, oldest first
    2. Create archive and history entries for completed submissions missing one

    Both passes are idempotent, so a run overlapping a live status change or
    another run cannot duplicate mirror rows.

    Args:
        request_id: Request ID for tracking purposes
    """
    return asyncio.run(_async_mirror_reconciler(request_id))


async def _async_mirror_reconciler(request_id: str):
    logger = get_logger().bind(request_id=request_id)

    for db_session in get_sync_session():
        try:
            logger.info("Starting mirror reconciler task")

            summary = await ReconciliationService(db_session).run()

            logger.info(
                "Mirror reconciler task completed",
                replayed=summary.replayed,
                obsolete=summary.obsolete,
                still_failing=summary.still_failing,
                archive_healed=summary.archive_healed,
                history_healed=summary.history_healed,
            )
            return {
                "success": True,
                "summary": summary.model_dump(),
                "request_id": request_id,
            }
        except Exception as e:
            logger.error(
                "Mirror reconciler task exception",
                error=str(e),
                exc_info=True,
            )
            return {"success": False, "error": str(e), "request_id": request_id}
