from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status

from app.middlewares.auth_middleware import require_admin
from app.schemas.reconciliation_schemas import ReconciliationSummary
from app.services.reconciliation_service import (
    ReconciliationService,
    get_reconciliation_service,
)
from app.utils.error_handlers import handle_service_error
from app.utils.errors import BusinessLogicError
from app.utils.responses import ResponseBuilder

reconciliation_router = APIRouter(dependencies=[Depends(require_admin)])


@reconciliation_router.post(
    "/run",
    response_model=ReconciliationSummary,
    status_code=status.HTTP_200_OK,
    summary="Run reconciliation now",
    description="Replay unresolved sync failures and create any missing archive or history entries. The same job runs every 15 minutes.",
)
async def run_reconciliation(
    request: Request,
    reconciliation_service: ReconciliationService = Depends(
        get_reconciliation_service
    ),
):
    try:
        summary = await reconciliation_service.run()

        return ResponseBuilder.success(
            request=request,
            data=summary.model_dump(by_alias=True),
            message="Reconciliation completed",
        )

    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except Exception:
        raise BusinessLogicError(
            message="Reconciliation failed", error_code="RECONCILIATION_FAILED"
        )


@reconciliation_router.get(
    "/failures",
    status_code=status.HTTP_200_OK,
    summary="List unresolved sync failures",
)
async def get_sync_failures(
    request: Request,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    reconciliation_service: ReconciliationService = Depends(
        get_reconciliation_service
    ),
):
    try:
        failures = await reconciliation_service.get_failures(limit=limit)

        return ResponseBuilder.success(
            request=request,
            data=[f.model_dump(by_alias=True) for f in failures],
            message=f"Retrieved {len(failures)} unresolved sync failures",
        )

    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except Exception:
        raise BusinessLogicError(
            message="Failed to retrieve sync failures",
            error_code="SYNC_FAILURES_RETRIEVAL_FAILED",
        )
