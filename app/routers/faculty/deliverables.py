from fastapi import APIRouter, Depends, Request, status

from app.middlewares.auth_middleware import AuthState, require_faculty
from app.services.deliverable_service import (
    DeliverableService,
    get_deliverable_service,
)
from app.utils.error_handlers import handle_service_error
from app.utils.errors import BusinessLogicError
from app.utils.responses import ResponseBuilder

deliverables_router = APIRouter(dependencies=[Depends(require_faculty)])


@deliverables_router.get(
    "/",
    status_code=status.HTTP_200_OK,
    summary="List my task deliverables",
)
async def get_my_deliverables(
    request: Request,
    current_user: AuthState = Depends(require_faculty),
    deliverable_service: DeliverableService = Depends(get_deliverable_service),
):
    try:
        deliverables = await deliverable_service.get_deliverables(
            faculty_id=current_user.user_id
        )

        return ResponseBuilder.success(
            request=request,
            data=[d.model_dump(by_alias=True) for d in deliverables],
            message=f"Retrieved {len(deliverables)} task deliverables",
        )

    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except Exception:
        raise BusinessLogicError(
            message="Failed to retrieve task deliverables",
            error_code="DELIVERABLES_RETRIEVAL_FAILED",
        )
