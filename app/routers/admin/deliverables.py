from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from app.middlewares.auth_middleware import require_admin
from app.services.deliverable_service import (
    DeliverableService,
    get_deliverable_service,
)
from app.utils.error_handlers import handle_service_error
from app.utils.errors import BusinessLogicError
from app.utils.responses import ResponseBuilder

deliverables_router = APIRouter(dependencies=[Depends(require_admin)])


@deliverables_router.get(
    "/",
    status_code=status.HTTP_200_OK,
    summary="List task deliverables",
    description="Per subject and section deliverable slots with the computed overall status.",
)
async def get_deliverables(
    request: Request,
    faculty_id: Annotated[Optional[str], Query(alias="facultyId")] = None,
    subject_code: Annotated[Optional[str], Query(alias="subjectCode")] = None,
    course_section: Annotated[Optional[str], Query(alias="courseSection")] = None,
    overall_status: Annotated[Optional[str], Query(alias="overallStatus")] = None,
    deliverable_service: DeliverableService = Depends(get_deliverable_service),
):
    try:
        deliverables = await deliverable_service.get_deliverables(
            faculty_id=faculty_id,
            subject_code=subject_code,
            course_section=course_section,
            overall_status=overall_status,
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
