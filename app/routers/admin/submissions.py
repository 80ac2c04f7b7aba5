from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Request, status

from app.middlewares.auth_middleware import AuthState, require_admin
from app.schemas.submission_schemas import (
    BulkCompleteResponse,
    StatusTransitionResponse,
    SubmissionItem,
    UpdateSubmissionStatusRequest,
)
from app.services.minio_service import MinIOService, get_minio_service
from app.services.submission_service import (
    SubmissionService,
    get_submission_service,
)
from app.utils.error_handlers import handle_service_error
from app.utils.errors import BusinessLogicError
from app.utils.responses import ResponseBuilder

submissions_router = APIRouter(dependencies=[Depends(require_admin)])


@submissions_router.post(
    "/status",
    response_model=StatusTransitionResponse,
    status_code=status.HTTP_200_OK,
    summary="Update a submission's review status",
    description="Move a submission to pending, completed, rejected or late. The task deliverable, the faculty's inbox and, for completed files, the archive and history are updated afterwards.",
)
async def update_submission_status(
    request: Request,
    body: UpdateSubmissionStatusRequest,
    current_user: AuthState = Depends(require_admin),
    submission_service: SubmissionService = Depends(get_submission_service),
):
    """Apply an administrative review decision"""
    try:
        result = await submission_service.transition_status(
            file_id=body.file_id,
            new_status=body.new_status,
            actor_id=current_user.user_id,
            actor_name=current_user.username,
        )

        message = (
            "File status updated successfully and synchronized with Task Deliverables"
            if result.changed
            else f"File status is already {result.submission.status}"
        )
        return ResponseBuilder.success(
            request=request,
            data=result.model_dump(by_alias=True),
            message=message,
            status_code=status.HTTP_200_OK,
        )

    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except Exception:
        raise BusinessLogicError(
            message="Failed to update file status",
            error_code="SUBMISSION_STATUS_UPDATE_FAILED",
        )


@submissions_router.put(
    "/bulk-complete",
    response_model=BulkCompleteResponse,
    status_code=status.HTTP_200_OK,
    summary="Complete all pending and rejected submissions",
)
async def bulk_complete_submissions(
    request: Request,
    current_user: AuthState = Depends(require_admin),
    submission_service: SubmissionService = Depends(get_submission_service),
):
    try:
        result = await submission_service.bulk_complete(
            actor_id=current_user.user_id, actor_name=current_user.username
        )

        return ResponseBuilder.success(
            request=request,
            data=result.model_dump(by_alias=True),
            message=f"Successfully completed {result.completed_count} files",
            status_code=status.HTTP_200_OK,
        )

    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except Exception:
        raise BusinessLogicError(
            message="Failed to complete submissions",
            error_code="BULK_COMPLETE_FAILED",
        )


@submissions_router.get(
    "/",
    status_code=status.HTTP_200_OK,
    summary="List submissions",
    description="List submissions newest first, filtered by status, faculty, subject or document type.",
)
async def get_submissions(
    request: Request,
    status_filter: Annotated[Optional[str], Query(alias="status")] = None,
    faculty_id: Annotated[Optional[str], Query(alias="facultyId")] = None,
    subject_code: Annotated[Optional[str], Query(alias="subjectCode")] = None,
    document_type: Annotated[Optional[str], Query(alias="documentType")] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(alias="pageSize", ge=1, le=100)] = 20,
    submission_service: SubmissionService = Depends(get_submission_service),
):
    try:
        items, total = await submission_service.get_submissions(
            status=status_filter,
            faculty_id=faculty_id,
            subject_code=subject_code,
            document_type=document_type,
            page=page,
            page_size=page_size,
        )

        return ResponseBuilder.paginated(
            request=request,
            data=[i.model_dump(by_alias=True) for i in items],
            page=page,
            per_page=page_size,
            total=total,
            message=f"Retrieved {len(items)} submissions",
        )

    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except Exception:
        raise BusinessLogicError(
            message="Failed to retrieve submissions",
            error_code="SUBMISSIONS_RETRIEVAL_FAILED",
        )


@submissions_router.get(
    "/{file_id}",
    response_model=SubmissionItem,
    status_code=status.HTTP_200_OK,
    summary="Get a submission",
)
async def get_submission(
    request: Request,
    file_id: Annotated[str, Path(description="Submission file ID")],
    submission_service: SubmissionService = Depends(get_submission_service),
):
    try:
        submission = await submission_service.get_submission(file_id)

        return ResponseBuilder.success(
            request=request,
            data=submission.model_dump(by_alias=True),
            message="Submission retrieved successfully",
        )

    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except Exception:
        raise BusinessLogicError(
            message="Failed to retrieve submission",
            error_code="SUBMISSION_RETRIEVAL_FAILED",
        )


@submissions_router.get(
    "/{file_id}/status-history",
    status_code=status.HTTP_200_OK,
    summary="Get the status change audit trail of a submission",
)
async def get_submission_status_history(
    request: Request,
    file_id: Annotated[str, Path(description="Submission file ID")],
    submission_service: SubmissionService = Depends(get_submission_service),
):
    try:
        changes = await submission_service.get_status_history(file_id)

        return ResponseBuilder.success(
            request=request,
            data=[c.model_dump(by_alias=True) for c in changes],
            message=f"Retrieved {len(changes)} status change{'s' if len(changes) != 1 else ''}",
        )

    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except Exception:
        raise BusinessLogicError(
            message="Failed to retrieve status history",
            error_code="STATUS_HISTORY_RETRIEVAL_FAILED",
        )


@submissions_router.get(
    "/{file_id}/download",
    status_code=status.HTTP_200_OK,
    summary="Get a presigned download URL for a submission",
)
async def get_submission_download_url(
    request: Request,
    file_id: Annotated[str, Path(description="Submission file ID")],
    submission_service: SubmissionService = Depends(get_submission_service),
    minio_service: MinIOService = Depends(get_minio_service),
):
    try:
        url_info = await submission_service.get_download_url(minio_service, file_id)

        return ResponseBuilder.success(
            request=request,
            data=url_info,
            message="Download URL generated successfully",
        )

    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except HTTPException:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to generate download URL",
            error_code="DOWNLOAD_URL_GENERATION_FAILED",
        )
