from typing import Annotated, Optional

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    Request,
    UploadFile,
    status,
)

from app.middlewares.auth_middleware import AuthState, require_faculty
from app.schemas.submission_schemas import SubmissionItem
from app.services.minio_service import MinIOService, get_minio_service
from app.services.submission_service import (
    SubmissionService,
    get_submission_service,
)
from app.utils.error_handlers import handle_service_error
from app.utils.errors import BusinessLogicError
from app.utils.responses import ResponseBuilder

submissions_router = APIRouter(dependencies=[Depends(require_faculty)])


@submissions_router.post(
    "/",
    response_model=SubmissionItem,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a document",
    description="Upload a document for one subject and one or more of the caller's course sections. The file starts out pending review.",
)
async def upload_submission(
    request: Request,
    file: UploadFile = File(...),
    document_type: str = Form(..., alias="documentType"),
    subject_code: str = Form(..., alias="subjectCode"),
    course_sections: str = Form(..., alias="courseSections"),
    semester: str = Form(...),
    school_year: str = Form(..., alias="schoolYear"),
    tos_type: Optional[str] = Form(None, alias="tosType"),
    current_user: AuthState = Depends(require_faculty),
    submission_service: SubmissionService = Depends(get_submission_service),
    minio_service: MinIOService = Depends(get_minio_service),
):
    try:
        submission = await submission_service.upload_submission(
            minio_service=minio_service,
            faculty_id=current_user.user_id,
            faculty_name=current_user.username,
            file=file,
            document_type=document_type,
            subject_code=subject_code,
            course_sections=course_sections,
            semester=semester,
            school_year=school_year,
            tos_type=tos_type,
        )

        return ResponseBuilder.success(
            request=request,
            data=submission.model_dump(by_alias=True),
            message="File uploaded successfully",
            status_code=status.HTTP_201_CREATED,
        )

    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except HTTPException:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to upload file", error_code="SUBMISSION_UPLOAD_FAILED"
        )


@submissions_router.get(
    "/",
    status_code=status.HTTP_200_OK,
    summary="List my submissions",
)
async def get_my_submissions(
    request: Request,
    status_filter: Annotated[Optional[str], Query(alias="status")] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(alias="pageSize", ge=1, le=100)] = 20,
    current_user: AuthState = Depends(require_faculty),
    submission_service: SubmissionService = Depends(get_submission_service),
):
    try:
        items, total = await submission_service.get_submissions(
            status=status_filter,
            faculty_id=current_user.user_id,
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
