from typing import Annotated

from fastapi import APIRouter, Depends, Path, Request, status

from app.middlewares.auth_middleware import AuthState, require_faculty
from app.schemas.faculty_load_schemas import CreateFacultyLoadRequest, FacultyLoadItem
from app.services.faculty_load_service import (
    FacultyLoadService,
    get_faculty_load_service,
)
from app.utils.error_handlers import handle_service_error
from app.utils.errors import BusinessLogicError
from app.utils.responses import ResponseBuilder

faculty_loads_router = APIRouter(dependencies=[Depends(require_faculty)])


@faculty_loads_router.post(
    "/",
    response_model=FacultyLoadItem,
    status_code=status.HTTP_201_CREATED,
    summary="Register a faculty load",
    description="Register a subject and section the caller teaches. A task deliverable with every slot pending is created with it.",
)
async def create_faculty_load(
    request: Request,
    body: CreateFacultyLoadRequest,
    current_user: AuthState = Depends(require_faculty),
    faculty_load_service: FacultyLoadService = Depends(get_faculty_load_service),
):
    try:
        faculty_load = await faculty_load_service.create_faculty_load(
            faculty_id=current_user.user_id,
            faculty_name=current_user.username,
            request=body,
        )

        return ResponseBuilder.success(
            request=request,
            data=faculty_load.model_dump(by_alias=True),
            message="Faculty load created successfully",
            status_code=status.HTTP_201_CREATED,
        )

    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except Exception:
        raise BusinessLogicError(
            message="Failed to create faculty load",
            error_code="FACULTY_LOAD_CREATION_FAILED",
        )


@faculty_loads_router.get(
    "/",
    status_code=status.HTTP_200_OK,
    summary="List my faculty loads",
)
async def get_my_faculty_loads(
    request: Request,
    current_user: AuthState = Depends(require_faculty),
    faculty_load_service: FacultyLoadService = Depends(get_faculty_load_service),
):
    try:
        faculty_loads = await faculty_load_service.get_faculty_loads(
            current_user.user_id
        )

        return ResponseBuilder.success(
            request=request,
            data=[f.model_dump(by_alias=True) for f in faculty_loads],
            message=f"Retrieved {len(faculty_loads)} faculty loads",
        )

    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except Exception:
        raise BusinessLogicError(
            message="Failed to retrieve faculty loads",
            error_code="FACULTY_LOADS_RETRIEVAL_FAILED",
        )


@faculty_loads_router.delete(
    "/{faculty_load_id}",
    status_code=status.HTTP_200_OK,
    summary="Delete one of my faculty loads",
)
async def delete_faculty_load(
    request: Request,
    faculty_load_id: Annotated[str, Path(description="Faculty load ID")],
    current_user: AuthState = Depends(require_faculty),
    faculty_load_service: FacultyLoadService = Depends(get_faculty_load_service),
):
    try:
        await faculty_load_service.delete_faculty_load(
            current_user.user_id, faculty_load_id
        )

        return ResponseBuilder.success(
            request=request,
            data={"id": faculty_load_id},
            message="Faculty load deleted successfully",
        )

    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except Exception:
        raise BusinessLogicError(
            message="Failed to delete faculty load",
            error_code="FACULTY_LOAD_DELETE_FAILED",
        )
