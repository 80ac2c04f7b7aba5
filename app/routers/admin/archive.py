from typing import Annotated, Any, Dict, Optional, Type, Union

from fastapi import APIRouter, Depends, Path, Query, Request, status

from app.db.models import ArchiveEntry, HistoryEntry
from app.middlewares.auth_middleware import require_admin
from app.schemas.archive_schemas import MirrorListResponse, MirrorStatistics
from app.services.archive import ArchiveQueryService, get_archive_query_service
from app.utils.error_handlers import handle_service_error
from app.utils.errors import BusinessLogicError
from app.utils.responses import ResponseBuilder

archive_router = APIRouter(dependencies=[Depends(require_admin)])
history_router = APIRouter(dependencies=[Depends(require_admin)])


def mirror_list_params(
    faculty_name: Annotated[Optional[str], Query(alias="facultyName")] = None,
    document_type: Annotated[Optional[str], Query(alias="documentType")] = None,
    subject_code: Annotated[Optional[str], Query(alias="subjectCode")] = None,
    course_section: Annotated[Optional[str], Query(alias="courseSection")] = None,
    status_filter: Annotated[Optional[str], Query(alias="status")] = None,
    semester: Optional[str] = None,
    school_year: Annotated[Optional[str], Query(alias="schoolYear")] = None,
    search: Optional[str] = None,
    sort_by: Annotated[Optional[str], Query(alias="sortBy")] = None,
    sort_order: Annotated[str, Query(alias="sortOrder", pattern="^(asc|desc)$")] = "desc",
) -> Dict[str, Any]:
    """Query string shared by the archive and history listings"""
    return {
        "faculty_name": faculty_name,
        "document_type": document_type,
        "subject_code": subject_code,
        "course_section": course_section,
        "status": status_filter,
        "semester": semester,
        "school_year": school_year,
        "search": search,
        "sort_by": sort_by,
        "sort_order": sort_order,
    }


async def _list_mirror(
    request: Request,
    model: Type[Union[ArchiveEntry, HistoryEntry]],
    params: Dict[str, Any],
    query_service: ArchiveQueryService,
    label: str,
):
    try:
        result = await query_service.list_entries(model, **params)

        return ResponseBuilder.success(
            request=request,
            data=result.model_dump(by_alias=True),
            message=f"Retrieved {result.total} {label} entries",
        )

    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except Exception:
        raise BusinessLogicError(
            message=f"Failed to retrieve {label}",
            error_code=f"{label.upper()}_RETRIEVAL_FAILED",
        )


async def _soft_delete_mirror(
    request: Request,
    model: Type[Union[ArchiveEntry, HistoryEntry]],
    file_id: str,
    query_service: ArchiveQueryService,
    label: str,
):
    try:
        await query_service.soft_delete(model, file_id)

        return ResponseBuilder.success(
            request=request,
            data={"fileId": file_id},
            message=f"{label.capitalize()} entry deleted successfully",
        )

    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except Exception:
        raise BusinessLogicError(
            message=f"Failed to delete {label} entry",
            error_code=f"{label.upper()}_DELETE_FAILED",
        )


async def _mirror_statistics(
    request: Request,
    model: Type[Union[ArchiveEntry, HistoryEntry]],
    query_service: ArchiveQueryService,
    label: str,
):
    try:
        statistics = await query_service.get_statistics(model)

        return ResponseBuilder.success(
            request=request,
            data=statistics.model_dump(by_alias=True),
            message=f"{label.capitalize()} statistics retrieved successfully",
        )

    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except Exception:
        raise BusinessLogicError(
            message=f"Failed to compute {label} statistics",
            error_code=f"{label.upper()}_STATISTICS_FAILED",
        )


@archive_router.get(
    "/statistics",
    response_model=MirrorStatistics,
    status_code=status.HTTP_200_OK,
    summary="Archive statistics",
    description="Counts by upload year, by semester for the current year, by document type, by course, and the top 5 faculties.",
)
async def get_archive_statistics(
    request: Request,
    query_service: ArchiveQueryService = Depends(get_archive_query_service),
):
    return await _mirror_statistics(request, ArchiveEntry, query_service, "archive")


@archive_router.get(
    "/",
    response_model=MirrorListResponse,
    status_code=status.HTTP_200_OK,
    summary="List archived submissions",
)
async def get_archive(
    request: Request,
    params: Dict[str, Any] = Depends(mirror_list_params),
    query_service: ArchiveQueryService = Depends(get_archive_query_service),
):
    return await _list_mirror(request, ArchiveEntry, params, query_service, "archive")


@archive_router.delete(
    "/{file_id}",
    status_code=status.HTTP_200_OK,
    summary="Remove a submission from the archive view",
)
async def delete_archive_entry(
    request: Request,
    file_id: Annotated[str, Path(description="Archived submission file ID")],
    query_service: ArchiveQueryService = Depends(get_archive_query_service),
):
    return await _soft_delete_mirror(
        request, ArchiveEntry, file_id, query_service, "archive"
    )


@history_router.get(
    "/",
    response_model=MirrorListResponse,
    status_code=status.HTTP_200_OK,
    summary="List submission history",
)
async def get_history(
    request: Request,
    params: Dict[str, Any] = Depends(mirror_list_params),
    query_service: ArchiveQueryService = Depends(get_archive_query_service),
):
    return await _list_mirror(request, HistoryEntry, params, query_service, "history")


@history_router.delete(
    "/{file_id}",
    status_code=status.HTTP_200_OK,
    summary="Remove a submission from the history view",
)
async def delete_history_entry(
    request: Request,
    file_id: Annotated[str, Path(description="History submission file ID")],
    query_service: ArchiveQueryService = Depends(get_archive_query_service),
):
    return await _soft_delete_mirror(
        request, HistoryEntry, file_id, query_service, "history"
    )


@history_router.get(
    "/statistics",
    response_model=MirrorStatistics,
    status_code=status.HTTP_200_OK,
    summary="History statistics",
    description="Same counts as the archive statistics, over the history store.",
)
async def get_history_statistics(
    request: Request,
    query_service: ArchiveQueryService = Depends(get_archive_query_service),
):
    return await _mirror_statistics(request, HistoryEntry, query_service, "history")
