from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, Request, status

from app.db.models import NotificationAudience
from app.middlewares.auth_middleware import AuthState, require_faculty
from app.services.notifications import NotificationService, get_notification_service
from app.utils.error_handlers import handle_service_error
from app.utils.errors import BusinessLogicError
from app.utils.responses import ResponseBuilder

# The reader is always the token subject
notifications_router = APIRouter(dependencies=[Depends(require_faculty)])


@notifications_router.get(
    "/",
    status_code=status.HTTP_200_OK,
    summary="Get my notifications",
)
async def get_my_notifications(
    request: Request,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
    unread_only: Annotated[bool, Query(alias="unreadOnly")] = False,
    current_user: AuthState = Depends(require_faculty),
    notification_service: NotificationService = Depends(get_notification_service),
):
    try:
        notifications = await notification_service.get_notifications(
            NotificationAudience.FACULTY,
            current_user.user_id,
            limit=limit,
            offset=offset,
            unread_only=unread_only,
        )

        return ResponseBuilder.success(
            request=request,
            data=[n.model_dump(by_alias=True) for n in notifications],
            message=f"Retrieved {len(notifications)} notifications",
        )

    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except Exception:
        raise BusinessLogicError(
            message="Failed to retrieve notifications",
            error_code="NOTIFICATIONS_RETRIEVAL_FAILED",
        )


@notifications_router.get(
    "/unread-count",
    status_code=status.HTTP_200_OK,
    summary="Get my unread notification count",
)
async def get_my_unread_count(
    request: Request,
    current_user: AuthState = Depends(require_faculty),
    notification_service: NotificationService = Depends(get_notification_service),
):
    try:
        count = await notification_service.get_unread_count(
            NotificationAudience.FACULTY, current_user.user_id
        )

        return ResponseBuilder.success(
            request=request,
            data={"unreadCount": count},
            message="Unread count retrieved successfully",
        )

    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except Exception:
        raise BusinessLogicError(
            message="Failed to retrieve unread count",
            error_code="UNREAD_COUNT_RETRIEVAL_FAILED",
        )


@notifications_router.put(
    "/read-all",
    status_code=status.HTTP_200_OK,
    summary="Mark all my notifications as read",
)
async def mark_all_my_notifications_as_read(
    request: Request,
    current_user: AuthState = Depends(require_faculty),
    notification_service: NotificationService = Depends(get_notification_service),
):
    try:
        marked_count = await notification_service.mark_all_as_read(
            NotificationAudience.FACULTY, current_user.user_id
        )

        return ResponseBuilder.success(
            request=request,
            data={"markedCount": marked_count},
            message=f"Marked {marked_count} notifications as read",
        )

    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except Exception:
        raise BusinessLogicError(
            message="Failed to mark notifications as read",
            error_code="MARK_ALL_AS_READ_FAILED",
        )


@notifications_router.put(
    "/{notification_id}/read",
    status_code=status.HTTP_200_OK,
    summary="Mark one of my notifications as read",
)
async def mark_my_notification_as_read(
    request: Request,
    notification_id: Annotated[str, Path(description="Notification ID")],
    current_user: AuthState = Depends(require_faculty),
    notification_service: NotificationService = Depends(get_notification_service),
):
    try:
        newly_marked = await notification_service.mark_as_read(
            NotificationAudience.FACULTY, current_user.user_id, notification_id
        )

        return ResponseBuilder.success(
            request=request,
            data={"notificationId": notification_id, "newlyMarked": newly_marked},
            message="Notification marked as read",
        )

    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except Exception:
        raise BusinessLogicError(
            message="Failed to mark notification as read",
            error_code="MARK_AS_READ_FAILED",
        )
