from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, Request, status

from app.db.models import BROADCAST_RECIPIENT, NotificationAudience
from app.middlewares.auth_middleware import AuthState, require_admin
from app.schemas.notification_schemas import UpdateReviewStatusRequest
from app.services.notifications import NotificationService, get_notification_service
from app.utils.error_handlers import handle_service_error
from app.utils.errors import AuthorizationError, BusinessLogicError
from app.utils.responses import ResponseBuilder

notifications_router = APIRouter(dependencies=[Depends(require_admin)])


def _check_admin_path(admin_id: str, current_user: AuthState):
    """The path may name the caller or the broadcast recipient, nobody else"""
    if admin_id not in (current_user.user_id, BROADCAST_RECIPIENT):
        raise AuthorizationError(
            "Cannot access another admin's notifications", "NOTIFICATION_ACCESS_DENIED"
        )


def _reader_for_listing(admin_id: str, current_user: AuthState) -> str:
    # "all" lists what every admin sees, with read state for the caller
    _check_admin_path(admin_id, current_user)
    return current_user.user_id if admin_id == BROADCAST_RECIPIENT else admin_id


@notifications_router.patch(
    "/{notification_id}/review-status",
    status_code=status.HTTP_200_OK,
    summary="Set the review annotation of an admin notification",
)
async def update_review_status(
    request: Request,
    body: UpdateReviewStatusRequest,
    notification_id: Annotated[str, Path(description="Notification ID")],
    current_user: AuthState = Depends(require_admin),
    notification_service: NotificationService = Depends(get_notification_service),
):
    try:
        notification = await notification_service.update_review_status(
            notification_id, body.review_status, reader_id=current_user.user_id
        )

        return ResponseBuilder.success(
            request=request,
            data=notification.model_dump(by_alias=True),
            message="Review status updated successfully",
        )

    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except Exception:
        raise BusinessLogicError(
            message="Failed to update review status",
            error_code="REVIEW_STATUS_UPDATE_FAILED",
        )


@notifications_router.get(
    "/{admin_id}",
    status_code=status.HTTP_200_OK,
    summary="Get admin notifications",
    description="Notifications addressed to the admin or broadcast to all admins, newest first.",
)
async def get_admin_notifications(
    request: Request,
    admin_id: Annotated[str, Path(description="Caller's admin ID or 'all'")],
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
    unread_only: Annotated[bool, Query(alias="unreadOnly")] = False,
    current_user: AuthState = Depends(require_admin),
    notification_service: NotificationService = Depends(get_notification_service),
):
    reader_id = _reader_for_listing(admin_id, current_user)

    try:
        notifications = await notification_service.get_notifications(
            NotificationAudience.ADMIN,
            reader_id,
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
    "/{admin_id}/unread-count",
    status_code=status.HTTP_200_OK,
    summary="Get the admin's unread notification count",
)
async def get_admin_unread_count(
    request: Request,
    admin_id: Annotated[str, Path(description="Caller's admin ID or 'all'")],
    current_user: AuthState = Depends(require_admin),
    notification_service: NotificationService = Depends(get_notification_service),
):
    reader_id = _reader_for_listing(admin_id, current_user)

    try:
        count = await notification_service.get_unread_count(
            NotificationAudience.ADMIN, reader_id
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
    "/{admin_id}/read-all",
    status_code=status.HTTP_200_OK,
    summary="Mark all visible notifications as read",
)
async def mark_all_admin_notifications_as_read(
    request: Request,
    admin_id: Annotated[str, Path(description="Caller's admin ID")],
    current_user: AuthState = Depends(require_admin),
    notification_service: NotificationService = Depends(get_notification_service),
):
    _check_admin_path(admin_id, current_user)

    try:
        marked_count = await notification_service.mark_all_as_read(
            NotificationAudience.ADMIN, admin_id
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
    "/{admin_id}/{notification_id}/read",
    status_code=status.HTTP_200_OK,
    summary="Mark one notification as read",
)
async def mark_admin_notification_as_read(
    request: Request,
    admin_id: Annotated[str, Path(description="Caller's admin ID")],
    notification_id: Annotated[str, Path(description="Notification ID")],
    current_user: AuthState = Depends(require_admin),
    notification_service: NotificationService = Depends(get_notification_service),
):
    _check_admin_path(admin_id, current_user)

    try:
        newly_marked = await notification_service.mark_as_read(
            NotificationAudience.ADMIN, admin_id, notification_id
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
