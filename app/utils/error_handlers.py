from fastapi import Request, status

from app.utils.responses import ResponseBuilder


def handle_service_error(request: Request, error: Exception):
    """Centralized service error handler for all routers"""
    error_message = str(error)

    # Error codes may carry details after a colon (format: "ERROR_CODE: details")
    if ":" in error_message:
        error_code = error_message.split(":", 1)[0]
    else:
        error_code = error_message

    # Error code to status code mapping
    error_status_mapping = {
        # Not found
        "SUBMISSION_NOT_FOUND": status.HTTP_404_NOT_FOUND,
        "NOTIFICATION_NOT_FOUND": status.HTTP_404_NOT_FOUND,
        "FACULTY_LOAD_NOT_FOUND": status.HTTP_404_NOT_FOUND,
        "ARCHIVE_ENTRY_NOT_FOUND": status.HTTP_404_NOT_FOUND,
        "HISTORY_ENTRY_NOT_FOUND": status.HTTP_404_NOT_FOUND,
        # Invalid arguments
        "INVALID_SUBMISSION_STATUS": status.HTTP_400_BAD_REQUEST,
        "INVALID_FILE_ID": status.HTTP_400_BAD_REQUEST,
        "INVALID_DOCUMENT_TYPE": status.HTTP_400_BAD_REQUEST,
        "INVALID_TOS_TYPE": status.HTTP_400_BAD_REQUEST,
        "INVALID_READER": status.HTTP_400_BAD_REQUEST,
        "INVALID_REVIEW_STATUS": status.HTTP_400_BAD_REQUEST,
        "INVALID_COURSE_SECTIONS": status.HTTP_400_BAD_REQUEST,
        "INVALID_OVERALL_STATUS": status.HTTP_400_BAD_REQUEST,
        "SUBMISSION_NOT_COMPLETED": status.HTTP_400_BAD_REQUEST,
        "STATUS_NOT_CHANGED": status.HTTP_400_BAD_REQUEST,
        # Conflicts
        "FACULTY_LOAD_EXISTS": status.HTTP_409_CONFLICT,
        "TASK_DELIVERABLE_EXISTS": status.HTTP_409_CONFLICT,
    }

    status_code = error_status_mapping.get(
        error_code, status.HTTP_500_INTERNAL_SERVER_ERROR
    )

    # Error code to user-friendly message mapping
    error_messages = {
        # Submission errors
        "SUBMISSION_NOT_FOUND": "File not found",
        "INVALID_SUBMISSION_STATUS": "Invalid status. Must be one of: pending, completed, rejected, late",
        "INVALID_FILE_ID": "Invalid file ID",
        "INVALID_DOCUMENT_TYPE": "Invalid document type",
        "INVALID_TOS_TYPE": "Invalid TOS type. Must be midterm or final",
        "INVALID_COURSE_SECTIONS": "At least one course section is required",
        "SUBMISSION_NOT_COMPLETED": "Only completed submissions can be archived",
        "STATUS_NOT_CHANGED": "Status did not change",
        "SUBMISSION_STATUS_UPDATE_FAILED": "Failed to update file status",
        "SUBMISSION_UPLOAD_FAILED": "Failed to upload file",
        "SUBMISSIONS_RETRIEVAL_FAILED": "Failed to retrieve submissions",
        "BULK_COMPLETE_FAILED": "Failed to complete submissions",
        # Faculty load errors
        "FACULTY_LOAD_NOT_FOUND": "Subject not found in your faculty loads",
        "FACULTY_LOAD_EXISTS": "This faculty load already exists",
        "TASK_DELIVERABLE_EXISTS": "A task deliverable already exists for this subject and section",
        "FACULTY_LOADS_RETRIEVAL_FAILED": "Failed to retrieve faculty loads",
        # Deliverable errors
        "INVALID_OVERALL_STATUS": "Invalid overall status. Must be one of: pending, completed, rejected",
        # Notification errors
        "NOTIFICATION_NOT_FOUND": "Notification not found",
        "INVALID_READER": "Notifications must be read by a specific user",
        "INVALID_REVIEW_STATUS": "Invalid review status. Must be one of: pending, reviewed, archived",
        "NOTIFICATIONS_RETRIEVAL_FAILED": "Failed to retrieve notifications",
        "UNREAD_COUNT_RETRIEVAL_FAILED": "Failed to retrieve unread count",
        "MARK_AS_READ_FAILED": "Failed to mark notification as read",
        "MARK_ALL_AS_READ_FAILED": "Failed to mark notifications as read",
        # Archive and history errors
        "ARCHIVE_ENTRY_NOT_FOUND": "Archive entry not found",
        "HISTORY_ENTRY_NOT_FOUND": "History entry not found",
        "ARCHIVE_RETRIEVAL_FAILED": "Failed to retrieve archive",
        "HISTORY_RETRIEVAL_FAILED": "Failed to retrieve history",
        "ARCHIVE_STATISTICS_FAILED": "Failed to compute archive statistics",
        "HISTORY_STATISTICS_FAILED": "Failed to compute history statistics",
        # Reconciliation errors
        "SYNC_FAILURES_RETRIEVAL_FAILED": "Failed to retrieve sync failures",
    }

    message = error_messages.get(error_code, "An unexpected error occurred")

    return ResponseBuilder.error(
        request=request,
        message=message,
        error_code=error_code,
        status_code=status_code,
    )
