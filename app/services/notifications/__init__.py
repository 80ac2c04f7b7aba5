from .notification_service import NotificationService, get_notification_service
from .messages import DOCUMENT_TYPE_LABELS, document_label

__all__ = [
    "NotificationService",
    "get_notification_service",
    "DOCUMENT_TYPE_LABELS",
    "document_label",
]
