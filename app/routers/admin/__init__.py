from fastapi import APIRouter

from .submissions import submissions_router
from .notifications import notifications_router
from .archive import archive_router, history_router
from .deliverables import deliverables_router
from .reconciliation import reconciliation_router

admin_router = APIRouter()

# Include sub-routers
admin_router.include_router(
    submissions_router, prefix="/submissions", tags=["Admin - Submission Review"]
)
admin_router.include_router(
    notifications_router, prefix="/notifications", tags=["Admin - Notifications"]
)
admin_router.include_router(
    archive_router, prefix="/archive", tags=["Admin - Archive"]
)
admin_router.include_router(
    history_router, prefix="/history", tags=["Admin - History"]
)
admin_router.include_router(
    deliverables_router, prefix="/deliverables", tags=["Admin - Task Deliverables"]
)
admin_router.include_router(
    reconciliation_router, prefix="/reconciliation", tags=["Admin - Reconciliation"]
)
