from fastapi import APIRouter

from .submissions import submissions_router
from .notifications import notifications_router
from .faculty_loads import faculty_loads_router
from .deliverables import deliverables_router

faculty_router = APIRouter()

# Include sub-routers
faculty_router.include_router(
    submissions_router, prefix="/submissions", tags=["Faculty - Submissions"]
)
faculty_router.include_router(
    notifications_router, prefix="/notifications", tags=["Faculty - Notifications"]
)
faculty_router.include_router(
    faculty_loads_router, prefix="/faculty-loads", tags=["Faculty - Faculty Loads"]
)
faculty_router.include_router(
    deliverables_router, prefix="/deliverables", tags=["Faculty - Task Deliverables"]
)
