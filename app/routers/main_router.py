from fastapi import APIRouter

from app.routers.admin import admin_router
from app.routers.faculty import faculty_router
from app.routers.shared import shared_router

main_router = APIRouter()
main_router.include_router(admin_router, prefix="/admin", tags=["admin"])
main_router.include_router(faculty_router, prefix="/faculty", tags=["faculty"])
main_router.include_router(shared_router, prefix="/shared", tags=["shared"])
