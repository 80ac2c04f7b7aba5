from typing import List
import uuid

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.db.models import FacultyLoad
from app.db.session import get_sync_session
from app.schemas.faculty_load_schemas import CreateFacultyLoadRequest, FacultyLoadItem
from app.services.deliverable_service import DeliverableService
from app.utils.datetime_utils import to_iso
from app.utils.logging import get_logger

logger = get_logger()


class FacultyLoadService:
    """Faculty teaching assignments; each one owns a task deliverable aggregate"""

    def __init__(self, db_session: Session):
        self.db = db_session
        self.deliverable_service = DeliverableService(db_session)

    async def create_faculty_load(
        self,
        faculty_id: str,
        faculty_name: str,
        request: CreateFacultyLoadRequest,
    ) -> FacultyLoadItem:
        """Register a load and its all-pending aggregate in one transaction"""
        existing = self.db.execute(
            select(FacultyLoad.id).where(
                FacultyLoad.faculty_id == faculty_id,
                FacultyLoad.subject_code == request.subject_code,
                FacultyLoad.course_section == request.course_section,
                FacultyLoad.semester == request.semester,
                FacultyLoad.school_year == request.school_year,
            )
        ).scalar_one_or_none()
        if existing is not None:
            raise ValueError("FACULTY_LOAD_EXISTS")

        faculty_load = FacultyLoad(
            faculty_id=faculty_id,
            faculty_name=faculty_name,
            subject_code=request.subject_code,
            subject_title=request.subject_title,
            course_section=request.course_section,
            semester=request.semester,
            school_year=request.school_year,
        )
        self.db.add(faculty_load)

        try:
            self.deliverable_service.create_for_faculty_load(faculty_load)
            self.db.commit()
        except ValueError:
            self.db.rollback()
            raise
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(
                "Faculty load or deliverable already exists",
                faculty_id=faculty_id,
                subject_code=request.subject_code,
                course_section=request.course_section,
                error=str(e.orig),
            )
            raise ValueError("FACULTY_LOAD_EXISTS")

        self.db.refresh(faculty_load)
        logger.info(
            "Faculty load created",
            faculty_load_id=str(faculty_load.id),
            faculty_id=faculty_id,
            subject_code=faculty_load.subject_code,
            course_section=faculty_load.course_section,
        )
        return self.transform_faculty_load(faculty_load)

    async def get_faculty_loads(self, faculty_id: str) -> List[FacultyLoadItem]:
        try:
            loads = (
                self.db.execute(
                    select(FacultyLoad)
                    .options(selectinload(FacultyLoad.task_deliverable))
                    .where(FacultyLoad.faculty_id == faculty_id)
                    .order_by(FacultyLoad.subject_code, FacultyLoad.course_section)
                )
                .scalars()
                .all()
            )
            return [self.transform_faculty_load(load) for load in loads]

        except Exception as e:
            logger.error(
                "Failed to retrieve faculty loads", faculty_id=faculty_id, error=str(e)
            )
            raise RuntimeError("FACULTY_LOADS_RETRIEVAL_FAILED") from e

    async def delete_faculty_load(self, faculty_id: str, faculty_load_id: str) -> bool:
        """Delete an owned load; its aggregate goes with it"""
        try:
            load_uuid = uuid.UUID(str(faculty_load_id))
        except ValueError:
            raise ValueError("FACULTY_LOAD_NOT_FOUND")

        faculty_load = self.db.execute(
            select(FacultyLoad)
            .options(selectinload(FacultyLoad.task_deliverable))
            .where(
                FacultyLoad.id == load_uuid,
                FacultyLoad.faculty_id == faculty_id,
            )
        ).scalar_one_or_none()
        if faculty_load is None:
            raise ValueError("FACULTY_LOAD_NOT_FOUND")

        self.db.delete(faculty_load)
        self.db.commit()

        logger.info(
            "Faculty load deleted",
            faculty_load_id=str(load_uuid),
            faculty_id=faculty_id,
        )
        return True

    @staticmethod
    def transform_faculty_load(faculty_load: FacultyLoad) -> FacultyLoadItem:
        deliverable = faculty_load.task_deliverable
        return FacultyLoadItem(
            id=str(faculty_load.id),
            faculty_id=faculty_load.faculty_id,
            faculty_name=faculty_load.faculty_name,
            subject_code=faculty_load.subject_code,
            subject_title=faculty_load.subject_title,
            course_section=faculty_load.course_section,
            semester=faculty_load.semester,
            school_year=faculty_load.school_year,
            created_at=to_iso(faculty_load.created_at),
            task_deliverable=(
                DeliverableService.transform_deliverable(deliverable)
                if deliverable
                else None
            ),
        )


def get_faculty_load_service(
    db_session: Session = Depends(get_sync_session),
) -> FacultyLoadService:
    """Dependency to provide FacultyLoadService instance"""
    return FacultyLoadService(db_session)
