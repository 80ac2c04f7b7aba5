from typing import Any, List, Optional, Type, Union
import uuid

from fastapi import Depends
from sqlalchemy import String, asc, cast, desc, distinct, extract, func, literal, or_, select
from sqlalchemy.orm import Session

from app.db.models import (
    ArchiveEntry,
    DocumentType,
    HistoryEntry,
    SubmissionStatus,
)
from app.db.session import get_sync_session
from app.schemas.archive_schemas import (
    MirrorEntryItem,
    MirrorFilterOptions,
    MirrorListResponse,
    MirrorStatistics,
    NamedCount,
)
from app.utils.datetime_utils import naive_utc_now, to_iso, utc_now
from app.utils.logging import get_logger

logger = get_logger()

MirrorEntry = Union[ArchiveEntry, HistoryEntry]

SORT_FIELDS = {
    "archivedAt": "archived_at",
    "uploadedAt": "uploaded_at",
    "fileName": "file_name",
    "facultyName": "faculty_name",
    "subjectCode": "subject_code",
    "documentType": "document_type",
    "status": "status",
    "semester": "semester",
    "schoolYear": "school_year",
}

TOP_FACULTIES_LIMIT = 5


def _upload_year(model: Type[MirrorEntry]):
    return extract("year", model.uploaded_at)


class ArchiveQueryService:
    """Read side and soft delete for the archive and history stores"""

    def __init__(self, db_session: Session):
        self.db = db_session

    async def list_entries(
        self,
        model: Type[MirrorEntry],
        faculty_name: Optional[str] = None,
        document_type: Optional[str] = None,
        subject_code: Optional[str] = None,
        course_section: Optional[str] = None,
        status: Optional[str] = None,
        semester: Optional[str] = None,
        school_year: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_order: str = "desc",
    ) -> MirrorListResponse:
        """
        Filter, search and sort mirror rows, plus the dashboard extras.

        Distinct filter values are taken from every active row in the store so
        the dropdowns do not shrink as filters are applied; status counts and
        year stats describe the matching rows.
        """
        document_type_filter = self._parse_document_type(document_type)
        status_filter = self._parse_status(status)

        conditions = [model.deleted_at.is_(None)]
        if faculty_name:
            conditions.append(model.faculty_name == faculty_name)
        if document_type_filter:
            conditions.append(model.document_type == document_type_filter)
        if subject_code:
            conditions.append(model.subject_code == subject_code)
        if status_filter:
            conditions.append(model.status == status_filter)
        if semester:
            conditions.append(model.semester == semester)
        if school_year:
            conditions.append(model.school_year == school_year)
        if course_section and course_section.strip():
            conditions.append(self._course_section_clause(model, course_section))
        if search and search.strip():
            conditions.append(self._search_clause(model, search))

        try:
            column = getattr(model, SORT_FIELDS.get(sort_by or "", "archived_at"))
            direction = asc if (sort_order or "").lower() == "asc" else desc
            rows = list(
                self.db.execute(
                    select(model)
                    .where(*conditions)
                    .order_by(direction(column), direction(model.id))
                ).scalars()
            )

            status_counts = self._grouped(model, model.status, conditions)
            year_stats = self._grouped(model, _upload_year(model), conditions)

            return MirrorListResponse(
                entries=[self.transform_entry(r) for r in rows],
                total=len(rows),
                filters=self._distinct_filters(model),
                status_counts={c.name: c.count for c in status_counts},
                year_stats={c.name: c.count for c in year_stats},
            )

        except Exception as e:
            logger.error(
                "Failed to list mirror entries",
                store=model.__tablename__,
                error=str(e),
            )
            raise RuntimeError(
                f"{self._store_code(model)}_RETRIEVAL_FAILED"
            ) from e

    async def get_statistics(self, model: Type[MirrorEntry]) -> MirrorStatistics:
        """Aggregate counts over the active rows of one store"""
        active = [model.deleted_at.is_(None)]
        year = _upload_year(model)
        try:
            total = self.db.execute(
                select(func.count(model.id)).where(*active)
            ).scalar_one()

            return MirrorStatistics(
                total=total,
                by_upload_year=self._grouped(
                    model, year, active, order_by=desc(year)
                ),
                by_semester_current_year=self._grouped(
                    model, model.semester, active + [year == utc_now().year]
                ),
                by_document_type=self._grouped(model, model.document_type, active),
                top_faculties=self._grouped(
                    model, model.faculty_name, active, limit=TOP_FACULTIES_LIMIT
                ),
                by_course=self._grouped(model, model.course, active),
            )

        except Exception as e:
            logger.error(
                "Failed to compute mirror statistics",
                store=model.__tablename__,
                error=str(e),
            )
            raise RuntimeError(
                f"{self._store_code(model)}_STATISTICS_FAILED"
            ) from e

    async def soft_delete(self, model: Type[MirrorEntry], file_id: str) -> bool:
        """
        Hide a mirror row from the read side.

        The row itself stays so that its file_id remains claimed and the
        reconciler does not recreate it.
        """
        not_found = f"{self._store_code(model)}_ENTRY_NOT_FOUND"
        try:
            file_uuid = uuid.UUID(str(file_id))
        except ValueError:
            raise ValueError("INVALID_FILE_ID")

        entry = self.db.execute(
            select(model).where(
                model.file_id == file_uuid,
                model.deleted_at.is_(None),
            )
        ).scalar_one_or_none()
        if entry is None:
            raise ValueError(not_found)

        entry.deleted_at = naive_utc_now()
        self.db.commit()

        logger.info(
            "Mirror entry soft-deleted",
            store=model.__tablename__,
            file_id=str(file_uuid),
        )
        return True

    # ---- Helpers ----

    @staticmethod
    def _store_code(model: Type[MirrorEntry]) -> str:
        return "ARCHIVE" if model is ArchiveEntry else "HISTORY"

    @staticmethod
    def _parse_document_type(value: Optional[str]) -> Optional[DocumentType]:
        if not value:
            return None
        try:
            return DocumentType(value)
        except ValueError:
            raise ValueError("INVALID_DOCUMENT_TYPE")

    @staticmethod
    def _parse_status(value: Optional[str]) -> Optional[SubmissionStatus]:
        if not value:
            return None
        try:
            return SubmissionStatus(value)
        except ValueError:
            raise ValueError("INVALID_SUBMISSION_STATUS")

    @staticmethod
    def _course_section_clause(model: Type[MirrorEntry], course_section: str):
        # course holds the sections joined with ", "
        padded = literal(", ", String) + model.course + literal(",", String)
        return padded.contains(f", {course_section.strip()},", autoescape=True)

    @staticmethod
    def _search_clause(model: Type[MirrorEntry], search: str):
        needle = search.strip()
        pattern = f"%{needle}%"
        file_id_text = cast(model.file_id, String)
        return or_(
            model.file_name.ilike(pattern),
            model.faculty_name.ilike(pattern),
            model.subject_code.ilike(pattern),
            model.subject_title.ilike(pattern),
            model.course.ilike(pattern),
            file_id_text.ilike(pattern),
            # UUIDs are stored as bare hex where the backend has no uuid type
            file_id_text.ilike(f"%{needle.replace('-', '')}%"),
        )

    def _grouped(
        self,
        model: Type[MirrorEntry],
        column,
        conditions: List[Any],
        order_by=None,
        limit: Optional[int] = None,
    ) -> List[NamedCount]:
        """Row counts per value of ``column``, most frequent first by default"""
        count = func.count(model.id).label("row_count")
        query = (
            select(column, count)
            .where(*conditions)
            .group_by(column)
            .order_by(order_by if order_by is not None else desc(count), column)
        )
        if limit:
            query = query.limit(limit)

        return [
            NamedCount(name=self._label(value), count=total)
            for value, total in self.db.execute(query).all()
            if value is not None
        ]

    def _distinct_values(self, model: Type[MirrorEntry], column) -> List[str]:
        values = self.db.execute(
            select(distinct(column))
            .where(model.deleted_at.is_(None))
            .order_by(column)
        ).scalars()
        return sorted({self._label(v) for v in values if v is not None and v != ""})

    def _distinct_filters(self, model: Type[MirrorEntry]) -> MirrorFilterOptions:
        sections = {
            section.strip()
            for course in self._distinct_values(model, model.course)
            for section in course.split(",")
            if section.strip()
        }
        return MirrorFilterOptions(
            faculty_names=self._distinct_values(model, model.faculty_name),
            document_types=self._distinct_values(model, model.document_type),
            subject_codes=self._distinct_values(model, model.subject_code),
            course_sections=sorted(sections),
            semesters=self._distinct_values(model, model.semester),
            school_years=self._distinct_values(model, model.school_year),
            statuses=self._distinct_values(model, model.status),
        )

    @staticmethod
    def _label(value: Any) -> str:
        if isinstance(value, (DocumentType, SubmissionStatus)):
            return value.value
        return str(value)

    @staticmethod
    def transform_entry(entry: MirrorEntry) -> MirrorEntryItem:
        return MirrorEntryItem(
            id=str(entry.id),
            file_id=str(entry.file_id),
            faculty_name=entry.faculty_name,
            file_name=entry.file_name,
            document_type=entry.document_type.value,
            tos_type=entry.tos_type.value if entry.tos_type else None,
            status=entry.status.value,
            subject_code=entry.subject_code,
            subject_title=entry.subject_title,
            course=entry.course,
            course_sections=list(entry.course_sections or []),
            semester=entry.semester,
            school_year=entry.school_year,
            file_path=entry.file_path,
            original_name=entry.original_name,
            file_size=entry.file_size,
            uploaded_at=to_iso(entry.uploaded_at),
            archived_at=to_iso(entry.archived_at),
        )


def get_archive_query_service(
    db_session: Session = Depends(get_sync_session),
) -> ArchiveQueryService:
    """Dependency to provide ArchiveQueryService instance"""
    return ArchiveQueryService(db_session)
