from typing import Dict, List, Optional
from pydantic import Field

from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class MirrorEntryItem(BaseModel):
    id: str = Field(..., description="Mirror row ID")
    file_id: str = Field(..., description="Mirrored submission ID")
    faculty_name: str = Field(..., description="Faculty name")
    file_name: str = Field(..., description="File name")
    document_type: str = Field(..., description="Document type")
    tos_type: Optional[str] = Field(None, description="TOS term")
    status: str = Field(..., description="Status at mirroring time")
    subject_code: str = Field(..., description="Subject code")
    subject_title: str = Field(..., description="Subject title")
    course: str = Field(..., description="Course sections, comma separated")
    course_sections: List[str] = Field(..., description="Course sections")
    semester: str = Field(..., description="Semester")
    school_year: str = Field(..., description="School year")
    file_path: str = Field(..., description="Object name in MinIO")
    original_name: str = Field(..., description="Original file name")
    file_size: int = Field(..., description="File size in bytes")
    uploaded_at: str = Field(..., description="Upload timestamp (ISO format)")
    archived_at: str = Field(..., description="Mirroring timestamp (ISO format)")


class MirrorFilterOptions(BaseModel):
    faculty_names: List[str] = Field(default_factory=list)
    document_types: List[str] = Field(default_factory=list)
    subject_codes: List[str] = Field(default_factory=list)
    course_sections: List[str] = Field(default_factory=list)
    semesters: List[str] = Field(default_factory=list)
    school_years: List[str] = Field(default_factory=list)
    statuses: List[str] = Field(default_factory=list)


class MirrorListResponse(BaseModel):
    """Rows plus read-side conveniences for the archive and history dashboards"""

    entries: List[MirrorEntryItem] = Field(..., description="Matching rows")
    total: int = Field(..., description="Number of matching rows")
    filters: MirrorFilterOptions = Field(..., description="Distinct filter values")
    status_counts: Dict[str, int] = Field(..., description="Matching rows per status")
    year_stats: Dict[str, int] = Field(
        ..., description="Matching rows per upload year"
    )


class NamedCount(BaseModel):
    name: str
    count: int


class MirrorStatistics(BaseModel):
    """Dashboard counts for the archive or history store"""

    total: int
    by_upload_year: List[NamedCount]
    by_semester_current_year: List[NamedCount]
    by_document_type: List[NamedCount]
    top_faculties: List[NamedCount]
    by_course: List[NamedCount]
