from typing import Optional
from pydantic import Field, field_validator

from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel
from app.schemas.deliverable_schemas import TaskDeliverableItem


class CreateFacultyLoadRequest(BaseModel):
    subject_code: str = Field(..., min_length=1, max_length=50)
    subject_title: str = Field(..., min_length=1, max_length=255)
    course_section: str = Field(..., min_length=1, max_length=100)
    semester: str = Field(..., min_length=1, max_length=50)
    school_year: str = Field(..., min_length=1, max_length=20)

    @field_validator("subject_code", "course_section", "semester", "school_year")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        return v.strip()


class FacultyLoadItem(BaseModel):
    id: str = Field(..., description="Faculty load ID")
    faculty_id: str = Field(..., description="Faculty ID")
    faculty_name: str = Field(..., description="Faculty name")
    subject_code: str = Field(..., description="Subject code")
    subject_title: str = Field(..., description="Subject title")
    course_section: str = Field(..., description="Course section")
    semester: str = Field(..., description="Semester")
    school_year: str = Field(..., description="School year")
    created_at: str = Field(..., description="Creation timestamp (ISO format)")
    task_deliverable: Optional[TaskDeliverableItem] = Field(
        None, description="Deliverable aggregate created with this load"
    )
