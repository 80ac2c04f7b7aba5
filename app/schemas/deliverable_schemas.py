from pydantic import Field

from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class TaskDeliverableItem(BaseModel):
    task_deliverables_id: str = Field(..., description="Aggregate ID")
    faculty_load_id: str = Field(..., description="Owning faculty load ID")
    faculty_id: str = Field(..., description="Faculty ID")
    faculty_name: str = Field(..., description="Faculty name")
    subject_code: str = Field(..., description="Subject code")
    subject_title: str = Field(..., description="Subject title")
    course_section: str = Field(..., description="Course section")
    semester: str = Field(..., description="Semester")
    school_year: str = Field(..., description="School year")
    syllabus: str = Field(..., description="Syllabus slot status")
    tos: str = Field(..., description="Table of Specifications slot status")
    midterm_exam: str = Field(..., description="Midterm exam slot status")
    final_exam: str = Field(..., description="Final exam slot status")
    instructional_materials: str = Field(
        ..., description="Instructional materials slot status"
    )
    overall_status: str = Field(
        ..., description="Computed rollup: rejected, pending or completed"
    )
    updated_at: str = Field(..., description="Last update (ISO format)")
