from typing import List, Optional
from pydantic import Field

from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class SubmissionItem(BaseModel):
    file_id: str = Field(..., description="Submission file ID")
    faculty_id: str = Field(..., description="Owning faculty ID")
    faculty_name: str = Field(..., description="Owning faculty name")
    file_name: str = Field(..., description="Display file name")
    document_type: str = Field(..., description="Document type")
    tos_type: Optional[str] = Field(None, description="TOS term (midterm/final)")
    status: str = Field(..., description="Review status")
    subject_code: str = Field(..., description="Subject code")
    subject_title: str = Field(..., description="Subject title")
    course: str = Field(..., description="Course sections, comma separated")
    course_sections: List[str] = Field(..., description="Course sections")
    semester: str = Field(..., description="Semester")
    school_year: str = Field(..., description="School year")
    file_path: str = Field(..., description="Object name in MinIO")
    original_name: str = Field(..., description="Original uploaded file name")
    file_size: int = Field(..., description="File size in bytes")
    uploaded_at: str = Field(..., description="Upload timestamp (ISO format)")
    updated_at: Optional[str] = Field(None, description="Last update (ISO format)")


class UpdateSubmissionStatusRequest(BaseModel):
    """Request body for an administrative review decision"""

    file_id: str = Field(..., description="Submission file ID")
    # Validated by the service so that unknown values map to INVALID_SUBMISSION_STATUS
    new_status: str = Field(..., description="pending, completed, rejected or late")


class SubmissionStatusChangeItem(BaseModel):
    id: str = Field(..., description="Status change ID")
    file_id: str = Field(..., description="Submission file ID")
    old_status: str = Field(..., description="Status before the change")
    new_status: str = Field(..., description="Status after the change")
    actor_id: Optional[str] = Field(None, description="Admin who made the change")
    actor_name: Optional[str] = Field(None, description="Admin display name")
    created_at: str = Field(..., description="When the change happened (ISO format)")


class FanOutStepResult(BaseModel):
    target: str = Field(..., description="Downstream store")
    outcome: str = Field(..., description="applied, skipped, failed or deferred")


class StatusTransitionResponse(BaseModel):
    submission: SubmissionItem = Field(..., description="Submission after the change")
    previous_status: str = Field(..., description="Status before the request")
    changed: bool = Field(..., description="False when the request was a no-op")
    fan_out: List[FanOutStepResult] = Field(
        default_factory=list, description="Outcome of each downstream step"
    )


class BulkCompleteResponse(BaseModel):
    completed_count: int = Field(..., description="Submissions moved to completed")
    file_ids: List[str] = Field(..., description="IDs of the completed submissions")
