from typing import Optional
from pydantic import Field

from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class NotificationItem(BaseModel):
    notification_id: str = Field(..., description="Notification ID")
    audience: str = Field(..., description="admin or faculty")
    recipient_id: str = Field(..., description="Recipient ID or 'all' for broadcast")
    sender_id: Optional[str] = Field(None, description="Who triggered it")
    sender_name: Optional[str] = Field(None, description="Display name of the sender")
    file_id: Optional[str] = Field(None, description="Related submission")
    file_name: Optional[str] = Field(None, description="Related file name")
    document_type: Optional[str] = Field(None, description="Related document type")
    tos_type: Optional[str] = Field(None, description="Related TOS term")
    subject_code: Optional[str] = Field(None, description="Subject code")
    subject_title: Optional[str] = Field(None, description="Subject title")
    course: Optional[str] = Field(None, description="Course sections")
    semester: Optional[str] = Field(None, description="Semester")
    school_year: Optional[str] = Field(None, description="School year")
    title: str = Field(..., description="Notification title")
    message: str = Field(..., description="Notification body")
    previous_status: Optional[str] = Field(None, description="Status before change")
    new_status: Optional[str] = Field(None, description="Status after change")
    review_status: Optional[str] = Field(None, description="Admin review annotation")
    is_read: bool = Field(..., description="Whether the reader has read it")
    read_at: Optional[str] = Field(None, description="When the reader read it")
    created_at: str = Field(..., description="Creation timestamp (ISO format)")


class UpdateReviewStatusRequest(BaseModel):
    review_status: str = Field(..., description="pending, reviewed or archived")
