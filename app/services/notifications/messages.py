from typing import Dict, Optional

from app.db.models import DocumentType, Submission, SubmissionStatus

DOCUMENT_TYPE_LABELS: Dict[DocumentType, str] = {
    DocumentType.SYLLABUS: "Syllabus",
    DocumentType.TOS: "TOS",
    DocumentType.TOS_MIDTERM: "TOS (Midterm)",
    DocumentType.TOS_FINAL: "TOS (Final)",
    DocumentType.MIDTERM_EXAM: "Midterm Exam",
    DocumentType.FINAL_EXAM: "Final Exam",
    DocumentType.INSTRUCTIONAL_MATERIALS: "Instructional Materials",
}

STATUS_TITLES: Dict[SubmissionStatus, str] = {
    SubmissionStatus.PENDING: "Submission Returned to Pending",
    SubmissionStatus.COMPLETED: "Submission Approved",
    SubmissionStatus.REJECTED: "Submission Rejected",
    SubmissionStatus.LATE: "Submission Marked Late",
}


def document_label(document_type: Optional[DocumentType]) -> str:
    if document_type is None:
        return "Document"
    return DOCUMENT_TYPE_LABELS[document_type]


def build_admin_upload_message(submission: Submission) -> Dict[str, str]:
    """Title and body for the broadcast every admin sees after an upload"""
    label = document_label(submission.document_type)
    return {
        "title": f"New {label} Submission",
        "message": (
            f"{submission.faculty_name} submitted {label} for "
            f"{submission.subject_code} - {submission.subject_title} "
            f"({submission.course}), {submission.semester} {submission.school_year}: "
            f"{submission.file_name}"
        ),
    }


def build_faculty_status_message(
    submission: Submission,
    previous_status: SubmissionStatus,
    new_status: SubmissionStatus,
) -> Dict[str, str]:
    """Title and body telling the owning faculty about a review decision"""
    label = document_label(submission.document_type)
    return {
        "title": STATUS_TITLES[new_status],
        "message": (
            f"Your {label} for {submission.subject_code} ({submission.course}) "
            f"changed from {previous_status.value} to {new_status.value}: "
            f"{submission.file_name}"
        ),
    }
