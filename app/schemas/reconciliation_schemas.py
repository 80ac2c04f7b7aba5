from typing import Any, Dict, Optional
from pydantic import Field

from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class SyncFailureItem(BaseModel):
    id: str = Field(..., description="Ledger row ID")
    file_id: str = Field(..., description="Submission the step belonged to")
    target: str = Field(..., description="Downstream store that failed")
    error_message: str = Field(..., description="Last recorded error")
    context: Optional[Dict[str, Any]] = Field(None, description="Replay context")
    attempts: int = Field(..., description="Number of attempts so far")
    created_at: str = Field(..., description="First failure (ISO format)")
    updated_at: Optional[str] = Field(None, description="Last attempt (ISO format)")
    next_attempt_at: Optional[str] = Field(
        None, description="Earliest next replay (ISO format)"
    )
    dead_lettered_at: Optional[str] = Field(
        None, description="Replay given up after the attempt cap (ISO format)"
    )
    resolved_at: Optional[str] = Field(None, description="Resolution (ISO format)")


class ReconciliationSummary(BaseModel):
    replayed: int = Field(0, description="Ledger rows replayed successfully")
    obsolete: int = Field(0, description="Ledger rows no longer applicable")
    still_failing: int = Field(0, description="Ledger rows that failed again")
    dead_lettered: int = Field(0, description="Ledger rows that hit the attempt cap")
    ledger_cleared: int = Field(
        0, description="Mirror ledger rows resolved because the mirror now exists"
    )
    archive_healed: int = Field(0, description="Archive mirrors created by the scan")
    history_healed: int = Field(0, description="History mirrors created by the scan")
    scan_failures: int = Field(0, description="Scan inserts that failed")
