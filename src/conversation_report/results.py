from pydantic import BaseModel
from typing import Literal, Optional

class ReportResult(BaseModel):
    status: Literal["ok", "failed"]
    character_name: Optional[str] = None
    out_path: Optional[str] = None
    byte_length: Optional[int] = None

    # failure fields
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    failed_stage: Optional[str] = None
    failure_artifact: Optional[str] = None
