"""
Common schemas used across the application.
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format (UserFacingError.to_dict())."""

    code: str = Field(..., description="Error code for client handling")
    message: str = Field(..., description="Error message")
    stage: Optional[str] = Field(None, description="Pipeline stage that failed")
    details: Optional[Dict[str, Any]] = Field(None, description="Detailed error information")

    class Config:
        json_schema_extra = {
            "example": {
                "code": "FIELD_MISSING",
                "message": "required field not found: amount",
                "stage": "parse",
                "details": {"field": "amount"},
            }
        }
