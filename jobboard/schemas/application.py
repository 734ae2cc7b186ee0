from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class ApplicationCreate(BaseModel):
    job_id: int = Field(..., description="Job being applied for", ge=1)
    cover_letter: Optional[str] = Field(None, description="Optional cover letter")


class ApplicationResponse(BaseModel):
    id: int
    user_id: int
    job_id: int
    cover_letter: Optional[str] = None
    status: str
    created_at: datetime

    class Config:
        from_attributes = True
