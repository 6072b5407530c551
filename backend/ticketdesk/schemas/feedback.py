"""Request/response schemas for ticket feedback."""
from typing import Optional

from pydantic import BaseModel, Field


class FeedbackIn(BaseModel):
    rating: int = Field(ge=1, le=5)
    comments: Optional[str] = None


class FeedbackOut(BaseModel):
    id: int
    rating: int
    comments: Optional[str] = None
    submittedAt: str
