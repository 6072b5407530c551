"""Request/response schemas for ticket comments."""
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class CommentIn(BaseModel):
    content: str = Field(default="", validate_default=True)
    author: Optional[str] = None

    @field_validator("content")
    @classmethod
    def _content(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Content is mandatory")
        return v


class CommentOut(BaseModel):
    id: int
    content: str
    author: Optional[str] = None
    createdAt: str
