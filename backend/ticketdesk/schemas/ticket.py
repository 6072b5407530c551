"""Request/response schemas for tickets."""
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ticketdesk.schemas.comment import CommentOut
from ticketdesk.schemas.feedback import FeedbackOut
from ticketdesk.storage.models import MAX_ID, TicketPriority, TicketStatus


def _not_blank(value: Optional[str], message: str) -> Optional[str]:
    if value is not None and not value.strip():
        raise ValueError(message)
    return value


class TicketCreateIn(BaseModel):
    title: str = Field(default="", validate_default=True)
    description: str = Field(default="", validate_default=True)
    category: Optional[str] = None
    priority: Optional[TicketPriority] = Field(default=None, validate_default=True)

    @field_validator("title")
    @classmethod
    def _title(cls, v: str) -> str:
        return _not_blank(v, "Title is mandatory")

    @field_validator("description")
    @classmethod
    def _description(cls, v: str) -> str:
        return _not_blank(v, "Description is mandatory")

    @field_validator("priority")
    @classmethod
    def _priority(cls, v: Optional[TicketPriority]) -> TicketPriority:
        if v is None:
            raise ValueError("Priority is mandatory")
        return v


class TicketUpdateIn(BaseModel):
    """Partial update: omitted or null fields are left as they are."""

    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[TicketPriority] = None
    category: Optional[str] = None

    @field_validator("title")
    @classmethod
    def _title(cls, v: Optional[str]) -> Optional[str]:
        return _not_blank(v, "Title must not be blank")

    @field_validator("description")
    @classmethod
    def _description(cls, v: Optional[str]) -> Optional[str]:
        return _not_blank(v, "Description must not be blank")


class AssignIn(BaseModel):
    assignedAgentId: Optional[int] = Field(default=None, ge=-MAX_ID - 1, le=MAX_ID)


class StatusUpdateIn(BaseModel):
    status: Optional[TicketStatus] = Field(default=None, validate_default=True)

    @field_validator("status")
    @classmethod
    def _status(cls, v: Optional[TicketStatus]) -> TicketStatus:
        if v is None:
            raise ValueError("Status is mandatory")
        return v


class TicketOut(BaseModel):
    id: int
    title: str
    description: str
    category: str
    priority: TicketPriority
    status: TicketStatus
    assignedAgentId: Optional[int] = None
    comments: list[CommentOut] = []
    feedback: Optional[FeedbackOut] = None
    createdAt: str
    updatedAt: str
