"""Tickets API."""
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Response
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ticketdesk.config import get_settings
from ticketdesk.deps import get_db, require_api_user
from ticketdesk.schemas.comment import CommentIn, CommentOut
from ticketdesk.schemas.error import ErrorOut
from ticketdesk.schemas.feedback import FeedbackIn, FeedbackOut
from ticketdesk.schemas.ticket import AssignIn, StatusUpdateIn, TicketCreateIn, TicketOut, TicketUpdateIn
from ticketdesk.services import ticket_service
from ticketdesk.storage.models import MAX_ID, CommentModel, FeedbackModel, TicketModel, TicketStatus

TicketId = Annotated[int, Path(ge=1, le=MAX_ID)]

router = APIRouter(
    prefix=get_settings().tickets_prefix,
    tags=["tickets"],
    dependencies=[Depends(require_api_user)],
    responses={
        400: {"model": ErrorOut},
        401: {"model": ErrorOut},
        404: {"model": ErrorOut},
        500: {"model": ErrorOut},
    },
)


def _comment_out(c: CommentModel) -> CommentOut:
    return CommentOut(
        id=c.id,
        content=c.content,
        author=c.author,
        createdAt=c.created_at.isoformat(),
    )


def _feedback_out(f: FeedbackModel) -> FeedbackOut:
    return FeedbackOut(
        id=f.id,
        rating=f.rating,
        comments=f.comments,
        submittedAt=f.submitted_at.isoformat(),
    )


def _ticket_out(t: TicketModel) -> TicketOut:
    return TicketOut(
        id=t.id,
        title=t.title,
        description=t.description,
        category=t.category,
        priority=t.priority,
        status=t.status,
        assignedAgentId=t.assigned_agent_id,
        comments=[_comment_out(c) for c in t.comments],
        feedback=_feedback_out(t.feedback) if t.feedback else None,
        createdAt=t.created_at.isoformat(),
        updatedAt=t.updated_at.isoformat(),
    )


@router.post("", response_model=TicketOut, status_code=201)
async def create_ticket(body: TicketCreateIn, session: AsyncSession = Depends(get_db)):
    t = await ticket_service.create_ticket(
        session,
        title=body.title,
        description=body.description,
        category=body.category,
        priority=body.priority,
    )
    return _ticket_out(t)


@router.get("", response_model=list[TicketOut], responses={204: {"description": "No tickets"}})
async def list_tickets(
    status: TicketStatus | None = None,
    session: AsyncSession = Depends(get_db),
):
    tickets = await ticket_service.list_tickets(session, status=status)
    if not tickets:
        return Response(status_code=204)
    return [_ticket_out(t) for t in tickets]


@router.get("/{ticket_id}", response_model=TicketOut)
async def get_ticket(ticket_id: TicketId, session: AsyncSession = Depends(get_db)):
    t = await ticket_service.get_ticket(session, ticket_id)
    return _ticket_out(t)


@router.delete("/{ticket_id}", response_class=PlainTextResponse)
async def delete_ticket(ticket_id: TicketId, session: AsyncSession = Depends(get_db)):
    await ticket_service.delete_ticket(session, ticket_id)
    return "Ticket deleted successfully"


@router.patch("/{ticket_id}", response_model=TicketOut)
async def update_ticket(
    ticket_id: TicketId,
    body: TicketUpdateIn,
    session: AsyncSession = Depends(get_db),
):
    t = await ticket_service.update_ticket(
        session,
        ticket_id,
        title=body.title,
        description=body.description,
        priority=body.priority,
        category=body.category,
    )
    return _ticket_out(t)


@router.patch("/{ticket_id}/assign", response_model=TicketOut)
async def assign_ticket(ticket_id: TicketId, body: AssignIn, session: AsyncSession = Depends(get_db)):
    t = await ticket_service.assign_agent(session, ticket_id, body.assignedAgentId)
    return _ticket_out(t)


@router.post("/{ticket_id}/comments", response_model=CommentOut, status_code=201)
async def add_comment(ticket_id: TicketId, body: CommentIn, session: AsyncSession = Depends(get_db)):
    c = await ticket_service.add_comment(session, ticket_id, content=body.content, author=body.author)
    return _comment_out(c)


@router.patch("/{ticket_id}/escalate", response_model=TicketOut)
async def escalate_ticket(ticket_id: TicketId, session: AsyncSession = Depends(get_db)):
    t = await ticket_service.escalate_priority(session, ticket_id)
    return _ticket_out(t)


@router.patch("/{ticket_id}/status", response_model=TicketOut)
async def update_ticket_status(
    ticket_id: TicketId,
    body: StatusUpdateIn,
    session: AsyncSession = Depends(get_db),
):
    t = await ticket_service.update_status(session, ticket_id, body.status)
    return _ticket_out(t)


@router.post("/{ticket_id}/feedback", response_model=FeedbackOut, status_code=201)
async def submit_feedback(ticket_id: TicketId, body: FeedbackIn, session: AsyncSession = Depends(get_db)):
    f = await ticket_service.submit_feedback(session, ticket_id, rating=body.rating, comments=body.comments)
    return _feedback_out(f)
