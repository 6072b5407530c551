"""Repositories for tickets, comments, feedback."""
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from ticketdesk.storage.models import (
    CommentModel,
    FeedbackModel,
    TicketModel,
    TicketPriority,
    TicketStatus,
    utcnow,
)


# ---------- Tickets ----------
async def ticket_list(session: AsyncSession, status: Optional[TicketStatus] = None) -> list[TicketModel]:
    q = select(TicketModel).order_by(TicketModel.id)
    if status:
        q = q.where(TicketModel.status == status)
    r = await session.execute(q)
    return list(r.scalars().all())


async def ticket_get(session: AsyncSession, id: int) -> Optional[TicketModel]:
    r = await session.execute(select(TicketModel).where(TicketModel.id == id))
    return r.scalar_one_or_none()


async def ticket_create(
    session: AsyncSession,
    *,
    title: str,
    description: str,
    category: str,
    priority: TicketPriority,
) -> TicketModel:
    now = utcnow()
    t = TicketModel(
        title=title,
        description=description,
        category=category,
        priority=priority,
        status=TicketStatus.OPEN,
        assigned_agent_id=None,
        created_at=now,
        updated_at=now,
        comments=[],
        feedback=None,
    )
    session.add(t)
    await session.flush()
    return t


async def ticket_update(
    session: AsyncSession,
    id: int,
    *,
    title: Optional[str] = None,
    description: Optional[str] = None,
    category: Optional[str] = None,
    priority: Optional[TicketPriority] = None,
    status: Optional[TicketStatus] = None,
    assigned_agent_id: Optional[int] = None,
) -> Optional[TicketModel]:
    values = {"updated_at": utcnow()}
    if title is not None:
        values["title"] = title
    if description is not None:
        values["description"] = description
    if category is not None:
        values["category"] = category
    if priority is not None:
        values["priority"] = priority
    if status is not None:
        values["status"] = status
    if assigned_agent_id is not None:
        values["assigned_agent_id"] = assigned_agent_id
    await session.execute(update(TicketModel).where(TicketModel.id == id).values(**values))
    await session.flush()
    return await ticket_get(session, id)


async def ticket_delete(session: AsyncSession, ticket: TicketModel) -> None:
    # comments and feedback follow through the relationship cascade
    await session.delete(ticket)
    await session.flush()


# ---------- Comments ----------
async def comment_add(
    session: AsyncSession,
    ticket: TicketModel,
    *,
    content: str,
    author: Optional[str] = None,
) -> CommentModel:
    c = CommentModel(content=content, author=author, created_at=utcnow())
    ticket.comments.append(c)
    await session.flush()
    return c


# ---------- Feedback ----------
async def feedback_add(
    session: AsyncSession,
    ticket: TicketModel,
    *,
    rating: int,
    comments: Optional[str] = None,
) -> FeedbackModel:
    """Insert a feedback row for the ticket.

    Goes through ticket_id rather than the relationship so a second row hits the
    unique constraint instead of orphaning the first one.
    """
    f = FeedbackModel(ticket_id=ticket.id, rating=rating, comments=comments, submitted_at=utcnow())
    session.add(f)
    await session.flush()
    set_committed_value(ticket, "feedback", f)
    return f
