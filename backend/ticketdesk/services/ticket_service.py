"""Ticket lifecycle: creation defaults, partial updates, status and priority rules, comments, feedback."""
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ticketdesk.errors import InvalidArgumentError, InvalidStateError, NotFoundError, StoreError
from ticketdesk.storage.models import (
    CommentModel,
    FeedbackModel,
    TicketModel,
    TicketPriority,
    TicketStatus,
)
from ticketdesk.storage.repositories import (
    comment_add,
    feedback_add,
    ticket_create,
    ticket_delete,
    ticket_get,
    ticket_list,
    ticket_update,
)

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "unknown"

CLOSED_TICKET_MESSAGE = "Closed tickets cannot be modified"
FEEDBACK_NOT_CLOSED_MESSAGE = "Feedback only allowed on closed tickets"
FEEDBACK_DUPLICATE_MESSAGE = "Feedback already submitted for this ticket"


@contextmanager
def store_errors(action: str) -> Iterator[None]:
    """Re-raise database failures as StoreError('Database error while <action>')."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.exception("Database error while %s", action)
        raise StoreError(f"Database error while {action}") from e


def _not_found(id: int) -> NotFoundError:
    return NotFoundError(f"Ticket not found with id: {id}")


async def _require_ticket(session: AsyncSession, id: int) -> TicketModel:
    ticket = await ticket_get(session, id)
    if not ticket:
        raise _not_found(id)
    return ticket


async def create_ticket(
    session: AsyncSession,
    *,
    title: str,
    description: str,
    priority: TicketPriority,
    category: Optional[str] = None,
) -> TicketModel:
    """New tickets start OPEN and unassigned; a missing or blank category becomes 'unknown'."""
    if category is None or not category.strip():
        category = DEFAULT_CATEGORY
    with store_errors("creating ticket"):
        ticket = await ticket_create(
            session,
            title=title,
            description=description,
            category=category,
            priority=priority,
        )
    logger.info("Created ticket %s (priority=%s, category=%s)", ticket.id, priority.value, category)
    return ticket


async def get_ticket(session: AsyncSession, id: int) -> TicketModel:
    with store_errors("retrieving ticket"):
        return await _require_ticket(session, id)


async def list_tickets(session: AsyncSession, status: Optional[TicketStatus] = None) -> list[TicketModel]:
    with store_errors("retrieving tickets"):
        return await ticket_list(session, status=status)


async def update_ticket(
    session: AsyncSession,
    id: int,
    *,
    title: Optional[str] = None,
    description: Optional[str] = None,
    priority: Optional[TicketPriority] = None,
    category: Optional[str] = None,
) -> TicketModel:
    """Apply the supplied fields only. Status is not consulted here."""
    with store_errors("updating ticket"):
        await _require_ticket(session, id)
        return await ticket_update(
            session,
            id,
            title=title,
            description=description,
            priority=priority,
            category=category,
        )


async def assign_agent(session: AsyncSession, id: int, agent_id: Optional[int]) -> TicketModel:
    """Set the agent and move the ticket to IN_PROGRESS, whatever its current status."""
    with store_errors("assigning ticket"):
        ticket = await _require_ticket(session, id)
        if agent_id is None:
            raise InvalidArgumentError("Agent ID is required")
        ticket = await ticket_update(
            session,
            id,
            assigned_agent_id=agent_id,
            status=TicketStatus.IN_PROGRESS,
        )
    logger.info("Assigned ticket %s to agent %s", id, agent_id)
    return ticket


async def delete_ticket(session: AsyncSession, id: int) -> None:
    with store_errors("deleting ticket"):
        ticket = await _require_ticket(session, id)
        await ticket_delete(session, ticket)
    logger.info("Deleted ticket %s", id)


async def add_comment(
    session: AsyncSession,
    id: int,
    *,
    content: str,
    author: Optional[str] = None,
) -> CommentModel:
    with store_errors("adding comment"):
        ticket = await _require_ticket(session, id)
        return await comment_add(session, ticket, content=content, author=author)


async def escalate_priority(session: AsyncSession, id: int) -> TicketModel:
    """One level up; a ticket already at URGENT is returned unchanged."""
    with store_errors("escalating ticket"):
        ticket = await _require_ticket(session, id)
        current = ticket.priority
        target = current.escalated()
        if target == current:
            return ticket
        ticket = await ticket_update(session, id, priority=target)
    logger.info("Escalated ticket %s: %s -> %s", id, current.value, target.value)
    return ticket


async def update_status(session: AsyncSession, id: int, status: TicketStatus) -> TicketModel:
    with store_errors("updating ticket status"):
        ticket = await _require_ticket(session, id)
        if ticket.status == TicketStatus.CLOSED:
            raise InvalidStateError(CLOSED_TICKET_MESSAGE)
        previous = ticket.status
        ticket = await ticket_update(session, id, status=status)
    logger.info("Ticket %s status: %s -> %s", id, previous.value, status.value)
    return ticket


async def submit_feedback(
    session: AsyncSession,
    id: int,
    *,
    rating: int,
    comments: Optional[str] = None,
) -> FeedbackModel:
    """Attach feedback to a CLOSED ticket.

    There is no lookup for existing feedback: the unique constraint on
    feedback.ticket_id decides, and its violation comes back as InvalidStateError.
    """
    with store_errors("submitting feedback"):
        ticket = await _require_ticket(session, id)
        if ticket.status != TicketStatus.CLOSED:
            raise InvalidStateError(FEEDBACK_NOT_CLOSED_MESSAGE)
        try:
            feedback = await feedback_add(session, ticket, rating=rating, comments=comments)
        except IntegrityError as e:
            logger.warning("Rejected second feedback for ticket %s", id)
            raise InvalidStateError(FEEDBACK_DUPLICATE_MESSAGE) from e
    logger.info("Feedback %s (rating=%s) recorded for ticket %s", feedback.id, rating, id)
    return feedback
