import pytest
from sqlalchemy import func, select

from ticketdesk.errors import InvalidArgumentError, InvalidStateError, NotFoundError
from ticketdesk.services import ticket_service
from ticketdesk.storage.models import (
    CommentModel,
    FeedbackModel,
    TicketModel,
    TicketPriority,
    TicketStatus,
)


async def _new_ticket(session, **overrides):
    fields = {
        "title": "Login broken",
        "description": "Cannot log in",
        "priority": TicketPriority.HIGH,
    }
    fields.update(overrides)
    return await ticket_service.create_ticket(session, **fields)


async def _count(session, model):
    r = await session.execute(select(func.count()).select_from(model))
    return r.scalar_one()


@pytest.mark.unit
def test_priority_escalation_order():
    assert TicketPriority.LOW.escalated() is TicketPriority.MEDIUM
    assert TicketPriority.MEDIUM.escalated() is TicketPriority.HIGH
    assert TicketPriority.HIGH.escalated() is TicketPriority.URGENT
    assert TicketPriority.URGENT.escalated() is TicketPriority.URGENT
    assert list(TicketPriority) == [
        TicketPriority.LOW,
        TicketPriority.MEDIUM,
        TicketPriority.HIGH,
        TicketPriority.URGENT,
    ]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_ticket_defaults(session):
    ticket = await _new_ticket(session)

    assert ticket.id is not None
    assert ticket.status == TicketStatus.OPEN
    assert ticket.category == "unknown"
    assert ticket.assigned_agent_id is None
    assert ticket.comments == []
    assert ticket.feedback is None


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize("category", ["", "   ", None])
async def test_create_ticket_blank_category_becomes_unknown(session, category):
    ticket = await _new_ticket(session, category=category)
    assert ticket.category == "unknown"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_ticket_keeps_category_verbatim(session):
    ticket = await _new_ticket(session, category=" Billing ")
    assert ticket.category == " Billing "


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_missing_ticket_raises_not_found(session):
    with pytest.raises(NotFoundError) as exc:
        await ticket_service.get_ticket(session, 404)
    assert "404" in exc.value.message


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_tickets_filters_by_status(session):
    first = await _new_ticket(session, title="one")
    second = await _new_ticket(session, title="two")
    await ticket_service.update_status(session, second.id, TicketStatus.CLOSED)

    assert [t.id for t in await ticket_service.list_tickets(session)] == [first.id, second.id]
    closed = await ticket_service.list_tickets(session, status=TicketStatus.CLOSED)
    assert [t.id for t in closed] == [second.id]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_applies_only_supplied_fields(session):
    ticket = await _new_ticket(session, category="network")

    updated = await ticket_service.update_ticket(session, ticket.id, title="VPN down", priority=TicketPriority.LOW)

    assert updated.title == "VPN down"
    assert updated.priority == TicketPriority.LOW
    assert updated.description == "Cannot log in"
    assert updated.category == "network"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_allowed_on_closed_ticket(session):
    ticket = await _new_ticket(session)
    await ticket_service.update_status(session, ticket.id, TicketStatus.CLOSED)

    updated = await ticket_service.update_ticket(session, ticket.id, description="Resolved by reset")

    assert updated.description == "Resolved by reset"
    assert updated.status == TicketStatus.CLOSED


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_missing_ticket_raises_not_found(session):
    with pytest.raises(NotFoundError):
        await ticket_service.update_ticket(session, 99, title="x")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_assign_sets_agent_and_moves_to_in_progress(session):
    ticket = await _new_ticket(session)

    assigned = await ticket_service.assign_agent(session, ticket.id, 7)

    assert assigned.assigned_agent_id == 7
    assert assigned.status == TicketStatus.IN_PROGRESS


@pytest.mark.unit
@pytest.mark.asyncio
async def test_assign_without_agent_fails_and_leaves_ticket_alone(session):
    ticket = await _new_ticket(session)

    with pytest.raises(InvalidArgumentError):
        await ticket_service.assign_agent(session, ticket.id, None)

    unchanged = await ticket_service.get_ticket(session, ticket.id)
    assert unchanged.assigned_agent_id is None
    assert unchanged.status == TicketStatus.OPEN


@pytest.mark.unit
@pytest.mark.asyncio
async def test_assign_missing_ticket_is_not_found_before_agent_check(session):
    with pytest.raises(NotFoundError):
        await ticket_service.assign_agent(session, 123, None)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_assign_closed_ticket_moves_back_to_in_progress(session):
    ticket = await _new_ticket(session)
    await ticket_service.update_status(session, ticket.id, TicketStatus.CLOSED)

    assigned = await ticket_service.assign_agent(session, ticket.id, 3)

    assert assigned.assigned_agent_id == 3
    assert assigned.status == TicketStatus.IN_PROGRESS


@pytest.mark.unit
@pytest.mark.asyncio
async def test_escalate_steps_up_and_saturates(session):
    ticket = await _new_ticket(session, priority=TicketPriority.HIGH)

    escalated = await ticket_service.escalate_priority(session, ticket.id)
    assert escalated.priority == TicketPriority.URGENT

    again = await ticket_service.escalate_priority(session, ticket.id)
    assert again.priority == TicketPriority.URGENT


@pytest.mark.unit
@pytest.mark.asyncio
async def test_escalate_missing_ticket_raises_not_found(session):
    with pytest.raises(NotFoundError):
        await ticket_service.escalate_priority(session, 5)


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize("target", list(TicketStatus))
async def test_status_change_on_closed_ticket_always_fails(session, target):
    ticket = await _new_ticket(session)
    await ticket_service.update_status(session, ticket.id, TicketStatus.CLOSED)

    with pytest.raises(InvalidStateError) as exc:
        await ticket_service.update_status(session, ticket.id, target)
    assert exc.value.message == "Closed tickets cannot be modified"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_status_can_move_back_from_in_progress_to_open(session):
    ticket = await _new_ticket(session)
    await ticket_service.update_status(session, ticket.id, TicketStatus.IN_PROGRESS)

    reopened = await ticket_service.update_status(session, ticket.id, TicketStatus.OPEN)

    assert reopened.status == TicketStatus.OPEN


@pytest.mark.unit
@pytest.mark.asyncio
async def test_add_comment_attaches_to_ticket(session):
    ticket = await _new_ticket(session)

    comment = await ticket_service.add_comment(session, ticket.id, content="Tried resetting", author="agent-1")

    assert comment.id is not None
    assert comment.created_at is not None
    assert comment.ticket_id == ticket.id
    fetched = await ticket_service.get_ticket(session, ticket.id)
    assert [c.content for c in fetched.comments] == ["Tried resetting"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_add_comment_to_missing_ticket_raises_not_found(session):
    with pytest.raises(NotFoundError):
        await ticket_service.add_comment(session, 1, content="hello")


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize("status", [TicketStatus.OPEN, TicketStatus.IN_PROGRESS])
async def test_feedback_rejected_unless_closed(session, status):
    ticket = await _new_ticket(session)
    if status != TicketStatus.OPEN:
        await ticket_service.update_status(session, ticket.id, status)

    with pytest.raises(InvalidStateError) as exc:
        await ticket_service.submit_feedback(session, ticket.id, rating=4)
    assert exc.value.message == "Feedback only allowed on closed tickets"
    assert await _count(session, FeedbackModel) == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_feedback_on_closed_ticket(session):
    ticket = await _new_ticket(session)
    await ticket_service.update_status(session, ticket.id, TicketStatus.CLOSED)

    feedback = await ticket_service.submit_feedback(session, ticket.id, rating=5, comments="Quick fix")

    assert feedback.id is not None
    assert feedback.rating == 5
    assert feedback.submitted_at is not None
    assert ticket.feedback is feedback


@pytest.mark.unit
@pytest.mark.asyncio
async def test_second_feedback_rejected_by_unique_constraint(session):
    ticket = await _new_ticket(session)
    await ticket_service.update_status(session, ticket.id, TicketStatus.CLOSED)
    await ticket_service.submit_feedback(session, ticket.id, rating=5)
    await session.commit()

    with pytest.raises(InvalidStateError) as exc:
        await ticket_service.submit_feedback(session, ticket.id, rating=1)
    assert exc.value.message == "Feedback already submitted for this ticket"

    await session.rollback()
    assert await _count(session, FeedbackModel) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_delete_cascades_to_comments_and_feedback(session):
    ticket = await _new_ticket(session)
    await ticket_service.add_comment(session, ticket.id, content="first")
    await ticket_service.add_comment(session, ticket.id, content="second")
    await ticket_service.update_status(session, ticket.id, TicketStatus.CLOSED)
    await ticket_service.submit_feedback(session, ticket.id, rating=3)

    await ticket_service.delete_ticket(session, ticket.id)

    assert await _count(session, TicketModel) == 0
    assert await _count(session, CommentModel) == 0
    assert await _count(session, FeedbackModel) == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_delete_missing_ticket_has_no_side_effects(session):
    kept = await _new_ticket(session)

    with pytest.raises(NotFoundError):
        await ticket_service.delete_ticket(session, kept.id + 100)

    assert await _count(session, TicketModel) == 1
