"""Domain errors raised by the ticket service and mapped to HTTP codes in main.py."""


class TicketDeskError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(TicketDeskError):
    status_code = 404


class InvalidStateError(TicketDeskError):
    """Operation not allowed for the ticket's current status."""

    status_code = 400


class InvalidArgumentError(TicketDeskError):
    status_code = 400


class StoreError(TicketDeskError):
    """Persistence failure. message is safe to return; the driver error is chained."""

    status_code = 500
