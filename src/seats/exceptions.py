from fastapi import status

from src.exceptions import DomainError

class SeatUnavailable(DomainError):
    """The seat slot was not Free at reservation time"""

class InvalidHandle(DomainError):
    """A reservation handle no longer owns its seat slot"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
