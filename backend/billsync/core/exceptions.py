"""Shared exceptions module."""

from typing import Optional


class BillsyncException(Exception):
    """Base exception for billsync services."""

    pass


class NotFoundException(BillsyncException):
    """Exception raised when an object is not found."""

    def __init__(self, message: Optional[str] = "Object not found"):
        """Create a new NotFoundException instance.

        Args:
        ----
            message (str, optional): The error message. Has default message.

        """
        self.message = message
        super().__init__(self.message)


class InvalidStateError(BillsyncException):
    """Exception raised when an operation conflicts with the current state of a record."""

    def __init__(self, message: Optional[str] = "Object has invalid state for this operation"):
        """Create a new InvalidStateError instance.

        Args:
        ----
            message (str, optional): The error message. Has default message.

        """
        self.message = message
        super().__init__(self.message)

