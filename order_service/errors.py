"""Exceptions raised by the order service."""
from typing import List


class OrderServiceError(Exception):
    """Base exception for all order service errors."""

    pass


class OrderValidationError(OrderServiceError):
    """Raised when an order payload is missing fields or carries malformed values."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(f"Validation Error: {'. '.join(self.errors)}")


class InvalidOrderIdError(OrderServiceError):
    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__("Invalid Order ID format.")


class OrderNotFoundError(OrderServiceError):
    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__("Order not found.")


class InvalidStatusTransitionError(OrderServiceError):
    """Raised when the current status does not allow the requested transition."""

    def __init__(self, order_id: str, action: str, current_status: str):
        self.order_id = order_id
        self.action = action
        self.current_status = current_status
        if action == "confirm":
            msg = (
                "Order must be 'Pending' to be confirmed by admin. "
                f"Current status: {current_status}."
            )
        else:
            msg = f"Order cannot be cancelled. Current status: {current_status}."
        super().__init__(msg)


class InvalidConfirmationTokenError(OrderServiceError):
    def __init__(self):
        super().__init__("Invalid or expired confirmation link.")


class NotificationError(OrderServiceError):
    """Raised by a notifier when the message could not be handed to the transport."""

    def __init__(self, recipient: str, reason: str):
        self.recipient = recipient
        self.reason = reason
        super().__init__(f"Failed to send notification to {recipient}: {reason}")
