"""Error taxonomy for ordering operations.

Services raise these; the API layer maps each one to its HTTP status. Every
operation validates before it mutates, so a raised error means no state was
changed.
"""


class OrderingError(Exception):
    """Base class for errors surfaced to callers."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(OrderingError):
    """Missing or invalid input, unavailable menu item, invalid status value."""

    status_code = 400


class AuthorizationError(OrderingError):
    """Caller identity does not own the targeted resource."""

    status_code = 403


class NotFoundError(OrderingError):
    """Unknown order, order item, table or restaurant."""

    status_code = 404


class ConflictError(OrderingError):
    """Request conflicts with current state (cancelled order, duplicate table label)."""

    status_code = 409


class InternalError(OrderingError):
    """Store failure. Logged where it happens, surfaced generically."""

    status_code = 500


class VersionConflict(Exception):
    """A conditional order write lost a race with another writer.

    Only the order write guard handles this; it never reaches callers.
    """

    def __init__(self, order_id: str, expected_version: int) -> None:
        super().__init__(f"Order {order_id} is no longer at version {expected_version}")
        self.order_id = order_id
        self.expected_version = expected_version
