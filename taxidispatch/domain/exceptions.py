"""
Domain errors raised by the dispatch services.

The API layer maps each class to a status code; services never build HTTP
responses themselves.
"""


class DispatchError(Exception):
    """Base class for every operator-facing failure."""

    code = "dispatch_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(DispatchError):
    code = "validation_failed"


class NotFound(DispatchError):
    code = "not_found"


class OrderNotFound(NotFound):
    code = "order_not_found"


class ClientNotFound(NotFound):
    code = "client_not_found"


class UnitNotFound(NotFound):
    code = "unit_not_found"

    def __init__(self, unit: str):
        super().__init__(f"No driver found for unit {unit}")
        self.unit = unit


class ReservationNotFound(NotFound):
    code = "reservation_not_found"


class UnitInactive(DispatchError):
    code = "unit_inactive"

    def __init__(self, unit: str):
        super().__init__(f"Unit {unit} is inactive and cannot take trips")
        self.unit = unit


class InvalidStateTransition(DispatchError):
    """Raised when an order status change violates the state machine."""

    code = "invalid_transition"


class RegistrationInProgress(DispatchError):
    code = "registration_in_progress"

    def __init__(self):
        super().__init__("A registration from this session is already in progress")


class SessionInvalid(DispatchError):
    code = "session_invalid"
