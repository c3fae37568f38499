"""Domain errors raised by the repositories and services.

Each error carries the HTTP status the API layer should answer with and a
small context dict (offending id, requested status, ...) that ends up in the
response body next to ``detail``.
"""
from typing import Any, Dict


class DispatchError(Exception):
    status_code = 400

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, **self.context}


class NotFound(DispatchError):
    status_code = 404


class OrderNotFound(NotFound):
    def __init__(self, order_id: str):
        super().__init__("Order not found", order_id=order_id)


class UserNotFound(NotFound):
    def __init__(self, user_id: str):
        super().__init__("User not found", user_id=user_id)


class ClientNotFound(NotFound):
    def __init__(self, client_id: str):
        super().__init__("Client not found", client_id=client_id)


class AlreadyExists(DispatchError):
    """A unique field (client phone, user cedula) is already taken."""
    status_code = 409


class InvalidStatus(DispatchError):
    status_code = 422


class InvalidTransition(DispatchError):
    status_code = 409


class VersionConflict(DispatchError):
    status_code = 409


class CourierUnavailable(DispatchError):
    status_code = 409


class OracleUnavailable(DispatchError):
    status_code = 502


class OracleResponseInvalid(OracleUnavailable):
    """The oracle answered, but its stop sequence is not a permutation of the batch."""


class PersistenceFailure(DispatchError):
    status_code = 503
