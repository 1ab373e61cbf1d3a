"""
Domain errors raised by the registration services.

Each error carries the HTTP status it maps to and a short classification
string; main.py renders them as {"message": ..., "error": ...}.
"""


class HubError(Exception):
    status_code = 500
    classification = "internal_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"message": self.message, "error": self.classification}


class NotFound(HubError):
    status_code = 404
    classification = "not_found"


class Conflict(HubError):
    status_code = 409
    classification = "conflict"


class CapacityExceeded(HubError):
    status_code = 409
    classification = "capacity_exceeded"


class InvalidState(HubError):
    status_code = 400
    classification = "invalid_state"


class Forbidden(HubError):
    status_code = 403
    classification = "forbidden"


class ValidationError(HubError):
    status_code = 422
    classification = "validation_error"


class Unauthenticated(HubError):
    status_code = 401
    classification = "unauthenticated"
