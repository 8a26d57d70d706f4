class ServiceError(ValueError):
    """Base for errors raised by the service layer and rendered as {"error": message}."""

    status_code = 400

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ServiceError):
    status_code = 400


class AuthError(ServiceError):
    status_code = 401


class ForbiddenError(ServiceError):
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 409


class RuleViolationError(ConflictError):
    """A borrow/reservation rule rejected the request (unavailable, duplicate, limit reached)."""

    status_code = 400
