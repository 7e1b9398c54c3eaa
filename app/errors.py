"""Domain errors raised by services and translated to HTTP responses in app.main."""


class TravelAppError(Exception):
    """Base class for domain errors."""
    status_code = 400


class NotFoundError(TravelAppError):
    status_code = 404


class PermissionDeniedError(TravelAppError):
    status_code = 403

    def __init__(self, message: str = "Permission denied"):
        super().__init__(message)


class AuthenticationError(TravelAppError):
    status_code = 401


class InvalidTransitionError(TravelAppError):
    """Raised when a request is not in a state that allows the action."""
    status_code = 409


class StepValidationError(TravelAppError):
    """A wizard step payload failed validation."""
    status_code = 422

    def __init__(self, message: str, errors: list[dict]):
        super().__init__(message)
        self.errors = errors


class PaymentError(TravelAppError):
    status_code = 400


class ConfigurationError(TravelAppError):
    status_code = 500


class ExternalServiceError(TravelAppError):
    """A third-party gateway call failed."""
    status_code = 502
