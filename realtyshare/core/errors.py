"""
Error taxonomy shared by every service.

Services raise these; ``main.py`` renders them as JSON with the status code
carried by the class. Provider failures are wrapped in ``BackendError`` with
the provider's own message text.
"""


class RealtyShareError(Exception):
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


# 400
class ValidationError(RealtyShareError):
    status_code = 400


class InvalidOperation(ValidationError):
    pass


class InvalidContent(ValidationError):
    pass


# 401 / 403
class AuthenticationError(RealtyShareError):
    status_code = 401


class ForbiddenError(RealtyShareError):
    status_code = 403


# 404
class NotFoundError(RealtyShareError):
    status_code = 404


# 409
class ConflictError(RealtyShareError):
    status_code = 409


class AlreadyFriends(ConflictError):
    pass


class AlreadyRequested(ConflictError):
    pass


class ReciprocalPending(ConflictError):
    pass


class NoSuchRequest(ConflictError):
    pass


class DuplicateDocument(ConflictError):
    pass


# 502
class BackendError(RealtyShareError):
    status_code = 502
