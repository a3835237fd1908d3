# Error taxonomy shared by the core and the HTTP layer


class CivicDeskError(Exception):
    """Base class; ``status_code`` is the HTTP status the API answers with."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CivicDeskError):
    """A required field is missing or a value breaks a uniqueness rule."""

    status_code = 400


class AuthenticationError(CivicDeskError):
    """Bad credentials, or a token that is malformed or unknown."""

    status_code = 401


class NotFoundError(CivicDeskError):
    status_code = 404
