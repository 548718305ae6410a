class PortalError(Exception):
    """Base class for every error raised by the portal client."""

    code = "portal_error"

    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(PortalError):
    """Caller-supplied arguments are missing or malformed."""

    code = "validation_error"


class ConfigError(ValidationError):
    code = "config_error"


class AuthenticationError(PortalError):
    """
    The session could not be authenticated.

    Fatal for the whole invocation: no further command may run on the session.
    """

    code = "authentication_error"


class RemoteServiceError(PortalError):
    """Network failure or a service-side error during a command call."""

    code = "remote_error"


class NotFoundError(PortalError):
    """A well-formed key number or criteria set yielded no data."""

    code = "not_found"
