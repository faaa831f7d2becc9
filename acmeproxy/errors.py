"""acmeproxy errors."""
import http.client as http_client
from typing import Optional
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from acmeproxy.messages import Action
    from acmeproxy.messages import Mode


class Error(Exception):
    """Generic acmeproxy error."""


class ConfigurationError(Error):
    """Configuration sanity error."""


# Plugin Errors
class PluginError(Error):
    """acmeproxy provider plugin error."""


class MisconfigurationError(PluginError):
    """Provider is installed but its settings are incomplete or invalid."""


class SubprocessError(PluginError):
    """Subprocess handling error."""


class ServerBindError(Error):
    """Problem binding the relay server to its address."""

    def __init__(self, socket_error: OSError, port: int) -> None:
        super().__init__(
            "Problem binding to port {0}: {1}".format(port, socket_error))
        self.socket_error = socket_error
        self.port = port


# Request Errors
class ProxyRequestError(Error):
    """Error that terminates the handling of a single relay request.

    Every subclass maps to exactly one HTTP status and a message that is
    safe to return to the caller.

    :ivar int status: HTTP status code of the response
    :ivar str message: plain-text body of the response

    """
    status = http_client.INTERNAL_SERVER_ERROR
    message = "Internal error"

    def __init__(self, message: Optional[str] = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class MalformedPayload(ProxyRequestError):
    """Request body could not be parsed as a challenge message."""
    status = http_client.BAD_REQUEST
    message = "Bad JSON request"


class AmbiguousOrEmptyPayload(ProxyRequestError):
    """Request body parsed, but carries neither a default nor a raw message."""
    status = http_client.BAD_REQUEST
    message = "Wrong JSON content"


class InvalidDomainFormat(ProxyRequestError):
    """Requested domain is empty or has too few labels to be authorized."""
    status = http_client.BAD_REQUEST
    message = "Requested domain has an invalid format"


class NotAuthorizedDomain(ProxyRequestError):
    """Requested domain is not covered by allowed-domains."""
    status = http_client.FORBIDDEN
    message = "Requested domain not in allowed-domains"


class UnsupportedMode(ProxyRequestError):
    """Configured provider cannot serve the requested mode."""
    message = "Provider does not support requested mode"


class UnsupportedAction(ProxyRequestError):
    """Handler was routed with an action it does not know."""
    message = "Wrong action specified"


class BackendOperationFailed(ProxyRequestError):
    """Provider failed to perform the requested action.

    The provider's own error is kept in `cause` for logging and is not
    part of the response message.

    """
    message = "Failed to update TXT record"

    def __init__(self, action: 'Action', mode: 'Mode', cause: BaseException) -> None:
        super().__init__()
        self.action = action
        self.mode = mode
        self.cause = cause

    def __str__(self) -> str:
        return "{0} ({1} mode, {2}): {3}".format(
            self.message, self.mode.value, self.action.value, self.cause)


class AuthenticationFailed(ProxyRequestError):
    """Missing or invalid credentials."""
    status = http_client.UNAUTHORIZED
    message = "Unauthorized"


class IPNotAllowed(ProxyRequestError):
    """Requesting address is not in allowed-ips."""
    status = http_client.FORBIDDEN
    message = "Requesting IP not in allowed-ips"


class MethodNotAllowed(ProxyRequestError):
    """Route was called with a method other than POST."""
    status = http_client.METHOD_NOT_ALLOWED
    message = "Method Not Allowed"


class UnknownPath(ProxyRequestError):
    """Request for a path that is not a relay route."""
    status = http_client.FORBIDDEN
    message = ""
