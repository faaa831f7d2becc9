"""WSGI middleware wrapped around the relay routes.

Each layer is a WSGI application wrapping another one:

- `IPFilter` refuses callers whose real address is not allowed;
- `Authenticator` refuses callers without valid HTTP Basic credentials;
- `AccessLogger` writes one line per request to an `.AccessLogSink`.

"""
import base64
import binascii
import datetime
import functools
import ipaddress
import logging
from typing import Any
from typing import Callable
from typing import Dict
from typing import Iterable
from typing import Iterator
from typing import List
from typing import NamedTuple
from typing import Optional
from typing import Sequence
from typing import Tuple
from typing import Union

from acmeproxy import errors
from acmeproxy import interfaces
from acmeproxy._internal import constants
from acmeproxy._internal.log import RequestLogAdapter

logger = logging.getLogger(__name__)

WSGIEnviron = Dict[str, Any]
StartResponse = Callable[..., Callable[[bytes], Any]]
WSGIApplication = Callable[[WSGIEnviron, StartResponse], Iterable[bytes]]
Network = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]
Address = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class MiddlewareDescriptor(NamedTuple):
    """Middleware configured around the relay routes.

    A layer set to `None` (or, for ``allowed_ips``, left empty) is not
    installed.

    """
    credential_store: Optional[interfaces.CredentialStore] = None
    allowed_ips: Tuple[str, ...] = ()
    access_log: Optional[interfaces.AccessLogSink] = None
    auth_first: bool = False


def text_response(start_response: StartResponse, error: errors.ProxyRequestError,
                  headers: Optional[List[Tuple[str, str]]] = None) -> List[bytes]:
    """Answer with the plain-text rendition of `error`."""
    body = (error.message + '\n').encode('utf-8')
    start_response(constants.status_line(error.status), [
        ('Content-Type', 'text/plain; charset=utf-8'),
        ('X-Content-Type-Options', 'nosniff'),
        ('Content-Length', str(len(body))),
    ] + (headers or []))
    return [body]


def _parse_address(address: str) -> Optional[Address]:
    try:
        parsed = ipaddress.ip_address(address.strip().strip('[]'))
    except ValueError:
        return None
    if isinstance(parsed, ipaddress.IPv6Address) and parsed.ipv4_mapped:
        return parsed.ipv4_mapped
    return parsed


def real_ip(environ: WSGIEnviron) -> str:
    """Address of the caller, as seen through proxies.

    Looks for the first public address in ``X-Forwarded-For``, then
    ``X-Real-Ip``, then the first ``X-Forwarded-For`` entry, and finally
    falls back to the peer address.

    """
    forwarded = [address.strip() for address in
                 environ.get('HTTP_X_FORWARDED_FOR', '').split(',') if address.strip()]
    for address in forwarded:
        parsed = _parse_address(address)
        if parsed is not None and parsed.is_global:
            return address
    real = environ.get('HTTP_X_REAL_IP', '').strip()
    if real:
        return real
    if forwarded:
        return forwarded[0]
    return environ.get('REMOTE_ADDR', '')


def _request_log(environ: WSGIEnviron, action: Optional[str]) -> RequestLogAdapter:
    ip = real_ip(environ)
    prefix = '{0}: {1}'.format(action, ip) if action else ip
    return RequestLogAdapter(logger, {'prefix': prefix, 'ip': ip})


def parse_networks(entries: Iterable[str]) -> Tuple[Network, ...]:
    """Parse allowed-ips entries (addresses or CIDR networks).

    :raises errors.ConfigurationError: if an entry is invalid

    """
    networks = []
    for entry in entries:
        entry = entry.strip()
        if not entry:
            continue
        try:
            networks.append(ipaddress.ip_network(entry, strict=False))
        except ValueError as error:
            raise errors.ConfigurationError(
                "Invalid entry in allowed-ips: {0}".format(error))
    return tuple(networks)


class IPFilter:
    """Refuse callers whose real address is not in allowed-ips.

    Unknown and unparsable addresses are refused.

    """

    def __init__(self, app: WSGIApplication, allowed_ips: Sequence[str],
                 action: Optional[str] = None) -> None:
        self.app = app
        self.action = action
        self.networks = parse_networks(allowed_ips)

    def is_allowed(self, address: str) -> bool:
        """Is `address` in one of the allowed networks?"""
        parsed = _parse_address(address)
        if parsed is None:
            return False
        return any(parsed in network for network in self.networks)

    def __call__(self, environ: WSGIEnviron,
                 start_response: StartResponse) -> Iterable[bytes]:
        log = _request_log(environ, self.action)
        if not self.is_allowed(log.extra['ip']):
            log.warning("Access denied")
            return text_response(start_response, errors.IPNotAllowed())
        return self.app(environ, start_response)


def parse_basic_auth(header: str) -> Optional[interfaces.Credentials]:
    """Extract credentials from an HTTP Basic ``Authorization`` header."""
    scheme, _, encoded = header.strip().partition(' ')
    if scheme.lower() != 'basic' or not encoded:
        return None
    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode('utf-8')
    except (binascii.Error, UnicodeDecodeError):
        return None
    username, sep, password = decoded.partition(':')
    if not sep:
        return None
    return interfaces.Credentials(username, password)


class Authenticator:
    """Refuse callers without valid HTTP Basic credentials.

    The authenticated principal is passed on as ``REMOTE_USER``.

    """

    def __init__(self, app: WSGIApplication, store: interfaces.CredentialStore,
                 action: Optional[str] = None, realm: str = constants.AUTH_REALM) -> None:
        self.app = app
        self.store = store
        self.action = action
        self.realm = realm

    def __call__(self, environ: WSGIEnviron,
                 start_response: StartResponse) -> Iterable[bytes]:
        log = _request_log(environ, self.action)
        credentials = parse_basic_auth(environ.get('HTTP_AUTHORIZATION', ''))
        authenticated, principal = False, None
        if credentials is not None:
            authenticated, principal = self.store.validate(credentials)
        if not authenticated:
            log.warning("Unauthorized request")
            return text_response(start_response, errors.AuthenticationFailed(), [
                ('WWW-Authenticate', 'Basic realm="{0}"'.format(self.realm))])
        log.info("Authorized %s", principal)
        environ['REMOTE_USER'] = principal
        return self.app(environ, start_response)


def build_chain(app: WSGIApplication, descriptor: MiddlewareDescriptor,
                action: Optional[str] = None) -> WSGIApplication:
    """Wrap a route with the IP filter and authenticator it is configured with.

    The IP filter runs first unless ``descriptor.auth_first`` is set.

    """
    layers: List[Callable[[WSGIApplication], WSGIApplication]] = []
    if descriptor.credential_store is not None:
        layers.append(functools.partial(
            Authenticator, store=descriptor.credential_store, action=action))
    if descriptor.allowed_ips:
        layers.append(functools.partial(
            IPFilter, allowed_ips=descriptor.allowed_ips, action=action))
    if descriptor.auth_first:
        layers.reverse()
    for layer in layers:
        app = layer(app)
    return app


def format_access_line(environ: WSGIEnviron, status: int, length: int,
                       when: Optional[datetime.datetime] = None) -> str:
    """Render one access log line."""
    when = when or datetime.datetime.now()
    path = environ.get('PATH_INFO', '') or '/'
    query = environ.get('QUERY_STRING', '')
    if query:
        path = '{0}?{1}'.format(path, query)
    return '{0} {1} {2} "{3} {4} {5}" {6} {7} "{8}"'.format(
        when.strftime('%Y/%m/%d %H:%M:%S'),
        environ.get('HTTP_HOST', environ.get('SERVER_NAME', '')),
        real_ip(environ),
        environ.get('REQUEST_METHOD', ''),
        path,
        environ.get('SERVER_PROTOCOL', ''),
        status,
        length,
        environ.get('HTTP_USER_AGENT', ''))


class _ResponseObserver:
    """Status and size of the response actually written."""

    def __init__(self) -> None:
        self.status = 0
        self.length = 0


class AccessLogger:
    """Write an access log line once each response is complete.

    The status and length are observed from what the wrapped application
    actually sends, through ``start_response``, its ``write`` callable and
    the returned iterable.

    """

    def __init__(self, app: WSGIApplication, sink: interfaces.AccessLogSink) -> None:
        self.app = app
        self.sink = sink

    def __call__(self, environ: WSGIEnviron,
                 start_response: StartResponse) -> Iterable[bytes]:
        observer = _ResponseObserver()

        def observing_start_response(status: str, headers: List[Tuple[str, str]],
                                     exc_info: Any = None) -> Callable[[bytes], Any]:
            observer.status = int(status.split(' ', 1)[0])
            write = start_response(status, headers, exc_info)

            def observing_write(data: bytes) -> Any:
                observer.length += len(data)
                return write(data)
            return observing_write

        try:
            result = self.app(environ, observing_start_response)
        except Exception:
            observer.status = observer.status or 500
            self._log(environ, observer)
            raise
        return self._observe(environ, result, observer)

    def _observe(self, environ: WSGIEnviron, result: Iterable[bytes],
                 observer: _ResponseObserver) -> Iterator[bytes]:
        try:
            for chunk in result:
                observer.length += len(chunk)
                yield chunk
        finally:
            close = getattr(result, 'close', None)
            if close is not None:
                close()
            self._log(environ, observer)

    def _log(self, environ: WSGIEnviron, observer: _ResponseObserver) -> None:
        try:
            self.sink.write(format_access_line(environ, observer.status, observer.length))
        except Exception as error:  # pylint: disable=broad-except
            logger.warning("Unable to write access log entry: %s", error)
