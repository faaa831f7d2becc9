"""HTTP(S) server running the relay application."""
import datetime
import logging
import socket
import socketserver
import ssl
from typing import Any
from typing import Optional
from typing import Tuple
from wsgiref import simple_server

from cryptography import x509

from acmeproxy import configuration
from acmeproxy import errors
from acmeproxy._internal.middleware import WSGIApplication

logger = logging.getLogger(__name__)


class RequestHandler(simple_server.WSGIRequestHandler):
    """WSGI request handler logging through `logging`.

    Requests are reported by the access log, so the per-request lines of
    `http.server` only go to the debug log.

    """
    server_version = "acmeproxy"

    def log_message(self, format: str, *args: Any) -> None:  # pylint: disable=redefined-builtin
        logger.debug("%s - %s", self.address_string(), format % args)


class ProxyServer(socketserver.ThreadingMixIn, simple_server.WSGIServer):
    """Threaded WSGI server, optionally serving TLS.

    Each connection is handled in its own daemon thread. With an
    `ssl.SSLContext`, the TLS handshake happens in that thread, on the
    first read.

    """
    daemon_threads = True
    allow_reuse_address = True

    def __init__(self, server_address: Tuple[str, int], app: WSGIApplication,
                 ssl_context: Optional[ssl.SSLContext] = None, ipv6: bool = False) -> None:
        self.ipv6 = ipv6
        self.address_family = socket.AF_INET6 if ipv6 else socket.AF_INET
        self.ssl_context = ssl_context
        super().__init__(server_address, RequestHandler)
        self.set_app(app)

    def server_bind(self) -> None:
        if self.ipv6 and hasattr(socket, "IPV6_V6ONLY"):
            # accept IPv4 connections too
            self.socket.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 0)
        super().server_bind()

    def get_request(self) -> Tuple[socket.socket, Any]:
        sock, address = super().get_request()
        if self.ssl_context is not None:
            sock = self.ssl_context.wrap_socket(
                sock, server_side=True, do_handshake_on_connect=False)
        return sock, address

    def handle_error(self, request: Any, client_address: Any) -> None:
        logger.debug("Error handling request from %s", client_address, exc_info=True)

    @property
    def scheme(self) -> str:
        """URL scheme served."""
        return "https" if self.ssl_context is not None else "http"


def inspect_certificate(cert_path: str) -> x509.Certificate:
    """Load the certificate served over TLS and log its validity.

    :raises errors.ConfigurationError: if the certificate cannot be read

    """
    try:
        with open(cert_path, "rb") as cert_file:
            cert = x509.load_pem_x509_certificate(cert_file.read())
    except (OSError, ValueError) as error:
        raise errors.ConfigurationError(
            "Unable to load certificate {0}: {1}".format(cert_path, error))

    not_after = cert.not_valid_after_utc
    logger.info("Serving certificate for %s, valid until %s",
                cert.subject.rfc4514_string(), not_after.isoformat())
    if not_after < datetime.datetime.now(datetime.timezone.utc):
        logger.warning("Certificate %s expired on %s", cert_path, not_after.isoformat())
    return cert


def make_ssl_context(config: configuration.NamespaceConfig) -> Optional[ssl.SSLContext]:
    """Create the TLS context configured with ``--ssl``, if any.

    :raises errors.ConfigurationError: if the certificate or key cannot
        be loaded

    """
    if not config.ssl:
        return None
    cert_path, key_path = config.ssl_cert_path, config.ssl_key_path
    if config.ssl == "auto":
        logger.info("Using certificate %s from certbot lineage %s",
                    cert_path, config.ssl_auto_lineage)
    inspect_certificate(cert_path)

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    try:
        context.load_cert_chain(cert_path, key_path)
    except (OSError, ssl.SSLError) as error:
        raise errors.ConfigurationError(
            "Could not load X509 key pair (cert: {0}, key: {1}): {2}. "
            "Make sure the key is not encrypted.".format(cert_path, key_path, error))
    return context


def make_server(config: configuration.NamespaceConfig, app: WSGIApplication) -> ProxyServer:
    """Bind the relay server as configured.

    An empty ``--interface`` binds all IPv6 and IPv4 addresses when the
    system supports it, all IPv4 addresses otherwise.

    :raises errors.ServerBindError: if the address cannot be bound

    """
    ssl_context = make_ssl_context(config)
    interface, port = config.interface, config.port

    if interface:
        candidates = [(interface.strip("[]"), ":" in interface)]
    else:
        candidates = [("::", True), ("", False)]

    last_error: Optional[OSError] = None
    for address, ipv6 in candidates:
        try:
            server = ProxyServer((address, port), app, ssl_context, ipv6=ipv6)
        except OSError as error:
            logger.debug("Failed to bind to %s:%s using %s", address, port,
                         "IPv6" if ipv6 else "IPv4")
            last_error = error
        else:
            logger.debug("Successfully bound to %s:%s using %s", address, port,
                         "IPv6" if ipv6 else "IPv4")
            return server
    assert last_error is not None
    raise errors.ServerBindError(last_error, port)
