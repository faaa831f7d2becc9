"""Relay request handling.

Every ``/present`` and ``/cleanup`` request goes through the same steps,
any of which may end it with a `~acmeproxy.errors.ProxyRequestError`:

1. only ``POST`` is accepted;
2. the body is normalized into a `~acmeproxy.messages.DefaultRequest`
   or a `~acmeproxy.messages.RawRequest`;
3. the request's domain is authorized against allowed-domains;
4. the request is dispatched to the provider;
5. the request is echoed back as JSON.

"""
import logging
from typing import Iterable
from typing import List
from typing import Mapping
from typing import Optional

from acmeproxy import configuration
from acmeproxy import errors
from acmeproxy import interfaces
from acmeproxy import messages
from acmeproxy._internal import constants
from acmeproxy._internal import dispatcher
from acmeproxy._internal import middleware
from acmeproxy._internal.accesslog import FileAccessLogSink
from acmeproxy._internal.allowlist import DomainAllowList
from acmeproxy._internal.htpasswd import HtpasswdCredentialStore
from acmeproxy._internal.log import RequestLogAdapter
from acmeproxy._internal.middleware import StartResponse
from acmeproxy._internal.middleware import WSGIApplication
from acmeproxy._internal.middleware import WSGIEnviron

logger = logging.getLogger(__name__)

MAX_BODY_SIZE = 64 * 1024
"""Largest request body accepted, in bytes."""


def read_body(environ: WSGIEnviron) -> bytes:
    """Read the request body.

    :raises errors.MalformedPayload: if the body is larger than
        `MAX_BODY_SIZE`

    """
    try:
        length = int(environ.get('CONTENT_LENGTH') or 0)
    except ValueError:
        length = 0
    if length > MAX_BODY_SIZE:
        raise errors.MalformedPayload()
    if length <= 0:
        return b''
    return environ['wsgi.input'].read(length)


def json_response(start_response: StartResponse,
                  echo: messages.ChallengeRequest) -> List[bytes]:
    """Answer with the JSON serialization of `echo`."""
    body = (echo.json_dumps(separators=(',', ':')) + '\n').encode('utf-8')
    start_response(constants.status_line(200), [
        ('Content-Type', 'application/json'),
        ('Content-Length', str(len(body))),
    ])
    return [body]


class ActionHandler:
    """Handle the requests of one action.

    :ivar action: `~acmeproxy.messages.Action` performed by this handler
    :ivar allow_list: `.DomainAllowList` requests are authorized against
    :ivar provider: `~acmeproxy.interfaces.ChallengeProvider` to dispatch to

    """

    def __init__(self, action: messages.Action, allow_list: DomainAllowList,
                 provider: interfaces.ChallengeProvider,
                 provider_name: Optional[str] = None) -> None:
        self.action = action
        self.allow_list = allow_list
        self.provider = provider
        self.provider_name = provider_name

    def __call__(self, environ: WSGIEnviron,
                 start_response: StartResponse) -> Iterable[bytes]:
        ip = middleware.real_ip(environ)
        log = RequestLogAdapter(logger, {
            'prefix': '{0}: {1}'.format(self.action.value, ip), 'ip': ip})
        try:
            echo = self.handle(environ, log)
        except errors.MethodNotAllowed as error:
            log.error("Method %s not allowed", environ.get('REQUEST_METHOD'))
            return middleware.text_response(start_response, error, [('Allow', 'POST')])
        except errors.ProxyRequestError as error:
            log.debug("Request refused (%d): %s", error.status, error)
            return middleware.text_response(start_response, error)
        return json_response(start_response, echo)

    def handle(self, environ: WSGIEnviron, log: RequestLogAdapter) -> messages.ChallengeRequest:
        """Run a request through the pipeline.

        :returns: the message to echo back
        :raises errors.ProxyRequestError: if the request fails at any step

        """
        if environ.get('REQUEST_METHOD') != 'POST':
            raise errors.MethodNotAllowed()

        try:
            request = messages.normalize(read_body(environ))
        except errors.ProxyRequestError as error:
            log.error("%s", error)
            raise
        log.debug("Received JSON payload (%s mode): %s",
                  request.mode.value, request.to_partial_json())

        self.allow_list.authorize(request.check_domain)

        return dispatcher.dispatch(self.action, request, self.provider,
                                   self.provider_name, log=log)


def health(environ: WSGIEnviron, start_response: StartResponse) -> List[bytes]:
    """Answer liveness probes."""
    body = b'OK'
    start_response(constants.status_line(200), [
        ('Content-Type', 'text/plain; charset=utf-8'),
        ('Content-Length', str(len(body))),
    ])
    return [body]


class Router:
    """Route requests by path.

    ``/health`` always answers, other paths must be one of `routes` or
    are refused.

    """

    def __init__(self, routes: Mapping[str, WSGIApplication]) -> None:
        self.routes = dict(routes)
        self.routes.setdefault(constants.HEALTH_PATH, health)

    def __call__(self, environ: WSGIEnviron,
                 start_response: StartResponse) -> Iterable[bytes]:
        path = environ.get('PATH_INFO') or '/'
        app = self.routes.get(path)
        if app is None:
            logger.warning("Trying to access non-acmeproxy URL %s from %s",
                           path, middleware.real_ip(environ))
            return middleware.text_response(start_response, errors.UnknownPath())
        return app(environ, start_response)


def make_app(allow_list: DomainAllowList, provider: interfaces.ChallengeProvider,
             descriptor: middleware.MiddlewareDescriptor = middleware.MiddlewareDescriptor(),
             provider_name: Optional[str] = None) -> WSGIApplication:
    """Assemble the relay application.

    :param allow_list: domains requests are authorized against
    :param provider: provider requests are dispatched to
    :param descriptor: middleware to install
    :param str provider_name: name used in log messages

    """
    routes = {}
    for action in messages.Action:
        handler = ActionHandler(action, allow_list, provider, provider_name)
        routes['/' + action.value] = middleware.build_chain(
            handler, descriptor, action.value)

    app: WSGIApplication = Router(routes)
    if descriptor.access_log is not None:
        app = middleware.AccessLogger(app, descriptor.access_log)
    return app


def build_app(config: configuration.NamespaceConfig,
              provider: interfaces.ChallengeProvider) -> WSGIApplication:
    """Assemble the relay application as configured.

    :raises errors.ConfigurationError: if the htpasswd or access log file
        cannot be used

    """
    allow_list = DomainAllowList(config.allowed_domains)
    if not allow_list:
        logger.warning("No allowed-domains configured, all requests will be refused")

    credential_store: Optional[interfaces.CredentialStore] = None
    if config.htpasswd_path:
        credential_store = HtpasswdCredentialStore(config.htpasswd_path)
        logger.info("Authenticating requests with %s", config.htpasswd_path)
    else:
        logger.warning("No htpasswd file, requests are not authenticated")

    access_log: Optional[interfaces.AccessLogSink] = None
    if config.accesslog_path:
        access_log = FileAccessLogSink(config.accesslog_path)

    descriptor = middleware.MiddlewareDescriptor(
        credential_store=credential_store,
        allowed_ips=config.allowed_ips,
        access_log=access_log,
        auth_first=config.auth_first)
    return make_app(allow_list, provider, descriptor, config.provider)
