"""Test utilities."""
import argparse
import base64
import io
import shutil
import tempfile
from typing import Any
from typing import Dict
from typing import Iterable
from typing import List
from typing import Optional
from typing import Tuple
import unittest
from wsgiref import util as wsgi_util

from acmeproxy import configuration
from acmeproxy import interfaces
from acmeproxy._internal import constants


def make_namespace(**kwargs: Any) -> argparse.Namespace:
    """Namespace holding the CLI defaults, updated with `kwargs`."""
    values: Dict[str, Any] = dict(constants.CLI_DEFAULTS, provider='fake')
    values.update(kwargs)
    return argparse.Namespace(**values)


def make_config(**kwargs: Any) -> configuration.NamespaceConfig:
    """`.NamespaceConfig` holding the CLI defaults, updated with `kwargs`."""
    return configuration.NamespaceConfig(make_namespace(**kwargs))


def make_environ(path: str = '/present', method: str = 'POST', body: bytes = b'',
                 remote_addr: str = '127.0.0.1', **extra: str) -> Dict[str, Any]:
    """WSGI environ of a request to `path`."""
    environ: Dict[str, Any] = {
        'REQUEST_METHOD': method,
        'PATH_INFO': path,
        'REMOTE_ADDR': remote_addr,
        'CONTENT_LENGTH': str(len(body)),
        'wsgi.input': io.BytesIO(body),
    }
    environ.update(extra)
    wsgi_util.setup_testing_defaults(environ)
    return environ


class Response:
    """Response collected from a WSGI application."""

    def __init__(self) -> None:
        self.status = 0
        self.headers: Dict[str, str] = {}
        self.body = b''

    def start_response(self, status: str, headers: List[Tuple[str, str]],
                       exc_info: Any = None) -> Any:
        self.status = int(status.split(' ', 1)[0])
        self.headers = dict(headers)
        return self.write

    def write(self, data: bytes) -> None:
        self.body += data

    @property
    def text(self) -> str:
        return self.body.decode('utf-8')


def call_app(app: Any, environ: Dict[str, Any]) -> Response:
    """Run `app` on `environ` the way a WSGI server would."""
    response = Response()
    result = app(environ, response.start_response)
    try:
        for chunk in result:
            response.body += chunk
    finally:
        close = getattr(result, 'close', None)
        if close is not None:
            close()
    return response


class FakeProvider(interfaces.ChallengeProvider):
    """Provider recording challenges; only serves raw requests."""

    description = 'Fake challenge provider'
    name = 'fake'

    def __init__(self, config: Optional[configuration.NamespaceConfig] = None,
                 name: str = 'fake', error: Optional[Exception] = None) -> None:
        self.config = config
        self.name = name
        self.error = error
        self.calls: List[Tuple[str, ...]] = []

    def prepare(self) -> None:
        pass

    def _record(self, *call: str) -> None:
        self.calls.append(call)
        if self.error is not None:
            raise self.error

    def present(self, domain: str, token: str, keyauth: str) -> None:
        self._record('present', domain, token, keyauth)

    def cleanup(self, domain: str, token: str, keyauth: str) -> None:
        self._record('cleanup', domain, token, keyauth)


class FakeRecordProvider(FakeProvider, interfaces.RecordProvider):
    """Provider recording challenges and records."""

    description = 'Fake record provider'

    def create_record(self, fqdn: str, value: str) -> None:
        self._record('create_record', fqdn, value)

    def remove_record(self, fqdn: str, value: str) -> None:
        self._record('remove_record', fqdn, value)


class StaticCredentialStore(interfaces.CredentialStore):
    """Credential store with fixed plain-text users."""

    def __init__(self, users: Dict[str, str]) -> None:
        self.users = users

    def validate(self, credentials: interfaces.Credentials) -> Tuple[bool, Optional[str]]:
        if self.users.get(credentials.username) == credentials.password:
            return True, credentials.username
        return False, None


class MemoryAccessLogSink(interfaces.AccessLogSink):
    """Access log sink keeping lines in memory."""

    def __init__(self, error: Optional[Exception] = None) -> None:
        self.lines: List[str] = []
        self.error = error

    def write(self, line: str) -> None:
        if self.error is not None:
            raise self.error
        self.lines.append(line)


def basic_auth(username: str, password: str) -> str:
    """Value of an HTTP Basic ``Authorization`` header."""
    token = base64.b64encode('{0}:{1}'.format(username, password).encode()).decode()
    return 'Basic ' + token


class TempDirTestCase(unittest.TestCase):
    """Base test class which sets up and tears down a temporary directory"""

    def setUp(self) -> None:
        """Execute before test"""
        self.tempdir = tempfile.mkdtemp()

    def tearDown(self) -> None:
        """Execute after test"""
        shutil.rmtree(self.tempdir)


def chunks(*parts: bytes) -> Iterable[bytes]:
    """WSGI result produced lazily."""
    yield from parts
