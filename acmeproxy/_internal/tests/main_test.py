"""Tests for acmeproxy._internal.main."""
import logging
import os
import sys
import unittest
from unittest import mock

import pytest

from acmeproxy import errors
from acmeproxy._internal.tests import util as test_util


class ExportEnvironmentTest(unittest.TestCase):
    """Tests for acmeproxy._internal.main.export_environment."""

    def test_export(self):
        from acmeproxy._internal.main import export_environment
        with mock.patch.dict(os.environ, {}):
            export_environment(test_util.make_config(
                environment=['ACMEPROXY_TEST_A=1', 'ACMEPROXY_TEST_B=two=2']))
            assert os.environ['ACMEPROXY_TEST_A'] == '1'
            assert os.environ['ACMEPROXY_TEST_B'] == 'two=2'
        assert 'ACMEPROXY_TEST_A' not in os.environ


class ServeTest(unittest.TestCase):
    """Tests for acmeproxy._internal.main.serve."""

    def setUp(self):
        self.config = test_util.make_config(interface='127.0.0.1')
        self.provider = test_util.FakeRecordProvider()
        self.server = mock.MagicMock(scheme='http')
        self.server.socket.getsockname.return_value = ('127.0.0.1', 9095)

        patchers = {
            'pick_provider': mock.patch(
                'acmeproxy._internal.main.plugins_disco.pick_provider',
                return_value=self.provider),
            'build_app': mock.patch('acmeproxy._internal.main.pipeline.build_app'),
            'make_server': mock.patch(
                'acmeproxy._internal.main.proxy_server.make_server',
                return_value=self.server),
        }
        self.mocks = {}
        for name, patcher in patchers.items():
            self.mocks[name] = patcher.start()
            self.addCleanup(patcher.stop)

    def _call(self):
        from acmeproxy._internal.main import serve
        serve(self.config, mock.sentinel.providers)

    def test_serve(self):
        self._call()
        self.mocks['pick_provider'].assert_called_once_with(
            self.config, mock.sentinel.providers)
        self.mocks['build_app'].assert_called_once_with(self.config, self.provider)
        self.mocks['make_server'].assert_called_once_with(
            self.config, self.mocks['build_app'].return_value)
        self.server.serve_forever.assert_called_once_with()
        self.server.server_close.assert_called_once_with()

    def test_interrupted(self):
        from acmeproxy._internal import main
        self.server.serve_forever.side_effect = KeyboardInterrupt
        with self.assertLogs(main.logger, level='INFO') as logs:
            self._call()
        assert 'Shutting down' in logs.output[-1]
        self.server.server_close.assert_called_once_with()

    def test_provider_failure(self):
        self.mocks['pick_provider'].side_effect = errors.MisconfigurationError('no key')
        with pytest.raises(errors.MisconfigurationError):
            self._call()
        self.mocks['make_server'].assert_not_called()


class MainTest(unittest.TestCase):
    """Tests for acmeproxy._internal.main.main."""

    def setUp(self):
        self.root_logger = logging.getLogger()
        saved = (list(self.root_logger.handlers), self.root_logger.level, sys.excepthook)

        def restore():
            self.root_logger.handlers, level, sys.excepthook = saved
            self.root_logger.setLevel(level)
        self.addCleanup(restore)

    @mock.patch('acmeproxy._internal.main.serve')
    @mock.patch('acmeproxy._internal.main.plugins_disco.ProvidersRegistry.find_all')
    def test_main(self, mock_find_all, mock_serve):
        from acmeproxy._internal.main import main
        mock_find_all.return_value = {}
        assert main(['--provider', 'exec', '--port', '8443', '--log-level', 'error']) is None
        config, providers = mock_serve.call_args[0]
        assert config.provider == 'exec'
        assert config.port == 8443
        assert providers is mock_find_all.return_value
        assert self.root_logger.level == logging.ERROR

    @mock.patch('acmeproxy._internal.main.serve')
    @mock.patch('acmeproxy._internal.main.plugins_disco.ProvidersRegistry.find_all')
    def test_bad_configuration(self, mock_find_all, mock_serve):
        from acmeproxy._internal.main import main
        mock_find_all.return_value = {}
        with mock.patch.dict(os.environ, {}):
            os.environ.pop('ACMEPROXY_PROVIDER', None)
            with pytest.raises(errors.ConfigurationError):
                main(['--port', '8443'])
        mock_serve.assert_not_called()

    @mock.patch('acmeproxy._internal.main.main')
    def test_public_main(self, mock_main):
        from acmeproxy.main import main
        assert main(['--help']) is mock_main.return_value
        mock_main.assert_called_once_with(['--help'])


if __name__ == "__main__":
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
