"""Tests for acmeproxy._internal.accesslog."""
import logging
import os
import sys

import pytest

from acmeproxy import errors
from acmeproxy._internal.tests import util as test_util


class FileAccessLogSinkTest(test_util.TempDirTestCase):
    """Tests for acmeproxy._internal.accesslog.FileAccessLogSink."""

    def setUp(self):
        super().setUp()
        self.path = os.path.join(self.tempdir, 'access.log')

    def _sink(self, path=None):
        from acmeproxy._internal.accesslog import FileAccessLogSink
        sink = FileAccessLogSink(path or self.path, 'acmeproxy.access.test')
        self.addCleanup(sink.close)
        return sink

    def test_write(self):
        sink = self._sink()
        sink.write('first')
        sink.write('second')
        sink.handler.flush()
        with open(self.path) as log:
            assert log.read() == 'first\nsecond\n'

    def test_append(self):
        with open(self.path, 'w') as log:
            log.write('old\n')
        sink = self._sink()
        sink.write('new')
        sink.handler.flush()
        with open(self.path) as log:
            assert log.read() == 'old\nnew\n'

    def test_not_propagated(self):
        sink = self._sink()
        assert not sink.logger.propagate
        with self.assertLogs('acmeproxy', level='INFO') as logs:
            logging.getLogger('acmeproxy').info('marker')
            sink.write('access line')
        assert all('access line' not in line for line in logs.output)

    def test_close(self):
        sink = self._sink()
        sink.close()
        assert sink.handler not in sink.logger.handlers

    def test_unwritable(self):
        with pytest.raises(errors.ConfigurationError):
            self._sink(os.path.join(self.tempdir, 'missing', 'access.log'))


if __name__ == "__main__":
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
