"""Tests for acmeproxy._internal.dispatcher."""
import sys
import unittest

import pytest

from acmeproxy import dns01
from acmeproxy import errors
from acmeproxy._internal.tests import util as test_util
from acmeproxy.messages import Action
from acmeproxy.messages import DefaultRequest
from acmeproxy.messages import Mode
from acmeproxy.messages import RawRequest


class DispatchTest(unittest.TestCase):
    """Tests for acmeproxy._internal.dispatcher.dispatch."""

    def setUp(self):
        self.default = DefaultRequest(fqdn='_acme-challenge.a.example.com.', value='v')
        self.raw = RawRequest(domain='a.example.com', token='t', keyauth='k')

    @classmethod
    def _call(cls, *args, **kwargs):
        from acmeproxy._internal.dispatcher import dispatch
        return dispatch(*args, **kwargs)

    def test_default_present(self):
        provider = test_util.FakeRecordProvider()
        assert self._call(Action.PRESENT, self.default, provider) is self.default
        assert provider.calls == [('create_record', '_acme-challenge.a.example.com.', 'v')]

    def test_default_cleanup(self):
        provider = test_util.FakeRecordProvider()
        self._call('cleanup', self.default, provider)
        assert provider.calls == [('remove_record', '_acme-challenge.a.example.com.', 'v')]

    def test_default_unsupported(self):
        provider = test_util.FakeProvider()
        with pytest.raises(errors.UnsupportedMode):
            self._call(Action.PRESENT, self.default, provider)
        assert provider.calls == []

    def test_raw_present(self):
        provider = test_util.FakeProvider()
        assert self._call(Action.PRESENT, self.raw, provider) is self.raw
        assert provider.calls == [('present', 'a.example.com', 't', 'k')]

    def test_raw_cleanup_on_record_provider(self):
        provider = test_util.FakeRecordProvider()
        self._call(Action.CLEANUP, self.raw, provider)
        assert provider.calls == [('cleanup', 'a.example.com', 't', 'k')]

    def test_unknown_action(self):
        provider = test_util.FakeRecordProvider()
        with pytest.raises(errors.UnsupportedAction):
            self._call('delete', self.default, provider)
        assert provider.calls == []
        assert errors.UnsupportedAction().status == 500

    def test_backend_failure(self):
        cause = RuntimeError('secret backend detail')
        provider = test_util.FakeRecordProvider(error=cause)
        with pytest.raises(errors.BackendOperationFailed) as raised:
            self._call(Action.PRESENT, self.default, provider, 'fake')
        error = raised.value
        assert error.cause is cause
        assert error.action is Action.PRESENT
        assert error.mode is Mode.DEFAULT
        assert error.status == 500
        assert error.message == 'Failed to update TXT record'
        assert 'secret backend detail' in str(error)
        # called once, never retried
        assert len(provider.calls) == 1

    def test_backend_failure_raw(self):
        provider = test_util.FakeProvider(error=ValueError('nope'))
        with pytest.raises(errors.BackendOperationFailed) as raised:
            self._call(Action.CLEANUP, self.raw, provider)
        assert raised.value.mode is Mode.RAW

    def test_raw_logs_record(self):
        from acmeproxy._internal import dispatcher
        provider = test_util.FakeProvider()
        fqdn, value = dns01.get_record('a.example.com', 'k')
        with self.assertLogs(dispatcher.logger, level='DEBUG') as logs:
            self._call(Action.PRESENT, self.raw, provider, 'fake')
        output = '\n'.join(logs.output)
        assert fqdn in output
        assert value in output


if __name__ == "__main__":
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
