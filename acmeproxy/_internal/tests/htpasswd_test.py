"""Tests for acmeproxy._internal.htpasswd."""
import base64
import hashlib
import os
import sys
import unittest

import bcrypt
import pytest

from acmeproxy import errors
from acmeproxy import interfaces
from acmeproxy._internal.tests import util as test_util


def bcrypt_secret(password, prefix='$2b$'):
    secret = bcrypt.hashpw(password.encode(), bcrypt.gensalt(4)).decode()
    return prefix + secret[4:]


def sha_secret(password):
    return '{SHA}' + base64.b64encode(hashlib.sha1(password.encode()).digest()).decode()


class CheckSecretTest(unittest.TestCase):
    """Tests for acmeproxy._internal.htpasswd.check_secret."""

    @classmethod
    def _call(cls, password, secret):
        from acmeproxy._internal.htpasswd import check_secret
        return check_secret(password, secret)

    def test_bcrypt(self):
        for prefix in ('$2a$', '$2b$', '$2y$'):
            secret = bcrypt_secret('secret', prefix)
            assert self._call('secret', secret)
            assert not self._call('Secret', secret)

    def test_bcrypt_long_password(self):
        password = 'x' * 72
        secret = bcrypt_secret(password)
        assert self._call(password, secret)
        assert self._call(password + 'ignored', secret)
        assert not self._call('y' + password[1:] + 'ignored', secret)

    def test_sha(self):
        assert self._call('secret', sha_secret('secret'))
        assert not self._call('other', sha_secret('secret'))

    def test_unsupported(self):
        assert not self._call('secret', 'secret')
        assert not self._call('secret', '$apr1$abc$def')
        assert not self._call('secret', '$2y$garbage')


class ParseTest(unittest.TestCase):
    """Tests for acmeproxy._internal.htpasswd.parse."""

    def test_parse(self):
        from acmeproxy._internal import htpasswd
        text = '\n'.join([
            '# comment',
            '',
            'alice:' + sha_secret('a'),
            'no-separator',
            ':' + sha_secret('b'),
            'carol:$apr1$salt$hash',
            'dave:plain',
        ])
        with self.assertLogs(htpasswd.logger, level='WARNING') as logs:
            entries = htpasswd.parse(text, 'test')
        assert entries == {'alice': sha_secret('a')}
        assert len(logs.output) == 4


class HtpasswdCredentialStoreTest(test_util.TempDirTestCase):
    """Tests for acmeproxy._internal.htpasswd.HtpasswdCredentialStore."""

    def setUp(self):
        super().setUp()
        self.path = os.path.join(self.tempdir, 'htpasswd')
        self._write('lego:{0}\nacme:{1}\n'.format(
            bcrypt_secret('secret', '$2y$'), sha_secret('hunter2')))

    def _write(self, text, mtime=None):
        with open(self.path, 'w') as htpasswd:
            htpasswd.write(text)
        if mtime is not None:
            os.utime(self.path, (mtime, mtime))

    def _store(self):
        from acmeproxy._internal.htpasswd import HtpasswdCredentialStore
        return HtpasswdCredentialStore(self.path)

    def test_validate(self):
        store = self._store()
        assert store.validate(interfaces.Credentials('lego', 'secret')) == (True, 'lego')
        assert store.validate(interfaces.Credentials('acme', 'hunter2')) == (True, 'acme')
        assert store.validate(interfaces.Credentials('lego', 'hunter2')) == (False, None)
        assert store.validate(interfaces.Credentials('nobody', 'secret')) == (False, None)

    def test_reload(self):
        self._write('lego:' + sha_secret('old'), mtime=1000000)
        store = self._store()
        assert store.validate(interfaces.Credentials('lego', 'old'))[0]

        self._write('lego:' + sha_secret('new'), mtime=2000000)
        assert store.validate(interfaces.Credentials('lego', 'new'))[0]
        assert not store.validate(interfaces.Credentials('lego', 'old'))[0]

    def test_keeps_users_when_file_disappears(self):
        store = self._store()
        os.remove(self.path)
        assert store.validate(interfaces.Credentials('acme', 'hunter2')) == (True, 'acme')

    def test_missing_file(self):
        os.remove(self.path)
        with pytest.raises(errors.ConfigurationError):
            self._store()


if __name__ == "__main__":
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
