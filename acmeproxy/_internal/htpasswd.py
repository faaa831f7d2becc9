"""Credential store backed by an Apache htpasswd file."""
import base64
import hashlib
import hmac
import logging
import os
import threading
from typing import Dict
from typing import Optional
from typing import Tuple

import bcrypt

from acmeproxy import errors
from acmeproxy import interfaces

logger = logging.getLogger(__name__)

BCRYPT_PREFIXES = ('$2a$', '$2b$', '$2y$')
SHA_PREFIX = '{SHA}'
BCRYPT_MAX_PASSWORD_BYTES = 72


def check_secret(password: str, secret: str) -> bool:
    """Does `password` match the htpasswd `secret`?

    Supports bcrypt (``htpasswd -B``) and SHA-1 (``htpasswd -s``) entries.

    """
    if secret.startswith(BCRYPT_PREFIXES):
        # bcrypt treats $2y$ exactly like $2b$
        normalized = '$2b$' + secret[4:]
        # htpasswd only hashes the first 72 bytes
        truncated = password.encode('utf-8')[:BCRYPT_MAX_PASSWORD_BYTES]
        try:
            return bcrypt.checkpw(truncated, normalized.encode('ascii'))
        except ValueError:
            return False
    if secret.startswith(SHA_PREFIX):
        digest = base64.b64encode(hashlib.sha1(password.encode('utf-8')).digest()).decode()
        return hmac.compare_digest(digest, secret[len(SHA_PREFIX):])
    return False


def parse(text: str, source: str = '<htpasswd>') -> Dict[str, str]:
    """Parse htpasswd `text` into a mapping of user to secret."""
    entries: Dict[str, str] = {}
    for lineno, line in enumerate(text.splitlines(), 1):
        line = line.strip()
        if not line or line.startswith('#'):
            continue
        user, sep, secret = line.partition(':')
        if not sep or not user:
            logger.warning("Ignoring malformed line %d in %s", lineno, source)
            continue
        if not secret.startswith(BCRYPT_PREFIXES + (SHA_PREFIX,)):
            logger.warning("Ignoring user %s in %s: unsupported password hash "
                           "(use htpasswd -B or -s)", user, source)
            continue
        entries[user] = secret
    return entries


class HtpasswdCredentialStore(interfaces.CredentialStore):
    """Credentials from an htpasswd file.

    The file is read again whenever its modification time changes.

    :ivar str path: path to the htpasswd file

    """

    def __init__(self, path: str) -> None:
        self.path = path
        self._lock = threading.Lock()
        self._mtime: Optional[float] = None
        self._entries: Dict[str, str] = {}
        self._reload()

    def _reload(self) -> None:
        try:
            mtime = os.stat(self.path).st_mtime
            if mtime == self._mtime:
                return
            with open(self.path, encoding='utf-8') as htpasswd:
                text = htpasswd.read()
        except (OSError, UnicodeDecodeError) as error:
            raise errors.ConfigurationError(
                "Unable to read htpasswd file {0}: {1}".format(self.path, error))
        self._entries = parse(text, self.path)
        self._mtime = mtime
        logger.debug("Loaded %d user(s) from %s", len(self._entries), self.path)

    def validate(self, credentials: interfaces.Credentials) -> Tuple[bool, Optional[str]]:
        with self._lock:
            try:
                self._reload()
            except errors.ConfigurationError as error:
                logger.error("%s, keeping previously loaded users", error)
            secret = self._entries.get(credentials.username)
        if secret is None or not check_secret(credentials.password, secret):
            return False, None
        return True, credentials.username
