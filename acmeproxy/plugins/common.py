"""Provider common functions."""
from abc import ABCMeta
import logging
import os
import stat
from typing import Callable
from typing import Mapping
from typing import Optional

import configobj

from acmeproxy import configuration
from acmeproxy import dns01
from acmeproxy import errors
from acmeproxy import interfaces
from acmeproxy._internal import constants

logger = logging.getLogger(__name__)


class Provider(interfaces.ChallengeProvider, metaclass=ABCMeta):
    """Generic provider.

    Settings are looked up in the ``--provider-credentials`` file first,
    then in environment variables. Both use the same names, built from
    `settings_prefix` and the setting key, e.g. ``EXEC_PATH``.

    """

    settings_prefix: str = NotImplemented
    """Prefix of the names of this provider's settings"""

    required_settings: Mapping[str, str] = {}
    """Settings that must be set, mapped to their description"""

    def __init__(self, config: Optional[configuration.NamespaceConfig], name: str) -> None:
        super().__init__(config, name)
        self.config = config
        self.name = name
        self.credentials: Optional[CredentialsConfiguration] = None

    def setting_name(self, key: str) -> str:
        """Name of setting ``key`` (include provider prefix)."""
        return "{0}_{1}".format(self.settings_prefix, key.upper().replace("-", "_"))

    def conf(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Find a configuration value for setting ``key``."""
        if self.credentials is not None:
            value = self.credentials.conf(key)
            if value:
                return value
        return os.environ.get(self.setting_name(key), default)

    def prepare(self) -> None:
        path = self.config.provider_credentials_path if self.config is not None else None
        if path:
            self.credentials = CredentialsConfiguration(path, self.setting_name)

        missing = ['"{0}" (should be {1})'.format(self.setting_name(key), description)
                   for key, description in self.required_settings.items()
                   if not self.conf(key)]
        if missing:
            raise errors.MisconfigurationError(
                "Missing {0} for provider {1}:\n * {2}".format(
                    "setting" if len(missing) == 1 else "settings",
                    self.name, "\n * ".join(missing)))

    def __repr__(self) -> str:
        return "{0}({1!r})".format(type(self).__name__, self.name)


class RecordProvider(Provider, interfaces.RecordProvider, metaclass=ABCMeta):
    """Provider managing TXT records directly.

    Challenges are served by computing their record with
    `acmeproxy.dns01.get_record`.

    """

    def present(self, domain: str, token: str, keyauth: str) -> None:
        self.create_record(*dns01.get_record(domain, keyauth))

    def cleanup(self, domain: str, token: str, keyauth: str) -> None:
        self.remove_record(*dns01.get_record(domain, keyauth))


class CredentialsConfiguration:
    """Provider settings read from an INI file (``--provider-credentials``).

    Keys are the same names as the environment variables they override,
    e.g. ``HTTPREQ_ENDPOINT = https://...``.

    :ivar confobj: parsed file
    :type confobj: configobj.ConfigObj

    """

    def __init__(self, filename: str, mapper: Callable[[str], str] = lambda x: x) -> None:
        """
        :param str filename: path of the INI file
        :param callable mapper: turns a setting key into its name in the file
        :raises errors.PluginError: if the file is missing or cannot be parsed
        """
        validate_file_permissions(filename)

        try:
            self.confobj = configobj.ConfigObj(filename)
        except configobj.ConfigObjError as error:
            logger.debug("Unable to parse provider credentials %s: %s",
                         filename, error, exc_info=True)
            raise errors.PluginError(
                "Unable to parse provider credentials {0}: {1}".format(filename, error))

        self.mapper = mapper

    def conf(self, key: str) -> Optional[str]:
        """Value of setting `key`, or `None` if the file does not set it."""
        return self.confobj.get(self.mapper(key))


def validate_file(filename: str) -> None:
    """Raise `errors.PluginError` unless `filename` is an existing file."""
    if not os.path.exists(filename):
        raise errors.PluginError("File not found: {0}".format(filename))
    if os.path.isdir(filename):
        raise errors.PluginError("Path is a directory: {0}".format(filename))


def validate_file_permissions(filename: str) -> None:
    """Like `validate_file`, warning when group or others may access the file."""
    validate_file(filename)

    mode = stat.S_IMODE(os.stat(filename).st_mode)
    if mode & constants.CREDENTIALS_PERMISSIONS_MASK:
        logger.warning("Provider credentials file %s is accessible by other users "
                       "(mode %o), consider chmod 600", filename, mode)
