"""acmeproxy user-supplied configuration."""
import argparse
import ipaddress
import os
from typing import Any
from typing import Dict
from typing import Iterable
from typing import List
from typing import Optional
from typing import Tuple

from acmeproxy import errors
from acmeproxy._internal import constants


def _split_list(values: Optional[Iterable[str]]) -> Tuple[str, ...]:
    """Flatten repeated and comma-separated option values."""
    result: List[str] = []
    for value in values or ():
        result.extend(item.strip() for item in str(value).split(',') if item.strip())
    return tuple(result)


class NamespaceConfig:
    """Configuration wrapper around :class:`argparse.Namespace`.

    List options (``allowed_domains``, ``allowed_ips``) may be given
    several times or as comma-separated values; the properties below
    return them flattened. Paths are resolved with `os.path.expanduser`.

    :ivar namespace: Namespace typically produced by
        :meth:`argparse.ArgumentParser.parse_args`.
    :type namespace: :class:`argparse.Namespace`

    """

    def __init__(self, namespace: argparse.Namespace) -> None:
        self.namespace: argparse.Namespace
        # Avoid recursion loop because of the delegation defined in __setattr__
        object.__setattr__(self, 'namespace', namespace)

        # Check command line parameters sanity, and error out in case of problem.
        _check_config_sanity(self)

    def to_dict(self) -> Dict[str, Any]:
        """
        Returns a dictionary mapping all argument names to their values
        """
        return vars(self.namespace)

    # Delegate any attribute not explicitly defined to the underlying namespace object.

    def __getattr__(self, name: str) -> Any:
        return getattr(self.namespace, name)

    def __setattr__(self, name: str, value: Any) -> None:
        setattr(self.namespace, name, value)

    @property
    def allowed_domains(self) -> Tuple[str, ...]:
        """Domains (and their subdomains) that may be modified."""
        return _split_list(self.namespace.allowed_domains)

    @property
    def allowed_ips(self) -> Tuple[str, ...]:
        """Addresses and networks allowed to call the relay."""
        return _split_list(self.namespace.allowed_ips)

    @property
    def htpasswd_path(self) -> Optional[str]:
        """htpasswd file to authenticate callers with, if any.

        An unset option falls back to
        `~acmeproxy._internal.constants.DEFAULT_HTPASSWD_FILE` when that
        file exists. An empty option disables authentication.

        """
        path = self.namespace.htpasswd_file
        if path is None:
            default = os.path.expanduser(constants.DEFAULT_HTPASSWD_FILE)
            return default if os.path.isfile(default) else None
        if not path:
            return None
        return os.path.abspath(os.path.expanduser(path))

    @property
    def accesslog_path(self) -> Optional[str]:
        """Access log file, or `None` when access logging is disabled."""
        if not self.namespace.accesslog_file:
            return None
        return os.path.abspath(os.path.expanduser(self.namespace.accesslog_file))

    @property
    def provider_credentials_path(self) -> Optional[str]:
        """INI file holding provider settings, if any."""
        if not self.namespace.provider_credentials:
            return None
        return os.path.abspath(os.path.expanduser(self.namespace.provider_credentials))

    @property
    def ssl_auto_lineage(self) -> str:
        """Name of the certbot lineage used for automatic TLS."""
        return self.namespace.ssl_auto_name or self.namespace.interface

    @property
    def ssl_cert_path(self) -> Optional[str]:
        """Certificate (chain) file served over TLS."""
        if self.namespace.ssl == 'manual':
            return os.path.expanduser(self.namespace.ssl_manual_cert_file)
        if self.namespace.ssl == 'auto':
            return os.path.join(os.path.expanduser(self.namespace.ssl_auto_path),
                                self.ssl_auto_lineage, constants.AUTO_CERT_FILE)
        return None

    @property
    def ssl_key_path(self) -> Optional[str]:
        """Private key file matching `ssl_cert_path`."""
        if self.namespace.ssl == 'manual':
            return os.path.expanduser(self.namespace.ssl_manual_key_file)
        if self.namespace.ssl == 'auto':
            return os.path.join(os.path.expanduser(self.namespace.ssl_auto_path),
                                self.ssl_auto_lineage, constants.AUTO_KEY_FILE)
        return None

    @property
    def environment_variables(self) -> Dict[str, str]:
        """``KEY=VALUE`` pairs to export before providers are loaded."""
        variables = {}
        for entry in self.namespace.environment or ():
            key, _, value = entry.partition('=')
            variables[key.strip()] = value
        return variables


def _check_config_sanity(config: NamespaceConfig) -> None:
    """Validate command line options and display error message if
    requirements are not met.

    :param config: NamespaceConfig instance holding user configuration
    :type args: :class:`acmeproxy.configuration.NamespaceConfig`

    """
    if not config.namespace.provider:
        raise errors.ConfigurationError("No provider specified, use --provider")

    if not 0 <= config.namespace.port <= 65535:
        raise errors.ConfigurationError(
            "Invalid port {0}".format(config.namespace.port))

    if config.namespace.log_level not in constants.LOG_LEVELS:
        raise errors.ConfigurationError(
            "Unknown log level {0}, expected one of: {1}".format(
                config.namespace.log_level, ", ".join(constants.LOG_LEVELS)))

    # TLS checks
    if config.namespace.ssl not in (None, '') + constants.SSL_MODES:
        raise errors.ConfigurationError(
            "Unknown ssl mode {0}, expected manual or auto".format(config.namespace.ssl))
    if config.namespace.ssl == 'manual' and not (
            config.namespace.ssl_manual_cert_file and config.namespace.ssl_manual_key_file):
        raise errors.ConfigurationError(
            "Manual ssl requires ssl.manual.cert-file and ssl.manual.key-file")
    if config.namespace.ssl == 'auto' and not config.ssl_auto_lineage:
        raise errors.ConfigurationError(
            "Auto ssl requires ssl.auto.name or interface to name the certificate")

    for entry in config.allowed_ips:
        try:
            ipaddress.ip_network(entry, strict=False)
        except ValueError as error:
            raise errors.ConfigurationError(
                "Invalid entry in allowed-ips: {0}".format(error))

    for entry in config.namespace.environment or ():
        key, sep, _ = entry.partition('=')
        if not sep or not key.strip():
            raise errors.ConfigurationError(
                "Invalid environment entry {0!r}, expected KEY=VALUE".format(entry))
