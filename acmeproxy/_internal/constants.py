"""acmeproxy constants."""
import http.client as http_client
import logging
import os
from typing import Any
from typing import Dict

PROVIDERS_ENTRY_POINT = "acmeproxy.providers"
"""Setuptools entry point group name for providers."""

ENV_VAR_PREFIX = "ACMEPROXY_"
"""Prefix of environment variables overriding configuration options."""

DEFAULT_CONFIG_FILE = "/etc/acmeproxy/config.yml"
"""Configuration file read when none is given on the command line."""

DEFAULT_HTPASSWD_FILE = os.path.join("~", ".acmeproxy", "htpasswd")
"""htpasswd file used, if it exists, when none is configured."""

CLI_DEFAULTS: Dict[str, Any] = dict(  # noqa
    config_files=[DEFAULT_CONFIG_FILE],
    interface="",
    port=9095,
    provider=None,
    provider_credentials=None,
    htpasswd_file=None,
    allowed_domains=[],
    allowed_ips=[],
    auth_first=False,
    accesslog_file="",
    log_level="info",
    log_timestamp=False,
    log_forcecolors=False,
    ssl=None,
    ssl_manual_cert_file="",
    ssl_manual_key_file="",
    ssl_auto_path="/etc/letsencrypt/live",
    ssl_auto_name=None,
    environment=[],
)
"""Defaults for CLI flags and `.NamespaceConfig` attributes."""

SSL_MODES = ("manual", "auto")
"""Accepted values of ``--ssl``."""

LOG_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "panic": logging.CRITICAL,
}
"""Names accepted by ``--log-level``."""

AUTO_CERT_FILE = "fullchain.pem"
"""Certificate file name inside a certbot lineage."""

AUTO_KEY_FILE = "privkey.pem"
"""Private key file name inside a certbot lineage."""

AUTH_REALM = "acmeproxy"
"""Realm announced to callers that fail authentication."""

HEALTH_PATH = "/health"
"""Route answering liveness probes."""

CREDENTIALS_PERMISSIONS_MASK = 0o077
"""Permission bits that should not be set on provider credentials files."""


def status_line(status: int) -> str:
    """WSGI status line for the HTTP `status` code."""
    return "{0} {1}".format(status, http_client.responses.get(status, ""))
