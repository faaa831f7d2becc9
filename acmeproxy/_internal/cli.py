"""acmeproxy command line argument & config processing.

Every option can be given on the command line, as an ``ACMEPROXY_*``
environment variable or as a key of the YAML configuration file, in
decreasing order of precedence. Options whose historical name contains
dots (``ssl.manual.cert-file``) are also accepted with dashes
(``--ssl-manual-cert-file``), which is the form the environment variable
name is derived from.

"""
import argparse
import logging
from typing import Any
from typing import Iterable
from typing import List
from typing import Optional

import configargparse

import acmeproxy
from acmeproxy._internal import constants

logger = logging.getLogger(__name__)


def flag_default(name: str) -> Any:
    """Default value for CLI flag."""
    return constants.CLI_DEFAULTS[name]


def _option_strings(*names: str) -> List[str]:
    """Option strings for a dashed name and its dotted YAML alias."""
    return ["--" + name for name in names]


def build_parser(providers: Iterable[str] = ()) -> configargparse.ArgParser:
    """Create the argument parser.

    :param providers: names of the installed providers, for help output

    """
    parser = configargparse.ArgParser(
        prog="acmeproxy",
        description="Relay ACME dns-01 challenges to a DNS provider.",
        config_file_parser_class=configargparse.YAMLConfigFileParser,
        args_for_setting_config_path=["-c", "--config-file"],
        default_config_files=flag_default("config_files"),
        config_arg_help_message="path to config file (default: {0})".format(
            " and ".join(flag_default("config_files"))),
        auto_env_var_prefix=constants.ENV_VAR_PREFIX,
        ignore_unknown_config_file_keys=True)

    parser.add_argument(
        "--version", action="version",
        version="%(prog)s {0}".format(acmeproxy.__version__))

    server = parser.add_argument_group("server")
    server.add_argument(
        "-i", "--interface", default=flag_default("interface"),
        help="Interface (ip or host) to bind for requests")
    server.add_argument(
        "--port", type=int, default=flag_default("port"),
        help="Port to bind for requests (default: %(default)s)")

    provider_names = ", ".join(sorted(providers)) or "none installed"
    provider = parser.add_argument_group("provider")
    provider.add_argument(
        "-p", "--provider", default=flag_default("provider"),
        help="DNS challenge provider ({0})".format(provider_names))
    provider.add_argument(
        "--provider-credentials", default=flag_default("provider_credentials"),
        metavar="FILE",
        help="INI file with provider settings, overriding environment variables")
    provider.add_argument(
        "--environment", action="append", default=flag_default("environment"),
        metavar="KEY=VALUE",
        help="Environment variable to set before loading the provider "
             "(may be repeated)")

    security = parser.add_argument_group("security")
    security.add_argument(
        "--htpasswd-file", default=flag_default("htpasswd_file"), metavar="FILE",
        help="htpasswd file for username/password authentication (default: {0} "
             "if it exists, empty to disable)".format(constants.DEFAULT_HTPASSWD_FILE))
    security.add_argument(
        "--allowed-domains", action="append", default=flag_default("allowed_domains"),
        metavar="DOMAIN",
        help="Domain that certificates can be requested for, including its "
             "subdomains (may be repeated)")
    security.add_argument(
        "--allowed-ips", action="append", default=flag_default("allowed_ips"),
        metavar="IP",
        help="Address or CIDR network allowed to call the relay (may be repeated)")
    security.add_argument(
        "--auth-first", action="store_true", default=flag_default("auth_first"),
        help="Authenticate callers before checking allowed-ips")

    logs = parser.add_argument_group("logging")
    logs.add_argument(
        "--accesslog-file", default=flag_default("accesslog_file"), metavar="FILE",
        help="Location of additional access log file")
    logs.add_argument(
        "--log-level", default=flag_default("log_level"), type=str.lower,
        metavar="LEVEL",
        help="Log level ({0})".format("|".join(constants.LOG_LEVELS)))
    logs.add_argument(
        "--log-timestamp", action="store_true", default=flag_default("log_timestamp"),
        help="Output date/time on standard output log")
    logs.add_argument(
        "--log-forcecolors", action="store_true", default=flag_default("log_forcecolors"),
        help="Force colors on output, even when there is no TTY")

    tls = parser.add_argument_group("tls")
    tls.add_argument(
        "-s", "--ssl", default=flag_default("ssl"), choices=constants.SSL_MODES,
        help="Serve HTTPS: 'manual' with the given files, 'auto' from a "
             "certbot lineage")
    tls.add_argument(
        *_option_strings("ssl-manual-cert-file", "ssl.manual.cert-file"),
        dest="ssl_manual_cert_file", default=flag_default("ssl_manual_cert_file"),
        metavar="FILE", help="Certificate file (with --ssl manual)")
    tls.add_argument(
        *_option_strings("ssl-manual-key-file", "ssl.manual.key-file"),
        dest="ssl_manual_key_file", default=flag_default("ssl_manual_key_file"),
        metavar="FILE", help="Key file (with --ssl manual)")
    tls.add_argument(
        *_option_strings("ssl-auto-path", "ssl.auto.path"),
        dest="ssl_auto_path", default=flag_default("ssl_auto_path"), metavar="PATH",
        help="certbot live directory (with --ssl auto, default: %(default)s)")
    tls.add_argument(
        *_option_strings("ssl-auto-name", "ssl.auto.name"),
        dest="ssl_auto_name", default=flag_default("ssl_auto_name"), metavar="NAME",
        help="certbot lineage name (with --ssl auto, default: --interface)")

    return parser


def prepare_and_parse_args(args: List[str], providers: Iterable[str] = (),
                           parser: Optional[configargparse.ArgParser] = None
                           ) -> argparse.Namespace:
    """Returns parsed command line arguments.

    :param list args: command line arguments with the program name removed
    :param providers: names of the installed providers

    :returns: parsed command line arguments
    :rtype: argparse.Namespace

    """
    parser = parser or build_parser(providers)
    namespace = parser.parse_args(args)
    logger.debug("Parsed arguments: %s", namespace)
    return namespace
