"""acmeproxy main entry point."""
import logging
import os
import sys
from typing import List
from typing import Optional
from typing import Union

import acmeproxy
from acmeproxy import configuration
from acmeproxy._internal import cli
from acmeproxy._internal import log
from acmeproxy._internal import pipeline
from acmeproxy._internal import server as proxy_server
from acmeproxy._internal.plugins import disco as plugins_disco

logger = logging.getLogger(__name__)


def export_environment(config: configuration.NamespaceConfig) -> None:
    """Export ``--environment`` entries for the provider to read."""
    for key, value in config.environment_variables.items():
        logger.debug("Setting environment variable %s", key)
        os.environ[key] = value


def serve(config: configuration.NamespaceConfig,
          providers: plugins_disco.ProvidersRegistry) -> None:
    """Prepare the configured provider and serve requests until interrupted.

    :param config: Configuration object
    :param providers: installed providers

    """
    export_environment(config)
    provider = plugins_disco.pick_provider(config, providers)
    app = pipeline.build_app(config, provider)

    server = proxy_server.make_server(config, app)
    host, port = server.socket.getsockname()[:2]
    logger.info("acmeproxy %s listening on %s://%s:%s",
                acmeproxy.__version__, server.scheme, config.interface or host, port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        server.server_close()


def main(cli_args: Optional[List[str]] = None) -> Optional[Union[str, int]]:
    """Run acmeproxy.

    :param cli_args: command line to acmeproxy, defaults to ``sys.argv[1:]``
    :type cli_args: `list` of `str`

    :returns: value for `sys.exit` about the exit status of acmeproxy
    :rtype: `str` or `int` or `None`

    """
    if cli_args is None:
        cli_args = sys.argv[1:]

    log.pre_arg_parse_setup()

    providers = plugins_disco.ProvidersRegistry.find_all()
    logger.debug("acmeproxy version: %s", acmeproxy.__version__)
    logger.debug("Discovered providers: %r", providers)

    # note: arg parser internally handles --help (and exits afterwards)
    args = cli.prepare_and_parse_args(cli_args, providers)
    config = configuration.NamespaceConfig(args)
    log.setup_logging(config)

    serve(config, providers)
    return None
