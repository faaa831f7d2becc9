"""Logging utilities for acmeproxy.

`setup_logging` installs a single `ColoredStreamHandler` on the root
logger, writing to stderr at the level chosen with ``--log-level``, and
an except hook reporting fatal errors through that handler.

Request-scoped messages go through a `RequestLogAdapter`, which prefixes
them with the action and the caller's address.

The access log is not part of this setup: it is a separate,
non-propagating logger owned by `.FileAccessLogSink`.

"""
import functools
import logging
import sys
import traceback
from types import TracebackType
from typing import Any
from typing import IO
from typing import MutableMapping
from typing import Optional
from typing import Tuple
from typing import Type

from acmeproxy import configuration
from acmeproxy import errors
from acmeproxy._internal import constants

# Logging format
CLI_FMT = "%(levelname)s %(message)s"
TIMESTAMP_FMT = "%(asctime)s %(levelname)s %(message)s"
DATE_FMT = "%Y/%m/%d %H:%M:%S"

ANSI_SGR_RED = "\033[31m"
ANSI_SGR_YELLOW = "\033[33m"
ANSI_SGR_RESET = "\033[0m"

logger = logging.getLogger(__name__)


def pre_arg_parse_setup() -> None:
    """Log to stderr until the configuration is known.

    Errors found while parsing the configuration are reported on stderr
    at the default level. `setup_logging` replaces this setup.

    """
    handler = ColoredStreamHandler()
    handler.setFormatter(logging.Formatter(CLI_FMT))
    handler.setLevel(logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    root_logger.addHandler(handler)
    sys.excepthook = functools.partial(except_hook, debug=False)


def setup_logging(config: configuration.NamespaceConfig,
                  stream: Optional[IO] = None) -> logging.Handler:
    """Setup terminal logging as configured.

    :param acmeproxy.configuration.NamespaceConfig config: Configuration object
    :param stream: stream to log to, stderr by default

    :returns: the installed handler
    :rtype: ColoredStreamHandler

    """
    handler = ColoredStreamHandler(stream, force_colors=config.log_forcecolors)
    handler.setFormatter(logging.Formatter(
        TIMESTAMP_FMT if config.log_timestamp else CLI_FMT, datefmt=DATE_FMT))
    level = constants.LOG_LEVELS[config.log_level]
    handler.setLevel(level)

    root_logger = logging.getLogger()
    for old_handler in [h for h in root_logger.handlers
                        if isinstance(h, ColoredStreamHandler)]:
        root_logger.removeHandler(old_handler)
    root_logger.setLevel(level)
    root_logger.addHandler(handler)
    logger.debug("Root logging level set at %d", level)

    sys.excepthook = functools.partial(except_hook, debug=level <= logging.DEBUG)
    return handler


class ColoredStreamHandler(logging.StreamHandler):
    """Stream handler coloring warnings yellow and errors red.

    Colors are only used when the stream is a terminal, unless
    ``force_colors`` is set (``--log-forcecolors``).

    :ivar bool colored: whether output is colored
    :ivar int red_level: lowest level printed in red
    :ivar int yellow_level: lowest level printed in yellow

    """
    def __init__(self, stream: Optional[IO] = None, force_colors: bool = False) -> None:
        super().__init__(stream)
        self.colored = force_colors or (sys.stderr.isatty() if stream is None else
                                        stream.isatty())
        self.red_level = logging.ERROR
        self.yellow_level = logging.WARNING

    def format(self, record: logging.LogRecord) -> str:
        """Format `record`, wrapped in color codes when coloring is on."""
        out = super().format(record)
        if not self.colored:
            return out
        if record.levelno >= self.red_level:
            return ''.join((ANSI_SGR_RED, out, ANSI_SGR_RESET))
        if record.levelno >= self.yellow_level:
            return ''.join((ANSI_SGR_YELLOW, out, ANSI_SGR_RESET))
        return out


class RequestLogAdapter(logging.LoggerAdapter):
    """Prefixes messages with the request they belong to.

    The adapter's ``extra`` must contain a ``prefix`` key, typically
    ``"<action>: <client ip>"``.

    """
    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        return '[{0}] {1}'.format(self.extra['prefix'], msg), kwargs


def except_hook(exc_type: Type[BaseException], exc_value: BaseException,
                trace: Optional[TracebackType], debug: bool = False) -> None:
    """Report an exception that stopped acmeproxy, then exit with status 1.

    acmeproxy errors only show their message and other exceptions their
    one-line summary, unless `debug` is set, in which case the traceback
    is logged too.

    :param type exc_type: exception class
    :param BaseException exc_value: exception
    :param traceback trace: traceback of the exception
    :param bool debug: whether to log the traceback

    """
    exc_info = (exc_type, exc_value, trace)
    if exc_type is KeyboardInterrupt:
        logger.error('Exiting due to user request.')
        sys.exit(1)
    if debug or not issubclass(exc_type, Exception):
        logger.error('Exiting abnormally:', exc_info=exc_info)
        sys.exit(1)
    logger.debug('Exiting abnormally:', exc_info=exc_info)
    if issubclass(exc_type, errors.Error):
        logger.error(str(exc_value))
        sys.exit(1)
    logger.error('An unexpected error occurred:')
    output = traceback.format_exception_only(exc_type, exc_value)
    # format_exception_only returns a list of strings each terminated
    # by a newline.
    logger.error(''.join(output).rstrip())
    sys.exit(1)
