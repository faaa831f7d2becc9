"""Access log sinks."""
import logging
from typing import Optional

from acmeproxy import errors
from acmeproxy import interfaces

ACCESS_LOGGER_NAME = 'acmeproxy.access'


class FileAccessLogSink(interfaces.AccessLogSink):
    """Appends access log lines to a file.

    Lines go through a dedicated, non-propagating logger so they never
    reach the terminal log and writes from concurrent requests are
    serialized by the handler. Write errors are reported by
    `logging.Handler.handleError` and never raised to the caller.

    :ivar str path: path to the access log file

    """

    def __init__(self, path: str, logger_name: Optional[str] = None) -> None:
        self.path = path
        try:
            self.handler = logging.FileHandler(path, mode='a', encoding='utf-8')
        except OSError as error:
            raise errors.ConfigurationError(
                "Unable to open access log file {0}: {1}".format(path, error))
        self.handler.setFormatter(logging.Formatter('%(message)s'))
        self.handler.setLevel(logging.INFO)

        self.logger = logging.getLogger(logger_name or ACCESS_LOGGER_NAME)
        self.logger.propagate = False
        self.logger.setLevel(logging.INFO)
        self.logger.addHandler(self.handler)

    def write(self, line: str) -> None:
        self.logger.info(line)

    def close(self) -> None:
        """Detach and close the file handler."""
        self.logger.removeHandler(self.handler)
        self.handler.close()
