"""Providers delegating to an external program.

The program named by ``EXEC_PATH`` is run once per action, with the
action as first argument:

- ``exec``: ``EXEC_PATH present|cleanup <fqdn> <value>``
- ``exec-raw``: ``EXEC_PATH present|cleanup <domain> <token> <keyauth>``

"""
import logging
import os
import subprocess
from typing import Callable
from typing import List
from typing import Tuple

from acmeproxy import errors
from acmeproxy.plugins import common

logger = logging.getLogger(__name__)


def exe_exists(exe: str) -> bool:
    """Determine whether path/name refers to an executable.

    :param str exe: Executable path or name

    :returns: If exe is a valid executable
    :rtype: bool

    """
    path, _ = os.path.split(exe)
    if path:
        return os.path.isfile(exe) and os.access(exe, os.X_OK)
    for path in os.environ.get("PATH", os.defpath).split(os.pathsep):
        if exe_exists(os.path.join(path, exe)):
            return True
    return False


def run_script(params: List[str], log: Callable[[str], None] = logger.error
               ) -> Tuple[str, str]:
    """Run the script with the given params.

    :param list params: List of parameters to pass to subprocess.run
    :param callable log: Logger method to use for errors

    :returns: `tuple` of the script's stdout and stderr
    :rtype: tuple

    :raises errors.SubprocessError: if the script cannot be run or fails

    """
    try:
        proc = subprocess.run(params,
                              stdout=subprocess.PIPE,
                              stderr=subprocess.PIPE,
                              universal_newlines=True,
                              check=False)
    except (OSError, ValueError):
        msg = "Unable to run the command: %s" % " ".join(params)
        log(msg)
        raise errors.SubprocessError(msg)

    if proc.returncode != 0:
        msg = "Error while running %s.\n%s\n%s" % (
            " ".join(params), proc.stdout, proc.stderr)
        log(msg)
        raise errors.SubprocessError(msg)

    return proc.stdout, proc.stderr


class _ExecProviderBase(common.Provider):
    settings_prefix = "EXEC"
    required_settings = {"path": "path to the program to run"}

    def prepare(self) -> None:
        super().prepare()
        path = self.conf("path")
        if path and not exe_exists(path):
            raise errors.MisconfigurationError(
                "{0} is not an executable: {1}".format(self.setting_name("path"), path))

    def _run(self, *args: str) -> None:
        params = [self.conf("path") or ""] + list(args)
        stdout, stderr = run_script(params)
        if stdout:
            logger.debug("Output of %s:\n%s", params[0], stdout.rstrip())
        if stderr:
            logger.debug("Error output of %s:\n%s", params[0], stderr.rstrip())


class ExecProvider(_ExecProviderBase, common.RecordProvider):
    """Run an external program with the TXT record to manage."""

    description = "Run a program with the record name and value"

    def create_record(self, fqdn: str, value: str) -> None:
        self._run("present", fqdn, value)

    def remove_record(self, fqdn: str, value: str) -> None:
        self._run("cleanup", fqdn, value)


class RawExecProvider(_ExecProviderBase):
    """Run an external program with the challenge itself."""

    description = "Run a program with the domain, token and key authorization"

    def present(self, domain: str, token: str, keyauth: str) -> None:
        self._run("present", domain, token, keyauth)

    def cleanup(self, domain: str, token: str, keyauth: str) -> None:
        self._run("cleanup", domain, token, keyauth)
