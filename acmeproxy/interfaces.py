"""acmeproxy collaborator interfaces."""
from abc import ABCMeta
from abc import abstractmethod
from typing import NamedTuple
from typing import Optional
from typing import Tuple
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from acmeproxy.configuration import NamespaceConfig


class ChallengeProvider(metaclass=ABCMeta):
    """DNS provider able to present and clean up dns-01 challenges.

    Every provider supports this interface, so raw requests can be relayed
    to any of them. Providers are registered under the
    ``acmeproxy.providers`` entry point group, e.g. (excerpt from
    ``setup.py``)::

      setup(
          ...
          entry_points={
              'acmeproxy.providers': [
                  'name=example_project.provider:Provider',
              ],
          },
      )

    """

    description: str = NotImplemented
    """Short provider description"""

    name: str = NotImplemented
    """Unique name of the provider"""

    @abstractmethod
    def __init__(self, config: Optional['NamespaceConfig'], name: str) -> None:
        """Create a new `ChallengeProvider`.

        :param NamespaceConfig config: Configuration.
        :param str name: Unique provider name.

        """

    @abstractmethod
    def prepare(self) -> None:
        """Prepare the provider.

        Finishes any additional initialization and checks that the
        provider's settings are complete.

        :raises .MisconfigurationError: when settings are missing or invalid
        :raises .PluginError: when the provider cannot be used at all

        """

    @abstractmethod
    def present(self, domain: str, token: str, keyauth: str) -> None:
        """Publish the TXT record proving the challenge for `domain`.

        :param str domain: Domain being validated (no trailing dot).
        :param str token: Challenge token.
        :param str keyauth: Key authorization.

        :raises .PluginError: if the record could not be published

        """

    @abstractmethod
    def cleanup(self, domain: str, token: str, keyauth: str) -> None:
        """Remove the TXT record published by `present`.

        :param str domain: Domain being validated (no trailing dot).
        :param str token: Challenge token.
        :param str keyauth: Key authorization.

        :raises .PluginError: if the record could not be removed

        """


class RecordProvider(ChallengeProvider):
    """Provider that can also manage TXT records directly.

    Only providers implementing this interface accept default requests.

    """

    @abstractmethod
    def create_record(self, fqdn: str, value: str) -> None:
        """Create a TXT record.

        :param str fqdn: Fully-qualified record name (trailing dot).
        :param str value: Record content.

        :raises .PluginError: if the record could not be created

        """

    @abstractmethod
    def remove_record(self, fqdn: str, value: str) -> None:
        """Remove a TXT record created by `create_record`.

        :param str fqdn: Fully-qualified record name (trailing dot).
        :param str value: Record content.

        :raises .PluginError: if the record could not be removed

        """


class Credentials(NamedTuple):
    """Credentials presented by a caller."""
    username: str
    password: str


class CredentialStore(metaclass=ABCMeta):
    """Store validating caller credentials."""

    @abstractmethod
    def validate(self, credentials: Credentials) -> Tuple[bool, Optional[str]]:
        """Check `credentials`.

        :returns: `tuple` of whether the caller is authenticated and the
            authenticated principal (or `None`)
        :rtype: tuple

        """


class AccessLogSink(metaclass=ABCMeta):
    """Append-only destination of access log lines."""

    @abstractmethod
    def write(self, line: str) -> None:
        """Append `line` to the access log."""
