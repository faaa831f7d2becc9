"""Authorization of requested domains against allowed-domains."""
import logging
from typing import Iterable
from typing import Sequence
from typing import Tuple

from acmeproxy import dns01
from acmeproxy import errors

logger = logging.getLogger(__name__)


def _canonical(domain: str) -> str:
    return dns01.un_fqdn(domain.strip()).lower()


def _parent(domain: str) -> str:
    """Domain minus its leftmost label, or ``""`` for a single label."""
    _, _, parent = domain.partition('.')
    return parent


def is_authorized(check_domain: str, allowed_domains: Sequence[str]) -> bool:
    """May `check_domain` be modified?

    `check_domain` is authorized when it equals one of `allowed_domains`,
    or when it is a subdomain of one of them. The match is label-aware:
    ``example.com`` authorizes ``foo.example.com`` but not
    ``evilexample.com``.

    No domain is authorized by an empty list.

    """
    domain = _canonical(check_domain)
    if not domain:
        return False
    parent = _parent(domain)
    for allowed in allowed_domains:
        allowed = _canonical(allowed)
        if not allowed:
            continue
        if domain == allowed:
            return True
        if parent and (parent == allowed or parent.endswith('.' + allowed)):
            return True
    return False


class DomainAllowList:
    """Immutable set of allowed domain suffixes.

    :ivar tuple domains: allowed domains, in configuration order

    """

    def __init__(self, domains: Iterable[str]) -> None:
        self._domains: Tuple[str, ...] = tuple(
            _canonical(domain) for domain in domains if _canonical(domain))

    @property
    def domains(self) -> Tuple[str, ...]:
        """Allowed domains."""
        return self._domains

    def __bool__(self) -> bool:
        return bool(self._domains)

    def __repr__(self) -> str:
        return '{0}({1!r})'.format(type(self).__name__, list(self._domains))

    def is_authorized(self, check_domain: str) -> bool:
        """See `is_authorized`."""
        return is_authorized(check_domain, self._domains)

    def authorize(self, check_domain: str) -> None:
        """Raise unless `check_domain` is authorized.

        :raises errors.InvalidDomainFormat: if `check_domain` is empty, or
            has a single label and is not explicitly allowed
        :raises errors.NotAuthorizedDomain: if `check_domain` is not
            covered by any allowed domain

        """
        domain = _canonical(check_domain)
        if self.is_authorized(domain):
            return
        if not domain or not _parent(domain):
            logger.debug("Requested domain %r has an invalid format", check_domain)
            raise errors.InvalidDomainFormat()
        logger.debug("Requested domain %s not in allowed-domains %s",
                     domain, ", ".join(self._domains))
        raise errors.NotAuthorizedDomain()
