"""DNS-01 naming helpers."""
import hashlib
from typing import Tuple

import josepy as jose

from acme import challenges


def to_fqdn(name: str) -> str:
    """Return `name` terminated by a dot.

    An empty name stays empty.

    """
    if not name or name.endswith('.'):
        return name
    return name + '.'


def un_fqdn(name: str) -> str:
    """Return `name` without its terminating dot."""
    if name.endswith('.'):
        return name[:-1]
    return name


def get_record(domain: str, key_authorization: str) -> Tuple[str, str]:
    """Compute the TXT record that proves a dns-01 challenge.

    :param str domain: Domain being validated.
    :param str key_authorization: Key authorization of the challenge.

    :returns: `tuple` of the record name (fully-qualified) and its content
    :rtype: tuple

    """
    fqdn = to_fqdn('{0}.{1}'.format(challenges.DNS01.LABEL, un_fqdn(domain)))
    value = jose.b64encode(
        hashlib.sha256(key_authorization.encode('utf-8')).digest()).decode()
    return fqdn, value
