"""Challenge relay messages.

A relay request arrives in one of two shapes, both defined by lego's
``httpreq`` DNS provider:

- default: ``{"fqdn": ..., "value": ...}``, the TXT record itself;
- raw: ``{"domain": ..., "token": ..., "keyauth": ...}``, the challenge
  from which the record is derived.

`normalize` parses a body into the neutral `IncomingMessage`, then
classifies it into a `DefaultRequest` or a `RawRequest`.

"""
import enum
import json
import logging
from typing import Any
from typing import Dict
from typing import Union

import josepy as jose

from acme import challenges
from acmeproxy import dns01
from acmeproxy import errors

logger = logging.getLogger(__name__)


class Mode(enum.Enum):
    """Shape of a relay request."""

    DEFAULT = 'default'
    RAW = 'raw'


class Action(enum.Enum):
    """Challenge lifecycle action requested from the provider."""

    PRESENT = 'present'
    CLEANUP = 'cleanup'


def _decode_str(value: Any) -> str:
    if value is None:
        return ''
    if not isinstance(value, str):
        raise jose.DeserializationError('Expected a string, got {0!r}'.format(value))
    try:
        value.encode('utf-8')
    except UnicodeEncodeError as error:
        raise jose.DeserializationError('Invalid string: {0}'.format(error))
    return value


class IncomingMessage(jose.JSONObjectWithFields):
    """Any relay request, before its shape is known.

    :ivar str fqdn:
    :ivar str value:
    :ivar str domain:
    :ivar str token:
    :ivar str keyauth:

    """
    fqdn: str = jose.field('fqdn', omitempty=True, default='', decoder=_decode_str)
    value: str = jose.field('value', omitempty=True, default='', decoder=_decode_str)
    domain: str = jose.field('domain', omitempty=True, default='', decoder=_decode_str)
    token: str = jose.field('token', omitempty=True, default='', decoder=_decode_str)
    keyauth: str = jose.field('keyauth', omitempty=True, default='', decoder=_decode_str)

    def canonicalize(self) -> 'IncomingMessage':
        """Terminate `fqdn` with a dot and strip the dot from `domain`."""
        return self.update(fqdn=dns01.to_fqdn(self.fqdn),
                           domain=dns01.un_fqdn(self.domain))


class DefaultRequest(jose.JSONObjectWithFields):
    """Request naming the TXT record directly.

    :ivar str fqdn: Fully-qualified record name.
    :ivar str value: Record content.

    """
    mode = Mode.DEFAULT

    fqdn: str = jose.field('fqdn')
    value: str = jose.field('value')

    @property
    def check_domain(self) -> str:
        """Domain the record validates, without the challenge label."""
        name = self.fqdn
        prefix = challenges.DNS01.LABEL + '.'
        if name.startswith(prefix):
            name = name[len(prefix):]
        return dns01.un_fqdn(name)


class RawRequest(jose.JSONObjectWithFields):
    """Request carrying the challenge itself.

    :ivar str domain: Domain being validated.
    :ivar str token: Challenge token.
    :ivar str keyauth: Key authorization.

    """
    mode = Mode.RAW

    domain: str = jose.field('domain')
    token: str = jose.field('token')
    keyauth: str = jose.field('keyauth')

    @property
    def check_domain(self) -> str:
        """Domain the challenge validates."""
        return self.domain


ChallengeRequest = Union[DefaultRequest, RawRequest]


def is_default_shape(message: IncomingMessage) -> bool:
    """Does `message` carry a complete default request?"""
    return bool(message.fqdn and message.value)


def is_raw_shape(message: IncomingMessage) -> bool:
    """Does `message` carry a complete raw request?"""
    return bool(message.domain and (message.token or message.keyauth))


def _fold_keys(jobj: Dict[str, Any]) -> Dict[str, Any]:
    # Keys match case-insensitively, an exact match wins.
    folded = {key.lower(): value for key, value in jobj.items() if key != key.lower()}
    folded.update((key, value) for key, value in jobj.items() if key == key.lower())
    return folded


def parse(body: bytes) -> IncomingMessage:
    """Parse a request body into an `IncomingMessage`.

    :raises errors.MalformedPayload: if `body` is not a JSON object of
        string fields

    """
    try:
        jobj = json.loads(body)
    except (ValueError, RecursionError) as error:
        raise errors.MalformedPayload() from error
    if not isinstance(jobj, dict):
        raise errors.MalformedPayload()
    try:
        return IncomingMessage.from_json(_fold_keys(jobj))
    except jose.DeserializationError as error:
        raise errors.MalformedPayload() from error


def classify(message: IncomingMessage) -> ChallengeRequest:
    """Turn a canonical `IncomingMessage` into a request of known shape.

    A message that satisfies both shapes is a default request.

    :raises errors.AmbiguousOrEmptyPayload: if no shape is satisfied

    """
    if is_default_shape(message):
        return DefaultRequest(fqdn=message.fqdn, value=message.value)
    if is_raw_shape(message):
        return RawRequest(domain=message.domain, token=message.token,
                          keyauth=message.keyauth)
    raise errors.AmbiguousOrEmptyPayload()


def normalize(body: bytes) -> ChallengeRequest:
    """Parse, canonicalize and classify a request body.

    :param bytes body: raw request body

    :returns: the request, tagged with its `Mode`
    :rtype: `DefaultRequest` or `RawRequest`

    :raises errors.MalformedPayload: if `body` cannot be parsed
    :raises errors.AmbiguousOrEmptyPayload: if `body` is neither shape

    """
    return classify(parse(body).canonicalize())
