"""Dispatch of challenge requests to the configured provider."""
import logging
from typing import Any
from typing import Optional
from typing import Union

from acmeproxy import dns01
from acmeproxy import errors
from acmeproxy import interfaces
from acmeproxy.messages import Action
from acmeproxy.messages import ChallengeRequest
from acmeproxy.messages import DefaultRequest
from acmeproxy.messages import Mode
from acmeproxy.messages import RawRequest

logger = logging.getLogger(__name__)


def _to_action(action: Union[Action, str]) -> Action:
    if isinstance(action, Action):
        return action
    try:
        return Action(action)
    except ValueError:
        raise errors.UnsupportedAction()


def dispatch(action: Union[Action, str], request: ChallengeRequest,
             provider: interfaces.ChallengeProvider,
             provider_name: Optional[str] = None,
             log: Union[logging.Logger, logging.LoggerAdapter] = logger) -> ChallengeRequest:
    """Perform `action` for `request` with `provider`.

    Default requests need a `.RecordProvider`; raw requests are served by
    any `.ChallengeProvider`.

    :param action: `Action` (or its value) to perform
    :param request: normalized request
    :param provider: configured provider
    :param str provider_name: name used in log messages
    :param log: logger receiving the outcome

    :returns: the message to echo back to the caller
    :rtype: `DefaultRequest` or `RawRequest`

    :raises errors.UnsupportedAction: if `action` is unknown
    :raises errors.UnsupportedMode: if `provider` cannot serve the mode
    :raises errors.BackendOperationFailed: if `provider` fails

    """
    action = _to_action(action)
    provider_name = provider_name or getattr(provider, 'name', type(provider).__name__)

    if isinstance(request, DefaultRequest):
        return _dispatch_default(action, request, provider, provider_name, log)
    if isinstance(request, RawRequest):
        return _dispatch_raw(action, request, provider, provider_name, log)
    raise errors.UnsupportedMode("Unknown mode requested")


def _dispatch_default(action: Action, request: DefaultRequest,
                      provider: interfaces.ChallengeProvider, provider_name: str,
                      log: Any) -> DefaultRequest:
    if not isinstance(provider, interfaces.RecordProvider):
        log.debug("Provider %s does not support %s mode", provider_name, Mode.DEFAULT.value)
        raise errors.UnsupportedMode()
    log.debug("Provider %s supports %s mode", provider_name, Mode.DEFAULT.value)

    operation = {
        Action.PRESENT: provider.create_record,
        Action.CLEANUP: provider.remove_record,
    }[action]
    try:
        operation(request.fqdn, request.value)
    except Exception as error:  # pylint: disable=broad-except
        log.error("Failed to update TXT record %s (provider: %s, mode: %s): %s",
                  request.fqdn, provider_name, Mode.DEFAULT.value, error)
        raise errors.BackendOperationFailed(action, Mode.DEFAULT, error) from error

    log.info("Successfully updated TXT record %s (provider: %s, mode: %s)",
             request.fqdn, provider_name, Mode.DEFAULT.value)
    return request


def _dispatch_raw(action: Action, request: RawRequest,
                  provider: interfaces.ChallengeProvider, provider_name: str,
                  log: Any) -> RawRequest:
    fqdn, value = dns01.get_record(request.domain, request.keyauth)
    log.debug("Provider %s supports %s mode, record %s with value %s",
              provider_name, Mode.RAW.value, fqdn, value)

    operation = {
        Action.PRESENT: provider.present,
        Action.CLEANUP: provider.cleanup,
    }[action]
    try:
        operation(request.domain, request.token, request.keyauth)
    except Exception as error:  # pylint: disable=broad-except
        log.error("Failed to update TXT record %s for %s (provider: %s, mode: %s): %s",
                  fqdn, request.domain, provider_name, Mode.RAW.value, error)
        raise errors.BackendOperationFailed(action, Mode.RAW, error) from error

    log.info("Successfully updated TXT record %s for %s (provider: %s, mode: %s)",
             fqdn, request.domain, provider_name, Mode.RAW.value)
    return request
