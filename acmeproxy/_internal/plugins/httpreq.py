"""Providers forwarding challenges to another HTTP endpoint.

Requests follow lego's ``httpreq`` protocol, so the endpoint may be
another acmeproxy or any server implementing it:

- ``httpreq``: ``POST <endpoint>/present`` with ``{"fqdn", "value"}``
- ``httpreq-raw``: ``POST <endpoint>/present`` with
  ``{"domain", "token", "keyAuth"}``

and likewise for ``/cleanup``.

"""
import logging
from typing import Any
from typing import Dict
from typing import Optional

import requests
from requests.adapters import HTTPAdapter

from acmeproxy import configuration
from acmeproxy import errors
from acmeproxy.plugins import common

logger = logging.getLogger(__name__)

DEFAULT_HTTP_TIMEOUT = 30
"""Default timeout of requests to the endpoint, in seconds."""


class _HttpreqProviderBase(common.Provider):
    settings_prefix = "HTTPREQ"
    required_settings = {"endpoint": "URL of the httpreq endpoint"}

    def __init__(self, config: Optional[configuration.NamespaceConfig], name: str) -> None:
        super().__init__(config, name)
        self.session = requests.Session()
        adapter = HTTPAdapter()
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)
        self.timeout: float = DEFAULT_HTTP_TIMEOUT

    def prepare(self) -> None:
        super().prepare()
        endpoint = self.conf("endpoint") or ""
        if not endpoint.startswith(("http://", "https://")):
            raise errors.MisconfigurationError(
                "{0} must be an http(s) URL, got {1!r}".format(
                    self.setting_name("endpoint"), endpoint))

        timeout = self.conf("http_timeout")
        if timeout:
            try:
                self.timeout = float(timeout)
            except ValueError:
                raise errors.MisconfigurationError(
                    "{0} must be a number of seconds, got {1!r}".format(
                        self.setting_name("http_timeout"), timeout))

        username, password = self.conf("username"), self.conf("password")
        if username or password:
            self.session.auth = (username or "", password or "")

    def _post(self, action: str, payload: Dict[str, Any]) -> None:
        url = "{0}/{1}".format((self.conf("endpoint") or "").rstrip("/"), action)
        logger.debug("Sending %s to %s", payload, url)
        try:
            response = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as error:
            raise errors.PluginError("Request to {0} failed: {1}".format(url, error))
        if not response.ok:
            raise errors.PluginError("{0} answered {1}: {2}".format(
                url, response.status_code, response.text.strip()))


class HttpreqProvider(_HttpreqProviderBase, common.RecordProvider):
    """Forward the TXT record to an httpreq endpoint."""

    description = "Forward the record name and value to an httpreq endpoint"

    def create_record(self, fqdn: str, value: str) -> None:
        self._post("present", {"fqdn": fqdn, "value": value})

    def remove_record(self, fqdn: str, value: str) -> None:
        self._post("cleanup", {"fqdn": fqdn, "value": value})


class RawHttpreqProvider(_HttpreqProviderBase):
    """Forward the challenge itself to an httpreq endpoint."""

    description = "Forward the domain, token and key authorization to an httpreq endpoint"

    def present(self, domain: str, token: str, keyauth: str) -> None:
        self._post("present", {"domain": domain, "token": token, "keyAuth": keyauth})

    def cleanup(self, domain: str, token: str, keyauth: str) -> None:
        self._post("cleanup", {"domain": domain, "token": token, "keyAuth": keyauth})
