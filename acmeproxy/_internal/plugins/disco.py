"""Utilities for provider discovery and selection."""
import logging
import sys
from typing import Dict
from typing import Iterator
from typing import Mapping
from typing import Optional
from typing import Type

from acmeproxy import configuration
from acmeproxy import errors
from acmeproxy import interfaces
from acmeproxy._internal import constants

if sys.version_info >= (3, 10):  # pragma: no cover
    import importlib.metadata as importlib_metadata
else:
    import importlib_metadata

logger = logging.getLogger(__name__)


class ProviderEntryPoint:
    """Provider entry point."""

    # this object is mutable, don't allow it to be hashed!
    __hash__ = None  # type: ignore

    def __init__(self, entry_point: importlib_metadata.EntryPoint) -> None:
        self.name = entry_point.name
        self.provider_cls: Type[interfaces.ChallengeProvider] = entry_point.load()
        self.entry_point = entry_point
        self._initialized: Optional[interfaces.ChallengeProvider] = None

    @property
    def description(self) -> str:
        """Description of the provider."""
        return self.provider_cls.description

    @property
    def description_with_name(self) -> str:
        """Description with name. Handy for UI."""
        return "{0} ({1})".format(self.description, self.name)

    @property
    def record_capable(self) -> bool:
        """Does the provider accept default (record) requests?"""
        return issubclass(self.provider_cls, interfaces.RecordProvider)

    @property
    def initialized(self) -> bool:
        """Has the provider been initialized already?"""
        return self._initialized is not None

    def init(self, config: Optional[configuration.NamespaceConfig] = None
             ) -> interfaces.ChallengeProvider:
        """Memoized provider initialization."""
        if not self._initialized:
            # raises TypeError if abstract methods are left unimplemented
            self._initialized = self.provider_cls(config, self.name)
        return self._initialized

    def __repr__(self) -> str:
        return "ProviderEntryPoint#{0}".format(self.name)


class ProvidersRegistry(Mapping):
    """Providers registry."""

    def __init__(self, providers: Mapping[str, ProviderEntryPoint]) -> None:
        # providers are sorted so the same order is used between runs.
        self._providers = dict(sorted(providers.items()))

    @classmethod
    def find_all(cls) -> 'ProvidersRegistry':
        """Find providers using Python package entry points.

        See https://packaging.python.org/en/latest/specifications/entry-points/ for more info on
        entry points.

        """
        providers: Dict[str, ProviderEntryPoint] = {}
        entry_points = list(importlib_metadata.entry_points(  # pylint: disable=unexpected-keyword-arg
            group=constants.PROVIDERS_ENTRY_POINT))
        for entry_point in entry_points:
            try:
                cls._load_entry_point(entry_point, providers)
            except errors.PluginError:
                raise
            except Exception as e:
                raise errors.PluginError(
                    f"The '{entry_point.module}' provider errored while loading: {e}. "
                    "You may need to remove or update this provider.") from e
        return cls(providers)

    @classmethod
    def _load_entry_point(cls, entry_point: importlib_metadata.EntryPoint,
                          providers: Dict[str, ProviderEntryPoint]) -> None:
        provider_ep = ProviderEntryPoint(entry_point)
        if provider_ep.name in providers:
            other_ep = providers[provider_ep.name]
            provider1_dist = provider_ep.entry_point.dist
            provider2_dist = other_ep.entry_point.dist
            provider1 = provider1_dist.name.lower() if provider1_dist else "unknown"
            provider2 = provider2_dist.name.lower() if provider2_dist else "unknown"
            raise errors.PluginError("Duplicate provider name {0} from {1} and {2}.".format(
                provider_ep.name, provider1, provider2))
        if issubclass(provider_ep.provider_cls, interfaces.ChallengeProvider):
            providers[provider_ep.name] = provider_ep
        else:  # pragma: no cover
            logger.warning(
                "%r does not inherit from ChallengeProvider, skipping", provider_ep)

    def __getitem__(self, name: str) -> ProviderEntryPoint:
        return self._providers[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._providers)

    def __len__(self) -> int:
        return len(self._providers)

    def __repr__(self) -> str:
        return "{0}({1})".format(
            self.__class__.__name__, ','.join(
                repr(p_ep) for p_ep in self._providers.values()))


def pick_provider(config: configuration.NamespaceConfig,
                  registry: ProvidersRegistry) -> interfaces.ChallengeProvider:
    """Initialize and prepare the provider chosen with ``--provider``.

    :raises errors.PluginError: if the provider is unknown or cannot
        be prepared

    """
    try:
        provider_ep = registry[config.provider]
    except KeyError:
        raise errors.PluginError("Unknown provider {0}, available: {1}".format(
            config.provider, ", ".join(registry) or "none"))

    provider = provider_ep.init(config)
    try:
        provider.prepare()
    except errors.MisconfigurationError as error:
        logger.debug("Misconfigured %r: %s", provider_ep, error, exc_info=True)
        raise
    logger.info("Using provider %s", provider_ep.description_with_name)
    if not provider_ep.record_capable:
        logger.info("Provider %s only accepts raw requests", provider_ep.name)
    return provider
