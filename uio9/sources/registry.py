"""Pluggable source registry.

The orchestrator never names a source: it asks the registry for the adapters
registered against an attribute.  New sources are added by registering an
adapter, without touching orchestration code.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Any, Iterable, List, Optional

from uio9.core.data_models import Attribute
from uio9.core.governor import AdmissionGovernor
from uio9.core.http_client import AsyncHTTPClient
from uio9.sources.base import SourceAdapter
from uio9.sources.email import build_email_adapters
from uio9.sources.phone import build_phone_adapters
from uio9.sources.username import build_username_adapters
from uio9.sources.web import build_location_adapters, build_name_adapters

logger = logging.getLogger(__name__)


class SourceRegistry:
    """Holds source adapters keyed by name, grouped by attribute."""

    def __init__(self, adapters: Optional[Iterable[SourceAdapter]] = None) -> None:
        self._adapters: "OrderedDict[str, SourceAdapter]" = OrderedDict()
        self.logger = logging.getLogger(self.__class__.__name__)
        for adapter in adapters or ():
            self.register(adapter)

    def register(self, adapter: SourceAdapter) -> None:
        """Register an adapter.

        Raises:
            ValueError: If an adapter with the same name is already registered
        """
        if adapter.name in self._adapters:
            raise ValueError(f"Source '{adapter.name}' is already registered")
        self._adapters[adapter.name] = adapter
        self.logger.debug("Registered source %s for %s", adapter.name, adapter.attribute.value)

    def unregister(self, name: str) -> SourceAdapter:
        """Remove and return the adapter registered under ``name``."""
        try:
            return self._adapters.pop(name)
        except KeyError:
            raise KeyError(f"Unknown source: {name}") from None

    def get(self, name: str) -> Optional[SourceAdapter]:
        return self._adapters.get(name)

    def for_attribute(self, attribute: Attribute) -> List[SourceAdapter]:
        """Adapters registered for ``attribute``, in registration order."""
        return [a for a in self._adapters.values() if a.attribute is attribute]

    def attributes(self) -> List[Attribute]:
        """Attributes that have at least one adapter."""
        return [attr for attr in Attribute if self.for_attribute(attr)]

    def names(self) -> List[str]:
        return list(self._adapters)

    def __contains__(self, name: object) -> bool:
        return name in self._adapters

    def __len__(self) -> int:
        return len(self._adapters)

    def __iter__(self):
        return iter(self._adapters.values())


def _is_enabled(config: Any, name: str) -> bool:
    if config is None:
        return True
    value = config.get(f"sources.{name}.enabled", True)
    if isinstance(value, str):
        return value.strip().lower() not in ("0", "false", "no", "off")
    return bool(value)


def build_default_registry(
    client: AsyncHTTPClient,
    governor: AdmissionGovernor,
    config: Any = None,
) -> SourceRegistry:
    """Build a registry with the built-in sources.

    Args:
        client: Open HTTP client shared by all adapters
        governor: Admission governor shared by all adapters
        config: Optional config object; ``sources.<name>.enabled: false``
            leaves a source out

    Returns:
        Populated SourceRegistry
    """
    registry = SourceRegistry()
    builders = [
        build_name_adapters,
        build_username_adapters,
        build_email_adapters,
        build_phone_adapters,
        build_location_adapters,
    ]
    skipped: List[str] = []
    for builder in builders:
        for adapter in builder(client, governor):
            if not _is_enabled(config, adapter.name):
                skipped.append(adapter.name)
                continue
            registry.register(adapter)

    if skipped:
        logger.info("Sources disabled by configuration: %s", ", ".join(sorted(skipped)))
    logger.debug("Default registry built with %d sources", len(registry))
    return registry
