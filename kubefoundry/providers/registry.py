"""Provider registry: lookup runtime providers by id."""

from __future__ import annotations

import importlib
from typing import Optional

from kubefoundry.errors import UnknownProvider
from kubefoundry.models import ProviderInfo
from kubefoundry.providers.base import RuntimeProvider

_PROVIDERS: dict[str, type[RuntimeProvider]] = {}
_INSTANCES: dict[str, RuntimeProvider] = {}

# Maps provider id → (module_path, class_name) for lazy loading.
PROVIDER_MODULES: dict[str, tuple[str, str]] = {
    "dynamo": ("kubefoundry.providers.dynamo_provider", "DynamoProvider"),
    "kuberay": ("kubefoundry.providers.kuberay_provider", "KubeRayProvider"),
    "kaito": ("kubefoundry.providers.kaito_provider", "KaitoProvider"),
}


def register(provider_id: str, cls: type[RuntimeProvider]) -> None:
    """Register a provider class under an id."""
    _PROVIDERS[provider_id] = cls
    _INSTANCES.pop(provider_id, None)


def ensure_provider_registered(provider_id: str) -> None:
    """Import the provider module and register the class if not already present."""
    if provider_id in _PROVIDERS:
        return
    entry = PROVIDER_MODULES.get(provider_id)
    if not entry:
        raise UnknownProvider(provider_id, list_providers())
    module_path, class_name = entry
    mod = importlib.import_module(module_path)
    register(provider_id, getattr(mod, class_name))


def has_provider(provider_id: str) -> bool:
    return provider_id in _PROVIDERS or provider_id in PROVIDER_MODULES


def get_provider(provider_id: str) -> RuntimeProvider:
    """Return the provider for an id. Instances are cached per process."""
    if provider_id in _INSTANCES:
        return _INSTANCES[provider_id]
    ensure_provider_registered(provider_id)
    provider = _PROVIDERS[provider_id]()
    _INSTANCES[provider_id] = provider
    return provider


def get_provider_or_none(provider_id: str) -> Optional[RuntimeProvider]:
    try:
        return get_provider(provider_id)
    except UnknownProvider:
        return None


def list_providers() -> list[str]:
    """Return ids of all known providers, lazily loaded ones included."""
    ids = list(PROVIDER_MODULES)
    ids.extend(p for p in _PROVIDERS if p not in PROVIDER_MODULES)
    return ids


def list_provider_info() -> list[ProviderInfo]:
    return [get_provider(provider_id).info() for provider_id in list_providers()]
