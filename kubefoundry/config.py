"""Settings dataclasses and YAML loader."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml

from kubefoundry.catalog import CLOUD_PROVIDERS


@dataclass
class CostSettings:
    cloud_provider: str = "none"
    gpu_type: str = "unknown"
    custom_hourly_rate: Optional[float] = None  # used with cloud_provider "on-prem"


@dataclass
class Settings:
    active_provider_id: str = "dynamo"
    default_namespace: Optional[str] = None  # None = provider default
    hf_token_secret: str = "hf-token-secret"
    helm_binary: str = "helm"
    helm_timeout: int = 600          # seconds per helm invocation
    cluster_timeout: int = 10        # seconds per Kubernetes API call
    kube_context: Optional[str] = None
    registry_url: str = "kubefoundry-registry.kubefoundry-system.svc:5000"
    costs: CostSettings = field(default_factory=CostSettings)


_SETTINGS_KEYS = frozenset(f.name for f in fields(Settings)) - {"costs"}
_COST_KEYS = frozenset(f.name for f in fields(CostSettings))

_ENV_OVERRIDES = {
    "KUBEFOUNDRY_PROVIDER": "active_provider_id",
    "KUBEFOUNDRY_NAMESPACE": "default_namespace",
    "KUBEFOUNDRY_HELM": "helm_binary",
    "KUBEFOUNDRY_KUBE_CONTEXT": "kube_context",
}


def _config_dir() -> Path:
    """Return the config directory, respecting KUBEFOUNDRY_HOME env var."""
    env = os.environ.get("KUBEFOUNDRY_HOME")
    if env:
        return Path(env)
    return Path.home() / ".kubefoundry"


def default_config_path() -> Path:
    env = os.environ.get("KUBEFOUNDRY_CONFIG")
    if env:
        return Path(env)
    return _config_dir() / "config.yaml"


def load_settings(path: str | os.PathLike | None = None) -> Settings:
    """Load settings from YAML, then apply environment overrides.

    A missing file yields defaults. Unknown keys cause a ``ValueError``
    so typos are caught early.
    """
    config_path = Path(path) if path is not None else default_config_path()

    raw: dict = {}
    if config_path.exists():
        with open(config_path) as f:
            loaded = yaml.safe_load(f)
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config YAML must be a mapping, got {type(loaded).__name__}")
        raw = loaded

    costs_raw = raw.get("costs", {}) or {}
    top_raw = {k: v for k, v in raw.items() if k != "costs"}

    _validate_keys("config", top_raw, _SETTINGS_KEYS)
    _validate_keys("costs", costs_raw, _COST_KEYS)

    costs = CostSettings(**costs_raw)
    if costs.cloud_provider not in CLOUD_PROVIDERS:
        raise ValueError(
            f"Unknown cloud provider in 'costs': {costs.cloud_provider!r}. "
            f"Allowed: {list(CLOUD_PROVIDERS)}"
        )

    settings = Settings(**top_raw, costs=costs)

    for env_name, attr in _ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            setattr(settings, attr, value)

    return settings


def _validate_keys(section: str, raw: dict, allowed: frozenset[str]) -> None:
    if not isinstance(raw, dict):
        raise ValueError(f"'{section}' must be a mapping, got {type(raw).__name__}")
    unknown = set(raw) - allowed
    if unknown:
        raise ValueError(
            f"Unknown keys in '{section}': {sorted(unknown)}. "
            f"Allowed: {sorted(allowed)}"
        )
