"""Tests for kubefoundry.providers.registry."""

import pytest

from kubefoundry.errors import UnknownProvider
from kubefoundry.models import ConfigValidation, CRDConfig
from kubefoundry.providers.base import RuntimeProvider
from kubefoundry.providers.registry import (
    PROVIDER_MODULES,
    _INSTANCES,
    _PROVIDERS,
    ensure_provider_registered,
    get_provider,
    get_provider_or_none,
    has_provider,
    list_provider_info,
    list_providers,
    register,
)


class _DummyProvider(RuntimeProvider):
    id = "dummy"
    name = "Dummy"
    description = "Test runtime"

    def get_crd_config(self):
        return CRDConfig("example.com", "v1", "dummies", "Dummy")

    def get_installation_steps(self):
        return []

    def get_helm_repos(self):
        return []

    def get_helm_charts(self):
        return []

    def validate_config(self, raw):
        return ConfigValidation(config=dict(raw))

    def generate_manifest(self, config):
        return {}

    def validate_manifest(self, manifest):
        return []


class _RegistryState:
    def setup_method(self):
        # Save and restore registry state per test
        self._backup = dict(_PROVIDERS)
        self._instances = dict(_INSTANCES)

    def teardown_method(self):
        _PROVIDERS.clear()
        _PROVIDERS.update(self._backup)
        _INSTANCES.clear()
        _INSTANCES.update(self._instances)


class TestRegistry(_RegistryState):
    def test_register_and_get(self):
        register("dummy", _DummyProvider)
        p = get_provider("dummy")
        assert isinstance(p, _DummyProvider)
        assert p.info().name == "Dummy"

    def test_get_unknown_raises(self):
        with pytest.raises(UnknownProvider, match="Unknown provider"):
            get_provider("nonexistent")

    def test_get_unknown_is_lookup_error(self):
        with pytest.raises(LookupError):
            get_provider("nonexistent")

    def test_get_provider_or_none(self):
        assert get_provider_or_none("nonexistent") is None

    def test_instances_are_cached(self):
        assert get_provider("dynamo") is get_provider("dynamo")

    def test_register_resets_cached_instance(self):
        register("dummy", _DummyProvider)
        first = get_provider("dummy")
        register("dummy", _DummyProvider)
        assert get_provider("dummy") is not first

    def test_list_providers(self):
        register("dummy", _DummyProvider)
        ids = list_providers()
        assert ids[:3] == ["dynamo", "kuberay", "kaito"]
        assert "dummy" in ids

    def test_register_overwrites(self):
        register("dummy", _DummyProvider)
        register("dummy", _DummyProvider)
        assert list_providers().count("dummy") == 1

    def test_has_provider(self):
        assert has_provider("kaito")
        assert not has_provider("nonexistent")

    def test_list_provider_info(self):
        infos = {i.id: i for i in list_provider_info()}
        assert infos["dynamo"].name == "NVIDIA Dynamo"
        assert infos["dynamo"].default_namespace == "dynamo-system"
        assert infos["kuberay"].default_namespace == "kuberay-system"
        assert infos["kaito"].default_namespace == "default"


class TestEnsureProviderRegistered(_RegistryState):
    def test_already_registered_is_noop(self):
        register("dummy", _DummyProvider)
        ensure_provider_registered("dummy")
        assert _PROVIDERS["dummy"] is _DummyProvider

    def test_lazy_import(self):
        _PROVIDERS.pop("kuberay", None)
        ensure_provider_registered("kuberay")
        assert _PROVIDERS["kuberay"].__name__ == "KubeRayProvider"

    def test_unknown_mapping_raises(self):
        with pytest.raises(UnknownProvider):
            ensure_provider_registered("totally_unknown_provider")

    def test_provider_modules_contains_known_providers(self):
        assert set(PROVIDER_MODULES) == {"dynamo", "kuberay", "kaito"}
