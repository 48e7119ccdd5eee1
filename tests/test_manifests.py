"""Tests for kubefoundry.manifests."""

import pytest
import yaml

from kubefoundry.errors import StructuralManifestInvalid
from kubefoundry.manifests import (
    check_structure,
    common_labels,
    ensure_valid_manifest,
    object_metadata,
    to_yaml,
)


def _roles(spec):
    services = spec.get("services")
    return list(services) if isinstance(services, dict) else None


def _check(manifest):
    return check_structure(
        manifest,
        api_version="example.com/v1",
        kind="Thing",
        services_field="spec.services",
        roles=_roles,
        frontend_keys=("Frontend",),
        worker_keys=("Worker", "OtherWorker"),
    )


def _manifest(services):
    return {
        "apiVersion": "example.com/v1",
        "kind": "Thing",
        "metadata": {"name": "demo", "namespace": "default"},
        "spec": {"services": services},
    }


class TestLabels:
    def test_common_labels(self):
        labels = common_labels("demo", "dynamo")
        assert labels["app.kubernetes.io/managed-by"] == "kubefoundry"
        assert labels["app.kubernetes.io/instance"] == "demo"
        assert labels["kubefoundry.io/provider"] == "dynamo"

    def test_object_metadata(self):
        meta = object_metadata("demo", "ns", "kaito")
        assert meta["name"] == "demo"
        assert meta["namespace"] == "ns"
        assert meta["labels"]["kubefoundry.io/provider"] == "kaito"


class TestCheckStructure:
    def test_valid(self):
        assert _check(_manifest({"Frontend": {}, "Worker": {}})) == []

    def test_multiple_workers_ok(self):
        assert _check(_manifest({"Frontend": {}, "Worker": {}, "OtherWorker": {}})) == []

    def test_missing_worker(self):
        assert _check(_manifest({"Frontend": {}})) == ["Missing worker spec in spec.services"]

    def test_unrecognized_worker(self):
        assert _check(_manifest({"Frontend": {}, "Sidecar": {}})) == ["Missing worker spec in spec.services"]

    def test_missing_frontend(self):
        assert _check(_manifest({"Worker": {}})) == ["Missing Frontend in spec.services"]

    def test_collects_every_error(self):
        errors = _check({"apiVersion": "v1", "metadata": {}, "spec": {"services": {}}})
        assert errors == [
            "Invalid or missing apiVersion",
            "Invalid or missing kind",
            "Missing metadata.name",
            "Missing metadata.namespace",
            "Missing Frontend in spec.services",
            "Missing worker spec in spec.services",
        ]

    def test_missing_services(self):
        manifest = _manifest({})
        manifest["spec"] = {"other": 1}
        assert _check(manifest) == ["Missing spec.services"]

    def test_not_mapping(self):
        assert _check(None) == ["Manifest must be a mapping"]


class TestEnsureValid:
    def test_no_errors(self):
        ensure_valid_manifest([])

    def test_raises_with_errors(self):
        with pytest.raises(StructuralManifestInvalid) as exc_info:
            ensure_valid_manifest(["Missing spec"])
        assert exc_info.value.errors == ["Missing spec"]


class TestToYaml:
    def test_preserves_key_order(self):
        text = to_yaml(_manifest({"Frontend": {}, "Worker": {}}))
        assert text.index("apiVersion") < text.index("kind") < text.index("metadata") < text.index("spec")
        assert yaml.safe_load(text)["metadata"]["name"] == "demo"
