"""Shared manifest helpers: common labels and the structural self-check."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Optional

import yaml

from kubefoundry.errors import StructuralManifestInvalid

APP_NAME = "kubefoundry"
PROVIDER_LABEL = "kubefoundry.io/provider"
COMPUTE_TYPE_LABEL = "kubefoundry.io/compute-type"

# Given a manifest's spec, return the role keys of its services-equivalent
# map, or None when that map is absent.
RoleExtractor = Callable[[Mapping[str, Any]], Optional[list[str]]]


def common_labels(name: str, provider_id: str) -> dict[str, str]:
    """Labels carried by every manifest kubefoundry generates."""
    return {
        "app.kubernetes.io/name": APP_NAME,
        "app.kubernetes.io/instance": name,
        "app.kubernetes.io/managed-by": APP_NAME,
        PROVIDER_LABEL: provider_id,
    }


def object_metadata(name: str, namespace: str, provider_id: str) -> dict:
    return {
        "name": name,
        "namespace": namespace,
        "labels": common_labels(name, provider_id),
    }


def check_structure(
    manifest: Any,
    *,
    api_version: str,
    kind: str,
    services_field: str,
    roles: RoleExtractor,
    frontend_keys: tuple[str, ...],
    worker_keys: tuple[str, ...],
    frontend_label: str = "Frontend",
    worker_label: str = "worker spec",
) -> list[str]:
    """Check identity fields and the role map of a candidate manifest.

    Every violation is collected; nothing fails fast. ``roles`` pulls the
    role keys out of ``spec``. A manifest is valid with exactly one
    frontend-equivalent role and at least one recognized worker role.
    """
    if not isinstance(manifest, Mapping):
        return ["Manifest must be a mapping"]

    errors: list[str] = []
    if manifest.get("apiVersion") != api_version:
        errors.append("Invalid or missing apiVersion")
    if manifest.get("kind") != kind:
        errors.append("Invalid or missing kind")

    metadata = manifest.get("metadata")
    if not isinstance(metadata, Mapping):
        metadata = {}
    if not metadata.get("name"):
        errors.append("Missing metadata.name")
    if not metadata.get("namespace"):
        errors.append("Missing metadata.namespace")

    spec = manifest.get("spec")
    if not isinstance(spec, Mapping):
        errors.append("Missing spec")
        errors.append(f"Missing {services_field}")
        return errors

    keys = roles(spec)
    if keys is None:
        errors.append(f"Missing {services_field}")
        return errors

    frontends = [k for k in keys if k in frontend_keys]
    if not frontends:
        errors.append(f"Missing {frontend_label} in {services_field}")
    elif len(frontends) > 1:
        errors.append(f"Multiple {frontend_label} entries in {services_field}")

    if not any(k in worker_keys for k in keys):
        errors.append(f"Missing {worker_label} in {services_field}")

    return errors


def ensure_valid_manifest(errors: list[str]) -> None:
    if errors:
        raise StructuralManifestInvalid(errors)


def to_yaml(manifest: Mapping[str, Any]) -> str:
    """Serialize a manifest for display or ``kubectl apply -f -``."""
    return yaml.safe_dump(dict(manifest), sort_keys=False, default_flow_style=False)
