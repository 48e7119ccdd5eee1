"""Kubernetes object naming rules."""

from __future__ import annotations

import re

_NAMESPACE_RE = re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$")
_RESOURCE_NAME_RE = re.compile(r"^[a-z0-9]([a-z0-9.-]*[a-z0-9])?$")
_LABEL_NAME_RE = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")

MAX_NAMESPACE_LEN = 63
MAX_RESOURCE_NAME_LEN = 253
MAX_LABEL_NAME_LEN = 63


def namespace_errors(value: object, field: str = "namespace") -> list[str]:
    """Return violations of the namespace (DNS-1123 label) rule."""
    if not isinstance(value, str) or not value:
        return [f"{field}: Namespace cannot be empty"]
    errors = []
    if len(value) > MAX_NAMESPACE_LEN:
        errors.append(f"{field}: Namespace must be {MAX_NAMESPACE_LEN} characters or less")
    if not _NAMESPACE_RE.match(value):
        errors.append(
            f"{field}: Namespace must be lowercase alphanumeric with hyphens, "
            "starting and ending with alphanumeric"
        )
    return errors


def resource_name_errors(value: object, field: str = "name") -> list[str]:
    """Return violations of the resource name (DNS-1123 subdomain) rule."""
    if not isinstance(value, str) or not value:
        return [f"{field}: Name cannot be empty"]
    errors = []
    if len(value) > MAX_RESOURCE_NAME_LEN:
        errors.append(f"{field}: Name must be {MAX_RESOURCE_NAME_LEN} characters or less")
    if not _RESOURCE_NAME_RE.match(value):
        errors.append(
            f"{field}: Name must be lowercase alphanumeric with hyphens/dots, "
            "starting and ending with alphanumeric"
        )
    return errors


def label_name_errors(value: object, field: str = "name") -> list[str]:
    """Stricter rule for objects whose name is reused as a label value."""
    if not isinstance(value, str) or not value:
        return [f"{field}: Name cannot be empty"]
    if len(value) > MAX_LABEL_NAME_LEN or not _LABEL_NAME_RE.match(value):
        return [
            f"{field}: Name must be a valid Kubernetes resource name "
            "(lowercase alphanumeric and hyphens, at most 63 characters)"
        ]
    return []

