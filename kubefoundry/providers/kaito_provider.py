"""KAITO provider: Workspace serving a GGUF model through an AIKit (llama.cpp) image."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

from kubefoundry import aikit
from kubefoundry.manifests import COMPUTE_TYPE_LABEL, check_structure, object_metadata
from kubefoundry.models import (
    ConfigValidation,
    CRDConfig,
    HelmChart,
    HelmRepo,
    InstallationStep,
    ResourceOverrides,
)
from kubefoundry.providers.base import (
    RuntimeProvider,
    parse_int,
    parse_resources,
    parse_str,
    raw_get,
)
from kubefoundry.providers.registry import register
from kubefoundry.validation import label_name_errors, namespace_errors

logger = logging.getLogger(__name__)

KAITO_VERSION = "0.7.0"
KAITO_HELM_REPO = "https://kaito-project.github.io/kaito/charts/kaito"
MODEL_PORT = 5000
MAX_REPLICAS = 10

DEFAULT_CPU = "4"
DEFAULT_MEMORY = "8Gi"

_CRD = CRDConfig(
    api_group="kaito.sh",
    api_version="v1beta1",
    plural="workspaces",
    kind="Workspace",
)


@dataclass(frozen=True)
class KaitoDeploymentConfig:
    """A validated KAITO request. Single worker class, never disaggregated."""

    name: str
    namespace: str
    model_source: str                 # "premade" or "huggingface"
    premade_model: Optional[str] = None
    model_id: Optional[str] = None    # HF repo, e.g. "TheBloke/Llama-2-7B-Chat-GGUF"
    gguf_file: Optional[str] = None   # e.g. "llama-2-7b-chat.Q4_K_M.gguf"
    compute_type: str = "cpu"
    replicas: int = 1
    label_selector: dict[str, str] = field(default_factory=dict)
    preferred_nodes: tuple[str, ...] = ()
    resources: Optional[ResourceOverrides] = None
    image_ref: Optional[str] = None
    registry: str = aikit.DEFAULT_REGISTRY
    provider: str = "kaito"

    # Topology fields, so the planner can treat this like any other request.
    mode = "aggregated"
    prefill_replicas = None
    decode_replicas = None
    prefill_gpus = None
    decode_gpus = None

    @property
    def gpus_per_replica(self) -> int:
        if self.compute_type != "gpu":
            return 0
        if self.resources is not None and self.resources.gpu:
            return self.resources.gpu
        return 1

    def resolve_image(self) -> str:
        if self.image_ref:
            return self.image_ref
        if self.model_source == "premade":
            return aikit.get_premade_model(self.premade_model).image
        return aikit.huggingface_image_ref(self.model_id, self.gguf_file, registry=self.registry)


def _container_resources(config: KaitoDeploymentConfig) -> dict:
    overrides = config.resources or ResourceOverrides()
    memory = overrides.memory or DEFAULT_MEMORY
    requests = {"cpu": overrides.cpu or DEFAULT_CPU, "memory": memory}
    limits = {"memory": memory}
    if config.compute_type == "gpu":
        gpus = str(config.gpus_per_replica)
        requests["nvidia.com/gpu"] = gpus
        limits["nvidia.com/gpu"] = gpus
    return {"requests": requests, "limits": limits}


def generate_kaito_manifest(config: KaitoDeploymentConfig) -> dict:
    """Render a KAITO Workspace for a validated config."""
    match_labels = {"kubernetes.io/os": "linux"}
    if config.compute_type == "gpu":
        match_labels[COMPUTE_TYPE_LABEL] = "gpu"
    match_labels.update(config.label_selector)

    resource: dict[str, Any] = {
        "count": config.replicas,
        "labelSelector": {"matchLabels": match_labels},
    }
    if config.preferred_nodes:
        resource["preferredNodes"] = list(config.preferred_nodes)

    container = {
        "name": "model",
        "image": config.resolve_image(),
        "args": ["run", f"--address=:{MODEL_PORT}"],
        "ports": [{"containerPort": MODEL_PORT, "protocol": "TCP"}],
        "resources": _container_resources(config),
    }

    return {
        "apiVersion": _CRD.full_api_version,
        "kind": _CRD.kind,
        "metadata": object_metadata(config.name, config.namespace, "kaito"),
        "spec": {
            "resource": resource,
            "inference": {"template": {"spec": {"containers": [container]}}},
        },
    }


def _workspace_roles(spec: Mapping[str, Any]) -> Optional[list[str]]:
    resource = spec.get("resource")
    inference = spec.get("inference")
    if not isinstance(resource, Mapping) and not isinstance(inference, Mapping):
        return None
    roles = []
    if isinstance(inference, Mapping):
        containers = (((inference.get("template") or {}).get("spec") or {}).get("containers")) or []
        if any(isinstance(c, Mapping) and c.get("image") for c in containers):
            roles.append("inference")
    if isinstance(resource, Mapping) and resource.get("count"):
        roles.append("resource")
    return roles


def validate_kaito_manifest(manifest: Any) -> list[str]:
    return check_structure(
        manifest,
        api_version=_CRD.full_api_version,
        kind=_CRD.kind,
        services_field="spec",
        roles=_workspace_roles,
        frontend_keys=("inference",),
        worker_keys=("resource",),
        frontend_label="inference template",
        worker_label="resource spec",
    )


def _parse_label_selector(raw: Mapping[str, Any], errors: list[str]) -> dict[str, str]:
    value = raw_get(raw, "label_selector")
    if value is None:
        return {}
    if not isinstance(value, Mapping) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in value.items()
    ):
        errors.append("label_selector: must be a mapping of strings")
        return {}
    return dict(value)


def _parse_preferred_nodes(raw: Mapping[str, Any], errors: list[str]) -> tuple[str, ...]:
    value = raw_get(raw, "preferred_nodes")
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)) or not all(isinstance(n, str) and n for n in value):
        errors.append("preferred_nodes: must be a list of node names")
        return ()
    return tuple(value)


class KaitoProvider(RuntimeProvider):
    """CPU-capable inference on quantized GGUF models."""

    id = "kaito"
    name = "KAITO"
    description = "CPU-capable inference with pre-built GGUF models via llama.cpp"
    default_namespace = "default"
    operator_pod_match = "kaito-workspace"

    def get_crd_config(self) -> CRDConfig:
        return _CRD

    def get_helm_repos(self) -> list[HelmRepo]:
        return [HelmRepo(name="kaito", url=KAITO_HELM_REPO)]

    def get_helm_charts(self) -> list[HelmChart]:
        return [
            HelmChart(
                name="kaito-workspace",
                chart="kaito/workspace",
                namespace="kaito-workspace",
                version=KAITO_VERSION,
                # Run on existing nodes instead of provisioning GPU node pools
                set_values=(("featureGates.disableNodeAutoProvisioning", "true"),),
            ),
        ]

    def get_installation_steps(self) -> list[InstallationStep]:
        return [
            InstallationStep(
                title="Add KAITO Helm repository",
                description="Register the KAITO chart repository.",
                command=f"helm repo add kaito {KAITO_HELM_REPO}",
            ),
            InstallationStep(
                title="Update Helm repositories",
                description="Fetch the latest chart index.",
                command="helm repo update",
            ),
            InstallationStep(
                title="Install KAITO workspace controller",
                description="Install the Workspace CRD and controller with node auto-provisioning disabled.",
                command=(
                    f"helm upgrade --install kaito-workspace kaito/workspace "
                    f"--namespace kaito-workspace --create-namespace --version {KAITO_VERSION} "
                    f"--set featureGates.disableNodeAutoProvisioning=true"
                ),
            ),
        ]

    def apply_defaults(self, raw: Mapping[str, Any], settings) -> dict[str, Any]:
        merged = super().apply_defaults(raw, settings)
        if raw_get(merged, "registry") is None:
            merged["registry"] = settings.registry_url
        return merged

    def validate_config(self, raw: Mapping[str, Any]) -> ConfigValidation:
        errors: list[str] = []

        name = raw_get(raw, "name")
        namespace = raw_get(raw, "namespace")
        errors.extend(label_name_errors(name))
        errors.extend(namespace_errors(namespace))
        provider = raw_get(raw, "provider")
        if provider is not None and provider != self.id:
            errors.append(f"provider: expected {self.id!r}, got {provider!r}")

        model_source = raw_get(raw, "model_source")
        premade_model = parse_str(raw, "premade_model", errors)
        model_id = parse_str(raw, "model_id", errors)
        gguf_file = parse_str(raw, "gguf_file", errors)
        errors.extend(
            f"model_source: {msg}"
            for msg in aikit.validate_build_request(model_source, premade_model, model_id, gguf_file)
        )

        compute_type = parse_str(raw, "compute_type", errors, default="cpu", choices=("cpu", "gpu"))
        replicas = parse_int(raw, "replicas", errors, default=1, minimum=1, maximum=MAX_REPLICAS)
        label_selector = _parse_label_selector(raw, errors)
        preferred_nodes = _parse_preferred_nodes(raw, errors)
        resources = parse_resources(raw, errors)
        image_ref = parse_str(raw, "image_ref", errors)
        registry = parse_str(raw, "registry", errors, default=aikit.DEFAULT_REGISTRY)

        if errors:
            return ConfigValidation(errors=errors)

        return ConfigValidation(config=KaitoDeploymentConfig(
            name=name,
            namespace=namespace,
            model_source=model_source,
            premade_model=premade_model,
            model_id=model_id,
            gguf_file=gguf_file,
            compute_type=compute_type,
            replicas=replicas,
            label_selector=label_selector,
            preferred_nodes=preferred_nodes,
            resources=resources,
            image_ref=image_ref,
            registry=registry,
        ))

    def generate_manifest(self, config: KaitoDeploymentConfig) -> dict:
        logger.debug("Generating KAITO Workspace %s/%s", config.namespace, config.name)
        return generate_kaito_manifest(config)

    def validate_manifest(self, manifest: Mapping[str, Any]) -> list[str]:
        return validate_kaito_manifest(manifest)


register("kaito", KaitoProvider)
