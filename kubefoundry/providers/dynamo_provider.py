"""NVIDIA Dynamo provider: DynamoGraphDeployment with a Frontend and one engine worker."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from kubefoundry.manifests import check_structure, object_metadata
from kubefoundry.models import (
    ConfigValidation,
    CRDConfig,
    DeploymentRequest,
    HelmChart,
    HelmRepo,
    InstallationStep,
)
from kubefoundry.providers.base import RuntimeProvider, parse_deployment_request
from kubefoundry.providers.registry import register
from kubefoundry.topology import derive_topology

logger = logging.getLogger(__name__)

DYNAMO_VERSION = "0.7.0"
DYNAMO_HELM_REPO = "https://helm.ngc.nvidia.com/nvidia/ai-dynamo"

WORKER_KEYS = {
    "vllm": "VllmWorker",
    "sglang": "SglangWorker",
    "trtllm": "TrtllmWorker",
}

_CRD = CRDConfig(
    api_group="nvidia.com",
    api_version="v1alpha1",
    plural="dynamographdeployments",
    kind="DynamoGraphDeployment",
)


def build_engine_args(request: DeploymentRequest) -> list[str]:
    """Worker command line, in a fixed order.

    Free-form engine args come last: ``True`` renders a bare ``--key``,
    ``False`` is dropped, anything else renders ``--key value``.
    """
    args = [f"python3 -m dynamo.{request.engine}", f"--model {request.model_id}"]

    if request.served_model_name:
        args.append(f"--served-model-name {request.served_model_name}")
    if request.enforce_eager:
        args.append("--enforce-eager")
    if request.enable_prefix_caching:
        args.append("--enable-prefix-caching")
    if request.trust_remote_code:
        args.append("--trust-remote-code")
    if request.context_length:
        args.append(f"--max-model-len {request.context_length}")

    for key, value in request.engine_args.items():
        if value is True:
            args.append(f"--{key}")
        elif value is not False:
            args.append(f"--{key} {value}")

    return args


def _frontend_spec(request: DeploymentRequest) -> dict:
    spec: dict[str, Any] = {
        "componentType": "frontend",
        "dynamoNamespace": request.name,
        "replicas": 1,
    }
    if request.router_mode != "none":
        spec["router-mode"] = request.router_mode
    if request.hf_token_secret:
        spec["envFromSecret"] = request.hf_token_secret
    return spec


def _worker_spec(request: DeploymentRequest) -> dict:
    topology = derive_topology(request)
    spec: dict[str, Any] = {
        "componentType": "worker",
        "dynamoNamespace": request.name,
        "replicas": topology.total_instances,
    }
    if request.hf_token_secret:
        spec["envFromSecret"] = request.hf_token_secret

    if request.resources is not None:
        gpu = request.resources.gpu or topology.max_gpus_per_pod
        # The Dynamo operator expects GPU counts as strings
        quantities = {"gpu": str(gpu)}
        if request.resources.memory:
            quantities["memory"] = request.resources.memory
        spec["resources"] = {"limits": dict(quantities), "requests": dict(quantities)}

    spec["extraPodSpec"] = {
        "mainContainer": {
            "workingDir": f"/workspace/examples/backends/{request.engine}",
            "command": ["/bin/sh", "-c"],
            "args": [" ".join(build_engine_args(request))],
        },
    }
    return spec


def generate_dynamo_manifest(request: DeploymentRequest) -> dict:
    """Render a DynamoGraphDeployment for a validated request."""
    services = {
        "Frontend": _frontend_spec(request),
        WORKER_KEYS[request.engine]: _worker_spec(request),
    }
    return {
        "apiVersion": _CRD.full_api_version,
        "kind": _CRD.kind,
        "metadata": object_metadata(request.name, request.namespace, "dynamo"),
        "spec": {
            "backendFramework": request.engine,
            "services": services,
        },
    }


def _service_roles(spec: Mapping[str, Any]) -> list[str] | None:
    services = spec.get("services")
    if not isinstance(services, Mapping):
        return None
    return [k for k, v in services.items() if v]


def validate_dynamo_manifest(manifest: Any) -> list[str]:
    return check_structure(
        manifest,
        api_version=_CRD.full_api_version,
        kind=_CRD.kind,
        services_field="spec.services",
        roles=_service_roles,
        frontend_keys=("Frontend",),
        worker_keys=tuple(WORKER_KEYS.values()),
        worker_label="worker spec (VllmWorker, SglangWorker, or TrtllmWorker)",
    )


class DynamoProvider(RuntimeProvider):
    """Disaggregated-serving graph runtime with KV-cache aware routing."""

    id = "dynamo"
    name = "NVIDIA Dynamo"
    description = "High-performance inference with KV-cache routing and disaggregated serving"
    default_namespace = "dynamo-system"
    operator_pod_match = "dynamo-operator"

    def get_crd_config(self) -> CRDConfig:
        return _CRD

    def get_helm_repos(self) -> list[HelmRepo]:
        return [HelmRepo(name="nvidia-dynamo", url=DYNAMO_HELM_REPO)]

    def get_helm_charts(self) -> list[HelmChart]:
        return [
            HelmChart(
                name="dynamo-crds",
                chart="nvidia-dynamo/dynamo-crds",
                namespace="default",
                version=DYNAMO_VERSION,
                create_namespace=False,
            ),
            HelmChart(
                name="dynamo-platform",
                chart="nvidia-dynamo/dynamo-platform",
                namespace="dynamo-system",
                version=DYNAMO_VERSION,
            ),
        ]

    def get_installation_steps(self) -> list[InstallationStep]:
        return [
            InstallationStep(
                title="Add NVIDIA Dynamo Helm repository",
                description="Register the NGC chart repository that hosts the Dynamo charts.",
                command=f"helm repo add nvidia-dynamo {DYNAMO_HELM_REPO}",
            ),
            InstallationStep(
                title="Update Helm repositories",
                description="Fetch the latest chart index.",
                command="helm repo update",
            ),
            InstallationStep(
                title="Install Dynamo CRDs",
                description="Install the DynamoGraphDeployment custom resource definitions.",
                command=(
                    f"helm upgrade --install dynamo-crds nvidia-dynamo/dynamo-crds "
                    f"--namespace default --version {DYNAMO_VERSION}"
                ),
            ),
            InstallationStep(
                title="Install Dynamo platform",
                description="Install the Dynamo operator and its supporting services.",
                command=(
                    f"helm upgrade --install dynamo-platform nvidia-dynamo/dynamo-platform "
                    f"--namespace dynamo-system --create-namespace --version {DYNAMO_VERSION}"
                ),
            ),
        ]

    def validate_config(self, raw: Mapping[str, Any]) -> ConfigValidation:
        return parse_deployment_request(raw, self.id)

    def generate_manifest(self, config: DeploymentRequest) -> dict:
        logger.debug("Generating DynamoGraphDeployment %s/%s", config.namespace, config.name)
        return generate_dynamo_manifest(config)

    def validate_manifest(self, manifest: Mapping[str, Any]) -> list[str]:
        return validate_dynamo_manifest(manifest)


register("dynamo", DynamoProvider)
