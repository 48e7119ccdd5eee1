"""KubeRay provider: RayService running a Ray Serve LLM application on vLLM."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional

import yaml

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

KUBERAY_VERSION = "1.4.2"
KUBERAY_HELM_REPO = "https://ray-project.github.io/kuberay-helm/"
RAY_VERSION = "2.46.0"
RAY_IMAGE = f"rayproject/ray-llm:{RAY_VERSION}-py311-cu124"

HEAD_GROUP = "headGroupSpec"
GPU_WORKERS = "gpu-workers"
PREFILL_WORKERS = "prefill-workers"
DECODE_WORKERS = "decode-workers"

_CRD = CRDConfig(
    api_group="ray.io",
    api_version="v1",
    plural="rayservices",
    kind="RayService",
)


def _token_env(request: DeploymentRequest) -> list[dict]:
    if not request.hf_token_secret:
        return []
    return [{
        "name": "HF_TOKEN",
        "valueFrom": {"secretKeyRef": {"name": request.hf_token_secret, "key": "HF_TOKEN"}},
    }]


def _engine_kwargs(request: DeploymentRequest, gpus: int) -> dict:
    kwargs: dict[str, Any] = {"tensor_parallel_size": gpus}
    if request.context_length:
        kwargs["max_model_len"] = request.context_length
    if request.enforce_eager:
        kwargs["enforce_eager"] = True
    if request.enable_prefix_caching:
        kwargs["enable_prefix_caching"] = True
    if request.trust_remote_code:
        kwargs["trust_remote_code"] = True
    for key, value in request.engine_args.items():
        if value is False:
            continue
        kwargs[key.replace("-", "_")] = value
    return kwargs


def _llm_config(request: DeploymentRequest, replicas: int, gpus: int) -> dict:
    return {
        "model_loading_config": {
            "model_id": request.served_model_name or request.model_id,
            "model_source": request.model_id,
        },
        "engine_kwargs": _engine_kwargs(request, gpus),
        "deployment_config": {
            "autoscaling_config": {"min_replicas": replicas, "max_replicas": replicas},
        },
    }


def build_serve_config(request: DeploymentRequest) -> dict:
    """Ray Serve application config; prefill/decode split in disaggregated mode."""
    topology = derive_topology(request)
    if request.mode == "disaggregated":
        app = {
            "name": "llm",
            "route_prefix": "/",
            "import_path": "ray.serve.llm:build_pd_openai_app",
            "args": {
                "prefill_config": _llm_config(
                    request, topology.prefill_instances, topology.prefill_gpus_per_instance,
                ),
                "decode_config": _llm_config(
                    request, topology.decode_instances, topology.decode_gpus_per_instance,
                ),
            },
        }
    else:
        app = {
            "name": "llm",
            "route_prefix": "/",
            "import_path": "ray.serve.llm:build_openai_app",
            "args": {
                "llm_configs": [
                    _llm_config(request, topology.worker_instances, topology.gpus_per_worker),
                ],
            },
        }
    return {"applications": [app]}


def _head_group(request: DeploymentRequest) -> dict:
    return {
        "rayStartParams": {"dashboard-host": "0.0.0.0", "num-gpus": "0"},
        "template": {
            "spec": {
                "containers": [{
                    "name": "ray-head",
                    "image": RAY_IMAGE,
                    "ports": [
                        {"containerPort": 6379, "name": "gcs-server"},
                        {"containerPort": 8265, "name": "dashboard"},
                        {"containerPort": 10001, "name": "client"},
                        {"containerPort": 8000, "name": "serve"},
                    ],
                    "env": _token_env(request),
                    "resources": {
                        "requests": {"cpu": "2", "memory": "8Gi"},
                        "limits": {"cpu": "4", "memory": "16Gi"},
                    },
                }],
            },
        },
    }


def _worker_group(request: DeploymentRequest, group: str, replicas: int, gpus: int) -> dict:
    limits = {"nvidia.com/gpu": str(gpus)}
    requests = {"nvidia.com/gpu": str(gpus)}
    resources = request.resources
    if resources is not None and resources.memory:
        limits["memory"] = requests["memory"] = resources.memory
    if resources is not None and resources.cpu:
        limits["cpu"] = requests["cpu"] = resources.cpu

    return {
        "groupName": group,
        "replicas": replicas,
        "minReplicas": replicas,
        "maxReplicas": replicas,
        "rayStartParams": {},
        "template": {
            "spec": {
                "containers": [{
                    "name": "ray-worker",
                    "image": RAY_IMAGE,
                    "env": _token_env(request),
                    "resources": {"requests": requests, "limits": limits},
                }],
            },
        },
    }


def generate_kuberay_manifest(request: DeploymentRequest) -> dict:
    """Render a RayService for a validated request."""
    topology = derive_topology(request)
    if request.mode == "disaggregated":
        worker_groups = [
            _worker_group(request, PREFILL_WORKERS, topology.prefill_instances,
                          topology.prefill_gpus_per_instance),
            _worker_group(request, DECODE_WORKERS, topology.decode_instances,
                          topology.decode_gpus_per_instance),
        ]
    else:
        worker_groups = [
            _worker_group(request, GPU_WORKERS, topology.worker_instances, topology.gpus_per_worker),
        ]

    return {
        "apiVersion": _CRD.full_api_version,
        "kind": _CRD.kind,
        "metadata": object_metadata(request.name, request.namespace, "kuberay"),
        "spec": {
            "serveConfigV2": yaml.safe_dump(build_serve_config(request), sort_keys=False),
            "rayClusterConfig": {
                "rayVersion": RAY_VERSION,
                HEAD_GROUP: _head_group(request),
                "workerGroupSpecs": worker_groups,
            },
        },
    }


def _cluster_roles(spec: Mapping[str, Any]) -> Optional[list[str]]:
    cluster = spec.get("rayClusterConfig")
    if not isinstance(cluster, Mapping):
        return None
    roles = [HEAD_GROUP] if cluster.get(HEAD_GROUP) else []
    for group in cluster.get("workerGroupSpecs") or []:
        if isinstance(group, Mapping) and group.get("groupName"):
            roles.append(group["groupName"])
    return roles


def validate_kuberay_manifest(manifest: Any) -> list[str]:
    errors = check_structure(
        manifest,
        api_version=_CRD.full_api_version,
        kind=_CRD.kind,
        services_field="spec.rayClusterConfig",
        roles=_cluster_roles,
        frontend_keys=(HEAD_GROUP,),
        worker_keys=(GPU_WORKERS, PREFILL_WORKERS, DECODE_WORKERS),
        frontend_label=HEAD_GROUP,
        worker_label=f"worker group ({GPU_WORKERS}, {PREFILL_WORKERS}, or {DECODE_WORKERS})",
    )
    spec = manifest.get("spec") if isinstance(manifest, Mapping) else None
    if isinstance(spec, Mapping) and not spec.get("serveConfigV2"):
        errors.append("Missing spec.serveConfigV2")
    return errors


class KubeRayProvider(RuntimeProvider):
    """Ray-based serving on vLLM, managed by the KubeRay operator."""

    id = "kuberay"
    name = "KubeRay"
    description = "Ray-based serving with autoscaling and distributed inference"
    default_namespace = "kuberay-system"
    operator_pod_match = "kuberay-operator"

    def get_crd_config(self) -> CRDConfig:
        return _CRD

    def get_helm_repos(self) -> list[HelmRepo]:
        return [HelmRepo(name="kuberay", url=KUBERAY_HELM_REPO)]

    def get_helm_charts(self) -> list[HelmChart]:
        return [
            HelmChart(
                name="kuberay-operator",
                chart="kuberay/kuberay-operator",
                namespace="kuberay-system",
                version=KUBERAY_VERSION,
            ),
        ]

    def get_installation_steps(self) -> list[InstallationStep]:
        return [
            InstallationStep(
                title="Add KubeRay Helm repository",
                description="Register the KubeRay chart repository.",
                command=f"helm repo add kuberay {KUBERAY_HELM_REPO}",
            ),
            InstallationStep(
                title="Update Helm repositories",
                description="Fetch the latest chart index.",
                command="helm repo update",
            ),
            InstallationStep(
                title="Install KubeRay operator",
                description="Install the operator and the RayCluster, RayJob and RayService CRDs.",
                command=(
                    f"helm upgrade --install kuberay-operator kuberay/kuberay-operator "
                    f"--namespace kuberay-system --create-namespace --version {KUBERAY_VERSION}"
                ),
            ),
        ]

    def validate_config(self, raw: Mapping[str, Any]) -> ConfigValidation:
        return parse_deployment_request(raw, self.id, engines=("vllm",))

    def generate_manifest(self, config: DeploymentRequest) -> dict:
        logger.debug("Generating RayService %s/%s", config.namespace, config.name)
        return generate_kuberay_manifest(config)

    def validate_manifest(self, manifest: Mapping[str, Any]) -> list[str]:
        return validate_kuberay_manifest(manifest)


register("kuberay", KubeRayProvider)
