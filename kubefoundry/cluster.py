"""Cluster access through the official Kubernetes client.

Applies and reads kubefoundry custom resources, inspects node GPU
capacity and checks whether a runtime's operator is installed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from kubefoundry.errors import CapacityUnknown
from kubefoundry.manifests import APP_NAME
from kubefoundry.models import (
    ClusterGpuCapacity,
    CRDConfig,
    GpuOperatorStatus,
    InstallationStatus,
    NodeGpuInfo,
)

if TYPE_CHECKING:
    from kubefoundry.providers.base import RuntimeProvider

logger = logging.getLogger(__name__)

GPU_RESOURCE = "nvidia.com/gpu"
GPU_OPERATOR_NAMESPACE = "gpu-operator"
GPU_OPERATOR_CRD = "clusterpolicies.nvidia.com"
MANAGED_SELECTOR = f"app.kubernetes.io/managed-by={APP_NAME}"


def _gpu_count(resources: Optional[dict]) -> int:
    if not resources:
        return 0
    return int(resources.get(GPU_RESOURCE, "0") or 0)


def _pod_gpu_requests(pod) -> int:
    total = 0
    for container in pod.spec.containers or []:
        res = container.resources
        if res is None:
            continue
        # GPU requests default to limits when only limits are set
        total += _gpu_count(res.requests) or _gpu_count(res.limits)
    return total


def _pod_ready(pod) -> bool:
    if pod.status is None or pod.status.phase != "Running":
        return False
    statuses = pod.status.container_statuses or []
    return bool(statuses) and all(s.ready for s in statuses)


class KubernetesCluster:
    """Thin wrapper over CoreV1Api, CustomObjectsApi and ApiextensionsV1Api.

    Clients are created on first use: in-cluster config when running in
    a pod, the kubeconfig otherwise. Every API call carries
    ``_request_timeout`` so an unreachable cluster fails fast.
    """

    def __init__(
        self,
        context: Optional[str] = None,
        timeout: int = 10,
        core_api=None,
        custom_api=None,
        extensions_api=None,
    ):
        self.context = context
        self.timeout = timeout
        self._core = core_api
        self._custom = custom_api
        self._extensions = extensions_api
        self._configured = core_api is not None

    def _load_config(self) -> None:
        if self._configured:
            return
        try:
            config.load_incluster_config()
        except config.ConfigException:
            config.load_kube_config(context=self.context)
        self._configured = True

    @property
    def core(self) -> client.CoreV1Api:
        if self._core is None:
            self._load_config()
            self._core = client.CoreV1Api()
        return self._core

    @property
    def custom(self) -> client.CustomObjectsApi:
        if self._custom is None:
            self._load_config()
            self._custom = client.CustomObjectsApi()
        return self._custom

    @property
    def extensions(self) -> client.ApiextensionsV1Api:
        if self._extensions is None:
            self._load_config()
            self._extensions = client.ApiextensionsV1Api()
        return self._extensions

    # -- Custom resources ---------------------------------------------------

    def apply_manifest(self, manifest: dict, crd: CRDConfig) -> dict:
        """Create the custom resource, or patch it if it already exists."""
        metadata = manifest["metadata"]
        name, namespace = metadata["name"], metadata["namespace"]
        try:
            obj = self.custom.create_namespaced_custom_object(
                crd.api_group, crd.api_version, namespace, crd.plural, manifest,
                _request_timeout=self.timeout,
            )
            logger.info("Created %s %s/%s", crd.kind, namespace, name)
        except ApiException as exc:
            if exc.status != 409:
                raise
            obj = self.custom.patch_namespaced_custom_object(
                crd.api_group, crd.api_version, namespace, crd.plural, name, manifest,
                _request_timeout=self.timeout,
            )
            logger.info("Updated %s %s/%s", crd.kind, namespace, name)
        return obj

    def get_custom_resource(self, crd: CRDConfig, name: str, namespace: str) -> Optional[dict]:
        try:
            return self.custom.get_namespaced_custom_object(
                crd.api_group, crd.api_version, namespace, crd.plural, name,
                _request_timeout=self.timeout,
            )
        except ApiException as exc:
            if exc.status == 404:
                return None
            raise

    def delete_custom_resource(self, crd: CRDConfig, name: str, namespace: str) -> bool:
        """Delete a custom resource. Returns False if it did not exist."""
        try:
            self.custom.delete_namespaced_custom_object(
                crd.api_group, crd.api_version, namespace, crd.plural, name,
                _request_timeout=self.timeout,
            )
        except ApiException as exc:
            if exc.status == 404:
                return False
            raise
        logger.info("Deleted %s %s/%s", crd.kind, namespace, name)
        return True

    def list_custom_resources(self, crd: CRDConfig, namespace: Optional[str] = None) -> list[dict]:
        """kubefoundry-managed resources of one kind, in a namespace or cluster-wide."""
        if namespace:
            result = self.custom.list_namespaced_custom_object(
                crd.api_group, crd.api_version, namespace, crd.plural,
                label_selector=MANAGED_SELECTOR, _request_timeout=self.timeout,
            )
        else:
            result = self.custom.list_cluster_custom_object(
                crd.api_group, crd.api_version, crd.plural,
                label_selector=MANAGED_SELECTOR, _request_timeout=self.timeout,
            )
        return result.get("items", [])

    # -- GPU capacity -------------------------------------------------------

    def list_nodes(self) -> list[NodeGpuInfo]:
        """GPU nodes with allocatable, allocated and free GPU counts."""
        nodes = self.core.list_node(_request_timeout=self.timeout)
        pods = self.core.list_pod_for_all_namespaces(
            field_selector="status.phase!=Succeeded,status.phase!=Failed",
            _request_timeout=self.timeout,
        )

        allocated: dict[str, int] = {}
        for pod in pods.items:
            node_name = pod.spec.node_name
            if node_name:
                allocated[node_name] = allocated.get(node_name, 0) + _pod_gpu_requests(pod)

        result = []
        for node in nodes.items:
            total = _gpu_count(node.status.allocatable)
            if total <= 0:
                continue
            used = min(allocated.get(node.metadata.name, 0), total)
            result.append(NodeGpuInfo(
                node_name=node.metadata.name,
                total_gpus=total,
                allocated_gpus=used,
                available_gpus=total - used,
            ))
        return result

    def gpu_capacity(self) -> ClusterGpuCapacity:
        """Current GPU capacity. Raises ``CapacityUnknown`` if the cluster cannot be queried."""
        try:
            nodes = self.list_nodes()
        except Exception as exc:
            raise CapacityUnknown(f"Cluster GPU capacity could not be determined: {exc}") from exc
        return ClusterGpuCapacity.from_nodes(nodes)

    def get_cluster_gpu_capacity(self) -> Optional[ClusterGpuCapacity]:
        """Current GPU capacity, or None if the cluster cannot be queried."""
        try:
            return self.gpu_capacity()
        except CapacityUnknown as exc:
            logger.warning("%s", exc)
            return None

    # -- Installation status ------------------------------------------------

    def crd_exists(self, crd_name: str) -> bool:
        try:
            self.extensions.read_custom_resource_definition(crd_name, _request_timeout=self.timeout)
        except ApiException as exc:
            if exc.status == 404:
                return False
            raise
        return True

    def operator_running(self, namespace: str, pod_match: str) -> bool:
        pods = self.core.list_namespaced_pod(namespace, _request_timeout=self.timeout)
        return any(
            pod_match in pod.metadata.name and _pod_ready(pod)
            for pod in pods.items
        )

    def get_operator_status(self, crd: CRDConfig, namespace: str, pod_match: str) -> tuple[bool, bool]:
        """(crd_found, operator_running) for one runtime operator."""
        return self.crd_exists(crd.crd_name), self.operator_running(namespace, pod_match)

    def check_provider_installation(self, provider: RuntimeProvider) -> InstallationStatus:
        try:
            crd_found, running = self.get_operator_status(
                provider.get_crd_config(), provider.operator_namespace(), provider.operator_pod_match,
            )
        except Exception as exc:
            logger.warning("Could not check %s installation: %s", provider.id, exc)
            return InstallationStatus(installed=False, message=f"Could not query cluster: {exc}")

        if crd_found and running:
            message = f"{provider.name} is installed and running"
        elif crd_found:
            message = f"{provider.name} CRD found but the operator is not running"
        else:
            message = f"{provider.name} is not installed ({provider.get_crd_config().crd_name} not found)"

        return InstallationStatus(
            installed=crd_found and running,
            crd_found=crd_found,
            operator_running=running,
            message=message,
        )

    def check_gpu_operator_status(self) -> GpuOperatorStatus:
        try:
            crd_found = self.crd_exists(GPU_OPERATOR_CRD)
            running = self.operator_running(GPU_OPERATOR_NAMESPACE, "gpu-operator")
            nodes = self.list_nodes()
        except Exception as exc:
            logger.warning("Could not check GPU operator status: %s", exc)
            return GpuOperatorStatus(installed=False, message=f"Could not query cluster: {exc}")

        total = sum(n.total_gpus for n in nodes)
        if crd_found and running:
            message = f"GPU Operator running, {total} GPU{'s' if total != 1 else ''} available"
        elif total > 0:
            message = "GPUs detected but the NVIDIA GPU Operator is not installed"
        else:
            message = "NVIDIA GPU Operator is not installed"

        return GpuOperatorStatus(
            installed=crd_found and running,
            crd_found=crd_found,
            operator_running=running,
            gpus_available=total > 0,
            total_gpus=total,
            gpu_nodes=[n.node_name for n in nodes],
            message=message,
        )
