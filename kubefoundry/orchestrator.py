"""Deployment planning: request to topology, fit check, cost, manifest and cluster."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Optional

from kubernetes.client.rest import ApiException

from kubefoundry.config import Settings
from kubefoundry.costs import calculate_cost_estimate, cost_input_from_request
from kubefoundry.errors import ValidationError
from kubefoundry.gpu_fit import format_gpu_warnings, validate_fit
from kubefoundry.model_catalog import model_min_gpus
from kubefoundry.models import DeploymentPlan, GpuFitResult
from kubefoundry.providers.base import raw_get
from kubefoundry.providers.registry import get_provider, list_providers
from kubefoundry.topology import derive_topology

if TYPE_CHECKING:
    from kubefoundry.cluster import KubernetesCluster

logger = logging.getLogger(__name__)


def plan_deployment(
    raw: Mapping[str, Any],
    settings: Optional[Settings] = None,
    cluster: Optional[KubernetesCluster] = None,
) -> DeploymentPlan:
    """Validate a raw request and compute everything needed to deploy it.

    Raises ``UnknownProvider`` or ``ValidationError`` for bad requests and
    ``StructuralManifestInvalid`` if the generated manifest is malformed.
    The GPU fit check is advisory: its warnings are attached to the plan.
    Without a cluster, or when the cluster cannot be queried, the fit
    check degrades to a "capacity unknown" warning.
    """
    settings = settings or Settings()
    provider = get_provider(raw_get(raw, "provider") or settings.active_provider_id)

    validation = provider.validate_config(provider.apply_defaults(raw, settings))
    if not validation.ok:
        raise ValidationError(validation.errors)
    config = validation.config

    topology = derive_topology(config)
    if topology.total_gpus == 0:
        # CPU-only workloads need no GPU capacity
        fit = GpuFitResult(fits=True, capacity_known=False)
    else:
        capacity = cluster.get_cluster_gpu_capacity() if cluster is not None else None
        min_gpus = model_min_gpus(getattr(config, "model_id", None) or "")
        fit = validate_fit(topology, capacity, model_min_gpus=min_gpus)

    cost = calculate_cost_estimate(cost_input_from_request(config, settings.costs), settings.costs)
    manifest = provider.build_manifest(config)

    warnings = format_gpu_warnings(fit)
    for warning in warnings:
        logger.warning("%s", warning)

    logger.info(
        "Planned %s deployment %s/%s: %d GPU(s) across %d instance(s)",
        provider.id, config.namespace, config.name, topology.total_gpus, topology.total_instances,
    )
    return DeploymentPlan(
        provider_id=provider.id,
        config=config,
        topology=topology,
        fit=fit,
        cost=cost,
        manifest=manifest,
        warnings=warnings,
    )


def apply_plan(plan: DeploymentPlan, cluster: KubernetesCluster) -> dict:
    """Create or update the plan's custom resource on the cluster."""
    provider = get_provider(plan.provider_id)
    return cluster.apply_manifest(plan.manifest, provider.get_crd_config())


def delete_deployment(
    provider_id: str,
    name: str,
    namespace: str,
    cluster: KubernetesCluster,
) -> bool:
    """Delete a deployment. Returns False if it did not exist."""
    provider = get_provider(provider_id)
    return cluster.delete_custom_resource(provider.get_crd_config(), name, namespace)


def list_deployments(
    cluster: KubernetesCluster,
    provider_id: Optional[str] = None,
    namespace: Optional[str] = None,
) -> list[dict]:
    """kubefoundry-managed deployments across one or all runtimes."""
    provider_ids = [provider_id] if provider_id else list_providers()
    deployments: list[dict] = []
    for pid in provider_ids:
        provider = get_provider(pid)
        try:
            deployments.extend(cluster.list_custom_resources(provider.get_crd_config(), namespace))
        except ApiException as exc:
            if exc.status != 404:
                raise
            # CRD not installed for this runtime
            logger.debug("No %s CRD on the cluster", pid)
    return deployments
