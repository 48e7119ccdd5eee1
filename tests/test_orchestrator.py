"""Tests for kubefoundry.orchestrator: the cluster is mocked."""

from unittest.mock import MagicMock

import pytest
from kubernetes.client.rest import ApiException

from kubefoundry.config import CostSettings, Settings
from kubefoundry.errors import UnknownProvider, ValidationError
from kubefoundry.gpu_fit import CAPACITY_UNKNOWN_WARNING
from kubefoundry.models import ClusterGpuCapacity, NodeGpuInfo
from kubefoundry.orchestrator import apply_plan, delete_deployment, list_deployments, plan_deployment


def _cluster_with(*available_per_node):
    cluster = MagicMock()
    cluster.get_cluster_gpu_capacity.return_value = ClusterGpuCapacity.from_nodes([
        NodeGpuInfo(f"node-{i}", 8, 8 - free, free) for i, free in enumerate(available_per_node)
    ])
    return cluster


def _raw(**kwargs):
    raw = {"name": "qwen", "model_id": "Qwen/Qwen3-0.6B"}
    raw.update(kwargs)
    return raw


class TestPlanDeployment:
    def test_dynamo_plan(self):
        plan = plan_deployment(_raw(replicas=2, gpus_per_replica=4), Settings(), _cluster_with(8, 8))
        assert plan.provider_id == "dynamo"
        assert plan.config.namespace == "dynamo-system"
        assert plan.topology.total_gpus == 8
        assert plan.fit.fits
        assert plan.warnings == []
        assert plan.manifest["kind"] == "DynamoGraphDeployment"
        assert plan.cost.gpu_multiplier == 2

    def test_default_provider_from_settings(self):
        plan = plan_deployment(_raw(), Settings(active_provider_id="kuberay"))
        assert plan.provider_id == "kuberay"
        assert plan.manifest["kind"] == "RayService"

    def test_namespace_from_settings(self):
        plan = plan_deployment(_raw(), Settings(default_namespace="llm"))
        assert plan.config.namespace == "llm"

    def test_insufficient_capacity_is_advisory(self):
        # 7 free, one short of 8
        plan = plan_deployment(_raw(replicas=2, gpus_per_replica=4), Settings(), _cluster_with(4, 3))
        assert not plan.fit.fits
        assert plan.manifest["kind"] == "DynamoGraphDeployment"
        assert any("Insufficient GPUs" in w for w in plan.warnings)

    def test_model_min_gpus(self):
        plan = plan_deployment(
            _raw(model_id="meta-llama/Llama-3.3-70B-Instruct"), Settings(), _cluster_with(2),
        )
        assert not plan.fit.fits
        assert plan.fit.required_gpus == 4

    def test_no_cluster_degrades(self):
        plan = plan_deployment(_raw(), Settings())
        assert plan.fit.fits
        assert not plan.fit.capacity_known
        assert plan.warnings == [CAPACITY_UNKNOWN_WARNING]

    def test_cost_uses_settings(self):
        settings = Settings(costs=CostSettings(cloud_provider="aws", gpu_type="nvidia-a100-80gb"))
        plan = plan_deployment(_raw(replicas=2, gpus_per_replica=4), settings)
        assert plan.cost.has_actual_costs
        assert plan.cost.hourly_rate == pytest.approx(32.80)

    def test_kaito_cpu_skips_capacity(self):
        cluster = MagicMock()
        plan = plan_deployment(
            {"provider": "kaito", "name": "llama-cpu", "model_source": "premade",
             "premade_model": "llama3.2:1b"},
            Settings(),
            cluster,
        )
        assert plan.topology.total_gpus == 0
        assert plan.fit.fits
        assert plan.warnings == []
        cluster.get_cluster_gpu_capacity.assert_not_called()
        assert plan.manifest["kind"] == "Workspace"

    def test_validation_errors(self):
        with pytest.raises(ValidationError) as exc_info:
            plan_deployment({"name": "Bad Name", "replicas": 0}, Settings())
        errors = exc_info.value.errors
        assert any(e.startswith("name:") for e in errors)
        assert "model_id: is required" in errors
        assert "replicas: must be at least 1" in errors

    def test_unknown_provider(self):
        with pytest.raises(UnknownProvider):
            plan_deployment(_raw(provider="triton"), Settings())


class TestClusterOperations:
    def test_apply_plan(self):
        plan = plan_deployment(_raw(), Settings())
        cluster = MagicMock()
        apply_plan(plan, cluster)
        manifest, crd = cluster.apply_manifest.call_args[0]
        assert manifest is plan.manifest
        assert crd.kind == "DynamoGraphDeployment"

    def test_delete(self):
        cluster = MagicMock()
        cluster.delete_custom_resource.return_value = True
        assert delete_deployment("kuberay", "llama", "default", cluster)
        crd, name, namespace = cluster.delete_custom_resource.call_args[0]
        assert crd.kind == "RayService"
        assert (name, namespace) == ("llama", "default")

    def test_list_all_providers(self):
        cluster = MagicMock()
        cluster.list_custom_resources.side_effect = [
            [{"kind": "DynamoGraphDeployment"}],
            ApiException(status=404),
            [{"kind": "Workspace"}],
        ]
        items = list_deployments(cluster)
        assert [i["kind"] for i in items] == ["DynamoGraphDeployment", "Workspace"]

    def test_list_one_provider(self):
        cluster = MagicMock()
        cluster.list_custom_resources.return_value = []
        assert list_deployments(cluster, "kaito", "default") == []
        crd, namespace = cluster.list_custom_resources.call_args[0]
        assert crd.kind == "Workspace"
        assert namespace == "default"

    def test_list_other_errors_propagate(self):
        cluster = MagicMock()
        cluster.list_custom_resources.side_effect = ApiException(status=403)
        with pytest.raises(ApiException):
            list_deployments(cluster, "dynamo")
