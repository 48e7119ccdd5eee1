"""Tests for kubefoundry.providers.kuberay_provider."""

import yaml

from kubefoundry.models import DeploymentRequest, ResourceOverrides
from kubefoundry.providers.kuberay_provider import (
    RAY_IMAGE,
    KubeRayProvider,
    build_serve_config,
    generate_kuberay_manifest,
    validate_kuberay_manifest,
)


def _request(**kwargs):
    defaults = dict(
        name="llama", namespace="kuberay-system",
        model_id="meta-llama/Llama-3.1-8B-Instruct", provider="kuberay",
    )
    defaults.update(kwargs)
    return DeploymentRequest(**defaults)


class TestServeConfig:
    def test_aggregated(self):
        config = build_serve_config(_request(replicas=2, gpus_per_replica=4, context_length=4096))
        app = config["applications"][0]
        assert app["import_path"] == "ray.serve.llm:build_openai_app"
        llm = app["args"]["llm_configs"][0]
        assert llm["model_loading_config"]["model_source"] == "meta-llama/Llama-3.1-8B-Instruct"
        assert llm["engine_kwargs"]["tensor_parallel_size"] == 4
        assert llm["engine_kwargs"]["max_model_len"] == 4096
        assert llm["deployment_config"]["autoscaling_config"] == {"min_replicas": 2, "max_replicas": 2}

    def test_served_model_name(self):
        config = build_serve_config(_request(served_model_name="llama-8b"))
        llm = config["applications"][0]["args"]["llm_configs"][0]
        assert llm["model_loading_config"]["model_id"] == "llama-8b"

    def test_disaggregated(self):
        config = build_serve_config(_request(
            mode="disaggregated", prefill_replicas=1, prefill_gpus=2, decode_replicas=3, decode_gpus=1,
        ))
        app = config["applications"][0]
        assert app["import_path"] == "ray.serve.llm:build_pd_openai_app"
        assert app["args"]["prefill_config"]["engine_kwargs"]["tensor_parallel_size"] == 2
        assert app["args"]["decode_config"]["deployment_config"]["autoscaling_config"]["min_replicas"] == 3

    def test_engine_args_snake_cased(self):
        config = build_serve_config(_request(
            enforce_eager=False, engine_args={"gpu-memory-utilization": 0.85, "off": False},
        ))
        kwargs = config["applications"][0]["args"]["llm_configs"][0]["engine_kwargs"]
        assert kwargs["gpu_memory_utilization"] == 0.85
        assert "off" not in kwargs
        assert "enforce_eager" not in kwargs


class TestGenerateManifest:
    def test_valid_aggregated(self):
        manifest = generate_kuberay_manifest(_request(replicas=2, gpus_per_replica=2))
        assert validate_kuberay_manifest(manifest) == []
        assert manifest["apiVersion"] == "ray.io/v1"
        assert manifest["kind"] == "RayService"
        cluster = manifest["spec"]["rayClusterConfig"]
        assert [g["groupName"] for g in cluster["workerGroupSpecs"]] == ["gpu-workers"]
        group = cluster["workerGroupSpecs"][0]
        assert group["replicas"] == 2
        container = group["template"]["spec"]["containers"][0]
        assert container["image"] == RAY_IMAGE
        assert container["resources"]["limits"]["nvidia.com/gpu"] == "2"

    def test_valid_disaggregated(self):
        manifest = generate_kuberay_manifest(_request(mode="disaggregated"))
        assert validate_kuberay_manifest(manifest) == []
        groups = manifest["spec"]["rayClusterConfig"]["workerGroupSpecs"]
        assert [g["groupName"] for g in groups] == ["prefill-workers", "decode-workers"]

    def test_serve_config_is_yaml(self):
        manifest = generate_kuberay_manifest(_request())
        parsed = yaml.safe_load(manifest["spec"]["serveConfigV2"])
        assert parsed == build_serve_config(_request())

    def test_head_exposes_serve_port(self):
        head = generate_kuberay_manifest(_request())["spec"]["rayClusterConfig"]["headGroupSpec"]
        ports = head["template"]["spec"]["containers"][0]["ports"]
        assert {"containerPort": 8000, "name": "serve"} in ports

    def test_token_env(self):
        head = generate_kuberay_manifest(_request())["spec"]["rayClusterConfig"]["headGroupSpec"]
        env = head["template"]["spec"]["containers"][0]["env"]
        assert env[0]["valueFrom"]["secretKeyRef"] == {"name": "hf-token-secret", "key": "HF_TOKEN"}

    def test_resource_overrides(self):
        manifest = generate_kuberay_manifest(_request(resources=ResourceOverrides(memory="32Gi", cpu="8")))
        group = manifest["spec"]["rayClusterConfig"]["workerGroupSpecs"][0]
        limits = group["template"]["spec"]["containers"][0]["resources"]["limits"]
        assert limits == {"nvidia.com/gpu": "1", "memory": "32Gi", "cpu": "8"}


class TestValidateManifest:
    def test_missing_head(self):
        manifest = generate_kuberay_manifest(_request())
        del manifest["spec"]["rayClusterConfig"]["headGroupSpec"]
        assert validate_kuberay_manifest(manifest) == ["Missing headGroupSpec in spec.rayClusterConfig"]

    def test_missing_workers(self):
        manifest = generate_kuberay_manifest(_request())
        manifest["spec"]["rayClusterConfig"]["workerGroupSpecs"] = []
        errors = validate_kuberay_manifest(manifest)
        assert len(errors) == 1
        assert errors[0].startswith("Missing worker group")

    def test_missing_serve_config(self):
        manifest = generate_kuberay_manifest(_request())
        del manifest["spec"]["serveConfigV2"]
        assert validate_kuberay_manifest(manifest) == ["Missing spec.serveConfigV2"]

    def test_missing_cluster(self):
        manifest = generate_kuberay_manifest(_request())
        del manifest["spec"]["rayClusterConfig"]
        assert validate_kuberay_manifest(manifest) == ["Missing spec.rayClusterConfig"]


class TestKubeRayProvider:
    def setup_method(self):
        self.provider = KubeRayProvider()

    def test_only_vllm(self):
        result = self.provider.validate_config({
            "name": "llama", "namespace": "default", "model_id": "m", "engine": "sglang",
        })
        assert result.errors == ["engine: 'sglang' is not supported by kuberay (supported: vllm)"]

    def test_chart(self):
        charts = self.provider.get_helm_charts()
        assert [c.chart for c in charts] == ["kuberay/kuberay-operator"]
        assert self.provider.operator_namespace() == "kuberay-system"

    def test_crd(self):
        assert self.provider.get_crd_config().crd_name == "rayservices.ray.io"

    def test_build_manifest(self):
        config = self.provider.validate_config({
            "name": "llama", "namespace": "default", "model_id": "m",
        }).config
        assert self.provider.build_manifest(config)["kind"] == "RayService"
