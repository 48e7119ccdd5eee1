"""Abstract base class for runtime providers, plus shared request parsing."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Optional

from kubefoundry.manifests import ensure_valid_manifest
from kubefoundry.models import (
    ConfigValidation,
    DeploymentRequest,
    CRDConfig,
    HelmChart,
    HelmRepo,
    InstallationStep,
    ProviderInfo,
    ResourceOverrides,
)
from kubefoundry.validation import namespace_errors, resource_name_errors


class RuntimeProvider(ABC):
    """Base class for runtime providers (Dynamo, KubeRay, KAITO).

    A provider is a static descriptor: identity, CRD, the helm charts
    that install its operator, and the request validator and manifest
    synthesizer for its custom resource. Instances are stateless.
    """

    id: str = ""
    name: str = ""
    description: str = ""
    default_namespace: str = "default"
    # Substring identifying the operator's pods in the chart namespace
    operator_pod_match: str = ""

    def info(self) -> ProviderInfo:
        return ProviderInfo(
            id=self.id,
            name=self.name,
            description=self.description,
            default_namespace=self.default_namespace,
        )

    @abstractmethod
    def get_crd_config(self) -> CRDConfig:
        ...

    @abstractmethod
    def get_installation_steps(self) -> list[InstallationStep]:
        """Ordered, human-readable installation steps."""
        ...

    @abstractmethod
    def get_helm_repos(self) -> list[HelmRepo]:
        ...

    @abstractmethod
    def get_helm_charts(self) -> list[HelmChart]:
        """Charts in install order (dependencies first)."""
        ...

    @abstractmethod
    def validate_config(self, raw: Mapping[str, Any]) -> ConfigValidation:
        """Normalize a raw request, or collect every field-level error."""
        ...

    @abstractmethod
    def generate_manifest(self, config) -> dict:
        """Render the custom resource for a validated config. Pure function."""
        ...

    @abstractmethod
    def validate_manifest(self, manifest: Mapping[str, Any]) -> list[str]:
        """Structural check of a candidate manifest. Returns all violations."""
        ...

    def operator_namespace(self) -> str:
        charts = self.get_helm_charts()
        return charts[-1].namespace if charts else self.default_namespace

    def apply_defaults(self, raw: Mapping[str, Any], settings) -> dict[str, Any]:
        """Fill request fields the user left out from ``Settings``."""
        merged = dict(raw)
        if raw_get(merged, "namespace") is None:
            merged["namespace"] = settings.default_namespace or self.default_namespace
        if raw_get(merged, "hf_token_secret") is None:
            merged["hf_token_secret"] = settings.hf_token_secret
        return merged

    def build_manifest(self, config) -> dict:
        """Generate a manifest and self-check it.

        Raises ``StructuralManifestInvalid`` if the generated document is
        malformed, which indicates a synthesizer bug rather than bad input.
        """
        manifest = self.generate_manifest(config)
        ensure_valid_manifest(self.validate_manifest(manifest))
        return manifest


# ---------------------------------------------------------------------------
# Raw request parsing helpers
# ---------------------------------------------------------------------------

def _camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part.capitalize() for part in rest)


def raw_get(raw: Mapping[str, Any], key: str, default: Any = None) -> Any:
    """Fetch ``key`` from a raw request, accepting snake_case or camelCase."""
    if key in raw:
        return raw[key]
    camel = _camel(key)
    if camel in raw:
        return raw[camel]
    return default


def parse_int(
    raw: Mapping[str, Any],
    key: str,
    errors: list[str],
    *,
    default: Optional[int] = None,
    minimum: Optional[int] = None,
    maximum: Optional[int] = None,
) -> Optional[int]:
    value = raw_get(raw, key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        errors.append(f"{key}: must be an integer")
        return default
    if minimum is not None and value < minimum:
        errors.append(f"{key}: must be at least {minimum}")
    if maximum is not None and value > maximum:
        errors.append(f"{key}: must be at most {maximum}")
    return value


def parse_bool(raw: Mapping[str, Any], key: str, errors: list[str], *, default: bool) -> bool:
    value = raw_get(raw, key)
    if value is None:
        return default
    if not isinstance(value, bool):
        errors.append(f"{key}: must be a boolean")
        return default
    return value


def parse_str(
    raw: Mapping[str, Any],
    key: str,
    errors: list[str],
    *,
    default: Optional[str] = None,
    required: bool = False,
    choices: Optional[tuple[str, ...]] = None,
) -> Optional[str]:
    value = raw_get(raw, key)
    if value is None or value == "":
        if required:
            errors.append(f"{key}: is required")
        return default
    if not isinstance(value, str):
        errors.append(f"{key}: must be a string")
        return default
    if choices is not None and value not in choices:
        errors.append(f"{key}: must be one of {', '.join(choices)}")
        return default
    return value


def parse_identity(
    raw: Mapping[str, Any], provider_id: str, errors: list[str]
) -> tuple[Optional[str], Optional[str]]:
    """Validate name, namespace and provider id common to all runtimes."""
    name = raw_get(raw, "name")
    namespace = raw_get(raw, "namespace")
    errors.extend(resource_name_errors(name))
    errors.extend(namespace_errors(namespace))

    provider = raw_get(raw, "provider")
    if provider is not None and provider != provider_id:
        errors.append(f"provider: expected {provider_id!r}, got {provider!r}")

    return (
        name if isinstance(name, str) else None,
        namespace if isinstance(namespace, str) else None,
    )


def parse_resources(raw: Mapping[str, Any], errors: list[str]) -> Optional[ResourceOverrides]:
    value = raw_get(raw, "resources")
    if value is None:
        return None
    if not isinstance(value, Mapping):
        errors.append("resources: must be a mapping")
        return None
    gpu = parse_int(value, "gpu", errors, minimum=0)
    memory = parse_str(value, "memory", errors)
    cpu = value.get("cpu")
    if cpu is not None and not isinstance(cpu, (str, int)):
        errors.append("resources.cpu: must be a string or integer")
        cpu = None
    return ResourceOverrides(gpu=gpu, memory=memory, cpu=str(cpu) if cpu is not None else None)


def parse_engine_args(raw: Mapping[str, Any], errors: list[str]) -> dict[str, Any]:
    """Free-form engine flags: an ordered mapping of scalar values only."""
    value = raw_get(raw, "engine_args")
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        errors.append("engine_args: must be a mapping")
        return {}
    args: dict[str, Any] = {}
    for key, arg in value.items():
        if not isinstance(key, str) or not key:
            errors.append(f"engine_args: invalid key {key!r}")
            continue
        if not isinstance(arg, (str, int, float, bool)):
            errors.append(f"engine_args.{key}: must be a string, number or boolean")
            continue
        args[key] = arg
    return args


ENGINES = ("vllm", "sglang", "trtllm")
MODES = ("aggregated", "disaggregated")
ROUTER_MODES = ("none", "kv", "round-robin")


def parse_deployment_request(
    raw: Mapping[str, Any],
    provider_id: str,
    *,
    engines: tuple[str, ...] = ENGINES,
) -> ConfigValidation:
    """Validate the GPU deployment request shared by Dynamo and KubeRay.

    ``gpus_per_replica`` falls back to ``resources.gpu`` and then to 1.
    """
    errors: list[str] = []
    name, namespace = parse_identity(raw, provider_id, errors)

    model_id = parse_str(raw, "model_id", errors, required=True)
    engine = parse_str(raw, "engine", errors, default="vllm")
    if engine not in engines:
        errors.append(f"engine: {engine!r} is not supported by {provider_id} (supported: {', '.join(engines)})")
    mode = parse_str(raw, "mode", errors, default="aggregated", choices=MODES)
    router_mode = parse_str(raw, "router_mode", errors, default="none", choices=ROUTER_MODES)

    resources = parse_resources(raw, errors)
    default_gpus = resources.gpu if resources is not None and resources.gpu else 1

    replicas = parse_int(raw, "replicas", errors, default=1, minimum=1)
    gpus_per_replica = parse_int(raw, "gpus_per_replica", errors, default=default_gpus, minimum=1)
    prefill_replicas = parse_int(raw, "prefill_replicas", errors, minimum=1)
    decode_replicas = parse_int(raw, "decode_replicas", errors, minimum=1)
    prefill_gpus = parse_int(raw, "prefill_gpus", errors, minimum=1)
    decode_gpus = parse_int(raw, "decode_gpus", errors, minimum=1)
    context_length = parse_int(raw, "context_length", errors, minimum=1)

    served_model_name = parse_str(raw, "served_model_name", errors)
    hf_token_secret = parse_str(raw, "hf_token_secret", errors, default="hf-token-secret")
    enforce_eager = parse_bool(raw, "enforce_eager", errors, default=True)
    enable_prefix_caching = parse_bool(raw, "enable_prefix_caching", errors, default=False)
    trust_remote_code = parse_bool(raw, "trust_remote_code", errors, default=False)
    engine_args = parse_engine_args(raw, errors)

    if errors:
        return ConfigValidation(config=None, errors=errors)

    request = DeploymentRequest(
        name=name,
        namespace=namespace,
        model_id=model_id,
        provider=provider_id,
        engine=engine,
        mode=mode,
        served_model_name=served_model_name,
        router_mode=router_mode,
        replicas=replicas,
        gpus_per_replica=gpus_per_replica,
        prefill_replicas=prefill_replicas,
        decode_replicas=decode_replicas,
        prefill_gpus=prefill_gpus,
        decode_gpus=decode_gpus,
        hf_token_secret=hf_token_secret,
        context_length=context_length,
        enforce_eager=enforce_eager,
        enable_prefix_caching=enable_prefix_caching,
        trust_remote_code=trust_remote_code,
        resources=resources,
        engine_args=engine_args,
    )
    return ConfigValidation(config=request, errors=errors)
