"""Data models for deployment planning and runtime installation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union

from kubefoundry.errors import StepFailure

EngineArgValue = Union[str, int, float, bool]

# (line, stream) where stream is "stdout" or "stderr"
LineCallback = Callable[[str, str], None]


@dataclass(frozen=True)
class ResourceOverrides:
    """Per-worker resource overrides supplied with a request."""

    gpu: Optional[int] = None
    memory: Optional[str] = None  # e.g. "64Gi"
    cpu: Optional[str] = None     # e.g. "4" or "4000m"


@dataclass(frozen=True)
class DeploymentRequest:
    """What the user asks for, after provider validation."""

    name: str
    namespace: str
    model_id: str
    provider: str = "dynamo"
    engine: str = "vllm"            # "vllm", "sglang", "trtllm"
    mode: str = "aggregated"        # "aggregated" or "disaggregated"
    served_model_name: Optional[str] = None
    router_mode: str = "none"       # "none", "kv", "round-robin"
    replicas: int = 1
    gpus_per_replica: int = 1
    prefill_replicas: Optional[int] = None
    decode_replicas: Optional[int] = None
    prefill_gpus: Optional[int] = None
    decode_gpus: Optional[int] = None
    hf_token_secret: str = "hf-token-secret"
    context_length: Optional[int] = None
    enforce_eager: bool = True
    enable_prefix_caching: bool = False
    trust_remote_code: bool = False
    resources: Optional[ResourceOverrides] = None
    engine_args: dict[str, EngineArgValue] = field(default_factory=dict)


@dataclass(frozen=True)
class ResourceTopology:
    """Normalized GPU/instance breakdown derived from a request."""

    total_gpus: int
    total_instances: int
    # Aggregated mode
    worker_instances: Optional[int] = None
    gpus_per_worker: Optional[int] = None
    # Disaggregated mode
    prefill_instances: Optional[int] = None
    prefill_gpus_per_instance: Optional[int] = None
    decode_instances: Optional[int] = None
    decode_gpus_per_instance: Optional[int] = None

    @property
    def max_gpus_per_pod(self) -> int:
        """Largest GPU request of any single worker pod."""
        per_pod = [
            g for g in (
                self.gpus_per_worker,
                self.prefill_gpus_per_instance,
                self.decode_gpus_per_instance,
            )
            if g is not None
        ]
        return max(per_pod, default=0)


@dataclass(frozen=True)
class NodeGpuInfo:
    node_name: str
    total_gpus: int
    allocated_gpus: int
    available_gpus: int


@dataclass(frozen=True)
class ClusterGpuCapacity:
    """Snapshot of cluster GPU capacity at request time."""

    total_gpus: int
    allocated_gpus: int
    available_gpus: int
    max_contiguous_available: int
    nodes: tuple[NodeGpuInfo, ...] = ()

    @classmethod
    def from_nodes(cls, nodes: list[NodeGpuInfo]) -> ClusterGpuCapacity:
        return cls(
            total_gpus=sum(n.total_gpus for n in nodes),
            allocated_gpus=sum(n.allocated_gpus for n in nodes),
            available_gpus=sum(n.available_gpus for n in nodes),
            max_contiguous_available=max((n.available_gpus for n in nodes), default=0),
            nodes=tuple(nodes),
        )


@dataclass
class GpuFitResult:
    """Outcome of the advisory GPU fit check."""

    fits: bool
    warnings: list[str] = field(default_factory=list)
    capacity_known: bool = True
    required_gpus: int = 0
    available_gpus: int = 0
    max_gpus_per_pod: int = 0
    max_contiguous_available: int = 0


# ---------------------------------------------------------------------------
# Provider metadata
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProviderInfo:
    """Identity fields of a runtime provider, for display."""

    id: str
    name: str
    description: str
    default_namespace: str


@dataclass(frozen=True)
class CRDConfig:
    api_group: str     # "nvidia.com"
    api_version: str   # "v1alpha1"
    plural: str        # "dynamographdeployments"
    kind: str          # "DynamoGraphDeployment"

    @property
    def full_api_version(self) -> str:
        return f"{self.api_group}/{self.api_version}"

    @property
    def crd_name(self) -> str:
        """Name of the CustomResourceDefinition object itself."""
        return f"{self.plural}.{self.api_group}"


@dataclass(frozen=True)
class InstallationStep:
    title: str
    description: str
    command: Optional[str] = None


@dataclass(frozen=True)
class HelmRepo:
    name: str
    url: str


@dataclass(frozen=True)
class HelmChart:
    name: str                        # Release name
    chart: str                       # "repo/chart" or an OCI/URL reference
    namespace: str
    version: Optional[str] = None
    create_namespace: bool = True
    set_values: tuple[tuple[str, str], ...] = ()


@dataclass
class ConfigValidation:
    """Result of a provider's request validation."""

    config: Any = None
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


# ---------------------------------------------------------------------------
# Helm / installation
# ---------------------------------------------------------------------------

@dataclass
class CommandResult:
    """Outcome of one CLI invocation."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.exit_code == 0


@dataclass
class HelmStatus:
    available: bool
    version: Optional[str] = None
    error: Optional[str] = None


@dataclass
class StepResult:
    """Result of a single provisioning step."""

    step: str
    success: bool
    stdout: str = ""
    stderr: str = ""


@dataclass
class InstallationStatus:
    """Cluster-verified installation state of a provider."""

    installed: bool
    crd_found: bool = False
    operator_running: bool = False
    message: str = ""
    version: Optional[str] = None


@dataclass
class InstallationOutcome:
    """Aggregated result of an install / upgrade / uninstall run."""

    provider_id: str
    action: str                      # "install", "upgrade", "uninstall"
    success: bool
    message: str = ""
    results: list[StepResult] = field(default_factory=list)
    already_installed: bool = False
    installation_status: Optional[InstallationStatus] = None
    warnings: list[str] = field(default_factory=list)

    @property
    def failed_step(self) -> Optional[StepResult]:
        for r in self.results:
            if not r.success:
                return r
        return None

    def raise_for_failure(self) -> None:
        """Raise ``StepFailure`` for the first failed step, if any."""
        failed = self.failed_step
        if failed is not None:
            raise StepFailure(failed.step, failed.stderr)


@dataclass
class GpuOperatorStatus:
    installed: bool
    crd_found: bool = False
    operator_running: bool = False
    gpus_available: bool = False
    total_gpus: int = 0
    gpu_nodes: list[str] = field(default_factory=list)
    message: str = ""


# ---------------------------------------------------------------------------
# Costs
# ---------------------------------------------------------------------------

@dataclass
class CostEstimateInput:
    mode: str = "aggregated"
    replicas: int = 1
    gpus_per_replica: int = 1
    prefill_replicas: Optional[int] = None
    decode_replicas: Optional[int] = None
    prefill_gpus: Optional[int] = None
    decode_gpus: Optional[int] = None
    cloud_provider: Optional[str] = None   # "aws", "azure", "gcp", "on-prem", "none"
    gpu_type: Optional[str] = None         # "nvidia-a100-80gb", ...
    custom_hourly_rate: Optional[float] = None


@dataclass
class CostEstimate:
    resources: ResourceTopology
    has_actual_costs: bool
    gpu_multiplier: float
    relative_description: str
    baseline_gpus: int
    additional_gpus: int
    percentage_increase: float
    hourly_rate: Optional[float] = None
    daily_rate: Optional[float] = None
    monthly_rate: Optional[float] = None
    gpu_type: Optional[str] = None
    cloud_provider: Optional[str] = None


@dataclass
class CostComparison:
    aggregated: CostEstimate
    disaggregated: CostEstimate
    savings_description: str


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------

@dataclass
class DeploymentPlan:
    """Everything computed for one deployment request, ready to apply."""

    provider_id: str
    config: Any
    topology: ResourceTopology
    fit: GpuFitResult
    cost: CostEstimate
    manifest: dict
    warnings: list[str] = field(default_factory=list)
