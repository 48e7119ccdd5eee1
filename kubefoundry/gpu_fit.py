"""GPU fit validation: does a topology fit into current cluster capacity?"""

from __future__ import annotations

import logging
from typing import Optional

from kubefoundry.models import ClusterGpuCapacity, GpuFitResult, ResourceTopology

logger = logging.getLogger(__name__)

# fp16 weights plus ~20% for KV cache and activations
BYTES_PER_PARAMETER = 2
MEMORY_OVERHEAD_FACTOR = 1.2

CAPACITY_UNKNOWN_WARNING = (
    "Cluster GPU capacity could not be determined; skipping fit check"
)


def validate_fit(
    topology: ResourceTopology,
    capacity: Optional[ClusterGpuCapacity],
    model_min_gpus: int = 1,
) -> GpuFitResult:
    """Check a topology against cluster GPU capacity.

    Advisory only: failures come back as warnings, never exceptions.
    ``capacity=None`` means the cluster could not be inspected; the
    result then reports ``fits=True`` with ``capacity_known=False``.
    """
    required = max(topology.total_gpus, model_min_gpus)
    per_pod = topology.max_gpus_per_pod

    if capacity is None:
        logger.warning("GPU capacity unknown, fit check skipped")
        return GpuFitResult(
            fits=True,
            warnings=[CAPACITY_UNKNOWN_WARNING],
            capacity_known=False,
            required_gpus=required,
            max_gpus_per_pod=per_pod,
        )

    warnings: list[str] = []

    if capacity.available_gpus < required:
        warnings.append(
            f"Insufficient GPUs: deployment requires {required} GPU"
            f"{'s' if required != 1 else ''} but only "
            f"{capacity.available_gpus} of {capacity.total_gpus} are available"
        )

    if per_pod > capacity.max_contiguous_available:
        warnings.append(
            f"No single node can fit a {per_pod}-GPU worker: the largest free "
            f"block on any node is {capacity.max_contiguous_available} GPU"
            f"{'s' if capacity.max_contiguous_available != 1 else ''}"
        )

    return GpuFitResult(
        fits=not warnings,
        warnings=warnings,
        capacity_known=True,
        required_gpus=required,
        available_gpus=capacity.available_gpus,
        max_gpus_per_pod=per_pod,
        max_contiguous_available=capacity.max_contiguous_available,
    )


def format_gpu_warnings(result: GpuFitResult) -> list[str]:
    """Render fit warnings for display, with a capacity summary line."""
    if not result.warnings:
        return []
    lines = list(result.warnings)
    if result.capacity_known:
        lines.append(
            f"Cluster: {result.available_gpus} GPUs available, largest single-node "
            f"block {result.max_contiguous_available}; requested {result.required_gpus} "
            f"(max {result.max_gpus_per_pod} per pod)"
        )
    return lines


def estimate_gpu_memory(parameter_count: int) -> float:
    """Rough GPU memory in GB needed to serve a model with fp16 weights."""
    return parameter_count * BYTES_PER_PARAMETER * MEMORY_OVERHEAD_FACTOR / 1e9


def format_gpu_memory(gb: float) -> str:
    if gb < 1:
        return f"{gb * 1024:.0f} MB"
    return f"{gb:.1f} GB"


def estimate_min_gpus(parameter_count: int, gpu_memory_gb: int) -> int:
    """Smallest GPU count whose combined memory holds the model."""
    if gpu_memory_gb <= 0:
        return 1
    needed = estimate_gpu_memory(parameter_count)
    count = 1
    while count * gpu_memory_gb < needed:
        count *= 2
    return count
