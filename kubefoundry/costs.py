"""Cost estimation: price a resource topology against the GPU catalog."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Optional

from kubefoundry.catalog import UNKNOWN_GPU, get_table_rate
from kubefoundry.models import CostComparison, CostEstimate, CostEstimateInput
from kubefoundry.topology import derive_topology

if TYPE_CHECKING:
    from kubefoundry.config import CostSettings

logger = logging.getLogger(__name__)

HOURS_PER_DAY = 24
HOURS_PER_MONTH = 730


def get_hourly_rate(
    cloud_provider: Optional[str],
    gpu_type: Optional[str],
    custom_hourly_rate: Optional[float] = None,
) -> Optional[float]:
    """Per-GPU hourly rate in USD, or None when no pricing applies."""
    if cloud_provider == "on-prem" and custom_hourly_rate is not None:
        return custom_hourly_rate

    if not cloud_provider or cloud_provider == "none":
        return None

    rate = get_table_rate(cloud_provider, gpu_type or UNKNOWN_GPU)
    if rate is None:
        return None
    return rate if rate > 0 else None


def _relative_description(total_gpus: int, baseline_gpus: int, mode: str) -> str:
    if total_gpus == baseline_gpus:
        return "Same resource usage as baseline configuration"

    if baseline_gpus <= 0:
        return f"{total_gpus} GPU{'s' if total_gpus != 1 else ''} total"

    multiplier = total_gpus / baseline_gpus
    percent_increase = (total_gpus - baseline_gpus) / baseline_gpus * 100

    if mode == "disaggregated":
        if multiplier > 1:
            return (
                f"Disaggregated serving uses {multiplier:.1f}x more GPUs "
                f"({percent_increase:.0f}% increase) for better latency"
            )
        return "Disaggregated serving uses fewer GPUs than expected"

    if multiplier > 1:
        return f"{total_gpus} GPUs total ({multiplier:.1f}x baseline)"

    return f"{total_gpus} GPU{'s' if total_gpus != 1 else ''} total"


def calculate_cost_estimate(
    cost_input: CostEstimateInput,
    settings: Optional[CostSettings] = None,
) -> CostEstimate:
    """Estimate absolute and relative cost of a deployment topology.

    Absolute rates are only filled in when a priced cloud and GPU type are
    known. The relative metrics (multiplier over a single-replica baseline)
    are always computed.
    """
    resources = derive_topology(cost_input)

    cloud_provider = cost_input.cloud_provider or (settings.cloud_provider if settings else None) or "none"
    gpu_type = cost_input.gpu_type or (settings.gpu_type if settings else None) or UNKNOWN_GPU
    custom_rate = cost_input.custom_hourly_rate
    if custom_rate is None and settings is not None:
        custom_rate = settings.custom_hourly_rate

    baseline_gpus = cost_input.gpus_per_replica
    additional_gpus = resources.total_gpus - baseline_gpus
    if baseline_gpus > 0:
        percentage_increase = (resources.total_gpus - baseline_gpus) / baseline_gpus * 100
        gpu_multiplier = resources.total_gpus / baseline_gpus
    else:
        percentage_increase = 0.0
        gpu_multiplier = 1.0

    per_gpu_rate = get_hourly_rate(cloud_provider, gpu_type, custom_rate)
    has_actual_costs = per_gpu_rate is not None and per_gpu_rate > 0

    hourly_rate = daily_rate = monthly_rate = None
    if has_actual_costs:
        hourly_rate = resources.total_gpus * per_gpu_rate
        daily_rate = hourly_rate * HOURS_PER_DAY
        monthly_rate = hourly_rate * HOURS_PER_MONTH

    logger.debug(
        "Cost estimate: %d GPUs, cloud=%s gpu=%s rate=%s",
        resources.total_gpus, cloud_provider, gpu_type, per_gpu_rate,
    )

    return CostEstimate(
        resources=resources,
        has_actual_costs=has_actual_costs,
        hourly_rate=hourly_rate,
        daily_rate=daily_rate,
        monthly_rate=monthly_rate,
        gpu_type=gpu_type if has_actual_costs else None,
        cloud_provider=cloud_provider if has_actual_costs else None,
        gpu_multiplier=gpu_multiplier,
        relative_description=_relative_description(resources.total_gpus, baseline_gpus, cost_input.mode),
        baseline_gpus=baseline_gpus,
        additional_gpus=additional_gpus,
        percentage_increase=percentage_increase,
    )


def compare_costs(
    aggregated_input: CostEstimateInput,
    disaggregated_input: CostEstimateInput,
    settings: Optional[CostSettings] = None,
) -> CostComparison:
    """Estimate both serving modes and describe the GPU delta."""
    aggregated = calculate_cost_estimate(replace(aggregated_input, mode="aggregated"), settings)
    disaggregated = calculate_cost_estimate(replace(disaggregated_input, mode="disaggregated"), settings)

    agg_gpus = aggregated.resources.total_gpus
    gpu_diff = disaggregated.resources.total_gpus - agg_gpus
    percent_diff = gpu_diff / agg_gpus * 100 if agg_gpus > 0 else 0.0

    if gpu_diff > 0:
        description = (
            f"Disaggregated serving uses {gpu_diff} more GPU{'s' if gpu_diff != 1 else ''} "
            f"({percent_diff:.0f}% more) but provides better latency for high-throughput scenarios"
        )
    elif gpu_diff < 0:
        fewer = abs(gpu_diff)
        description = (
            f"Disaggregated serving uses {fewer} fewer GPU{'s' if fewer != 1 else ''} "
            f"({abs(percent_diff):.0f}% less)"
        )
    else:
        description = "Both configurations use the same number of GPUs"

    return CostComparison(
        aggregated=aggregated,
        disaggregated=disaggregated,
        savings_description=description,
    )


def cost_input_from_request(request, settings: Optional[CostSettings] = None) -> CostEstimateInput:
    """Build a cost input from a deployment request and the configured cost settings."""
    return CostEstimateInput(
        mode=request.mode,
        replicas=request.replicas,
        gpus_per_replica=request.gpus_per_replica,
        prefill_replicas=request.prefill_replicas,
        decode_replicas=request.decode_replicas,
        prefill_gpus=request.prefill_gpus,
        decode_gpus=request.decode_gpus,
        cloud_provider=settings.cloud_provider if settings else None,
        gpu_type=settings.gpu_type if settings else None,
        custom_hourly_rate=settings.custom_hourly_rate if settings else None,
    )


def format_currency(amount: float) -> str:
    """Compact USD formatting: $1.2k, $450, $3.20."""
    if amount >= 1000:
        return f"${amount / 1000:.1f}k"
    if amount >= 100:
        return f"${amount:.0f}"
    return f"${amount:.2f}"
