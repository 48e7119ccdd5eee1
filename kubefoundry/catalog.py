"""GPU pricing catalog: GPU specs and per-cloud on-demand pricing."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

# Prices are approximate on-demand rates; verify with the cloud provider.
PRICING_LAST_UPDATED = "2025-11-01"

CLOUD_PROVIDERS = ("aws", "azure", "gcp", "on-prem", "none")
PRICED_CLOUDS = ("aws", "azure", "gcp")
UNKNOWN_GPU = "unknown"


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GpuSpec:
    """Hardware facts for a GPU type."""
    gpu_type: str         # "nvidia-a100-80gb"
    display_name: str     # "NVIDIA A100 80GB"
    memory_gb: int


@dataclass(frozen=True)
class CloudGpuPrice:
    """On-demand price of one GPU type on one cloud."""
    gpu_type: str
    cloud: str
    price_per_gpu_hour: float  # USD, 0.0 = not priced


@dataclass
class CatalogQuery:
    """Result of a catalog query with convenience methods."""
    results: list[CloudGpuPrice] = field(default_factory=list)

    def cheapest(self) -> CloudGpuPrice | None:
        priced = [r for r in self.results if r.price_per_gpu_hour > 0]
        if not priced:
            return None
        return min(priced, key=lambda r: r.price_per_gpu_hour)

    def by_cloud(self, cloud: str) -> list[CloudGpuPrice]:
        return [r for r in self.results if r.cloud == cloud]

    def sorted_by_price(self) -> list[CloudGpuPrice]:
        return sorted(self.results, key=lambda r: (r.price_per_gpu_hour == 0, r.price_per_gpu_hour))


# ---------------------------------------------------------------------------
# Static data
# ---------------------------------------------------------------------------

GPU_SPECS: dict[str, GpuSpec] = {
    "nvidia-a100-40gb": GpuSpec("nvidia-a100-40gb", "NVIDIA A100 40GB", 40),
    "nvidia-a100-80gb": GpuSpec("nvidia-a100-80gb", "NVIDIA A100 80GB", 80),
    "nvidia-h100": GpuSpec("nvidia-h100", "NVIDIA H100", 80),
    "nvidia-h200": GpuSpec("nvidia-h200", "NVIDIA H200", 141),
    "nvidia-l40s": GpuSpec("nvidia-l40s", "NVIDIA L40S", 48),
    "nvidia-l4": GpuSpec("nvidia-l4", "NVIDIA L4", 24),
    "nvidia-t4": GpuSpec("nvidia-t4", "NVIDIA T4", 16),
    "nvidia-v100": GpuSpec("nvidia-v100", "NVIDIA V100", 32),
    "nvidia-a10g": GpuSpec("nvidia-a10g", "NVIDIA A10G", 24),
    UNKNOWN_GPU: GpuSpec(UNKNOWN_GPU, "Unknown GPU", 16),
}

GPU_ALIASES: dict[str, str] = {
    "A100": "nvidia-a100-80gb",
    "A100_80GB": "nvidia-a100-80gb",
    "A100_40GB": "nvidia-a100-40gb",
    "H100": "nvidia-h100",
    "H200": "nvidia-h200",
    "L40S": "nvidia-l40s",
    "L4": "nvidia-l4",
    "T4": "nvidia-t4",
    "V100": "nvidia-v100",
    "A10G": "nvidia-a10g",
}

CLOUD_PROVIDER_NAMES: dict[str, str] = {
    "aws": "Amazon Web Services (AWS)",
    "azure": "Microsoft Azure",
    "gcp": "Google Cloud Platform (GCP)",
    "on-prem": "On-Premises / Custom",
    "none": "Not Configured",
}

_GPU_PRICING: dict[str, dict[str, float]] = {
    "aws": {
        "nvidia-a100-40gb": 3.40,
        "nvidia-a100-80gb": 4.10,
        "nvidia-h100": 5.10,
        "nvidia-h200": 6.50,
        "nvidia-l40s": 1.80,
        "nvidia-l4": 0.80,
        "nvidia-t4": 0.53,
        "nvidia-v100": 1.26,
        "nvidia-a10g": 1.21,
        UNKNOWN_GPU: 2.50,
    },
    "azure": {
        "nvidia-a100-40gb": 3.40,
        "nvidia-a100-80gb": 3.67,
        "nvidia-h100": 5.00,
        "nvidia-h200": 6.20,
        "nvidia-l40s": 1.70,
        "nvidia-l4": 0.75,
        "nvidia-t4": 0.52,
        "nvidia-v100": 1.22,
        "nvidia-a10g": 1.10,
        UNKNOWN_GPU: 2.40,
    },
    "gcp": {
        "nvidia-a100-40gb": 3.17,
        "nvidia-a100-80gb": 3.67,
        "nvidia-h100": 5.07,
        "nvidia-h200": 6.30,
        "nvidia-l40s": 1.65,
        "nvidia-l4": 0.70,
        "nvidia-t4": 0.35,
        "nvidia-v100": 1.10,
        "nvidia-a10g": 1.00,
        UNKNOWN_GPU: 2.30,
    },
    # on-prem uses a custom hourly rate; "none" is unpriced
    "on-prem": {gpu: 0.0 for gpu in GPU_SPECS},
    "none": {gpu: 0.0 for gpu in GPU_SPECS},
}

_PRICES: list[CloudGpuPrice] = [
    CloudGpuPrice(gpu, cloud, price)
    for cloud, table in _GPU_PRICING.items()
    for gpu, price in table.items()
]


# ---------------------------------------------------------------------------
# Query API
# ---------------------------------------------------------------------------

def get_gpu_spec(gpu_type: str) -> GpuSpec:
    """Lookup hardware spec by GPU type. Raises KeyError if unknown."""
    return GPU_SPECS[gpu_type]


def normalize_gpu_type(name: str) -> str:
    """Resolve short names like ``A100`` to catalog GPU types. Raises KeyError if unknown."""
    if name in GPU_SPECS:
        return name
    if name in GPU_ALIASES:
        return GPU_ALIASES[name]
    lowered = name.lower()
    if lowered in GPU_SPECS:
        return lowered
    raise KeyError(name)


def get_table_rate(cloud: str, gpu_type: str) -> Optional[float]:
    """Raw table entry for (cloud, gpu_type), falling back to the cloud's ``unknown`` rate.

    Returns None when the cloud itself is not in the table.
    """
    table = _GPU_PRICING.get(cloud)
    if table is None:
        return None
    if gpu_type in table:
        return table[gpu_type]
    return table[UNKNOWN_GPU]


def query(
    gpu_type: str | None = None,
    cloud: str | None = None,
    min_memory_gb: int | None = None,
    max_price: float | None = None,
) -> CatalogQuery:
    """Query priced GPU offerings with optional filters."""
    results = [r for r in _PRICES if r.cloud in PRICED_CLOUDS and r.gpu_type != UNKNOWN_GPU]

    if gpu_type is not None:
        results = [r for r in results if r.gpu_type == gpu_type]
    if cloud is not None:
        results = [r for r in results if r.cloud == cloud]
    if min_memory_gb is not None:
        results = [r for r in results if GPU_SPECS[r.gpu_type].memory_gb >= min_memory_gb]
    if max_price is not None:
        results = [r for r in results if 0 < r.price_per_gpu_hour <= max_price]

    return CatalogQuery(results=results)


def detect_gpu_type_from_memory(memory_gb: float | None) -> str:
    """Guess a GPU type from its memory size (heuristic)."""
    if not memory_gb:
        return UNKNOWN_GPU
    if memory_gb >= 140:
        return "nvidia-h200"
    if memory_gb >= 80:
        return "nvidia-a100-80gb"  # or H100
    if memory_gb >= 48:
        return "nvidia-l40s"
    if memory_gb >= 40:
        return "nvidia-a100-40gb"
    if memory_gb >= 32:
        return "nvidia-v100"
    if memory_gb >= 24:
        return "nvidia-l4"  # or A10G
    if memory_gb >= 16:
        return "nvidia-t4"
    return UNKNOWN_GPU


def get_provider_pricing_summary(cloud: str) -> dict[str, float]:
    """Min / max / typical per-GPU rate for a cloud. All zero for unpriced clouds."""
    table = _GPU_PRICING.get(cloud)
    if not table or cloud in ("none", "on-prem"):
        return {"min": 0.0, "max": 0.0, "common": 0.0}
    rates = [r for r in table.values() if r > 0]
    common = table.get("nvidia-a100-80gb") or table.get("nvidia-h100") or rates[0]
    return {"min": min(rates), "max": max(rates), "common": common}
