"""Tests for kubefoundry.gpu_fit."""

import pytest

from kubefoundry.gpu_fit import (
    CAPACITY_UNKNOWN_WARNING,
    estimate_gpu_memory,
    estimate_min_gpus,
    format_gpu_memory,
    format_gpu_warnings,
    validate_fit,
)
from kubefoundry.models import ClusterGpuCapacity, NodeGpuInfo, ResourceTopology


def _capacity(*available_per_node, total_per_node=8):
    nodes = [
        NodeGpuInfo(
            node_name=f"node-{i}",
            total_gpus=total_per_node,
            allocated_gpus=total_per_node - free,
            available_gpus=free,
        )
        for i, free in enumerate(available_per_node)
    ]
    return ClusterGpuCapacity.from_nodes(nodes)


def _aggregated(replicas, gpus):
    return ResourceTopology(
        total_gpus=replicas * gpus,
        total_instances=replicas,
        worker_instances=replicas,
        gpus_per_worker=gpus,
    )


class TestValidateFit:
    def test_fits(self):
        result = validate_fit(_aggregated(2, 4), _capacity(8, 4))
        assert result.fits
        assert result.warnings == []
        assert result.capacity_known

    def test_one_gpu_short(self):
        topo = _aggregated(2, 4)
        capacity = _capacity(4, 3)  # 7 free, one short of 8
        result = validate_fit(topo, capacity)
        assert not result.fits
        assert len(result.warnings) == 1
        assert "Insufficient GPUs" in result.warnings[0]

    def test_pod_spanning_nodes(self):
        # 8 free in total but no node has 4 free
        result = validate_fit(_aggregated(1, 4), _capacity(2, 2, 2, 2))
        assert not result.fits
        assert len(result.warnings) == 1
        assert "No single node" in result.warnings[0]

    def test_both_checks_fail(self):
        result = validate_fit(_aggregated(2, 4), _capacity(2, 1))
        assert not result.fits
        assert len(result.warnings) == 2

    def test_model_min_gpus_raises_requirement(self):
        result = validate_fit(_aggregated(1, 1), _capacity(2), model_min_gpus=4)
        assert not result.fits
        assert result.required_gpus == 4

    def test_unknown_capacity_does_not_raise(self):
        result = validate_fit(_aggregated(2, 4), None)
        assert result.fits
        assert not result.capacity_known
        assert result.warnings == [CAPACITY_UNKNOWN_WARNING]


class TestFormatWarnings:
    def test_empty_when_fits(self):
        assert format_gpu_warnings(validate_fit(_aggregated(1, 1), _capacity(8))) == []

    def test_adds_summary_line(self):
        lines = format_gpu_warnings(validate_fit(_aggregated(2, 4), _capacity(4, 3)))
        assert len(lines) == 2
        assert lines[-1].startswith("Cluster: 7 GPUs available")

    def test_no_summary_without_capacity(self):
        lines = format_gpu_warnings(validate_fit(_aggregated(1, 1), None))
        assert lines == [CAPACITY_UNKNOWN_WARNING]


class TestMemoryEstimates:
    def test_estimate_gpu_memory(self):
        # 8B params * 2 bytes * 1.2
        assert estimate_gpu_memory(8_000_000_000) == pytest.approx(19.2)

    def test_format_gpu_memory(self):
        assert format_gpu_memory(19.2) == "19.2 GB"
        assert format_gpu_memory(0.5) == "512 MB"

    def test_estimate_min_gpus(self):
        assert estimate_min_gpus(8_000_000_000, 80) == 1
        assert estimate_min_gpus(70_000_000_000, 80) == 4
        assert estimate_min_gpus(8_000_000_000, 0) == 1
