"""Tests for kubefoundry.models."""

import pytest

from kubefoundry.errors import StepFailure
from kubefoundry.models import (
    ClusterGpuCapacity,
    CommandResult,
    CRDConfig,
    InstallationOutcome,
    NodeGpuInfo,
    StepResult,
)


class TestClusterGpuCapacity:
    def test_from_nodes(self):
        cap = ClusterGpuCapacity.from_nodes([
            NodeGpuInfo("a", 8, 6, 2),
            NodeGpuInfo("b", 4, 1, 3),
        ])
        assert cap.total_gpus == 12
        assert cap.allocated_gpus == 7
        assert cap.available_gpus == 5
        assert cap.max_contiguous_available == 3
        assert len(cap.nodes) == 2

    def test_from_no_nodes(self):
        cap = ClusterGpuCapacity.from_nodes([])
        assert cap.total_gpus == 0
        assert cap.max_contiguous_available == 0


class TestCRDConfig:
    def test_names(self):
        crd = CRDConfig("ray.io", "v1", "rayservices", "RayService")
        assert crd.full_api_version == "ray.io/v1"
        assert crd.crd_name == "rayservices.ray.io"


class TestCommandResult:
    def test_success(self):
        assert CommandResult(exit_code=0).success
        assert not CommandResult(exit_code=1).success


class TestInstallationOutcome:
    def test_failed_step(self):
        outcome = InstallationOutcome(
            provider_id="dynamo", action="install", success=False,
            results=[StepResult("repo add x", True), StepResult("install a", False, stderr="boom")],
        )
        assert outcome.failed_step.step == "install a"

    def test_raise_for_failure(self):
        outcome = InstallationOutcome(
            provider_id="dynamo", action="install", success=False,
            results=[StepResult("install a", False, stderr="boom\n")],
        )
        with pytest.raises(StepFailure, match="Step 'install a' failed: boom"):
            outcome.raise_for_failure()

    def test_raise_for_failure_noop_on_success(self):
        outcome = InstallationOutcome(
            provider_id="dynamo", action="install", success=True,
            results=[StepResult("install a", True)],
        )
        outcome.raise_for_failure()
