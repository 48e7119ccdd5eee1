"""Installation orchestrator: drive helm through a provider's repo and chart list."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Optional

from kubefoundry.cluster import GPU_OPERATOR_NAMESPACE, KubernetesCluster
from kubefoundry.errors import CliUnavailable
from kubefoundry.helm import HelmClient
from kubefoundry.models import (
    CommandResult,
    HelmChart,
    HelmRepo,
    InstallationOutcome,
    InstallationStatus,
    LineCallback,
    StepResult,
)
from kubefoundry.providers.registry import get_provider

logger = logging.getLogger(__name__)

GPU_OPERATOR_ID = "gpu-operator"
GPU_OPERATOR_REPOS = [HelmRepo(name="nvidia", url="https://helm.ngc.nvidia.com/nvidia")]
GPU_OPERATOR_CHARTS = [
    HelmChart(name="gpu-operator", chart="nvidia/gpu-operator", namespace=GPU_OPERATOR_NAMESPACE),
]


class Installer:
    """Installs, upgrades and removes runtime operator stacks.

    Every run is fresh: check → repo add × N → repo update → chart
    operations → re-verify against the cluster. Step failures come back
    as data in the ``InstallationOutcome``; only a missing helm binary
    raises. Runs for the same provider are serialized.
    """

    def __init__(self, helm: HelmClient, cluster: KubernetesCluster):
        self.helm = helm
        self.cluster = cluster
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(key, threading.Lock())

    def _require_helm(self) -> None:
        status = self.helm.check_available()
        if not status.available:
            raise CliUnavailable(f"Helm CLI not available: {status.error}")

    # -- Step runner ----------------------------------------------------------

    @staticmethod
    def _step(results: list[StepResult], label: str, call: Callable[[], CommandResult]) -> bool:
        logger.info("Step: %s", label)
        result = call()
        results.append(StepResult(
            step=label,
            success=result.success,
            stdout=result.stdout,
            stderr=result.stderr,
        ))
        if not result.success:
            logger.error("Step %r failed: %s", label, result.stderr.strip())
        return result.success

    def _prepare_repos(
        self, repos: list[HelmRepo], results: list[StepResult], on_line: Optional[LineCallback],
    ) -> bool:
        for repo in repos:
            if not self._step(results, f"repo add {repo.name}",
                              lambda repo=repo: self.helm.repo_add(repo, on_line)):
                return False
        if repos:
            return self._step(results, "repo update", lambda: self.helm.repo_update(on_line))
        return True

    def _apply_charts(
        self,
        repos: list[HelmRepo],
        charts: list[HelmChart],
        action: str,
        on_line: Optional[LineCallback],
    ) -> list[StepResult]:
        """Repo setup, then one helm call per chart in order; stops at the first failure."""
        results: list[StepResult] = []
        if not self._prepare_repos(repos, results, on_line):
            return results
        operation = self.helm.install if action == "install" else self.helm.upgrade
        for chart in charts:
            if not self._step(results, f"{action} {chart.name}",
                              lambda chart=chart: operation(chart, on_line)):
                break
        return results

    @staticmethod
    def _finish(
        provider_id: str,
        display_name: str,
        action: str,
        results: list[StepResult],
        status: InstallationStatus,
    ) -> InstallationOutcome:
        failed = next((r for r in results if not r.success), None)
        success = failed is None
        warnings: list[str] = []

        if failed is not None:
            message = f"{display_name} {action} failed at step '{failed.step}': {failed.stderr.strip()}"
        else:
            message = f"{display_name} {action} completed successfully"
            expected_installed = action != "uninstall"
            if status.installed != expected_installed:
                # helm can exit 0 while the operator is still starting or terminating
                warnings.append(
                    f"Helm reported success but the cluster check disagrees: {status.message}"
                )

        return InstallationOutcome(
            provider_id=provider_id,
            action=action,
            success=success,
            message=message,
            results=results,
            installation_status=status,
            warnings=warnings,
        )

    # -- Runtime providers ----------------------------------------------------

    def install(self, provider_id: str, on_line: Optional[LineCallback] = None) -> InstallationOutcome:
        provider = get_provider(provider_id)
        with self._lock_for(provider_id):
            status = self.cluster.check_provider_installation(provider)
            if status.installed:
                logger.info("%s already installed, nothing to do", provider.name)
                return InstallationOutcome(
                    provider_id=provider_id,
                    action="install",
                    success=True,
                    message=f"{provider.name} is already installed",
                    already_installed=True,
                    installation_status=status,
                )

            self._require_helm()
            results = self._apply_charts(
                provider.get_helm_repos(), provider.get_helm_charts(), "install", on_line,
            )
            status = self.cluster.check_provider_installation(provider)
            return self._finish(provider_id, provider.name, "install", results, status)

    def upgrade(self, provider_id: str, on_line: Optional[LineCallback] = None) -> InstallationOutcome:
        provider = get_provider(provider_id)
        with self._lock_for(provider_id):
            self._require_helm()
            results = self._apply_charts(
                provider.get_helm_repos(), provider.get_helm_charts(), "upgrade", on_line,
            )
            status = self.cluster.check_provider_installation(provider)
            return self._finish(provider_id, provider.name, "upgrade", results, status)

    def uninstall(self, provider_id: str, on_line: Optional[LineCallback] = None) -> InstallationOutcome:
        """Remove charts in reverse install order, attempting every chart."""
        provider = get_provider(provider_id)
        with self._lock_for(provider_id):
            self._require_helm()
            results: list[StepResult] = []
            for chart in reversed(provider.get_helm_charts()):
                self._step(results, f"uninstall {chart.name}",
                           lambda chart=chart: self.helm.uninstall(chart, on_line))
            status = self.cluster.check_provider_installation(provider)
            return self._finish(provider_id, provider.name, "uninstall", results, status)

    def status(self, provider_id: str) -> InstallationStatus:
        return self.cluster.check_provider_installation(get_provider(provider_id))

    def releases(self, provider_id: str) -> list[dict]:
        """Helm releases belonging to a provider's charts."""
        provider = get_provider(provider_id)
        names = {chart.name for chart in provider.get_helm_charts()}
        namespaces = {chart.namespace for chart in provider.get_helm_charts()}
        releases: list[dict] = []
        for namespace in sorted(namespaces):
            releases.extend(r for r in self.helm.list_releases(namespace) if r.get("name") in names)
        return releases

    def commands(self, provider_id: str) -> list[str]:
        """Equivalent helm commands for a manual install."""
        provider = get_provider(provider_id)
        return self.helm.get_install_commands(provider.get_helm_repos(), provider.get_helm_charts())

    # -- NVIDIA GPU Operator --------------------------------------------------

    def install_gpu_operator(self, on_line: Optional[LineCallback] = None) -> InstallationOutcome:
        with self._lock_for(GPU_OPERATOR_ID):
            current = self.cluster.check_gpu_operator_status()
            if current.installed:
                return InstallationOutcome(
                    provider_id=GPU_OPERATOR_ID,
                    action="install",
                    success=True,
                    message="NVIDIA GPU Operator is already installed",
                    already_installed=True,
                    installation_status=_as_installation_status(current),
                )

            self._require_helm()
            results = self._apply_charts(GPU_OPERATOR_REPOS, GPU_OPERATOR_CHARTS, "install", on_line)
            status = _as_installation_status(self.cluster.check_gpu_operator_status())
            return self._finish(GPU_OPERATOR_ID, "NVIDIA GPU Operator", "install", results, status)

    def gpu_operator_status(self):
        return self.cluster.check_gpu_operator_status()


def _as_installation_status(gpu_status) -> InstallationStatus:
    return InstallationStatus(
        installed=gpu_status.installed,
        crd_found=gpu_status.crd_found,
        operator_running=gpu_status.operator_running,
        message=gpu_status.message,
    )
