"""Tests for kubefoundry.helm: subprocess is mocked."""

import io
import subprocess
from unittest.mock import MagicMock, patch

from kubefoundry.helm import HelmClient
from kubefoundry.models import HelmChart, HelmRepo

CHART = HelmChart(name="dynamo-platform", chart="nvidia-dynamo/dynamo-platform",
                  namespace="dynamo-system", version="0.7.0")


def _proc(stdout="", stderr="", exit_code=0):
    proc = MagicMock()
    proc.stdout = io.StringIO(stdout)
    proc.stderr = io.StringIO(stderr)
    proc.wait.return_value = exit_code
    return proc


class TestArgBuilders:
    def setup_method(self):
        self.helm = HelmClient(timeout=300)

    def test_repo_add(self):
        assert self.helm.repo_add_args(HelmRepo("kuberay", "https://example.com")) == [
            "repo", "add", "kuberay", "https://example.com", "--force-update",
        ]

    def test_install(self):
        assert self.helm.install_args(CHART) == [
            "upgrade", "--install", "dynamo-platform", "nvidia-dynamo/dynamo-platform",
            "--namespace", "dynamo-system", "--version", "0.7.0",
            "--wait", "--timeout", "300s", "--create-namespace",
        ]

    def test_install_without_create_namespace(self):
        chart = HelmChart(name="crds", chart="r/crds", namespace="default", create_namespace=False)
        assert "--create-namespace" not in self.helm.install_args(chart)
        assert "--version" not in self.helm.install_args(chart)

    def test_set_values(self):
        chart = HelmChart(name="w", chart="kaito/workspace", namespace="k",
                          set_values=(("a.b", "true"),))
        args = self.helm.install_args(chart)
        i = args.index("--set")
        assert args[i + 1] == "a.b=true"

    def test_upgrade(self):
        args = self.helm.upgrade_args(CHART)
        assert args[:2] == ["upgrade", "dynamo-platform"]
        assert "--install" not in args
        assert "--create-namespace" not in args

    def test_uninstall(self):
        assert self.helm.uninstall_args(CHART) == [
            "uninstall", "dynamo-platform", "--namespace", "dynamo-system",
        ]


class TestRun:
    @patch("kubefoundry.helm.subprocess.Popen")
    def test_streams_and_captures(self, mock_popen):
        mock_popen.return_value = _proc(stdout="line one\nline two\n", stderr="warn\n")
        seen = []
        result = HelmClient().run(["repo", "update"], on_line=lambda line, stream: seen.append((line, stream)))

        assert result.success
        assert result.stdout == "line one\nline two"
        assert result.stderr == "warn"
        assert ("line one", "stdout") in seen
        assert ("warn", "stderr") in seen
        assert mock_popen.call_args[0][0] == ["helm", "repo", "update"]

    @patch("kubefoundry.helm.subprocess.Popen")
    def test_kube_context(self, mock_popen):
        mock_popen.return_value = _proc()
        HelmClient(binary="/usr/bin/helm", kube_context="kind-dev").run(["list"])
        assert mock_popen.call_args[0][0] == ["/usr/bin/helm", "--kube-context", "kind-dev", "list"]

    @patch("kubefoundry.helm.subprocess.Popen")
    def test_non_zero_exit(self, mock_popen):
        mock_popen.return_value = _proc(stderr="Error: chart not found\n", exit_code=1)
        result = HelmClient().install(CHART)
        assert not result.success
        assert result.exit_code == 1
        assert "chart not found" in result.stderr

    @patch("kubefoundry.helm.subprocess.Popen")
    def test_callback_errors_ignored(self, mock_popen):
        mock_popen.return_value = _proc(stdout="a\nb\n")

        def broken(line, stream):
            raise RuntimeError("sink closed")

        result = HelmClient().run(["list"], on_line=broken)
        assert result.success
        assert result.stdout == "a\nb"

    @patch("kubefoundry.helm.subprocess.Popen", side_effect=FileNotFoundError)
    def test_missing_binary(self, mock_popen):
        result = HelmClient().run(["version"])
        assert result.exit_code == 127

    @patch("kubefoundry.helm.subprocess.Popen")
    def test_timeout_kills(self, mock_popen):
        proc = _proc()
        proc.wait.side_effect = [subprocess.TimeoutExpired("helm", 5), -9]
        mock_popen.return_value = proc
        result = HelmClient(timeout=5).run(["upgrade", "--install", "x", "y"])
        proc.kill.assert_called_once()
        assert result.exit_code == -1
        assert "timed out after 5s" in result.stderr


class TestCheckAvailable:
    @patch("kubefoundry.helm.subprocess.run")
    def test_available(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout="v3.16.2+g13654a5\n", stderr="")
        status = HelmClient().check_available()
        assert status.available
        assert status.version == "v3.16.2+g13654a5"

    @patch("kubefoundry.helm.subprocess.run", side_effect=FileNotFoundError)
    def test_not_installed(self, mock_run):
        status = HelmClient().check_available()
        assert not status.available
        assert "not found" in status.error

    @patch("kubefoundry.helm.subprocess.run")
    def test_failing(self, mock_run):
        mock_run.return_value = MagicMock(returncode=1, stdout="", stderr="broken\n")
        status = HelmClient().check_available()
        assert not status.available
        assert status.error == "broken"


class TestListReleases:
    @patch("kubefoundry.helm.subprocess.Popen")
    def test_parses_json(self, mock_popen):
        mock_popen.return_value = _proc(stdout='[{"name": "kuberay-operator"}]\n')
        assert HelmClient().list_releases() == [{"name": "kuberay-operator"}]
        assert "--all-namespaces" in mock_popen.call_args[0][0]

    @patch("kubefoundry.helm.subprocess.Popen")
    def test_failure_is_empty(self, mock_popen):
        mock_popen.return_value = _proc(exit_code=1)
        assert HelmClient().list_releases("ns") == []


class TestInstallCommands:
    def test_commands(self):
        commands = HelmClient(timeout=600).get_install_commands(
            [HelmRepo("nvidia-dynamo", "https://helm.ngc.nvidia.com/nvidia/ai-dynamo")], [CHART],
        )
        assert commands == [
            "helm repo add nvidia-dynamo https://helm.ngc.nvidia.com/nvidia/ai-dynamo --force-update",
            "helm repo update",
            "helm upgrade --install dynamo-platform nvidia-dynamo/dynamo-platform "
            "--namespace dynamo-system --version 0.7.0 --wait --timeout 600s --create-namespace",
        ]
