"""Helm CLI wrapper: repo add/update, upgrade --install, uninstall, with line streaming."""

from __future__ import annotations

import json
import logging
import shlex
import subprocess
import threading
from typing import IO, Optional

from kubefoundry.models import CommandResult, HelmChart, HelmRepo, HelmStatus, LineCallback

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 600


def _log_line(line: str, stream: str) -> None:
    logger.debug("helm %s: %s", stream, line)


class HelmClient:
    """Drives the ``helm`` binary.

    Every call goes through ``run``, which streams stdout and stderr
    line by line to a callback while also capturing them. Mock
    ``subprocess.Popen`` / ``subprocess.run`` to test.
    """

    def __init__(
        self,
        binary: str = "helm",
        timeout: int = DEFAULT_TIMEOUT,
        kube_context: Optional[str] = None,
    ):
        self.binary = binary
        self.timeout = timeout
        self.kube_context = kube_context

    # ------------------------- internal helpers -------------------------

    def _base(self) -> list[str]:
        cmd = [self.binary]
        if self.kube_context:
            cmd += ["--kube-context", self.kube_context]
        return cmd

    @staticmethod
    def _pump(pipe: IO[str], stream: str, sink: list[str], on_line: LineCallback) -> None:
        for raw in pipe:
            line = raw.rstrip("\n")
            sink.append(line)
            try:
                on_line(line, stream)
            except Exception:
                # A broken sink must not change the outcome of the command
                logger.debug("Line callback failed for %s output", stream, exc_info=True)

    def check_available(self) -> HelmStatus:
        """Is the helm binary installed and runnable?"""
        try:
            result = subprocess.run(
                [self.binary, "version", "--short"],
                capture_output=True, text=True, timeout=10,
            )
        except FileNotFoundError:
            return HelmStatus(available=False, error=f"{self.binary} not found on PATH")
        except subprocess.TimeoutExpired:
            return HelmStatus(available=False, error=f"{self.binary} version timed out")
        if result.returncode != 0:
            return HelmStatus(available=False, error=result.stderr.strip() or "helm version failed")
        return HelmStatus(available=True, version=result.stdout.strip())

    def run(self, args: list[str], on_line: Optional[LineCallback] = None) -> CommandResult:
        """Run ``helm <args>``, streaming output lines to ``on_line``."""
        argv = self._base() + list(args)
        on_line = on_line or _log_line
        logger.info("Running: %s", shlex.join(argv))

        try:
            proc = subprocess.Popen(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except FileNotFoundError:
            return CommandResult(exit_code=127, stderr=f"{self.binary}: command not found")

        stdout: list[str] = []
        stderr: list[str] = []
        readers = [
            threading.Thread(target=self._pump, args=(proc.stdout, "stdout", stdout, on_line), daemon=True),
            threading.Thread(target=self._pump, args=(proc.stderr, "stderr", stderr, on_line), daemon=True),
        ]
        for t in readers:
            t.start()

        try:
            exit_code = proc.wait(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()
            exit_code = -1
            stderr.append(f"helm timed out after {self.timeout}s")
        for t in readers:
            t.join(timeout=5)

        if exit_code != 0:
            logger.warning("helm %s exited with %d", args[0] if args else "", exit_code)
        return CommandResult(
            exit_code=exit_code,
            stdout="\n".join(stdout),
            stderr="\n".join(stderr),
        )

    # ------------------------- argv builders -------------------------

    @staticmethod
    def repo_add_args(repo: HelmRepo) -> list[str]:
        return ["repo", "add", repo.name, repo.url, "--force-update"]

    @staticmethod
    def repo_update_args() -> list[str]:
        return ["repo", "update"]

    def _chart_args(self, chart: HelmChart) -> list[str]:
        args = [chart.name, chart.chart, "--namespace", chart.namespace]
        if chart.version:
            args += ["--version", chart.version]
        for key, value in chart.set_values:
            args += ["--set", f"{key}={value}"]
        args += ["--wait", "--timeout", f"{self.timeout}s"]
        return args

    def install_args(self, chart: HelmChart) -> list[str]:
        args = ["upgrade", "--install"] + self._chart_args(chart)
        if chart.create_namespace:
            args.append("--create-namespace")
        return args

    def upgrade_args(self, chart: HelmChart) -> list[str]:
        return ["upgrade"] + self._chart_args(chart)

    @staticmethod
    def uninstall_args(chart: HelmChart) -> list[str]:
        return ["uninstall", chart.name, "--namespace", chart.namespace]

    # ------------------------- operations -------------------------

    def repo_add(self, repo: HelmRepo, on_line: Optional[LineCallback] = None) -> CommandResult:
        return self.run(self.repo_add_args(repo), on_line)

    def repo_update(self, on_line: Optional[LineCallback] = None) -> CommandResult:
        return self.run(self.repo_update_args(), on_line)

    def install(self, chart: HelmChart, on_line: Optional[LineCallback] = None) -> CommandResult:
        return self.run(self.install_args(chart), on_line)

    def upgrade(self, chart: HelmChart, on_line: Optional[LineCallback] = None) -> CommandResult:
        return self.run(self.upgrade_args(chart), on_line)

    def uninstall(self, chart: HelmChart, on_line: Optional[LineCallback] = None) -> CommandResult:
        return self.run(self.uninstall_args(chart), on_line)

    def list_releases(self, namespace: Optional[str] = None) -> list[dict]:
        """Installed releases as reported by ``helm list -o json``. Empty on failure."""
        args = ["list", "-o", "json"]
        args += ["--namespace", namespace] if namespace else ["--all-namespaces"]
        result = self.run(args)
        if not result.success:
            return []
        try:
            return json.loads(result.stdout or "[]")
        except json.JSONDecodeError:
            logger.warning("Could not parse helm list output")
            return []

    def get_install_commands(self, repos: list[HelmRepo], charts: list[HelmChart]) -> list[str]:
        """Shell commands equivalent to an install run, for manual use."""
        commands = [shlex.join([self.binary] + self.repo_add_args(r)) for r in repos]
        if repos:
            commands.append(shlex.join([self.binary] + self.repo_update_args()))
        commands.extend(shlex.join([self.binary] + self.install_args(c)) for c in charts)
        return commands
