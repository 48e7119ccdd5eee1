"""CLI entry point: python -m kubefoundry plan|install|status|cost ..."""

from __future__ import annotations

import argparse
import json
import logging
import sys

from kubefoundry.config import load_settings


def _settings(args: argparse.Namespace):
    try:
        return load_settings(getattr(args, "config", None))
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def _cluster(settings):
    from kubefoundry.cluster import KubernetesCluster

    return KubernetesCluster(context=settings.kube_context, timeout=settings.cluster_timeout)


def _cluster_errors() -> tuple:
    """Errors raised when the cluster is unreachable, misconfigured or refuses a call."""
    from kubernetes.client.rest import ApiException
    from kubernetes.config import ConfigException
    from urllib3.exceptions import HTTPError

    from kubefoundry.errors import KubeFoundryError

    return (ApiException, ConfigException, HTTPError, KubeFoundryError)


def _cluster_error_message(e: Exception) -> str:
    from kubernetes.client.rest import ApiException

    if isinstance(e, ApiException):
        return f"cluster API returned {e.status} {e.reason}"
    return str(e)


def _installer(settings):
    from kubefoundry.helm import HelmClient
    from kubefoundry.installer import Installer

    helm = HelmClient(
        binary=settings.helm_binary,
        timeout=settings.helm_timeout,
        kube_context=settings.kube_context,
    )
    return Installer(helm, _cluster(settings))


def _parse_scalar(value: str):
    lowered = value.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    for cast in (int, float):
        try:
            return cast(value)
        except ValueError:
            pass
    return value


def _parse_engine_args(pairs: list[str] | None) -> dict:
    """``--engine-arg key=value`` pairs; a bare ``key`` is a boolean flag."""
    engine_args: dict = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        engine_args[key] = _parse_scalar(value) if sep else True
    return engine_args


# CLI flag → request key
_REQUEST_FLAGS = {
    "provider": "provider",
    "name": "name",
    "namespace": "namespace",
    "model": "model_id",
    "engine": "engine",
    "mode": "mode",
    "served_model_name": "served_model_name",
    "router_mode": "router_mode",
    "replicas": "replicas",
    "gpus_per_replica": "gpus_per_replica",
    "prefill_replicas": "prefill_replicas",
    "decode_replicas": "decode_replicas",
    "prefill_gpus": "prefill_gpus",
    "decode_gpus": "decode_gpus",
    "context_length": "context_length",
    "model_source": "model_source",
    "premade_model": "premade_model",
    "gguf_file": "gguf_file",
    "compute_type": "compute_type",
}


def _build_request(args: argparse.Namespace) -> dict:
    """Request mapping: YAML file (if any) overlaid with explicit CLI flags."""
    import yaml

    raw: dict = {}
    if args.file:
        with open(args.file) as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            print(f"Error: {args.file} must contain a mapping", file=sys.stderr)
            sys.exit(1)
        raw.update(loaded)

    for flag, key in _REQUEST_FLAGS.items():
        value = getattr(args, flag, None)
        if value is not None:
            raw[key] = value
    if args.enable_prefix_caching:
        raw["enable_prefix_caching"] = True
    if args.trust_remote_code:
        raw["trust_remote_code"] = True
    if args.no_enforce_eager:
        raw["enforce_eager"] = False
    engine_args = _parse_engine_args(args.engine_arg)
    if engine_args:
        raw["engine_args"] = {**raw.get("engine_args", {}), **engine_args}
    return raw


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------

def cmd_providers(args: argparse.Namespace) -> None:
    from rich.console import Console
    from rich.table import Table

    from kubefoundry.providers.registry import list_provider_info

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Namespace")
    table.add_column("Description")
    for info in list_provider_info():
        table.add_row(info.id, info.name, info.default_namespace, info.description)
    Console().print(table)


def cmd_provider_info(args: argparse.Namespace) -> None:
    from rich.console import Console

    from kubefoundry.errors import UnknownProvider
    from kubefoundry.providers.registry import get_provider

    try:
        provider = get_provider(args.provider)
    except UnknownProvider as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    console = Console()
    crd = provider.get_crd_config()
    console.print(f"[bold]{provider.name}[/bold] ({provider.id})")
    console.print(provider.description)
    console.print(f"[bold]CRD:[/bold]       {crd.kind} ({crd.full_api_version}, {crd.crd_name})")
    console.print(f"[bold]Namespace:[/bold] {provider.default_namespace}")
    console.print()
    console.print("[bold]Helm charts[/bold]")
    for chart in provider.get_helm_charts():
        version = f"@{chart.version}" if chart.version else ""
        console.print(f"  {chart.name}: {chart.chart}{version} -> {chart.namespace}")
    console.print()
    console.print("[bold]Installation steps[/bold]")
    for i, step in enumerate(provider.get_installation_steps(), 1):
        console.print(f"  {i}. {step.title}: {step.description}")
        if step.command:
            console.print(f"     [dim]{step.command}[/dim]")


# ---------------------------------------------------------------------------
# Deployments
# ---------------------------------------------------------------------------

def cmd_plan(args: argparse.Namespace) -> None:
    from rich.console import Console

    from kubefoundry.errors import KubeFoundryError, ValidationError
    from kubefoundry.manifests import to_yaml
    from kubefoundry.orchestrator import apply_plan, plan_deployment

    settings = _settings(args)
    raw = _build_request(args)
    cluster = None if args.offline else _cluster(settings)

    try:
        plan = plan_deployment(raw, settings, cluster)
    except ValidationError as e:
        print("Error: invalid deployment request:", file=sys.stderr)
        for err in e.errors:
            print(f"  - {err}", file=sys.stderr)
        sys.exit(1)
    except KubeFoundryError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.output == "json":
        print(json.dumps(plan.manifest, indent=2))
    else:
        print(to_yaml(plan.manifest), end="")

    console = Console(stderr=True)
    _print_plan_summary(console, plan)

    if args.apply:
        if not plan.fit.fits and not args.force:
            console.print("[red]GPU fit check failed; not applying (use --force to override).[/red]")
            sys.exit(1)
        try:
            apply_plan(plan, cluster or _cluster(settings))
        except _cluster_errors() as e:
            print(f"Error: could not apply manifest: {_cluster_error_message(e)}", file=sys.stderr)
            sys.exit(1)
        console.print(f"[green]Applied {plan.manifest['kind']} {plan.config.namespace}/{plan.config.name}[/green]")


def _print_plan_summary(console, plan) -> None:
    from kubefoundry.costs import format_currency

    topo = plan.topology
    console.print()
    console.print(f"[bold]Provider:[/bold]  {plan.provider_id}")
    console.print(f"[bold]GPUs:[/bold]      {topo.total_gpus} across {topo.total_instances} instance(s)")
    cost = plan.cost
    if cost.has_actual_costs:
        console.print(
            f"[bold]Cost:[/bold]      {format_currency(cost.hourly_rate)}/hr, "
            f"{format_currency(cost.monthly_rate)}/month ({cost.cloud_provider}, {cost.gpu_type})"
        )
    console.print(f"[bold]Relative:[/bold]  {cost.relative_description}")
    for warning in plan.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")


def cmd_delete(args: argparse.Namespace) -> None:
    from kubefoundry.orchestrator import delete_deployment

    settings = _settings(args)
    try:
        deleted = delete_deployment(args.provider, args.name, args.namespace, _cluster(settings))
    except _cluster_errors() as e:
        print(f"Error: {_cluster_error_message(e)}", file=sys.stderr)
        sys.exit(1)
    if deleted:
        print(f"Deleted {args.namespace}/{args.name}")
    else:
        print(f"No deployment {args.namespace}/{args.name} found.")


def cmd_list(args: argparse.Namespace) -> None:
    from rich.console import Console
    from rich.table import Table

    from kubefoundry.manifests import PROVIDER_LABEL
    from kubefoundry.orchestrator import list_deployments

    settings = _settings(args)
    try:
        items = list_deployments(_cluster(settings), args.provider, args.namespace)
    except _cluster_errors() as e:
        print(f"Error: {_cluster_error_message(e)}", file=sys.stderr)
        sys.exit(1)
    if not items:
        print("No deployments found.")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Name")
    table.add_column("Namespace")
    table.add_column("Provider")
    table.add_column("Kind")
    for item in items:
        meta = item.get("metadata", {})
        table.add_row(
            meta.get("name", ""),
            meta.get("namespace", ""),
            (meta.get("labels") or {}).get(PROVIDER_LABEL, ""),
            item.get("kind", ""),
        )
    Console().print(table)


# ---------------------------------------------------------------------------
# Costs and capacity
# ---------------------------------------------------------------------------

def _cost_input(args: argparse.Namespace, mode: str):
    from kubefoundry.models import CostEstimateInput

    gpu_type = args.gpu_type
    if gpu_type:
        from kubefoundry.catalog import normalize_gpu_type
        try:
            gpu_type = normalize_gpu_type(gpu_type)
        except KeyError:
            print(f"Error: unknown GPU type '{args.gpu_type}'.", file=sys.stderr)
            sys.exit(1)
    elif args.gpu_memory:
        from kubefoundry.catalog import detect_gpu_type_from_memory
        gpu_type = detect_gpu_type_from_memory(args.gpu_memory)

    return CostEstimateInput(
        mode=mode,
        replicas=args.replicas,
        gpus_per_replica=args.gpus_per_replica,
        prefill_replicas=args.prefill_replicas,
        decode_replicas=args.decode_replicas,
        prefill_gpus=args.prefill_gpus,
        decode_gpus=args.decode_gpus,
        cloud_provider=args.cloud,
        gpu_type=gpu_type,
        custom_hourly_rate=args.rate,
    )


def _print_estimate(console, title: str, estimate) -> None:
    from rich.table import Table

    from kubefoundry.costs import format_currency

    table = Table(title=title, show_header=False)
    table.add_column("", style="bold")
    table.add_column("")
    table.add_row("Total GPUs", str(estimate.resources.total_gpus))
    table.add_row("Instances", str(estimate.resources.total_instances))
    table.add_row("GPU multiplier", f"{estimate.gpu_multiplier:.1f}x")
    if estimate.has_actual_costs:
        table.add_row("Hourly", format_currency(estimate.hourly_rate))
        table.add_row("Daily", format_currency(estimate.daily_rate))
        table.add_row("Monthly", format_currency(estimate.monthly_rate))
    else:
        table.add_row("Pricing", "not configured")
    table.add_row("Summary", estimate.relative_description)
    console.print(table)


def cmd_cost(args: argparse.Namespace) -> None:
    from rich.console import Console

    from kubefoundry.catalog import PRICING_LAST_UPDATED
    from kubefoundry.costs import calculate_cost_estimate

    settings = _settings(args)
    estimate = calculate_cost_estimate(_cost_input(args, args.mode), settings.costs)
    console = Console()
    _print_estimate(console, f"Cost estimate ({args.mode})", estimate)
    console.print(f"[dim]Prices last updated {PRICING_LAST_UPDATED}; on-demand list prices.[/dim]")


def cmd_compare(args: argparse.Namespace) -> None:
    from rich.console import Console

    from kubefoundry.costs import compare_costs

    settings = _settings(args)
    comparison = compare_costs(
        _cost_input(args, "aggregated"), _cost_input(args, "disaggregated"), settings.costs,
    )
    console = Console()
    _print_estimate(console, "Aggregated", comparison.aggregated)
    _print_estimate(console, "Disaggregated", comparison.disaggregated)
    console.print(comparison.savings_description)


def cmd_capacity(args: argparse.Namespace) -> None:
    from rich.console import Console
    from rich.table import Table

    from kubefoundry.errors import CapacityUnknown

    settings = _settings(args)
    try:
        capacity = _cluster(settings).gpu_capacity()
    except CapacityUnknown as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    table = Table(title="Cluster GPU capacity", show_header=True, header_style="bold")
    table.add_column("Node")
    table.add_column("Total", justify="right")
    table.add_column("Allocated", justify="right")
    table.add_column("Available", justify="right")
    for node in capacity.nodes:
        table.add_row(node.node_name, str(node.total_gpus), str(node.allocated_gpus), str(node.available_gpus))
    table.add_row(
        "[bold]total[/bold]",
        str(capacity.total_gpus), str(capacity.allocated_gpus), str(capacity.available_gpus),
    )
    console = Console()
    console.print(table)
    console.print(f"Largest free block on one node: {capacity.max_contiguous_available} GPU(s)")


def cmd_show_gpus(args: argparse.Namespace) -> None:
    from rich.console import Console
    from rich.table import Table

    from kubefoundry.catalog import GPU_SPECS, normalize_gpu_type, query

    gpu_filter = None
    if args.gpu:
        try:
            gpu_filter = normalize_gpu_type(args.gpu)
        except KeyError:
            print(f"Error: unknown GPU '{args.gpu}'.", file=sys.stderr)
            sys.exit(1)

    result = query(gpu_type=gpu_filter, cloud=args.cloud, min_memory_gb=args.min_memory)
    table = Table(title="GPU pricing", show_header=True, header_style="bold")
    table.add_column("GPU")
    table.add_column("Memory", justify="right")
    table.add_column("Cloud")
    table.add_column("Price", justify="right")
    cheapest = result.cheapest()
    for entry in result.sorted_by_price():
        spec = GPU_SPECS[entry.gpu_type]
        price = f"${entry.price_per_gpu_hour:.2f}/hr"
        if entry == cheapest:
            price = f"[bold green]{price}[/bold green]"
        table.add_row(spec.display_name, f"{spec.memory_gb} GB", entry.cloud, price)
    console = Console()
    console.print(table)

    if args.cloud:
        from kubefoundry.catalog import get_provider_pricing_summary

        summary = get_provider_pricing_summary(args.cloud)
        if summary["max"] > 0:
            console.print(
                f"{args.cloud}: ${summary['min']:.2f} - ${summary['max']:.2f} per GPU-hour "
                f"(typical ${summary['common']:.2f})"
            )


def cmd_models(args: argparse.Namespace) -> None:
    from rich.console import Console
    from rich.table import Table

    from kubefoundry.model_catalog import list_models

    table = Table(title="Curated models", show_header=True, header_style="bold")
    table.add_column("Model")
    table.add_column("Size")
    table.add_column("Context", justify="right")
    table.add_column("Min GPUs", justify="right")
    table.add_column("Engines")
    for model in list_models(args.engine):
        label = f"{model.id} (gated)" if model.gated else model.id
        table.add_row(label, model.size, str(model.context_length), str(model.min_gpus),
                      ", ".join(model.supported_engines))
    Console().print(table)


def cmd_model_info(args: argparse.Namespace) -> None:
    import requests

    from kubefoundry.errors import UnknownModel
    from kubefoundry.huggingface import fetch_model_info

    try:
        info = fetch_model_info(args.model)
    except UnknownModel as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except requests.RequestException as e:
        print(f"Error: Hugging Face Hub request failed: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Model:        {info.id}")
    print(f"Pipeline:     {info.pipeline_tag or '-'}")
    print(f"Architecture: {', '.join(info.architectures) or '-'}")
    if info.parameter_count:
        print(f"Parameters:   {info.parameter_count:,}")
    if info.estimated_gpu_memory:
        print(f"GPU memory:   ~{info.estimated_gpu_memory} (fp16)")
    if info.parameter_count:
        from kubefoundry.gpu_fit import estimate_min_gpus

        min_gpus = estimate_min_gpus(info.parameter_count, args.gpu_memory)
        print(f"Min GPUs:     {min_gpus} x {args.gpu_memory} GB")
    print(f"Gated:        {'yes' if info.gated else 'no'}")
    if info.compatible:
        print(f"Engines:      {', '.join(info.supported_engines)}")
    else:
        print(f"Not servable: {info.incompatibility_reason}")


def cmd_model_search(args: argparse.Namespace) -> None:
    import requests
    from rich.console import Console
    from rich.table import Table

    from kubefoundry.huggingface import search_models

    try:
        models = search_models(args.query, limit=args.limit)
    except requests.RequestException as e:
        print(f"Error: Hugging Face Hub request failed: {e}", file=sys.stderr)
        sys.exit(1)

    if not models:
        print(f"No servable models found for '{args.query}'.")
        return

    table = Table(title=f"Hub models matching '{args.query}'", show_header=True, header_style="bold")
    table.add_column("Model")
    table.add_column("GPU memory", justify="right")
    table.add_column("Engines")
    table.add_column("Downloads", justify="right")
    for model in models:
        table.add_row(
            model.id,
            model.estimated_gpu_memory or "-",
            ", ".join(model.supported_engines),
            f"{model.downloads:,}",
        )
    Console().print(table)


def cmd_premade_models(args: argparse.Namespace) -> None:
    from rich.console import Console
    from rich.table import Table

    from kubefoundry.aikit import PREMADE_MODELS

    table = Table(title="AIKit premade models", show_header=True, header_style="bold")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Size")
    table.add_column("License")
    table.add_column("Description")
    for model in PREMADE_MODELS:
        table.add_row(model.id, model.name, model.size, model.license, model.description)
    Console().print(table)


# ---------------------------------------------------------------------------
# Installation
# ---------------------------------------------------------------------------

def _stream_line(line: str, stream: str) -> None:
    print(line, file=sys.stderr if stream == "stderr" else sys.stdout)


def _print_outcome(outcome) -> None:
    from rich.console import Console
    from rich.table import Table

    console = Console()
    if outcome.results:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Step")
        table.add_column("Result")
        for r in outcome.results:
            table.add_row(r.step, "[green]ok[/green]" if r.success else "[red]failed[/red]")
        console.print(table)

    style = "green" if outcome.success else "red"
    console.print(f"[{style}]{outcome.message}[/{style}]")
    for warning in outcome.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")


def _run_installation(args: argparse.Namespace, action: str) -> None:
    from kubefoundry.errors import CliUnavailable, StepFailure, UnknownProvider

    installer = _installer(_settings(args))
    on_line = None if args.quiet else _stream_line
    try:
        outcome = getattr(installer, action)(args.provider, on_line=on_line)
    except (CliUnavailable, UnknownProvider) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    _print_outcome(outcome)
    try:
        outcome.raise_for_failure()
    except StepFailure as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def cmd_install(args: argparse.Namespace) -> None:
    _run_installation(args, "install")


def cmd_upgrade(args: argparse.Namespace) -> None:
    _run_installation(args, "upgrade")


def cmd_uninstall(args: argparse.Namespace) -> None:
    _run_installation(args, "uninstall")


def cmd_status(args: argparse.Namespace) -> None:
    from kubefoundry.errors import UnknownProvider

    installer = _installer(_settings(args))
    try:
        status = installer.status(args.provider)
    except UnknownProvider as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Installed:        {'yes' if status.installed else 'no'}")
    print(f"CRD found:        {'yes' if status.crd_found else 'no'}")
    print(f"Operator running: {'yes' if status.operator_running else 'no'}")
    print(status.message)

    releases = installer.releases(args.provider)
    if releases:
        print()
        print("Helm releases:")
        for release in releases:
            print(f"  {release.get('name')} ({release.get('namespace')}): "
                  f"{release.get('chart')} {release.get('status')}")


def cmd_commands(args: argparse.Namespace) -> None:
    from kubefoundry.errors import UnknownProvider

    installer = _installer(_settings(args))
    try:
        commands = installer.commands(args.provider)
    except UnknownProvider as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    for command in commands:
        print(command)


def cmd_gpu_operator(args: argparse.Namespace) -> None:
    from kubefoundry.errors import CliUnavailable

    installer = _installer(_settings(args))
    if args.action == "status":
        status = installer.gpu_operator_status()
        print(f"Installed:  {'yes' if status.installed else 'no'}")
        print(f"GPUs:       {status.total_gpus} on {len(status.gpu_nodes)} node(s)")
        print(status.message)
        return

    try:
        outcome = installer.install_gpu_operator(on_line=None if args.quiet else _stream_line)
    except CliUnavailable as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    _print_outcome(outcome)
    if not outcome.success:
        sys.exit(1)


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

def _add_topology_args(p: argparse.ArgumentParser, defaults: bool) -> None:
    p.add_argument("--replicas", type=int, default=1 if defaults else None)
    p.add_argument("--gpus-per-replica", type=int, default=1 if defaults else None)
    p.add_argument("--prefill-replicas", type=int, default=None)
    p.add_argument("--decode-replicas", type=int, default=None)
    p.add_argument("--prefill-gpus", type=int, default=None)
    p.add_argument("--decode-gpus", type=int, default=None)


def _add_cost_args(p: argparse.ArgumentParser) -> None:
    _add_topology_args(p, defaults=True)
    p.add_argument("--cloud", default=None, choices=["aws", "azure", "gcp", "on-prem", "none"],
                   help="Cloud provider for pricing (default: from config)")
    p.add_argument("--gpu-type", default=None, help="GPU type (e.g. A100, nvidia-h100)")
    p.add_argument("--gpu-memory", type=float, default=None,
                   help="Per-GPU memory in GB; picks a GPU type when --gpu-type is not given")
    p.add_argument("--rate", type=float, default=None,
                   help="Custom per-GPU hourly rate (on-prem only)")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="kubefoundry",
        description="Deploy LLM inference runtimes on Kubernetes",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--config", default=None,
                        help="Path to config YAML (default: ~/.kubefoundry/config.yaml)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # -- providers --
    p_providers = subparsers.add_parser("providers", help="List runtime providers")
    p_providers.set_defaults(func=cmd_providers)

    p_info = subparsers.add_parser("provider-info", help="Show CRD, charts and install steps")
    p_info.add_argument("provider")
    p_info.set_defaults(func=cmd_provider_info)

    # -- plan --
    p_plan = subparsers.add_parser("plan", help="Validate a request and render its manifest")
    p_plan.add_argument("-f", "--file", default=None, help="YAML file with the deployment request")
    p_plan.add_argument("--provider", default=None, help="dynamo, kuberay or kaito (default: from config)")
    p_plan.add_argument("--name", default=None)
    p_plan.add_argument("--namespace", default=None)
    p_plan.add_argument("--model", default=None, help="Model id (e.g. Qwen/Qwen3-0.6B)")
    p_plan.add_argument("--engine", default=None, choices=["vllm", "sglang", "trtllm"])
    p_plan.add_argument("--mode", default=None, choices=["aggregated", "disaggregated"])
    p_plan.add_argument("--served-model-name", default=None)
    p_plan.add_argument("--router-mode", default=None, choices=["none", "kv", "round-robin"])
    _add_topology_args(p_plan, defaults=False)
    p_plan.add_argument("--context-length", type=int, default=None)
    p_plan.add_argument("--enable-prefix-caching", action="store_true")
    p_plan.add_argument("--trust-remote-code", action="store_true")
    p_plan.add_argument("--no-enforce-eager", action="store_true")
    p_plan.add_argument("--engine-arg", action="append", default=None, metavar="KEY[=VALUE]",
                        help="Extra engine flag, repeatable")
    p_plan.add_argument("--model-source", default=None, choices=["premade", "huggingface"],
                        help="KAITO model source")
    p_plan.add_argument("--premade-model", default=None, help="KAITO premade model (e.g. llama3.2:3b)")
    p_plan.add_argument("--gguf-file", default=None, help="KAITO GGUF file for a Hugging Face model")
    p_plan.add_argument("--compute-type", default=None, choices=["cpu", "gpu"])
    p_plan.add_argument("-o", "--output", default="yaml", choices=["yaml", "json"])
    p_plan.add_argument("--offline", action="store_true",
                        help="Skip the cluster GPU capacity check")
    p_plan.add_argument("--apply", action="store_true", help="Apply the manifest to the cluster")
    p_plan.add_argument("--force", action="store_true", help="Apply even if the GPU fit check fails")
    p_plan.set_defaults(func=cmd_plan)

    # -- delete / list --
    p_delete = subparsers.add_parser("delete", help="Delete a deployment")
    p_delete.add_argument("--provider", required=True)
    p_delete.add_argument("--name", required=True)
    p_delete.add_argument("--namespace", required=True)
    p_delete.set_defaults(func=cmd_delete)

    p_list = subparsers.add_parser("list", help="List kubefoundry deployments")
    p_list.add_argument("--provider", default=None)
    p_list.add_argument("--namespace", default=None)
    p_list.set_defaults(func=cmd_list)

    # -- cost / compare / capacity --
    p_cost = subparsers.add_parser("cost", help="Estimate the cost of a topology")
    p_cost.add_argument("--mode", default="aggregated", choices=["aggregated", "disaggregated"])
    _add_cost_args(p_cost)
    p_cost.set_defaults(func=cmd_cost)

    p_compare = subparsers.add_parser("compare", help="Compare aggregated and disaggregated costs")
    _add_cost_args(p_compare)
    p_compare.set_defaults(func=cmd_compare)

    p_capacity = subparsers.add_parser("capacity", help="Show cluster GPU capacity")
    p_capacity.set_defaults(func=cmd_capacity)

    p_gpus = subparsers.add_parser("show-gpus", help="Show GPU pricing across clouds")
    p_gpus.add_argument("--gpu", default=None, help="Filter to one GPU (e.g. A100, H100)")
    p_gpus.add_argument("--cloud", default=None, choices=["aws", "azure", "gcp"])
    p_gpus.add_argument("--min-memory", type=int, default=None, help="Minimum GPU memory in GB")
    p_gpus.set_defaults(func=cmd_show_gpus)

    p_models = subparsers.add_parser("models", help="List curated models")
    p_models.add_argument("--engine", default=None, choices=["vllm", "sglang", "trtllm"])
    p_models.set_defaults(func=cmd_models)

    p_model_info = subparsers.add_parser("model-info", help="Look up a model on the Hugging Face Hub")
    p_model_info.add_argument("model", help="Hugging Face repo id")
    p_model_info.add_argument("--gpu-memory", type=int, default=80,
                              help="Per-GPU memory in GB for the minimum GPU estimate (default: 80)")
    p_model_info.set_defaults(func=cmd_model_info)

    p_search = subparsers.add_parser("model-search", help="Search the Hugging Face Hub for servable models")
    p_search.add_argument("query", help="Search text")
    p_search.add_argument("--limit", type=int, default=20, help="Maximum Hub results to inspect")
    p_search.set_defaults(func=cmd_model_search)

    p_premade = subparsers.add_parser("premade-models", help="List AIKit premade models for KAITO")
    p_premade.set_defaults(func=cmd_premade_models)

    # -- installation --
    for name, func, help_text in (
        ("install", cmd_install, "Install a runtime's operator stack"),
        ("upgrade", cmd_upgrade, "Upgrade a runtime's operator stack"),
        ("uninstall", cmd_uninstall, "Uninstall a runtime's operator stack"),
    ):
        p = subparsers.add_parser(name, help=help_text)
        p.add_argument("provider")
        p.add_argument("-q", "--quiet", action="store_true", help="Do not stream helm output")
        p.set_defaults(func=func)

    p_status = subparsers.add_parser("status", help="Check a runtime's installation status")
    p_status.add_argument("provider")
    p_status.set_defaults(func=cmd_status)

    p_commands = subparsers.add_parser("commands", help="Print helm commands for a manual install")
    p_commands.add_argument("provider")
    p_commands.set_defaults(func=cmd_commands)

    p_gpu_op = subparsers.add_parser("gpu-operator", help="NVIDIA GPU Operator status or install")
    p_gpu_op.add_argument("action", choices=["status", "install"])
    p_gpu_op.add_argument("-q", "--quiet", action="store_true")
    p_gpu_op.set_defaults(func=cmd_gpu_operator)

    args = parser.parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    # Silence noisy third-party loggers unless --verbose
    if not args.verbose:
        for name in ("kubernetes", "urllib3"):
            logging.getLogger(name).setLevel(logging.WARNING)

    args.func(args)


if __name__ == "__main__":
    main()
