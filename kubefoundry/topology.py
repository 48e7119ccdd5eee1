"""Resource topology: turn replica/GPU counts into a GPU/instance breakdown."""

from __future__ import annotations

from kubefoundry.models import ResourceTopology


def derive_topology(request) -> ResourceTopology:
    """Compute the GPU/instance breakdown for a request.

    Accepts anything with ``mode``, ``replicas`` and ``gpus_per_replica``
    attributes (``DeploymentRequest``, ``CostEstimateInput``). In
    disaggregated mode a missing prefill/decode replica count defaults to
    1 and a missing prefill/decode GPU count defaults to
    ``gpus_per_replica``; ``replicas`` is ignored.
    """
    gpus_per_replica = request.gpus_per_replica

    if request.mode == "disaggregated":
        prefill_instances = _or_default(request.prefill_replicas, 1)
        decode_instances = _or_default(request.decode_replicas, 1)
        prefill_gpus = _or_default(request.prefill_gpus, gpus_per_replica)
        decode_gpus = _or_default(request.decode_gpus, gpus_per_replica)

        return ResourceTopology(
            total_gpus=prefill_instances * prefill_gpus + decode_instances * decode_gpus,
            total_instances=prefill_instances + decode_instances,
            prefill_instances=prefill_instances,
            prefill_gpus_per_instance=prefill_gpus,
            decode_instances=decode_instances,
            decode_gpus_per_instance=decode_gpus,
        )

    return ResourceTopology(
        total_gpus=request.replicas * gpus_per_replica,
        total_instances=request.replicas,
        worker_instances=request.replicas,
        gpus_per_worker=gpus_per_replica,
    )


def _or_default(value, default):
    return default if value is None else value
