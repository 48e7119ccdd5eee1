"""Hugging Face Hub metadata: parameter counts and engine compatibility for a model id."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

import requests

from kubefoundry.errors import UnknownModel
from kubefoundry.gpu_fit import estimate_gpu_memory, format_gpu_memory
from kubefoundry.model_catalog import (
    SUPPORTED_LIBRARIES,
    get_incompatibility_reason,
    get_supported_engines,
    is_pipeline_tag_compatible,
)

logger = logging.getLogger(__name__)

HF_API_BASE = "https://huggingface.co/api/models"


@dataclass
class HfModelInfo:
    id: str
    author: str
    name: str
    downloads: int = 0
    likes: int = 0
    pipeline_tag: str = ""
    library_name: str = ""
    architectures: list[str] = field(default_factory=list)
    gated: bool = False
    parameter_count: Optional[int] = None
    estimated_gpu_memory_gb: Optional[float] = None
    estimated_gpu_memory: Optional[str] = None
    supported_engines: list[str] = field(default_factory=list)
    compatible: bool = False
    incompatibility_reason: Optional[str] = None


def _headers(token: Optional[str]) -> dict[str, str]:
    token = token or os.environ.get("HF_TOKEN")
    if not token:
        return {}
    return {"Authorization": f"Bearer {token}"}


def extract_parameter_count(model: dict) -> Optional[int]:
    """Parameter count from safetensors metadata: ``total``, else the per-dtype sum."""
    safetensors = model.get("safetensors") or {}
    if safetensors.get("total"):
        return safetensors["total"]
    params = safetensors.get("parameters") or {}
    total = sum(params.values())
    return total if total > 0 else None


def process_hf_model(model: dict) -> HfModelInfo:
    """Turn a raw Hub API model document into an ``HfModelInfo``."""
    architectures = (model.get("config") or {}).get("architectures") or []
    supported_engines = get_supported_engines(architectures)
    pipeline_tag = model.get("pipeline_tag") or ""
    library_name = model.get("library_name") or ""

    compatible = (
        is_pipeline_tag_compatible(pipeline_tag)
        and bool(supported_engines)
        and library_name in SUPPORTED_LIBRARIES
    )
    reason = None if compatible else get_incompatibility_reason(
        pipeline_tag, library_name, architectures, supported_engines,
    )

    parameter_count = extract_parameter_count(model)
    memory_gb = estimate_gpu_memory(parameter_count) if parameter_count else None

    model_id = model["id"]
    author, _, name = model_id.partition("/")

    return HfModelInfo(
        id=model_id,
        author=author or "unknown",
        name=name or model_id,
        downloads=model.get("downloads") or 0,
        likes=model.get("likes") or 0,
        pipeline_tag=pipeline_tag,
        library_name=library_name,
        architectures=list(architectures),
        gated=model.get("gated") in (True, "auto", "manual"),
        parameter_count=parameter_count,
        estimated_gpu_memory_gb=memory_gb,
        estimated_gpu_memory=format_gpu_memory(memory_gb) if memory_gb else None,
        supported_engines=supported_engines,
        compatible=compatible,
        incompatibility_reason=reason,
    )


def fetch_model_info(model_id: str, token: Optional[str] = None, timeout: float = 10) -> HfModelInfo:
    """Fetch one model from the Hub. Raises ``UnknownModel`` on 404."""
    resp = requests.get(
        f"{HF_API_BASE}/{model_id}",
        params={"expand[]": ["safetensors", "config", "pipeline_tag", "library_name",
                             "downloads", "likes", "gated"]},
        headers=_headers(token),
        timeout=timeout,
    )
    if resp.status_code == 404:
        raise UnknownModel(model_id)
    resp.raise_for_status()
    return process_hf_model(resp.json())


def search_models(
    query: str,
    limit: int = 20,
    token: Optional[str] = None,
    timeout: float = 10,
) -> list[HfModelInfo]:
    """Search the Hub for text-generation models and keep the servable ones."""
    resp = requests.get(
        HF_API_BASE,
        params={
            "search": query,
            "limit": limit,
            "filter": "text-generation",
            "sort": "downloads",
            "full": "true",
            "config": "true",
        },
        headers=_headers(token),
        timeout=timeout,
    )
    resp.raise_for_status()
    models = [process_hf_model(m) for m in resp.json()]
    logger.debug("Hub search %r: %d results, %d compatible",
                 query, len(models), sum(m.compatible for m in models))
    return [m for m in models if m.compatible]
