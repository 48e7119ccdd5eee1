"""AIKit images: premade GGUF models and image naming for Hugging Face GGUF builds."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

DEFAULT_REGISTRY = "kubefoundry-registry.kubefoundry-system.svc:5000"

_AIKIT_IMAGE_BASE = "ghcr.io/kaito-project/aikit"


@dataclass(frozen=True)
class PremadeModel:
    id: str             # "llama3.2:1b"
    name: str           # "Llama 3.2"
    size: str           # "1B"
    model_name: str     # name served on the OpenAI-compatible API
    license: str
    description: str = ""
    compute_type: str = "cpu"

    @property
    def image(self) -> str:
        return f"{_AIKIT_IMAGE_BASE}/{self.id}"


PREMADE_MODELS: tuple[PremadeModel, ...] = (
    PremadeModel("llama3.2:1b", "Llama 3.2", "1B", "llama-3.2-1b-instruct", "Llama",
                 "Compact model for edge deployments"),
    PremadeModel("llama3.2:3b", "Llama 3.2", "3B", "llama-3.2-3b-instruct", "Llama",
                 "Efficient model for general tasks"),
    PremadeModel("llama3.1:8b", "Llama 3.1", "8B", "llama-3.1-8b-instruct", "Llama",
                 "Balanced performance and efficiency"),
    PremadeModel("llama3.3:70b", "Llama 3.3", "70B", "llama-3.3-70b-instruct", "Llama",
                 "High-performance large model"),
    PremadeModel("mixtral:8x7b", "Mixtral", "8x7B", "mixtral-8x7b-instruct", "Apache",
                 "Mixture of experts architecture"),
    PremadeModel("phi4:14b", "Phi 4", "14B", "phi-4-14b-instruct", "MIT",
                 "Microsoft research model"),
    PremadeModel("gemma2:2b", "Gemma 2", "2B", "gemma-2-2b-instruct", "Gemma",
                 "Google lightweight model"),
    PremadeModel("qwq:32b", "QwQ", "32B", "qwq-32b", "Apache 2.0",
                 "Reasoning-focused model"),
    PremadeModel("codestral:22b", "Codestral", "22B", "codestral-22b", "MNLP",
                 "Code generation specialist"),
    PremadeModel("gpt-oss:20b", "GPT-OSS", "20B", "gpt-oss-20b", "Apache 2.0",
                 "Open source GPT-style model"),
)

_QUANTIZATION_PATTERNS = (
    re.compile(r"\.(Q\d+_K_[SM])\.gguf$", re.IGNORECASE),   # Q4_K_M, Q5_K_S
    re.compile(r"\.(Q\d+_\d)\.gguf$", re.IGNORECASE),       # Q4_0, Q5_1
    re.compile(r"\.(Q\d+)\.gguf$", re.IGNORECASE),          # Q4, Q8
    re.compile(r"\.(IQ\d+_[A-Z]+)\.gguf$", re.IGNORECASE),  # IQ2_XXS
    re.compile(r"\.(F\d+)\.gguf$", re.IGNORECASE),          # F16, F32
)


def get_premade_model(model_id: str) -> Optional[PremadeModel]:
    for model in PREMADE_MODELS:
        if model.id == model_id:
            return model
    return None


def validate_build_request(
    model_source: Optional[str],
    premade_model: Optional[str] = None,
    model_id: Optional[str] = None,
    gguf_file: Optional[str] = None,
) -> list[str]:
    """Check the model-source fields of a KAITO request. Returns all errors."""
    errors: list[str] = []
    if model_source == "premade":
        if not premade_model:
            errors.append("premadeModel is required for premade model source")
        elif get_premade_model(premade_model) is None:
            errors.append(f"Unknown premade model: {premade_model}")
    elif model_source == "huggingface":
        if not model_id:
            errors.append("modelId is required for HuggingFace model source")
        if not gguf_file:
            errors.append("ggufFile is required for HuggingFace model source")
        elif not gguf_file.endswith(".gguf"):
            errors.append("ggufFile must be a .gguf file")
    else:
        errors.append('modelSource must be either "premade" or "huggingface"')
    return errors


def extract_quantization(gguf_file: str) -> str:
    """Quantization level from a GGUF filename, e.g. ``model.Q4_K_M.gguf`` → ``Q4_K_M``."""
    for pattern in _QUANTIZATION_PATTERNS:
        match = pattern.search(gguf_file)
        if match:
            return match.group(1).upper()
    return "custom"


def sanitize_image_name(model_id: str) -> str:
    """Turn a Hugging Face repo id into a valid image name component (max 63 chars)."""
    name = re.sub(r"[^a-z0-9-]", "-", model_id.lower())
    name = re.sub(r"-+", "-", name).strip("-")
    return name[:63]


def huggingface_image_ref(
    model_id: str,
    gguf_file: str,
    registry: str = DEFAULT_REGISTRY,
    image_name: Optional[str] = None,
    image_tag: Optional[str] = None,
) -> str:
    """In-cluster registry reference for an AIKit image built from a GGUF file."""
    name = image_name or f"aikit-{sanitize_image_name(model_id)}"
    tag = image_tag or extract_quantization(gguf_file)
    return f"{registry}/{name}:{tag}"
