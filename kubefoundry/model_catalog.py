"""Curated model catalog and engine/architecture compatibility rules."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from kubefoundry.errors import UnknownModel

ENGINES = ("vllm", "sglang", "trtllm")

# Architectures each engine is known to serve. Others may work but are not verified.
ENGINE_ARCHITECTURE_ALLOWLIST: dict[str, frozenset[str]] = {
    "vllm": frozenset({
        "LlamaForCausalLM", "MistralForCausalLM", "MixtralForCausalLM",
        "Qwen2ForCausalLM", "Qwen2MoeForCausalLM", "Qwen3ForCausalLM",
        "GPT2LMHeadModel", "GPTNeoForCausalLM", "GPTNeoXForCausalLM",
        "GPTJForCausalLM", "GPTBigCodeForCausalLM",
        "FalconForCausalLM", "PhiForCausalLM", "Phi3ForCausalLM",
        "GemmaForCausalLM", "Gemma2ForCausalLM", "StableLmForCausalLM",
        "StarCoder2ForCausalLM", "OPTForCausalLM", "BloomForCausalLM",
        "MPTForCausalLM", "BaichuanForCausalLM", "InternLMForCausalLM",
        "InternLM2ForCausalLM", "ChatGLMModel", "CohereForCausalLM",
        "DbrxForCausalLM", "DeciLMForCausalLM", "DeepseekV2ForCausalLM",
        "ExaoneForCausalLM", "ArcticForCausalLM", "GraniteForCausalLM",
        "GraniteMoeForCausalLM", "JambaForCausalLM", "MiniCPMForCausalLM",
        "OlmoForCausalLM", "Olmo2ForCausalLM", "PersimmonForCausalLM",
        "SolarForCausalLM", "TeleChat2ForCausalLM", "XverseForCausalLM",
    }),
    "sglang": frozenset({
        "LlamaForCausalLM", "MistralForCausalLM", "MixtralForCausalLM",
        "Qwen2ForCausalLM", "Qwen2MoeForCausalLM", "Qwen3ForCausalLM",
        "GPT2LMHeadModel", "GPTNeoXForCausalLM", "GPTBigCodeForCausalLM",
        "GemmaForCausalLM", "Gemma2ForCausalLM", "PhiForCausalLM",
        "Phi3ForCausalLM", "StableLmForCausalLM", "InternLM2ForCausalLM",
        "DeepseekV2ForCausalLM", "OlmoForCausalLM", "Olmo2ForCausalLM",
        "ExaoneForCausalLM", "MiniCPMForCausalLM",
    }),
    "trtllm": frozenset({
        "LlamaForCausalLM", "MistralForCausalLM", "MixtralForCausalLM",
        "Qwen2ForCausalLM", "GPT2LMHeadModel", "GPTNeoXForCausalLM",
        "FalconForCausalLM", "PhiForCausalLM", "GemmaForCausalLM",
        "BloomForCausalLM", "MPTForCausalLM", "BaichuanForCausalLM",
        "ChatGLMModel",
    }),
}

SUPPORTED_PIPELINE_TAGS = ("text-generation", "text2text-generation", "conversational")
SUPPORTED_LIBRARIES = ("transformers", "vllm", "")


@dataclass(frozen=True)
class ModelSpec:
    id: str                       # Hugging Face repo id
    name: str
    description: str
    size: str                     # "8B"
    parameter_count: int
    context_length: int
    supported_engines: tuple[str, ...]
    min_gpus: int = 1
    gated: bool = False


MODELS: tuple[ModelSpec, ...] = (
    ModelSpec("Qwen/Qwen3-0.6B", "Qwen3 0.6B", "Small model for smoke tests",
              "0.6B", 600_000_000, 32768, ("vllm", "sglang")),
    ModelSpec("Qwen/Qwen2.5-7B-Instruct", "Qwen2.5 7B Instruct", "General purpose instruction model",
              "7B", 7_600_000_000, 32768, ("vllm", "sglang", "trtllm")),
    ModelSpec("meta-llama/Llama-3.1-8B-Instruct", "Llama 3.1 8B Instruct", "Balanced chat model",
              "8B", 8_000_000_000, 131072, ("vllm", "sglang", "trtllm"), gated=True),
    ModelSpec("mistralai/Mistral-7B-Instruct-v0.3", "Mistral 7B Instruct v0.3", "Efficient instruction model",
              "7B", 7_200_000_000, 32768, ("vllm", "sglang", "trtllm")),
    ModelSpec("microsoft/Phi-3-mini-4k-instruct", "Phi-3 Mini 4K", "Compact reasoning model",
              "3.8B", 3_800_000_000, 4096, ("vllm", "sglang")),
    ModelSpec("google/gemma-2-9b-it", "Gemma 2 9B IT", "Google instruction-tuned model",
              "9B", 9_200_000_000, 8192, ("vllm", "sglang"), gated=True),
    ModelSpec("deepseek-ai/DeepSeek-R1-Distill-Llama-8B", "DeepSeek R1 Distill Llama 8B",
              "Reasoning model distilled onto Llama", "8B", 8_000_000_000, 131072,
              ("vllm", "sglang", "trtllm")),
    ModelSpec("meta-llama/Llama-3.3-70B-Instruct", "Llama 3.3 70B Instruct", "Large chat model",
              "70B", 70_600_000_000, 131072, ("vllm", "sglang", "trtllm"), min_gpus=4, gated=True),
)


def list_models(engine: Optional[str] = None) -> list[ModelSpec]:
    if engine is None:
        return list(MODELS)
    return [m for m in MODELS if engine in m.supported_engines]


def get_model(model_id: str) -> ModelSpec:
    """Lookup a curated model. Raises ``UnknownModel`` if not in the catalog."""
    for model in MODELS:
        if model.id == model_id:
            return model
    raise UnknownModel(model_id)


def model_min_gpus(model_id: str) -> int:
    """Minimum GPUs for a model; 1 for models outside the catalog."""
    try:
        return get_model(model_id).min_gpus
    except UnknownModel:
        return 1


def get_engine_architectures(engine: str) -> list[str]:
    return sorted(ENGINE_ARCHITECTURE_ALLOWLIST[engine])


def get_supported_engines(architectures: list[str]) -> list[str]:
    """Engines whose allowlist contains any of the given architectures."""
    return [
        engine for engine in ENGINES
        if any(arch in ENGINE_ARCHITECTURE_ALLOWLIST[engine] for arch in architectures)
    ]


def is_pipeline_tag_compatible(pipeline_tag: Optional[str]) -> bool:
    return bool(pipeline_tag) and pipeline_tag in SUPPORTED_PIPELINE_TAGS


def get_incompatibility_reason(
    pipeline_tag: Optional[str],
    library_name: Optional[str],
    architectures: list[str],
    supported_engines: list[str],
) -> Optional[str]:
    """First reason a model cannot be served, or None if it can."""
    if not pipeline_tag:
        return "Model has no pipeline tag"
    if not is_pipeline_tag_compatible(pipeline_tag):
        return f'Pipeline tag "{pipeline_tag}" is not supported for inference'
    if library_name and library_name not in SUPPORTED_LIBRARIES:
        return f'Library "{library_name}" is not supported'
    if not architectures:
        return "Model architecture is unknown"
    if not supported_engines:
        return f'Architecture "{architectures[0]}" is not supported by any engine'
    return None
