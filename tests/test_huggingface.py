"""Tests for kubefoundry.huggingface: Hub responses are mocked."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from kubefoundry.errors import UnknownModel
from kubefoundry.huggingface import (
    HF_API_BASE,
    extract_parameter_count,
    fetch_model_info,
    process_hf_model,
    search_models,
)

LLAMA = {
    "id": "meta-llama/Llama-3.1-8B-Instruct",
    "pipeline_tag": "text-generation",
    "library_name": "transformers",
    "config": {"architectures": ["LlamaForCausalLM"]},
    "safetensors": {"total": 8_030_261_248},
    "downloads": 1000,
    "likes": 50,
    "gated": "manual",
}

DIFFUSION = {
    "id": "stabilityai/sdxl",
    "pipeline_tag": "text-to-image",
    "library_name": "diffusers",
    "config": {},
}


def _response(status_code=200, payload=None):
    resp = MagicMock(status_code=status_code)
    resp.json.return_value = payload
    if status_code >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    return resp


class TestExtractParameterCount:
    def test_total(self):
        assert extract_parameter_count({"safetensors": {"total": 42}}) == 42

    def test_sum_of_dtypes(self):
        assert extract_parameter_count({"safetensors": {"parameters": {"BF16": 10, "F32": 5}}}) == 15

    def test_missing(self):
        assert extract_parameter_count({}) is None


class TestProcessModel:
    def test_compatible(self):
        info = process_hf_model(LLAMA)
        assert info.compatible
        assert info.incompatibility_reason is None
        assert info.author == "meta-llama"
        assert info.name == "Llama-3.1-8B-Instruct"
        assert info.gated
        assert info.supported_engines == ["vllm", "sglang", "trtllm"]
        assert info.estimated_gpu_memory == "19.3 GB"

    def test_incompatible(self):
        info = process_hf_model(DIFFUSION)
        assert not info.compatible
        assert info.incompatibility_reason == 'Pipeline tag "text-to-image" is not supported for inference'
        assert not info.gated
        assert info.parameter_count is None


class TestFetchModelInfo:
    @patch("kubefoundry.huggingface.requests.get")
    def test_ok(self, mock_get):
        mock_get.return_value = _response(payload=LLAMA)
        info = fetch_model_info("meta-llama/Llama-3.1-8B-Instruct", token="hf_abc")
        assert info.parameter_count == 8_030_261_248
        url = mock_get.call_args[0][0]
        assert url == f"{HF_API_BASE}/meta-llama/Llama-3.1-8B-Instruct"
        assert mock_get.call_args[1]["headers"] == {"Authorization": "Bearer hf_abc"}

    @patch("kubefoundry.huggingface.requests.get")
    def test_token_from_env(self, mock_get, monkeypatch):
        monkeypatch.setenv("HF_TOKEN", "hf_env")
        mock_get.return_value = _response(payload=LLAMA)
        fetch_model_info("meta-llama/Llama-3.1-8B-Instruct")
        assert mock_get.call_args[1]["headers"] == {"Authorization": "Bearer hf_env"}

    @patch("kubefoundry.huggingface.requests.get")
    def test_not_found(self, mock_get):
        mock_get.return_value = _response(status_code=404)
        with pytest.raises(UnknownModel):
            fetch_model_info("nobody/nothing")

    @patch("kubefoundry.huggingface.requests.get")
    def test_server_error_propagates(self, mock_get):
        mock_get.return_value = _response(status_code=500)
        with pytest.raises(requests.HTTPError):
            fetch_model_info("meta-llama/Llama-3.1-8B-Instruct")


class TestSearchModels:
    @patch("kubefoundry.huggingface.requests.get")
    def test_keeps_compatible_only(self, mock_get):
        mock_get.return_value = _response(payload=[LLAMA, DIFFUSION])
        results = search_models("llama", limit=5)
        assert [m.id for m in results] == ["meta-llama/Llama-3.1-8B-Instruct"]
        params = mock_get.call_args[1]["params"]
        assert params["search"] == "llama"
        assert params["limit"] == 5
