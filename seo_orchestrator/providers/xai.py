"""xAI Grok backend (OpenAI-compatible API)."""

from typing import Any, Mapping

from ..transport import PreparedRequest
from .base import BackendSpec, ProviderSettings
from .openai import chat_completions_request, parse_chat_completion

MODELS = ("grok-beta", "grok-vision-beta")


def build_request(settings: ProviderSettings, prompt: str, options: Mapping[str, Any]) -> PreparedRequest:
    return chat_completions_request(settings, prompt, options, default_max_tokens=1024)


XAI = BackendSpec(
    name="xai",
    default_model="grok-beta",
    default_base_url="https://api.x.ai/v1",
    build_request=build_request,
    parse_response=parse_chat_completion,
    supported_models=MODELS,
    api_key_env="XAI_API_KEY",
)
