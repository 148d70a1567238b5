"""Anthropic messages backend."""

from typing import Dict, Any, Mapping

from ..transport import PreparedRequest
from .base import BackendSpec, ProviderSettings, generation_params

API_VERSION = "2023-06-01"

MODELS = (
    "claude-3-7-sonnet-20250219",
    "claude-3-5-sonnet-20241022",
    "claude-3-5-haiku-20241022",
    "claude-3-opus-20240229",
    "claude-3-sonnet-20240229",
    "claude-3-haiku-20240307",
)


def build_request(settings: ProviderSettings, prompt: str, options: Mapping[str, Any]) -> PreparedRequest:
    system_message, max_tokens, temperature = generation_params(settings, options)
    return PreparedRequest(
        url=f"{settings.base_url}/messages",
        headers={
            "x-api-key": settings.get_api_key() or "",
            "anthropic-version": API_VERSION,
        },
        body={
            "model": settings.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
            "system": system_message,
            "temperature": temperature,
        },
    )


def parse_response(data: Dict[str, Any]) -> str:
    return data["content"][0]["text"].strip()


ANTHROPIC = BackendSpec(
    name="anthropic",
    default_model="claude-3-7-sonnet-20250219",
    default_base_url="https://api.anthropic.com/v1",
    build_request=build_request,
    parse_response=parse_response,
    supported_models=MODELS,
    api_key_env="ANTHROPIC_API_KEY",
)
