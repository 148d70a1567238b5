"""Google Gemini backend.

Gemini takes the API key as a query parameter and has no system role, so the
system message is prepended to the prompt.
"""

from typing import Dict, Any, Mapping
from urllib.parse import quote

from ..transport import PreparedRequest
from .base import BackendSpec, ProviderSettings, generation_params

MODELS = (
    "gemini-2.0-flash-exp",
    "gemini-exp-1206",
    "gemini-1.5-pro",
    "gemini-1.5-flash",
    "gemini-1.0-pro",
    "gemini-pro",
)


def build_request(settings: ProviderSettings, prompt: str, options: Mapping[str, Any]) -> PreparedRequest:
    system_message, max_tokens, temperature = generation_params(settings, options)
    key = quote(settings.get_api_key() or "", safe="")
    return PreparedRequest(
        url=f"{settings.base_url}/models/{settings.model}:generateContent?key={key}",
        body={
            "contents": [{"parts": [{"text": f"{system_message}\n\n{prompt}"}]}],
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_tokens,
            },
        },
    )


def parse_response(data: Dict[str, Any]) -> str:
    return data["candidates"][0]["content"]["parts"][0]["text"].strip()


GOOGLE = BackendSpec(
    name="google",
    default_model="gemini-2.0-flash-exp",
    default_base_url="https://generativelanguage.googleapis.com/v1",
    build_request=build_request,
    parse_response=parse_response,
    supported_models=MODELS,
    api_key_env="GOOGLE_API_KEY",
)
