"""OpenAI chat completions backend."""

from typing import Dict, Any, Mapping

from ..transport import PreparedRequest
from .base import BackendSpec, ProviderSettings, generation_params

MODELS = (
    "gpt-4o",
    "gpt-4o-mini",
    "o1-preview",
    "o1-mini",
    "gpt-4-turbo",
    "gpt-4",
    "gpt-3.5-turbo",
)


def chat_completions_request(
    settings: ProviderSettings, prompt: str, options: Mapping[str, Any], default_max_tokens: int = 150
) -> PreparedRequest:
    """Request for any OpenAI-compatible /chat/completions endpoint."""
    system_message, max_tokens, temperature = generation_params(settings, options, default_max_tokens)
    return PreparedRequest(
        url=f"{settings.base_url}/chat/completions",
        headers={"Authorization": f"Bearer {settings.get_api_key()}"},
        body={
            "model": settings.model,
            "messages": [
                {"role": "system", "content": system_message},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        },
    )


def parse_chat_completion(data: Dict[str, Any]) -> str:
    return data["choices"][0]["message"]["content"].strip()


OPENAI = BackendSpec(
    name="openai",
    default_model="gpt-4o-mini",
    default_base_url="https://api.openai.com/v1",
    build_request=chat_completions_request,
    parse_response=parse_chat_completion,
    supported_models=MODELS,
    api_key_env="OPENAI_API_KEY",
)
