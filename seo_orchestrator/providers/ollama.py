"""Self-hosted Ollama backend. No API key; the model must be an Ollama model."""

from typing import Dict, Any, Mapping

from ..transport import PreparedRequest
from .base import BackendSpec, ProviderSettings, generation_params

MODELS = (
    "llama3.2",
    "llama3.1",
    "llama3",
    "llama2",
    "mistral",
    "mixtral",
    "codellama",
    "phi3",
    "gemma2",
    "qwen2.5",
)


def build_request(settings: ProviderSettings, prompt: str, options: Mapping[str, Any]) -> PreparedRequest:
    system_message, max_tokens, temperature = generation_params(settings, options)
    return PreparedRequest(
        url=f"{settings.base_url}/api/generate",
        body={
            "model": settings.model,
            "prompt": f"{system_message}\n\n{prompt}",
            "stream": False,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
            },
        },
    )


def parse_response(data: Dict[str, Any]) -> str:
    return data["response"].strip()


OLLAMA = BackendSpec(
    name="ollama",
    default_model="llama3.2",
    default_base_url="http://localhost:11434",
    build_request=build_request,
    parse_response=parse_response,
    supported_models=MODELS,
    requires_api_key=False,
)
