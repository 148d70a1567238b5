"""AI backends."""

from .base import BaseProvider, BackendSpec, ProviderSettings
from .backend import BackendProvider
from .openai import OPENAI
from .anthropic import ANTHROPIC
from .google import GOOGLE
from .xai import XAI
from .ollama import OLLAMA

BUILTIN_BACKENDS = {spec.name: spec for spec in (OPENAI, ANTHROPIC, GOOGLE, XAI, OLLAMA)}

__all__ = [
    "BaseProvider",
    "BackendSpec",
    "ProviderSettings",
    "BackendProvider",
    "BUILTIN_BACKENDS",
    "OPENAI",
    "ANTHROPIC",
    "GOOGLE",
    "XAI",
    "OLLAMA",
]
