"""Generic backend adapter."""

from typing import Optional, List, Dict, Any, Mapping

from .. import prompts
from ..cache import ResponseCache
from ..executor import RequestExecutor
from ..transport import PreparedRequest
from .base import BaseProvider, BackendSpec, ProviderSettings


class BackendProvider(BaseProvider):
    """
    Adapter for one AI backend.

    Vendor differences live in the BackendSpec; retries, rate limiting and
    error mapping are delegated to the shared RequestExecutor, and raw answers
    are memoized in the optional ResponseCache.
    """

    def __init__(
        self,
        spec: BackendSpec,
        settings: Optional[ProviderSettings],
        executor: RequestExecutor,
        cache: Optional[ResponseCache] = None,
        wait_for_token: Optional[float] = None,
    ):
        self.spec = spec
        self.settings = spec.resolve(settings)
        self.executor = executor
        self.cache = cache
        self.wait_for_token = wait_for_token

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def model(self) -> str:
        return self.settings.model

    @property
    def supported_models(self) -> List[str]:
        return list(self.spec.supported_models)

    def is_available(self) -> bool:
        if self.spec.requires_api_key:
            return bool(self.settings.get_api_key())
        # Keyless backends are only usable with one of their own models
        return self.settings.model in self.spec.supported_models

    def validate_config(self, config: Mapping[str, Any]) -> bool:
        model = config.get("model")
        if self.spec.requires_api_key:
            if not config.get("api_key"):
                return False
            return not model or model in self.spec.supported_models
        return bool(model) and model in self.spec.supported_models

    def _build_request(self, prompt: str, options: Mapping[str, Any]) -> PreparedRequest:
        request = self.spec.build_request(self.settings, prompt, options)
        request.headers.update(self.settings.extra_headers)
        request.body.update(self.settings.extra_params)
        return request

    def _send(self, prompt: str, options: Mapping[str, Any]) -> str:
        return self.executor.execute(
            self.name,
            lambda: self._build_request(prompt, options),
            self.spec.parse_response,
            available=self.is_available(),
            max_retries=self.settings.max_retries,
            timeout=self.settings.timeout,
            wait_for_token=self.wait_for_token,
        )

    def generate(self, prompt: str, options: Optional[Mapping[str, Any]] = None) -> str:
        options = dict(options or {})
        if self.cache is None:
            return self._send(prompt, options)

        key = self.cache.key_generator.for_provider_response(self.name, self.model, prompt, options)
        return self.cache.remember(key, lambda: self._send(prompt, options))

    def generate_title(self, analysis: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None) -> str:
        prompt = prompts.build_title_prompt(analysis, options)
        params = prompts.generation_options(prompts.TITLE_SYSTEM_MESSAGE, 100, 0.7, options)
        return self.generate(prompt, params)

    def generate_description(
        self, analysis: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None
    ) -> str:
        prompt = prompts.build_description_prompt(analysis, options)
        params = prompts.generation_options(prompts.DESCRIPTION_SYSTEM_MESSAGE, 150, 0.7, options)
        return self.generate(prompt, params)

    def generate_keywords(
        self, analysis: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None
    ) -> List[str]:
        prompt = prompts.build_keywords_prompt(analysis, options)
        params = prompts.generation_options(prompts.KEYWORDS_SYSTEM_MESSAGE, 100, 0.5, options)
        limit = (options or {}).get("max_keywords")
        return prompts.parse_keywords(self.generate(prompt, params), limit)

    def get_config(self) -> Dict[str, Any]:
        """Resolved settings without the API key."""
        return {
            "name": self.name,
            "model": self.model,
            "base_url": self.settings.base_url,
            "timeout": self.settings.timeout,
            "max_retries": self.settings.max_retries,
            "has_api_key": bool(self.settings.get_api_key()),
        }

    def __repr__(self) -> str:
        return f"BackendProvider(name={self.name!r}, model={self.model!r})"
