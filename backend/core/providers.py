import logging
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from core.errors import GenerationError, ProviderConfigError, ValidationError
from models import ProviderConfig, ProviderInfo

logger = logging.getLogger("novelforge.providers")


DEFAULT_CATALOGUE: Dict[str, Dict[str, Any]] = {
    "anthropic": {
        "display_name": "Claude (Anthropic)",
        "models": [
            "claude-3-5-sonnet-20241022",
            "claude-3-5-haiku-20241022",
            "claude-3-opus-20240229",
            "claude-3-sonnet-20240229",
            "claude-3-haiku-20240307",
        ],
        "default_model": "claude-3-5-sonnet-20241022",
    },
    "openai": {
        "display_name": "GPT (OpenAI)",
        "models": ["gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-4", "gpt-3.5-turbo"],
        "default_model": "gpt-4o",
    },
    "google": {
        "display_name": "Gemini (Google)",
        "models": ["gemini-1.5-pro", "gemini-1.5-flash", "gemini-1.0-pro"],
        "default_model": "gemini-1.5-flash",
    },
    "groq": {
        "display_name": "Groq",
        "models": ["llama-3.1-8b-instant", "llama-3.1-70b-versatile", "mixtral-8x7b-32768"],
        "default_model": "llama-3.1-70b-versatile",
    },
}


def parse_catalogue(raw: Mapping[str, Any]) -> Dict[str, ProviderInfo]:
    """Build ProviderInfo records from a ``{provider_id: {...}}`` mapping.

    Entries that do not validate are skipped with a warning; the remote
    catalogue shape is not under our control.
    """
    catalogue: Dict[str, ProviderInfo] = {}
    for provider_id, entry in (raw or {}).items():
        if not isinstance(entry, Mapping):
            logger.warning("provider entry skipped provider=%s reason=not_an_object", provider_id)
            continue
        payload = dict(entry)
        payload.setdefault("display_name", payload.pop("name", provider_id))
        payload["provider_id"] = str(provider_id)
        try:
            catalogue[str(provider_id)] = ProviderInfo.model_validate(payload)
        except PydanticValidationError as exc:
            logger.warning("provider entry skipped provider=%s error=%s", provider_id, exc)
    return catalogue


class ProviderRegistry:
    def __init__(self, catalogue: Optional[Mapping[str, ProviderInfo]] = None):
        self._catalogue: Dict[str, ProviderInfo] = dict(catalogue or {})

    def list(self) -> Dict[str, ProviderInfo]:
        return dict(self._catalogue)

    @property
    def is_configured(self) -> bool:
        return bool(self._catalogue)

    def get(self, provider_id: str) -> ProviderInfo:
        info = self._catalogue.get(provider_id)
        if info is None:
            if not self._catalogue:
                raise ValidationError("provider_id", "no generation provider is configured")
            raise ValidationError("provider_id", f"unknown provider: {provider_id}")
        return info

    def default_for(self, provider_id: str) -> str:
        model = self.get(provider_id).effective_default
        if not model:
            raise ValidationError("model_id", f"provider {provider_id} advertises no models")
        return model

    def check_model(self, provider_id: str, model_id: str) -> None:
        info = self.get(provider_id)
        if info.models and model_id not in info.models:
            raise ProviderConfigError(provider_id, model_id)

    def display_name(self, provider_id: str) -> str:
        info = self._catalogue.get(provider_id)
        return info.display_name if info else provider_id

    def resolve(self, config: ProviderConfig) -> ProviderConfig:
        """Return a config whose model is guaranteed to belong to its provider."""
        if not config.provider_id:
            raise ValidationError("provider_id")
        if not config.model_id:
            return config.model_copy(update={"model_id": self.default_for(config.provider_id)})
        try:
            self.check_model(config.provider_id, config.model_id)
        except ProviderConfigError as exc:
            fallback = self.default_for(config.provider_id)
            logger.warning(
                "provider model fallback provider=%s requested=%s fallback=%s reason=%s",
                exc.provider_id,
                exc.model_id,
                fallback,
                exc,
            )
            return config.model_copy(update={"model_id": fallback})
        return config

    def default_config(self) -> Optional[ProviderConfig]:
        """Config for the first listed provider, or None when nothing is configured."""
        for provider_id in self._catalogue:
            return self.resolve(ProviderConfig(provider_id=provider_id))
        return None


class StaticProviderRegistry(ProviderRegistry):
    def __init__(self, raw: Optional[Mapping[str, Any]] = None):
        super().__init__(parse_catalogue(DEFAULT_CATALOGUE if raw is None else raw))


class RemoteProviderRegistry(ProviderRegistry):
    """Catalogue queried from the generation backend at session start."""

    def __init__(self, transport: Any):
        super().__init__()
        self.transport = transport

    async def refresh(self) -> Dict[str, ProviderInfo]:
        try:
            raw = await self.transport.list_providers()
        except GenerationError as exc:
            logger.warning("provider catalogue fetch failed error=%s", exc.message)
            self._catalogue = {}
            return {}
        self._catalogue = parse_catalogue(raw)
        logger.info("provider catalogue loaded providers=%s", ",".join(self._catalogue) or "-")
        return self.list()
