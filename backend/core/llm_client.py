import os
import time
import logging
from typing import List, Optional, Dict, Any
from enum import Enum

import requests

from core.classifier import build_simulated_payload
from core.errors import GenerationError
from models import OperationKind


class LLMProvider(str, Enum):
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    GOOGLE = "google"
    GROQ = "groq"


API_KEY_ENV = {
    LLMProvider.ANTHROPIC: "ANTHROPIC_API_KEY",
    LLMProvider.OPENAI: "OPENAI_API_KEY",
    LLMProvider.GOOGLE: "GOOGLE_API_KEY",
    LLMProvider.GROQ: "GROQ_API_KEY",
}

DEFAULT_BASE_URLS = {
    LLMProvider.ANTHROPIC: "https://api.anthropic.com/v1",
    LLMProvider.OPENAI: "https://api.openai.com/v1",
    LLMProvider.GOOGLE: "https://generativelanguage.googleapis.com/v1beta",
    LLMProvider.GROQ: "https://api.groq.com/openai/v1",
}

ANTHROPIC_VERSION = "2023-06-01"


class LLMConfig:
    def __init__(
        self,
        provider: LLMProvider = LLMProvider.ANTHROPIC,
        model: str = "",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
    ):
        self.provider = provider
        self.model = model
        self.api_key = os.getenv(API_KEY_ENV[provider]) if api_key is None else api_key
        self.base_url = (base_url or DEFAULT_BASE_URLS[provider]).rstrip("/")
        self.max_tokens = _safe_positive_int(max_tokens, _safe_positive_int(os.getenv("LLM_MAX_TOKENS"), 2000))
        self.temperature = _safe_temperature(temperature, _safe_temperature(os.getenv("LLM_TEMPERATURE"), 0.7))
        self.timeout = float(_safe_positive_int(timeout, 120))


def _safe_positive_int(value: Any, fallback: int) -> int:
    try:
        parsed = int(value)
        if parsed > 0:
            return parsed
    except (TypeError, ValueError):
        pass
    return fallback


def _safe_temperature(value: Any, fallback: float) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return fallback
    if parsed < 0:
        return 0.0
    if parsed > 1:
        return 1.0
    return parsed


_OFFLINE_BODIES = {
    OperationKind.GENERATE: (
        "The wind swept down the empty street as the lamps flickered out one by one. "
        "Somewhere beyond the rooftops, the story waited for a real writer to take over."
    ),
    OperationKind.IMPROVE: "Sentences tightened, rhythm and atmosphere strengthened; facts left unchanged.",
    OperationKind.CONTINUE: "The silence stretched on until a single knock echoed through the hall.",
    OperationKind.IDEAS: (
        "1. The Broken Seal: an old promise resurfaces and forces a choice.\n"
        "2. Night Market: a chance meeting reveals who has been watching.\n"
        "3. The Last Lesson: a mentor's secret changes the rules of the world."
    ),
}


class LLMClient:
    def __init__(self, config: LLMConfig):
        self.config = config
        self._client = None
        self._logger = logging.getLogger("novelforge.llm")
        self._offline_warnings: set[str] = set()

    @property
    def is_configured(self) -> bool:
        return bool((self.config.api_key or "").strip())

    def _warn_offline_once(self, reason: str):
        if reason in self._offline_warnings:
            return
        self._offline_warnings.add(reason)
        self._logger.warning(
            "llm simulated fallback provider=%s model=%s reason=%s",
            self.config.provider.value,
            self.config.model,
            reason,
        )

    def _get_openai_client(self):
        if self._client is not None:
            return self._client

        from openai import OpenAI
        self._client = OpenAI(
            api_key=self.config.api_key,
            base_url=self.config.base_url,
            timeout=self.config.timeout,
        )
        return self._client

    def chat(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        operation: OperationKind = OperationKind.GENERATE,
    ) -> str:
        if not self.is_configured:
            self._warn_offline_once("missing_api_key")
            return self._simulated_chat(operation)

        actual_max_tokens = _safe_positive_int(max_tokens, self.config.max_tokens)
        actual_temperature = _safe_temperature(temperature, self.config.temperature)
        started = time.perf_counter()
        try:
            if self.config.provider == LLMProvider.ANTHROPIC:
                content = self._chat_anthropic(messages, actual_temperature, actual_max_tokens)
            elif self.config.provider == LLMProvider.GOOGLE:
                content = self._chat_google(messages, actual_temperature, actual_max_tokens)
            else:
                content = self._chat_openai(messages, actual_temperature, actual_max_tokens)
        except GenerationError:
            raise
        except Exception as exc:
            self._logger.warning(
                "llm chat remote failed provider=%s model=%s error=%s",
                self.config.provider.value,
                self.config.model,
                exc,
            )
            raise GenerationError(
                f"provider {self.config.provider.value} failed: {exc}"
            ) from exc

        self._logger.info(
            "llm chat remote success provider=%s model=%s latency_ms=%.2f chars=%d",
            self.config.provider.value,
            self.config.model,
            (time.perf_counter() - started) * 1000,
            len(content or ""),
        )
        return content or ""

    def _chat_openai(self, messages: List[Dict[str, str]], temperature: float, max_tokens: int) -> str:
        client = self._get_openai_client()
        response = client.chat.completions.create(
            model=self.config.model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        return response.choices[0].message.content or ""

    def _chat_anthropic(self, messages: List[Dict[str, str]], temperature: float, max_tokens: int) -> str:
        system_prompt, conversation = _split_system(messages)
        headers = {
            "x-api-key": self.config.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }
        payload = {
            "model": self.config.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "system": system_prompt,
            "messages": conversation,
        }
        response = requests.post(
            f"{self.config.base_url}/messages",
            headers=headers,
            json=payload,
            timeout=self.config.timeout,
        )
        response.raise_for_status()
        data = response.json()
        parts = [block.get("text", "") for block in data.get("content", []) if block.get("type") == "text"]
        return "".join(parts)

    def _chat_google(self, messages: List[Dict[str, str]], temperature: float, max_tokens: int) -> str:
        prompt = "\n\n".join(m.get("content", "") for m in messages if m.get("content"))
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"maxOutputTokens": max_tokens, "temperature": temperature},
        }
        response = requests.post(
            f"{self.config.base_url}/models/{self.config.model}:generateContent",
            params={"key": self.config.api_key},
            headers={"Content-Type": "application/json"},
            json=payload,
            timeout=self.config.timeout,
        )
        response.raise_for_status()
        data = response.json()
        candidates = data.get("candidates") or []
        if not candidates:
            raise GenerationError("provider google returned no candidates")
        parts = candidates[0].get("content", {}).get("parts", [])
        return "".join(part.get("text", "") for part in parts)

    def _simulated_chat(self, operation: OperationKind) -> str:
        header = (
            f"provider={self.config.provider.value} model={self.config.model}\n"
            "reason=missing_api_key"
        )
        return build_simulated_payload(header, _OFFLINE_BODIES[operation])


def _split_system(messages: List[Dict[str, str]]) -> tuple[str, List[Dict[str, str]]]:
    system_parts = [m.get("content", "") for m in messages if m.get("role") == "system"]
    conversation = [
        {"role": m.get("role", "user"), "content": m.get("content", "")}
        for m in messages
        if m.get("role") != "system"
    ]
    return "\n\n".join(system_parts), conversation


def create_llm_client(
    provider: str = "anthropic",
    **kwargs
) -> LLMClient:
    candidate = (provider or "anthropic").strip().lower()
    try:
        llm_provider = LLMProvider(candidate)
    except ValueError as exc:
        raise ValueError(f"unsupported provider: {provider}") from exc
    config = LLMConfig(provider=llm_provider, **kwargs)
    return LLMClient(config)
