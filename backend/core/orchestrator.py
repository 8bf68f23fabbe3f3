import logging
import time
from typing import Any, Dict, Optional, Tuple, assert_never

from core.classifier import classify_response
from core.errors import GenerationError, ValidationError
from core.providers import ProviderRegistry
from core.transport import GenerationTransport
from models import (
    ContinueRequest,
    GenerateRequest,
    GenerationRequest,
    GenerationResult,
    IdeasRequest,
    ImproveRequest,
    OperationKind,
    ProviderConfig,
)
from utils.text_cleaner import normalize_ideas, stringify_payload

logger = logging.getLogger("novelforge.orchestrator")


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def validate_request(request: GenerationRequest) -> None:
    """Raise ValidationError naming the first missing field for ``request.kind``."""
    if isinstance(request, GenerateRequest):
        if _blank(request.novel_id):
            raise ValidationError("novel_id")
        if _blank(request.chapter_number):
            raise ValidationError("chapter_number")
    elif isinstance(request, ImproveRequest):
        if _blank(request.content):
            raise ValidationError("content", "there is no content to improve")
    elif isinstance(request, ContinueRequest):
        if _blank(request.novel_id):
            raise ValidationError("novel_id")
        if _blank(request.previous_content):
            raise ValidationError("previous_content", "there is no text to continue from")
    elif isinstance(request, IdeasRequest):
        if _blank(request.novel_id):
            raise ValidationError("novel_id")
    else:
        assert_never(request)


def build_payload(request: GenerationRequest, config: ProviderConfig) -> Dict[str, Any]:
    wire = config.to_wire()
    if isinstance(request, GenerateRequest):
        return {
            "novel_id": request.novel_id,
            "chapter_number": request.chapter_number,
            "chapter_title": request.chapter_title,
            "user_prompt": request.user_prompt,
            **wire,
        }
    if isinstance(request, ImproveRequest):
        return {
            "content": request.content,
            "improvement_prompt": request.instruction_prompt,
            **wire,
        }
    if isinstance(request, ContinueRequest):
        return {
            "novel_id": request.novel_id,
            "previous_content": request.previous_content,
            "user_instructions": request.user_instructions,
            **wire,
        }
    if isinstance(request, IdeasRequest):
        return {"novel_id": request.novel_id, **wire}
    assert_never(request)


class GenerationOrchestrator:
    """
    Turns one generation request into exactly one transport call and a
    normalized GenerationResult.

    No queuing, coalescing or retry happens here: callers keep one request in
    flight per control and decide themselves whether to try again.
    """

    def __init__(self, registry: ProviderRegistry, transport: GenerationTransport):
        self.registry = registry
        self.transport = transport

    async def invoke(
        self,
        request: GenerationRequest,
        draft_ticket: Optional[str] = None,
    ) -> GenerationResult:
        validate_request(request)
        config = self.registry.resolve(request.config)
        payload = build_payload(request, config)

        started = time.perf_counter()
        try:
            raw = await self.transport.send(request.kind, payload)
        except GenerationError as exc:
            logger.warning(
                "generation failed kind=%s provider=%s model=%s status=%s error=%s",
                request.kind.value,
                config.provider_id,
                config.model_id,
                exc.status_code,
                exc.message,
            )
            raise

        result = self._normalize(request.kind, raw, config, draft_ticket)
        logger.info(
            "generation done kind=%s provider=%s model=%s simulated=%s latency_ms=%.2f",
            request.kind.value,
            config.provider_id,
            config.model_id,
            result.simulated,
            (time.perf_counter() - started) * 1000,
        )
        if result.simulated:
            logger.warning(
                "simulated generation result kind=%s provider=%s model=%s",
                request.kind.value,
                config.provider_id,
                config.model_id,
            )
        return result

    def _provider_label(self, raw: Dict[str, Any], config: ProviderConfig) -> str:
        provider = raw.get("provider")
        provider_id, model_id = config.provider_id, config.model_id
        if isinstance(provider, dict):
            provider_id = str(provider.get("name") or provider_id)
            model_id = provider.get("model") or model_id
        elif isinstance(provider, str) and provider.strip():
            provider_id = provider.strip()
        label = self.registry.display_name(provider_id)
        return f"{label} ({model_id})" if model_id else label

    def _normalize(
        self,
        kind: OperationKind,
        raw: Any,
        config: ProviderConfig,
        draft_ticket: Optional[str],
    ) -> GenerationResult:
        if not isinstance(raw, dict):
            raw = {"content": raw}
        flagged = raw.get("simulated") is True

        if kind is OperationKind.IDEAS:
            ideas, marked = self._normalize_ideas(raw.get("ideas"))
            return GenerationResult(
                kind=kind,
                content=None,
                ideas=ideas,
                provider_label=self._provider_label(raw, config),
                simulated=flagged or marked,
                draft_ticket=draft_ticket,
            )

        content = raw.get("content")
        if content is not None and not isinstance(content, str):
            content = stringify_payload(content)
        classified = classify_response(content)
        return GenerationResult(
            kind=kind,
            content=classified.content if content is not None else None,
            provider_label=self._provider_label(raw, config),
            simulated=flagged or classified.simulated,
            draft_ticket=draft_ticket,
        )

    @staticmethod
    def _normalize_ideas(value: Any) -> Tuple[list, bool]:
        if isinstance(value, str):
            classified = classify_response(value)
            return normalize_ideas(classified.content), classified.simulated

        marked = False
        ideas = []
        for item in normalize_ideas(value):
            classified = classify_response(item)
            marked = marked or classified.simulated
            if classified.content.strip():
                ideas.append(classified.content.strip())
        return ideas, marked
