import logging
from typing import Any, List, NamedTuple, Optional, assert_never

from pydantic import ValidationError as PydanticValidationError

from core.editor import DraftEditingEngine
from core.errors import SessionBusyError, ValidationError
from core.orchestrator import GenerationOrchestrator
from models import (
    ContinueRequest,
    GenerateRequest,
    GenerationRequest,
    GenerationResult,
    IdeasRequest,
    ImproveRequest,
    OperationKind,
    ProviderConfig,
    ReferenceKind,
    WorldbuildingReference,
)

logger = logging.getLogger("novelforge.authoring")


class AuthoringOutcome(NamedTuple):
    result: GenerationResult
    applied: bool


class AuthoringSession:
    """
    One open chapter editor: the draft engine, the orchestrator it talks to
    and the provider selection for this editor only.

    Only one generation action may be outstanding at a time; a second call
    while busy raises SessionBusyError instead of queuing.
    """

    def __init__(
        self,
        orchestrator: GenerationOrchestrator,
        engine: DraftEditingEngine,
        novel_id: str,
        config: Optional[ProviderConfig] = None,
    ):
        self.orchestrator = orchestrator
        self.engine = engine
        self.novel_id = novel_id
        self.config = config or orchestrator.registry.default_config()
        self.busy: Optional[OperationKind] = None

    def select_provider(self, provider_id: str, model_id: Optional[str] = None, **options: Any) -> ProviderConfig:
        self.config = self.orchestrator.registry.resolve(
            ProviderConfig(provider_id=provider_id, model_id=model_id, **options)
        )
        return self.config

    def build_request(self, kind: OperationKind, prompt: str = "") -> GenerationRequest:
        if self.config is None:
            raise ValidationError("provider_id", "no generation provider is configured")
        draft = self.engine.draft
        if kind is OperationKind.GENERATE:
            return GenerateRequest(
                config=self.config,
                novel_id=self.novel_id,
                chapter_number=draft.chapter_number,
                chapter_title=draft.title,
                user_prompt=prompt,
            )
        if kind is OperationKind.IMPROVE:
            return ImproveRequest(config=self.config, content=draft.content, instruction_prompt=prompt)
        if kind is OperationKind.CONTINUE:
            return ContinueRequest(
                config=self.config,
                novel_id=self.novel_id,
                previous_content=draft.content,
                user_instructions=prompt,
            )
        if kind is OperationKind.IDEAS:
            return IdeasRequest(config=self.config, novel_id=self.novel_id)
        assert_never(kind)

    async def run(self, kind: OperationKind, prompt: str = "") -> AuthoringOutcome:
        if self.busy is not None:
            raise SessionBusyError(self.busy.value)

        request = self.build_request(kind, prompt)
        ticket = self.engine.ticket()
        self.busy = kind
        try:
            result = await self.orchestrator.invoke(request, draft_ticket=ticket)
        finally:
            self.busy = None

        applied = False
        if kind is not OperationKind.IDEAS:
            applied = self.engine.apply_generation_result(result)
        logger.info(
            "authoring action kind=%s provider=%s simulated=%s applied=%s",
            kind.value,
            result.provider_label,
            result.simulated,
            applied,
        )
        return AuthoringOutcome(result=result, applied=applied)

    async def load_references(self, kind: ReferenceKind) -> List[WorldbuildingReference]:
        raw_items = await self.orchestrator.transport.fetch_worldbuilding(self.novel_id, kind.value)
        references: List[WorldbuildingReference] = []
        for item in raw_items or []:
            if not isinstance(item, dict):
                continue
            try:
                references.append(WorldbuildingReference.model_validate({**item, "kind": kind.value}))
            except PydanticValidationError as exc:
                logger.warning("worldbuilding reference skipped kind=%s error=%s", kind.value, exc)
        return references
