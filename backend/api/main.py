import asyncio
import time
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.classifier import is_simulated
from core.errors import GenerationError, ValidationError
from core.llm_client import LLMProvider, create_llm_client
from core.prompts import (
    build_continue_messages,
    build_generate_messages,
    build_ideas_messages,
    build_improve_messages,
)
from core.providers import StaticProviderRegistry
from models import NovelInfo, OperationKind, ProviderConfig, ProviderInfo, ReferenceKind
from services.catalog import NovelCatalog, WorldbuildingLibrary

BACKEND_ROOT = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    data_dir: str = "../data"

    default_provider: str = "anthropic"
    anthropic_api_key: Optional[str] = None
    anthropic_base_url: Optional[str] = None
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    google_api_key: Optional[str] = None
    google_base_url: Optional[str] = None
    groq_api_key: Optional[str] = None
    groq_base_url: Optional[str] = None
    llm_request_timeout: int = 120
    list_unconfigured_providers: bool = False

    reader_auto_advance: bool = False

    log_level: str = "INFO"
    enable_http_logging: bool = True
    log_file: Optional[str] = None

    model_config = SettingsConfigDict(
        extra="ignore",
        env_file=str(BACKEND_ROOT / ".env"),
        env_file_encoding="utf-8",
    )


settings = Settings()
app = FastAPI(title="Novelforge API", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger("novelforge.api")
if settings.log_file:
    log_path = Path(settings.log_file).expanduser().resolve()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    if not any(
        isinstance(handler, logging.FileHandler) and getattr(handler, "baseFilename", None) == str(log_path)
        for handler in logger.handlers
    ):
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
        file_handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
        logger.addHandler(file_handler)
        logger.info("file logging enabled path=%s", log_path)

provider_registry = StaticProviderRegistry()


def provider_api_key(provider_id: str) -> str:
    return (getattr(settings, f"{provider_id}_api_key", None) or "").strip()


def provider_base_url(provider_id: str) -> Optional[str]:
    return getattr(settings, f"{provider_id}_base_url", None) or None


def available_providers() -> Dict[str, ProviderInfo]:
    catalogue = provider_registry.list()
    if settings.list_unconfigured_providers:
        return catalogue
    return {pid: info for pid, info in catalogue.items() if provider_api_key(pid)}


def resolve_llm_runtime() -> Dict[str, Any]:
    keys = {provider.value: bool(provider_api_key(provider.value)) for provider in LLMProvider}
    default_provider = (settings.default_provider or "").strip().lower()
    if default_provider not in keys:
        logger.warning("invalid default provider configured=%s fallback=anthropic", settings.default_provider)
        default_provider = LLMProvider.ANTHROPIC.value
    return {
        "default_provider": default_provider,
        "default_model": provider_registry.default_for(default_provider),
        "available_providers": sorted(available_providers()),
        "simulated_providers": sorted(pid for pid, has_key in keys.items() if not has_key),
        "has_keys": keys,
        "list_unconfigured_providers": settings.list_unconfigured_providers,
        "llm_request_timeout": settings.llm_request_timeout,
    }


llm_runtime = resolve_llm_runtime()
logger.info(
    "llm runtime default_provider=%s default_model=%s available=%s simulated=%s",
    llm_runtime["default_provider"],
    llm_runtime["default_model"],
    ",".join(llm_runtime["available_providers"]) or "-",
    ",".join(llm_runtime["simulated_providers"]) or "-",
)
if not llm_runtime["available_providers"]:
    logger.warning("no llm provider has an api key; provider list is empty")


@app.middleware("http")
async def http_access_log_middleware(request: Request, call_next):
    if not settings.enable_http_logging:
        return await call_next(request)

    request_id = uuid4().hex[:8]
    started = time.perf_counter()
    logger.info(
        "REQ start id=%s method=%s path=%s query=%s",
        request_id,
        request.method,
        request.url.path,
        request.url.query or "-",
    )
    try:
        response = await call_next(request)
    except Exception:
        elapsed = (time.perf_counter() - started) * 1000
        logger.exception("REQ failed id=%s duration_ms=%.2f", request_id, elapsed)
        raise

    elapsed = (time.perf_counter() - started) * 1000
    response.headers["X-Request-ID"] = request_id
    logger.info(
        "REQ end id=%s status=%s duration_ms=%.2f",
        request_id,
        response.status_code,
        elapsed,
    )
    return response


def data_root() -> Path:
    configured = Path(settings.data_dir)
    if configured.is_absolute():
        root = configured.resolve()
    else:
        root = (BACKEND_ROOT / configured).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def novel_catalog() -> NovelCatalog:
    return NovelCatalog(data_root())


def require_novel(novel_id: str) -> NovelInfo:
    novel = novel_catalog().get(str(novel_id))
    if novel is None:
        raise HTTPException(status_code=404, detail="Novel not found")
    return novel


def resolve_provider_config(
    provider: Optional[str],
    model: Optional[str],
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
) -> ProviderConfig:
    options: Dict[str, Any] = {}
    if temperature is not None:
        options["temperature"] = temperature
    if max_tokens is not None:
        options["max_tokens"] = max_tokens
    provider_id = (provider or llm_runtime["default_provider"]).strip().lower()
    try:
        return provider_registry.resolve(ProviderConfig(provider_id=provider_id, model_id=model, **options))
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.message) from exc


async def run_generation(
    config: ProviderConfig,
    messages: List[Dict[str, str]],
    operation: OperationKind,
) -> Dict[str, Any]:
    client = create_llm_client(
        config.provider_id,
        model=config.model_id,
        api_key=provider_api_key(config.provider_id),
        base_url=provider_base_url(config.provider_id),
        max_tokens=config.max_tokens,
        temperature=config.temperature,
        timeout=settings.llm_request_timeout,
    )
    started = time.perf_counter()
    try:
        content = await asyncio.to_thread(
            client.chat,
            messages,
            config.temperature,
            config.max_tokens,
            operation,
        )
    except GenerationError as exc:
        logger.warning(
            "generation failed operation=%s provider=%s model=%s error=%s",
            operation.value,
            config.provider_id,
            config.model_id,
            exc.message,
        )
        raise HTTPException(status_code=502, detail=exc.message) from exc

    simulated = is_simulated(content)
    logger.info(
        "generation served operation=%s provider=%s model=%s simulated=%s latency_ms=%.2f",
        operation.value,
        config.provider_id,
        config.model_id,
        simulated,
        (time.perf_counter() - started) * 1000,
    )
    return {
        "content": content,
        "provider": {"name": config.provider_id, "model": config.model_id},
        "simulated": simulated,
    }


class ProviderFields(BaseModel):
    provider: Optional[str] = None
    model: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0, le=1)
    max_tokens: Optional[int] = Field(default=None, ge=100, le=4000)


class GenerateChapterRequest(ProviderFields):
    novel_id: Union[str, int]
    chapter_number: Optional[Union[str, int]] = None
    chapter_title: str = ""
    user_prompt: str = ""


class ImproveContentRequest(ProviderFields):
    content: str = ""
    improvement_prompt: str = ""


class ContinueTextRequest(ProviderFields):
    novel_id: Union[str, int]
    previous_content: str = ""
    user_instructions: str = ""


@app.get("/api/ai/providers")
async def list_providers():
    return {
        "providers": {
            provider_id: info.model_dump(mode="json")
            for provider_id, info in available_providers().items()
        }
    }


@app.post("/api/ai/generate-chapter")
async def generate_chapter(req: GenerateChapterRequest):
    if req.chapter_number is None or not str(req.chapter_number).strip():
        raise HTTPException(status_code=400, detail="chapter_number is required")
    novel = require_novel(str(req.novel_id))
    config = resolve_provider_config(req.provider, req.model, req.temperature, req.max_tokens)
    messages = build_generate_messages(
        novel,
        str(req.chapter_number),
        req.chapter_title,
        req.user_prompt,
    )
    return await run_generation(config, messages, OperationKind.GENERATE)


@app.post("/api/ai/improve-content")
async def improve_content(req: ImproveContentRequest):
    if not req.content.strip():
        raise HTTPException(status_code=400, detail="content is required")
    config = resolve_provider_config(req.provider, req.model, req.temperature, req.max_tokens)
    messages = build_improve_messages(req.content, req.improvement_prompt)
    return await run_generation(config, messages, OperationKind.IMPROVE)


@app.post("/api/ai/continue-text")
async def continue_text(req: ContinueTextRequest):
    if not req.previous_content.strip():
        raise HTTPException(status_code=400, detail="previous_content is required")
    novel = require_novel(str(req.novel_id))
    config = resolve_provider_config(req.provider, req.model, req.temperature, req.max_tokens)
    messages = build_continue_messages(novel, req.previous_content, req.user_instructions)
    return await run_generation(config, messages, OperationKind.CONTINUE)


@app.get("/api/ai/chapter-ideas/{novel_id}")
async def chapter_ideas(
    novel_id: str,
    provider: Optional[str] = None,
    model: Optional[str] = None,
    temperature: Optional[float] = Query(default=None, ge=0, le=1),
    max_tokens: Optional[int] = Query(default=None, ge=100, le=4000),
):
    novel = require_novel(novel_id)
    config = resolve_provider_config(provider, model, temperature, max_tokens)
    payload = await run_generation(config, build_ideas_messages(novel), OperationKind.IDEAS)
    return {
        "ideas": payload["content"],
        "provider": payload["provider"],
        "simulated": payload["simulated"],
    }


@app.get("/api/novels/{novel_id}/worldbuilding/{kind}")
async def list_worldbuilding(novel_id: str, kind: str):
    try:
        reference_kind = ReferenceKind(kind)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Unknown worldbuilding kind: {kind}") from exc
    require_novel(novel_id)
    library = WorldbuildingLibrary(novel_catalog())
    references = library.list(novel_id, reference_kind)
    return {"references": [ref.model_dump(mode="json") for ref in references]}


@app.get("/api/settings/public")
async def public_settings():
    return {"settings": {"reader_auto_advance": settings.reader_auto_advance}}


@app.get("/api/runtime/llm")
async def llm_runtime_status():
    return resolve_llm_runtime()


@app.get("/api/health")
async def health_check():
    return {
        "status": "healthy",
        "providers": len(available_providers()),
        "timestamp": datetime.now().isoformat(),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
