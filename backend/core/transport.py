import asyncio
import logging
import time
from typing import Any, Dict, Optional, Protocol

import requests

from core.errors import GenerationError
from models import OperationKind

logger = logging.getLogger("novelforge.transport")


class GenerationTransport(Protocol):
    async def list_providers(self) -> Dict[str, Any]: ...

    async def send(self, kind: OperationKind, payload: Dict[str, Any]) -> Dict[str, Any]: ...

    async def fetch_worldbuilding(self, novel_id: str, kind: str) -> Any: ...


_ENDPOINTS: Dict[OperationKind, str] = {
    OperationKind.GENERATE: "/api/ai/generate-chapter",
    OperationKind.IMPROVE: "/api/ai/improve-content",
    OperationKind.CONTINUE: "/api/ai/continue-text",
    OperationKind.IDEAS: "/api/ai/chapter-ideas/{novel_id}",
}


def _extract_error_message(response: requests.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        text = (response.text or "").strip()
        return text[:500] or None
    if isinstance(body, dict):
        for key in ("detail", "error", "message"):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value
    return None


class HttpGenerationTransport:
    """
    Talks to the generation backend over HTTP with ``requests``.

    Blocking calls run in a worker thread so the event loop stays free while
    a request is outstanding.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 120.0,
        session: Optional[requests.Session] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        if headers:
            self.session.headers.update(headers)

    async def list_providers(self) -> Dict[str, Any]:
        body = await asyncio.to_thread(self._request, "GET", "/api/ai/providers")
        providers = body.get("providers") if isinstance(body, dict) else None
        return providers if isinstance(providers, dict) else {}

    async def fetch_worldbuilding(self, novel_id: str, kind: str) -> Any:
        body = await asyncio.to_thread(
            self._request, "GET", f"/api/novels/{novel_id}/worldbuilding/{kind}"
        )
        return body.get("references", []) if isinstance(body, dict) else []

    async def fetch_public_settings(self) -> Dict[str, Any]:
        body = await asyncio.to_thread(self._request, "GET", "/api/settings/public")
        settings = body.get("settings") if isinstance(body, dict) else None
        return settings if isinstance(settings, dict) else {}

    async def send(self, kind: OperationKind, payload: Dict[str, Any]) -> Dict[str, Any]:
        path = _ENDPOINTS[kind]
        if kind is OperationKind.IDEAS:
            params = {k: v for k, v in payload.items() if k != "novel_id" and v is not None}
            return await asyncio.to_thread(
                self._request,
                "GET",
                path.format(novel_id=payload.get("novel_id", "")),
                params=params,
            )
        return await asyncio.to_thread(self._request, "POST", path, json=payload)

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        started = time.perf_counter()
        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=json,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("transport request failed method=%s path=%s error=%s", method, path, exc)
            raise GenerationError(status_code=None) from exc

        elapsed = (time.perf_counter() - started) * 1000
        if not 200 <= response.status_code < 300:
            message = _extract_error_message(response)
            logger.warning(
                "transport non-2xx method=%s path=%s status=%s duration_ms=%.2f message=%s",
                method,
                path,
                response.status_code,
                elapsed,
                message or "-",
            )
            raise GenerationError(message, status_code=response.status_code)

        logger.debug(
            "transport ok method=%s path=%s status=%s duration_ms=%.2f",
            method,
            path,
            response.status_code,
            elapsed,
        )
        try:
            body = response.json()
        except ValueError as exc:
            raise GenerationError("backend returned a non-JSON response", status_code=response.status_code) from exc
        if not isinstance(body, dict):
            raise GenerationError("backend returned an unexpected response shape", status_code=response.status_code)
        return body
