import logging
from typing import Any, Optional

import httpx

from core.errors import LandscapeError, ParseFault, UpstreamFault, from_response
from core.settings import settings
from services.analysis_service import AnalysisResult
from services.generation_service import GeneratedDesign, GenerationRequest
from services.response_parsing import extract_image_url
from services.upload_service import RemoteAsset


class LandscapeApiClient:
    """
    Async client for the HTTP shim (/upload, /analyze, /generate).

    Error responses are turned back into the same exceptions the services raise,
    so a WorkflowSession behaves the same in-process or over HTTP.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.SHIM_BASE_URL or f"http://127.0.0.1:{settings.PORT}").rstrip("/")
        self._transport = transport
        self._timeout = timeout or settings.REQUEST_TIMEOUT

    def _url(self, path: str) -> str:
        return f"{self.base_url}{settings.API_PREFIX}{path}"

    async def _post(self, path: str, operation: str, **kwargs) -> Any:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._url(path), **kwargs)
        except httpx.HTTPError as e:
            raise UpstreamFault(f"{operation} failed", details=str(e) or "Unknown error", http_status=502) from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_error:
            error = from_response(response.status_code, body, fallback=f"{operation} failed")
            logging.warning(f"{operation} request returned {response.status_code}: {error}")
            raise error
        if body is None:
            raise ParseFault(f"{operation} failed", raw=response.text, details="Response was not JSON")
        return body

    async def upload(
        self,
        content: bytes,
        filename: str,
        content_type: Optional[str],
        owner_hint: Optional[str] = None,
    ) -> RemoteAsset:
        data = {"userId": owner_hint} if owner_hint else {}
        body = await self._post(
            "/upload",
            "Upload",
            files={"file": (filename, content, content_type or "application/octet-stream")},
            data=data,
        )
        # One shim variant wraps the payload as {success, result}
        if isinstance(body, dict) and isinstance(body.get("result"), dict):
            body = body["result"]
        if not isinstance(body, dict) or not body.get("url"):
            raise ParseFault("Upload failed", raw=str(body), details="Response has no url")
        return RemoteAsset(
            url=body["url"],
            id=body.get("id"),
            format=body.get("format"),
            width=body.get("width"),
            height=body.get("height"),
            size=body.get("size"),
            original_name=body.get("originalName"),
        )

    async def analyze(self, image_url: str) -> AnalysisResult:
        body = await self._post("/analyze", "Analysis", json={"imageUrl": image_url})
        try:
            return AnalysisResult.model_validate(body)
        except ValueError as e:
            raise ParseFault("Failed to parse analysis result", raw=str(body)) from e

    async def generate(self, request: GenerationRequest) -> GeneratedDesign:
        payload: dict[str, Any] = {"imageUrl": request.image_url}
        if request.analysis_result is not None:
            payload["analysisResult"] = request.analysis_result.to_wire()
        if request.style:
            payload["style"] = request.style
        if request.custom_prompt:
            payload["customPrompt"] = request.custom_prompt

        body = await self._post("/generate", "Generation", json=payload)
        try:
            image_url = extract_image_url(body)
        except LandscapeError:
            raise ParseFault("Generation failed", raw=str(body), details="No image found in response") from None
        raw = body.get("raw") if isinstance(body, dict) else None
        return GeneratedDesign(
            image_url=image_url,
            raw_content=(body.get("result") or "") if isinstance(body, dict) else "",
            raw=raw if isinstance(raw, dict) else {},
        )
