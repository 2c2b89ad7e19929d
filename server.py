import sys
import logging
from typing import Optional

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile, APIRouter
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from core.errors import InputFault, LandscapeError, UpstreamFault
from core.settings import settings
from services.analysis_service import AnalysisResult, AnalysisService
from services.generation_service import GenerationRequest, GenerationService
from services.upload_service import UploadService

# --- LOGGING SETUP ---
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    stream=sys.stderr,
    format='%(asctime)s - %(levelname)s - %(message)s'
)

for lib in ["httpx", "httpcore", "openai", "multipart"]:
    logging.getLogger(lib).setLevel(logging.WARNING)


# --- SERVICE PROVIDERS (overridable in tests) ---
_analysis_service: Optional[AnalysisService] = None
_generation_service: Optional[GenerationService] = None


def get_upload_service() -> UploadService:
    return UploadService()


def get_analysis_service() -> AnalysisService:
    global _analysis_service
    if _analysis_service is None:
        _analysis_service = AnalysisService()
    return _analysis_service


def get_generation_service() -> GenerationService:
    global _generation_service
    if _generation_service is None:
        _generation_service = GenerationService()
    return _generation_service


async def _json_body(request: Request) -> dict:
    try:
        payload = await request.json()
    except ValueError:
        raise InputFault("Request body must be JSON") from None
    if not isinstance(payload, dict):
        raise InputFault("Request body must be a JSON object")
    return payload


def _text_field(payload: dict, key: str) -> Optional[str]:
    value = payload.get(key)
    if value is not None and not isinstance(value, str):
        raise InputFault(f"{key} must be a string", details=f"got {type(value).__name__}")
    return value


router = APIRouter()


@router.get("/health")
async def health() -> dict:
    return {"status": "ok", "version": settings.APP_VERSION}


@router.post("/upload")
async def upload(
    file: Optional[UploadFile] = File(None),
    userId: Optional[str] = Form(None),
    uploader: UploadService = Depends(get_upload_service),
) -> dict:
    """
    Upload a yard photo to the media host.

    Returns {id, url, format, width, height, size, originalName}.
    """
    if file is None:
        raise InputFault("No file provided")
    try:
        content = await file.read()
        asset = await uploader.upload(content, file.filename or "upload", file.content_type, userId)
    except LandscapeError:
        raise
    except Exception as e:
        logging.exception("Upload error")
        raise UpstreamFault("Upload failed", details=str(e) or "Unknown error", http_status=500) from e
    return asset.to_wire()


@router.post("/analyze")
async def analyze(
    request: Request,
    analyzer: AnalysisService = Depends(get_analysis_service),
) -> dict:
    """Analyze the photo at {imageUrl}; returns the AnalysisResult JSON shape."""
    payload = await _json_body(request)
    image_url = payload.get("imageUrl")
    if not isinstance(image_url, str) or not image_url.strip():
        raise InputFault("No image URL provided")
    try:
        result = await analyzer.analyze(image_url)
    except LandscapeError:
        raise
    except Exception as e:
        logging.exception("Analysis error")
        raise UpstreamFault("Analysis failed", details=str(e) or "Unknown error", http_status=500) from e
    return result.to_wire()


@router.post("/generate")
async def generate(
    request: Request,
    generator: GenerationService = Depends(get_generation_service),
) -> dict:
    """
    Generate a redesigned photo.

    Accepts {analysisResult, style}, {analysisResult, style, customPrompt, imageUrl}
    or {customPrompt, imageUrl}; returns {imageUrl, result, raw}.
    """
    payload = await _json_body(request)

    analysis = None
    if payload.get("analysisResult") is not None:
        try:
            analysis = AnalysisResult.model_validate(payload["analysisResult"])
        except ValidationError as e:
            raise InputFault("Invalid analysis result", details=str(e)) from None

    generation_request = GenerationRequest(
        image_url=_text_field(payload, "imageUrl") or "",
        analysis_result=analysis,
        style=_text_field(payload, "style"),
        custom_prompt=_text_field(payload, "customPrompt"),
    )
    generation_request.validate()

    try:
        design = await generator.generate(generation_request)
    except LandscapeError:
        raise
    except Exception as e:
        logging.exception("Generation error")
        raise UpstreamFault("Generation failed", details=str(e) or "Unknown error", http_status=500) from e

    return {"imageUrl": design.image_url, "result": design.raw_content, "raw": design.raw}


def create_app(include_ui: bool = True) -> FastAPI:
    """
    Build the FastAPI shim. The Gradio studio is mounted at settings.UI_PATH.
    """
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description=settings.APP_DESCRIPTION,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.CORS_CREDENTIALS,
        allow_methods=settings.CORS_METHODS,
        allow_headers=settings.CORS_HEADERS,
    )

    @app.exception_handler(LandscapeError)
    async def landscape_error_handler(request: Request, exc: LandscapeError):
        if exc.http_status >= 500:
            logging.error(f"❌ {request.url.path}: {exc}")
        else:
            logging.warning(f"⚠️  {request.url.path}: {exc}")
        return JSONResponse(exc.to_response(), status_code=exc.http_status)

    app.include_router(router, prefix=settings.API_PREFIX)

    if include_ui:
        import gradio as gr
        from app import build_studio

        app = gr.mount_gradio_app(app, build_studio(), path=settings.UI_PATH)
        logging.info(f"🌿 Studio mounted at {settings.UI_PATH}")

    return app


def main():
    import uvicorn

    logging.info(f"🚀 Starting {settings.APP_NAME} on {settings.HOST}:{settings.PORT}")
    uvicorn.run(create_app(), host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    main()
