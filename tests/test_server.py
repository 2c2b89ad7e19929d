"""
Tests for the HTTP shim

Services are swapped through FastAPI dependency overrides so no request
leaves the process.
"""

import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest
from unittest.mock import AsyncMock, Mock
from fastapi.testclient import TestClient

from core.errors import ConfigFault, ContentRefusalFault, ParseFault, UpstreamFault
from server import create_app, get_analysis_service, get_generation_service, get_upload_service
from services.analysis_service import AnalysisResult
from services.generation_service import GeneratedDesign, GenerationService
from services.upload_service import RemoteAsset


@pytest.fixture
def app():
    application = create_app(include_ui=False)
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def analyzer(app, sample_analysis_data):
    service = Mock()
    service.analyze = AsyncMock(return_value=AnalysisResult.model_validate(sample_analysis_data))
    app.dependency_overrides[get_analysis_service] = lambda: service
    return service


@pytest.fixture
def generator(app):
    service = Mock()
    service.generate = AsyncMock(return_value=GeneratedDesign(
        image_url="https://cdn.test/design.png",
        raw_content="![design](https://cdn.test/design.png)",
        raw={"model_name": "gpt-4o-image"},
    ))
    app.dependency_overrides[get_generation_service] = lambda: service
    return service


@pytest.fixture
def uploader(app):
    service = Mock()
    service.upload = AsyncMock(return_value=RemoteAsset(
        url="https://res.cloudinary.test/x.jpg",
        id="anonymous/x",
        format="jpg",
        width=1200,
        height=800,
        size=2056,
        original_name="x",
    ))
    app.dependency_overrides[get_upload_service] = lambda: service
    return service


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestUploadRoute:
    """Test POST /upload"""

    def test_upload(self, client, uploader):
        response = client.post(
            "/upload",
            files={"file": ("x.jpg", b"\xff\xd8data", "image/jpeg")},
            data={"userId": "42"},
        )

        assert response.status_code == 200
        assert response.json() == {
            "id": "anonymous/x",
            "url": "https://res.cloudinary.test/x.jpg",
            "format": "jpg",
            "width": 1200,
            "height": 800,
            "size": 2056,
            "originalName": "x",
        }
        uploader.upload.assert_awaited_once_with(b"\xff\xd8data", "x.jpg", "image/jpeg", "42")

    def test_no_file(self, client, uploader):
        response = client.post("/upload", data={"userId": "42"})

        assert response.status_code == 400
        assert response.json() == {"error": "No file provided"}
        uploader.upload.assert_not_called()

    def test_upstream_status_is_forwarded(self, client, uploader):
        uploader.upload.side_effect = UpstreamFault("Upload failed", details="Invalid preset", http_status=401)

        response = client.post("/upload", files={"file": ("x.jpg", b"\xff\xd8", "image/jpeg")})

        assert response.status_code == 401
        assert response.json() == {"error": "Upload failed", "details": "Invalid preset"}

    def test_unexpected_error(self, client, uploader):
        uploader.upload.side_effect = OSError("disk full")

        response = client.post("/upload", files={"file": ("x.jpg", b"\xff\xd8", "image/jpeg")})

        assert response.status_code == 500
        assert response.json() == {"error": "Upload failed", "details": "disk full"}


class TestAnalyzeRoute:
    """Test POST /analyze"""

    def test_analyze(self, client, analyzer, sample_analysis_data):
        response = client.post("/analyze", json={"imageUrl": "https://host/x.jpg"})

        assert response.status_code == 200
        assert response.json() == sample_analysis_data
        analyzer.analyze.assert_awaited_once_with("https://host/x.jpg")

    def test_missing_url(self, client, analyzer):
        response = client.post("/analyze", json={})

        assert response.status_code == 400
        assert response.json() == {"error": "No image URL provided"}
        analyzer.analyze.assert_not_called()

    @pytest.mark.parametrize("image_url", [123, ["https://host/x.jpg"], "   "])
    def test_image_url_not_a_string(self, client, analyzer, image_url):
        response = client.post("/analyze", json={"imageUrl": image_url})

        assert response.status_code == 400
        assert response.json() == {"error": "No image URL provided"}
        analyzer.analyze.assert_not_called()

    def test_body_not_json(self, client, analyzer):
        response = client.post("/analyze", content=b"imageUrl=x", headers={"content-type": "text/plain"})

        assert response.status_code == 400

    def test_refusal(self, client, analyzer):
        analyzer.analyze.side_effect = ContentRefusalFault("Analysis refused", details="I can't help with that.")

        response = client.post("/analyze", json={"imageUrl": "https://host/x.jpg"})

        assert response.status_code == 422
        assert response.json()["error"] == "Analysis refused"

    def test_parse_failure_includes_raw(self, client, analyzer):
        analyzer.analyze.side_effect = ParseFault("Failed to parse analysis result", raw="not json at all")

        response = client.post("/analyze", json={"imageUrl": "https://host/x.jpg"})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to parse analysis result", "raw": "not json at all"}

    def test_missing_key(self, client, analyzer):
        """Should not leak which credential is missing"""
        analyzer.analyze.side_effect = ConfigFault(details="Set OPENAI_API_KEY in your .env file.")

        response = client.post("/analyze", json={"imageUrl": "https://host/x.jpg"})

        assert response.status_code == 500
        assert response.json() == {"error": "API key not configured"}

    def test_upstream_status_is_forwarded(self, client, analyzer):
        analyzer.analyze.side_effect = UpstreamFault(
            "Analysis failed", details="Rate limit reached", code="rate_limit", http_status=429,
        )

        response = client.post("/analyze", json={"imageUrl": "https://host/x.jpg"})

        assert response.status_code == 429
        assert response.json() == {"error": "Analysis failed", "details": "Rate limit reached", "code": "rate_limit"}


class TestGenerateRoute:
    """Test POST /generate"""

    def test_structured(self, client, generator, sample_analysis_data):
        response = client.post("/generate", json={
            "imageUrl": "https://host/x.jpg",
            "analysisResult": sample_analysis_data,
            "style": "zen-garden",
        })

        assert response.status_code == 200
        assert response.json() == {
            "imageUrl": "https://cdn.test/design.png",
            "result": "![design](https://cdn.test/design.png)",
            "raw": {"model_name": "gpt-4o-image"},
        }
        request = generator.generate.call_args[0][0]
        assert request.style == "zen-garden"
        assert request.analysis_result.space_type == "backyard"

    def test_custom_prompt(self, client, generator):
        response = client.post("/generate", json={
            "imageUrl": "https://host/x.jpg",
            "customPrompt": "A meadow with wildflowers",
        })

        assert response.status_code == 200
        assert generator.generate.call_args[0][0].custom_prompt == "A meadow with wildflowers"

    def test_missing_image_url(self, client, generator, sample_analysis_data):
        response = client.post("/generate", json={"analysisResult": sample_analysis_data, "style": "zen-garden"})

        assert response.status_code == 400
        assert response.json() == {"error": "Missing imageUrl"}
        generator.generate.assert_not_called()

    def test_missing_style(self, client, generator, sample_analysis_data):
        response = client.post("/generate", json={
            "imageUrl": "https://host/x.jpg",
            "analysisResult": sample_analysis_data,
        })

        assert response.status_code == 400
        assert response.json() == {"error": "Missing analysis result or style"}

    @pytest.mark.parametrize("field, value", [
        ("customPrompt", 5),
        ("style", {"id": "zen-garden"}),
        ("imageUrl", 42),
    ])
    def test_field_not_a_string(self, client, generator, sample_analysis_data, field, value):
        body = {"imageUrl": "https://host/x.jpg", "analysisResult": sample_analysis_data, "style": "zen-garden"}
        body[field] = value

        response = client.post("/generate", json=body)

        assert response.status_code == 400
        assert response.json()["error"] == f"{field} must be a string"
        generator.generate.assert_not_called()

    def test_invalid_analysis(self, client, generator):
        response = client.post("/generate", json={
            "imageUrl": "https://host/x.jpg",
            "analysisResult": {"spaceType": "backyard"},
            "style": "zen-garden",
        })

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid analysis result"

    def test_no_image_in_answer(self, app, client, sample_analysis_data):
        """A real GenerationService over a mock model: ParseFault carries the raw text"""
        from langchain_core.language_models.chat_models import BaseChatModel
        from langchain_core.messages import AIMessage

        llm = Mock(spec=BaseChatModel)
        llm.ainvoke = AsyncMock(return_value=AIMessage(content="Here is a description of a garden."))
        app.dependency_overrides[get_generation_service] = lambda: GenerationService(llm=llm)

        response = client.post("/generate", json={
            "imageUrl": "https://host/x.jpg",
            "customPrompt": "A meadow",
        })

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "Generation failed"
        assert body["details"] == "No image found in response"
        assert body["raw"] == "Here is a description of a garden."
