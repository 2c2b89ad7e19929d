import logging
from typing import List, Optional

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from core.errors import ContentRefusalFault, InputFault, ParseFault
from core.llm_factory import create_vision_llm
from core.llm_providers import classify_backend_error
from services.response_parsing import extract_json, looks_like_refusal, message_text


class AnalysisResult(BaseModel):
    """Structured description of the uploaded space. Wire names are camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    space_type: str
    size: str
    existing_features: List[str]
    lighting: str
    soil_type: str
    climate: str
    challenges: List[str]
    opportunities: List[str]
    recommendations: List[str]

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


FALLBACK_ANALYSIS = AnalysisResult(
    space_type="Outdoor space",
    size="Unknown",
    existing_features=[],
    lighting="Unknown",
    soil_type="Unknown",
    climate="Unknown",
    challenges=[],
    opportunities=[],
    recommendations=[],
)


ANALYSIS_PROMPT = """Analyze this yard / landscape photo and answer with JSON only, using exactly this format:

{
  "spaceType": "type of space (front yard, backyard, balcony, courtyard, ...)",
  "size": "estimated size of the space",
  "existingFeatures": ["existing landscape elements"],
  "lighting": "lighting conditions",
  "soilType": "likely soil type",
  "climate": "likely climate",
  "challenges": ["design challenges"],
  "opportunities": ["design opportunities"],
  "recommendations": ["initial recommendations"]
}

Describe in detail:
1. The spatial structure and layout
2. Existing plants and hardscape
3. Light and environmental conditions
4. Design potential and constraints
5. Suggested improvements"""


class AnalysisService:
    """
    Sends a yard photo URL to the vision model and returns a validated AnalysisResult.
    Never retries; a failed analysis is reported once and the caller decides.
    """

    def __init__(self, llm: Optional[BaseChatModel] = None):
        self._llm = llm

    @property
    def llm(self) -> BaseChatModel:
        # Created lazily so a missing key surfaces as ConfigFault on the first request
        if self._llm is None:
            self._llm = create_vision_llm()
        return self._llm

    def build_messages(self, image_url: str) -> list:
        return [
            HumanMessage(content=[
                {"type": "text", "text": ANALYSIS_PROMPT},
                {"type": "image_url", "image_url": {"url": image_url}},
            ])
        ]

    async def analyze(self, image_url: str) -> AnalysisResult:
        """
        Analyze the photo at image_url.

        Raises:
            InputFault: No URL given
            ConfigFault: Credentials missing
            UpstreamFault: Backend answered non-2xx or was unreachable
            ContentRefusalFault: The model declined to analyze the image
            ParseFault: Empty, non-JSON or schema-violating answer
        """
        if not isinstance(image_url, str) or not image_url.strip():
            raise InputFault("No image URL provided")

        llm = self.llm
        logging.info(f"🔍 Analyzing image: {image_url}")

        try:
            response = await llm.ainvoke(self.build_messages(image_url))
        except Exception as e:
            error = classify_backend_error(e, "Analysis")
            logging.error(f"Analysis request failed: {error}")
            raise error from e

        return self.parse_response(response)

    def parse_response(self, response) -> AnalysisResult:
        """Turn the raw model message into an AnalysisResult."""
        additional = getattr(response, "additional_kwargs", None) or {}
        metadata = getattr(response, "response_metadata", None) or {}
        content = message_text(response.content)

        refusal = additional.get("refusal")
        if refusal or metadata.get("finish_reason") == "content_filter":
            logging.warning(f"🚫 Analysis refused: {refusal}")
            raise ContentRefusalFault("Analysis refused", details=refusal or "content_filter")

        if not content or not content.strip():
            raise ParseFault("Empty response from analysis backend", raw=content or "")

        try:
            data = extract_json(content)
        except ParseFault:
            if looks_like_refusal(content):
                logging.warning("🚫 Analysis refused by model")
                raise ContentRefusalFault("Analysis refused", details=content[:500]) from None
            logging.error(f"Failed to parse analysis result: {content[:200]}")
            raise

        try:
            result = AnalysisResult.model_validate(data)
        except ValidationError as e:
            missing = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise ParseFault(
                "Failed to parse analysis result",
                raw=content,
                details=f"Invalid fields: {missing}",
            ) from e

        logging.info(f"✅ Analysis complete: {result.space_type} ({result.size})")
        return result

