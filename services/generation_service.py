import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage

from core.errors import ContentRefusalFault, InputFault, ParseFault
from core.llm_factory import create_image_llm
from core.llm_providers import classify_backend_error
from services.analysis_service import AnalysisResult
from services.response_parsing import extract_image_url, looks_like_refusal, message_text
from services.style_catalog import CUSTOM_STYLE_ID, STYLES_BY_ID


PRESERVE_SCENE = (
    "Keep the original background, perspective, layout, and object scale unchanged.\n"
    "Do not remove or alter existing major features, only build upon them.\n"
    "The result should feel realistic, detailed, and seamlessly integrated into the original photo."
)


@dataclass(frozen=True)
class GenerationRequest:
    """
    Either structured (analysis_result + style) or freeform (custom_prompt).
    image_url is always required.
    """
    image_url: str
    analysis_result: Optional[AnalysisResult] = None
    style: Optional[str] = None
    custom_prompt: Optional[str] = None

    def validate(self) -> None:
        if not isinstance(self.image_url, str) or not self.image_url:
            raise InputFault("Missing imageUrl")
        for name in ("style", "custom_prompt"):
            if getattr(self, name) is not None and not isinstance(getattr(self, name), str):
                raise InputFault(f"{name} must be a string")
        if self.custom_prompt and self.custom_prompt.strip():
            return
        if self.analysis_result is None or not self.style:
            raise InputFault("Missing analysis result or style")


@dataclass(frozen=True)
class GeneratedDesign:
    image_url: str
    raw_content: str = ""
    raw: dict[str, Any] = field(default_factory=dict)


def build_structured_prompt(analysis: AnalysisResult, style: str) -> str:
    style_info = STYLES_BY_ID.get(style)
    style_name = style_info.name if style_info else style
    lines = [
        f"Reimagine this outdoor space in a {style_name} landscape aesthetic.",
        PRESERVE_SCENE,
        "Enhance the scene with landscaping elements, vegetation, surfaces, and accessories "
        "that reflect the selected style.",
        f"Space: {analysis.space_type}, size {analysis.size}.",
        f"Light: {analysis.lighting}. Soil: {analysis.soil_type}. Climate: {analysis.climate}.",
    ]
    if analysis.existing_features:
        lines.append(f"Existing features to keep: {', '.join(analysis.existing_features)}.")
    if analysis.opportunities:
        lines.append(f"Opportunities: {', '.join(analysis.opportunities)}.")
    if analysis.challenges:
        lines.append(f"Address these challenges: {', '.join(analysis.challenges)}.")
    if style_info and style_info.example:
        lines.append(f"Typical elements: {style_info.example}.")
    return "\n".join(lines)


def build_custom_prompt(custom_prompt: str) -> str:
    return (
        "Redesign the landscape in this photo as described below.\n"
        f"{PRESERVE_SCENE}\n\n"
        f"Description: {custom_prompt.strip()}"
    )


def build_prompt(request: GenerationRequest) -> str:
    request.validate()
    if request.custom_prompt and request.custom_prompt.strip():
        return build_custom_prompt(request.custom_prompt)
    return build_structured_prompt(request.analysis_result, request.style)


class GenerationService:
    """
    Asks the image model to redesign the photo and extracts the resulting image URL.
    """

    def __init__(self, llm: Optional[BaseChatModel] = None):
        self._llm = llm

    @property
    def llm(self) -> BaseChatModel:
        if self._llm is None:
            self._llm = create_image_llm()
        return self._llm

    async def generate(self, request: GenerationRequest) -> GeneratedDesign:
        """
        Raises:
            InputFault: Missing image URL, style/analysis or prompt
            ConfigFault: Credentials missing
            UpstreamFault: Backend answered non-2xx or was unreachable
            ContentRefusalFault: The model declined the request
            ParseFault: No image reference in the answer
        """
        prompt = build_prompt(request)
        llm = self.llm

        style = request.style or CUSTOM_STYLE_ID
        logging.info(f"🎨 Generating design (style={style}) for {request.image_url}")

        messages = [
            HumanMessage(content=[
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": request.image_url}},
            ])
        ]

        try:
            response = await llm.ainvoke(messages)
        except Exception as e:
            error = classify_backend_error(e, "Generation")
            logging.error(f"Generation request failed: {error}")
            raise error from e

        return self.parse_response(response)

    def parse_response(self, response) -> GeneratedDesign:
        content = message_text(response.content)
        additional = getattr(response, "additional_kwargs", None) or {}
        metadata = dict(getattr(response, "response_metadata", None) or {})

        refusal = additional.get("refusal")
        if refusal:
            raise ContentRefusalFault("Generation refused", details=refusal)

        try:
            image_url = extract_image_url(content)
        except ParseFault:
            if looks_like_refusal(content):
                raise ContentRefusalFault("Generation refused", details=content[:500]) from None
            logging.error(f"No image in generation response: {content[:200]}")
            raise ParseFault("Generation failed", raw=content, details="No image found in response") from None

        logging.info(f"✅ Design generated: {image_url}")
        return GeneratedDesign(image_url=image_url, raw_content=content, raw=metadata)
