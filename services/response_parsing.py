"""
Pure helpers that pull structured data out of free-form model output.

Model answers are text that is *expected* to contain JSON or an image link.
Nothing here touches the network, so every function can be tested with
crafted strings.
"""
import json
import re
from typing import Any, Iterator, Mapping

from core.errors import ParseFault

MARKDOWN_IMAGE_RE = re.compile(r"!\[[^\]]*\]\(\s*<?(https?://[^\s)>]+)>?(?:\s+\"[^\"]*\")?\s*\)")
BARE_IMAGE_URL_RE = re.compile(
    r"https?://[^\s)\"'<>\]]+?\.(?:png|jpe?g|webp|gif)(?:\?[^\s)\"'<>\]]*)?",
    re.IGNORECASE,
)
REFUSAL_RE = re.compile(
    r"^\s*(?:i'?m sorry|sorry,|i am sorry|i can(?:no|')t|i am unable|i'?m unable|"
    r"i won'?t be able|unfortunately,? i can)",
    re.IGNORECASE,
)


def message_text(content: Any) -> str:
    """Text of a chat message; content may arrive as a list of content blocks."""
    if isinstance(content, str):
        return content
    texts = []
    for part in content or []:
        if isinstance(part, str):
            texts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            texts.append(part.get("text", ""))
    return "".join(texts)


def strip_code_fences(content: str) -> str:
    """Fixes common LLM JSON formatting issues (```json fenced answers)."""
    if "```json" in content:
        content = content.split("```json", 1)[1].split("```", 1)[0]
    elif content.strip().startswith("```"):
        content = content.split("```", 2)[1]
    return content.strip()


def _balanced_objects(text: str) -> Iterator[str]:
    """Yield every balanced {...} substring, leftmost first. Braces inside JSON strings are ignored."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        end = -1
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    end = index
                    break
        if end != -1:
            yield text[start:end + 1]
        start = text.find("{", start + 1)


def extract_json(text: str) -> dict:
    """
    Parse a JSON object out of model output.

    First the whole text (minus code fences) is parsed strictly. If that does
    not give an object, the first balanced {...} substring that parses is used.

    Args:
        text: Raw model output

    Returns:
        The decoded JSON object

    Raises:
        ParseFault: If no JSON object can be recovered (raw text attached)
    """
    if text is None or not str(text).strip():
        raise ParseFault("Empty response", raw=text or "")

    candidate = strip_code_fences(str(text))
    try:
        value = json.loads(candidate)
        if isinstance(value, dict):
            return value
    except json.JSONDecodeError:
        pass

    for fragment in _balanced_objects(str(text)):
        try:
            value = json.loads(fragment)
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return value

    raise ParseFault("Failed to parse analysis result", raw=str(text))


def looks_like_refusal(text: str) -> bool:
    """True when the model answered with an apology instead of content."""
    return bool(text) and bool(REFUSAL_RE.match(text))


def _direct_url(payload: Mapping[str, Any]) -> str | None:
    for key in ("imageUrl", "image_url", "url"):
        value = payload.get(key)
        if isinstance(value, str) and value.startswith(("http://", "https://")):
            return value
    data = payload.get("data")
    if isinstance(data, list) and data and isinstance(data[0], Mapping):
        value = data[0].get("url")
        if isinstance(value, str) and value:
            return value
    return None


def extract_image_url(payload: Any) -> str:
    """
    Find the generated image reference in a backend response.

    Mapping payloads are checked for a direct field first (imageUrl, image_url,
    url, data[0].url). Text is searched for a markdown image, then for a bare
    image URL.

    Raises:
        ParseFault: If nothing usable is found
    """
    if isinstance(payload, Mapping):
        url = _direct_url(payload)
        if url:
            return url
        text = payload.get("result") or payload.get("content") or ""
        if not isinstance(text, str):
            text = json.dumps(text)
    else:
        text = payload or ""

    match = MARKDOWN_IMAGE_RE.search(text)
    if match:
        return match.group(1)

    match = BARE_IMAGE_URL_RE.search(text)
    if match:
        return match.group(0)

    raise ParseFault("No image found in generation response", raw=text)
