"""
Error taxonomy shared by the services, the HTTP shim and the studio workflow.

Every failure the system reports is one of five kinds:

- InputFault: the caller sent nothing usable (no file, no URL, no style).
  Rejected before any network call.
- ConfigFault: credentials are missing. Fatal and not user-actionable.
- UpstreamFault: an external API answered non-2xx or could not be reached.
- ContentRefusalFault: the external model declined to process the image.
- ParseFault: the call succeeded but the body did not contain what we need.
  The raw content is kept for diagnostics.
"""
from typing import Any, Optional


class LandscapeError(Exception):
    """Base class for every classified failure."""

    http_status: int = 500
    default_message: str = "Request failed"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[str] = None,
        code: Any = None,
        http_status: Optional[int] = None,
    ):
        self.message = message or self.default_message
        self.details = details
        self.code = code
        if http_status is not None:
            self.http_status = http_status
        super().__init__(self.message)

    def to_response(self) -> dict:
        """Shape used by the HTTP shim: {error, details?, code?}."""
        body: dict[str, Any] = {"error": self.message}
        if self.details:
            body["details"] = self.details
        if self.code is not None:
            body["code"] = self.code
        return body

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class InputFault(LandscapeError, ValueError):
    http_status = 400
    default_message = "Invalid request"


class ConfigFault(LandscapeError, RuntimeError):
    http_status = 500
    default_message = "API key not configured"

    def to_response(self) -> dict:
        # Which secret is missing stays in the server log
        return {"error": self.message}


class UpstreamFault(LandscapeError):
    http_status = 502
    default_message = "Upstream service failed"


class ContentRefusalFault(LandscapeError):
    http_status = 422
    default_message = "Analysis refused"


class ParseFault(LandscapeError):
    http_status = 500
    default_message = "Failed to parse response"

    def __init__(self, message: Optional[str] = None, raw: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.raw = raw

    def to_response(self) -> dict:
        body = super().to_response()
        if self.raw:
            body["raw"] = self.raw[:2000]
        return body


def from_response(status_code: int, body: Any, fallback: str = "Request failed") -> LandscapeError:
    """
    Rebuild a classified error from a shim error response.

    Args:
        status_code: HTTP status returned by the shim
        body: Decoded JSON body (or anything else the server sent)
        fallback: Message used when the body carries none

    Returns:
        The matching LandscapeError subclass instance
    """
    message = fallback
    details = None
    code = None
    raw = None
    if isinstance(body, dict):
        message = body.get("error") or body.get("message") or fallback
        details = body.get("details")
        code = body.get("code")
        raw = body.get("raw")

    if status_code == 400:
        return InputFault(message, details=details, code=code)
    if status_code == 422:
        return ContentRefusalFault(message, details=details, code=code)
    if raw is not None:
        return ParseFault(message, raw=raw, details=details, code=code)
    if status_code == 500 and message.endswith("not configured"):
        return ConfigFault(message, details=details, code=code)
    return UpstreamFault(message, details=details, code=code, http_status=status_code)
