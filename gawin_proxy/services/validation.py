"""
Input validation for chat requests and uploads.

``ValidationService`` is the content-policy collaborator; ``validate_chat_request``
is the pipeline's first stage and never touches a provider.
"""
import re
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from pydantic import ValidationError as PydanticValidationError

from ..core.config import MAX_INPUT_CHARS, OCR_ALLOWED_MIME_TYPES, OCR_MAX_FILE_SIZE_MB
from ..core.errors import ContentPolicyError, MalformedRequestError
from ..models.api_models import ChatRequestModel

logger = logging.getLogger("Gawin.Pipeline.Validation")

INJECTION_PATTERNS = [
    re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"data:text/html", re.IGNORECASE),
    re.compile(r"vbscript:", re.IGNORECASE),
    re.compile(r"\bon\w+\s*=", re.IGNORECASE),
]
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


@dataclass(frozen=True)
class TextValidation:
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    sanitized: str = ""


@dataclass(frozen=True)
class ValidatedRequest:
    request: ChatRequestModel
    last_user_text: str

    @property
    def messages(self):
        return self.request.messages


class ValidationService:
    def __init__(self, max_input_chars: int = MAX_INPUT_CHARS):
        self.max_input_chars = max_input_chars

    def validate_text_input(self, text: Any) -> TextValidation:
        if not isinstance(text, str):
            return TextValidation(False, ["Input must be a non-empty string"], "")

        sanitized = CONTROL_CHARS.sub("", text).strip()
        if not sanitized:
            return TextValidation(False, ["Input must be a non-empty string"], "")

        errors: List[str] = []
        if len(text) > self.max_input_chars:
            errors.append(f"Input exceeds maximum length of {self.max_input_chars:,} characters")

        for pattern in INJECTION_PATTERNS:
            if pattern.search(text):
                errors.append("Input contains potentially malicious content")
                break

        return TextValidation(not errors, errors, sanitized)

    def validate_file_upload(self, filename: Optional[str], content_type: Optional[str], size: int) -> List[str]:
        errors: List[str] = []
        if content_type not in OCR_ALLOWED_MIME_TYPES:
            errors.append(
                f"Unsupported file type: {content_type}. Allowed types: {', '.join(OCR_ALLOWED_MIME_TYPES)}"
            )
        if size > OCR_MAX_FILE_SIZE_MB * 1024 * 1024:
            errors.append(f"File too large: {filename}. Maximum size: {OCR_MAX_FILE_SIZE_MB}MB")
        return errors


def _describe_pydantic_error(exc: PydanticValidationError) -> str:
    parts = []
    for err in exc.errors()[:3]:
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


def validate_chat_request(payload: Any, validation_service: ValidationService) -> ValidatedRequest:
    """
    Structural checks first, then the content policy on the last user message.

    Raises MalformedRequestError or ContentPolicyError.
    """
    if not isinstance(payload, dict):
        raise MalformedRequestError("Invalid request: JSON object body is required")

    messages = payload.get("messages")
    if not isinstance(messages, list) or not messages:
        raise MalformedRequestError()

    try:
        request = ChatRequestModel.model_validate(payload)
    except PydanticValidationError as e:
        raise MalformedRequestError("Invalid request: malformed chat payload", details=_describe_pydantic_error(e))

    last = request.messages[-1]
    if last.role != "user":
        raise MalformedRequestError("Invalid request: last message must come from the user")

    result = validation_service.validate_text_input(last.text())
    if not result.is_valid:
        logger.info(f"Content policy rejected last user message: {result.errors}")
        raise ContentPolicyError(result.errors)

    return ValidatedRequest(request=request, last_user_text=result.sanitized)
