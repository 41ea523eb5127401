from dataclasses import dataclass, asdict
from typing import Annotated, Any, Dict, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field


# --- Incoming chat payload ---

class ImageUrl(BaseModel):
    url: str
    detail: Optional[str] = None
    model_config = {"frozen": True}


class TextContentPart(BaseModel):
    type: Literal["text"] = "text"
    text: str
    model_config = {"frozen": True}


class ImageUrlContentPart(BaseModel):
    type: Literal["image_url"] = "image_url"
    image_url: ImageUrl
    model_config = {"frozen": True}


ContentPart = Annotated[
    Union[TextContentPart, ImageUrlContentPart],
    Field(discriminator="type")
]


class ChatMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: Union[str, Tuple[ContentPart, ...]]
    model_config = {"frozen": True}

    def text(self) -> str:
        """String content, or the first text part of structured content."""
        if isinstance(self.content, str):
            return self.content
        for part in self.content:
            if isinstance(part, TextContentPart):
                return part.text
        return ""

    def has_images(self) -> bool:
        if isinstance(self.content, str):
            return False
        return any(isinstance(part, ImageUrlContentPart) for part in self.content)


class ChatRequestModel(BaseModel):
    messages: Tuple[ChatMessage, ...]
    model: Optional[str] = None
    temperature: Optional[float] = Field(None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(None, alias="maxTokens", ge=1, le=8192)
    action: Optional[str] = None
    model_config = {"populate_by_name": True, "frozen": True}


# --- Provider results ---

@dataclass(frozen=True)
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_openai(cls, data: Optional[Dict[str, Any]]) -> "Usage":
        data = data or {}
        prompt = int(data.get("prompt_tokens") or 0)
        completion = int(data.get("completion_tokens") or 0)
        total = int(data.get("total_tokens") or (prompt + completion))
        return cls(prompt, completion, total)

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class ProviderResult:
    success: bool
    content: Optional[str] = None
    model_used: Optional[str] = None
    usage: Optional[Usage] = None
    error_reason: Optional[str] = None
    provider: Optional[str] = None

    @classmethod
    def failure(cls, provider: str, reason: str) -> "ProviderResult":
        return cls(success=False, error_reason=reason, provider=provider)


# --- Browser automation payload ---

class BrowserCoordinates(BaseModel):
    x: Optional[float] = None
    y: Optional[float] = None
    direction: Optional[Literal["up", "down"]] = None
    amount: Optional[int] = None


class BrowserAutomationRequest(BaseModel):
    action: str
    session_id: Optional[str] = Field(None, alias="sessionId")
    url: Optional[str] = None
    query: Optional[str] = None
    coordinates: Optional[BrowserCoordinates] = None
    element_selector: Optional[str] = Field(None, alias="elementSelector")
    model_config = {"populate_by_name": True}
