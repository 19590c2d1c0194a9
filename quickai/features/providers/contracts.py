"""Tagged request/result types for provider capabilities.

Each capability gets its own request model with a literal ``kind`` tag so a
request can never be routed to the wrong adapter by shape alone.
"""
from __future__ import annotations

from typing import Literal, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Request(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class TextCompletionRequest(_Request):
    kind: Literal["text_completion"] = "text_completion"
    prompt: str = Field(min_length=1)
    model: str
    max_tokens: int = Field(gt=0)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)


class TextToImageRequest(_Request):
    kind: Literal["text_to_image"] = "text_to_image"
    prompt: str = Field(min_length=1)


class BackgroundRemovalRequest(_Request):
    kind: Literal["background_removal"] = "background_removal"
    image: bytes = Field(repr=False)
    filename: Optional[str] = None


class ObjectRemovalRequest(_Request):
    kind: Literal["object_removal"] = "object_removal"
    image: bytes = Field(repr=False)
    object_name: str = Field(min_length=1)
    filename: Optional[str] = None

    @field_validator("object_name")
    @classmethod
    def strip_object_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("object_name is required")
        return value


class DocumentTextRequest(_Request):
    kind: Literal["document_text"] = "document_text"
    document: bytes = Field(repr=False)
    filename: Optional[str] = None


class TextResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    text: str


class AssetResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["asset"] = "asset"
    url: str
    public_id: Optional[str] = None


class TextCompletionProvider(Protocol):
    async def complete(self, request: TextCompletionRequest) -> TextResult:
        ...


class TextToImageProvider(Protocol):
    async def generate(self, request: TextToImageRequest) -> AssetResult:
        ...


class ImageEditProvider(Protocol):
    async def remove_background(self, request: BackgroundRemovalRequest) -> AssetResult:
        ...

    async def remove_object(self, request: ObjectRemovalRequest) -> AssetResult:
        ...


class DocumentTextProvider(Protocol):
    async def extract(self, request: DocumentTextRequest) -> TextResult:
        ...
