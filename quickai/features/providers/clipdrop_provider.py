"""
ClipDrop text-to-image provider.

ClipDrop returns raw PNG bytes; the image is then stored on the media host
and the hosted URL is the result.
"""
import logging
from typing import Optional, Protocol

import httpx

from quickai.core.errors import (
    ProviderError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    ValidationError,
)
from quickai.features.providers.contracts import AssetResult, TextToImageRequest

logger = logging.getLogger("quickai")


class PngHost(Protocol):
    async def upload_png(self, image: bytes) -> AssetResult:
        ...


class ClipdropImageProvider:
    """TextToImageProvider backed by ClipDrop."""

    name = "clipdrop"

    def __init__(
        self,
        api_key: Optional[str],
        media_host: PngHost,
        api_url: str = "https://clipdrop-api.co/text-to-image/v1",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise ProviderUnavailableError("CLIPDROP_API_KEY not configured", provider=self.name)
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout
        self.media_host = media_host
        self._transport = transport

    async def _render(self, prompt: str) -> bytes:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.api_url,
                    headers={"x-api-key": self.api_key},
                    files={"prompt": (None, prompt)},
                )
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(f"Image generation timed out: {e}", provider=self.name)
        except httpx.HTTPError as e:
            raise ProviderUnavailableError(f"Image generation service unreachable: {e}", provider=self.name)

        if response.status_code == 400:
            raise ValidationError("Image generation rejected the prompt")
        if response.status_code >= 300:
            raise ProviderError(
                f"Image generation failed with status {response.status_code}",
                provider=self.name,
            )
        if not response.content:
            raise ProviderError("Image generation returned an empty image", provider=self.name)
        return response.content

    async def generate(self, request: TextToImageRequest) -> AssetResult:
        image = await self._render(request.prompt)
        logger.info(f"clipdrop rendered {len(image)} bytes", extra={"provider": self.name})
        return await self.media_host.upload_png(image)
