"""
Provider registry attached to app.state.

Capabilities whose credentials are missing are replaced by a stub that
fails every call with ProviderUnavailableError, so the service still boots
in development with a partial .env.
"""
import logging
from dataclasses import dataclass

from fastapi import Request

from quickai.core.config import Settings, settings as default_settings
from quickai.core.errors import ProviderUnavailableError
from quickai.features.providers.contracts import (
    DocumentTextProvider,
    ImageEditProvider,
    TextCompletionProvider,
    TextToImageProvider,
)

logger = logging.getLogger("quickai")


@dataclass
class ProviderRegistry:
    text: TextCompletionProvider
    image: TextToImageProvider
    image_edit: ImageEditProvider
    document: DocumentTextProvider


class UnconfiguredProvider:
    """Stands in for any capability whose provider could not be built."""

    def __init__(self, capability: str, reason: str):
        self.capability = capability
        self.reason = reason

    async def _fail(self, *args, **kwargs):
        raise ProviderUnavailableError(f"{self.capability} is not available: {self.reason}", provider=self.capability)

    complete = generate = remove_background = remove_object = extract = upload_png = _fail


def build_provider_registry(cfg: Settings = None) -> ProviderRegistry:
    from quickai.features.providers.clipdrop_provider import ClipdropImageProvider
    from quickai.features.providers.cloudinary_provider import CloudinaryMediaHost
    from quickai.features.providers.groq_provider import GroqTextProvider
    from quickai.features.providers.pdf_text import PyMuPdfTextProvider

    cfg = cfg or default_settings
    timeout = cfg.PROVIDER_TIMEOUT_SECONDS

    try:
        text = GroqTextProvider(cfg.GROQ_API_KEY, timeout=timeout)
    except ProviderUnavailableError as e:
        logger.warning(f"text completion disabled: {e.message}")
        text = UnconfiguredProvider("text completion", e.message)

    try:
        media = CloudinaryMediaHost(
            cfg.CLOUDINARY_CLOUD_NAME,
            cfg.CLOUDINARY_API_KEY,
            cfg.CLOUDINARY_API_SECRET,
            timeout=timeout,
        )
    except ProviderUnavailableError as e:
        logger.warning(f"image editing disabled: {e.message}")
        media = UnconfiguredProvider("image editing", e.message)

    try:
        image = ClipdropImageProvider(
            cfg.CLIPDROP_API_KEY,
            media_host=media,
            api_url=cfg.CLIPDROP_API_URL,
            timeout=timeout,
        )
    except ProviderUnavailableError as e:
        logger.warning(f"image generation disabled: {e.message}")
        image = UnconfiguredProvider("image generation", e.message)

    return ProviderRegistry(text=text, image=image, image_edit=media, document=PyMuPdfTextProvider())


def get_providers(request: Request) -> ProviderRegistry:
    """FastAPI dependency: the registry built at startup."""
    registry = getattr(request.app.state, "providers", None)
    if registry is None:
        registry = build_provider_registry()
        request.app.state.providers = registry
    return registry
