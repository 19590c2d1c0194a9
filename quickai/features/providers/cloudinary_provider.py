"""
Cloudinary media host.

Stores generated images and performs the background/object removal edits
as incoming transformations on upload.
"""
import base64
import io
import logging
from typing import Any, Dict, List, Optional, Union

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
from starlette.concurrency import run_in_threadpool

from quickai.core.errors import (
    ProviderError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    ValidationError,
)
from quickai.features.providers.contracts import (
    AssetResult,
    BackgroundRemovalRequest,
    ObjectRemovalRequest,
)

logger = logging.getLogger("quickai")

BACKGROUND_REMOVAL_EFFECT = "background_removal"


def object_removal_effect(object_name: str) -> str:
    return f"gen_remove:prompt_{object_name}"


def png_data_uri(image: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(image).decode("ascii")


def _is_timeout(exc: Exception) -> bool:
    # The SDK re-raises socket and urllib3 timeouts as a plain GeneralError
    inner = exc.__cause__ or exc.__context__
    if isinstance(inner, TimeoutError):
        return True
    text = str(exc).lower()
    return "timed out" in text or "timeout" in text


class CloudinaryMediaHost:
    """Uploads assets to Cloudinary; implements ImageEditProvider."""

    name = "cloudinary"

    def __init__(
        self,
        cloud_name: Optional[str],
        api_key: Optional[str],
        api_secret: Optional[str],
        timeout: float = 60.0,
    ):
        if not (cloud_name and api_key and api_secret):
            raise ProviderUnavailableError("Cloudinary credentials not configured", provider=self.name)
        cloudinary.config(cloud_name=cloud_name, api_key=api_key, api_secret=api_secret, secure=True)
        self.timeout = timeout

    def _upload_sync(self, file: Union[str, io.BytesIO], transformation: Optional[List[Dict[str, str]]] = None) -> AssetResult:
        options: Dict[str, Any] = {"resource_type": "image", "timeout": self.timeout}
        if transformation:
            options["transformation"] = transformation
        try:
            result = cloudinary.uploader.upload(file, **options)
        except cloudinary.exceptions.BadRequest as e:
            raise ValidationError(f"Image rejected by media host: {e}")
        except cloudinary.exceptions.AuthorizationRequired as e:
            raise ProviderUnavailableError(f"Media host refused credentials: {e}", provider=self.name)
        except cloudinary.exceptions.Error as e:
            if _is_timeout(e):
                raise ProviderTimeoutError(f"Media host timed out: {e}", provider=self.name)
            raise ProviderError(f"Media host upload failed: {e}", provider=self.name)

        url = result.get("secure_url")
        if not url:
            raise ProviderError("Media host returned no asset URL", provider=self.name)
        return AssetResult(url=url, public_id=result.get("public_id"))

    async def upload_png(self, image: bytes) -> AssetResult:
        return await run_in_threadpool(self._upload_sync, png_data_uri(image))

    async def remove_background(self, request: BackgroundRemovalRequest) -> AssetResult:
        return await run_in_threadpool(
            self._upload_sync,
            io.BytesIO(request.image),
            [{"effect": BACKGROUND_REMOVAL_EFFECT}],
        )

    async def remove_object(self, request: ObjectRemovalRequest) -> AssetResult:
        return await run_in_threadpool(
            self._upload_sync,
            io.BytesIO(request.image),
            [{"effect": object_removal_effect(request.object_name)}],
        )
