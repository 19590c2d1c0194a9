"""AI generation API.

Text generation is available to every plan within the free quota; image
generation and editing are premium-only.
"""

from typing import Optional, Tuple

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel, Field

from quickai.core.auth import get_current_account
from quickai.core.config import settings
from quickai.core.errors import PayloadTooLargeError
from quickai.features.generation import service as generation
from quickai.features.identity.store import IdentityStore, get_identity_store
from quickai.features.providers.registry import ProviderRegistry, get_providers
from quickai.features.quota.gate import enforce_quota
from quickai.models.user import UserAccount

router = APIRouter(prefix="/api/ai", tags=["ai"])

UPLOAD_CHUNK_BYTES = 1024 * 1024


def gated_account(operation: str, premium_only: bool = False):
    """Dependency that runs the quota gate before any upload is read."""

    async def dependency(account: UserAccount = Depends(get_current_account)) -> UserAccount:
        enforce_quota(account, operation=operation, premium_only=premium_only)
        return account

    return dependency


class GenerateArticleRequest(BaseModel):
    prompt: str
    length: int = Field(gt=0, le=generation.MAX_ARTICLE_TOKENS)


class GenerateBlogTitleRequest(BaseModel):
    prompt: str


class GenerateImageRequest(BaseModel):
    prompt: str
    publish: bool = False


async def read_upload(upload: Optional[UploadFile], limit: Optional[int] = None) -> Tuple[Optional[bytes], Optional[str], Optional[str]]:
    """Read an uploaded file into memory, refusing anything over the limit."""
    if upload is None:
        return None, None, None

    max_bytes = limit if limit is not None else settings.MAX_UPLOAD_BYTES
    chunks = []
    size = 0
    try:
        while True:
            chunk = await upload.read(UPLOAD_CHUNK_BYTES)
            if not chunk:
                break
            size += len(chunk)
            if size > max_bytes:
                raise PayloadTooLargeError(f"Upload exceeds {max_bytes} bytes")
            chunks.append(chunk)
    finally:
        await upload.close()

    return b"".join(chunks), upload.filename, upload.content_type


@router.post("/generate-article")
async def generate_article_endpoint(
    body: GenerateArticleRequest,
    account: UserAccount = Depends(get_current_account),
    providers: ProviderRegistry = Depends(get_providers),
    store: IdentityStore = Depends(get_identity_store),
):
    result = await generation.generate_article(
        account, body.prompt, body.length, providers=providers, store=store
    )
    return {"success": True, "content": result.content}


@router.post("/generate-blog-title")
async def generate_blog_title_endpoint(
    body: GenerateBlogTitleRequest,
    account: UserAccount = Depends(get_current_account),
    providers: ProviderRegistry = Depends(get_providers),
    store: IdentityStore = Depends(get_identity_store),
):
    result = await generation.generate_blog_title(account, body.prompt, providers=providers, store=store)
    return {"success": True, "content": result.content}


@router.post("/generate-image")
async def generate_image_endpoint(
    body: GenerateImageRequest,
    account: UserAccount = Depends(get_current_account),
    providers: ProviderRegistry = Depends(get_providers),
    store: IdentityStore = Depends(get_identity_store),
):
    result = await generation.generate_image(
        account, body.prompt, body.publish, providers=providers, store=store
    )
    return {"success": True, "content": result.content}


@router.post("/remove-image-background")
async def remove_image_background_endpoint(
    image: Optional[UploadFile] = File(None),
    account: UserAccount = Depends(gated_account("remove-image-background", premium_only=True)),
    providers: ProviderRegistry = Depends(get_providers),
    store: IdentityStore = Depends(get_identity_store),
):
    data, filename, content_type = await read_upload(image)
    result = await generation.remove_image_background(
        account,
        data,
        filename,
        content_type,
        providers=providers,
        store=store,
    )
    return {"success": True, "content": result.content}


@router.post("/remove-image-object")
async def remove_image_object_endpoint(
    image: Optional[UploadFile] = File(None),
    object_name: Optional[str] = Form(None, alias="object"),
    account: UserAccount = Depends(gated_account("remove-image-object", premium_only=True)),
    providers: ProviderRegistry = Depends(get_providers),
    store: IdentityStore = Depends(get_identity_store),
):
    data, filename, content_type = await read_upload(image)
    result = await generation.remove_image_object(
        account,
        data,
        object_name,
        filename,
        content_type,
        providers=providers,
        store=store,
    )
    return {"success": True, "content": result.content}


@router.post("/resume-review")
async def resume_review_endpoint(
    resume: Optional[UploadFile] = File(None),
    account: UserAccount = Depends(gated_account("resume-review")),
    providers: ProviderRegistry = Depends(get_providers),
    store: IdentityStore = Depends(get_identity_store),
):
    data, filename, _ = await read_upload(resume)
    result = await generation.review_resume(account, data, filename, providers=providers, store=store)
    return {"success": True, "analysis": result.content}
