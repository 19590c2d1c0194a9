"""
Generation service.

Every operation follows the same single-hop flow:

    quota gate -> provider call -> record creation -> increment free usage

A provider failure propagates before anything is written, so a failed call
leaves no creation and no usage change behind. The record and the increment
are best-effort and independent of each other.
"""

from dataclasses import dataclass
from pathlib import PurePath
from typing import Optional

from starlette.concurrency import run_in_threadpool

from quickai.core.config import settings
from quickai.core.errors import ValidationError
from quickai.core.logging import log_event
from quickai.features.creations.service import record_creation
from quickai.features.identity.store import IdentityStore
from quickai.features.providers.contracts import (
    BackgroundRemovalRequest,
    DocumentTextRequest,
    ObjectRemovalRequest,
    TextCompletionRequest,
    TextToImageRequest,
)
from quickai.features.providers.registry import ProviderRegistry
from quickai.features.quota.gate import enforce_quota
from quickai.features.quota.updater import increment_free_usage
from quickai.models.creation import CreationType, NewCreation
from quickai.models.user import UserAccount

BLOG_TITLE_MAX_TOKENS = 100
RESUME_REVIEW_MAX_TOKENS = 1000
MAX_ARTICLE_TOKENS = 8192

BACKGROUND_REMOVAL_PROMPT = "Remove background from image"
RESUME_REVIEW_RECORD_PROMPT = "Review the uploaded resume"
RESUME_REVIEW_PROMPT = (
    "Review the following resume and provide constructive feedback "
    "(strengths, weaknesses, areas for improvement):\n\n{text}"
)


def object_removal_prompt(object_name: str) -> str:
    return f"Removed {object_name} from image"


@dataclass(frozen=True)
class GenerationResult:
    content: str
    creation_id: Optional[int] = None
    free_usage: Optional[int] = None


def _require_prompt(prompt: Optional[str]) -> str:
    if prompt is None or not prompt.strip():
        raise ValidationError("prompt cannot be empty")
    return prompt.strip()


def _require_file(data: Optional[bytes], message: str) -> bytes:
    if not data:
        raise ValidationError(message)
    return data


def _require_image_type(content_type: Optional[str]) -> None:
    if content_type and not content_type.lower().startswith("image/"):
        raise ValidationError("Uploaded file must be an image")


async def _complete(
    account: UserAccount,
    store: IdentityStore,
    new: NewCreation,
) -> GenerationResult:
    creation_id = await run_in_threadpool(record_creation, new)
    free_usage = await increment_free_usage(store, account, operation=new.type.value)
    return GenerationResult(content=new.content, creation_id=creation_id, free_usage=free_usage)


async def generate_article(
    account: UserAccount,
    prompt: str,
    length: int,
    *,
    providers: ProviderRegistry,
    store: IdentityStore,
) -> GenerationResult:
    enforce_quota(account, operation=CreationType.ARTICLE.value)
    prompt = _require_prompt(prompt)
    if length < 1 or length > MAX_ARTICLE_TOKENS:
        raise ValidationError(f"length must be between 1 and {MAX_ARTICLE_TOKENS}")

    result = await providers.text.complete(
        TextCompletionRequest(prompt=prompt, model=settings.ARTICLE_MODEL, max_tokens=length)
    )
    new = NewCreation(user_id=account.user_id, prompt=prompt, content=result.text, type=CreationType.ARTICLE)
    return await _complete(account, store, new)


async def generate_blog_title(
    account: UserAccount,
    prompt: str,
    *,
    providers: ProviderRegistry,
    store: IdentityStore,
) -> GenerationResult:
    enforce_quota(account, operation=CreationType.BLOG_TITLE.value)
    prompt = _require_prompt(prompt)

    result = await providers.text.complete(
        TextCompletionRequest(prompt=prompt, model=settings.BLOG_TITLE_MODEL, max_tokens=BLOG_TITLE_MAX_TOKENS)
    )
    new = NewCreation(user_id=account.user_id, prompt=prompt, content=result.text, type=CreationType.BLOG_TITLE)
    return await _complete(account, store, new)


async def generate_image(
    account: UserAccount,
    prompt: str,
    publish: bool = False,
    *,
    providers: ProviderRegistry,
    store: IdentityStore,
) -> GenerationResult:
    enforce_quota(account, operation="generate-image", premium_only=True)
    prompt = _require_prompt(prompt)

    asset = await providers.image.generate(TextToImageRequest(prompt=prompt))
    new = NewCreation(
        user_id=account.user_id,
        prompt=prompt,
        content=asset.url,
        type=CreationType.IMAGE,
        publish=bool(publish),
    )
    return await _complete(account, store, new)


async def remove_image_background(
    account: UserAccount,
    image: Optional[bytes],
    filename: Optional[str] = None,
    content_type: Optional[str] = None,
    *,
    providers: ProviderRegistry,
    store: IdentityStore,
) -> GenerationResult:
    enforce_quota(account, operation="remove-image-background", premium_only=True)
    image = _require_file(image, "No image uploaded")
    _require_image_type(content_type)

    asset = await providers.image_edit.remove_background(
        BackgroundRemovalRequest(image=image, filename=filename)
    )
    new = NewCreation(
        user_id=account.user_id,
        prompt=BACKGROUND_REMOVAL_PROMPT,
        content=asset.url,
        type=CreationType.IMAGE,
    )
    return await _complete(account, store, new)


async def remove_image_object(
    account: UserAccount,
    image: Optional[bytes],
    object_name: Optional[str],
    filename: Optional[str] = None,
    content_type: Optional[str] = None,
    *,
    providers: ProviderRegistry,
    store: IdentityStore,
) -> GenerationResult:
    enforce_quota(account, operation="remove-image-object", premium_only=True)
    image = _require_file(image, "No image uploaded")
    _require_image_type(content_type)
    if object_name is None or not object_name.strip():
        raise ValidationError("object is required")
    object_name = object_name.strip()

    asset = await providers.image_edit.remove_object(
        ObjectRemovalRequest(image=image, object_name=object_name, filename=filename)
    )
    new = NewCreation(
        user_id=account.user_id,
        prompt=object_removal_prompt(object_name),
        content=asset.url,
        type=CreationType.IMAGE,
    )
    return await _complete(account, store, new)


def _is_pdf_filename(filename: Optional[str]) -> bool:
    return bool(filename) and PurePath(filename).suffix.lower() == ".pdf"


async def review_resume(
    account: UserAccount,
    document: Optional[bytes],
    filename: Optional[str],
    *,
    providers: ProviderRegistry,
    store: IdentityStore,
) -> GenerationResult:
    enforce_quota(account, operation=CreationType.RESUME_REVIEW.value)
    document = _require_file(document, "No resume uploaded.")
    if not _is_pdf_filename(filename):
        raise ValidationError("Invalid file type. Please upload a PDF.")

    extracted = await providers.document.extract(DocumentTextRequest(document=document, filename=filename))
    if not extracted.text.strip():
        raise ValidationError("PDF contains no extractable text.")

    log_event(
        "info",
        "resume.extracted",
        user_id=account.user_id,
        operation=CreationType.RESUME_REVIEW.value,
        extra={"characters": len(extracted.text)},
    )

    result = await providers.text.complete(
        TextCompletionRequest(
            prompt=RESUME_REVIEW_PROMPT.format(text=extracted.text.strip()),
            model=settings.RESUME_MODEL,
            max_tokens=RESUME_REVIEW_MAX_TOKENS,
        )
    )
    new = NewCreation(
        user_id=account.user_id,
        prompt=RESUME_REVIEW_RECORD_PROMPT,
        content=result.text,
        type=CreationType.RESUME_REVIEW,
    )
    return await _complete(account, store, new)
