"""API tests for the AI generation endpoints.

Providers are replaced by the recording fakes in quickai.tests.mocks; plan
and usage come from the in-memory identity store.
"""

import fitz  # PyMuPDF
import pytest

from quickai.core.errors import (
    PersistenceError,
    ProviderError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from quickai.core.config import settings
from quickai.features.creations import service as creations_service
from quickai.features.creations.service import list_user_creations
from quickai.features.generation.service import (
    BACKGROUND_REMOVAL_PROMPT,
    BLOG_TITLE_MAX_TOKENS,
    RESUME_REVIEW_MAX_TOKENS,
    RESUME_REVIEW_RECORD_PROMPT,
)
from quickai.features.providers.pdf_text import PyMuPdfTextProvider
from quickai.models.user import Plan
from quickai.tests.mocks import total_provider_calls

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"
PDF_BYTES = b"%PDF-1.4\nfake resume"


def _usage(identity_store, user_id):
    return identity_store._accounts[user_id].free_usage


# ---------------------------------------------------------------------------
# generate-article / generate-blog-title
# ---------------------------------------------------------------------------


def test_generate_article_success(client, identity_store, providers, auth_headers):
    identity_store.set_account("user_free", Plan.FREE, free_usage=3)
    providers.text.text = "An article about tea."

    resp = client.post(
        "/api/ai/generate-article",
        json={"prompt": "Write about tea", "length": 800},
        headers=auth_headers("user_free"),
    )

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "content": "An article about tea."}

    request = providers.text.calls[0]
    assert request.max_tokens == 800
    assert request.temperature == 0.7
    assert request.model == settings.ARTICLE_MODEL

    records = list_user_creations("user_free")
    assert len(records) == 1
    assert records[0].type.value == "article"
    assert records[0].prompt == "Write about tea"
    assert records[0].content == "An article about tea."
    assert records[0].publish is False
    assert _usage(identity_store, "user_free") == 4


def test_generate_blog_title_uses_short_budget(client, identity_store, providers, auth_headers):
    identity_store.set_account("user_free", Plan.FREE, free_usage=0)
    providers.text.text = "10 Teas You Must Try"

    resp = client.post(
        "/api/ai/generate-blog-title",
        json={"prompt": "tea, category: Lifestyle"},
        headers=auth_headers("user_free"),
    )

    assert resp.status_code == 200
    assert resp.json()["content"] == "10 Teas You Must Try"
    assert providers.text.calls[0].max_tokens == BLOG_TITLE_MAX_TOKENS
    assert providers.text.calls[0].model == settings.BLOG_TITLE_MODEL

    records = list_user_creations("user_free")
    assert [r.type.value for r in records] == ["blog-title"]
    assert _usage(identity_store, "user_free") == 1


def test_free_user_at_limit_is_denied_before_provider_call(client, identity_store, providers, auth_headers):
    identity_store.set_account("user_capped", Plan.FREE, free_usage=10)

    resp = client.post(
        "/api/ai/generate-article",
        json={"prompt": "Write about tea", "length": 500},
        headers=auth_headers("user_capped"),
    )

    assert resp.status_code == 403
    body = resp.json()
    assert body["success"] is False
    assert body["error"]["code"] == "limit_reached"
    assert "Limit reached" in body["message"]
    assert total_provider_calls(providers) == 0
    assert list_user_creations("user_capped") == []
    assert _usage(identity_store, "user_capped") == 10


def test_free_user_last_unit_allowed(client, identity_store, providers, auth_headers):
    identity_store.set_account("user_edge", Plan.FREE, free_usage=9)

    resp = client.post(
        "/api/ai/generate-blog-title",
        json={"prompt": "edge"},
        headers=auth_headers("user_edge"),
    )

    assert resp.status_code == 200
    assert _usage(identity_store, "user_edge") == 10

    again = client.post(
        "/api/ai/generate-blog-title",
        json={"prompt": "edge"},
        headers=auth_headers("user_edge"),
    )
    assert again.status_code == 403
    assert again.json()["error"]["code"] == "limit_reached"
    assert len(list_user_creations("user_edge")) == 1


def test_premium_user_past_free_limit_allowed_without_increment(client, identity_store, providers, auth_headers):
    identity_store.set_account("user_premium", Plan.PREMIUM, free_usage=42)

    resp = client.post(
        "/api/ai/generate-article",
        json={"prompt": "Write about coffee", "length": 300},
        headers=auth_headers("user_premium"),
    )

    assert resp.status_code == 200
    assert len(list_user_creations("user_premium")) == 1
    assert _usage(identity_store, "user_premium") == 42


def test_plan_claim_overrides_stored_plan(client, identity_store, providers, auth_headers):
    identity_store.set_account("user_claim", Plan.FREE, free_usage=10)

    resp = client.post(
        "/api/ai/generate-blog-title",
        json={"prompt": "claims"},
        headers=auth_headers("user_claim", plan="premium"),
    )

    assert resp.status_code == 200
    assert _usage(identity_store, "user_claim") == 10


def test_provider_failure_leaves_no_trace(client, identity_store, providers, auth_headers):
    identity_store.set_account("user_free", Plan.FREE, free_usage=2)
    providers.text.error = ProviderError("upstream exploded", provider="groq")

    resp = client.post(
        "/api/ai/generate-article",
        json={"prompt": "Write about tea", "length": 200},
        headers=auth_headers("user_free"),
    )

    assert resp.status_code == 500
    body = resp.json()
    assert body["success"] is False
    assert body["error"]["code"] == "provider_failure"
    assert list_user_creations("user_free") == []
    assert _usage(identity_store, "user_free") == 2


def test_provider_timeout_and_unavailable_are_500(client, identity_store, providers, auth_headers):
    identity_store.set_account("user_free", Plan.FREE, free_usage=0)

    providers.text.error = ProviderTimeoutError("slow", provider="groq")
    timed_out = client.post(
        "/api/ai/generate-blog-title", json={"prompt": "x"}, headers=auth_headers("user_free")
    )
    assert timed_out.status_code == 500
    assert timed_out.json()["error"]["code"] == "provider_timeout"

    providers.text.error = ProviderUnavailableError("down", provider="groq")
    unavailable = client.post(
        "/api/ai/generate-blog-title", json={"prompt": "x"}, headers=auth_headers("user_free")
    )
    assert unavailable.status_code == 500
    assert unavailable.json()["error"]["code"] == "provider_unavailable"

    assert list_user_creations("user_free") == []
    assert _usage(identity_store, "user_free") == 0


def test_persistence_failure_still_returns_content(client, identity_store, providers, auth_headers, monkeypatch):
    identity_store.set_account("user_free", Plan.FREE, free_usage=1)
    providers.text.text = "Still delivered"

    def broken_insert(new):
        raise PersistenceError("disk full")

    monkeypatch.setattr(creations_service, "insert_creation", broken_insert)

    resp = client.post(
        "/api/ai/generate-blog-title",
        json={"prompt": "resilience"},
        headers=auth_headers("user_free"),
    )

    assert resp.status_code == 200
    assert resp.json()["content"] == "Still delivered"
    assert list_user_creations("user_free") == []
    # Usage is still counted even though the record was lost
    assert _usage(identity_store, "user_free") == 2


def test_increment_failure_still_returns_content(client, identity_store, providers, auth_headers, monkeypatch):
    identity_store.set_account("user_free", Plan.FREE, free_usage=1)

    async def broken_increment(user_id):
        raise ProviderUnavailableError("identity provider down", provider="clerk")

    monkeypatch.setattr(identity_store, "increment", broken_increment)

    resp = client.post(
        "/api/ai/generate-blog-title",
        json={"prompt": "resilience"},
        headers=auth_headers("user_free"),
    )

    assert resp.status_code == 200
    assert len(list_user_creations("user_free")) == 1
    assert _usage(identity_store, "user_free") == 1


# ---------------------------------------------------------------------------
# request validation and auth
# ---------------------------------------------------------------------------


def test_missing_token_is_401(client, providers):
    resp = client.post("/api/ai/generate-article", json={"prompt": "x", "length": 100})
    assert resp.status_code == 401
    body = resp.json()
    assert body["success"] is False
    assert body["error"]["code"] == "unauthorized"
    assert total_provider_calls(providers) == 0


def test_invalid_token_is_401(client, providers):
    resp = client.post(
        "/api/ai/generate-article",
        json={"prompt": "x", "length": 100},
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "unauthorized"


def test_malformed_body_is_400(client, identity_store, providers, auth_headers):
    identity_store.set_account("user_free", Plan.FREE, free_usage=0)

    missing_prompt = client.post(
        "/api/ai/generate-article", json={"length": 100}, headers=auth_headers("user_free")
    )
    assert missing_prompt.status_code == 400
    assert missing_prompt.json()["error"]["code"] == "validation_error"

    bad_length = client.post(
        "/api/ai/generate-article", json={"prompt": "x", "length": 0}, headers=auth_headers("user_free")
    )
    assert bad_length.status_code == 400

    assert total_provider_calls(providers) == 0
    assert _usage(identity_store, "user_free") == 0


def test_blank_prompt_is_400(client, identity_store, providers, auth_headers):
    identity_store.set_account("user_free", Plan.FREE, free_usage=0)

    resp = client.post(
        "/api/ai/generate-blog-title", json={"prompt": "   "}, headers=auth_headers("user_free")
    )

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "validation_error"
    assert total_provider_calls(providers) == 0
    assert list_user_creations("user_free") == []


# ---------------------------------------------------------------------------
# premium-only image endpoints
# ---------------------------------------------------------------------------


def test_generate_image_requires_premium(client, identity_store, providers, auth_headers):
    identity_store.set_account("user_free", Plan.FREE, free_usage=0)

    resp = client.post(
        "/api/ai/generate-image",
        json={"prompt": "a red fox"},
        headers=auth_headers("user_free"),
    )

    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "plan_required"
    assert resp.json()["message"] == "This feature is for premium users only."
    assert providers.image.calls == []
    assert list_user_creations("user_free") == []


def test_generate_image_published(client, identity_store, providers, auth_headers):
    identity_store.set_account("user_premium", Plan.PREMIUM)

    resp = client.post(
        "/api/ai/generate-image",
        json={"prompt": "a red fox", "publish": True},
        headers=auth_headers("user_premium"),
    )

    assert resp.status_code == 200
    assert resp.json()["content"] == providers.image.url
    assert providers.image.calls[0].prompt == "a red fox"

    records = list_user_creations("user_premium")
    assert len(records) == 1
    assert records[0].type.value == "image"
    assert records[0].publish is True
    assert records[0].content == providers.image.url


def test_remove_background_requires_premium(client, identity_store, providers, auth_headers):
    identity_store.set_account("user_free", Plan.FREE, free_usage=0)

    resp = client.post(
        "/api/ai/remove-image-background",
        files={"image": ("photo.png", PNG_BYTES, "image/png")},
        headers=auth_headers("user_free"),
    )

    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "plan_required"
    assert providers.image_edit.calls == []


def test_remove_background_success(client, identity_store, providers, auth_headers):
    identity_store.set_account("user_premium", Plan.PREMIUM)

    resp = client.post(
        "/api/ai/remove-image-background",
        files={"image": ("photo.png", PNG_BYTES, "image/png")},
        headers=auth_headers("user_premium"),
    )

    assert resp.status_code == 200
    assert resp.json()["content"] == providers.image_edit.url
    request = providers.image_edit.calls[0]
    assert request.kind == "background_removal"
    assert request.image == PNG_BYTES
    assert request.filename == "photo.png"

    records = list_user_creations("user_premium")
    assert len(records) == 1
    assert records[0].prompt == BACKGROUND_REMOVAL_PROMPT
    assert records[0].type.value == "image"


def test_remove_background_rejects_non_image(client, identity_store, providers, auth_headers):
    identity_store.set_account("user_premium", Plan.PREMIUM)

    resp = client.post(
        "/api/ai/remove-image-background",
        files={"image": ("notes.txt", b"hello", "text/plain")},
        headers=auth_headers("user_premium"),
    )

    assert resp.status_code == 400
    assert providers.image_edit.calls == []
    assert list_user_creations("user_premium") == []


def test_remove_object_success(client, identity_store, providers, auth_headers):
    identity_store.set_account("user_premium", Plan.PREMIUM)

    resp = client.post(
        "/api/ai/remove-image-object",
        data={"object": "  coffee cup "},
        files={"image": ("desk.jpg", PNG_BYTES, "image/jpeg")},
        headers=auth_headers("user_premium"),
    )

    assert resp.status_code == 200
    request = providers.image_edit.calls[0]
    assert request.kind == "object_removal"
    assert request.object_name == "coffee cup"

    records = list_user_creations("user_premium")
    assert records[0].prompt == "Removed coffee cup from image"


def test_remove_object_requires_object_name(client, identity_store, providers, auth_headers):
    identity_store.set_account("user_premium", Plan.PREMIUM)

    resp = client.post(
        "/api/ai/remove-image-object",
        data={"object": "   "},
        files={"image": ("desk.jpg", PNG_BYTES, "image/jpeg")},
        headers=auth_headers("user_premium"),
    )

    assert resp.status_code == 400
    assert resp.json()["message"] == "object is required"
    assert providers.image_edit.calls == []


def test_oversized_upload_is_413(client, identity_store, providers, auth_headers, monkeypatch):
    identity_store.set_account("user_premium", Plan.PREMIUM)
    monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 8)

    resp = client.post(
        "/api/ai/remove-image-background",
        files={"image": ("photo.png", PNG_BYTES, "image/png")},
        headers=auth_headers("user_premium"),
    )

    assert resp.status_code == 413
    assert resp.json()["error"]["code"] == "payload_too_large"
    assert providers.image_edit.calls == []
    assert list_user_creations("user_premium") == []


# ---------------------------------------------------------------------------
# resume-review
# ---------------------------------------------------------------------------


def test_resume_review_success(client, identity_store, providers, auth_headers):
    identity_store.set_account("user_free", Plan.FREE, free_usage=0)
    providers.document.text = "Jane Doe\nStaff Engineer"
    providers.text.text = "Strong experience section."

    resp = client.post(
        "/api/ai/resume-review",
        files={"resume": ("resume.pdf", PDF_BYTES, "application/pdf")},
        headers=auth_headers("user_free"),
    )

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "analysis": "Strong experience section."}

    assert providers.document.calls[0].document == PDF_BYTES
    completion = providers.text.calls[0]
    assert "Jane Doe\nStaff Engineer" in completion.prompt
    assert completion.max_tokens == RESUME_REVIEW_MAX_TOKENS

    records = list_user_creations("user_free")
    assert len(records) == 1
    assert records[0].type.value == "resume-review"
    assert records[0].prompt == RESUME_REVIEW_RECORD_PROMPT
    assert _usage(identity_store, "user_free") == 1


def test_resume_review_rejects_non_pdf(client, identity_store, providers, auth_headers):
    identity_store.set_account("user_free", Plan.FREE, free_usage=0)

    resp = client.post(
        "/api/ai/resume-review",
        files={"resume": ("resume.docx", b"PK\x03\x04", "application/octet-stream")},
        headers=auth_headers("user_free"),
    )

    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid file type. Please upload a PDF."
    assert total_provider_calls(providers) == 0
    assert list_user_creations("user_free") == []
    assert _usage(identity_store, "user_free") == 0


def test_resume_review_without_text_is_400(client, identity_store, providers, auth_headers):
    identity_store.set_account("user_free", Plan.FREE, free_usage=0)
    providers.document.text = "   \n  "

    resp = client.post(
        "/api/ai/resume-review",
        files={"resume": ("scan.pdf", PDF_BYTES, "application/pdf")},
        headers=auth_headers("user_free"),
    )

    assert resp.status_code == 400
    assert providers.text.calls == []
    assert list_user_creations("user_free") == []


def test_resume_review_respects_quota(client, identity_store, providers, auth_headers):
    identity_store.set_account("user_capped", Plan.FREE, free_usage=10)

    resp = client.post(
        "/api/ai/resume-review",
        files={"resume": ("resume.pdf", PDF_BYTES, "application/pdf")},
        headers=auth_headers("user_capped"),
    )

    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "limit_reached"
    assert total_provider_calls(providers) == 0


def _premium_only_request(endpoint):
    if endpoint == "generate-image":
        return {"json": {"prompt": "a red fox"}}
    if endpoint == "remove-image-background":
        return {"files": {"image": ("photo.png", PNG_BYTES, "image/png")}}
    return {
        "data": {"object": "cup"},
        "files": {"image": ("desk.png", PNG_BYTES, "image/png")},
    }


@pytest.mark.parametrize("usage", [0, 9, 10, 50])
@pytest.mark.parametrize(
    "endpoint",
    ["generate-image", "remove-image-background", "remove-image-object"],
)
def test_premium_only_endpoints_deny_free_plan_at_any_usage(
    client, identity_store, providers, auth_headers, endpoint, usage
):
    identity_store.set_account("user_free", Plan.FREE, free_usage=usage)

    resp = client.post(
        f"/api/ai/{endpoint}",
        headers=auth_headers("user_free"),
        **_premium_only_request(endpoint),
    )

    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "plan_required"
    assert total_provider_calls(providers) == 0
    assert list_user_creations("user_free") == []
    assert _usage(identity_store, "user_free") == usage


def test_oversized_upload_from_free_user_gets_plan_denial(client, identity_store, providers, auth_headers, monkeypatch):
    identity_store.set_account("user_free", Plan.FREE, free_usage=0)
    monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 8)

    resp = client.post(
        "/api/ai/remove-image-background",
        files={"image": ("photo.png", PNG_BYTES, "image/png")},
        headers=auth_headers("user_free"),
    )

    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "plan_required"


def test_resume_review_at_limit_denied_before_upload_is_read(client, identity_store, providers, auth_headers, monkeypatch):
    identity_store.set_account("user_capped", Plan.FREE, free_usage=10)
    monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 8)

    resp = client.post(
        "/api/ai/resume-review",
        files={"resume": ("resume.pdf", PDF_BYTES, "application/pdf")},
        headers=auth_headers("user_capped"),
    )

    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "limit_reached"


def test_resume_review_encrypted_pdf_is_400(client, identity_store, providers, auth_headers):
    identity_store.set_account("user_free", Plan.FREE, free_usage=0)
    providers.document = PyMuPdfTextProvider()

    doc = fitz.open()
    doc.new_page().insert_text((72, 72), "Confidential resume")
    encrypted = doc.tobytes(encryption=fitz.PDF_ENCRYPT_AES_256, owner_pw="owner", user_pw="user")
    doc.close()

    resp = client.post(
        "/api/ai/resume-review",
        files={"resume": ("resume.pdf", encrypted, "application/pdf")},
        headers=auth_headers("user_free"),
    )

    assert resp.status_code == 400
    body = resp.json()
    assert body["error"]["code"] == "validation_error"
    assert body["message"] == "PDF is encrypted"
    assert providers.text.calls == []
    assert list_user_creations("user_free") == []
    assert _usage(identity_store, "user_free") == 0
