"""
Groq chat-completion provider.

Single attempt per call; SDK retries are disabled so a failure surfaces
straight to the caller.
"""
import logging
from typing import Optional

import groq

from quickai.core.errors import (
    ProviderError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    ValidationError,
)
from quickai.features.providers.contracts import TextCompletionRequest, TextResult

logger = logging.getLogger("quickai")

EMPTY_COMPLETION_TEXT = "No content returned"


class GroqTextProvider:
    """TextCompletionProvider backed by the Groq API."""

    name = "groq"

    def __init__(self, api_key: Optional[str], timeout: float = 60.0, client: Optional[groq.AsyncGroq] = None):
        if client is None and not api_key:
            raise ProviderUnavailableError("GROQ_API_KEY not configured", provider=self.name)
        self._client = client or groq.AsyncGroq(api_key=api_key, timeout=timeout, max_retries=0)

    async def complete(self, request: TextCompletionRequest) -> TextResult:
        try:
            response = await self._client.chat.completions.create(
                model=request.model,
                messages=[{"role": "user", "content": request.prompt}],
                temperature=request.temperature,
                max_tokens=request.max_tokens,
            )
        except groq.APITimeoutError as e:
            raise ProviderTimeoutError(f"Text generation timed out: {e}", provider=self.name)
        except groq.APIConnectionError as e:
            raise ProviderUnavailableError(f"Text generation service unreachable: {e}", provider=self.name)
        except groq.BadRequestError as e:
            raise ValidationError(f"Text generation rejected the request: {e}")
        except groq.APIStatusError as e:
            raise ProviderError(f"Text generation failed with status {e.status_code}", provider=self.name)

        content = None
        if response.choices:
            message = response.choices[0].message
            content = message.content if message else None
        text = (content or "").strip()
        if not text:
            logger.warning("groq returned an empty completion", extra={"provider": self.name})
            text = EMPTY_COMPLETION_TEXT
        return TextResult(text=text)
