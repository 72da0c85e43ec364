from __future__ import annotations

import logging
from typing import Any

from reze_studio.config import settings
from reze_studio.errors import ErrorKind, ProviderError
from reze_studio.prompts import CHAT_SYSTEM_INSTRUCTION

logger = logging.getLogger(__name__)


class OpenAIChatProvider:
    """Alternative backend for the assistant tab."""

    name = "openai"

    def __init__(self, api_key: str | None, client: Any | None = None) -> None:
        if not api_key:
            raise ProviderError("OPENAI_API_KEY is not set", kind=ErrorKind.CREDENTIAL_MISSING)
        if client is None:
            from openai import AsyncOpenAI  # type: ignore

            client = AsyncOpenAI(api_key=api_key)
        self.client = client

    async def get_bot_response(self, message: str) -> str:
        try:
            resp = await self.client.responses.create(
                model=settings.openai_text_model,
                instructions=CHAT_SYSTEM_INSTRUCTION,
                input=message,
            )
        except Exception as exc:
            raise _classify(exc) from exc

        text = ""
        try:
            text = resp.output_text
        except Exception:
            # Fallback: best-effort
            text = str(resp)
        return text.strip()


def _classify(exc: Exception) -> ProviderError:
    status = getattr(exc, "status_code", None)
    message = str(exc) or exc.__class__.__name__
    if status == 401:
        kind = ErrorKind.CREDENTIAL_INVALID
    elif status == 403:
        kind = ErrorKind.CREDENTIAL_MISSING
    else:
        kind = ErrorKind.GENERIC
    logger.warning("OpenAI call failed (%s): %s", kind.value, message)
    return ProviderError(message, kind=kind)
