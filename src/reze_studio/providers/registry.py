from __future__ import annotations

from reze_studio.config import settings
from reze_studio.credentials import CredentialGate
from reze_studio.providers.base import ChatProvider, StudioProvider


def default_studio_provider(gate: CredentialGate) -> StudioProvider:
    from reze_studio.providers.gemini_provider import GeminiProvider

    return GeminiProvider(api_key=gate.api_key)


def default_chat_provider(gate: CredentialGate) -> ChatProvider:
    if settings.chat_provider == "openai":
        from reze_studio.providers.openai_provider import OpenAIChatProvider

        return OpenAIChatProvider(api_key=settings.openai_api_key)

    from reze_studio.providers.gemini_provider import GeminiProvider

    return GeminiProvider(api_key=gate.api_key)
