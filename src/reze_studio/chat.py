from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Literal

from reze_studio.errors import ProviderError
from reze_studio.prompts import CHAT_GREETING
from reze_studio.providers.base import ChatProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChatMessage:
    role: Literal["user", "model"]
    content: str


@dataclass
class ChatTranscript:
    messages: list[ChatMessage] = field(default_factory=lambda: [ChatMessage(role="model", content=CHAT_GREETING)])
    pending: bool = False
    error: str | None = None

    async def send(self, text: str, provider: ChatProvider) -> bool:
        """
        Append the user's message, ask the provider, append its reply.

        Returns False without doing anything for blank input or while a reply
        is still pending. Provider failures end up in `error`.
        """
        if not text.strip() or self.pending:
            return False

        self.messages.append(ChatMessage(role="user", content=text))
        self.pending = True
        self.error = None
        try:
            reply = await provider.get_bot_response(text)
            self.messages.append(ChatMessage(role="model", content=reply))
        except ProviderError as exc:
            self.error = f"SYSTEM ERROR: {exc.message}"
        finally:
            self.pending = False
        return True
