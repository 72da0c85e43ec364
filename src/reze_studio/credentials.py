from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class CredentialGate:
    """
    Tracks whether the video flow has a usable provider key.

    One gate per session. The video job resets it when the provider reports a
    credential failure so the page asks for a key again.
    """

    def __init__(self, default_api_key: str | None = None) -> None:
        self._default_api_key = (default_api_key or "").strip() or None
        self._selected_api_key: str | None = None
        self.available = False

    @property
    def api_key(self) -> str | None:
        return self._selected_api_key or self._default_api_key

    def check_availability(self) -> bool:
        self.available = self.api_key is not None
        return self.available

    def request_selection(self, api_key: str | None = None) -> bool:
        # Optimistic: the key is not verified until the next provider call.
        cleaned = (api_key or "").strip()
        if cleaned:
            self._selected_api_key = cleaned
        self.available = True
        logger.info("API key selected for session (explicit=%s)", bool(cleaned))
        return self.available

    def reset(self) -> None:
        if self.available:
            logger.info("API key marked unavailable")
        self.available = False
