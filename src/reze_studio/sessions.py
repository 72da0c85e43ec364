from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from reze_studio.chat import ChatTranscript
from reze_studio.config import Settings, settings as default_settings
from reze_studio.credentials import CredentialGate
from reze_studio.errors import ProviderError
from reze_studio.jobs.video import VideoJob
from reze_studio.media import ImagePayload
from reze_studio.prompts import IMAGE_ASPECT_RATIOS, compose_image_prompt
from reze_studio.providers.base import ChatProvider, StudioProvider
from reze_studio.providers.registry import default_chat_provider, default_studio_provider

logger = logging.getLogger(__name__)

StudioProviderFactory = Callable[[CredentialGate], StudioProvider]
ChatProviderFactory = Callable[[CredentialGate], ChatProvider]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ImagePanel:
    """Result area of the generate and edit tabs."""

    result: str | None = None
    error: str | None = None
    loading: bool = False
    source: ImagePayload | None = None


@dataclass
class StudioSession:
    session_id: str
    created_at: str
    gate: CredentialGate
    video: VideoJob
    studio_provider: StudioProviderFactory
    chat_provider: ChatProviderFactory
    chat: ChatTranscript = field(default_factory=ChatTranscript)
    generated: ImagePanel = field(default_factory=ImagePanel)
    edited: ImagePanel = field(default_factory=ImagePanel)
    # Inline validation message for the animate tab; job errors live on the job.
    video_notice: str | None = None
    # Monotonic time of the last request that used this session.
    last_seen: float = 0.0

    async def generate_image(
        self,
        prompt: str,
        aspect_ratio: str,
        style: str | None = None,
        mood: str | None = None,
        lighting: str | None = None,
        custom_style: str = "",
        custom_mood: str = "",
        custom_lighting: str = "",
    ) -> None:
        panel = self.generated
        if not prompt.strip():
            panel.error = "Prompt cannot be empty."
            return
        if aspect_ratio not in IMAGE_ASPECT_RATIOS:
            panel.error = f"Unsupported aspect ratio: {aspect_ratio}"
            return

        final_prompt = compose_image_prompt(
            prompt,
            style=style,
            mood=mood,
            lighting=lighting,
            custom_style=custom_style,
            custom_mood=custom_mood,
            custom_lighting=custom_lighting,
        )
        panel.loading = True
        panel.error = None
        panel.result = None
        try:
            provider = self.studio_provider(self.gate)
            panel.result = await provider.generate_image(final_prompt, aspect_ratio)
        except ProviderError as exc:
            panel.error = f"API Error: {exc.message}"
        finally:
            panel.loading = False

    def select_edit_source(self, image: ImagePayload | None) -> None:
        if image is None:
            return
        self.edited.source = image
        self.edited.result = None

    async def edit_image(self, prompt: str) -> None:
        panel = self.edited
        if not prompt.strip() or panel.source is None:
            panel.error = "An image and a prompt are required to begin editing."
            return

        panel.loading = True
        panel.error = None
        panel.result = None
        try:
            provider = self.studio_provider(self.gate)
            panel.result = await provider.edit_image(prompt, panel.source)
        except ProviderError as exc:
            panel.error = f"API ERROR: {exc.message}"
        finally:
            panel.loading = False

    async def send_chat(self, text: str) -> None:
        try:
            provider = self.chat_provider(self.gate)
        except ProviderError as exc:
            self.chat.error = f"SYSTEM ERROR: {exc.message}"
            return
        await self.chat.send(text, provider)

    def close(self) -> None:
        self.video.teardown()


class SessionStore:
    """In-memory sessions keyed by a random id; nothing outlives the process."""

    def __init__(
        self,
        studio_provider: StudioProviderFactory = default_studio_provider,
        chat_provider: ChatProviderFactory = default_chat_provider,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or default_settings
        self.studio_provider = studio_provider
        self.chat_provider = chat_provider
        self._clock = clock
        self._sessions: dict[str, StudioSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create_session(self) -> StudioSession:
        self.evict_idle()
        session_id = uuid.uuid4().hex[:12]
        gate = CredentialGate(default_api_key=self.settings.gemini_api_key)
        gate.check_availability()
        video = VideoJob(
            gate=gate,
            provider_factory=self.studio_provider,
            poll_interval=self.settings.video_poll_interval_seconds,
            message_interval=self.settings.video_message_interval_seconds,
            max_poll_attempts=self.settings.video_max_poll_attempts,
        )
        session = StudioSession(
            session_id=session_id,
            created_at=_now_iso(),
            gate=gate,
            video=video,
            studio_provider=self.studio_provider,
            chat_provider=self.chat_provider,
            last_seen=self._clock(),
        )
        self._sessions[session_id] = session
        self._enforce_cap()
        logger.info("Created session %s (api key available=%s)", session_id, gate.available)
        return session

    def get(self, session_id: str | None) -> StudioSession | None:
        if not session_id:
            return None
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if self._expired(session, self._clock()):
            self.close_session(session_id)
            return None
        session.last_seen = self._clock()
        return session

    def get_or_create(self, session_id: str | None) -> StudioSession:
        return self.get(session_id) or self.create_session()

    def close_session(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is not None:
            session.close()
            logger.info("Closed session %s", session_id)

    def evict_idle(self) -> int:
        """Close every session that has been idle longer than the TTL."""
        now = self._clock()
        expired = [sid for sid, s in self._sessions.items() if self._expired(s, now)]
        for session_id in expired:
            self.close_session(session_id)
        if expired:
            logger.info("Evicted %d idle session(s)", len(expired))
        return len(expired)

    def close_all(self) -> None:
        for session_id in list(self._sessions):
            self.close_session(session_id)

    def _expired(self, session: StudioSession, now: float) -> bool:
        ttl = self.settings.session_idle_ttl_seconds
        return ttl is not None and now - session.last_seen > ttl

    def _enforce_cap(self) -> None:
        cap = self.settings.max_sessions
        if cap is None:
            return
        while len(self._sessions) > cap:
            oldest = min(self._sessions.values(), key=lambda s: s.last_seen)
            logger.info("Session cap %d reached; closing least recently used %s", cap, oldest.session_id)
            self.close_session(oldest.session_id)

