from __future__ import annotations

import asyncio
from io import BytesIO

import pytest
from PIL import Image

from reze_studio.credentials import CredentialGate
from reze_studio.jobs.video import VideoJob
from reze_studio.media import ImagePayload
from reze_studio.providers.base import VideoOperation


def make_png(size: tuple[int, int] = (4, 4)) -> bytes:
    buf = BytesIO()
    Image.new("RGB", size, (200, 10, 10)).save(buf, format="PNG")
    return buf.getvalue()


class FakeStudioProvider:
    """Scripted stand-in for the Gemini adapter."""

    name = "fake"

    def __init__(self, polls=None, submit_error=None, image_error=None, chat_error=None):
        # Each poll pops the next item: a VideoOperation to return or an exception to raise.
        self.polls = list(polls or [])
        self.submit_error = submit_error
        self.image_error = image_error
        self.chat_error = chat_error
        self.submitted: list[tuple[str, ImagePayload, str]] = []
        self.poll_calls = 0
        self.image_prompts: list[tuple[str, str]] = []
        self.edits: list[tuple[str, ImagePayload]] = []
        self.chat_messages: list[str] = []
        # Set these to make the corresponding call wait until the test releases it.
        self.submit_gate: asyncio.Event | None = None
        self.poll_gate: asyncio.Event | None = None

    async def generate_video_from_image(self, prompt, image, aspect_ratio):
        self.submitted.append((prompt, image, aspect_ratio))
        if self.submit_gate is not None:
            await self.submit_gate.wait()
        if self.submit_error is not None:
            raise self.submit_error
        return VideoOperation(handle=f"operations/{len(self.submitted)}", done=False)

    async def poll_video_operation(self, operation):
        self.poll_calls += 1
        if self.poll_gate is not None:
            await self.poll_gate.wait()
        item = self.polls.pop(0) if self.polls else VideoOperation(handle=operation.handle, done=False)
        if isinstance(item, Exception):
            raise item
        return item

    async def generate_image(self, prompt, aspect_ratio):
        self.image_prompts.append((prompt, aspect_ratio))
        if self.image_error is not None:
            raise self.image_error
        return "data:image/jpeg;base64,aGVsbG8="

    async def edit_image(self, prompt, image):
        self.edits.append((prompt, image))
        if self.image_error is not None:
            raise self.image_error
        return "data:image/png;base64,ZWRpdGVk"

    async def get_bot_response(self, message):
        self.chat_messages.append(message)
        if self.chat_error is not None:
            raise self.chat_error
        return f"Try: {message}, at golden hour"


def pending(handle: str = "operations/1") -> VideoOperation:
    return VideoOperation(handle=handle, done=False)


def finished(video_url: str | None, handle: str = "operations/1") -> VideoOperation:
    return VideoOperation(handle=handle, done=True, video_url=video_url)


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def image(png_bytes: bytes) -> ImagePayload:
    return ImagePayload(data=png_bytes, mime_type="image/png")


@pytest.fixture
def gate() -> CredentialGate:
    g = CredentialGate(default_api_key="test-key")
    g.check_availability()
    return g


@pytest.fixture
def provider() -> FakeStudioProvider:
    return FakeStudioProvider()


@pytest.fixture
async def job(gate: CredentialGate, provider: FakeStudioProvider):
    # Long intervals: tests drive ticks by hand unless they build their own job.
    j = VideoJob(
        gate=gate,
        provider_factory=lambda _gate: provider,
        poll_interval=3600,
        message_interval=3600,
    )
    yield j
    j.teardown()
