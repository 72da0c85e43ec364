from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from reze_studio.media import ImagePayload


@dataclass(frozen=True)
class VideoOperation:
    # The SDK object is passed back to the provider untouched when polling.
    handle: Any
    done: bool
    video_url: str | None = None


class ImageProvider(Protocol):
    name: str

    async def generate_image(self, prompt: str, aspect_ratio: str) -> str: ...

    async def edit_image(self, prompt: str, image: ImagePayload) -> str: ...


class VideoProvider(Protocol):
    name: str

    async def generate_video_from_image(
        self,
        prompt: str,
        image: ImagePayload,
        aspect_ratio: str,
    ) -> VideoOperation: ...

    async def poll_video_operation(self, operation: VideoOperation) -> VideoOperation: ...


class ChatProvider(Protocol):
    name: str

    async def get_bot_response(self, message: str) -> str: ...


class StudioProvider(ImageProvider, VideoProvider, Protocol):
    """Everything the image, edit and animate tabs need from one backend."""
