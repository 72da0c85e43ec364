from __future__ import annotations

import logging
from typing import Any

from reze_studio.config import settings
from reze_studio.errors import ErrorKind, ProviderError
from reze_studio.media import ImagePayload, to_data_url
from reze_studio.prompts import CHAT_SYSTEM_INSTRUCTION
from reze_studio.providers.base import VideoOperation

logger = logging.getLogger(__name__)


class GeminiProvider:
    name = "gemini"

    def __init__(self, api_key: str | None, client: Any | None = None) -> None:
        if not api_key:
            raise ProviderError("API_KEY is not set", kind=ErrorKind.CREDENTIAL_MISSING)
        self._api_key = api_key
        if client is None:
            # Imported lazily so the app can start without the dependency installed.
            from google import genai  # type: ignore

            client = genai.Client(api_key=api_key)
        self.client = client

    async def generate_image(self, prompt: str, aspect_ratio: str) -> str:
        from google.genai import types  # type: ignore

        model = settings.gemini_image_model
        logger.info("Generating image with %s (aspect_ratio=%s)", model, aspect_ratio)
        try:
            resp = await self.client.aio.models.generate_images(
                model=model,
                prompt=prompt,
                config=types.GenerateImagesConfig(
                    number_of_images=1,
                    output_mime_type="image/jpeg",
                    aspect_ratio=aspect_ratio,
                ),
            )
        except Exception as exc:
            raise _classify(exc) from exc

        for gi in getattr(resp, "generated_images", []) or []:
            img_bytes = getattr(getattr(gi, "image", None), "image_bytes", None)
            if img_bytes:
                return to_data_url(img_bytes, "image/jpeg")
        raise ProviderError("The model returned no image.")

    async def edit_image(self, prompt: str, image: ImagePayload) -> str:
        from google.genai import types  # type: ignore

        model = settings.gemini_edit_model
        logger.info("Editing %s image with %s", image.mime_type, model)
        try:
            resp = await self.client.aio.models.generate_content(
                model=model,
                contents=[
                    types.Part.from_bytes(data=image.data, mime_type=image.mime_type),
                    prompt,
                ],
                config=types.GenerateContentConfig(response_modalities=["IMAGE", "TEXT"]),
            )
        except Exception as exc:
            raise _classify(exc) from exc

        extracted = _extract_images_from_generate_content(resp)
        if not extracted:
            # The model sometimes answers in text only (e.g. a refusal); surface it.
            text = (getattr(resp, "text", None) or "").strip()
            raise ProviderError(text or "The model returned no edited image.")
        data, mime = extracted[0]
        return to_data_url(data, mime or "image/png")

    async def generate_video_from_image(
        self,
        prompt: str,
        image: ImagePayload,
        aspect_ratio: str,
    ) -> VideoOperation:
        from google.genai import types  # type: ignore

        model = settings.gemini_video_model
        logger.info("Starting video generation with %s (aspect_ratio=%s)", model, aspect_ratio)
        try:
            operation = await self.client.aio.models.generate_videos(
                model=model,
                prompt=prompt or None,
                image=types.Image(image_bytes=image.data, mime_type=image.mime_type),
                config=types.GenerateVideosConfig(
                    number_of_videos=1,
                    aspect_ratio=aspect_ratio,
                ),
            )
        except Exception as exc:
            raise _classify(exc) from exc
        return self._wrap_operation(operation)

    async def poll_video_operation(self, operation: VideoOperation) -> VideoOperation:
        try:
            updated = await self.client.aio.operations.get(operation.handle)
        except Exception as exc:
            raise _classify(exc) from exc

        # A finished operation may carry an error instead of a response.
        err = getattr(updated, "error", None)
        if getattr(updated, "done", False) and err:
            message = err.get("message") if isinstance(err, dict) else str(err)
            raise _classify_message(message or "Video generation failed.")
        return self._wrap_operation(updated)

    async def get_bot_response(self, message: str) -> str:
        from google.genai import types  # type: ignore

        try:
            resp = await self.client.aio.models.generate_content(
                model=settings.gemini_chat_model,
                contents=message,
                config=types.GenerateContentConfig(system_instruction=CHAT_SYSTEM_INSTRUCTION),
            )
        except Exception as exc:
            raise _classify(exc) from exc
        return getattr(resp, "text", "") or ""

    def _wrap_operation(self, operation: Any) -> VideoOperation:
        done = bool(getattr(operation, "done", False))
        video_url = None
        if done:
            uri = _extract_video_uri(operation)
            if uri:
                video_url = self._with_key(uri)
        return VideoOperation(handle=operation, done=done, video_url=video_url)

    def _with_key(self, uri: str) -> str:
        # Download links need the key appended before a browser can fetch them.
        sep = "&" if "?" in uri else "?"
        return f"{uri}{sep}key={self._api_key}"


def _extract_video_uri(operation: Any) -> str | None:
    response = getattr(operation, "response", None) or getattr(operation, "result", None)
    videos = getattr(response, "generated_videos", None) or []
    if not videos:
        return None
    return getattr(getattr(videos[0], "video", None), "uri", None)


def _extract_images_from_generate_content(resp: Any) -> list[tuple[bytes, str]]:
    out: list[tuple[bytes, str]] = []
    for cand in getattr(resp, "candidates", []) or []:
        content = getattr(cand, "content", None)
        parts = getattr(content, "parts", None) or []
        for part in parts:
            inline = getattr(part, "inline_data", None)
            if not inline:
                continue
            mime = getattr(inline, "mime_type", None) or ""
            data = getattr(inline, "data", None)
            if not data:
                continue
            if mime and not mime.startswith("image/"):
                continue
            out.append((data, mime))
    return out


def _classify_message(message: str, code: int | None = None) -> ProviderError:
    if "Requested entity was not found" in message:
        return ProviderError(message, kind=ErrorKind.CREDENTIAL_INVALID)
    if "API_KEY" in message or code in (401, 403):
        return ProviderError(message, kind=ErrorKind.CREDENTIAL_MISSING)
    return ProviderError(message, kind=ErrorKind.GENERIC)


def _classify(exc: Exception) -> ProviderError:
    """Map an SDK exception onto the studio's error kinds."""
    if isinstance(exc, ProviderError):
        return exc
    code = getattr(exc, "code", None)
    message = str(exc) or exc.__class__.__name__
    err = _classify_message(message, code if isinstance(code, int) else None)
    logger.warning("Gemini call failed (%s): %s", err.kind.value, message)
    return err
