from __future__ import annotations

import base64
from dataclasses import dataclass
from io import BytesIO

from PIL import Image, UnidentifiedImageError

from reze_studio.errors import ValidationError

# Pillow format name -> MIME type the providers accept.
_FORMAT_MIME = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "WEBP": "image/webp",
    "GIF": "image/gif",
    "HEIC": "image/heic",
    "HEIF": "image/heif",
}


@dataclass(frozen=True)
class ImagePayload:
    data: bytes
    mime_type: str

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_url(self) -> str:
        return to_data_url(self.data, self.mime_type)


def to_data_url(data: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def parse_data_url(data_url: str) -> ImagePayload:
    """Inverse of `to_data_url`; used for downloads of in-session results."""
    header, sep, body = data_url.partition(",")
    if not sep or not header.startswith("data:") or not header.endswith(";base64"):
        raise ValueError("not a base64 data URL")
    mime_type = header[len("data:") : -len(";base64")] or "application/octet-stream"
    return ImagePayload(data=base64.b64decode(body), mime_type=mime_type)


def image_payload_from_upload(content: bytes, declared_mime: str | None = None) -> ImagePayload | None:
    """
    Turn an uploaded file into an ImagePayload.

    Returns None for an empty upload (the browser sends an empty part when no
    file was picked). Anything that Pillow can't identify as an image is
    rejected, whatever the browser claimed the content type was.
    """
    if not content:
        return None
    try:
        with Image.open(BytesIO(content)) as img:
            fmt = (img.format or "").upper()
    except (UnidentifiedImageError, OSError):
        raise ValidationError("The uploaded file is not a supported image.")

    mime_type = _FORMAT_MIME.get(fmt)
    if mime_type is None:
        declared = (declared_mime or "").strip().lower()
        if not declared.startswith("image/"):
            raise ValidationError("The uploaded file is not a supported image.")
        mime_type = declared
    return ImagePayload(data=content, mime_type=mime_type)
