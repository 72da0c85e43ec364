from __future__ import annotations

import pytest

from reze_studio.errors import ValidationError
from reze_studio.media import ImagePayload, image_payload_from_upload, parse_data_url, to_data_url


def test_upload_mime_comes_from_image_content(png_bytes):
    payload = image_payload_from_upload(png_bytes, declared_mime="application/octet-stream")

    assert payload == ImagePayload(data=png_bytes, mime_type="image/png")


def test_empty_upload_means_no_image():
    assert image_payload_from_upload(b"", "image/png") is None


def test_non_image_upload_is_rejected():
    with pytest.raises(ValidationError):
        image_payload_from_upload(b"%PDF-1.7 definitely not an image", "image/png")


def test_data_url_parses_back_to_bytes():
    url = to_data_url(b"\x89PNG...", "image/png")

    assert url.startswith("data:image/png;base64,")
    assert parse_data_url(url) == ImagePayload(data=b"\x89PNG...", mime_type="image/png")


def test_parse_data_url_rejects_plain_urls():
    with pytest.raises(ValueError):
        parse_data_url("https://example/video123")
