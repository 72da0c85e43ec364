from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from conftest import FakeStudioProvider, finished, make_png
from reze_studio.api import app as app_module
from reze_studio.config import Settings
from reze_studio.errors import ErrorKind, ProviderError
from reze_studio.sessions import SessionStore


def _settings(**overrides) -> Settings:
    values = {
        "gemini_api_key": "test-key",
        "video_poll_interval_seconds": 3600,
        "video_message_interval_seconds": 3600,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def provider() -> FakeStudioProvider:
    return FakeStudioProvider()


@pytest.fixture
def store(monkeypatch, provider) -> SessionStore:
    s = SessionStore(
        studio_provider=lambda _gate: provider,
        chat_provider=lambda _gate: provider,
        settings=_settings(),
    )
    monkeypatch.setattr(app_module, "store", s)
    return s


@pytest.fixture
def client(store):
    with TestClient(app_module.app) as c:
        yield c


def _session(client, store):
    return store.get(client.cookies.get("reze_session"))


def _png_upload():
    return {"file": ("frame.png", make_png(), "image/png")}


def test_index_sets_session_cookie(client, store):
    resp = client.get("/")

    assert resp.status_code == 200
    assert "Image Generation" in resp.text
    assert _session(client, store) is not None


def test_unknown_mode_falls_back_to_generate(client):
    resp = client.get("/?mode=nope")

    assert "Image Generation" in resp.text


def test_generate_image_composes_prompt(client, provider):
    resp = client.post(
        "/images/generate",
        data={"prompt": "A lion", "style": "Anime", "mood": "Other...", "custom_mood": "wistful", "aspect_ratio": "1:1"},
    )

    assert resp.status_code == 200
    assert provider.image_prompts == [("A lion, Anime, wistful", "1:1")]
    assert "data:image/jpeg;base64,aGVsbG8=" in resp.text


def test_generate_image_empty_prompt(client, provider):
    resp = client.post("/images/generate", data={"prompt": "   "})

    assert "Prompt cannot be empty." in resp.text
    assert provider.image_prompts == []


def test_generate_image_provider_error(client, provider):
    provider.image_error = ProviderError("quota exhausted")

    resp = client.post("/images/generate", data={"prompt": "A lion"})

    assert "API Error: quota exhausted" in resp.text


def test_download_generated_image(client):
    client.post("/images/generate", data={"prompt": "A lion"})

    resp = client.get("/images/generated/download")

    assert resp.status_code == 200
    assert resp.content == b"hello"
    assert resp.headers["content-type"] == "image/jpeg"
    assert 'filename="reze-generated-image.jpeg"' in resp.headers["content-disposition"]


def test_download_without_result_is_404(client):
    client.get("/")

    assert client.get("/images/edited/download").status_code == 404


def test_edit_image_with_upload(client, provider):
    resp = client.post("/images/edit", data={"prompt": "retro filter"}, files=_png_upload())

    assert resp.status_code == 200
    prompt, image = provider.edits[0]
    assert prompt == "retro filter"
    assert image.mime_type == "image/png"

    download = client.get("/images/edited/download")
    assert download.content == b"edited"
    assert 'filename="reze-edited-image.png"' in download.headers["content-disposition"]


def test_edit_image_requires_image(client, provider):
    resp = client.post("/images/edit", data={"prompt": "retro filter"})

    assert "An image and a prompt are required to begin editing." in resp.text
    assert provider.edits == []


def test_edit_image_provider_error(client, provider):
    provider.image_error = ProviderError("safety block")

    resp = client.post("/images/edit", data={"prompt": "retro filter"}, files=_png_upload())

    assert "API ERROR: safety block" in resp.text


def test_chat_round_trip(client, provider):
    resp = client.post("/chat", data={"message": "castle ideas"})

    assert provider.chat_messages == ["castle ideas"]
    assert "Try: castle ideas, at golden hour" in resp.text


def test_chat_error(client, provider):
    provider.chat_error = ProviderError("model overloaded")

    resp = client.post("/chat", data={"message": "castle ideas"})

    assert "SYSTEM ERROR: model overloaded" in resp.text


def test_video_status_requires_session(client):
    assert client.get("/video/status").status_code == 404


def test_video_job_happy_path(client, store, provider):
    provider.polls = [finished("https://example/video123")]

    client.post("/video/jobs", data={"prompt": "leaves rustle", "aspect_ratio": "16:9"}, files=_png_upload())
    status = client.get("/video/status").json()
    assert status["status"] == "polling"
    assert status["polling_message"] == "Initializing AI core..."

    session = _session(client, store)
    client.portal.call(session.video.on_poll_tick)

    status = client.get("/video/status").json()
    assert status["status"] == "done"
    assert status["video_url"] == "https://example/video123"
    assert status["error"] is None
    assert "https://example/video123" in client.get("/?mode=animate").text


def test_video_job_missing_image(client, provider):
    client.post("/video/jobs", data={"prompt": "leaves rustle"})

    status = client.get("/video/status").json()
    assert status["status"] == "idle"
    assert status["notice"] == "A source image is required to generate a video."
    assert provider.submitted == []


def test_video_job_rejects_unknown_aspect_ratio(client, provider):
    client.post("/video/jobs", data={"aspect_ratio": "1:1"}, files=_png_upload())

    status = client.get("/video/status").json()
    assert status["notice"] == "Unsupported aspect ratio: 1:1"
    assert provider.submitted == []


def test_video_credential_failure_asks_for_key_again(client, provider):
    provider.polls = [ProviderError("Requested entity was not found.", kind=ErrorKind.CREDENTIAL_INVALID)]
    client.post("/video/jobs", data={"prompt": "leaves rustle"}, files=_png_upload())

    session = app_module.store.get(client.cookies.get("reze_session"))
    client.portal.call(session.video.on_poll_tick)

    status = client.get("/video/status").json()
    assert status["status"] == "error"
    assert status["error"] == "API key invalid. Please re-select your API key."
    assert status["has_api_key"] is False
    assert "API Key Required for Video Generation" in client.get("/?mode=animate").text


def test_key_selection_unlocks_video(monkeypatch, provider):
    store = SessionStore(
        studio_provider=lambda _gate: provider,
        chat_provider=lambda _gate: provider,
        settings=_settings(gemini_api_key=None),
    )
    monkeypatch.setattr(app_module, "store", store)
    with TestClient(app_module.app) as client:
        page = client.get("/?mode=animate")
        assert "API Key Required for Video Generation" in page.text

        client.post("/video/jobs", data={"prompt": "x"}, files=_png_upload())
        assert client.get("/video/status").json()["notice"] == "Select an API key to generate videos."

        client.post("/video/key", data={"api_key": "user-key"})

        status = client.get("/video/status").json()
        assert status["has_api_key"] is True
        assert store.get(client.cookies.get("reze_session")).gate.api_key == "user-key"


def test_close_session_tears_down_job(client, store, provider):
    client.post("/video/jobs", data={"prompt": "leaves rustle"}, files=_png_upload())
    session = _session(client, store)
    assert session.video.poll_timer_active

    resp = client.post("/session/close", follow_redirects=False)

    assert resp.status_code == 303

    assert len(store) == 0
    assert not session.video.poll_timer_active
    assert not session.video.message_timer_active


def test_generate_tab_preselects_default_options(client):
    page = client.get("/").text

    assert 'value="Cyberpunk" checked' in page
    assert 'value="Dramatic" checked' in page
    assert 'value="Cinematic" checked' in page
    assert 'value="" checked' not in page


def test_cookieless_requests_do_not_grow_the_store(monkeypatch, provider):
    store = SessionStore(
        studio_provider=lambda _gate: provider,
        chat_provider=lambda _gate: provider,
        settings=_settings(max_sessions=5),
    )
    monkeypatch.setattr(app_module, "store", store)
    with TestClient(app_module.app) as client:
        for _ in range(20):
            client.cookies.clear()
            client.get("/")
        for _ in range(20):
            client.cookies.clear()
            client.cookies.set("reze_session", "stale")
            client.get("/")

        assert len(store) == 5
