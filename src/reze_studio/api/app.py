from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates

from reze_studio.config import settings
from reze_studio.errors import CredentialRequiredError, JobInProgressError, StudioError, ValidationError
from reze_studio.jobs.video import VideoRequest
from reze_studio.media import ImagePayload, image_payload_from_upload, parse_data_url
from reze_studio.prompts import (
    ART_STYLES,
    DEFAULT_EDIT_PROMPT,
    DEFAULT_IMAGE_PROMPT,
    DEFAULT_LIGHTING,
    DEFAULT_MOOD,
    DEFAULT_STYLE,
    DEFAULT_VIDEO_PROMPT,
    IMAGE_ASPECT_RATIOS,
    LIGHTING_OPTIONS,
    MOODS,
    OTHER_OPTION,
    VIDEO_ASPECT_RATIOS,
)
from reze_studio.sessions import SessionStore, StudioSession

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

store = SessionStore()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Stop every video job's timers before the loop goes away.
    store.close_all()


app = FastAPI(title="Reze Studio", lifespan=lifespan)

BASE_DIR = Path(__file__).resolve().parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))

MODES = {
    "generate": "Generate",
    "edit": "Edit",
    "animate": "Animate",
    "assistant": "Assistant",
}

DOWNLOAD_NAMES = {
    "generated": "reze-generated-image.jpeg",
    "edited": "reze-edited-image.png",
}


def _session(request: Request) -> StudioSession:
    return store.get_or_create(request.cookies.get(settings.session_cookie))


def _with_cookie(response: Response, session: StudioSession) -> Response:
    response.set_cookie(settings.session_cookie, session.session_id, httponly=True, samesite="lax")
    return response


def _redirect(session: StudioSession, mode: str) -> Response:
    return _with_cookie(RedirectResponse(url=f"/?mode={mode}", status_code=303), session)


async def _read_image(file: UploadFile | None) -> ImagePayload | None:
    if file is None:
        return None
    content = await file.read()
    return image_payload_from_upload(content, file.content_type)


@app.get("/", response_class=HTMLResponse)
async def index(request: Request, mode: str = "generate"):
    session = _session(request)
    if mode not in MODES:
        mode = "generate"
    job = session.video
    response = templates.TemplateResponse(
        request=request,
        name="index.html",
        context={
            "mode": mode,
            "modes": MODES,
            "session": session,
            "job": job,
            "job_state": job.snapshot(),
            # Re-render while the animate tab is waiting on the provider.
            "refresh_seconds": int(max(1, job.message_interval)) if mode == "animate" and job.is_active else None,
            "art_styles": ART_STYLES,
            "moods": MOODS,
            "lighting_options": LIGHTING_OPTIONS,
            "other_option": OTHER_OPTION,
            "image_aspect_ratios": IMAGE_ASPECT_RATIOS,
            "video_aspect_ratios": VIDEO_ASPECT_RATIOS,
            "default_image_prompt": DEFAULT_IMAGE_PROMPT,
            "default_edit_prompt": DEFAULT_EDIT_PROMPT,
            "default_video_prompt": DEFAULT_VIDEO_PROMPT,
            "default_style": DEFAULT_STYLE,
            "default_mood": DEFAULT_MOOD,
            "default_lighting": DEFAULT_LIGHTING,
        },
    )
    return _with_cookie(response, session)


@app.post("/images/generate")
async def generate_image(
    request: Request,
    prompt: str = Form(""),
    aspect_ratio: str = Form("16:9"),
    style: str = Form(""),
    mood: str = Form(""),
    lighting: str = Form(""),
    custom_style: str = Form(""),
    custom_mood: str = Form(""),
    custom_lighting: str = Form(""),
):
    session = _session(request)
    await session.generate_image(
        prompt=prompt,
        aspect_ratio=aspect_ratio,
        style=style or None,
        mood=mood or None,
        lighting=lighting or None,
        custom_style=custom_style,
        custom_mood=custom_mood,
        custom_lighting=custom_lighting,
    )
    return _redirect(session, "generate")


@app.post("/images/edit")
async def edit_image(
    request: Request,
    prompt: str = Form(""),
    file: UploadFile | None = File(None),
):
    session = _session(request)
    try:
        session.select_edit_source(await _read_image(file))
    except ValidationError as exc:
        session.edited.error = str(exc)
        return _redirect(session, "edit")
    await session.edit_image(prompt)
    return _redirect(session, "edit")


@app.get("/images/{kind}/download")
async def download_image(request: Request, kind: str):
    if kind not in DOWNLOAD_NAMES:
        raise HTTPException(status_code=404, detail="unknown image kind")
    session = _session(request)
    panel = session.generated if kind == "generated" else session.edited
    if not panel.result:
        raise HTTPException(status_code=404, detail="no image to download")
    try:
        payload = parse_data_url(panel.result)
    except ValueError:
        raise HTTPException(status_code=500, detail="stored image is not downloadable")
    return Response(
        content=payload.data,
        media_type=payload.mime_type,
        headers={"Content-Disposition": f'attachment; filename="{DOWNLOAD_NAMES[kind]}"'},
    )


@app.post("/chat")
async def chat(request: Request, message: str = Form("")):
    session = _session(request)
    await session.send_chat(message)
    return _redirect(session, "assistant")


@app.post("/video/key")
async def select_api_key(request: Request, api_key: str = Form("")):
    session = _session(request)
    session.gate.request_selection(api_key)
    session.video_notice = None
    return _redirect(session, "animate")


@app.post("/video/jobs")
async def submit_video(
    request: Request,
    prompt: str = Form(DEFAULT_VIDEO_PROMPT),
    aspect_ratio: str = Form("16:9"),
    file: UploadFile | None = File(None),
):
    session = _session(request)
    if aspect_ratio not in VIDEO_ASPECT_RATIOS:
        session.video_notice = f"Unsupported aspect ratio: {aspect_ratio}"
        return _redirect(session, "animate")
    try:
        image = await _read_image(file)
        await session.video.submit(VideoRequest(prompt=prompt, image=image, aspect_ratio=aspect_ratio))
    except (ValidationError, CredentialRequiredError, JobInProgressError) as exc:
        session.video_notice = str(exc)
    else:
        session.video_notice = None
    return _redirect(session, "animate")


@app.get("/video/status")
async def video_status(request: Request):
    session = store.get(request.cookies.get(settings.session_cookie))
    if session is None:
        raise HTTPException(status_code=404, detail="session not found")
    state = session.video.snapshot()
    state["notice"] = session.video_notice
    return JSONResponse(state)


@app.post("/session/close")
async def close_session(request: Request):
    session_id = request.cookies.get(settings.session_cookie)
    if session_id:
        store.close_session(session_id)
    response = RedirectResponse(url="/", status_code=303)
    response.delete_cookie(settings.session_cookie)
    return response


@app.exception_handler(StudioError)
async def studio_error_handler(request: Request, exc: StudioError):
    logger.warning("Unhandled studio error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": str(exc)})
