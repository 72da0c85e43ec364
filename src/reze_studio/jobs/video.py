"""
Image-to-video jobs.

A `VideoJob` owns one video generation at a time: it submits the request,
then keeps two asyncio timers alive while the provider works on it. The poll
timer asks the provider for the operation status; the message timer rotates
the status line shown on the page. Every exit path stops both timers,
and every awaited provider call is checked against the job's generation token
before its result is applied, so a job that was resubmitted or torn down
ignores late answers.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from reze_studio.credentials import CredentialGate
from reze_studio.errors import (
    CREDENTIAL_INVALID_MESSAGE,
    CREDENTIAL_MISSING_MESSAGE,
    CredentialRequiredError,
    ErrorKind,
    JobInProgressError,
    ProviderError,
    StudioError,
    ValidationError,
)
from reze_studio.media import ImagePayload
from reze_studio.prompts import POLLING_MESSAGES
from reze_studio.providers.base import VideoOperation, VideoProvider

logger = logging.getLogger(__name__)

SOURCE_IMAGE_REQUIRED_MESSAGE = "A source image is required to generate a video."
NO_OUTPUT_MESSAGE = "Video generation finished, but no download link was found."
CANCELLED_MESSAGE = "Video generation was cancelled."


class JobStatus(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    POLLING = "polling"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class VideoRequest:
    prompt: str
    image: ImagePayload | None
    aspect_ratio: str = "16:9"


class MessageCycle:
    """Cyclic list of status strings; advancing past the end wraps around."""

    def __init__(self, messages: Sequence[str]) -> None:
        if not messages:
            raise ValueError("MessageCycle needs at least one message")
        self._messages = list(messages)
        self.index = 0

    @property
    def current(self) -> str:
        return self._messages[self.index]

    def advance(self) -> str:
        self.index = (self.index + 1) % len(self._messages)
        return self.current

    def reset(self) -> None:
        self.index = 0


class VideoJob:
    def __init__(
        self,
        gate: CredentialGate,
        provider_factory: Callable[[CredentialGate], VideoProvider],
        poll_interval: float = 10.0,
        message_interval: float = 5.0,
        max_poll_attempts: int | None = None,
        messages: Sequence[str] = POLLING_MESSAGES,
    ) -> None:
        self._gate = gate
        self._provider_factory = provider_factory
        self.poll_interval = poll_interval
        self.message_interval = message_interval
        self.max_poll_attempts = max_poll_attempts
        self.messages = MessageCycle(messages)

        self.status = JobStatus.IDLE
        self.error: str | None = None
        self.video_url: str | None = None
        self.poll_count = 0

        self._provider: VideoProvider | None = None
        self._operation: VideoOperation | None = None
        self._generation = 0
        self._poll_in_flight = False
        self._closed = False
        self._poll_timer: asyncio.Task[None] | None = None
        self._message_timer: asyncio.Task[None] | None = None

    @property
    def is_active(self) -> bool:
        return self.status in (JobStatus.GENERATING, JobStatus.POLLING)

    @property
    def polling_message(self) -> str:
        return self.messages.current

    @property
    def poll_timer_active(self) -> bool:
        return self._poll_timer is not None

    @property
    def message_timer_active(self) -> bool:
        return self._message_timer is not None

    async def submit(self, request: VideoRequest) -> None:
        if self._closed:
            raise StudioError("This video job has been closed.")
        if self.is_active:
            raise JobInProgressError("A video is already being generated.")
        if request.image is None:
            raise ValidationError(SOURCE_IMAGE_REQUIRED_MESSAGE)
        if not self._gate.available:
            raise CredentialRequiredError("Select an API key to generate videos.")

        self._stop_timers()
        self._generation += 1
        token = self._generation
        self._poll_in_flight = False
        self._operation = None
        self._provider = None
        self.poll_count = 0
        self.error = None
        self.video_url = None
        self.messages.reset()
        self.status = JobStatus.GENERATING
        logger.info("Video job %d submitted (aspect_ratio=%s)", token, request.aspect_ratio)

        try:
            provider = self._provider_factory(self._gate)
            operation = await provider.generate_video_from_image(
                request.prompt,
                request.image,
                request.aspect_ratio,
            )
        except ProviderError as exc:
            if token == self._generation:
                self._fail(exc)
            return
        except Exception as exc:
            logger.exception("Video job %d submit raised an unexpected error", token)
            if token == self._generation:
                self._fail(_as_provider_error(exc))
            return

        if token != self._generation:
            logger.info("Video job %d was superseded before it was accepted", token)
            return

        self._provider = provider
        self._operation = operation
        self.status = JobStatus.POLLING
        self._arm_timers(token)
        logger.info("Video job %d accepted; polling every %ss", token, self.poll_interval)

    async def on_poll_tick(self) -> None:
        if self.status is not JobStatus.POLLING or self._operation is None or self._provider is None:
            return
        if self._poll_in_flight:
            logger.debug("Skipping poll tick; previous status check still outstanding")
            return

        token = self._generation
        self._poll_in_flight = True
        self.poll_count += 1
        try:
            updated = await self._provider.poll_video_operation(self._operation)
        except ProviderError as exc:
            if self._is_current(token):
                self._fail(exc)
            else:
                logger.info("Discarding stale poll failure for job %d", token)
            return
        except Exception as exc:
            logger.exception("Status check for video job %d raised an unexpected error", token)
            if self._is_current(token):
                self._fail(_as_provider_error(exc))
            return
        finally:
            if token == self._generation:
                self._poll_in_flight = False

        if not self._is_current(token):
            logger.info("Discarding stale poll result for job %d", token)
            return

        if not updated.done:
            self._operation = updated
            if self.max_poll_attempts is not None and self.poll_count >= self.max_poll_attempts:
                self._enter_error(f"Video generation timed out after {self.poll_count} status checks.")
            return

        self._operation = None
        if updated.video_url:
            self._finish(updated.video_url)
        else:
            self._enter_error(NO_OUTPUT_MESSAGE)

    def rotate_message(self) -> None:
        if self.status is JobStatus.POLLING:
            self.messages.advance()

    def cleanup(self) -> None:
        """
        Stop both timers. Safe to call any number of times.

        A job that is still generating or polling is abandoned: its pending
        results are dropped and it ends in ERROR, so the next submit is accepted.
        """
        self._stop_timers()
        if self.is_active:
            self._generation += 1
            self._poll_in_flight = False
            self._enter_error(CANCELLED_MESSAGE)

    def teardown(self) -> None:
        """Stop the job for good; results still in flight are dropped."""
        self._closed = True
        self._generation += 1
        self._poll_in_flight = False
        self._stop_timers()

    def snapshot(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "error": self.error,
            "video_url": self.video_url,
            "polling_message": self.polling_message if self.status is JobStatus.POLLING else None,
            "poll_count": self.poll_count,
            "has_api_key": self._gate.available,
        }

    def _is_current(self, token: int) -> bool:
        return token == self._generation and self.status is JobStatus.POLLING

    def _arm_timers(self, token: int) -> None:
        self._stop_timers()
        self._poll_timer = asyncio.create_task(self._poll_loop(token), name=f"video-poll-{token}")
        self._message_timer = asyncio.create_task(self._message_loop(token), name=f"video-messages-{token}")

    async def _poll_loop(self, token: int) -> None:
        while self._is_current(token):
            await asyncio.sleep(self.poll_interval)
            if not self._is_current(token):
                break
            await self.on_poll_tick()

    async def _message_loop(self, token: int) -> None:
        while self._is_current(token):
            await asyncio.sleep(self.message_interval)
            if not self._is_current(token):
                break
            self.rotate_message()

    def _stop_timers(self) -> None:
        current = _current_task()
        for task in (self._poll_timer, self._message_timer):
            # A timer that triggered the stop exits its own loop.
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._poll_timer = None
        self._message_timer = None

    def _finish(self, video_url: str) -> None:
        self._stop_timers()
        self.error = None
        self.video_url = video_url
        self.status = JobStatus.DONE
        logger.info("Video job %d done after %d status checks", self._generation, self.poll_count)

    def _fail(self, exc: ProviderError) -> None:
        if exc.kind is ErrorKind.CREDENTIAL_MISSING:
            message = CREDENTIAL_MISSING_MESSAGE
        elif exc.kind is ErrorKind.CREDENTIAL_INVALID:
            message = CREDENTIAL_INVALID_MESSAGE
        else:
            message = exc.message
        if exc.is_credential_error:
            self._gate.reset()
        self._enter_error(message)

    def _enter_error(self, message: str) -> None:
        self._stop_timers()
        self._operation = None
        self.video_url = None
        self.error = message or "An unknown error occurred."
        self.status = JobStatus.ERROR
        logger.warning("Video job %d failed: %s", self._generation, self.error)


def _as_provider_error(exc: Exception) -> ProviderError:
    return ProviderError(str(exc) or "An unknown error occurred.")


def _current_task() -> asyncio.Task[Any] | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
