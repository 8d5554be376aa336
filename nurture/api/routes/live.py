import asyncio
import itertools
import json
import time
from typing import AsyncIterator, Hashable

import numpy as np
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from loguru import logger

from audio.audio_capture import MicrophoneSource, MicrophoneUnavailableError
from audio.audio_player import EndedCallback, SpeakerSink
from audio.pcm import duration_seconds, encode_audio_block
from audio.relay import LiveRelay
from core.state import SessionBusyError

router = APIRouter()

SESSION_BUSY_CLOSE_CODE = 1013  # "try again later"
FLOAT32_LE = np.dtype("<f4")


def _control_message(text) -> dict:
    """Parse a JSON text frame; anything that is not an object reads as empty."""
    if not text:
        return {}
    try:
        message = json.loads(text)
    except json.JSONDecodeError:
        return {}
    return message if isinstance(message, dict) else {}


class WebSocketMicrophone(MicrophoneSource):
    """Microphone blocks sent by the browser as binary float32 frames.

    The browser opens with {"type": "start"}, or {"type": "mic_error"}
    when it could not get microphone access, and ends with
    {"type": "close"} or by disconnecting.
    """

    def __init__(self, websocket: WebSocket, sample_rate: int):
        self.websocket = websocket
        self.sample_rate = sample_rate
        self._closed = False

    async def open(self) -> None:
        message = await self.websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise MicrophoneUnavailableError("client left before starting")

        control = _control_message(message.get("text"))
        if control.get("type") == "mic_error":
            raise MicrophoneUnavailableError(control.get("detail") or "microphone access denied")
        if control.get("type") != "start":
            raise MicrophoneUnavailableError("expected a start message from the client")

    async def blocks(self) -> AsyncIterator[np.ndarray]:
        while not self._closed:
            message = await self.websocket.receive()
            if message["type"] == "websocket.disconnect":
                return

            data = message.get("bytes")
            if data:
                usable = len(data) - len(data) % FLOAT32_LE.itemsize
                yield np.frombuffer(data[:usable], dtype=FLOAT32_LE)
                continue

            if _control_message(message.get("text")).get("type") == "close":
                return

    def close(self) -> None:
        self._closed = True


class WebSocketSpeaker(SpeakerSink):
    """Forwards scheduled buffers to the browser for playback.

    `start` times are seconds on this session's clock, which starts at
    zero when the socket opens; the browser offsets them by its own
    clock reading at that moment.
    """

    def __init__(self, outbox: asyncio.Queue, sample_rate: int):
        self.sample_rate = sample_rate
        self._outbox = outbox
        self._origin = time.monotonic()
        self._handles = itertools.count()
        self._timers: dict = {}

    def current_time(self) -> float:
        return time.monotonic() - self._origin

    def start(self, samples: np.ndarray, when: float, on_ended: EndedCallback = None) -> Hashable:
        handle = next(self._handles)
        self._outbox.put_nowait({
            "type": "audio",
            "id": handle,
            "start": when,
            "sample_rate": self.sample_rate,
            "data": encode_audio_block(samples, self.sample_rate).data,
        })
        end = when + duration_seconds(samples, self.sample_rate)
        loop = asyncio.get_running_loop()
        self._timers[handle] = loop.call_later(
            max(0.0, end - self.current_time()), self._ended, handle, on_ended
        )
        return handle

    def _ended(self, handle, on_ended: EndedCallback) -> None:
        self._timers.pop(handle, None)
        if on_ended is not None:
            on_ended(handle)

    def stop(self, handle: Hashable) -> None:
        timer = self._timers.pop(handle, None)
        if timer is not None:
            timer.cancel()
            self._outbox.put_nowait({"type": "stop", "ids": [handle]})

    def close(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()


async def _drain_outbox(websocket: WebSocket, outbox: asyncio.Queue) -> None:
    while True:
        message = await outbox.get()
        if message is None:
            return
        try:
            await websocket.send_json(message)
        except Exception as e:
            logger.debug("Live socket send failed: {}", e)
            return


@router.websocket("/live")
async def live_chat(websocket: WebSocket):
    """Voice chat with the parenting assistant."""
    app = websocket.app
    state = app.state.shared_state
    audio = app.state.config_manager.config.audio

    await websocket.accept()
    outbox: asyncio.Queue = asyncio.Queue()

    def on_update(kind: str) -> None:
        if kind == "status":
            outbox.put_nowait({"type": "status", "status": relay.status})
        else:
            outbox.put_nowait({"type": "transcripts", "entries": relay.state.transcript.snapshot()})

    relay = LiveRelay(
        connect=app.state.service.connect_live,
        microphone=WebSocketMicrophone(websocket, audio.input_sample_rate),
        speaker=WebSocketSpeaker(outbox, audio.output_sample_rate),
        queue_size=audio.send_queue_size,
        on_update=on_update,
    )

    try:
        state.acquire_live_session(relay)
    except SessionBusyError as e:
        logger.warning("Rejected live session: {}", e)
        await websocket.send_json({"type": "status", "status": str(e)})
        await websocket.close(code=SESSION_BUSY_CLOSE_CODE)
        return

    writer = asyncio.create_task(_drain_outbox(websocket, outbox))
    try:
        if await relay.start():
            await relay.wait()
    finally:
        await relay.close()
        state.release_live_session(relay)
        outbox.put_nowait(None)
        await writer
        try:
            await websocket.close()
        except (RuntimeError, WebSocketDisconnect):
            pass  # already closed by the client
