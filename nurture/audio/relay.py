import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from loguru import logger

from audio.audio_capture import MicrophoneSource, MicrophoneUnavailableError
from audio.audio_player import PlaybackScheduler, SpeakerSink
from audio.pcm import decode_audio_payload, encode_audio_block
from audio.transcript import TranscriptLog
from core.models import TranscriptSource
from llm.base import LiveConnection, LiveServerEvent

STATUS_CONNECTING = "Connecting..."
STATUS_INITIALIZING = "Initializing..."
STATUS_LISTENING = "Listening... Speak now!"
STATUS_MIC_ERROR = "Error: Could not access microphone."
STATUS_CLOSED = "Session closed."
STATUS_CONNECTION_ERROR = "Connection error. Please try again. {}"

DEFAULT_QUEUE_SIZE = 32

Connector = Callable[[], Awaitable[LiveConnection]]
UpdateCallback = Callable[[str], None]  # receives "status" or "transcripts"


@dataclass
class LiveSessionState:
    """Everything one voice session owns: transcript, playback clock, status."""

    transcript: TranscriptLog
    playback: PlaybackScheduler
    status: str = STATUS_CONNECTING
    blocks_sent: int = 0


class LiveRelay:
    """Relays microphone audio to a live AI session and plays the replies.

    Three tasks per session:
      1. capture: microphone blocks -> encoded blobs -> bounded queue
      2. sender:  queue -> live connection
      3. receiver: live connection -> transcript / playback scheduler

    The capture side waits when the queue is full, so a slow transport
    holds back capture instead of growing memory.
    """

    def __init__(
        self,
        connect: Connector,
        microphone: MicrophoneSource,
        speaker: SpeakerSink,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        on_update: Optional[UpdateCallback] = None,
    ):
        self._connect = connect
        self.microphone = microphone
        self.speaker = speaker
        self.state = LiveSessionState(
            transcript=TranscriptLog(),
            playback=PlaybackScheduler(speaker),
        )
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._on_update = on_update
        self._connection: Optional[LiveConnection] = None
        self._tasks: list[asyncio.Task] = []
        self._close_task: Optional[asyncio.Task] = None
        self._closed = False
        self._failed = False

    @property
    def status(self) -> str:
        return self.state.status

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _set_status(self, status: str) -> None:
        self.state.status = status
        logger.info("[LIVE] {}", status)
        self._notify("status")

    def _notify(self, kind: str) -> None:
        if self._on_update is not None:
            self._on_update(kind)

    async def start(self) -> bool:
        """Open the microphone and the remote session, then start relaying.

        Returns False when setup was aborted; the status says why.
        """
        self._set_status(STATUS_CONNECTING)
        try:
            await self.microphone.open()
        except MicrophoneUnavailableError as e:
            logger.error("Failed to start live session: {}", e)
            self._failed = True
            self._set_status(STATUS_MIC_ERROR)
            return False

        self._set_status(STATUS_INITIALIZING)
        try:
            self._connection = await self._connect()
        except Exception as e:
            logger.error("Failed to connect live session: {}", e)
            self.microphone.close()
            self._failed = True
            self._set_status(STATUS_CONNECTION_ERROR.format(e))
            return False

        self._set_status(STATUS_LISTENING)
        self._tasks = [
            asyncio.create_task(self._capture_loop()),
            asyncio.create_task(self._send_loop()),
            asyncio.create_task(self._receive_loop()),
        ]
        return True

    async def _capture_loop(self):
        try:
            async for block in self.microphone.blocks():
                blob = encode_audio_block(block, self.microphone.sample_rate)
                await self._queue.put(blob)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Microphone capture error: {}", e)
            self._failed = True
            self._set_status(STATUS_MIC_ERROR)

    async def _send_loop(self):
        while True:
            blob = await self._queue.get()
            try:
                await self._connection.send_audio(blob)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._fail(e)
                return
            self.state.blocks_sent += 1

    async def _receive_loop(self):
        try:
            async for event in self._connection.events():
                self.handle_event(event)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._fail(e)
            return
        if not self._closed:
            self._set_status(STATUS_CLOSED)

    def _fail(self, error: Exception) -> None:
        logger.error("Live session error: {}", error)
        self._failed = True
        self.state.transcript.abandon_turn()
        self._notify("transcripts")
        self._set_status(STATUS_CONNECTION_ERROR.format(error))

    def handle_event(self, event: LiveServerEvent) -> None:
        """Apply one server event to the transcript and the playback queue."""
        transcript = self.state.transcript
        changed = False

        if event.input_transcription is not None:
            transcript.add_partial(TranscriptSource.USER, event.input_transcription)
            changed = True
        if event.output_transcription is not None:
            transcript.add_partial(TranscriptSource.MODEL, event.output_transcription)
            changed = True
        if event.turn_complete:
            transcript.complete_turn()
            changed = True
        if changed:
            self._notify("transcripts")

        if event.audio_data:
            samples = decode_audio_payload(event.audio_data)
            self.state.playback.enqueue(samples)

        if event.interrupted:
            logger.info("[LIVE] Interrupted, dropping queued assistant audio.")
            self.state.playback.interrupt()

    async def wait(self) -> None:
        """Wait until the microphone ends, the transport fails or the remote side closes."""
        if self._tasks:
            await asyncio.wait(self._tasks, return_when=asyncio.FIRST_COMPLETED)

    async def close(self) -> None:
        """Release local audio at once and ask the remote session to close.

        The remote close runs in the background and is not awaited.
        """
        if self._closed:
            return
        self._closed = True

        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        self.microphone.close()
        self.speaker.close()

        if self._connection is not None:
            self._close_task = asyncio.create_task(self._close_remote(self._connection))
        if not self._failed and self.state.status != STATUS_CLOSED:
            self._set_status(STATUS_CLOSED)

    @staticmethod
    async def _close_remote(connection: LiveConnection) -> None:
        try:
            await connection.close()
        except Exception as e:
            logger.error("Error closing live session: {}", e)
