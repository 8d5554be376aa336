import asyncio
import itertools
import queue
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Hashable, Optional

import numpy as np
from loguru import logger

from audio.pcm import OUTPUT_SAMPLE_RATE, duration_seconds

EndedCallback = Optional[Callable[[Hashable], None]]


class SpeakerSink(ABC):
    """Plays float32 buffers at scheduled times on its own output clock."""

    sample_rate: int = OUTPUT_SAMPLE_RATE

    @abstractmethod
    def current_time(self) -> float:
        """Output clock in seconds. Monotonic."""
        ...

    @abstractmethod
    def start(self, samples: np.ndarray, when: float, on_ended: EndedCallback = None) -> Hashable:
        """Schedule a buffer to start at `when` and return a handle for it."""
        ...

    @abstractmethod
    def stop(self, handle: Hashable) -> None:
        """Stop a scheduled or playing buffer. Unknown handles are ignored."""
        ...

    def close(self) -> None:
        """Release the output device."""


class PlaybackScheduler:
    """Queues decoded buffers back to back on a speaker's clock.

    Each buffer starts at the later of the previous buffer's end and the
    current output time, so playback is gapless and never overlaps.
    An interruption drops everything scheduled and restarts the timeline
    from the current output time.
    """

    def __init__(self, sink: SpeakerSink):
        self.sink = sink
        self.next_start_time = 0.0
        self._active: set = set()

    @property
    def active_count(self) -> int:
        return len(self._active)

    def enqueue(self, samples: np.ndarray) -> float:
        """Schedule a buffer and return its start time."""
        start = max(self.next_start_time, self.sink.current_time())
        handle = self.sink.start(samples, start, self._on_ended)
        self._active.add(handle)
        self.next_start_time = start + duration_seconds(samples, self.sink.sample_rate)
        return start

    def _on_ended(self, handle: Hashable) -> None:
        self._active.discard(handle)

    def interrupt(self) -> None:
        """Stop and discard all scheduled buffers."""
        if self._active:
            logger.debug("Interrupted: stopping {} scheduled buffer(s)", len(self._active))
        for handle in list(self._active):
            self.sink.stop(handle)
        self._active.clear()
        self.next_start_time = 0.0


class PyAudioSpeaker(SpeakerSink):
    """Plays scheduled buffers through the local sound card.

    A writer thread holds buffers until their start time and writes them
    in small chunks so a stop takes effect within one chunk.
    """

    WRITE_CHUNK = 1024  # frames per write

    def __init__(self, sample_rate: int = OUTPUT_SAMPLE_RATE):
        self.sample_rate = sample_rate
        self._origin = time.monotonic()
        self._pending: queue.PriorityQueue = queue.PriorityQueue()
        self._cancelled: set = set()
        self._live: set = set()  # handles queued or playing
        self._lock = threading.Lock()
        self._handles = itertools.count()
        self._pa = None
        self._stream = None
        self._thread: Optional[threading.Thread] = None
        self._closed = threading.Event()

    def current_time(self) -> float:
        return time.monotonic() - self._origin

    def _ensure_stream(self):
        if self._stream is not None:
            return

        import pyaudio
        self._pa = pyaudio.PyAudio()
        self._stream = self._pa.open(
            format=pyaudio.paFloat32,
            channels=1,
            rate=self.sample_rate,
            output=True,
        )
        self._thread = threading.Thread(target=self._run, name="speaker", daemon=True)
        self._thread.start()
        logger.info("Audio playback started at {}Hz", self.sample_rate)

    def start(self, samples: np.ndarray, when: float, on_ended: EndedCallback = None) -> Hashable:
        self._ensure_stream()
        handle = next(self._handles)
        with self._lock:
            self._live.add(handle)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        self._pending.put((when, handle, samples, on_ended, loop))
        return handle

    def stop(self, handle: Hashable) -> None:
        with self._lock:
            if handle in self._live:
                self._cancelled.add(handle)

    def _is_cancelled(self, handle) -> bool:
        with self._lock:
            return handle in self._cancelled

    def _run(self):
        while not self._closed.is_set():
            try:
                when, handle, samples, on_ended, loop = self._pending.get(timeout=0.1)
            except queue.Empty:
                continue

            delay = when - self.current_time()
            if delay > 0:
                self._closed.wait(delay)

            samples = np.asarray(samples, dtype=np.float32)
            for offset in range(0, len(samples), self.WRITE_CHUNK):
                if self._closed.is_set() or self._is_cancelled(handle):
                    break
                try:
                    self._stream.write(samples[offset:offset + self.WRITE_CHUNK].tobytes())
                except Exception as e:
                    logger.error("Audio playback error: {}", e)
                    break

            with self._lock:
                self._live.discard(handle)
                self._cancelled.discard(handle)
            if on_ended is not None:
                if loop is not None and not loop.is_closed():
                    loop.call_soon_threadsafe(on_ended, handle)
                else:
                    on_ended(handle)

    def close(self):
        self._closed.set()
        with self._lock:
            self._live.clear()
            self._cancelled.clear()
        if self._thread is not None:
            self._thread.join(timeout=1.0)
            self._thread = None
        if self._stream is not None:
            self._stream.stop_stream()
            self._stream.close()
            self._stream = None
        if self._pa is not None:
            self._pa.terminate()
            self._pa = None
