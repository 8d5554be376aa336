import asyncio
from abc import ABC, abstractmethod
from typing import AsyncIterator

import numpy as np
from loguru import logger

from audio.pcm import INPUT_SAMPLE_RATE

CHANNELS = 1
BLOCK_SIZE = 4096  # samples per block handed to the relay
FORMAT_DTYPE = np.float32


class MicrophoneUnavailableError(Exception):
    """The microphone could not be opened (missing device or permission denied)."""


class MicrophoneSource(ABC):
    """Supplies mono float32 blocks at the input sample rate."""

    sample_rate: int = INPUT_SAMPLE_RATE

    async def open(self) -> None:
        """Acquire the device. Raises MicrophoneUnavailableError."""

    @abstractmethod
    def blocks(self) -> AsyncIterator[np.ndarray]:
        """Yield captured blocks until the source is closed."""
        ...

    def close(self) -> None:
        """Release the device."""


class PyAudioMicrophone(MicrophoneSource):
    """Captures audio from the local microphone as a stream of float blocks.

    Tries 16kHz first (PipeWire does high-quality resampling), falls back
    to native 44100Hz / 48000Hz with linear resampling if needed.
    """

    def __init__(self, sample_rate: int = INPUT_SAMPLE_RATE, block_size: int = BLOCK_SIZE):
        self.sample_rate = sample_rate
        self.block_size = block_size
        self._stream = None
        self._pa = None
        self._capture_rate = sample_rate  # actual rate we opened the stream at
        self._capture_block = block_size  # actual block size for the capture rate
        self._closed = False

    async def open(self) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._ensure_stream)

    def _ensure_stream(self):
        """Lazily open the PyAudio stream."""
        if self._stream is not None:
            return

        try:
            import pyaudio
        except ImportError as e:
            raise MicrophoneUnavailableError("pyaudio is not installed") from e

        self._pa = pyaudio.PyAudio()

        # Try target rate first (PipeWire resamples for us), then native
        for rate in [self.sample_rate, 44100, 48000]:
            try:
                capture_block = (
                    self.block_size if rate == self.sample_rate
                    else int(self.block_size * rate / self.sample_rate)
                )
                self._stream = self._pa.open(
                    format=pyaudio.paFloat32,
                    channels=CHANNELS,
                    rate=rate,
                    input=True,
                    frames_per_buffer=capture_block,
                )
                self._capture_rate = rate
                self._capture_block = capture_block
                self._closed = False
                logger.info(
                    "Audio capture started: capture={}Hz, output={}Hz, block={}",
                    rate, self.sample_rate, self.block_size,
                )
                return
            except Exception as e:
                logger.debug("Sample rate {}Hz not supported: {}", rate, e)

        self._pa.terminate()
        self._pa = None
        raise MicrophoneUnavailableError("Could not open audio input stream at any supported rate")

    def _resample(self, block: np.ndarray) -> np.ndarray:
        """Resample from capture rate to target rate using linear interpolation."""
        if self._capture_rate == self.sample_rate:
            return block

        ratio = self.sample_rate / self._capture_rate
        indices = np.arange(self.block_size) / ratio
        indices = np.clip(indices, 0, len(block) - 1)
        idx_floor = indices.astype(np.int32)
        idx_ceil = np.minimum(idx_floor + 1, len(block) - 1)
        frac = indices - idx_floor
        resampled = block[idx_floor] * (1 - frac) + block[idx_ceil] * frac
        return resampled.astype(FORMAT_DTYPE)

    async def blocks(self) -> AsyncIterator[np.ndarray]:
        """Yield blocks at 16kHz. Non-blocking via executor."""
        self._ensure_stream()
        loop = asyncio.get_running_loop()

        while not self._closed:
            raw = await loop.run_in_executor(
                None, self._stream.read, self._capture_block, False
            )
            block = np.frombuffer(raw, dtype=FORMAT_DTYPE)
            yield self._resample(block)

    def close(self):
        self._closed = True
        if self._stream is not None:
            self._stream.stop_stream()
            self._stream.close()
            self._stream = None
        if self._pa is not None:
            self._pa.terminate()
            self._pa = None

    def __del__(self):
        self.close()
