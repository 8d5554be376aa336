"""In-memory stand-ins for the AI service and audio devices."""
import asyncio
import base64

import numpy as np

from audio.audio_capture import MicrophoneSource, MicrophoneUnavailableError
from audio.audio_player import SpeakerSink
from llm.base import AIServiceError, BaseAIProvider, LiveConnection, LiveServerEvent

SAMPLE_ACTIVITIES = [
    {
        "name": "Texture Treasure Box",
        "description": "Explore different textures hidden in a box.",
        "materials": ["Shoebox", "Cotton balls", "Sponge"],
        "instructions": ["Fill the box.", "Let the child reach in and feel each item."],
        "developmentalBenefit": "Builds tactile discrimination and fine motor control.",
    },
    {
        "name": "Pillow Mountain Climb",
        "description": "Crawl over a soft pile of pillows.",
        "materials": [],
        "instructions": ["Stack pillows on the floor.", "Encourage crawling over them."],
        "developmentalBenefit": "Strengthens gross motor skills and balance.",
    },
]

SAMPLE_PLAN = {
    "title": "A Day of Fun and Growth!",
    "schedule": [
        {"time": "Morning (9:00 AM - 10:00 AM)", "activityName": "Texture Treasure Box",
         "description": "Explore textures together."},
        {"time": "Lunch (12:00 PM)", "activityName": "Lunch Time",
         "description": "A healthy meal together."},
    ],
}

FAKE_IMAGE_B64 = base64.b64encode(b"fake-image").decode("ascii")


def pcm_payload(n_samples: int, value: int = 1000) -> str:
    """Base64 PCM16 payload with n samples."""
    return base64.b64encode(np.full(n_samples, value, dtype="<i2").tobytes()).decode("ascii")


class FakeLiveConnection(LiveConnection):
    def __init__(self, events=None, error: Exception = None):
        self.sent = []
        self.closed = False
        self.send_gate = asyncio.Event()
        self.send_gate.set()
        self._events = list(events or [])
        self._error = error
        self._hold_open = events is None and error is None
        self._done = asyncio.Event()

    async def send_audio(self, blob):
        await self.send_gate.wait()
        self.sent.append(blob)

    async def events(self):
        for event in self._events:
            yield event
            await asyncio.sleep(0)
        if self._error is not None:
            raise self._error
        if self._hold_open:
            await self._done.wait()

    async def close(self):
        self.closed = True
        self._done.set()


class FakeProvider(BaseAIProvider):
    def __init__(self):
        self.json_responses = []
        self.json_calls = []
        self.image_calls = []
        self.edit_calls = []
        self.fail = False
        self.live = FakeLiveConnection()
        self.system_instruction = None

    async def generate_json(self, prompt, schema):
        self.json_calls.append((prompt, schema))
        if self.fail:
            raise AIServiceError("quota exceeded")
        return self.json_responses.pop(0)

    async def generate_image(self, prompt, aspect_ratio):
        self.image_calls.append((prompt, aspect_ratio))
        if self.fail:
            raise AIServiceError("No image was generated.")
        return FAKE_IMAGE_B64

    async def edit_image(self, image_b64, mime_type, instruction):
        self.edit_calls.append((image_b64, mime_type, instruction))
        if self.fail:
            raise AIServiceError("No edited image was returned from the model.")
        return FAKE_IMAGE_B64

    async def connect_live(self, system_instruction):
        self.system_instruction = system_instruction
        return self.live


class FakeMicrophone(MicrophoneSource):
    def __init__(self, blocks=None, fail: bool = False):
        self._blocks = list(blocks or [])
        self.fail = fail
        self.yielded = 0
        self.opened = False
        self.closed = False
        self._stop = asyncio.Event()

    async def open(self):
        if self.fail:
            raise MicrophoneUnavailableError("permission denied")
        self.opened = True

    async def blocks(self):
        for block in self._blocks:
            self.yielded += 1
            yield block
        # A real microphone keeps going until closed
        await self._stop.wait()

    def close(self):
        self.closed = True
        self._stop.set()


class FakeSpeaker(SpeakerSink):
    def __init__(self, sample_rate: int = 24000):
        self.sample_rate = sample_rate
        self.now = 0.0
        self.started = []  # (handle, when, n_samples)
        self.stopped = []
        self.callbacks = {}
        self.closed = False
        self._next = 0

    def current_time(self):
        return self.now

    def start(self, samples, when, on_ended=None):
        handle = self._next
        self._next += 1
        self.started.append((handle, when, len(samples)))
        self.callbacks[handle] = on_ended
        return handle

    def finish(self, handle):
        """Simulate a buffer playing to its end."""
        callback = self.callbacks.pop(handle)
        if callback is not None:
            callback(handle)

    def stop(self, handle):
        self.stopped.append(handle)

    def close(self):
        self.closed = True


def live_event(**kwargs) -> LiveServerEvent:
    return LiveServerEvent(**kwargs)
