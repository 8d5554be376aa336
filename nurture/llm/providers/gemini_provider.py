import base64
import contextlib
import json
from typing import Any, AsyncIterator, Optional

from loguru import logger

from audio.pcm import AudioBlob
from core.config import ModelsConfig
from llm.base import AIServiceError, BaseAIProvider, LiveConnection, LiveServerEvent


def to_live_event(message) -> Optional[LiveServerEvent]:
    """Reduce a google-genai LiveServerMessage to the fields the relay uses."""
    content = getattr(message, "server_content", None)
    if content is None:
        return None

    event = LiveServerEvent(
        turn_complete=bool(content.turn_complete),
        interrupted=bool(content.interrupted),
    )
    if content.input_transcription is not None:
        event.input_transcription = content.input_transcription.text or ""
    if content.output_transcription is not None:
        event.output_transcription = content.output_transcription.text or ""

    # Audio arrives as raw PCM bytes in the first part of the model turn
    model_turn = content.model_turn
    if model_turn is not None and model_turn.parts:
        inline = model_turn.parts[0].inline_data
        if inline is not None and inline.data:
            event.audio_data = base64.b64encode(inline.data).decode("ascii")
    return event


class GeminiLiveConnection(LiveConnection):
    """Wraps an open google-genai live session."""

    def __init__(self, session, exit_stack: contextlib.AsyncExitStack):
        self._session = session
        self._exit_stack = exit_stack

    async def send_audio(self, blob: AudioBlob) -> None:
        from google.genai import types

        await self._session.send_realtime_input(
            audio=types.Blob(data=blob.to_bytes(), mime_type=blob.mime_type)
        )

    async def events(self) -> AsyncIterator[LiveServerEvent]:
        from websockets.exceptions import ConnectionClosedOK

        try:
            # receive() ends after every turn; keep reading until the socket closes
            while True:
                async for message in self._session.receive():
                    event = to_live_event(message)
                    if event is not None:
                        yield event
        except ConnectionClosedOK:
            logger.info("Gemini live session closed by server.")

    async def close(self) -> None:
        await self._exit_stack.aclose()


class GeminiProvider(BaseAIProvider):
    """Google Gemini provider for JSON, image and live-audio requests."""

    def __init__(self, api_key: str, models: Optional[ModelsConfig] = None):
        self.api_key = api_key
        self.models = models or ModelsConfig()
        self._client = None

    def _ensure_client(self):
        if not self.api_key:
            raise AIServiceError("Gemini API key not configured.")
        if self._client is None:
            from google import genai
            self._client = genai.Client(api_key=self.api_key)

    async def generate_json(self, prompt: str, schema: dict) -> Any:
        self._ensure_client()
        from google.genai import types

        try:
            response = await self._client.aio.models.generate_content(
                model=self.models.text,
                contents=prompt,
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    response_schema=schema,
                ),
            )
        except Exception as e:
            raise AIServiceError(f"Gemini request failed: {e}") from e

        text = (response.text or "").strip()
        if not text:
            raise AIServiceError("Gemini returned an empty response.")
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise AIServiceError(f"Gemini returned invalid JSON: {e}") from e

    async def generate_image(self, prompt: str, aspect_ratio: str) -> str:
        self._ensure_client()
        from google.genai import types

        try:
            response = await self._client.aio.models.generate_images(
                model=self.models.image,
                prompt=prompt,
                config=types.GenerateImagesConfig(
                    number_of_images=1,
                    output_mime_type="image/jpeg",
                    aspect_ratio=aspect_ratio,
                ),
            )
        except Exception as e:
            raise AIServiceError(f"Gemini image request failed: {e}") from e

        images = response.generated_images or []
        if images and images[0].image is not None and images[0].image.image_bytes:
            return base64.b64encode(images[0].image.image_bytes).decode("ascii")
        raise AIServiceError("No image was generated.")

    async def edit_image(self, image_b64: str, mime_type: str, instruction: str) -> str:
        self._ensure_client()
        from google.genai import types

        try:
            response = await self._client.aio.models.generate_content(
                model=self.models.image_edit,
                contents=[
                    types.Part.from_bytes(data=base64.b64decode(image_b64), mime_type=mime_type),
                    types.Part.from_text(text=instruction),
                ],
                config=types.GenerateContentConfig(
                    response_modalities=[types.Modality.IMAGE],
                ),
            )
        except Exception as e:
            raise AIServiceError(f"Gemini edit request failed: {e}") from e

        if response.candidates:
            content = response.candidates[0].content
            for part in (content.parts if content is not None else None) or []:
                if part.inline_data is not None and part.inline_data.data:
                    return base64.b64encode(part.inline_data.data).decode("ascii")
        raise AIServiceError("No edited image was returned from the model.")

    async def connect_live(self, system_instruction: str) -> LiveConnection:
        self._ensure_client()
        from google.genai import types

        config = types.LiveConnectConfig(
            response_modalities=[types.Modality.AUDIO],
            input_audio_transcription=types.AudioTranscriptionConfig(),
            output_audio_transcription=types.AudioTranscriptionConfig(),
            system_instruction=system_instruction,
        )
        stack = contextlib.AsyncExitStack()
        try:
            session = await stack.enter_async_context(
                self._client.aio.live.connect(model=self.models.live, config=config)
            )
        except Exception as e:
            await stack.aclose()
            raise AIServiceError(f"Gemini live connection failed: {e}") from e

        logger.info("Gemini live session opened (model: {}).", self.models.live)
        return GeminiLiveConnection(session, stack)
