from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional

from loguru import logger

from audio.pcm import AudioBlob
from core.config import ConfigManager


class AIServiceError(Exception):
    """A call to the AI service failed or returned nothing usable."""


@dataclass
class LiveServerEvent:
    """One inbound message from a live voice session, reduced to what we use."""

    input_transcription: Optional[str] = None
    output_transcription: Optional[str] = None
    audio_data: Optional[str] = None  # base64 PCM16 at the output rate
    turn_complete: bool = False
    interrupted: bool = False


class LiveConnection(ABC):
    """An open bidirectional voice session with the AI service."""

    @abstractmethod
    async def send_audio(self, blob: AudioBlob) -> None:
        ...

    @abstractmethod
    def events(self) -> AsyncIterator[LiveServerEvent]:
        """Yield server events until the session ends."""
        ...

    @abstractmethod
    async def close(self) -> None:
        ...


class BaseAIProvider(ABC):
    """Abstract base class for generative-AI backends."""

    @abstractmethod
    async def generate_json(self, prompt: str, schema: dict) -> Any:
        """Run a structured-output request and return the parsed JSON."""
        ...

    @abstractmethod
    async def generate_image(self, prompt: str, aspect_ratio: str) -> str:
        """Return one base64-encoded JPEG."""
        ...

    @abstractmethod
    async def edit_image(self, image_b64: str, mime_type: str, instruction: str) -> str:
        """Return the base64-encoded edited image."""
        ...

    @abstractmethod
    async def connect_live(self, system_instruction: str) -> LiveConnection:
        ...


class AIRouter:
    """Hands out the configured AI provider."""

    def __init__(self, config_manager: ConfigManager, provider: Optional[BaseAIProvider] = None):
        self.config_manager = config_manager
        self._provider: Optional[BaseAIProvider] = None
        self._pinned = provider  # fixed provider, e.g. a fake in tests

    def get_provider(self) -> BaseAIProvider:
        """Get or create the Gemini provider.

        Re-reads the API key and model names each time so that updates
        via the settings endpoints take effect without restart.
        """
        if self._pinned is not None:
            return self._pinned

        current_key = self.config_manager.api_key
        models = self.config_manager.config.models

        cached = self._provider
        if (
            cached is not None
            and getattr(cached, "api_key", None) == current_key
            and getattr(cached, "models", None) == models
        ):
            return cached

        from llm.providers.gemini_provider import GeminiProvider

        self._provider = GeminiProvider(api_key=current_key, models=models)
        logger.info("Gemini provider initialized (text model: {}).", models.text)
        return self._provider
