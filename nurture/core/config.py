import json
import os
from pathlib import Path
from typing import Optional

from loguru import logger
from pydantic import BaseModel, Field

API_KEY_ENV_VARS = ("GEMINI_API_KEY", "API_KEY")


class APIKeysConfig(BaseModel):
    gemini: str = ""


class ModelsConfig(BaseModel):
    text: str = "gemini-2.5-flash"
    image: str = "imagen-4.0-generate-001"
    image_edit: str = "gemini-2.5-flash-image"
    live: str = "gemini-2.5-flash-native-audio-preview-09-2025"


class AudioConfig(BaseModel):
    input_sample_rate: int = 16000
    output_sample_rate: int = 24000
    block_size: int = Field(default=4096, gt=0)  # samples per microphone block
    send_queue_size: int = Field(default=32, gt=0)  # blocks buffered before capture waits


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8080


class AppConfig(BaseModel):
    api_keys: APIKeysConfig = Field(default_factory=APIKeysConfig)
    models: ModelsConfig = Field(default_factory=ModelsConfig)
    audio: AudioConfig = Field(default_factory=AudioConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)


class ConfigManager:
    """Manages application configuration with JSON persistence."""

    def __init__(self, data_dir: Path):
        self.data_dir = data_dir
        self.config_path = data_dir / "config.json"
        self._config: Optional[AppConfig] = None

    @property
    def config(self) -> AppConfig:
        if self._config is None:
            self._config = self._load()
        return self._config

    def _load(self) -> AppConfig:
        """Load config from disk. Returns defaults if no config exists."""
        if self.config_path.exists():
            try:
                data = json.loads(self.config_path.read_text())
                logger.info("Configuration loaded from {}", self.config_path)
                return AppConfig(**data)
            except Exception as e:
                logger.error("Failed to load config: {}. Using defaults.", e)
        logger.info("No existing config found. Using defaults.")
        return AppConfig()

    def save(self) -> None:
        """Persist current config to disk."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.config_path.write_text(self.config.model_dump_json(indent=2))
        logger.debug("Configuration saved to {}", self.config_path)

    def update_nested(self, section: str, **kwargs) -> AppConfig:
        """Update fields within a nested config section."""
        current = self.config.model_dump()
        if section in current and isinstance(current[section], dict):
            current[section].update(kwargs)
        self._config = AppConfig(**current)
        self.save()
        return self._config

    def reset(self) -> AppConfig:
        """Forget saved settings and go back to the defaults."""
        self._config = AppConfig()
        if self.config_path.exists():
            self.config_path.unlink()
        logger.info("Configuration reset to defaults.")
        return self._config

    @property
    def api_key(self) -> str:
        """Gemini key from the config file, else from the process environment."""
        if self.config.api_keys.gemini:
            return self.config.api_keys.gemini
        for name in API_KEY_ENV_VARS:
            value = os.getenv(name, "").strip()
            if value:
                return value
        return ""

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)
