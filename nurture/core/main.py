import asyncio
import sys
from pathlib import Path

from loguru import logger

from core.config import ConfigManager

# Base directory for the nurture package
BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = BASE_DIR / "data"


def setup_logging(data_dir: Path = DATA_DIR) -> None:
    logger.remove()
    logger.add(sys.stderr, level="INFO", format="{time:HH:mm:ss} | {level:<7} | {message}")
    logger.add(data_dir / "nurture.log", rotation="10 MB", retention="7 days", level="DEBUG")


def main():
    """Run the web app."""
    import uvicorn

    from api.server import create_app

    setup_logging()
    config_manager = ConfigManager(DATA_DIR)
    if not config_manager.has_api_key:
        logger.warning("No Gemini API key configured. Set GEMINI_API_KEY or use /api/settings.")

    server = config_manager.config.server
    app = create_app(config_manager)
    logger.info("=== Nurture AI Planner starting on port {} ===", server.port)
    uvicorn.run(app, host=server.host, port=server.port, log_level="warning")


async def run_local_chat(config_manager: ConfigManager) -> None:
    """Voice chat through this machine's microphone and speaker."""
    from audio.audio_capture import PyAudioMicrophone
    from audio.audio_player import PyAudioSpeaker
    from audio.relay import LiveRelay
    from llm.base import AIRouter
    from llm.service import NurtureService

    audio = config_manager.config.audio
    service = NurtureService(AIRouter(config_manager))
    printed = set()

    def on_update(kind: str) -> None:
        if kind != "transcripts":
            return
        # Only print entries once they are final
        for entry in relay.state.transcript.entries:
            if entry.is_final and entry.id not in printed:
                printed.add(entry.id)
                logger.info("{}: {}", entry.source.value, entry.text)

    relay = LiveRelay(
        connect=service.connect_live,
        microphone=PyAudioMicrophone(audio.input_sample_rate, audio.block_size),
        speaker=PyAudioSpeaker(audio.output_sample_rate),
        queue_size=audio.send_queue_size,
        on_update=on_update,
    )
    try:
        if await relay.start():
            await relay.wait()
    finally:
        await relay.close()


def chat():
    """Entry point for the local voice chat."""
    setup_logging()
    config_manager = ConfigManager(DATA_DIR)

    loop = asyncio.new_event_loop()
    try:
        loop.run_until_complete(run_local_chat(config_manager))
    except KeyboardInterrupt:
        logger.info("Conversation ended.")
    finally:
        loop.close()


if __name__ == "__main__":
    main()
