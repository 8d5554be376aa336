from typing import Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

router = APIRouter()


class APIKeyUpdate(BaseModel):
    gemini: Optional[str] = None


class ModelsUpdate(BaseModel):
    text: Optional[str] = None
    image: Optional[str] = None
    image_edit: Optional[str] = None
    live: Optional[str] = None


class AudioUpdate(BaseModel):
    block_size: Optional[int] = Field(default=None, gt=0)
    send_queue_size: Optional[int] = Field(default=None, gt=0)


def mask_key(value: str) -> str:
    if not value:
        return ""
    return value[:4] + "****" + value[-4:] if len(value) > 8 else "****"


@router.get("/")
async def get_settings(request: Request):
    """Get all current settings."""
    cm = request.app.state.config_manager
    # Return settings without sensitive API keys (masked)
    data = cm.config.model_dump()
    for key in data.get("api_keys", {}):
        data["api_keys"][key] = mask_key(data["api_keys"][key])
    data["api_key_configured"] = cm.has_api_key
    return data


@router.put("/api-keys")
async def update_api_keys(body: APIKeyUpdate, request: Request):
    """Update the Gemini API key."""
    cm = request.app.state.config_manager
    updates = body.model_dump(exclude_none=True)
    if updates:
        cm.update_nested("api_keys", **updates)
    return {"status": "updated"}


@router.put("/models")
async def update_models(body: ModelsUpdate, request: Request):
    """Change which Gemini models each call site uses."""
    cm = request.app.state.config_manager
    updates = body.model_dump(exclude_none=True)
    if updates:
        cm.update_nested("models", **updates)
    return {"status": "updated", "models": cm.config.models.model_dump()}


@router.put("/audio")
async def update_audio(body: AudioUpdate, request: Request):
    """Tune voice-chat block and queue sizes."""
    cm = request.app.state.config_manager
    updates = body.model_dump(exclude_none=True)
    if updates:
        cm.update_nested("audio", **updates)
    return {"status": "updated", "audio": cm.config.audio.model_dump()}


@router.post("/reset")
async def reset_settings(request: Request):
    """Drop saved settings, including the stored API key."""
    cm = request.app.state.config_manager
    cm.reset()
    return {"status": "reset", "api_key_configured": cm.has_api_key}
