from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel

from core.constants import DEFAULT_ASPECT_RATIO
from core.render import image_result
from llm.service import GenerationError, InputError

router = APIRouter()


class ImageRequest(BaseModel):
    prompt: str
    aspect_ratio: str = DEFAULT_ASPECT_RATIO


class EditRequest(BaseModel):
    image_b64: str = ""
    mime_type: str = ""
    prompt: str = ""


@router.post("/generate")
async def generate_image(body: ImageRequest, request: Request):
    """Create a child-friendly visual aid."""
    service = request.app.state.service
    try:
        image_b64 = await service.generate_image(body.prompt, body.aspect_ratio)
    except InputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except GenerationError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    return image_result(image_b64, body.prompt, "image/jpeg")


@router.post("/edit")
async def edit_image(body: EditRequest, request: Request):
    """Apply a text instruction to an uploaded image."""
    service = request.app.state.service
    try:
        image_b64 = await service.edit_image(body.image_b64, body.mime_type, body.prompt)
    except InputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except GenerationError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    return image_result(image_b64, body.prompt, "image/png", prefix="edited_")
