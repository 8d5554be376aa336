from loguru import logger

from core.constants import ASPECT_RATIO_VALUES
from core.models import Activity, Plan, Profile
from llm.base import AIRouter, LiveConnection
from llm.prompts import (
    ACTIVITY_SCHEMA,
    LIVE_SYSTEM_INSTRUCTION,
    PLAN_SCHEMA,
    build_activities_prompt,
    build_image_prompt,
    build_plan_prompt,
)

ACTIVITIES_ERROR = (
    "Failed to generate activities. The AI may be experiencing high demand. "
    "Please try again later."
)
PLAN_ERROR = "Failed to generate a plan. The AI may be busy. Please try again."
IMAGE_ERROR = "Failed to generate image. The AI may be busy. Please try again."
EDIT_ERROR = "Failed to edit image. The AI may be busy. Please try again."

INVALID_IMAGE_FILE = "Please upload a valid image file (e.g., JPEG, PNG)."
MISSING_EDIT_INPUT = "Please upload an image and provide edit instructions."
MISSING_IMAGE_PROMPT = "Please describe the image you want to create."
NO_ACTIVITIES_SELECTED = "Please go back and select some activities to build your plan."


class InputError(Exception):
    """The request is incomplete; raised before any call to the AI service."""


class GenerationError(Exception):
    """An AI call failed. The message is safe to show to the parent."""


class NurtureService:
    """The four AI call sites, each with its own failure message."""

    def __init__(self, router: AIRouter):
        self.router = router

    async def generate_activities(self, profile: Profile) -> list[Activity]:
        prompt = build_activities_prompt(profile)
        try:
            data = await self.router.get_provider().generate_json(prompt, ACTIVITY_SCHEMA)
            if not isinstance(data, list):
                raise ValueError(f"expected a list of activities, got {type(data).__name__}")
            activities = [Activity.model_validate(item) for item in data]
        except Exception as e:
            logger.error("Error generating activities: {}", e)
            raise GenerationError(ACTIVITIES_ERROR) from e

        logger.info("Generated {} activities for {}", len(activities), profile.skill)
        return activities

    async def generate_plan(self, activities: list[Activity], profile: Profile) -> Plan:
        if not activities:
            raise InputError(NO_ACTIVITIES_SELECTED)

        prompt = build_plan_prompt(activities, profile)
        try:
            data = await self.router.get_provider().generate_json(prompt, PLAN_SCHEMA)
            plan = Plan.model_validate(data)
        except Exception as e:
            logger.error("Error generating plan: {}", e)
            raise GenerationError(PLAN_ERROR) from e

        logger.info("Generated plan '{}' with {} slots", plan.title, len(plan.schedule))
        return plan

    async def generate_image(self, prompt: str, aspect_ratio: str) -> str:
        if not prompt or not prompt.strip():
            raise InputError(MISSING_IMAGE_PROMPT)
        if aspect_ratio not in ASPECT_RATIO_VALUES:
            raise InputError(f"Unsupported aspect ratio: {aspect_ratio}")

        try:
            return await self.router.get_provider().generate_image(
                build_image_prompt(prompt), aspect_ratio
            )
        except Exception as e:
            logger.error("Error generating image: {}", e)
            raise GenerationError(IMAGE_ERROR) from e

    async def edit_image(self, image_b64: str, mime_type: str, instruction: str) -> str:
        if mime_type and not mime_type.startswith("image/"):
            raise InputError(INVALID_IMAGE_FILE)
        if not image_b64 or not mime_type or not instruction or not instruction.strip():
            raise InputError(MISSING_EDIT_INPUT)

        try:
            return await self.router.get_provider().edit_image(image_b64, mime_type, instruction)
        except Exception as e:
            logger.error("Error editing image: {}", e)
            raise GenerationError(EDIT_ERROR) from e

    async def connect_live(self) -> LiveConnection:
        return await self.router.get_provider().connect_live(LIVE_SYSTEM_INSTRUCTION)
