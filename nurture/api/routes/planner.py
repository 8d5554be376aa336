from typing import Optional, Union

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel, ValidationError

from core.render import planner_view
from llm.service import InputError

router = APIRouter()


class ProfileUpdate(BaseModel):
    # Form inputs may arrive as text; Profile does the coercion
    age_years: Optional[Union[int, float, str]] = None
    age_months: Optional[Union[int, float, str]] = None
    skill: Optional[str] = None
    special_needs: Optional[str] = None


class SpeechInput(BaseModel):
    transcript: str


class SelectionToggle(BaseModel):
    name: str


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


@router.get("")
async def get_planner(request: Request):
    """Current step, profile, activities, selection and plan."""
    return planner_view(request.app.state.shared_state.planner)


@router.put("/profile")
async def update_profile(body: ProfileUpdate, request: Request):
    """Edit the child's profile fields."""
    planner = request.app.state.planner
    try:
        planner.update_profile(**body.model_dump(exclude_none=True))
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=e.errors(include_url=False, include_context=False),
        )
    return planner_view(planner.state)


@router.post("/skill-from-speech")
async def skill_from_speech(body: SpeechInput, request: Request):
    """Pick the skill focus from a dictated phrase."""
    planner = request.app.state.planner
    skill = planner.skill_from_speech(body.transcript)
    return {"matched": skill is not None, "skill": planner.state.profile.skill}


@router.post("/activities")
async def generate_activities(request: Request):
    """Ask the AI for activities matching the profile."""
    planner = request.app.state.planner
    await planner.generate_activities()
    return planner_view(planner.state)


@router.post("/selection")
async def toggle_selection(body: SelectionToggle, request: Request):
    """Add an activity to the plan, or remove it if already chosen."""
    planner = request.app.state.planner
    try:
        planner.toggle_activity(body.name)
    except InputError as e:
        raise _bad_request(str(e))
    return planner_view(planner.state)


@router.post("/plan")
async def generate_plan(request: Request):
    """Build the daily plan from the selected activities (also "Try Again")."""
    planner = request.app.state.planner
    try:
        await planner.generate_plan()
    except InputError as e:
        raise _bad_request(str(e))
    return planner_view(planner.state)


@router.post("/back")
async def back_to_activities(request: Request):
    planner = request.app.state.planner
    planner.back_to_activities()
    return planner_view(planner.state)


@router.post("/reset")
async def start_over(request: Request):
    """Start over from the profile form."""
    planner = request.app.state.planner
    planner.start_over()
    return planner_view(planner.state)
