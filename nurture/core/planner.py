from loguru import logger

from core.constants import match_skill
from core.models import Profile
from core.state import PlannerState, PlannerStep
from llm.service import NO_ACTIVITIES_SELECTED, GenerationError, InputError, NurtureService


class PlannerController:
    """Drives the profile -> activities -> plan flow.

    AI failures end up in `state.error` as display text; local input
    problems raise InputError before anything is sent.
    """

    def __init__(self, state: PlannerState, service: NurtureService):
        self.state = state
        self.service = service

    def update_profile(self, **fields) -> Profile:
        current = self.state.profile.model_dump()
        current.update({k: v for k, v in fields.items() if v is not None})
        self.state.profile = Profile(**current)
        return self.state.profile

    def skill_from_speech(self, transcript: str):
        """Apply a dictated skill if it matches an option. Returns the match."""
        skill = match_skill(transcript)
        if skill is not None:
            self.update_profile(skill=skill)
        return skill

    async def generate_activities(self) -> None:
        state = self.state
        state.is_loading = True
        state.error = None
        state.activities = []
        state.selected = []
        state.plan = None

        try:
            state.activities = await self.service.generate_activities(state.profile)
            state.step = PlannerStep.ACTIVITIES
            if not state.activities:
                logger.info("AI returned no activities for this profile.")
        except GenerationError as e:
            state.error = str(e)
        finally:
            state.is_loading = False

    def toggle_activity(self, name: str) -> bool:
        activity = self.state.find_activity(name)
        if activity is None:
            raise InputError(f"No activity named '{name}'.")
        return self.state.toggle(activity)

    async def generate_plan(self) -> None:
        """Open the planner and build the plan. Also serves as "Try Again"."""
        state = self.state
        if not state.selected:
            raise InputError(NO_ACTIVITIES_SELECTED)

        state.step = PlannerStep.PLANNER
        state.is_loading = True
        state.error = None
        try:
            state.plan = await self.service.generate_plan(state.selected, state.profile)
        except GenerationError as e:
            state.error = str(e)
        finally:
            state.is_loading = False

    def back_to_activities(self) -> None:
        self.state.step = PlannerStep.ACTIVITIES
        self.state.plan = None
        self.state.error = None

    def start_over(self) -> None:
        self.state.start_over()
