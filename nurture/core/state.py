from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from core.models import Activity, Plan, Profile


class PlannerStep(str, Enum):
    PROFILE = "profile"        # Filling in the child's details
    ACTIVITIES = "activities"  # Choosing from the suggested activities
    PLANNER = "planner"        # Viewing the generated daily plan


class SessionBusyError(Exception):
    """A live voice session is already running."""


@dataclass
class PlannerState:
    """Form and selection state for one parent's planning flow."""

    step: PlannerStep = PlannerStep.PROFILE
    profile: Profile = field(default_factory=Profile)
    activities: list[Activity] = field(default_factory=list)
    selected: list[Activity] = field(default_factory=list)
    plan: Optional[Plan] = None
    is_loading: bool = False
    error: Optional[str] = None

    def is_selected(self, activity: Activity) -> bool:
        return any(a.name == activity.name for a in self.selected)

    def toggle(self, activity: Activity) -> bool:
        """Select or deselect by name. Returns True if now selected."""
        if self.is_selected(activity):
            self.selected = [a for a in self.selected if a.name != activity.name]
            return False
        self.selected = [*self.selected, activity]
        return True

    def find_activity(self, name: str) -> Optional[Activity]:
        for activity in self.activities:
            if activity.name == name:
                return activity
        return None

    @property
    def no_activities_found(self) -> bool:
        return (
            self.step == PlannerStep.ACTIVITIES
            and not self.is_loading
            and not self.error
            and not self.activities
        )

    def start_over(self) -> None:
        """Back to the profile form. Profile fields are kept."""
        self.step = PlannerStep.PROFILE
        self.activities = []
        self.selected = []
        self.plan = None
        self.error = None


@dataclass
class SharedState:
    """State shared by the API routes."""

    planner: PlannerState = field(default_factory=PlannerState)

    # At most one voice session owns the microphone and speaker
    live_session: Optional[Any] = None

    @property
    def has_live_session(self) -> bool:
        return self.live_session is not None

    def acquire_live_session(self, session: Any) -> None:
        if self.live_session is not None:
            raise SessionBusyError("A voice chat session is already active.")
        self.live_session = session

    def release_live_session(self, session: Any) -> None:
        if self.live_session is session:
            self.live_session = None
