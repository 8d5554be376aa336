import re
from typing import Optional

from core.constants import ASPECT_RATIOS, SKILL_OPTIONS
from core.models import Activity, Plan
from core.state import PlannerState, PlannerStep

NO_ACTIVITIES_MESSAGE = "No activities found. Try a different age or skill focus."

_WHITESPACE = re.compile(r"\s+")


def activity_card(activity: Activity, selected: bool) -> dict:
    """Display fields for one activity card."""
    card = {
        "name": activity.name,
        "description": activity.description,
        "developmental_benefit": activity.developmental_benefit,
        "instructions": [
            {"step": i + 1, "text": text} for i, text in enumerate(activity.instructions)
        ],
        "selected": selected,
    }
    # Materials section only shows when there is something to gather
    if activity.materials:
        card["materials"] = list(activity.materials)
    return card


def create_plan_label(count: int) -> Optional[str]:
    if count <= 0:
        return None
    noun = "Activity" if count == 1 else "Activities"
    return f"Create Plan with {count} {noun}"


def plan_timeline(plan: Plan) -> dict:
    last = len(plan.schedule) - 1
    return {
        "title": plan.title,
        "entries": [
            {
                "time": slot.time,
                "activity_name": slot.activity_name,
                "description": slot.description,
                "is_last": i == last,
            }
            for i, slot in enumerate(plan.schedule)
        ],
    }


def download_filename(prompt: str, extension: str, prefix: str = "") -> str:
    return f"{prefix}{_WHITESPACE.sub('_', prompt)}.{extension}"


def image_result(image_b64: str, prompt: str, mime_type: str, prefix: str = "") -> dict:
    extension = mime_type.split("/", 1)[-1]
    return {
        "image_b64": image_b64,
        "mime_type": mime_type,
        "data_url": f"data:{mime_type};base64,{image_b64}",
        "filename": download_filename(prompt, extension, prefix),
    }


def planner_view(state: PlannerState) -> dict:
    """Everything the browser needs to draw the current step."""
    view = {
        "step": state.step.value,
        "profile": state.profile.model_dump(),
        "is_loading": state.is_loading,
        "error": state.error,
        "selected_count": len(state.selected),
        "create_plan_label": create_plan_label(len(state.selected)),
    }

    if state.step != PlannerStep.PROFILE:
        view["activities"] = [activity_card(a, state.is_selected(a)) for a in state.activities]
        if state.no_activities_found:
            view["message"] = NO_ACTIVITIES_MESSAGE

    if state.step == PlannerStep.PLANNER:
        view["selected"] = [a.name for a in state.selected]
        view["plan"] = plan_timeline(state.plan) if state.plan and not state.is_loading else None
        # The plan error is offered with a retry control
        view["can_retry"] = bool(state.error)

    return view


def options_view() -> dict:
    return {
        "skills": [
            {"value": value, "label": label, "group": group}
            for value, label, group in SKILL_OPTIONS
        ],
        "aspect_ratios": [{"value": value, "label": label} for value, label in ASPECT_RATIOS],
    }
