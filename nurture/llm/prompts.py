from core.models import Activity, Profile

IMAGE_STYLE_PREFIX = "simple, child-friendly, cartoon style: "

LIVE_SYSTEM_INSTRUCTION = (
    "You are a friendly, knowledgeable, and supportive parenting guide from Nurture AI. "
    "Provide helpful advice, creative activity ideas, and answer questions for parents "
    "of children from birth to 12 years old. Keep your responses encouraging, concise, "
    "and easy to understand."
)

ACTIVITY_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "name": {
                "type": "STRING",
                "description": "A short, catchy name for the activity.",
            },
            "description": {
                "type": "STRING",
                "description": "A brief, one-sentence description of the activity and its purpose.",
            },
            "materials": {
                "type": "ARRAY",
                "items": {"type": "STRING"},
                "description": "A list of simple, common household items needed. If none, return an empty array.",
            },
            "instructions": {
                "type": "ARRAY",
                "items": {"type": "STRING"},
                "description": "A list of clear, step-by-step instructions for the parent to follow.",
            },
            "developmentalBenefit": {
                "type": "STRING",
                "description": (
                    "A brief explanation of how this activity specifically supports the chosen "
                    "developmental area, especially considering any special needs."
                ),
            },
        },
        "required": ["name", "description", "materials", "instructions", "developmentalBenefit"],
    },
}

PLAN_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "title": {
            "type": "STRING",
            "description": "A catchy and encouraging title for the daily plan, like 'A Day of Fun and Growth!'",
        },
        "schedule": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "time": {
                        "type": "STRING",
                        "description": "A time block for the activity, e.g., 'Morning (9:00 AM - 10:30 AM)'.",
                    },
                    "activityName": {
                        "type": "STRING",
                        "description": (
                            "The name of the activity for this time slot. Can be one of the provided "
                            "activities or a general one like 'Lunch Time' or 'Free Play'."
                        ),
                    },
                    "description": {
                        "type": "STRING",
                        "description": "A short, one-sentence description of what to do during this time block.",
                    },
                },
                "required": ["time", "activityName", "description"],
            },
        },
    },
    "required": ["title", "schedule"],
}


def describe_age(years: int, months: int) -> str:
    """Phrase a child's age as years, months, or both."""
    years = years or 0
    months = months or 0
    if years > 0 and months > 0:
        return f"{years} year(s) and {months} month(s) old"
    if years > 0:
        return f"{years} year(s) old"
    return f"{months} month(s) old"


def skill_label(skill: str) -> str:
    return skill.replace("-", " ")


def build_activities_prompt(profile: Profile) -> str:
    """Build the activity-list request for the child's profile."""
    age = describe_age(profile.age_years, profile.age_months)

    prompt = f"""You are an expert in childhood development, specializing in inclusive, home-based activities for children aged 0-12.
Generate a list of 4 simple, fun, safe, and age-appropriate developmental activities for a child who is {age}.
The activities should focus on improving their {skill_label(profile.skill)} skills and be easy to do at home.
"""

    if profile.has_special_needs:
        prompt += f"""
IMPORTANT SPECIAL CONSIDERATION: This child has the following needs: "{profile.special_needs}".
You MUST tailor the activities to be suitable and beneficial for a child with these specific needs.
For example, for a visually impaired child, focus on sensory activities involving touch and sound. For a child with motor skill challenges, suggest adaptive ways to perform tasks like using larger objects.
Ensure your suggestions are sensitive, supportive, and empowering. The "developmentalBenefit" must also address how the activity helps considering these needs.
"""

    prompt += """
For each activity, include a brief explanation highlighting how it supports the chosen developmental area.
Ensure the materials are common household items and the instructions are easy for a parent to follow."""
    return prompt


def build_plan_prompt(activities: list[Activity], profile: Profile) -> str:
    """Build the daily-schedule request around the selected activities."""
    age = describe_age(profile.age_years, profile.age_months)
    names = ", ".join(a.name for a in activities)

    prompt = f"""You are Nurture AI, an expert AI planner for children's activities.
Create a balanced and engaging daily schedule for a child who is {age}.
The schedule should be suitable for a home environment.

The parent wants to focus on these activities: "{names}".

Please create a structured daily plan that includes these activities. Also, intelligently incorporate essential daily routines like meals (breakfast, lunch, snack, dinner), a nap or quiet time, and free play. The goal is a healthy, fun, and manageable schedule for a parent at home.
"""

    if profile.has_special_needs:
        prompt += f"""
IMPORTANT SPECIAL CONSIDERATION: The child has the following needs: "{profile.special_needs}".
You MUST ensure the schedule is sensitive to these needs. For example, if the child has sensory issues, don't schedule two highly stimulating activities back-to-back. If they have motor skill challenges, ensure there is ample rest time between physically demanding activities.
"""

    prompt += "\nReturn the plan as a JSON object."
    return prompt


def build_image_prompt(description: str) -> str:
    return f"{IMAGE_STYLE_PREFIX}{description}"
