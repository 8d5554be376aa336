import re
from typing import Optional

from loguru import logger

# (value, label, group) in display order
SKILL_OPTIONS = [
    # Foundational Skills
    ("cognitive-development", "Cognitive Development", "Foundational Skills"),
    ("motor-skills", "Fine & Gross Motor Skills", "Foundational Skills"),
    ("social-emotional-learning", "Social & Emotional Learning", "Foundational Skills"),
    ("language-communication", "Language & Communication", "Foundational Skills"),
    ("sensory-exploration", "Sensory Exploration", "Foundational Skills"),
    # Academic & Creative Skills
    ("reading-spelling", "Reading & Spelling", "Academic & Creative Skills"),
    ("mathematics-logic", "Mathematics & Logic", "Academic & Creative Skills"),
    ("science-nature", "Science & Nature", "Academic & Creative Skills"),
    ("art-creativity", "Art & Creativity", "Academic & Creative Skills"),
]

SKILL_VALUES = [value for value, _, _ in SKILL_OPTIONS]
DEFAULT_SKILL = SKILL_VALUES[0]

# (value, label)
ASPECT_RATIOS = [
    ("1:1", "Square (1:1)"),
    ("16:9", "Landscape (16:9)"),
    ("9:16", "Portrait (9:16)"),
    ("4:3", "Standard (4:3)"),
    ("3:4", "Tall (3:4)"),
]

ASPECT_RATIO_VALUES = [value for value, _ in ASPECT_RATIOS]
DEFAULT_ASPECT_RATIO = "1:1"

MAX_AGE_YEARS = 12
MAX_AGE_MONTHS = 11

_SPEECH_NOISE = re.compile(r"[.&]")


def _normalize(text: str) -> str:
    return _SPEECH_NOISE.sub("", text.lower()).strip()


def match_skill(transcript: str) -> Optional[str]:
    """Map a dictated phrase onto a skill value.

    The first option whose normalized label contains the normalized
    transcript wins, so "motor" picks "motor-skills".
    """
    wanted = _normalize(transcript)
    if not wanted:
        return None
    for value, label, _ in SKILL_OPTIONS:
        if wanted in _normalize(label):
            return value
    logger.warning("No skill match found for: '{}'", transcript)
    return None
