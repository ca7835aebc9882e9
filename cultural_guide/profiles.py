# cultural_guide/profiles.py
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Literal, Union

from cultural_guide.log import get_logger
from cultural_guide.schemas import ManualPreferences, QlooTasteProfile, TasteProfile

logger = get_logger(__name__)

DEFAULT_TASTE_PROFILE = TasteProfile(
    interests=["traditional crafts", "authentic cuisine", "historical sites", "cultural immersion"],
    preferences=ManualPreferences(
        food=["local specialties", "traditional dining", "street food"],
        activities=["workshops", "guided tours", "cultural experiences"],
        accommodation=["boutique hotels", "traditional lodging"],
        culture=["artisan crafts", "traditional ceremonies", "local traditions"],
    ),
    budget="mid-range",
    travel_style="cultural explorer",
)

ProfileValue = Union[QlooTasteProfile, TasteProfile, Dict[str, Any], str]
ResolutionRule = Literal["behavioral", "manual_json", "manual_text", "default"]


@dataclass(frozen=True)
class ResolvedProfile:
    value: ProfileValue
    rule: ResolutionRule

    @property
    def is_behavioral(self) -> bool:
        return isinstance(self.value, QlooTasteProfile)


def default_profile_json() -> str:
    """The default profile as the indented JSON a user would paste into the form."""
    return json.dumps(DEFAULT_TASTE_PROFILE.model_dump(by_alias=True), indent=2)


def resolve_profile(
    use_behavioral: bool,
    behavioral_profile: QlooTasteProfile | None,
    manual_text: str | None,
    default: TasteProfile = DEFAULT_TASTE_PROFILE,
) -> ResolvedProfile:
    """Pick the single taste profile to send with a recommendation request.

    Priority: the behavioral profile when behavioral mode is on and one is
    loaded, then the manual text parsed as a JSON object, then the manual text
    verbatim, then ``default`` when nothing was typed. Malformed JSON is not an
    error; it is forwarded as free text.
    """
    if use_behavioral and behavioral_profile is not None:
        return ResolvedProfile(behavioral_profile, "behavioral")

    text = manual_text or ""
    if text.strip():
        try:
            parsed = json.loads(text)
        except (ValueError, RecursionError):
            logger.debug("Manual taste profile is not valid JSON; using it as free text")
            return ResolvedProfile(text, "manual_text")
        if isinstance(parsed, dict):
            return ResolvedProfile(parsed, "manual_json")
        logger.debug("Manual taste profile parsed to %s, not an object; using it as free text", type(parsed).__name__)
        return ResolvedProfile(text, "manual_text")

    return ResolvedProfile(default, "default")


def serialize_profile(value: ProfileValue) -> str:
    """Render a resolved profile for inclusion in the prompt."""
    if isinstance(value, str):
        return value
    if isinstance(value, (QlooTasteProfile, TasteProfile)):
        return json.dumps(value.model_dump(by_alias=True, exclude_none=True), indent=2)
    return json.dumps(value, indent=2, default=str)
