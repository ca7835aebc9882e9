# cultural_guide/llm.py
import json
from typing import Any, List, Optional, Sequence

from openai import OpenAI
from pydantic import ValidationError

from cultural_guide.errors import ConfigurationError, ErrorKind, RecommendationError
from cultural_guide.log import get_logger
from cultural_guide.profiles import ProfileValue, serialize_profile
from cultural_guide.schemas import (
    BehaviorInsight,
    QlooAlignment,
    QlooTasteProfile,
    Recommendation,
    TasteConnection,
)
from cultural_guide.settings import Settings, get_settings

logger = get_logger(__name__)

FALLBACK_IMAGE_URL = "https://images.pexels.com/photos/1371360/pexels-photo-1371360.jpeg?auto=compress&cs=tinysrgb&w=800"

QUOTA_MESSAGE = "Your OpenAI API quota has been exceeded. Please check your OpenAI account billing and usage limits."
RATE_LIMIT_MESSAGE = "OpenAI API rate limit exceeded. Please check your OpenAI account status and billing details."
MISSING_KEY_MESSAGE = "OpenAI API key is not configured. Please add your API key to the .env file."
UNREADABLE_MESSAGE = "The model returned an unreadable response. Please try again."

SYSTEM_PROMPT = """You are a cultural travel expert.
Recommend authentic, culturally rich experiences at the requested destination
that match the traveller's stated interests and taste profile.
Return ONLY valid JSON.
"""

USER_TEMPLATE = """Destination: {destination}

Traveller's own words:
{preferences}

Taste profile:
{profile}

Behavioral insights:
{insights}

Taste connections:
{connections}

Return a JSON object with a single key "recommendations": an array of 5 to 6 objects with
  name (string), description (2-3 sentences), imageUrl (an https image URL or ""),
  culturalContext (why it matters locally), link (official URL or null),
  tags (3-5 short strings), rating (number from 1.0 to 5.0){alignment}
"""

ALIGNMENT_SCHEMA = """,
  qlooAlignment: {behaviorMatch: [behaviors from the profile this matches],
                  affinityScore: number from 0 to 1, reasoning: string}"""


def _summarise_insights(insights: Sequence[BehaviorInsight]) -> str:
    if not insights:
        return "none"
    return "\n".join(
        f"- {i.category}: {i.behavior} -> {i.travel_connection} (confidence {i.confidence:.2f})"
        for i in insights
    )


def _summarise_connections(connections: Sequence[TasteConnection]) -> str:
    if not connections:
        return "none"
    return "\n".join(f"- {c.frm} -> {c.to} ({c.strength:.2f}): {c.reasoning}" for c in connections)


def build_prompt(
    destination: str,
    preferences: str,
    profile: ProfileValue,
    insights: Sequence[BehaviorInsight] = (),
    connections: Sequence[TasteConnection] = (),
) -> str:
    return USER_TEMPLATE.format(
        destination=destination,
        preferences=preferences,
        profile=serialize_profile(profile),
        insights=_summarise_insights(insights),
        connections=_summarise_connections(connections),
        alignment=ALIGNMENT_SCHEMA if isinstance(profile, QlooTasteProfile) else "",
    )


def classify_error(exc: BaseException) -> RecommendationError:
    """Map a failed request onto the error kinds the frontend knows how to explain."""
    if isinstance(exc, RecommendationError):
        return exc
    message = str(exc) or exc.__class__.__name__
    status = getattr(exc, "status_code", None)
    rate_limited = status == 429 or "429" in message
    if rate_limited and "quota" in message.lower():
        return RecommendationError(ErrorKind.quota_exceeded, QUOTA_MESSAGE)
    if rate_limited:
        return RecommendationError(ErrorKind.rate_limited, RATE_LIMIT_MESSAGE)
    return RecommendationError(ErrorKind.general, message)


def _alignment_block(item: dict) -> Optional[QlooAlignment]:
    """Validate one alignment block on its own. A bad block is dropped, not the reply."""
    block = item.pop("qlooAlignment", None) or item.pop("qloo_alignment", None)
    if not isinstance(block, dict):
        return None
    block = dict(block)
    key = "affinityScore" if "affinityScore" in block else "affinity_score"
    score = block.get(key)
    # Models sometimes answer in percent.
    if isinstance(score, (int, float)) and not isinstance(score, bool) and 1 < score <= 100:
        block[key] = score / 100
    try:
        return QlooAlignment.model_validate(block)
    except ValidationError as exc:
        logger.warning("Dropping invalid qlooAlignment for %r: %s", item.get("name"), exc.errors()[0]["msg"])
        return None


def parse_recommendations(raw: Optional[str], *, keep_alignment: bool) -> List[Recommendation]:
    """Parse the model's JSON into recommendation records, or raise a general error."""
    try:
        data = json.loads(raw or "")
    except ValueError as exc:
        raise RecommendationError(ErrorKind.general, UNREADABLE_MESSAGE) from exc

    items: Any = data.get("recommendations") if isinstance(data, dict) else data
    if not isinstance(items, list) or not items:
        raise RecommendationError(ErrorKind.general, UNREADABLE_MESSAGE)

    recommendations: List[Recommendation] = []
    for item in items:
        if not isinstance(item, dict):
            raise RecommendationError(ErrorKind.general, UNREADABLE_MESSAGE)
        item = dict(item)
        if not item.get("imageUrl") and not item.get("image_url"):
            item["imageUrl"] = FALLBACK_IMAGE_URL
        alignment = _alignment_block(item) if keep_alignment else None
        item.pop("qlooAlignment", None)
        item.pop("qloo_alignment", None)
        if alignment is not None:
            item["qlooAlignment"] = alignment
        try:
            recommendations.append(Recommendation.model_validate(item))
        except ValidationError as exc:
            raise RecommendationError(ErrorKind.general, UNREADABLE_MESSAGE) from exc
    return recommendations


class RecommendationClient:
    """Thin wrapper around the OpenAI chat-completions API. Does not retry."""

    def __init__(self, settings: Optional[Settings] = None, *, temperature: float = 0.7):
        self.settings = settings or get_settings()
        self.temperature = temperature
        self._client: Optional[OpenAI] = None

    def _get_client(self) -> OpenAI:
        if not self.settings.openai_configured:
            raise ConfigurationError(MISSING_KEY_MESSAGE)
        if self._client is None:
            self._client = OpenAI(api_key=self.settings.openai_api_key, max_retries=0)
        return self._client

    def generate(
        self,
        destination: str,
        preferences: str,
        profile: ProfileValue,
        insights: Sequence[BehaviorInsight] = (),
        connections: Sequence[TasteConnection] = (),
    ) -> List[Recommendation]:
        client = self._get_client()
        behavioral = isinstance(profile, QlooTasteProfile)
        user_prompt = build_prompt(destination, preferences, profile, insights, connections)

        logger.info(
            "Invoking LLM model %s for %s (behavioral=%s, %d insights)",
            self.settings.model,
            destination,
            behavioral,
            len(insights),
        )
        try:
            resp = client.chat.completions.create(
                model=self.settings.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=self.temperature,
                response_format={"type": "json_object"},
            )
        except Exception as exc:
            classified = classify_error(exc)
            logger.warning("LLM request failed (%s): %s", classified.kind.value, exc)
            raise classified from exc

        raw = resp.choices[0].message.content if resp.choices else None
        recommendations = parse_recommendations(raw, keep_alignment=behavioral)
        logger.info("LLM returned %d recommendations", len(recommendations))
        return recommendations
