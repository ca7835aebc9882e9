from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Serialises with camelCase keys (what the frontend reads) but accepts either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


Score = Annotated[float, Field(ge=0.0, le=1.0)]


# ------- Manual taste profile -------
class ManualPreferences(CamelModel):
    food: List[str] = Field(default_factory=list)
    activities: List[str] = Field(default_factory=list)
    accommodation: List[str] = Field(default_factory=list)
    culture: List[str] = Field(default_factory=list)


class TasteProfile(CamelModel):
    interests: List[str] = Field(default_factory=list)
    preferences: ManualPreferences = Field(default_factory=ManualPreferences)
    budget: str = "mid-range"
    travel_style: str = ""


# ------- Behavioral (Qloo) taste profile -------
class Demographics(CamelModel):
    age: int
    location: str
    gender: Optional[str] = None


class MusicListening(CamelModel):
    genres: List[str] = Field(default_factory=list)
    artists: List[str] = Field(default_factory=list)
    listening_habits: List[str] = Field(default_factory=list)
    platforms: List[str] = Field(default_factory=list)


class DiningPreferences(CamelModel):
    cuisines: List[str] = Field(default_factory=list)
    restaurant_types: List[str] = Field(default_factory=list)
    dietary_restrictions: List[str] = Field(default_factory=list)
    spending_habits: List[str] = Field(default_factory=list)


class EntertainmentChoices(CamelModel):
    movie_genres: List[str] = Field(default_factory=list)
    tv_shows: List[str] = Field(default_factory=list)
    books: List[str] = Field(default_factory=list)
    hobbies: List[str] = Field(default_factory=list)


class ShoppingBehavior(CamelModel):
    brands: List[str] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    price_points: List[str] = Field(default_factory=list)
    shopping_channels: List[str] = Field(default_factory=list)


class SocialMedia(CamelModel):
    platforms: List[str] = Field(default_factory=list)
    engagement_types: List[str] = Field(default_factory=list)
    content_preferences: List[str] = Field(default_factory=list)


class BehaviorPatterns(CamelModel):
    music_listening: MusicListening = Field(default_factory=MusicListening)
    dining_preferences: DiningPreferences = Field(default_factory=DiningPreferences)
    entertainment_choices: EntertainmentChoices = Field(default_factory=EntertainmentChoices)
    shopping_behavior: ShoppingBehavior = Field(default_factory=ShoppingBehavior)
    social_media: SocialMedia = Field(default_factory=SocialMedia)


class TasteGraph(CamelModel):
    primary_interests: List[str] = Field(default_factory=list)
    secondary_interests: List[str] = Field(default_factory=list)
    affinity_scores: Dict[str, Score] = Field(default_factory=dict)
    cultural_preferences: List[str] = Field(default_factory=list)


class TravelBehavior(CamelModel):
    previous_destinations: List[str] = Field(default_factory=list)
    accommodation_preferences: List[str] = Field(default_factory=list)
    activity_types: List[str] = Field(default_factory=list)
    budget_range: str = ""
    travel_frequency: str = ""


class QlooTasteProfile(CamelModel):
    user_id: str
    demographics: Demographics
    behavior_patterns: BehaviorPatterns = Field(default_factory=BehaviorPatterns)
    taste_graph: TasteGraph = Field(default_factory=TasteGraph)
    travel_behavior: Optional[TravelBehavior] = None


class ProfileSource(str, Enum):
    live = "live"
    sample = "sample"


# ------- Derived records -------
class BehaviorInsight(CamelModel):
    category: str
    behavior: str
    travel_connection: str
    confidence: Score
    examples: List[str] = Field(default_factory=list)


class TasteConnection(CamelModel):
    frm: str = Field(..., alias="from")
    to: str
    strength: Score
    reasoning: str = ""


# ------- Recommendations -------
class QlooAlignment(CamelModel):
    behavior_match: List[str] = Field(default_factory=list)
    affinity_score: Score
    reasoning: str = ""


class Recommendation(CamelModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    image_url: str = ""
    cultural_context: str = ""
    link: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    rating: float = 0.0
    qloo_alignment: Optional[QlooAlignment] = None


# ------- Request models -------
class PreferencesUpdate(CamelModel):
    destination: Optional[str] = None
    user_preferences: Optional[str] = None
    taste_profile: Optional[str] = None


class BehavioralProfileRequest(CamelModel):
    user_id: str = "demo_user"
    categories: List[str] = Field(default_factory=lambda: ["travel", "dining", "entertainment", "music"])


class RecommendationRequest(CamelModel):
    model_config = ConfigDict(extra="ignore")

    destination: str = Field(..., min_length=1)
    user_preferences: str = Field(..., min_length=1)
    taste_profile: str = ""
    use_behavioral_profile: bool = False
    user_id: str = "demo_user"


ErrorKindName = Literal["configuration", "quota_exceeded", "rate_limited", "general"]


class ErrorPayload(CamelModel):
    kind: ErrorKindName
    title: str
    message: str
    steps: List[str] = Field(default_factory=list)
    link: Optional[str] = None
    link_label: Optional[str] = None
