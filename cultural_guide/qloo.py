# cultural_guide/qloo.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import httpx

from cultural_guide.log import get_logger
from cultural_guide.schemas import (
    BehaviorInsight,
    BehaviorPatterns,
    Demographics,
    DiningPreferences,
    EntertainmentChoices,
    MusicListening,
    ProfileSource,
    QlooTasteProfile,
    ShoppingBehavior,
    SocialMedia,
    TasteConnection,
    TasteGraph,
    TravelBehavior,
)
from cultural_guide.settings import Settings, get_settings

logger = get_logger(__name__)

DEFAULT_USER_ID = "demo_user"
DEFAULT_CATEGORIES: Tuple[str, ...] = ("travel", "dining", "entertainment", "music")

# Keyword -> (travel connection, example suggestions). Checked in order; first hit wins.
_MUSIC_RULES: List[Tuple[str, str, List[str]]] = [
    ("jazz", "Drawn to intimate live-music districts and late-night venues", ["Jazz bars in historic quarters", "Live music walking tours", "Vinyl record shops"]),
    ("classical", "Appreciates concert halls, opera houses and heritage architecture", ["Symphony or opera evenings", "Historic concert venues", "Music museum visits"]),
    ("indie", "Seeks creative neighbourhoods with independent venues and local scenes", ["Independent music venues", "Artist-run spaces", "Neighbourhood record stores"]),
    ("world", "Open to traditional performance and folk music of the places visited", ["Traditional music performances", "Folk festivals", "Instrument-making workshops"]),
    ("electronic", "Enjoys nightlife hubs and contemporary club culture", ["Renowned club nights", "Warehouse art spaces", "Late-night food streets"]),
]
_DINING_RULES: List[Tuple[str, str, List[str]]] = [
    ("street", "Prefers markets and street food over formal dining", ["Night markets", "Street food tours", "Local food halls"]),
    ("japanese", "Values craft, seasonality and precision in food experiences", ["Kaiseki dinners", "Sake brewery visits", "Fish market breakfasts"]),
    ("farm", "Looks for farm-to-table and producer-led experiences", ["Farm visits", "Cooking classes with local produce", "Seasonal tasting menus"]),
    ("fine", "Will plan around destination restaurants and tasting menus", ["Chef's table reservations", "Wine pairing dinners", "Michelin-listed restaurants"]),
    ("vegan", "Needs plant-forward options and temple or vegetarian cuisine", ["Vegetarian temple cuisine", "Plant-based cafes", "Vegan cooking classes"]),
]
_ENTERTAINMENT_RULES: List[Tuple[str, str, List[str]]] = [
    ("documentar", "Curious about history and the stories behind places", ["Guided heritage walks", "History museums", "Local storytelling tours"]),
    ("independent", "Favours arthouse culture and lesser-known neighbourhoods", ["Arthouse cinemas", "Contemporary galleries", "Bookshop cafes"]),
    ("photograph", "Plans days around scenic and photogenic locations", ["Sunrise viewpoints", "Photography walks", "Architectural landmarks"]),
    ("hiking", "Balances culture with time outdoors", ["Day hikes near the city", "Nature reserves", "Scenic rail journeys"]),
]
_SHOPPING_RULES: List[Tuple[str, str, List[str]]] = [
    ("artisan", "Seeks handmade goods and meeting the makers", ["Artisan workshops", "Craft markets", "Studio visits"]),
    ("vintage", "Enjoys browsing vintage and second-hand districts", ["Vintage shopping streets", "Flea markets", "Antique arcades"]),
    ("sustainable", "Prefers ethical, local and sustainable businesses", ["Eco-certified stays", "Local cooperatives", "Zero-waste shops"]),
    ("design", "Drawn to design districts and concept stores", ["Design museums", "Concept stores", "Architecture tours"]),
]
_SOCIAL_RULES: List[Tuple[str, str, List[str]]] = [
    ("travel", "Takes inspiration from travel content and shares experiences", ["Lesser-known viewpoints", "Local creator recommendations", "Photo-worthy cafes"]),
    ("food", "Discovers places through food content", ["Trending local eateries", "Food creator favourites", "Market tours"]),
    ("art", "Follows artists and cultural institutions", ["Gallery openings", "Street art tours", "Museum late nights"]),
]

# domain -> (affinity key, rules, default connection, default examples, base confidence)
_DOMAINS: Dict[str, Tuple[str, List[Tuple[str, str, List[str]]], str, List[str], float]] = {
    "music": ("music", _MUSIC_RULES, "Music taste points to the venues and neighbourhoods worth visiting", ["Live music venues", "Local music scenes"], 0.75),
    "dining": ("food", _DINING_RULES, "Dining habits shape which food experiences will feel authentic", ["Local restaurants", "Food markets"], 0.8),
    "entertainment": ("film", _ENTERTAINMENT_RULES, "Entertainment choices hint at the pace and themes of ideal days", ["Cultural performances", "Local festivals"], 0.7),
    "shopping": ("fashion", _SHOPPING_RULES, "Shopping behavior suggests the districts and markets to explore", ["Local markets", "Independent boutiques"], 0.65),
    "social": ("social", _SOCIAL_RULES, "Social media habits show how discoveries are made on the road", ["Locally recommended spots"], 0.6),
}

_EXPERIENCES: Dict[str, str] = {
    "art": "galleries and museums",
    "music": "live music venues",
    "food": "culinary tours",
    "history": "heritage sites",
    "architecture": "architecture walks",
    "nature": "outdoor excursions",
    "fashion": "design districts",
    "film": "film locations",
    "literature": "literary landmarks",
    "crafts": "artisan workshops",
    "wellness": "hot springs and retreats",
    "nightlife": "evening entertainment districts",
}

MAX_CONNECTIONS = 5
PRIMARY_INTEREST_WEIGHT = 0.9


@dataclass
class BehavioralProfileResult:
    profile: QlooTasteProfile
    source: ProfileSource
    insights: List[BehaviorInsight] = field(default_factory=list)
    connections: List[TasteConnection] = field(default_factory=list)

    @property
    def is_live(self) -> bool:
        return self.source is ProfileSource.live


class QlooClient:
    """Fetches behavioral taste profiles from the Qloo API, with a sample fallback."""

    PROFILE_PATH = "/v1/taste/profile"

    def __init__(self, settings: Optional[Settings] = None, *, timeout: float = 10.0):
        self.settings = settings or get_settings()
        self.timeout = timeout

    async def fetch_profile(self, user_id: str, categories: Sequence[str]) -> QlooTasteProfile:
        """Request a live profile. Raises on a missing key, HTTP errors or an invalid body."""
        if not self.settings.qloo_configured:
            raise RuntimeError("QLOO_API_KEY environment variable not configured")

        url = f"{self.settings.qloo_api_url}{self.PROFILE_PATH}"
        params = {"user_id": user_id, "categories": ",".join(categories)}
        headers = {"X-Api-Key": self.settings.qloo_api_key, "Accept": "application/json"}

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(url, params=params, headers=headers)
            response.raise_for_status()
            data = response.json()

        if isinstance(data, dict) and isinstance(data.get("profile"), dict):
            data = data["profile"]
        return QlooTasteProfile.model_validate(data)

    async def load_profile(
        self,
        user_id: str = DEFAULT_USER_ID,
        categories: Sequence[str] = DEFAULT_CATEGORIES,
    ) -> BehavioralProfileResult:
        """Live profile when reachable, otherwise the sample one; never raises for API trouble."""
        try:
            profile = await self.fetch_profile(user_id, categories)
            source = ProfileSource.live
            logger.info("Loaded live Qloo profile for %s", user_id)
        except Exception as exc:
            logger.warning("Qloo API not available, using sample profile: %s", exc)
            profile = create_sample_profile(user_id)
            source = ProfileSource.sample

        result = BehavioralProfileResult(profile=profile, source=source)
        try:
            result.insights = analyze_behavior_patterns(profile)
            result.connections = generate_taste_connections(profile)
        except Exception:
            logger.error("Error analyzing behavior patterns; returning profile without insights", exc_info=True)
            result.insights = []
            result.connections = []
        logger.info(
            "Behavioral profile ready (%s): %d insights, %d connections",
            source.value,
            len(result.insights),
            len(result.connections),
        )
        return result


def create_sample_profile(user_id: str = DEFAULT_USER_ID) -> QlooTasteProfile:
    """A fixed, representative profile used whenever the live API is unavailable."""
    return QlooTasteProfile(
        user_id=user_id,
        demographics=Demographics(age=32, location="San Francisco, CA", gender="female"),
        behavior_patterns=BehaviorPatterns(
            music_listening=MusicListening(
                genres=["jazz", "indie folk", "world music", "neo-soul"],
                artists=["Norah Jones", "Bon Iver", "Anoushka Shankar", "Hiatus Kaiyote"],
                listening_habits=["evening playlists", "live concerts", "vinyl collecting"],
                platforms=["Spotify", "Bandcamp"],
            ),
            dining_preferences=DiningPreferences(
                cuisines=["Japanese", "Ethiopian", "Mexican street food", "Mediterranean"],
                restaurant_types=["family-run", "food markets", "chef's counters"],
                dietary_restrictions=["pescatarian"],
                spending_habits=["splurges on special meals", "everyday budget-conscious"],
            ),
            entertainment_choices=EntertainmentChoices(
                movie_genres=["documentaries", "independent films", "anime"],
                tv_shows=["Chef's Table", "Somebody Feed Phil", "Planet Earth"],
                books=["travel memoirs", "historical fiction", "design books"],
                hobbies=["photography", "pottery", "hiking"],
            ),
            shopping_behavior=ShoppingBehavior(
                brands=["Patagonia", "Muji", "Everlane", "local artisans"],
                categories=["artisan crafts", "outdoor gear", "books"],
                price_points=["mid-range", "invests in quality"],
                shopping_channels=["independent shops", "craft fairs", "online"],
            ),
            social_media=SocialMedia(
                platforms=["Instagram", "Pinterest"],
                engagement_types=["saves", "shares", "comments"],
                content_preferences=["travel photography", "food content", "art and design"],
            ),
        ),
        taste_graph=TasteGraph(
            primary_interests=["authentic cultural experiences", "culinary exploration", "craftsmanship"],
            secondary_interests=["live music", "nature", "photography"],
            affinity_scores={
                "food": 0.92,
                "crafts": 0.88,
                "art": 0.85,
                "music": 0.82,
                "history": 0.78,
                "nature": 0.74,
                "film": 0.69,
                "fashion": 0.55,
                "nightlife": 0.41,
            },
            cultural_preferences=["traditional arts", "local festivals", "slow travel"],
        ),
        travel_behavior=TravelBehavior(
            previous_destinations=["Lisbon", "Mexico City", "Seoul", "Marrakech"],
            accommodation_preferences=["boutique hotels", "ryokans", "design-led guesthouses"],
            activity_types=["workshops", "food tours", "walking tours"],
            budget_range="mid-range",
            travel_frequency="3-4 trips per year",
        ),
    )


def _domain_items(patterns: BehaviorPatterns) -> Dict[str, List[str]]:
    music = patterns.music_listening
    dining = patterns.dining_preferences
    entertainment = patterns.entertainment_choices
    shopping = patterns.shopping_behavior
    social = patterns.social_media
    return {
        "music": music.genres + music.listening_habits,
        "dining": dining.cuisines + dining.restaurant_types + dining.dietary_restrictions,
        "entertainment": entertainment.movie_genres + entertainment.hobbies + entertainment.tv_shows,
        "shopping": shopping.categories + shopping.brands + shopping.shopping_channels,
        "social": social.content_preferences + social.engagement_types,
    }


def _match_rule(items: Iterable[str], rules: List[Tuple[str, str, List[str]]]) -> Optional[Tuple[str, List[str]]]:
    lowered = [item.lower() for item in items]
    for keyword, connection, examples in rules:
        if any(keyword in item for item in lowered):
            return connection, examples
    return None


def _clamp(value: float) -> float:
    return round(min(1.0, max(0.0, value)), 2)


def analyze_behavior_patterns(profile: QlooTasteProfile) -> List[BehaviorInsight]:
    """Derive one insight per behavior domain that has data, strongest first."""
    items_by_domain = _domain_items(profile.behavior_patterns)
    affinities = profile.taste_graph.affinity_scores
    insights: List[BehaviorInsight] = []

    for domain, (affinity_key, rules, default_connection, default_examples, base) in _DOMAINS.items():
        items = [item for item in items_by_domain[domain] if item]
        if not items:
            continue
        matched = _match_rule(items, rules)
        connection, examples = matched if matched else (default_connection, default_examples)
        insights.append(
            BehaviorInsight(
                category=domain,
                behavior=f"Gravitates towards {', '.join(items[:3])}",
                travel_connection=connection,
                confidence=_clamp(affinities.get(affinity_key, base)),
                examples=list(examples[:3]),
            )
        )

    # sorted() is stable, so equal confidences keep domain order
    return sorted(insights, key=lambda insight: insight.confidence, reverse=True)


def top_affinities(profile: QlooTasteProfile, limit: int = 6) -> List[Tuple[str, float]]:
    scores = profile.taste_graph.affinity_scores.items()
    return sorted(scores, key=lambda kv: (-kv[1], kv[0]))[:limit]


def generate_taste_connections(profile: QlooTasteProfile) -> List[TasteConnection]:
    """Link the strongest affinities to travel experiences, plus primary interests to the top one."""
    ranked = top_affinities(profile, limit=MAX_CONNECTIONS)
    connections: List[TasteConnection] = []
    for category, score in ranked:
        experience = _EXPERIENCES.get(category.lower(), f"{category} experiences")
        connections.append(
            TasteConnection(
                frm=category,
                to=experience,
                strength=_clamp(score),
                reasoning=f"A {round(score * 100)}% affinity for {category} suggests prioritising {experience}.",
            )
        )

    if ranked:
        top_category, top_score = ranked[0]
        for interest in profile.taste_graph.primary_interests:
            connections.append(
                TasteConnection(
                    frm=interest,
                    to=top_category,
                    strength=_clamp(top_score * PRIMARY_INTEREST_WEIGHT),
                    reasoning=f"'{interest}' is a primary interest that reinforces the strongest affinity, {top_category}.",
                )
            )
    return connections
