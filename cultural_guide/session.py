# cultural_guide/session.py
from __future__ import annotations

import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from cultural_guide.errors import CulturalGuideError, RequestInFlightError, SessionNotFoundError
from cultural_guide.export import recommendation_payload
from cultural_guide.log import get_logger
from cultural_guide.profiles import default_profile_json
from cultural_guide.qloo import BehavioralProfileResult, top_affinities
from cultural_guide.schemas import (
    BehaviorInsight,
    ProfileSource,
    QlooTasteProfile,
    Recommendation,
    TasteConnection,
)
from cultural_guide.settings import DEFAULT_MAX_SESSIONS, DEFAULT_SESSION_TTL_SECONDS

logger = get_logger(__name__)


@dataclass
class PreferenceSession:
    """Form state and results for one browser session. Lives in memory only."""

    id: str
    destination: str = ""
    user_preferences: str = ""
    taste_profile_text: str = ""
    use_behavioral_profile: bool = False
    behavioral_profile: Optional[QlooTasteProfile] = None
    profile_source: Optional[ProfileSource] = None
    behavior_insights: List[BehaviorInsight] = field(default_factory=list)
    taste_connections: List[TasteConnection] = field(default_factory=list)
    recommendations: List[Recommendation] = field(default_factory=list)
    show_results: bool = False
    show_analysis: bool = False
    is_loading: bool = False
    error: Optional[CulturalGuideError] = None

    def update_preferences(
        self,
        destination: Optional[str] = None,
        user_preferences: Optional[str] = None,
        taste_profile_text: Optional[str] = None,
    ) -> None:
        if destination is not None:
            self.destination = destination
        if user_preferences is not None:
            self.user_preferences = user_preferences
        if taste_profile_text is not None:
            self.taste_profile_text = taste_profile_text

    def use_sample_manual_profile(self) -> None:
        self.taste_profile_text = default_profile_json()

    def activate_behavioral(self, result: BehavioralProfileResult) -> None:
        # Replaces any earlier behavioral profile wholesale, derived data included.
        self.use_behavioral_profile = True
        self.behavioral_profile = result.profile
        self.profile_source = result.source
        self.behavior_insights = list(result.insights)
        self.taste_connections = list(result.connections)
        self.show_analysis = True

    def switch_to_manual(self) -> None:
        self.use_behavioral_profile = False
        self.behavioral_profile = None
        self.profile_source = None
        self.behavior_insights = []
        self.taste_connections = []
        self.show_analysis = False

    def can_generate(self, configured: bool) -> bool:
        return bool(
            self.destination.strip()
            and self.user_preferences.strip()
            and not self.is_loading
            and configured
        )

    def begin_request(self) -> None:
        if self.is_loading:
            raise RequestInFlightError()
        self.is_loading = True
        self.error = None

    def end_request(self) -> None:
        self.is_loading = False

    def record_results(self, recommendations: List[Recommendation]) -> None:
        self.recommendations = list(recommendations)
        self.show_results = True

    def record_error(self, error: CulturalGuideError) -> None:
        self.error = error

    def clear_error(self) -> None:
        self.error = None

    def back_to_form(self) -> None:
        self.show_results = False

    @property
    def using_live_profile(self) -> bool:
        return self.profile_source is ProfileSource.live

    def profile_badge(self) -> Optional[str]:
        if not (self.use_behavioral_profile and self.behavioral_profile):
            return None
        return f"Using {'Real' if self.using_live_profile else 'Enhanced Sample'} Qloo Taste AI Profile"

    def powered_by(self) -> str:
        prefix = ""
        if self.use_behavioral_profile:
            prefix = f"{'Real' if self.using_live_profile else 'Enhanced Sample'} Qloo Taste AI + "
        return f"Powered by {prefix}OpenAI"

    def view_state(self, configured: bool) -> Dict[str, Any]:
        """Everything the frontend needs to render the current screen."""
        profile = self.behavioral_profile
        return {
            "sessionId": self.id,
            "status": "APIs Configured" if configured else "Setup Required",
            "destination": self.destination,
            "userPreferences": self.user_preferences,
            "tasteProfile": self.taste_profile_text,
            "useBehavioralProfile": self.use_behavioral_profile,
            "profileSource": self.profile_source.value if self.profile_source else None,
            "profileBadge": self.profile_badge(),
            "behavioralProfile": profile.model_dump(by_alias=True, exclude_none=True) if profile else None,
            "behaviorInsights": [i.model_dump(by_alias=True) for i in self.behavior_insights],
            "tasteConnections": [c.model_dump(by_alias=True) for c in self.taste_connections],
            "topAffinities": [
                {"category": category, "score": score} for category, score in top_affinities(profile)
            ]
            if profile
            else [],
            "showAnalysis": self.show_analysis and profile is not None,
            "showResults": self.show_results,
            "recommendations": recommendation_payload(self.recommendations),
            "poweredBy": self.powered_by(),
            "isLoading": self.is_loading,
            "canGenerate": self.can_generate(configured),
            "error": self.error.to_detail() if self.error else None,
        }


class SessionStore:
    """Process-local session registry. Nothing is persisted.

    Sessions idle for longer than ``ttl_seconds`` are dropped, and once
    ``max_sessions`` are held the least recently used one is evicted.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_SESSION_TTL_SECONDS,
        max_sessions: int = DEFAULT_MAX_SESSIONS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.max_sessions = max_sessions
        self._clock = clock
        # Ordered oldest access first.
        self._sessions: "OrderedDict[str, Tuple[PreferenceSession, float]]" = OrderedDict()

    def _purge_expired(self, now: float) -> None:
        while self._sessions:
            session_id, (_, last_seen) = next(iter(self._sessions.items()))
            if now - last_seen <= self.ttl_seconds:
                break
            del self._sessions[session_id]
            logger.debug("Expired idle session %s", session_id)

    def create(self) -> PreferenceSession:
        now = self._clock()
        self._purge_expired(now)
        while len(self._sessions) >= self.max_sessions:
            evicted, _ = self._sessions.popitem(last=False)
            logger.info("Session limit %d reached, evicted %s", self.max_sessions, evicted)
        session = PreferenceSession(id=uuid.uuid4().hex)
        self._sessions[session.id] = (session, now)
        logger.debug("Created session %s", session.id)
        return session

    def get(self, session_id: str) -> PreferenceSession:
        now = self._clock()
        self._purge_expired(now)
        try:
            session, _ = self._sessions[session_id]
        except KeyError:
            raise SessionNotFoundError(session_id) from None
        self._sessions[session_id] = (session, now)
        self._sessions.move_to_end(session_id)
        return session

    def delete(self, session_id: str) -> None:
        if self._sessions.pop(session_id, None) is None:
            raise SessionNotFoundError(session_id)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
