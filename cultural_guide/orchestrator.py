# cultural_guide/orchestrator.py
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Sequence

from cultural_guide.errors import (
    ConfigurationError,
    CulturalGuideError,
    IncompleteRequestError,
)
from cultural_guide.export import export_filename, recommendation_payload
from cultural_guide.llm import MISSING_KEY_MESSAGE, RecommendationClient, classify_error
from cultural_guide.log import get_logger
from cultural_guide.profiles import resolve_profile
from cultural_guide.qloo import DEFAULT_CATEGORIES, DEFAULT_USER_ID, BehavioralProfileResult, QlooClient
from cultural_guide.schemas import Recommendation, RecommendationRequest
from cultural_guide.session import PreferenceSession
from cultural_guide.settings import Settings, get_settings

logger = get_logger(__name__)


def _require_form(destination: str, preferences: str) -> None:
    missing = [
        label
        for label, value in (("destination", destination), ("travel interests", preferences))
        if not (value or "").strip()
    ]
    if missing:
        raise IncompleteRequestError(f"Please provide {' and '.join(missing)}.")


async def load_behavioral_profile(
    session: PreferenceSession,
    *,
    client: Optional[QlooClient] = None,
    user_id: str = DEFAULT_USER_ID,
    categories: Sequence[str] = DEFAULT_CATEGORIES,
) -> BehavioralProfileResult:
    """Fetch (or fall back to the sample) profile and make it the session's active source."""
    session.begin_request()
    try:
        result = await (client or QlooClient()).load_profile(user_id, categories)
        session.activate_behavioral(result)
        return result
    except Exception as exc:
        # API trouble is absorbed by QlooClient; anything reaching here is unexpected.
        logger.exception("Failed to load Qloo profile")
        error = CulturalGuideError(f"Failed to load Qloo profile: {exc}")
        session.record_error(error)
        raise error from exc
    finally:
        session.end_request()


async def generate_for_session(
    session: PreferenceSession,
    *,
    settings: Optional[Settings] = None,
    client: Optional[RecommendationClient] = None,
) -> List[Recommendation]:
    """Resolve the session's profile, request recommendations and store the outcome."""
    settings = settings or get_settings()
    session.begin_request()
    try:
        if not settings.openai_configured:
            raise ConfigurationError(MISSING_KEY_MESSAGE)
        _require_form(session.destination, session.user_preferences)

        resolved = resolve_profile(
            session.use_behavioral_profile,
            session.behavioral_profile,
            session.taste_profile_text,
        )
        logger.info("Generating recommendations for %s using %s profile", session.destination, resolved.rule)
        client = client or RecommendationClient(settings)
        recommendations = await asyncio.to_thread(
            client.generate,
            session.destination,
            session.user_preferences,
            resolved.value,
            session.behavior_insights,
            session.taste_connections,
        )
        session.record_results(recommendations)
        return recommendations
    except CulturalGuideError as error:
        session.record_error(error)
        raise
    except Exception as exc:
        error = classify_error(exc)
        logger.error("Error generating recommendations: %s", exc)
        session.record_error(error)
        raise error from exc
    finally:
        session.end_request()


async def recommend(
    request: RecommendationRequest,
    *,
    settings: Optional[Settings] = None,
    qloo_client: Optional[QlooClient] = None,
    client: Optional[RecommendationClient] = None,
) -> Dict[str, Any]:
    """One-shot pipeline without a session: optional Qloo profile, resolve, generate."""
    settings = settings or get_settings()
    if not settings.openai_configured:
        raise ConfigurationError(MISSING_KEY_MESSAGE)
    _require_form(request.destination, request.user_preferences)

    behavioral: Optional[BehavioralProfileResult] = None
    if request.use_behavioral_profile:
        behavioral = await (qloo_client or QlooClient(settings)).load_profile(request.user_id)

    resolved = resolve_profile(
        request.use_behavioral_profile,
        behavioral.profile if behavioral else None,
        request.taste_profile,
    )
    client = client or RecommendationClient(settings)
    try:
        recommendations = await asyncio.to_thread(
            client.generate,
            request.destination,
            request.user_preferences,
            resolved.value,
            behavioral.insights if behavioral else [],
            behavioral.connections if behavioral else [],
        )
    except CulturalGuideError:
        raise
    except Exception as exc:
        raise classify_error(exc) from exc

    return {
        "destination": request.destination,
        "profileRule": resolved.rule,
        "profileSource": behavioral.source.value if behavioral else None,
        "recommendations": recommendation_payload(recommendations),
        "exportFilename": export_filename(request.destination),
    }
