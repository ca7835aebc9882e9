from __future__ import annotations

from typing import Any, Dict, Optional
from urllib.parse import quote

from fastapi import Body, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cultural_guide.errors import ConfigurationError, CulturalGuideError, NoResultsError
from cultural_guide.export import export_filename, export_recommendations
from cultural_guide.log import get_logger
from cultural_guide.orchestrator import generate_for_session, load_behavioral_profile, recommend
from cultural_guide.schemas import BehavioralProfileRequest, PreferencesUpdate, RecommendationRequest
from cultural_guide.session import SessionStore
from cultural_guide.settings import get_settings

logger = get_logger(__name__)

app = FastAPI(title="CulturalGuide AI API")
sessions = SessionStore(
    ttl_seconds=get_settings().session_ttl_seconds,
    max_sessions=get_settings().max_sessions,
)

# Allow the browser frontend (Vite dev server or static build) to reach the API.
# Operators can narrow this via CULTURAL_GUIDE_ALLOWED_ORIGINS.
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_settings().allowed_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CulturalGuideError)
async def _guide_error_handler(request: Request, exc: CulturalGuideError) -> JSONResponse:
    logger.info("%s %s -> %d (%s)", request.method, request.url.path, exc.status_code, exc.kind.value)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


def _view(session_id: str) -> Dict[str, Any]:
    return sessions.get(session_id).view_state(get_settings().openai_configured)


@app.get("/api/status")
async def api_status() -> Dict[str, Any]:
    """Drives the header badge and the setup warning."""
    settings = get_settings()
    configured = settings.openai_configured
    return {
        "openaiConfigured": configured,
        "qlooConfigured": settings.qloo_configured,
        "status": "APIs Configured" if configured else "Setup Required",
        "model": settings.model,
        "setup": None if configured else ConfigurationError("OpenAI API key is not configured.").to_detail(),
    }


@app.post("/api/sessions", status_code=201)
async def create_session() -> Dict[str, Any]:
    session = sessions.create()
    return _view(session.id)


@app.get("/api/sessions/{session_id}")
async def get_session(session_id: str) -> Dict[str, Any]:
    return _view(session_id)


@app.delete("/api/sessions/{session_id}", status_code=204)
async def delete_session(session_id: str) -> Response:
    sessions.delete(session_id)
    return Response(status_code=204)


@app.put("/api/sessions/{session_id}/preferences")
async def update_preferences(session_id: str, update: PreferencesUpdate = Body(...)) -> Dict[str, Any]:
    session = sessions.get(session_id)
    session.update_preferences(
        destination=update.destination,
        user_preferences=update.user_preferences,
        taste_profile_text=update.taste_profile,
    )
    return _view(session_id)


@app.post("/api/sessions/{session_id}/sample-profile")
async def use_sample_profile(session_id: str) -> Dict[str, Any]:
    sessions.get(session_id).use_sample_manual_profile()
    return _view(session_id)


@app.post("/api/sessions/{session_id}/behavioral-profile")
async def load_profile(
    session_id: str,
    payload: Optional[BehavioralProfileRequest] = Body(None),
) -> Dict[str, Any]:
    session = sessions.get(session_id)
    payload = payload or BehavioralProfileRequest()
    await load_behavioral_profile(session, user_id=payload.user_id, categories=payload.categories)
    return _view(session_id)


@app.delete("/api/sessions/{session_id}/behavioral-profile")
async def switch_to_manual(session_id: str) -> Dict[str, Any]:
    sessions.get(session_id).switch_to_manual()
    return _view(session_id)


@app.post("/api/sessions/{session_id}/recommendations")
async def generate(session_id: str) -> Dict[str, Any]:
    session = sessions.get(session_id)
    await generate_for_session(session)
    return _view(session_id)


@app.post("/api/sessions/{session_id}/back")
async def back_to_form(session_id: str) -> Dict[str, Any]:
    sessions.get(session_id).back_to_form()
    return _view(session_id)


@app.get("/api/sessions/{session_id}/export")
async def export(session_id: str) -> Response:
    session = sessions.get(session_id)
    if not session.recommendations:
        raise NoResultsError()
    filename = export_filename(session.destination)
    # Header values are latin-1; keep an ASCII filename and the exact one in filename*.
    ascii_name = filename.encode("ascii", "ignore").decode().replace('"', "")
    return Response(
        content=export_recommendations(session.recommendations),
        media_type="application/json",
        headers={
            "Content-Disposition": f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"
        },
    )


@app.post("/api/recommendations")
async def api_recommendations(request: RecommendationRequest = Body(...)) -> Dict[str, Any]:
    """Stateless variant for scripted clients."""
    return await recommend(request)
