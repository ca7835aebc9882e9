# cultural_guide/errors.py
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List

from cultural_guide.schemas import ErrorPayload

OPENAI_BILLING_URL = "https://platform.openai.com/account/billing"
OPENAI_USAGE_URL = "https://platform.openai.com/account/usage"


class ErrorKind(str, Enum):
    configuration = "configuration"
    quota_exceeded = "quota_exceeded"
    rate_limited = "rate_limited"
    general = "general"


class CulturalGuideError(Exception):
    """Base class for failures the API reports back to the frontend."""

    kind: ErrorKind = ErrorKind.general
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_payload(self) -> ErrorPayload:
        return ErrorPayload(kind=self.kind.value, title="Error", message=self.message)

    def to_detail(self) -> Dict[str, Any]:
        return self.to_payload().model_dump(by_alias=True)


class ConfigurationError(CulturalGuideError):
    kind = ErrorKind.configuration
    status_code = 503

    SETUP_STEPS: List[str] = [
        "Copy .env.example to .env in the project root",
        "Set OPENAI_API_KEY to your OpenAI API key",
        "Optionally set QLOO_API_KEY to use live Qloo taste profiles",
        "Restart the server so the new keys are picked up",
    ]

    def to_payload(self) -> ErrorPayload:
        return ErrorPayload(
            kind=self.kind.value,
            title="API Configuration Required",
            message=self.message,
            steps=list(self.SETUP_STEPS),
        )


_GUIDANCE: Dict[ErrorKind, Dict[str, Any]] = {
    ErrorKind.quota_exceeded: {
        "title": "OpenAI API Quota Exceeded",
        "steps": [
            "Visit the OpenAI Billing Dashboard",
            "Check your current usage and billing details",
            "Add credits or upgrade your plan if needed",
            "Wait a few minutes for the changes to take effect",
        ],
        "link": OPENAI_BILLING_URL,
        "link_label": "Check OpenAI Billing",
    },
    ErrorKind.rate_limited: {
        "title": "OpenAI API Rate Limit",
        "steps": [
            "Check your OpenAI Usage Dashboard",
            "Verify your account has sufficient credits",
            "Consider upgrading to a higher tier plan",
            "Wait a few minutes before trying again",
        ],
        "link": OPENAI_USAGE_URL,
        "link_label": "Check Usage",
    },
    ErrorKind.general: {"title": "Error", "steps": []},
}

_STATUS_BY_KIND = {
    ErrorKind.quota_exceeded: 429,
    ErrorKind.rate_limited: 429,
    ErrorKind.general: 502,
}


class RecommendationError(CulturalGuideError):
    """A classified failure of the recommendation request. Never retried here."""

    def __init__(self, kind: ErrorKind, message: str):
        if kind not in _STATUS_BY_KIND:
            raise ValueError(f"unsupported recommendation error kind: {kind}")
        super().__init__(message)
        self.kind = kind
        self.status_code = _STATUS_BY_KIND[kind]

    def to_payload(self) -> ErrorPayload:
        guidance = _GUIDANCE[self.kind]
        return ErrorPayload(
            kind=self.kind.value,
            title=guidance["title"],
            message=self.message,
            steps=list(guidance["steps"]),
            link=guidance.get("link"),
            link_label=guidance.get("link_label"),
        )


class RequestInFlightError(CulturalGuideError):
    status_code = 409

    def __init__(self, message: str = "A request is already in progress for this session."):
        super().__init__(message)


class SessionNotFoundError(CulturalGuideError):
    status_code = 404

    def __init__(self, session_id: str):
        super().__init__(f"Unknown session: {session_id}")
        self.session_id = session_id


class IncompleteRequestError(CulturalGuideError):
    status_code = 422


class NoResultsError(CulturalGuideError):
    status_code = 404

    def __init__(self, message: str = "No recommendations to export"):
        super().__init__(message)
