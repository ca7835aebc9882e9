# cultural_guide/export.py
import json
import re
from typing import Any, Dict, List, Sequence

from cultural_guide.schemas import Recommendation

EXPORT_SUFFIX = "-travel-recommendations.json"


def export_filename(destination: str) -> str:
    """'Kyoto, Japan' -> 'kyoto,-japan-travel-recommendations.json' (each whitespace char becomes '-')."""
    return re.sub(r"\s", "-", destination.lower()) + EXPORT_SUFFIX


def recommendation_payload(recommendations: Sequence[Recommendation]) -> List[Dict[str, Any]]:
    return [rec.model_dump(by_alias=True, exclude_none=True) for rec in recommendations]


def export_recommendations(recommendations: Sequence[Recommendation]) -> str:
    return json.dumps(recommendation_payload(recommendations), indent=2, ensure_ascii=False)


def load_recommendations(document: str) -> List[Recommendation]:
    """Parse an exported document back into records."""
    return [Recommendation.model_validate(item) for item in json.loads(document)]
