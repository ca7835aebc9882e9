import json
from types import SimpleNamespace
from typing import List

import httpx
import openai
import pytest

from cultural_guide import llm
from cultural_guide.errors import ConfigurationError, ErrorKind, RecommendationError
from cultural_guide.llm import (
    FALLBACK_IMAGE_URL,
    RecommendationClient,
    build_prompt,
    classify_error,
    parse_recommendations,
)
from cultural_guide.profiles import DEFAULT_TASTE_PROFILE
from cultural_guide.qloo import analyze_behavior_patterns, create_sample_profile, generate_taste_connections
from cultural_guide.settings import Settings

_RECOMMENDATION = {
    "name": "Nishijin Textile Center",
    "description": "Watch kimono weaving demonstrations and try hand-loom weaving.",
    "imageUrl": "https://images.example.com/nishijin.jpg",
    "culturalContext": "Nishijin-ori has been woven in Kyoto for over 1,200 years.",
    "link": "https://www.nishijin.or.jp",
    "tags": ["crafts", "textiles", "workshop"],
    "rating": 4.6,
    "qlooAlignment": {
        "behaviorMatch": ["artisan crafts", "pottery"],
        "affinityScore": 0.88,
        "reasoning": "Strong craft affinity.",
    },
}


class RateLimitedError(Exception):
    status_code = 429


def _stub_openai(content: str | None = None, error: Exception | None = None):
    calls: List[dict] = []
    instances: List[dict] = []

    class _Completions:
        @staticmethod
        def create(**kwargs):
            calls.append(kwargs)
            if error is not None:
                raise error
            return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])

    class _OpenAIStub:
        def __init__(self, *args, **kwargs):
            instances.append(kwargs)
            self.chat = SimpleNamespace(completions=_Completions)

    return _OpenAIStub, calls, instances


def _client() -> RecommendationClient:
    return RecommendationClient(Settings(openai_api_key="sk-test", model="gpt-4o-mini"))


def test_generate_sends_one_json_request(monkeypatch):
    stub, calls, instances = _stub_openai(json.dumps({"recommendations": [_RECOMMENDATION]}))
    monkeypatch.setattr(llm, "OpenAI", stub)

    recs = _client().generate("Kyoto, Japan", "traditional crafts", DEFAULT_TASTE_PROFILE)

    assert len(calls) == 1
    assert instances == [{"api_key": "sk-test", "max_retries": 0}]
    request = calls[0]
    assert request["model"] == "gpt-4o-mini"
    assert request["response_format"] == {"type": "json_object"}
    user_prompt = request["messages"][1]["content"]
    assert "Destination: Kyoto, Japan" in user_prompt
    assert "cultural explorer" in user_prompt
    assert "qlooAlignment" not in user_prompt
    assert recs[0].name == "Nishijin Textile Center"
    # no behavioral profile informed this request
    assert recs[0].qloo_alignment is None


def test_behavioral_profile_keeps_alignment(monkeypatch):
    stub, calls, _ = _stub_openai(json.dumps({"recommendations": [_RECOMMENDATION]}))
    monkeypatch.setattr(llm, "OpenAI", stub)
    profile = create_sample_profile()

    recs = _client().generate(
        "Kyoto, Japan",
        "traditional crafts",
        profile,
        analyze_behavior_patterns(profile),
        generate_taste_connections(profile),
    )

    assert recs[0].qloo_alignment.affinity_score == 0.88
    assert recs[0].qloo_alignment.behavior_match == ["artisan crafts", "pottery"]
    user_prompt = calls[0]["messages"][1]["content"]
    assert "qlooAlignment" in user_prompt
    assert "- dining: Gravitates towards" in user_prompt
    assert "- food -> culinary tours (0.92)" in user_prompt


@pytest.mark.parametrize("key", [None, "", "your_openai_api_key_here"])
def test_missing_key_fails_before_any_client_is_built(monkeypatch, key):
    stub, calls, instances = _stub_openai("{}")
    monkeypatch.setattr(llm, "OpenAI", stub)
    client = RecommendationClient(Settings(openai_api_key=key))

    with pytest.raises(ConfigurationError):
        client.generate("Kyoto, Japan", "temples", "free text")

    assert instances == []
    assert calls == []


def test_quota_exhaustion_is_classified_as_quota_exceeded(monkeypatch):
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    error = openai.RateLimitError(
        "Error code: 429 - You exceeded your current quota, please check your plan and billing details.",
        response=httpx.Response(429, request=request),
        body={"code": "insufficient_quota"},
    )
    stub, _, _ = _stub_openai(error=error)
    monkeypatch.setattr(llm, "OpenAI", stub)

    with pytest.raises(RecommendationError) as excinfo:
        _client().generate("Kyoto, Japan", "temples", "free text")

    assert excinfo.value.kind is ErrorKind.quota_exceeded
    assert excinfo.value.status_code == 429
    assert excinfo.value.__cause__ is error


def test_rate_limit_without_quota_differs_from_quota(monkeypatch):
    stub, calls, _ = _stub_openai(error=RateLimitedError("Rate limit reached for requests"))
    monkeypatch.setattr(llm, "OpenAI", stub)

    with pytest.raises(RecommendationError) as excinfo:
        _client().generate("Kyoto, Japan", "temples", "free text")

    assert excinfo.value.kind is ErrorKind.rate_limited
    assert excinfo.value.kind is not ErrorKind.quota_exceeded
    # no automatic retry
    assert len(calls) == 1


def test_classify_error_rules():
    assert classify_error(Exception("429 quota exhausted")).kind is ErrorKind.quota_exceeded
    assert classify_error(Exception("HTTP 429 Too Many Requests")).kind is ErrorKind.rate_limited
    assert classify_error(RateLimitedError("slow down")).kind is ErrorKind.rate_limited

    general = classify_error(ValueError("Model overloaded, try later"))
    assert general.kind is ErrorKind.general
    assert general.message == "Model overloaded, try later"
    assert general.status_code == 502

    already = RecommendationError(ErrorKind.general, "x")
    assert classify_error(already) is already


def test_classified_errors_carry_guidance():
    quota = classify_error(Exception("429 quota")).to_detail()
    rate = classify_error(Exception("429")).to_detail()

    assert quota["link"] == "https://platform.openai.com/account/billing"
    assert rate["link"] == "https://platform.openai.com/account/usage"
    assert quota["title"] != rate["title"]
    assert quota["steps"] and rate["steps"]


@pytest.mark.parametrize(
    "raw",
    [None, "", "not json", "{}", '{"recommendations": []}', '{"recommendations": ["x"]}', '[{"name": "no description"}]'],
)
def test_malformed_responses_are_general_errors(raw):
    with pytest.raises(RecommendationError) as excinfo:
        parse_recommendations(raw, keep_alignment=False)

    assert excinfo.value.kind is ErrorKind.general


def test_bare_list_and_missing_image_are_accepted():
    item = {k: v for k, v in _RECOMMENDATION.items() if k != "imageUrl"}

    recs = parse_recommendations(json.dumps([item]), keep_alignment=True)

    assert recs[0].image_url == FALLBACK_IMAGE_URL
    assert recs[0].qloo_alignment is not None


def test_percent_affinity_score_is_rescaled():
    item = dict(_RECOMMENDATION, qlooAlignment=dict(_RECOMMENDATION["qlooAlignment"], affinityScore=88))

    recs = parse_recommendations(json.dumps([item]), keep_alignment=True)

    assert recs[0].qloo_alignment.affinity_score == pytest.approx(0.88)


@pytest.mark.parametrize("score", [-0.2, 250, "high"])
def test_invalid_alignment_drops_only_that_block(score):
    bad = dict(_RECOMMENDATION, name="Gion", qlooAlignment=dict(_RECOMMENDATION["qlooAlignment"], affinityScore=score))

    recs = parse_recommendations(json.dumps({"recommendations": [_RECOMMENDATION, bad]}), keep_alignment=True)

    assert [r.name for r in recs] == ["Nishijin Textile Center", "Gion"]
    assert recs[0].qloo_alignment.affinity_score == 0.88
    assert recs[1].qloo_alignment is None


def test_free_text_profile_is_embedded_verbatim():
    prompt = build_prompt("Lisbon", "fado and tiles", "I like {curly} things")

    assert "I like {curly} things" in prompt
    assert "Behavioral insights:\nnone" in prompt
