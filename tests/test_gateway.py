"""Tests for veritas.ai.gateway.ContentAnalyzer."""

import json

import httpx
import pytest

from veritas.ai.gateway import (
    AnalysisRequest,
    AnalysisResult,
    GatewayCreditsExhausted,
    GatewayNotConfigured,
    GatewayRateLimited,
    GatewayUnavailable,
    MalformedAnalysis,
    parse_analysis,
    strip_code_fence,
)
from veritas.ai.prompts import build_user_prompt
from tests.conftest import gateway_reply, make_analyzer


@pytest.fixture
def request_model():
    return AnalysisRequest(
        username="crypto_guru_official",
        bio="Make $10k/day with my secret method",
        content_type="YouTube Video",
        platform="YouTube",
    )


class TestParsing:
    def test_strip_code_fence(self):
        assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fence('```\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fence('  {"a": 1} ') == '{"a": 1}'

    def test_parse_valid(self, alert_result):
        result = parse_analysis(json.dumps(alert_result))
        assert result.verification_status == "alert"
        assert result.analysis_details.risk_factors == ["unrealistic claims"]

    def test_parse_not_json(self):
        with pytest.raises(MalformedAnalysis):
            parse_analysis("I think this account looks fine.")

    def test_parse_wrong_status(self, verified_result):
        verified_result["verificationStatus"] = "scanning"
        with pytest.raises(MalformedAnalysis):
            parse_analysis(json.dumps(verified_result))

    def test_parse_confidence_out_of_range(self, verified_result):
        verified_result["confidenceScore"] = 140
        with pytest.raises(MalformedAnalysis):
            parse_analysis(json.dumps(verified_result))

    def test_incomplete_result(self):
        result = AnalysisResult.incomplete()
        assert result.verification_status == "unverified"
        assert result.confidence_score == 50
        assert result.analysis_details.risk_factors == ["Analysis parsing error"]


class TestPrompt:
    def test_user_prompt_mentions_every_field(self):
        prompt = build_user_prompt(
            "dr_sarah_cardio", "Cardiologist", "Instagram Reel", "Instagram",
            "https://cdn.test/a.png",
        )
        for fragment in ("@dr_sarah_cardio", "Cardiologist", "Instagram Reel", "Platform: Instagram"):
            assert fragment in prompt
        assert "Image URL provided: Yes" in prompt

    def test_user_prompt_defaults(self):
        prompt = build_user_prompt("someone", "", "TikTok Video")
        assert "Platform: Unknown" in prompt
        assert "No image provided" in prompt


@pytest.mark.asyncio
class TestContentAnalyzer:
    async def test_success_with_fenced_reply(self, request_model, verified_result):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=gateway_reply(verified_result, fenced=True))

        result = await make_analyzer(handler).analyze(request_model)

        assert result.verification_status == "verified"
        assert result.confidence_score == 92
        assert result.deepfake_detected is False
        assert result.credential_verified is True
        assert seen["auth"] == "Bearer test-key"
        assert seen["body"]["model"] == "test-model"
        roles = [m["role"] for m in seen["body"]["messages"]]
        assert roles == ["system", "user"]
        assert "crypto_guru_official" in seen["body"]["messages"][1]["content"]

    @pytest.mark.parametrize(
        "status_code, error",
        [
            (429, GatewayRateLimited),
            (402, GatewayCreditsExhausted),
            (500, GatewayUnavailable),
            (503, GatewayUnavailable),
        ],
    )
    async def test_error_statuses(self, request_model, status_code, error):
        analyzer = make_analyzer(lambda request: httpx.Response(status_code, text="nope"))
        with pytest.raises(error) as exc_info:
            await analyzer.analyze(request_model)
        if status_code in (429, 402):
            assert exc_info.value.status_code == status_code

    async def test_unparseable_content(self, request_model):
        analyzer = make_analyzer(
            lambda request: httpx.Response(200, json=gateway_reply("definitely not json"))
        )
        with pytest.raises(MalformedAnalysis):
            await analyzer.analyze(request_model)

    async def test_missing_choices(self, request_model):
        analyzer = make_analyzer(lambda request: httpx.Response(200, json={"choices": []}))
        with pytest.raises(MalformedAnalysis, match="No response from AI"):
            await analyzer.analyze(request_model)

    async def test_empty_content(self, request_model):
        analyzer = make_analyzer(lambda request: httpx.Response(200, json=gateway_reply("")))
        with pytest.raises(MalformedAnalysis):
            await analyzer.analyze(request_model)

    async def test_missing_api_key_skips_network(self, request_model):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200)

        with pytest.raises(GatewayNotConfigured):
            await make_analyzer(handler, api_key="").analyze(request_model)
        assert calls == []

    async def test_timeout_is_unavailable(self, request_model):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(GatewayUnavailable, match="timed out"):
            await make_analyzer(handler).analyze(request_model)

    async def test_connection_error_is_unavailable(self, request_model):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(GatewayUnavailable):
            await make_analyzer(handler).analyze(request_model)
