"""
report_client 단위 테스트

Gemini 호출은 httpx.MockTransport 로 대체합니다.
어떤 실패에서도 generate_report 는 예외 없이 문자열을 돌려줘야 합니다.
"""

import asyncio
import json

import httpx
import pytest

from report_client import (
    DISPLAY_PLACEHOLDER,
    FALLBACK_REPORT,
    TEMPERATURE,
    TOP_P,
    EmptyResponse,
    ReportBusy,
    ReportSession,
    ServiceUnavailable,
    display_report,
    sanitize_report,
)
from report_prompt import ATTRIBUTION_LINE, build_prompt
from risk_engine import build_driving_record


def _gemini_response(text):
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}


class TestSanitizeReport:
    """강조 기호 제거 테스트"""

    def test_removes_emphasis_markers(self):
        raw = "### 운전 스타일\n**급가속**이 잦습니다 -- 주의하세요.\n마지막 줄"
        assert sanitize_report(raw) == "운전 스타일\n급가속이 잦습니다  주의하세요.\n마지막 줄"

    def test_preserves_other_characters_and_line_breaks(self):
        raw = "1. 평가: 좋음 (90%)\n\n2. *단일 별표*와 # 단일 샵, - 단일 대시\n끝"
        assert sanitize_report(raw) == raw

    def test_trims_whitespace(self):
        assert sanitize_report("  \n리포트 본문\n\n ") == "리포트 본문"

    def test_no_marker_left(self):
        cleaned = sanitize_report("**a** ###b ----c")
        assert "**" not in cleaned
        assert "###" not in cleaned
        assert "--" not in cleaned


class TestDisplayReport:
    """화면 표시용 대체 문구 테스트"""

    def test_empty_text_uses_placeholder(self):
        assert display_report("") == DISPLAY_PLACEHOLDER
        assert display_report(None) == DISPLAY_PLACEHOLDER

    def test_failure_markers_use_placeholder(self):
        assert display_report(FALLBACK_REPORT) == DISPLAY_PLACEHOLDER
        assert display_report("Error: 분석 시스템 연결 오류") == DISPLAY_PLACEHOLDER

    def test_normal_text_is_kept(self):
        assert display_report("좋은 운전 습관입니다.") == "좋은 운전 습관입니다."

    def test_two_fallback_layers_are_distinct(self):
        assert DISPLAY_PLACEHOLDER != FALLBACK_REPORT
        assert FALLBACK_REPORT.endswith(ATTRIBUTION_LINE)


class TestGeminiReportClient:
    """Gemini 클라이언트 테스트"""

    @pytest.mark.asyncio
    async def test_success_is_sanitized(self, make_client, sample_record):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["key"] = request.headers.get("x-goog-api-key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_gemini_response(f"**총평**\n좋습니다.\n\n{ATTRIBUTION_LINE}\n"))

        report = await make_client(handler).generate_report(sample_record)

        assert report == f"총평\n좋습니다.\n\n{ATTRIBUTION_LINE}"
        assert seen["url"] == "https://gemini.test/v1beta/models/gemini-test:generateContent"
        assert seen["key"] == "test-key"
        assert seen["body"]["generationConfig"] == {"temperature": TEMPERATURE, "topP": TOP_P}
        assert seen["body"]["contents"][0]["parts"][0]["text"] == build_prompt(sample_record)

    @pytest.mark.asyncio
    async def test_multiple_parts_are_joined(self, make_client, sample_record):
        def handler(request):
            body = {"candidates": [{"content": {"parts": [{"text": "첫 문단\n"}, {"text": "둘째 문단"}]}}]}
            return httpx.Response(200, json=body)

        assert await make_client(handler).generate_report(sample_record) == "첫 문단\n둘째 문단"

    @pytest.mark.asyncio
    async def test_network_error_falls_back(self, make_client, sample_record):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        assert await make_client(handler).generate_report(sample_record) == FALLBACK_REPORT

    @pytest.mark.asyncio
    async def test_http_error_falls_back(self, make_client, sample_record):
        def handler(request):
            return httpx.Response(503, json={"error": {"message": "overloaded"}})

        assert await make_client(handler).generate_report(sample_record) == FALLBACK_REPORT

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            {"candidates": []},
            {},
            _gemini_response(""),
            _gemini_response("   \n"),
            _gemini_response("** ### --"),
        ],
    )
    async def test_empty_text_falls_back(self, make_client, sample_record, body):
        def handler(request):
            return httpx.Response(200, json=body)

        assert await make_client(handler).generate_report(sample_record) == FALLBACK_REPORT

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", [b"not json", b"[1, 2, 3]", b'{"candidates": "oops"}'])
    async def test_malformed_payload_falls_back(self, make_client, sample_record, content):
        def handler(request):
            return httpx.Response(200, content=content, headers={"content-type": "application/json"})

        assert await make_client(handler).generate_report(sample_record) == FALLBACK_REPORT

    @pytest.mark.asyncio
    async def test_missing_api_key_skips_request(self, make_client, sample_record):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=_gemini_response("never"))

        client = make_client(handler, gemini_api_key="")

        assert await client.generate_report(sample_record) == FALLBACK_REPORT
        assert calls == []

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self, make_client, sample_record):
        async def handler(request):
            await asyncio.sleep(1)
            return httpx.Response(200, json=_gemini_response("too late"))

        client = make_client(handler, report_timeout_sec=0.05)

        assert await client.generate_report(sample_record) == FALLBACK_REPORT

    @pytest.mark.asyncio
    async def test_generate_text_raises_typed_errors(self, make_client):
        def empty(request):
            return httpx.Response(200, json={"candidates": []})

        def broken(request):
            return httpx.Response(500)

        with pytest.raises(EmptyResponse):
            await make_client(empty).generate_text("프롬프트")
        with pytest.raises(ServiceUnavailable):
            await make_client(broken).generate_text("프롬프트")


class TestReportSession:
    """동시 요청 가드 테스트"""

    @pytest.mark.asyncio
    async def test_same_record_joins_pending_request(self, stub_client_cls, sample_record):
        gate = asyncio.Event()
        stub = stub_client_cls(text="공유 리포트", gate=gate)
        session = ReportSession(client=stub)

        first = asyncio.ensure_future(session.request(sample_record))
        await asyncio.sleep(0)
        second = asyncio.ensure_future(session.request(sample_record))
        await asyncio.sleep(0)
        assert session.busy

        gate.set()

        assert await first == "공유 리포트"
        assert await second == "공유 리포트"
        assert len(stub.calls) == 1
        assert not session.busy

    @pytest.mark.asyncio
    async def test_other_record_is_rejected_while_busy(self, stub_client_cls, sample_record):
        gate = asyncio.Event()
        session = ReportSession(client=stub_client_cls(gate=gate))
        other = build_driving_record("99하 9999", 10)

        first = asyncio.ensure_future(session.request(sample_record))
        await asyncio.sleep(0)

        with pytest.raises(ReportBusy):
            await session.request(other)

        gate.set()
        await first
        assert session.current_record == sample_record

    @pytest.mark.asyncio
    async def test_new_request_after_completion(self, stub_client_cls, sample_record):
        stub = stub_client_cls()
        session = ReportSession(client=stub)
        other = build_driving_record("99하 9999", 10)

        await session.request(sample_record)
        await session.request(other)

        assert stub.calls == [sample_record, other]
        assert session.current_record is other
