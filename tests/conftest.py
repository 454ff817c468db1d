import httpx
import pytest

from config import Settings
from report_client import GeminiReportClient
from risk_engine import build_driving_record


class StubReportClient:
    """외부 호출 없이 정해진 문자열을 돌려주는 리포트 클라이언트."""

    def __init__(self, text="안전 운전 리포트", gate=None):
        self.text = text
        self.gate = gate
        self.calls = []

    async def generate_report(self, record):
        self.calls.append(record)
        if self.gate is not None:
            await self.gate.wait()
        return self.text


@pytest.fixture
def sample_record():
    return build_driving_record(
        "12가 3456",
        "15000",
        {"overspeeding": 3, "sudden_accel": "2.5", "sudden_stop": ""},
    )


@pytest.fixture
def settings():
    return Settings(
        gemini_api_key="test-key",
        gemini_model="gemini-test",
        gemini_base_url="https://gemini.test/v1beta",
        report_timeout_sec=1.0,
    )


@pytest.fixture
def make_client(settings):
    """httpx.MockTransport 로 Gemini 응답을 흉내내는 클라이언트 팩토리."""

    def _make(handler, **overrides):
        client_settings = settings.model_copy(update=overrides) if overrides else settings
        return GeminiReportClient(settings=client_settings, transport=httpx.MockTransport(handler))

    return _make


@pytest.fixture
def stub_client_cls():
    return StubReportClient
