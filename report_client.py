# report_client.py
"""
Gemini 기반 안전운전 리포트 생성.

generate_report 는 어떤 실패에도 예외를 던지지 않고 항상 문자열을 돌려준다.
실패는 로그로만 남기고 FALLBACK_REPORT 로 대체한다.
"""
import asyncio
from typing import Any, Dict, Optional

import httpx
from loguru import logger

from config import Settings, get_settings
from report_prompt import ATTRIBUTION_LINE, build_prompt
from schema import DrivingRecord


DEFAULT_MODEL = "gemini-3-flash-preview"
TEMPERATURE = 0.8
TOP_P = 0.9

FALLBACK_REPORT = (
    "현재 AI 분석 서버가 일시적으로 응답하지 않습니다. "
    "데이터를 확인하여 직접적인 분석 결과를 참고해 주시기 바랍니다.\n\n"
    f"{ATTRIBUTION_LINE}"
)

# 화면 표시 단계의 대체 문구 (FALLBACK_REPORT 와 별개)
DISPLAY_PLACEHOLDER = "결과를 분석중입니다. 장시간 결과가 나오지 않을 시 새로고침 해주세요."
FAILURE_MARKERS = ("응답하지 않습니다", "Error")

EMPHASIS_MARKERS = ("**", "###", "--")


class ReportError(Exception):
    """리포트 생성 실패 (내부용)."""
    pass


class ServiceUnavailable(ReportError):
    """네트워크 오류, HTTP 오류, 타임아웃, 키 누락, 응답 형식 오류."""
    pass


class EmptyResponse(ServiceUnavailable):
    pass


class ReportBusy(ReportError):
    """다른 레코드의 리포트가 아직 생성 중."""
    pass


def sanitize_report(text: str) -> str:
    """모델이 그래도 넣은 마크다운 강조 기호 제거 + 앞뒤 공백 정리."""
    for marker in EMPHASIS_MARKERS:
        text = text.replace(marker, "")
    return text.strip()


def display_report(text: Optional[str]) -> str:
    """
    화면에 보여줄 리포트.
    비어 있거나 실패 표식이 있으면 DISPLAY_PLACEHOLDER.
    """
    if not text or any(marker in text for marker in FAILURE_MARKERS):
        return DISPLAY_PLACEHOLDER
    return text


def _extract_text(data: Any) -> str:
    if not isinstance(data, dict):
        raise ServiceUnavailable("Unexpected response payload")

    candidates = data.get("candidates") or []
    if not candidates:
        raise EmptyResponse("Empty response from AI")

    first = candidates[0] if isinstance(candidates[0], dict) else {}
    parts = (first.get("content") or {}).get("parts") or []
    text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
    if not text.strip():
        raise EmptyResponse("Empty response from AI")
    return text


class GeminiReportClient:
    """
    Gemini generateContent REST 호출.
    요청마다 AsyncClient 를 새로 연다 (키 변경 즉시 반영).
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport

    @property
    def model(self) -> str:
        return self.settings.gemini_model or DEFAULT_MODEL

    @property
    def endpoint(self) -> str:
        base = self.settings.gemini_base_url.rstrip("/")
        return f"{base}/models/{self.model}:generateContent"

    def build_payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": TEMPERATURE,
                "topP": TOP_P,
            },
        }

    async def generate_text(self, prompt: str) -> str:
        """
        프롬프트 1회 호출. 실패 시 ServiceUnavailable / EmptyResponse.
        """
        if not self.settings.gemini_api_key:
            raise ServiceUnavailable("GEMINI_API_KEY is not configured")

        timeout = self.settings.report_timeout_sec
        headers = {"x-goog-api-key": self.settings.gemini_api_key}

        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await asyncio.wait_for(
                    client.post(self.endpoint, json=self.build_payload(prompt), headers=headers),
                    timeout=timeout,
                )
                response.raise_for_status()
                data = response.json()
        except asyncio.TimeoutError as exc:
            raise ServiceUnavailable(f"Report generation timed out after {timeout}s") from exc
        except httpx.HTTPStatusError as exc:
            raise ServiceUnavailable(f"Gemini returned HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise ServiceUnavailable(f"Gemini request failed: {exc!r}") from exc
        except ValueError as exc:
            raise ServiceUnavailable("Gemini returned invalid JSON") from exc

        return _extract_text(data)

    async def generate_report(self, record: DrivingRecord) -> str:
        """
        DrivingRecord -> 리포트 문자열. 절대 예외를 던지지 않는다.
        """
        prompt = build_prompt(record)

        try:
            text = await self.generate_text(prompt)
        except ReportError as exc:
            logger.warning("Gemini report failed for {}: {}", record.vehicle_number, exc)
            return FALLBACK_REPORT
        except Exception:
            logger.exception("Unexpected error while generating report for {}", record.vehicle_number)
            return FALLBACK_REPORT

        cleaned = sanitize_report(text)
        if not cleaned:
            logger.warning("Gemini report for {} was empty after sanitizing", record.vehicle_number)
            return FALLBACK_REPORT

        logger.info("Report generated for {} ({} chars)", record.vehicle_number, len(cleaned))
        return cleaned


class ReportSession:
    """
    세션당 동시에 하나의 리포트 요청만 허용.
      - 같은 레코드로 다시 요청 -> 진행 중인 결과를 함께 기다림
      - 다른 레코드로 요청 -> ReportBusy
    """

    def __init__(self, client: Optional[GeminiReportClient] = None):
        self.client = client or GeminiReportClient()
        self.current_record: Optional[DrivingRecord] = None
        self._pending: Optional[asyncio.Task] = None
        self._pending_record: Optional[DrivingRecord] = None

    @property
    def busy(self) -> bool:
        return self._pending is not None and not self._pending.done()

    async def request(self, record: DrivingRecord) -> str:
        if self.busy:
            if record == self._pending_record:
                logger.debug("Joining pending report for {}", record.vehicle_number)
                return await asyncio.shield(self._pending)
            raise ReportBusy(
                f"Report for {self._pending_record.vehicle_number} is still being generated"
            )

        # 레코드는 통째로 교체 (수정하지 않음)
        self.current_record = record
        self._pending_record = record
        self._pending = asyncio.ensure_future(self.client.generate_report(record))
        return await asyncio.shield(self._pending)
