# main.py

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from fastapi.middleware.wsgi import WSGIMiddleware
from loguru import logger
import io

from config import get_settings
from logging_setup import setup_logging
from schema import AnalysisRequest, AnalysisResult, ReportPdfRequest, ReportResponse
from risk_engine import build_analysis_result, record_from_request
from report_client import FALLBACK_REPORT, ReportBusy, ReportSession
from safety_report import generate_safety_pdf

# 대시보드는 같은 프로세스에서 /dashboard 로 서빙
from risk_dashboard import dash_app

settings = get_settings()
setup_logging(settings.log_level)

app = FastAPI(
    title="DriveSafe Risk Analysis Service",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount("/dashboard", WSGIMiddleware(dash_app.server))


# 단일 사용자 대시보드: 프로세스당 리포트 세션 하나
_report_session = ReportSession()


def get_report_session() -> ReportSession:
    """
    프로세스 전체가 세션 하나를 공유한다 (사용자 1명 기준).
    다른 브라우저가 다른 차량으로 동시에 요청하면 409 를 받고,
    대시보드는 이전 리포트(또는 대체 문구)를 유지한다.
    """
    return _report_session


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/analysis", response_model=AnalysisResult)
def analyze(payload: AnalysisRequest) -> AnalysisResult:
    """
    폼 입력 -> 안전 점수, 경제성 추정, 차트용 지표.
    숫자가 아닌 입력은 0 으로 처리되므로 400 이 나지 않는다.
    """
    record = record_from_request(payload)
    return build_analysis_result(record)


@app.post("/analysis/report", response_model=ReportResponse)
async def analysis_report(
    payload: AnalysisRequest,
    session: ReportSession = Depends(get_report_session),
) -> ReportResponse:
    """
    AI 분석 리포트. 외부 서비스 실패 시에도 200 + 대체 문구.
    다른 차량 리포트가 생성 중이면 409.
    """
    record = record_from_request(payload)
    try:
        report = await session.request(record)
    except ReportBusy as exc:
        raise HTTPException(status_code=409, detail=str(exc))

    return ReportResponse(
        vehicle_number=record.vehicle_number,
        report=report,
        fallback=report == FALLBACK_REPORT,
    )


@app.post("/analysis/report/pdf")
async def analysis_report_pdf(
    payload: ReportPdfRequest,
    session: ReportSession = Depends(get_report_session),
):
    """
    분석 결과 + 리포트를 PDF 로 내려준다.
    리포트가 없으면 새로 생성한다.
    """
    record = record_from_request(payload.analysis)
    result = build_analysis_result(record)

    report = payload.report
    if report is None:
        try:
            report = await session.request(record)
        except ReportBusy as exc:
            raise HTTPException(status_code=409, detail=str(exc))

    pdf_bytes = generate_safety_pdf(result, report)
    logger.info("PDF report built for {} ({} bytes)", record.vehicle_number, len(pdf_bytes))

    return StreamingResponse(
        io.BytesIO(pdf_bytes),
        media_type="application/pdf",
        headers={
            "Content-Disposition": 'attachment; filename="safety_report.pdf"'
        },
    )


if __name__ == "__main__":
    import uvicorn

    # API 와 /dashboard 를 같은 포트에서 서빙
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
