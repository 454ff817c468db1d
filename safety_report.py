# safety_report.py

from io import BytesIO
from typing import Optional

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import cm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.cidfonts import UnicodeCIDFont
from reportlab.pdfgen import canvas

from report_client import display_report
from schema import AnalysisResult


# 한글 출력용 CID 폰트 (reportlab 내장)
KOREAN_FONT = "HYGothic-Medium"
pdfmetrics.registerFont(UnicodeCIDFont(KOREAN_FONT))

COPYRIGHT_STRING = "Copyright © Yu-Jun Son, Pukyong National University"

GRADE_LABELS = {
    "SAFE": "안전",
    "CAUTION": "주의",
    "DANGER": "위험",
}


def generate_safety_pdf(result: AnalysisResult, report_text: Optional[str] = None) -> bytes:
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)

    width, height = A4
    text_width = width - 4 * cm
    y = height - 2 * cm

    def new_page_if_needed(font_size: int) -> None:
        nonlocal y
        if y < 3 * cm:
            c.showPage()
            y = height - 2 * cm
            c.setFont(KOREAN_FONT, font_size)

    record = result.record
    economy = result.economy

    c.setFont(KOREAN_FONT, 16)
    c.drawString(2 * cm, y, "DriveSafe - 안전운전 및 경제운전 교정 리포트")
    y -= 1.5 * cm

    c.setFont(KOREAN_FONT, 11)
    c.drawString(2 * cm, y, f"차량 번호 : {record.vehicle_number}")
    y -= 0.7 * cm
    c.drawString(2 * cm, y, f"주행 거리 : {record.total_distance:,.1f} km (추정 연료 {record.fuel_used:,.1f} L)")
    y -= 0.7 * cm
    grade = GRADE_LABELS.get(result.safety_grade, result.safety_grade)
    c.drawString(2 * cm, y, f"안전 운전 점수 : {result.safety_score} / 100 ({grade})")
    y -= 0.7 * cm
    if result.dominant_risk_label:
        c.drawString(2 * cm, y, f"집중 관리 항목 : {result.dominant_risk_label}")
        y -= 0.7 * cm
    y -= 0.3 * cm

    # 경제성
    c.setFont(KOREAN_FONT, 12)
    c.drawString(2 * cm, y, "경제성 분석 :")
    y -= 0.8 * cm
    c.setFont(KOREAN_FONT, 10)
    for line in (
        f"- 연간 예상 유류비 절감 : {economy.savings:,} 원",
        f"- 연간 탄소 배출 저감량 : {economy.carbon:,.2f} kg",
        f"- 연비 : {economy.current_efficiency:.2f} km/L -> {economy.potential_efficiency:.2f} km/L "
        f"(+{economy.gain_percent}%)",
    ):
        c.drawString(2 * cm, y, line)
        y -= 0.6 * cm

    # 위험 행동
    y -= 0.5 * cm
    c.setFont(KOREAN_FONT, 12)
    c.drawString(2 * cm, y, f"위험 행동 (누적 {economy.total_risks:,.0f}회) :")
    y -= 0.8 * cm
    c.setFont(KOREAN_FONT, 10)

    for share in result.risk_breakdown:
        c.drawString(2 * cm, y, f"- {share.label} : {share.value:g}회 ({share.share_pct:.1f}%)")
        y -= 0.6 * cm
        new_page_if_needed(10)

    # 리포트 본문
    y -= 0.5 * cm
    new_page_if_needed(12)
    c.setFont(KOREAN_FONT, 12)
    c.drawString(2 * cm, y, "전문 분석 리포트 :")
    y -= 0.8 * cm
    c.setFont(KOREAN_FONT, 10)

    for paragraph in display_report(report_text).split("\n"):
        if not paragraph.strip():
            continue
        for line in simpleSplit(paragraph.strip(), KOREAN_FONT, 10, text_width):
            c.drawString(2 * cm, y, line)
            y -= 0.55 * cm
            new_page_if_needed(10)
        y -= 0.2 * cm

    c.setFont(KOREAN_FONT, 8)
    c.drawString(2 * cm, 1.5 * cm, COPYRIGHT_STRING)

    c.showPage()
    c.save()
    pdf = buffer.getvalue()
    buffer.close()
    return pdf
