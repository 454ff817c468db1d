# report_prompt.py

from schema import RISK_LABELS, DrivingRecord, RiskCounters


ATTRIBUTION_LINE = "분석 기관: 한국교통안전공단 AI 청년자문단 손유준"
NO_RISK_SUMMARY = "없음 (매우 안전함)"


PROMPT_TEMPLATE = """
차량번호 {vehicle_number}의 운전 데이터를 분석하여 전문적인 '안전운전 및 경제운전 교정 리포트'를 작성하세요.

데이터 요약:
- 총 주행거리: {total_distance}km
- 검출된 위험 행동: {risk_summary}

리포트 구성 가이드:
1. 운전자의 전반적인 운전 스타일 평가 (칭찬과 조언 포함)
2. 가장 두드러진 위험 요소의 위험성(사고 확률 등) 분석
3. 구체적인 교정 방법 (예: 급가속 방지를 위한 페달링 기법 등)
4. 경제성 분석 결과(유류비 절감)에 대한 코멘트
5. 마지막 한마디: 운전자를 격려하는 따뜻한 메시지

작성 규칙:
- 텍스트 강조를 위한 특수 기호(별표, 대시, 백틱 등)는 절대 사용하지 마세요.
- 읽기 편하게 문단 사이에 줄바꿈을 충분히 사용하세요.
- 마지막 줄에는 반드시 "{attribution}"을 명시하세요.
"""


def _format_number(value: float) -> str:
    # 3.0 -> "3", 2.5 -> "2.5"
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def summarize_risks(counters: RiskCounters) -> str:
    """
    0 보다 큰 항목만 "라벨: N회" 로 나열.
    하나도 없으면 NO_RISK_SUMMARY.
    """
    parts = [
        f"{RISK_LABELS[category]}: {_format_number(value)}회"
        for category, value in counters.items()
        if value > 0
    ]
    return ", ".join(parts) or NO_RISK_SUMMARY


def build_prompt(record: DrivingRecord) -> str:
    """
    DrivingRecord -> 리포트 생성 프롬프트.
    순수 함수: 같은 레코드면 항상 같은 프롬프트 (재생성 시 동일 요청).
    """
    return PROMPT_TEMPLATE.format(
        vehicle_number=record.vehicle_number,
        total_distance=_format_number(record.total_distance),
        risk_summary=summarize_risks(record.risks),
        attribution=ATTRIBUTION_LINE,
    ).strip()
