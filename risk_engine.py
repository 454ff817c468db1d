# risk_engine.py

import math
from typing import Any, List, Mapping, Optional

from schema import (
    RISK_LABELS,
    UNSPECIFIED_VEHICLE,
    AnalysisRequest,
    AnalysisResult,
    DrivingRecord,
    EconomyProjection,
    RiskCategory,
    RiskCounters,
    RiskShare,
)


# ---------------------------------------------------------
# 도메인 가정값 (재보정은 여기서만)
# ---------------------------------------------------------

BASE_EFFICIENCY = 12.0          # km/L, 기준 연비
FUEL_PRICE_PER_LITER = 1650     # 원/L
CARBON_FACTOR = 2.3             # kg CO2 / L

BASE_EFFICIENCY_GAIN = 0.05     # 위험 행동이 없어도 5% 개선 여지
GAIN_PER_RISK_EVENT = 0.02      # 위험 행동 1회당 +2%
MAX_EFFICIENCY_GAIN = 0.30      # 상한 30%

RISK_PENALTY_POINTS = 2         # 위험 행동 1회당 감점
MAX_SAFETY_SCORE = 100

SAFE_THRESHOLD = 80
CAUTION_THRESHOLD = 40


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# ---------------------------------------------------------
# 폼 입력 파싱
# ---------------------------------------------------------


def parse_numeric(value: Any) -> float:
    """
    폼 입력값 -> float.
    빈 값, 숫자가 아닌 값, NaN/무한대는 0, 음수는 0 으로 자른다.
    예외는 절대 던지지 않는다.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if not value:
            return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return max(number, 0.0)


def build_driving_record(
    vehicle_number: Optional[str],
    total_distance: Any,
    risks: Optional[Mapping[str, Any]] = None,
) -> DrivingRecord:
    """
    입력 폼 -> DrivingRecord.
    차량번호가 비어 있으면 "미지정", 누락된 항목은 0.
    """
    risks = risks or {}
    counters = RiskCounters(
        **{category.value: parse_numeric(risks.get(category.value)) for category in RiskCategory}
    )

    distance = parse_numeric(total_distance)
    vehicle = (vehicle_number or "").strip() or UNSPECIFIED_VEHICLE

    return DrivingRecord(
        vehicle_number=vehicle,
        total_distance=distance,
        fuel_used=distance / BASE_EFFICIENCY,
        risks=counters,
    )


def record_from_request(payload: AnalysisRequest) -> DrivingRecord:
    return build_driving_record(
        vehicle_number=payload.vehicle_number,
        total_distance=payload.total_distance,
        risks=payload.risks,
    )


# ---------------------------------------------------------
# Scoring
# ---------------------------------------------------------


def compute_total_risk(counters: RiskCounters) -> float:
    return counters.total()


def compute_safety_score(record: DrivingRecord) -> int:
    """
    안전 점수 = 100 - 2 x (위험 행동 합계), [0, 100] 으로 자름.
    통계 모델이 아니라 해석이 쉬운 선형 감점 휴리스틱이다.
    """
    total = compute_total_risk(record.risks)
    score = _round_half_up(MAX_SAFETY_SCORE - RISK_PENALTY_POINTS * total)
    return max(0, min(MAX_SAFETY_SCORE, score))


def safety_grade(score: int) -> str:
    """
    점수 -> 등급 :
      >= 80  => SAFE
      >= 40  => CAUTION
      else   => DANGER
    """
    if score >= SAFE_THRESHOLD:
        return "SAFE"
    elif score >= CAUTION_THRESHOLD:
        return "CAUTION"
    else:
        return "DANGER"


def compute_efficiency_gain(total_risk: float) -> float:
    return min(BASE_EFFICIENCY_GAIN + total_risk * GAIN_PER_RISK_EVENT, MAX_EFFICIENCY_GAIN)


def compute_economy_projection(record: DrivingRecord) -> EconomyProjection:
    """
    운전 습관 교정 시 연비/유류비/탄소 개선 추정.
    위험 행동이 많을수록 개선 여지가 커진다 (상한 30%).
    """
    total = compute_total_risk(record.risks)
    gain = compute_efficiency_gain(total)

    total_fuel_used = record.total_distance / BASE_EFFICIENCY

    savings = _round_half_up(total_fuel_used * FUEL_PRICE_PER_LITER * gain)
    carbon = round(total_fuel_used * CARBON_FACTOR * gain, 2)
    potential_efficiency = round(BASE_EFFICIENCY * (1 + gain), 2)

    return EconomyProjection(
        savings=savings,
        carbon=carbon,
        current_efficiency=round(BASE_EFFICIENCY, 2),
        potential_efficiency=potential_efficiency,
        efficiency_gain=gain,
        gain_percent=f"{gain * 100:.1f}",
        total_risks=total,
    )


# ---------------------------------------------------------
# 대시보드용 파생 지표
# ---------------------------------------------------------


def dominant_risk(counters: RiskCounters) -> Optional[RiskCategory]:
    """가장 빈번한 위험 행동. 전부 0 이면 None (동률이면 앞 순서)."""
    best: Optional[RiskCategory] = None
    best_value = 0.0
    for category, value in counters.items():
        if value > best_value:
            best, best_value = category, value
    return best


def risk_breakdown(counters: RiskCounters) -> List[RiskShare]:
    total = counters.total()
    shares: List[RiskShare] = []
    for category, value in counters.items():
        shares.append(
            RiskShare(
                category=category,
                label=RISK_LABELS[category],
                value=round(value, 1),
                share_pct=round(value / total * 100.0, 1) if total > 0 else 0.0,
            )
        )
    return shares


def monthly_savings(projection: EconomyProjection) -> List[int]:
    """누적 절감액 (1월 ~ 12월)."""
    return [_round_half_up(projection.savings / 12 * month) for month in range(1, 13)]


# ---------------------------------------------------------
# API 에서 호출하는 진입점
# ---------------------------------------------------------


def build_analysis_result(record: DrivingRecord) -> AnalysisResult:
    score = compute_safety_score(record)
    economy = compute_economy_projection(record)
    top = dominant_risk(record.risks)

    return AnalysisResult(
        record=record,
        safety_score=score,
        safety_grade=safety_grade(score),
        economy=economy,
        dominant_risk=top,
        dominant_risk_label=RISK_LABELS[top] if top is not None else None,
        risk_breakdown=risk_breakdown(record.risks),
        monthly_savings=monthly_savings(economy),
    )
