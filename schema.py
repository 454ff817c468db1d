# schema.py
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


UNSPECIFIED_VEHICLE = "미지정"


class RiskCategory(str, Enum):
    """
    위험 운전 행동 11종 (고정 순서).
    차트, 프롬프트 요약, PDF 모두 이 순서를 따른다.
    """
    OVERSPEEDING = "overspeeding"
    LONG_OVERSPEEDING = "long_overspeeding"
    SUDDEN_ACCEL = "sudden_accel"
    SUDDEN_START = "sudden_start"
    SUDDEN_DECEL = "sudden_decel"
    SUDDEN_STOP = "sudden_stop"
    SUDDEN_LEFT = "sudden_left"
    SUDDEN_RIGHT = "sudden_right"
    SUDDEN_UTURN = "sudden_uturn"
    SUDDEN_OVERTAKING = "sudden_overtaking"
    SUDDEN_LANE_CHANGE = "sudden_lane_change"


RISK_LABELS: Dict[RiskCategory, str] = {
    RiskCategory.OVERSPEEDING: "과속",
    RiskCategory.LONG_OVERSPEEDING: "장기과속",
    RiskCategory.SUDDEN_ACCEL: "급가속",
    RiskCategory.SUDDEN_START: "급출발",
    RiskCategory.SUDDEN_DECEL: "급감속",
    RiskCategory.SUDDEN_STOP: "급정지",
    RiskCategory.SUDDEN_LEFT: "급좌회전",
    RiskCategory.SUDDEN_RIGHT: "급우회전",
    RiskCategory.SUDDEN_UTURN: "급U턴",
    RiskCategory.SUDDEN_OVERTAKING: "급앞지르기",
    RiskCategory.SUDDEN_LANE_CHANGE: "급진로변경",
}


class RiskCounters(BaseModel):
    """
    차량 한 대의 위험 행동 횟수.
    구간 보정값이 들어올 수 있어 float 로 받는다.
    """
    model_config = ConfigDict(frozen=True)

    overspeeding: float = Field(default=0.0, ge=0)
    long_overspeeding: float = Field(default=0.0, ge=0)
    sudden_accel: float = Field(default=0.0, ge=0)
    sudden_start: float = Field(default=0.0, ge=0)
    sudden_decel: float = Field(default=0.0, ge=0)
    sudden_stop: float = Field(default=0.0, ge=0)
    sudden_left: float = Field(default=0.0, ge=0)
    sudden_right: float = Field(default=0.0, ge=0)
    sudden_uturn: float = Field(default=0.0, ge=0)
    sudden_overtaking: float = Field(default=0.0, ge=0)
    sudden_lane_change: float = Field(default=0.0, ge=0)

    def get(self, category: RiskCategory) -> float:
        return getattr(self, category.value)

    def items(self) -> Iterator[Tuple[RiskCategory, float]]:
        for category in RiskCategory:
            yield category, self.get(category)

    def total(self) -> float:
        return sum(value for _, value in self.items())

    def as_dict(self) -> Dict[str, float]:
        return {category.value: value for category, value in self.items()}


class DrivingRecord(BaseModel):
    """
    분석 1건의 입력. 생성 후 변경하지 않는다 (새 분석 = 새 레코드).
    """
    model_config = ConfigDict(frozen=True)

    vehicle_number: str = UNSPECIFIED_VEHICLE
    total_distance: float = Field(default=0.0, ge=0)   # km
    fuel_used: float = Field(default=0.0, ge=0)        # L, 주행거리 / 기준연비
    risks: RiskCounters = Field(default_factory=RiskCounters)


class EconomyProjection(BaseModel):
    savings: int                    # 원
    carbon: float                   # kg CO2
    current_efficiency: float       # km/L
    potential_efficiency: float     # km/L
    efficiency_gain: float          # 0.05 ~ 0.30
    gain_percent: str               # "25.0"
    total_risks: float


# ---------------------------------------------------------
# API payloads
# ---------------------------------------------------------


class AnalysisRequest(BaseModel):
    """
    /analysis 요청 본문. 폼 입력 그대로 (빈 문자열, 숫자 아닌 값 허용).
    숫자 변환은 risk_engine.record_from_request 가 담당한다.
    """
    vehicle_number: Optional[str] = None
    total_distance: Any = None
    risks: Dict[str, Any] = Field(default_factory=dict)


class RiskShare(BaseModel):
    category: RiskCategory
    label: str
    value: float
    share_pct: float


class AnalysisResult(BaseModel):
    record: DrivingRecord
    safety_score: int
    safety_grade: str
    economy: EconomyProjection

    # "집중 관리가 필요해요" 카드 (위험 행동이 없으면 None)
    dominant_risk: Optional[RiskCategory] = None
    dominant_risk_label: Optional[str] = None

    risk_breakdown: List[RiskShare] = []
    monthly_savings: List[int] = []


class ReportResponse(BaseModel):
    vehicle_number: str
    report: str
    fallback: bool = False


class ReportPdfRequest(BaseModel):
    analysis: AnalysisRequest
    report: Optional[str] = None
