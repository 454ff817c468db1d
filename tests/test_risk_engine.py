"""
risk_engine 단위 테스트

입력 파싱, 안전 점수, 경제성 추정, 대시보드용 파생 지표를 검증합니다.
"""

import pytest

from risk_engine import (
    MAX_EFFICIENCY_GAIN,
    build_analysis_result,
    build_driving_record,
    compute_economy_projection,
    compute_efficiency_gain,
    compute_safety_score,
    compute_total_risk,
    dominant_risk,
    monthly_savings,
    parse_numeric,
    record_from_request,
    risk_breakdown,
    safety_grade,
)
from schema import UNSPECIFIED_VEHICLE, AnalysisRequest, DrivingRecord, RiskCategory, RiskCounters


def _record(distance=15000.0, **risks):
    return DrivingRecord(
        vehicle_number="12가 3456",
        total_distance=distance,
        fuel_used=distance / 12.0,
        risks=RiskCounters(**risks),
    )


class TestParseNumeric:
    """폼 입력 파싱 테스트"""

    @pytest.mark.parametrize("value", [None, "", "   ", "abc", "1.2.3", [], {}, True])
    def test_invalid_input_becomes_zero(self, value):
        assert parse_numeric(value) == 0.0

    @pytest.mark.parametrize("value", ["nan", "inf", float("nan"), float("-inf")])
    def test_non_finite_becomes_zero(self, value):
        assert parse_numeric(value) == 0.0

    def test_numeric_strings(self):
        assert parse_numeric("15000") == 15000.0
        assert parse_numeric(" 2.5 ") == 2.5
        assert parse_numeric("15,000") == 15000.0

    def test_numbers_pass_through(self):
        assert parse_numeric(3) == 3.0
        assert parse_numeric(0.1) == 0.1

    def test_negative_is_clamped(self):
        assert parse_numeric(-4) == 0.0
        assert parse_numeric("-0.5") == 0.0


class TestBuildDrivingRecord:
    """DrivingRecord 생성 테스트"""

    def test_blank_vehicle_number_uses_sentinel(self):
        assert build_driving_record("", 100).vehicle_number == UNSPECIFIED_VEHICLE
        assert build_driving_record("   ", 100).vehicle_number == "미지정"
        assert build_driving_record(None, 100).vehicle_number == "미지정"

    def test_vehicle_number_is_trimmed(self):
        assert build_driving_record(" 12가 3456 ", 0).vehicle_number == "12가 3456"

    def test_missing_risks_default_to_zero(self):
        record = build_driving_record("A", "1000", {"sudden_stop": "4"})
        assert record.risks.sudden_stop == 4.0
        for category, value in record.risks.items():
            if category is not RiskCategory.SUDDEN_STOP:
                assert value == 0.0

    def test_unknown_risk_keys_are_ignored(self):
        record = build_driving_record("A", 0, {"drifting": 10})
        assert compute_total_risk(record.risks) == 0.0

    def test_fuel_used_is_derived(self):
        record = build_driving_record("A", 1200)
        assert record.fuel_used == pytest.approx(100.0)

    def test_blank_distance_is_zero(self):
        assert build_driving_record("A", "").total_distance == 0.0

    def test_from_request(self):
        payload = AnalysisRequest(
            vehicle_number="",
            total_distance="abc",
            risks={"overspeeding": "2", "sudden_left": None},
        )
        record = record_from_request(payload)
        assert record.vehicle_number == "미지정"
        assert record.total_distance == 0.0
        assert record.risks.overspeeding == 2.0
        assert record.risks.sudden_left == 0.0


class TestSafetyScore:
    """안전 점수 테스트"""

    def test_no_risk_is_perfect_score(self):
        assert compute_safety_score(_record()) == 100

    @pytest.mark.parametrize("total", [50, 51, 80.5, 1000])
    def test_large_totals_clamp_to_zero(self, total):
        assert compute_safety_score(_record(overspeeding=total)) == 0

    def test_linear_penalty(self):
        assert compute_safety_score(_record(overspeeding=3, sudden_stop=2)) == 90

    def test_fractional_counts_round_half_up(self):
        # 100 - 2 x 0.75 = 98.5 -> 99
        assert compute_safety_score(_record(sudden_accel=0.75)) == 99
        # 100 - 2 x 0.2 = 99.6 -> 100
        assert compute_safety_score(_record(sudden_accel=0.2)) == 100

    def test_monotonically_non_increasing(self):
        totals = [step * 0.5 for step in range(0, 130)]
        scores = [compute_safety_score(_record(overspeeding=t)) for t in totals]
        assert all(a >= b for a, b in zip(scores, scores[1:]))
        assert all(0 <= s <= 100 for s in scores)

    def test_score_depends_only_on_total(self):
        spread = _record(overspeeding=1, sudden_uturn=1, sudden_lane_change=1)
        single = _record(sudden_start=3)
        assert compute_safety_score(spread) == compute_safety_score(single)

    @pytest.mark.parametrize(
        "score,grade",
        [(100, "SAFE"), (80, "SAFE"), (79, "CAUTION"), (40, "CAUTION"), (39, "DANGER"), (0, "DANGER")],
    )
    def test_grade_thresholds(self, score, grade):
        assert safety_grade(score) == grade


class TestEconomyProjection:
    """경제성 추정 테스트"""

    def test_no_risk_baseline(self):
        economy = compute_economy_projection(_record(15000))

        assert economy.efficiency_gain == pytest.approx(0.05)
        assert economy.savings == 103125
        assert economy.carbon == pytest.approx(143.75)
        assert economy.potential_efficiency == pytest.approx(12.6)
        assert economy.current_efficiency == 12.0
        assert economy.gain_percent == "5.0"
        assert economy.total_risks == 0

    def test_ten_risk_events(self):
        economy = compute_economy_projection(_record(15000, overspeeding=4, sudden_stop=6))

        assert economy.efficiency_gain == pytest.approx(0.25)
        assert economy.savings == 515625
        assert economy.carbon == pytest.approx(718.75)
        assert economy.potential_efficiency == pytest.approx(15.0)
        assert economy.gain_percent == "25.0"
        assert economy.total_risks == 10

    @pytest.mark.parametrize("total", [13, 50, 1000])
    def test_gain_is_capped(self, total):
        assert compute_efficiency_gain(total) == pytest.approx(MAX_EFFICIENCY_GAIN)
        economy = compute_economy_projection(_record(15000, overspeeding=total))
        assert economy.efficiency_gain <= 0.30 + 1e-12
        assert economy.gain_percent == "30.0"

    def test_zero_distance(self):
        economy = compute_economy_projection(_record(0, overspeeding=5))
        assert economy.savings == 0
        assert economy.carbon == 0.0

    def test_savings_is_integer(self):
        economy = compute_economy_projection(_record(1234.5, sudden_left=1.5))
        assert isinstance(economy.savings, int)


class TestDashboardDerivations:
    """대시보드용 파생 지표 테스트"""

    def test_dominant_risk(self):
        assert dominant_risk(RiskCounters(sudden_stop=2, sudden_accel=5)) is RiskCategory.SUDDEN_ACCEL

    def test_dominant_risk_none_when_clean(self):
        assert dominant_risk(RiskCounters()) is None

    def test_dominant_risk_tie_keeps_first(self):
        assert dominant_risk(RiskCounters(sudden_right=3, overspeeding=3)) is RiskCategory.OVERSPEEDING

    def test_breakdown_order_and_shares(self):
        shares = risk_breakdown(RiskCounters(overspeeding=1, sudden_stop=3))

        assert [s.category for s in shares] == list(RiskCategory)
        assert shares[0].label == "과속"
        assert shares[0].share_pct == 25.0
        assert shares[5].share_pct == 75.0
        assert sum(s.share_pct for s in shares) == pytest.approx(100.0)

    def test_breakdown_without_risk(self):
        assert all(s.share_pct == 0.0 for s in risk_breakdown(RiskCounters()))

    def test_monthly_savings_accumulate(self):
        economy = compute_economy_projection(_record(15000))
        months = monthly_savings(economy)

        assert len(months) == 12
        assert months[-1] == economy.savings
        assert months == sorted(months)

    def test_build_analysis_result(self):
        result = build_analysis_result(_record(15000, sudden_lane_change=10))

        assert result.safety_score == 80
        assert result.safety_grade == "SAFE"
        assert result.dominant_risk is RiskCategory.SUDDEN_LANE_CHANGE
        assert result.dominant_risk_label == "급진로변경"
        assert result.economy.savings == 515625
        assert len(result.risk_breakdown) == 11
        assert len(result.monthly_savings) == 12
