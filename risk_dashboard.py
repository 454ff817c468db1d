# risk_dashboard.py

import requests
from dash import Dash, ctx, dcc, html, no_update
from dash.dependencies import Input, Output, State
from dash.exceptions import PreventUpdate
import plotly.graph_objs as go

from config import get_settings
from report_client import display_report
from report_prompt import ATTRIBUTION_LINE
from safety_report import COPYRIGHT_STRING
from schema import RISK_LABELS, RiskCategory

settings = get_settings()

# 🔧 대시보드는 같은 프로세스의 API 를 호출한다
API_BASE = settings.api_base_url
ANALYSIS_URL = f"{API_BASE}/analysis"
REPORT_URL = f"{API_BASE}/analysis/report"
PDF_URL = f"{API_BASE}/analysis/report/pdf"


# ============================================================
#  스타일
# ============================================================

BACKGROUND = "#f2f4f6"
CARD_BG = "#ffffff"
BORDER_RADIUS = "24px"
SHADOW = "0 10px 25px rgba(15, 23, 42, 0.06)"
PRIMARY = "#3182F6"
NAVY = "#1e1b4b"
TEXT_MUTED = "#8b95a1"
TEXT_DARK = "#191F28"

COLORS = [
    "#3182F6", "#F04452", "#00AD7C", "#FF7D00", "#8B5CF6", "#EC4899",
    "#06B6D4", "#64748B", "#F87171", "#60A5FA", "#34D399",
]

CARD_STYLE = {
    "backgroundColor": CARD_BG,
    "borderRadius": BORDER_RADIUS,
    "boxShadow": SHADOW,
    "padding": "24px 28px",
    "marginBottom": "20px",
}

INPUT_STYLE = {
    "width": "100%",
    "marginTop": "3px",
    "padding": "8px 10px",
    "borderRadius": "10px",
    "border": "1px solid #e5e8eb",
    "backgroundColor": "#f9fafb",
    "fontSize": "13px",
    "fontWeight": "600",
    "boxSizing": "border-box",
}

BUTTON_STYLE = {
    "backgroundColor": PRIMARY,
    "color": "white",
    "border": "none",
    "padding": "10px 18px",
    "cursor": "pointer",
    "borderRadius": "999px",
    "fontSize": "13px",
    "fontWeight": "700",
}

SECONDARY_BUTTON_STYLE = {
    **BUTTON_STYLE,
    "backgroundColor": "#f2f4f6",
    "color": "#4e5968",
}


# ============================================================
#  유틸리티
# ============================================================

def build_payload(vehicle_number, total_distance, risk_values):
    """
    폼 값 -> /analysis 요청 본문.
    숫자 변환은 API 쪽에서 하므로 입력값을 그대로 보낸다.
    """
    return {
        "vehicle_number": vehicle_number,
        "total_distance": total_distance,
        "risks": {
            category.value: value
            for category, value in zip(RiskCategory, risk_values)
        },
    }


def grade_color(grade: str) -> str:
    mapping = {
        "SAFE": "#00AD7C",      # 80점 이상
        "CAUTION": "#FF7D00",   # 40점 이상
        "DANGER": "#F04452",
    }
    return mapping.get((grade or "").upper(), TEXT_DARK)


def report_paragraphs(report_text):
    """리포트 -> 빈 줄을 뺀 문단 리스트 (실패 시 대체 문구)."""
    text = display_report(report_text)
    return [line.strip() for line in text.split("\n") if line.strip()]


def empty_figure(title=""):
    fig = go.Figure()
    fig.update_layout(title=title, template="plotly_white")
    return fig


def score_gauge_figure(score: int, grade: str):
    fig = go.Figure(
        go.Indicator(
            mode="gauge+number",
            value=score,
            number={"suffix": "점", "font": {"size": 48, "color": grade_color(grade)}},
            gauge={
                "axis": {"range": [0, 100], "visible": False},
                "bar": {"color": grade_color(grade), "thickness": 0.35},
                "bgcolor": "#f2f4f6",
                "borderwidth": 0,
            },
        )
    )
    fig.update_layout(height=260, margin=dict(l=20, r=20, t=20, b=10), template="plotly_white")
    return fig


def risk_bar_figure(breakdown):
    fig = go.Figure(
        go.Bar(
            x=[share["label"] for share in breakdown],
            y=[share["value"] for share in breakdown],
            marker_color=[COLORS[i % len(COLORS)] for i in range(len(breakdown))],
            hovertemplate="%{x}: %{y}회<extra></extra>",
        )
    )
    fig.update_layout(
        title="위험 운전 항목별 지표",
        yaxis_title="횟수",
        template="plotly_white",
        margin=dict(l=40, r=20, t=50, b=60),
    )
    return fig


def risk_pie_figure(breakdown):
    indexed = [(i, share) for i, share in enumerate(breakdown) if share["value"] > 0]
    if not indexed:
        return empty_figure("위험 요소별 비중 (%) - 검출된 위험 행동 없음")

    fig = go.Figure(
        go.Pie(
            labels=[share["label"] for _, share in indexed],
            values=[share["value"] for _, share in indexed],
            marker={"colors": [COLORS[i % len(COLORS)] for i, _ in indexed]},
            hole=0.55,
            sort=False,
        )
    )
    fig.update_layout(
        title="위험 요소별 비중 (%)",
        template="plotly_white",
        legend={"orientation": "h"},
    )
    return fig


def efficiency_figure(economy):
    fig = go.Figure(
        go.Bar(
            x=["현재 효율", "교정 후 목표"],
            y=[economy["current_efficiency"], economy["potential_efficiency"]],
            marker_color=["#d1d6db", PRIMARY],
            text=[f"{economy['current_efficiency']} km/L", f"{economy['potential_efficiency']} km/L"],
            textposition="outside",
        )
    )
    fig.update_layout(
        title="연비 개선 시뮬레이션",
        yaxis_title="km/L",
        template="plotly_white",
        margin=dict(l=40, r=20, t=50, b=40),
    )
    return fig


def savings_line_figure(monthly):
    months = [f"{i + 1}월" for i in range(len(monthly))]
    fig = go.Figure(
        go.Scatter(
            x=months,
            y=monthly,
            mode="lines+markers",
            line={"color": PRIMARY, "width": 4},
            name="누적 혜택",
            hovertemplate="%{x}: %{y:,}원<extra></extra>",
        )
    )
    fig.update_layout(
        title="누적 비용 절감 시뮬레이션",
        template="plotly_white",
        yaxis={"visible": False},
        margin=dict(l=20, r=20, t=50, b=40),
    )
    return fig


def _stat_card(title, value, unit, background="#f8fafc", color=TEXT_DARK):
    return html.Div(
        style={
            "background": background,
            "padding": "18px 22px",
            "borderRadius": "20px",
            "minWidth": "200px",
            "flex": "1",
        },
        children=[
            html.Div(title, style={"fontSize": "12px", "fontWeight": "700", "color": TEXT_MUTED}),
            html.Div(
                [value, html.Span(f" {unit}", style={"fontSize": "14px"})],
                style={"fontSize": "28px", "fontWeight": "800", "marginTop": "4px", "color": color},
            ),
        ],
    )


# ============================================================
#  탭 레이아웃
# ============================================================

def empty_state():
    return html.Div(
        "왼쪽에 운전 데이터를 입력하고 '분석 리포트 생성하기' 를 눌러 주세요.",
        style={"color": TEXT_MUTED, "fontSize": "13px", "padding": "40px 0", "textAlign": "center"},
    )


def report_tab_layout(result, report_text):
    record = result["record"]
    score = result["safety_score"]
    grade = result["safety_grade"]
    savings = result["economy"]["savings"]

    return html.Div(
        children=[
            html.Div(
                style=CARD_STYLE,
                children=[
                    html.Div(
                        f"{record['vehicle_number']} 맞춤 리포트",
                        style={"color": PRIMARY, "fontWeight": "800", "fontSize": "13px"},
                    ),
                    html.H2(
                        "차주님의 안전 운전 점수입니다",
                        style={"margin": "6px 0 0 0", "color": TEXT_DARK},
                    ),
                    dcc.Graph(
                        id="score-gauge",
                        figure=score_gauge_figure(score, grade),
                        config={"displayModeBar": False},
                    ),
                ],
            ),

            html.Div(
                style={
                    **CARD_STYLE,
                    "backgroundColor": "#FEECEB",
                    "color": "#F04452",
                },
                children=[
                    html.Div("집중 관리가 필요해요", style={"fontWeight": "800", "fontSize": "16px"}),
                    html.Div(
                        [
                            html.Span(
                                result.get("dominant_risk_label") or "없음",
                                style={"fontSize": "30px", "fontWeight": "900"},
                            ),
                            html.Span(" 발생 빈도가 높습니다", style={"fontSize": "13px", "fontWeight": "700"}),
                        ],
                        style={"margin": "10px 0"},
                    ),
                    html.P(
                        "해당 운전 패턴은 사고 위험을 높일 뿐 아니라 차량 수명에도 악영향을 미칩니다. "
                        "부드러운 출발과 충분한 차간 거리 확보를 최우선으로 교정해 보세요.",
                        style={"fontSize": "14px", "margin": 0},
                    ),
                ],
            ),

            html.Div(
                style=CARD_STYLE,
                children=[
                    html.Div("전문 분석 리포트", style={"fontWeight": "800", "fontSize": "20px", "marginBottom": "14px"}),
                    html.Div(
                        id="report-body",
                        children=[
                            html.P(line, style={"fontSize": "15px", "lineHeight": "1.9", "color": "#333d4b"})
                            for line in report_paragraphs(report_text)
                        ],
                    ),
                    html.Hr(style={"margin": "18px 0", "borderColor": "#f2f4f6"}),
                    html.Div(ATTRIBUTION_LINE, style={"fontSize": "13px", "fontWeight": "800", "color": "#4e5968"}),
                ],
            ),

            html.Div(
                style={
                    **CARD_STYLE,
                    "backgroundColor": TEXT_DARK,
                    "color": "white",
                },
                children=[
                    html.Div(
                        "SAFETY INSIGHT",
                        style={"color": "#60A5FA", "fontSize": "12px", "fontWeight": "900", "letterSpacing": "0.4em"},
                    ),
                    html.P(
                        [
                            "올바른 운전 습관은 연간 유류비를 ",
                            html.Span(f"{savings:,}원", style={"color": "#60A5FA", "textDecoration": "underline"}),
                            " 이상 아끼고, 안전을 지키는 ",
                            html.Span("가장 경제적인 방법", style={"color": "#34D399"}),
                            "입니다.",
                        ],
                        style={"fontSize": "20px", "fontWeight": "700", "lineHeight": "1.6"},
                    ),
                ],
            ),
        ]
    )


def overview_tab_layout(result):
    record = result["record"]
    economy = result["economy"]
    breakdown = result["risk_breakdown"]

    return html.Div(
        children=[
            html.Div(
                style={**CARD_STYLE, "display": "flex", "gap": "16px", "flexWrap": "wrap"},
                children=[
                    _stat_card("누적 위험 행동", f"{economy['total_risks']:,.0f}", "회"),
                    _stat_card("분석 대상 주행거리", f"{record['total_distance']:,g}", "km"),
                ],
            ),
            html.Div(
                style=CARD_STYLE,
                children=[dcc.Graph(id="risk-bar-graph", figure=risk_bar_figure(breakdown))],
            ),
            html.Div(
                style=CARD_STYLE,
                children=[dcc.Graph(id="risk-pie-graph", figure=risk_pie_figure(breakdown))],
            ),
        ]
    )


def economy_tab_layout(result):
    economy = result["economy"]

    return html.Div(
        children=[
            html.Div(
                style=CARD_STYLE,
                children=[
                    dcc.Graph(id="efficiency-graph", figure=efficiency_figure(economy)),
                    html.Div(
                        style={
                            "backgroundColor": PRIMARY,
                            "color": "white",
                            "borderRadius": "32px",
                            "padding": "24px",
                            "textAlign": "center",
                            "fontSize": "18px",
                            "fontWeight": "700",
                        },
                        children=[
                            "올바른 운전 습관만으로 연비가 ",
                            html.Span(f"{economy['gain_percent']}%", style={"fontSize": "36px", "fontWeight": "900"}),
                            " 더 좋아집니다",
                        ],
                    ),
                ],
            ),
            html.Div(
                style={**CARD_STYLE, "display": "flex", "gap": "16px", "flexWrap": "wrap"},
                children=[
                    _stat_card(
                        "연간 탄소 배출 저감량",
                        f"{economy['carbon']:,}",
                        "kg",
                        background="#E6F8F3",
                        color="#00AD7C",
                    ),
                    _stat_card(
                        "연간 예상 유류비 절감",
                        f"{economy['savings']:,}",
                        "원",
                        background="#e8f3ff",
                        color=PRIMARY,
                    ),
                ],
            ),
            html.Div(
                style=CARD_STYLE,
                children=[dcc.Graph(id="savings-graph", figure=savings_line_figure(result["monthly_savings"]))],
            ),
        ]
    )


def input_form_layout():
    risk_inputs = [
        html.Div(
            children=[
                html.Label(RISK_LABELS[category], style={"fontSize": "11px", "fontWeight": "700", "color": TEXT_MUTED}),
                dcc.Input(
                    id=f"input-risk-{category.value}",
                    type="number",
                    step=0.1,
                    min=0,
                    placeholder="0",
                    style={**INPUT_STYLE, "textAlign": "center"},
                ),
            ]
        )
        for category in RiskCategory
    ]

    return html.Div(
        children=[
            html.Div(
                style=CARD_STYLE,
                children=[
                    html.Div("기본 정보", style={"fontWeight": "800", "fontSize": "15px", "marginBottom": "12px"}),
                    html.Label("차량 번호", style={"fontSize": "12px", "fontWeight": "700", "color": TEXT_MUTED}),
                    dcc.Input(id="input-vehicle-number", type="text", placeholder="예: 12가 3456", style=INPUT_STYLE),
                    html.Div(style={"height": "12px"}),
                    html.Label("연간 주행거리 (km)", style={"fontSize": "12px", "fontWeight": "700", "color": TEXT_MUTED}),
                    dcc.Input(id="input-total-distance", type="number", step=0.01, min=0, placeholder="예: 15000", style=INPUT_STYLE),
                ],
            ),
            html.Div(
                style=CARD_STYLE,
                children=[
                    html.Div(
                        style={"display": "flex", "justifyContent": "space-between", "alignItems": "center", "marginBottom": "12px"},
                        children=[
                            html.Div("위험 행동 (횟수)", style={"fontWeight": "800", "fontSize": "15px"}),
                            dcc.RadioItems(
                                id="input-method",
                                options=[
                                    {"label": "직접", "value": "manual"},
                                    {"label": "엑셀", "value": "excel"},
                                ],
                                value="manual",
                                inline=True,
                                style={"fontSize": "12px"},
                            ),
                        ],
                    ),
                    html.Div(
                        id="manual-inputs",
                        style={"display": "grid", "gridTemplateColumns": "1fr 1fr", "gap": "10px 14px"},
                        children=risk_inputs,
                    ),
                    html.Div(
                        id="excel-inputs",
                        style={"display": "none"},
                        children=[
                            dcc.Upload(
                                id="upload-data",
                                accept=".xlsx, .xls, .csv",
                                children=html.Div(id="upload-status", children="데이터 엑셀 파일을 올려주세요"),
                                style={
                                    "borderWidth": "2px",
                                    "borderStyle": "dashed",
                                    "borderColor": "#e5e8eb",
                                    "borderRadius": "16px",
                                    "padding": "30px",
                                    "textAlign": "center",
                                    "fontSize": "13px",
                                    "color": TEXT_MUTED,
                                    "cursor": "pointer",
                                },
                            ),
                        ],
                    ),
                ],
            ),
            html.Div(
                style={"display": "flex", "gap": "10px", "alignItems": "center"},
                children=[
                    html.Button("분석 리포트 생성하기", id="btn-analyze", n_clicks=0, style=BUTTON_STYLE),
                    html.Button("새로 입력하기", id="btn-reset", n_clicks=0, style=SECONDARY_BUTTON_STYLE),
                ],
            ),
            html.Div(id="error-message", style={"color": "#b91c1c", "fontSize": "12px", "marginTop": "8px"}),
        ]
    )


# ============================================================
#  APP DASH
# ============================================================

dash_app = Dash(
    __name__,
    requests_pathname_prefix="/dashboard/",
    suppress_callback_exceptions=True,
)

dash_app.title = "DriveSafe Pro"

dash_app.layout = html.Div(
    style={
        "backgroundColor": BACKGROUND,
        "minHeight": "100vh",
        "padding": "0 0 30px 0",
        "fontFamily": "Pretendard, system-ui, -apple-system, 'Segoe UI', sans-serif",
    },
    children=[
        dcc.Store(id="request-store"),
        dcc.Store(id="analysis-store"),
        dcc.Store(id="report-store"),
        dcc.Download(id="pdf-download"),

        # HEADER
        html.Div(
            style={"backgroundColor": NAVY, "color": "white", "padding": "18px 28px", "marginBottom": "24px"},
            children=[
                html.Span("DriveSafe Pro", style={"fontSize": "20px", "fontWeight": "800"}),
                html.Span(
                    "  위험 행동 데이터를 바탕으로 전문 안전 운전 리포트를 생성합니다.",
                    style={"fontSize": "12px", "opacity": "0.8"},
                ),
            ],
        ),

        html.Div(
            style={
                "maxWidth": "1200px",
                "margin": "0 auto",
                "padding": "0 20px",
                "display": "grid",
                "gridTemplateColumns": "minmax(280px, 360px) minmax(0, 1fr)",
                "columnGap": "28px",
            },
            children=[
                # 왼쪽 : 입력 폼
                input_form_layout(),

                # 오른쪽 : 결과 탭
                html.Div(
                    children=[
                        html.Div(
                            style={"display": "flex", "justifyContent": "space-between", "alignItems": "center"},
                            children=[
                                dcc.Tabs(
                                    id="main-tabs",
                                    value="tab-report",
                                    style={"flex": "1"},
                                    children=[
                                        dcc.Tab(label="안전 리포트", value="tab-report"),
                                        dcc.Tab(label="상세 데이터", value="tab-overview"),
                                        dcc.Tab(label="경제성 분석", value="tab-economy"),
                                    ],
                                ),
                                html.Div(
                                    style={"display": "flex", "gap": "8px", "marginLeft": "12px"},
                                    children=[
                                        html.Button("리포트 다시 생성", id="btn-refresh-report", n_clicks=0, style=SECONDARY_BUTTON_STYLE),
                                        html.Button("PDF", id="btn-pdf", n_clicks=0, style=SECONDARY_BUTTON_STYLE),
                                    ],
                                ),
                            ],
                        ),
                        html.Div(id="pdf-error", style={"color": "#b91c1c", "fontSize": "12px", "marginTop": "6px"}),
                        dcc.Loading(
                            type="circle",
                            children=html.Div(id="tabs-content", style={"marginTop": "18px"}, children=empty_state()),
                        ),
                    ]
                ),
            ],
        ),

        html.Div(
            COPYRIGHT_STRING,
            style={"textAlign": "center", "fontSize": "10px", "color": TEXT_MUTED, "marginTop": "24px"},
        ),
    ],
)


# ============================================================
#  CALLBACKS
# ============================================================

@dash_app.callback(
    Output("manual-inputs", "style"),
    Output("excel-inputs", "style"),
    Input("input-method", "value"),
)
def toggle_input_method(method):
    grid = {"display": "grid", "gridTemplateColumns": "1fr 1fr", "gap": "10px 14px"}
    if method == "excel":
        return {**grid, "display": "none"}, {"display": "block"}
    return grid, {"display": "none"}


@dash_app.callback(
    Output("upload-status", "children"),
    Input("upload-data", "filename"),
    prevent_initial_call=True,
)
def show_uploaded_file(filename):
    # 엑셀 파싱은 아직 없음: 파일명만 표시
    if not filename:
        return "데이터 엑셀 파일을 올려주세요"
    return f"{filename} (파일 분석은 준비 중입니다. 직접 입력을 이용해 주세요.)"


@dash_app.callback(
    Output("request-store", "data"),
    Output("analysis-store", "data"),
    Output("main-tabs", "value"),
    Output("error-message", "children"),
    Input("btn-analyze", "n_clicks"),
    Input("btn-reset", "n_clicks"),
    State("input-vehicle-number", "value"),
    State("input-total-distance", "value"),
    *[State(f"input-risk-{category.value}", "value") for category in RiskCategory],
)
def run_analysis(n_analyze, n_reset, vehicle_number, total_distance, *risk_values):
    if ctx.triggered_id == "btn-reset":
        return None, None, "tab-report", ""
    if not n_analyze:
        raise PreventUpdate

    payload = build_payload(vehicle_number, total_distance, risk_values)
    try:
        resp = requests.post(ANALYSIS_URL, json=payload, timeout=settings.dashboard_timeout_sec)
        resp.raise_for_status()
        return payload, resp.json(), "tab-report", ""
    except Exception as e:
        return no_update, no_update, no_update, f"오류 : {str(e)}"


@dash_app.callback(
    Output("report-store", "data"),
    Input("analysis-store", "data"),
    Input("btn-refresh-report", "n_clicks"),
    State("request-store", "data"),
)
def fetch_report(analysis, n_refresh, payload):
    """
    분석이 끝나면, 또는 '다시 생성' 클릭 시 리포트 요청.
    API 오류는 빈 문자열 -> 화면에서 대체 문구로 표시된다.
    """
    if analysis is None or payload is None:
        return None
    if ctx.triggered_id == "btn-refresh-report" and not n_refresh:
        raise PreventUpdate

    try:
        resp = requests.post(REPORT_URL, json=payload, timeout=settings.dashboard_timeout_sec)
        if resp.status_code == 409:
            # 다른 리포트가 생성 중
            return no_update
        resp.raise_for_status()
        return resp.json().get("report", "")
    except Exception:
        return ""


@dash_app.callback(
    Output("tabs-content", "children"),
    Input("main-tabs", "value"),
    Input("analysis-store", "data"),
    Input("report-store", "data"),
)
def render_tabs(tab, analysis, report_text):
    if not analysis:
        return empty_state()
    if tab == "tab-overview":
        return overview_tab_layout(analysis)
    if tab == "tab-economy":
        return economy_tab_layout(analysis)
    return report_tab_layout(analysis, report_text)


@dash_app.callback(
    Output("pdf-download", "data"),
    Output("pdf-error", "children"),
    Input("btn-pdf", "n_clicks"),
    State("request-store", "data"),
    State("report-store", "data"),
    prevent_initial_call=True,
)
def download_pdf(n_clicks, payload, report_text):
    if not n_clicks or payload is None:
        raise PreventUpdate

    try:
        resp = requests.post(
            PDF_URL,
            json={"analysis": payload, "report": report_text},
            timeout=settings.dashboard_timeout_sec,
        )
        resp.raise_for_status()
        return dcc.send_bytes(resp.content, "safety_report.pdf"), ""
    except Exception as e:
        return no_update, f"오류 : {str(e)}"
