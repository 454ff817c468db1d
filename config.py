# config.py
"""
환경변수 / .env 기반 설정 (pydantic-settings).
"""
from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    app_name: str = "DriveSafe Pro"

    # 리포트 생성 (Gemini)
    gemini_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("GEMINI_API_KEY", "API_KEY"),
        description="키가 없으면 리포트는 항상 대체 문구로 떨어진다",
    )
    gemini_model: str = Field(default="gemini-3-flash-preview", validation_alias="GEMINI_MODEL")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        validation_alias="GEMINI_BASE_URL",
    )
    report_timeout_sec: float = Field(default=30.0, gt=0, validation_alias="REPORT_TIMEOUT_SEC")

    # 대시보드 -> API 호출
    dashboard_timeout_sec: float = Field(default=60.0, gt=0, validation_alias="DASHBOARD_TIMEOUT_SEC")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    port: int = Field(default=8000, ge=1, le=65535, validation_alias="PORT")

    @property
    def api_base_url(self) -> str:
        return f"http://127.0.0.1:{self.port}"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
