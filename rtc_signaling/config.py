"""시그널링 클라이언트 설정.

룸 서버 URL, HTTP/WebSocket 타임아웃, 코덱 선호도 및 시작 비트레이트 등
환경변수 기반 설정.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from .negotiation.sdp import MediaPreferences

logger = logging.getLogger(__name__)

_env_path = Path(__file__).parent.parent / "config" / ".env"
load_dotenv(_env_path)


class SignalingSettings(BaseSettings):
    """시그널링 설정 클래스.

    환경 변수를 Python 객체로 매핑하고 유효성을 검증합니다.
    """

    # 룸 서버 설정
    ROOM_SERVER_URL: str = Field(
        default="https://appr.tc",
        description="룸 서버 기본 URL",
        validation_alias="RTC_ROOM_SERVER_URL"
    )

    HTTP_ORIGIN: str = Field(
        default="https://appr.tc",
        description="HTTP 요청 Origin 헤더",
        validation_alias="RTC_HTTP_ORIGIN"
    )

    # 타임아웃 (밀리초)
    HTTP_TIMEOUT_MS: int = Field(
        default=8000,
        description="룸 서버 HTTP 요청 타임아웃",
        validation_alias="RTC_HTTP_TIMEOUT_MS"
    )

    TURN_TIMEOUT_MS: int = Field(
        default=5000,
        description="TURN 서버 조회 타임아웃",
        validation_alias="RTC_TURN_TIMEOUT_MS"
    )

    CLOSE_TIMEOUT_MS: int = Field(
        default=1000,
        description="WebSocket 종료 확인 대기 시간",
        validation_alias="RTC_CLOSE_TIMEOUT_MS"
    )

    # 미디어 협상 설정
    VIDEO_CALL_ENABLED: bool = Field(
        default=True,
        description="비디오 통화 여부 (False면 비디오 SDP 재작성 생략)",
        validation_alias="RTC_VIDEO_CALL_ENABLED"
    )

    PREFERRED_VIDEO_CODEC: Optional[str] = Field(
        default="VP8",
        description="m=video 라인 맨 앞으로 옮길 코덱",
        validation_alias="RTC_PREFERRED_VIDEO_CODEC"
    )

    PREFERRED_AUDIO_CODEC: Optional[str] = Field(
        default="opus",
        description="m=audio 라인 맨 앞으로 옮길 코덱",
        validation_alias="RTC_PREFERRED_AUDIO_CODEC"
    )

    VIDEO_START_BITRATE_KBPS: int = Field(
        default=0,
        description="비디오 시작 비트레이트 (0이면 비활성)",
        validation_alias="RTC_VIDEO_START_BITRATE_KBPS"
    )

    AUDIO_START_BITRATE_KBPS: int = Field(
        default=0,
        description="오디오 시작 비트레이트 (0이면 비활성)",
        validation_alias="RTC_AUDIO_START_BITRATE_KBPS"
    )

    # 로깅 설정
    LOG_LEVEL: str = Field(
        default="INFO",
        description="로그 레벨"
    )

    LOG_FILE_PATH: Optional[str] = Field(
        default=None,
        description="로그 파일 경로 (None이면 콘솔만)"
    )

    LIBRARY_LOG_LEVEL: str = Field(
        default="WARNING",
        description="urllib3 / websockets 로거 레벨"
    )

    @field_validator('LOG_LEVEL', 'LIBRARY_LOG_LEVEL')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """로그 레벨 유효성 검증"""
        allowed = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in allowed:
            raise ValueError(f"로그 레벨은 {allowed} 중 하나여야 합니다.")
        return v.upper()

    @field_validator('VIDEO_START_BITRATE_KBPS', 'AUDIO_START_BITRATE_KBPS')
    @classmethod
    def validate_bitrate(cls, v: int) -> int:
        if v < 0:
            raise ValueError("시작 비트레이트는 0 이상이어야 합니다.")
        return v

    class Config:
        """Pydantic 설정"""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    @property
    def media_preferences(self) -> MediaPreferences:
        return MediaPreferences(
            video_call_enabled=self.VIDEO_CALL_ENABLED,
            video_codec=self.PREFERRED_VIDEO_CODEC or None,
            audio_codec=self.PREFERRED_AUDIO_CODEC or None,
            video_start_bitrate_kbps=self.VIDEO_START_BITRATE_KBPS,
            audio_start_bitrate_kbps=self.AUDIO_START_BITRATE_KBPS,
        )


@lru_cache()
def get_signaling_settings() -> SignalingSettings:
    """설정 싱글톤 인스턴스 반환.

    Returns:
        SignalingSettings: 설정 객체
    """
    settings = SignalingSettings()
    logger.debug(f"[Config] .env 경로: {_env_path} (존재: {_env_path.exists()})")
    logger.debug(f"[Config] 룸 서버: {settings.ROOM_SERVER_URL}")
    return settings
