"""Settings: environment mapping and validation."""

import pytest
from pydantic import ValidationError

from rtc_signaling.config import SignalingSettings
from rtc_signaling.negotiation import MediaPreferences


def test_defaults_match_room_protocol_timeouts(monkeypatch):
    for name in ("RTC_HTTP_TIMEOUT_MS", "RTC_TURN_TIMEOUT_MS", "RTC_CLOSE_TIMEOUT_MS"):
        monkeypatch.delenv(name, raising=False)

    settings = SignalingSettings(_env_file=None)

    assert settings.HTTP_TIMEOUT_MS == 8000
    assert settings.TURN_TIMEOUT_MS == 5000
    assert settings.CLOSE_TIMEOUT_MS == 1000


def test_environment_overrides_media_preferences(monkeypatch):
    monkeypatch.setenv("RTC_PREFERRED_VIDEO_CODEC", "H264")
    monkeypatch.setenv("RTC_VIDEO_START_BITRATE_KBPS", "800")
    monkeypatch.setenv("RTC_VIDEO_CALL_ENABLED", "false")

    prefs = SignalingSettings(_env_file=None).media_preferences

    assert isinstance(prefs, MediaPreferences)
    assert prefs.video_codec == "H264"
    assert prefs.video_start_bitrate_kbps == 800
    assert prefs.video_call_enabled is False


def test_negative_bitrate_is_rejected(monkeypatch):
    monkeypatch.setenv("RTC_AUDIO_START_BITRATE_KBPS", "-1")

    with pytest.raises(ValidationError):
        SignalingSettings(_env_file=None)


def test_log_level_is_normalized(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "debug")

    assert SignalingSettings(_env_file=None).LOG_LEVEL == "DEBUG"
