"""협상 모듈.

SDP 재작성, 원격 ICE candidate 대기열, 룸 연결 / 협상 순서를 관리하는
코디네이터를 제공합니다.

Classes:
    NegotiationCoordinator: 룸 입장, 릴레이 채널, SDP / candidate 라우팅 관리
    IceCandidateQueue: 두 SDP가 설정될 때까지 원격 candidate 보관
    MediaPreferences: 코덱 선호도 및 시작 비트레이트 설정

Functions:
    prefer_codec: m= 라인에서 코덱 payload type을 맨 앞으로 이동
    set_start_bitrate: a=fmtp 라인에 시작 비트레이트 추가
    apply_media_preferences: 협상 라운드 한 번의 재작성 적용
"""

from .sdp import (
    MediaPreferences,
    apply_media_preferences,
    prefer_codec,
    set_start_bitrate,
)
from .candidates import IceCandidateQueue
from .interfaces import NegotiationEngine, SignalingEvents
from .coordinator import NegotiationCoordinator

__all__ = [
    # Classes
    "NegotiationCoordinator",
    "IceCandidateQueue",
    "MediaPreferences",
    # Protocols
    "NegotiationEngine",
    "SignalingEvents",
    # Functions
    "apply_media_preferences",
    "prefer_codec",
    "set_start_bitrate",
]
