"""AppRTC 방식 시그널링 / 협상 코디네이터.

룸 서버(HTTP)로 룸을 찾고, 릴레이(WebSocket)에 등록한 뒤 외부 협상 엔진이
요구하는 순서대로 SDP와 ICE candidate를 교환합니다.

Classes:
    NegotiationCoordinator: 룸 연결 및 협상 순서 관리
    RoomClient: 룸 입장 응답을 SignalingParameters로 변환
    SignalChannel: 릴레이 WebSocket 채널
    IceCandidateQueue: 원격 candidate 대기열
    SerialExecutor: 액터별 직렬 실행기
"""

from .channel import SignalChannel
from .negotiation import (
    IceCandidateQueue,
    MediaPreferences,
    NegotiationCoordinator,
    NegotiationEngine,
    SignalingEvents,
)
from .room import RoomClient
from .shared import (
    IceCandidate,
    IceServer,
    MediaConstraints,
    RoomConnectionParameters,
    RoomState,
    SdpType,
    SerialExecutor,
    SessionDescription,
    SignalingError,
    SignalingParameters,
)

__version__ = "0.1.0"

__all__ = [
    # Classes
    "NegotiationCoordinator",
    "RoomClient",
    "SignalChannel",
    "IceCandidateQueue",
    "SerialExecutor",
    "MediaPreferences",
    # Protocols
    "NegotiationEngine",
    "SignalingEvents",
    # DTO
    "IceCandidate",
    "IceServer",
    "MediaConstraints",
    "RoomConnectionParameters",
    "RoomState",
    "SdpType",
    "SessionDescription",
    "SignalingParameters",
    # Errors
    "SignalingError",
]
