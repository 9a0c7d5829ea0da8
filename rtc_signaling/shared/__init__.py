"""공유 타입, 오류, 직렬 실행기."""

from .dto import (
    ChannelState,
    IceCandidate,
    IceServer,
    MediaConstraints,
    RoomConnectionParameters,
    RoomState,
    SdpType,
    SessionDescription,
    SignalingParameters,
)
from .errors import (
    ErrorCategory,
    ExecutorThreadError,
    HttpStatusError,
    NetworkError,
    ParseError,
    ProtocolError,
    SignalingError,
    StateError,
)
from .executor import SerialExecutor

__all__ = [
    # DTO
    "ChannelState",
    "IceCandidate",
    "IceServer",
    "MediaConstraints",
    "RoomConnectionParameters",
    "RoomState",
    "SdpType",
    "SessionDescription",
    "SignalingParameters",
    # Errors
    "ErrorCategory",
    "ExecutorThreadError",
    "HttpStatusError",
    "NetworkError",
    "ParseError",
    "ProtocolError",
    "SignalingError",
    "StateError",
    # Executor
    "SerialExecutor",
]
