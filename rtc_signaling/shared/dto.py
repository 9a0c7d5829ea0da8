"""시그널링 계층에서 공유하는 데이터 클래스.

룸 접속 파라미터, 시그널링 파라미터, SDP / ICE candidate 값 객체와
룸/채널 상태 열거형을 정의합니다.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class RoomState(str, Enum):
    """NegotiationCoordinator 룸 연결 상태."""
    NEW = "new"
    CONNECTED = "connected"
    CLOSED = "closed"
    ERROR = "error"


class ChannelState(str, Enum):
    """SignalChannel 연결 상태."""
    NEW = "new"
    CONNECTED = "connected"
    REGISTERED = "registered"
    CLOSED = "closed"
    ERROR = "error"


class SdpType(str, Enum):
    OFFER = "offer"
    ANSWER = "answer"


@dataclass(frozen=True)
class RoomConnectionParameters:
    """룸 접속 파라미터 (접속 시도마다 한 번 생성).

    Attributes:
        room_url (str): 룸 서버 기본 URL (예: "https://appr.tc")
        room_id (str): 룸 ID
        loopback (bool): 자기 자신과 연결하는 테스트 모드 여부
    """
    room_url: str
    room_id: str
    loopback: bool = False


@dataclass(frozen=True)
class IceServer:
    uri: str
    username: str = ""
    credential: str = ""


@dataclass(frozen=True)
class SessionDescription:
    type: SdpType
    sdp: str

    def to_message(self) -> Dict[str, str]:
        return {"type": self.type.value, "sdp": self.sdp}


@dataclass(frozen=True)
class IceCandidate:
    """ICE candidate.

    와이어 포맷에서 sdp_mid는 "id", sdp_mline_index는 "label"로 전송됩니다.
    """
    sdp_mid: str
    sdp_mline_index: int
    candidate: str

    def to_message(self) -> Dict[str, Any]:
        return {
            "type": "candidate",
            "label": self.sdp_mline_index,
            "id": self.sdp_mid,
            "candidate": self.candidate,
        }

    @classmethod
    def from_message(cls, message: Dict[str, Any]) -> "IceCandidate":
        """{id, label, candidate} 딕셔너리에서 생성합니다.

        Raises:
            KeyError: 필수 키 누락
            ValueError / TypeError: label이 정수가 아님
        """
        return cls(
            sdp_mid=str(message["id"]),
            sdp_mline_index=int(message["label"]),
            candidate=str(message["candidate"]),
        )


def _constraint_value(value: Any) -> str:
    # JSON 불리언은 소문자 문자열로 유지
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass
class MediaConstraints:
    """mandatory / optional key-value 쌍으로 이루어진 미디어 제약 조건."""
    mandatory: List[Tuple[str, str]] = field(default_factory=list)
    optional: List[Tuple[str, str]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MediaConstraints":
        """{"mandatory": {k: v}, "optional": [{k: v}, ...]} 형식을 파싱합니다."""
        constraints = cls()
        mandatory = data.get("mandatory") or {}
        for key, value in mandatory.items():
            constraints.mandatory.append((key, _constraint_value(value)))
        for entry in data.get("optional") or []:
            # 각 항목은 키가 하나인 딕셔너리
            for key, value in entry.items():
                constraints.optional.append((key, _constraint_value(value)))
                break
        return constraints


@dataclass(frozen=True)
class SignalingParameters:
    """룸 서버가 알려준 시그널링 파라미터.

    RoomClient가 성공 시 한 번 생성하고 NegotiationCoordinator가 한 번 소비합니다.
    offer_sdp / ice_candidates는 initiator가 아닐 때만 채워집니다.
    """
    ice_servers: List[IceServer]
    initiator: bool
    pc_constraints: MediaConstraints
    video_constraints: Optional[MediaConstraints]
    audio_constraints: Optional[MediaConstraints]
    client_id: str
    wss_url: str
    wss_post_url: str
    offer_sdp: Optional[SessionDescription] = None
    ice_candidates: Optional[List[IceCandidate]] = None
