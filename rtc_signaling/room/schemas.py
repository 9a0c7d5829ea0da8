"""룸 서버 응답 스키마와 파싱 함수.

룸 서버는 params / messages / pc_config 같은 필드를 JSON 문자열로 한 번 더
감싸서 보내기도 하고 객체로 보내기도 하므로 두 형태를 모두 허용합니다.
"""

import json
import logging
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..shared.dto import (
    IceCandidate,
    IceServer,
    MediaConstraints,
    SdpType,
    SessionDescription,
)
from ..shared.errors import ParseError

logger = logging.getLogger(__name__)


class RoomBaseModel(BaseModel):
    """룸 서버 응답 기본 모델 (알 수 없는 필드는 무시)."""

    model_config = ConfigDict(extra="ignore")


class JoinResponse(RoomBaseModel):
    """POST /join 응답 외곽."""

    result: str = Field(..., description="SUCCESS 또는 오류 코드 (예: FULL)")
    params: Any = Field(default=None, description="룸 파라미터 (객체 또는 JSON 문자열)")


class RoomParams(RoomBaseModel):
    """POST /join 응답의 params."""

    room_id: str = Field(..., description="룸 ID")
    client_id: str = Field(..., description="서버가 부여한 클라이언트 ID")
    wss_url: str = Field(..., description="릴레이 WebSocket URL")
    wss_post_url: str = Field(..., description="릴레이 HTTP URL")
    is_initiator: bool = Field(..., description="먼저 입장한 참가자인지 여부")
    messages: Any = Field(default=None, description="대기 중인 offer / candidate 메시지")
    pc_config: Any = Field(default=None, description="iceServers 설정")
    pc_constraints: Any = Field(default=None, description="PeerConnection 제약 조건")
    media_constraints: Any = Field(default=None, description="audio / video 제약 조건")
    turn_url: Optional[str] = Field(default=None, description="TURN 서버 조회 URL")


class TurnResponse(RoomBaseModel):
    """GET turn_url 응답."""

    username: str
    password: str
    uris: List[str] = Field(default_factory=list)


class RoomMessage(RoomBaseModel):
    """룸에 보관된 메시지 또는 릴레이로 받은 협상 메시지."""

    type: str
    sdp: Optional[str] = None


def decode_json(value: Any, what: str) -> Any:
    """JSON 문자열이면 디코딩하고, 이미 디코딩된 값이면 그대로 반환합니다.

    Raises:
        ParseError: 잘못된 JSON
    """
    if not isinstance(value, (str, bytes)):
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise ParseError(f"{what} JSON parsing error: {e}")


def parse_model(model, value: Any, what: str):
    data = decode_json(value, what)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ParseError(f"{what} JSON parsing error: {e}")


def parse_join_response(response: str) -> Tuple[str, Optional[RoomParams]]:
    """join 응답에서 result와 (SUCCESS일 때) params를 꺼냅니다.

    Returns:
        Tuple[str, Optional[RoomParams]]: (result, params). result가 SUCCESS가
        아니면 params는 None
    """
    join = parse_model(JoinResponse, response, "Room")
    if join.result != "SUCCESS":
        return join.result, None
    if join.params is None:
        raise ParseError("Room JSON parsing error: missing params")
    return join.result, parse_model(RoomParams, join.params, "Room")


def parse_room_messages(
    messages: Any,
) -> Tuple[Optional[SessionDescription], List[IceCandidate]]:
    """룸에 먼저 입장한 참가자가 남긴 offer와 candidate를 파싱합니다.

    Note:
        - offer가 여러 개면 마지막 것이 남음
        - offer / candidate 이외의 타입은 로그만 남기고 건너뜀
    """
    offer_sdp: Optional[SessionDescription] = None
    candidates: List[IceCandidate] = []
    decoded = decode_json(messages, "Room") if messages is not None else []
    if not isinstance(decoded, list):
        raise ParseError("Room JSON parsing error: messages is not a list")

    for index, raw in enumerate(decoded):
        message = decode_json(raw, "Room")
        if not isinstance(message, dict):
            raise ParseError(f"Room JSON parsing error: message #{index} is not an object")
        logger.debug(f"[Room] GAE->C #{index} : {message}")
        message_type = message.get("type")
        try:
            if message_type == "offer":
                offer_sdp = SessionDescription(SdpType.OFFER, str(message["sdp"]))
            elif message_type == "candidate":
                candidates.append(IceCandidate.from_message(message))
            else:
                logger.error(f"[Room] Unknown message: {message}")
        except (KeyError, TypeError, ValueError) as e:
            raise ParseError(f"Room JSON parsing error: bad {message_type} message: {e}")
    return offer_sdp, candidates


def parse_ice_servers(pc_config: Any) -> List[IceServer]:
    """pc_config.iceServers 를 IceServer 목록으로 변환합니다.

    urls가 목록이면 URI마다 하나씩 생성합니다.
    """
    if pc_config is None:
        return []
    config = decode_json(pc_config, "Room")
    if not isinstance(config, dict):
        raise ParseError("Room JSON parsing error: pc_config is not an object")

    servers: List[IceServer] = []
    for server in config.get("iceServers") or []:
        if not isinstance(server, dict):
            raise ParseError("Room JSON parsing error: iceServers entry is not an object")
        urls = server.get("urls", server.get("url"))
        if urls is None:
            raise ParseError("Room JSON parsing error: iceServers entry has no urls")
        if isinstance(urls, str):
            urls = [urls]
        if not isinstance(urls, list) or not all(isinstance(uri, str) for uri in urls):
            raise ParseError("Room JSON parsing error: iceServers urls must be strings")
        username = server.get("username") or ""
        credential = server.get("credential") or ""
        for uri in urls:
            servers.append(IceServer(uri=uri, username=username, credential=credential))
    return servers


def parse_turn_servers(response: str) -> List[IceServer]:
    """TURN 조회 응답의 URI마다 같은 자격 증명을 가진 IceServer를 만듭니다."""
    turn = parse_model(TurnResponse, response, "TURN")
    return [
        IceServer(uri=uri, username=turn.username, credential=turn.password)
        for uri in turn.uris
    ]


def parse_constraints(value: Any) -> MediaConstraints:
    """pc_constraints 파싱. 값이 없으면 빈 제약 조건."""
    if value is None:
        return MediaConstraints()
    data = decode_json(value, "Room")
    if not isinstance(data, dict):
        raise ParseError("Room JSON parsing error: constraints is not an object")
    try:
        return MediaConstraints.from_dict(data)
    except (AttributeError, TypeError) as e:
        raise ParseError(f"Room JSON parsing error: bad constraints: {e}")


def parse_av_constraints(kind: str, media_constraints: Any) -> Optional[MediaConstraints]:
    """media_constraints에서 "audio" / "video" 제약 조건을 꺼냅니다.

    getUserMedia 규칙에 따라 값은 불리언 또는 객체일 수 있습니다.

    - 키가 없거나 false: None
    - true: 빈 제약 조건
    - 객체: 그대로 파싱

    Args:
        kind (str): "audio" 또는 "video"
        media_constraints (Any): 객체 또는 JSON 문자열
    """
    if media_constraints is None:
        return None
    data = decode_json(media_constraints, "Room")
    if not isinstance(data, dict):
        raise ParseError("Room JSON parsing error: media_constraints is not an object")
    value = data.get(kind)
    if value is None or value is False:
        return None
    if value is True:
        return MediaConstraints()
    return parse_constraints(value)
