"""시그널링 오류 계층.

세션을 종료시키는 모든 실패는 SignalingError 하위 클래스로 표현됩니다.
각 오류는 code(str), category(ErrorCategory), 사람이 읽을 수 있는 message를 가집니다.

Classes:
    SignalingError: 모든 시그널링 오류의 기본 클래스
    NetworkError: 연결 실패 / 타임아웃
    HttpStatusError: 200이 아닌 HTTP 응답
    ParseError: 잘못된 JSON / SDP
    ProtocolError: 순서가 어긋난 협상 메시지, loopback 룸 사용 중
    StateError: 잘못된 상태에서 호출된 작업
    ExecutorThreadError: 실행 컨텍스트(스레드) 밖에서 호출된 작업
"""

from enum import Enum
from typing import Optional


class ErrorCategory(str, Enum):
    """오류 분류."""
    NETWORK = "network"
    HTTP = "http"
    PARSE = "parse"
    PROTOCOL = "protocol"
    STATE = "state"


class SignalingError(Exception):
    """시그널링 오류 기본 클래스."""

    code = "SIGNALING_ERROR"
    category = ErrorCategory.PROTOCOL

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "category": self.category.value,
            "message": self.message,
        }


class NetworkError(SignalingError):
    """연결 실패 또는 타임아웃."""
    code = "NETWORK_ERROR"
    category = ErrorCategory.NETWORK


class HttpStatusError(SignalingError):
    """HTTP 응답 코드가 200이 아님."""
    code = "HTTP_STATUS_ERROR"
    category = ErrorCategory.HTTP

    def __init__(self, message: str, status_code: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class ParseError(SignalingError):
    """JSON 또는 SDP 파싱 실패."""
    code = "PARSE_ERROR"
    category = ErrorCategory.PARSE


class ProtocolError(SignalingError):
    """프로토콜 순서 위반 또는 서버가 거부한 요청."""
    code = "PROTOCOL_ERROR"
    category = ErrorCategory.PROTOCOL


class StateError(SignalingError):
    """현재 상태에서 허용되지 않는 작업."""
    code = "STATE_ERROR"
    category = ErrorCategory.STATE


class ExecutorThreadError(StateError):
    """액터의 직렬 실행 컨텍스트 밖에서 호출됨."""
    code = "WRONG_THREAD"
