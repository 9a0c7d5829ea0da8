"""릴레이 WebSocket 전송 계층.

websockets 동기 클라이언트를 데몬 리더 스레드에서 실행하고, 연결/수신/종료/
오류 이벤트를 리스너에 전달합니다. 리스너 콜백은 리더 스레드에서 호출되므로
SignalChannel이 자신의 실행기로 다시 게시합니다.
"""

import logging
import threading
from typing import Optional, Protocol

from websockets.exceptions import ConnectionClosed
from websockets.sync.client import ClientConnection, connect

logger = logging.getLogger(__name__)

# 상대가 Close 프레임 없이 끊었을 때의 코드
ABNORMAL_CLOSURE = 1006


class TransportListener(Protocol):
    def on_open(self) -> None: ...

    def on_text(self, text: str) -> None: ...

    def on_close(self, code: int, reason: str) -> None: ...

    def on_error(self, description: str) -> None: ...


class WebSocketTransport:
    """websockets 동기 클라이언트 래퍼.

    Attributes:
        listener (TransportListener): 이벤트 수신자
        origin (Optional[str]): Origin 헤더 값
        open_timeout (float): 연결 타임아웃 (초)
        close_timeout (float): close() 가 종료 핸드셰이크를 기다리는 최대 시간 (초)
    """

    def __init__(
        self,
        listener: TransportListener,
        origin: Optional[str] = None,
        open_timeout: float = 10.0,
        close_timeout: float = 1.0,
    ):
        self.listener = listener
        self.origin = origin
        self.open_timeout = open_timeout
        self.close_timeout = close_timeout

        self._connection: Optional[ClientConnection] = None
        self._reader: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._closing = False

    def connect(self, url: str) -> None:
        """리더 스레드를 시작하고 그 안에서 연결합니다."""
        self._reader = threading.Thread(
            target=self._run,
            args=(url,),
            name="ws-reader",
            daemon=True,
        )
        self._reader.start()

    def send_text(self, text: str) -> None:
        connection = self._connection
        if connection is None:
            logger.warning("[Transport] Not connected, drop message")
            return
        try:
            connection.send(text)
        except ConnectionClosed as e:
            logger.error(f"[Transport] Send on closed connection: {e}")
            self.listener.on_error(f"WebSocket send error: {e}")

    def close(self) -> None:
        """연결을 닫습니다. 종료가 확인되면 리더 스레드가 on_close를 호출합니다."""
        with self._lock:
            self._closing = True
            connection = self._connection
        if connection is not None:
            connection.close()

    def _run(self, url: str) -> None:
        headers = {"Origin": self.origin} if self.origin else None
        try:
            connection = connect(
                url,
                additional_headers=headers,
                open_timeout=self.open_timeout,
                close_timeout=self.close_timeout,
            )
        except Exception as e:
            logger.error(f"[Transport] WebSocket connection error: {e}")
            self.listener.on_error(f"WebSocket connection error: {e}")
            return

        with self._lock:
            self._connection = connection
            closing = self._closing
        if closing:
            # 연결 도중 close()가 호출됨
            connection.close()
        else:
            logger.debug(f"[Transport] WebSocket connected: {url}")
            self.listener.on_open()

        try:
            for message in connection:
                if isinstance(message, bytes):
                    message = message.decode("utf-8")
                self.listener.on_text(message)
        except ConnectionClosed as e:
            code = e.rcvd.code if e.rcvd is not None else ABNORMAL_CLOSURE
            reason = e.rcvd.reason if e.rcvd is not None else ""
            logger.debug(f"[Transport] WebSocket closed abnormally: {code} {reason}")
            self.listener.on_close(code, reason)
            return
        except Exception as e:
            logger.error(f"[Transport] WebSocket receive error: {e}")
            self.listener.on_error(f"WebSocket receive error: {e}")
            return

        code = connection.protocol.close_code or ABNORMAL_CLOSURE
        reason = connection.protocol.close_reason or ""
        logger.debug(f"[Transport] WebSocket closed: {code} {reason}")
        self.listener.on_close(code, reason)
