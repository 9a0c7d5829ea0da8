"""비동기 HTTP 요청.

requests 호출을 요청마다 별도 워커 스레드에서 실행하고, 결과를
on_complete(response_text) 또는 on_error(SignalingError) 콜백으로 전달합니다.
콜백은 워커 스레드에서 호출되므로 수신 측 액터가 자신의 실행기로
다시 게시해야 합니다.
"""

import logging
import threading
from typing import Callable, Optional

import requests

from ..shared.errors import HttpStatusError, NetworkError, SignalingError

logger = logging.getLogger(__name__)

HTTP_TIMEOUT_MS = 8000
HTTP_ORIGIN = "https://appr.tc"


class AsyncHttpRequest:
    """단발성 비동기 HTTP 요청.

    Attributes:
        method (str): "GET" / "POST" / "DELETE"
        url (str): 요청 URL
        message (Optional[str]): 요청 본문 (text/plain)
        timeout_ms (int): 연결/읽기 타임아웃

    Examples:
        >>> request = AsyncHttpRequest(
        ...     "POST", "https://appr.tc/join/room1", None,
        ...     on_complete=lambda body: print(body),
        ...     on_error=lambda err: print(err.message),
        ... )
        >>> request.send()
    """

    def __init__(
        self,
        method: str,
        url: str,
        message: Optional[str],
        on_complete: Callable[[str], None],
        on_error: Callable[[SignalingError], None],
        session: Optional[requests.Session] = None,
        timeout_ms: int = HTTP_TIMEOUT_MS,
        origin: str = HTTP_ORIGIN,
    ):
        self.method = method
        self.url = url
        self.message = message
        self.on_complete = on_complete
        self.on_error = on_error
        self.session = session
        self.timeout_ms = timeout_ms
        self.origin = origin

    def send(self) -> threading.Thread:
        """워커 스레드에서 요청을 시작합니다."""
        thread = threading.Thread(
            target=self._send_http_message,
            name=f"http-{self.method.lower()}",
            daemon=True,
        )
        thread.start()
        return thread

    def execute(self) -> str:
        """현재 스레드에서 요청을 수행하고 응답 본문을 반환합니다.

        Raises:
            NetworkError: 타임아웃 또는 연결 실패
            HttpStatusError: 200이 아닌 응답
        """
        session = self.session or requests
        headers = {
            "origin": self.origin,
            "content-type": "text/plain; charset=utf-8",
        }
        data = self.message.encode("utf-8") if self.message else None
        try:
            response = session.request(
                self.method,
                self.url,
                data=data,
                headers=headers,
                timeout=self.timeout_ms / 1000.0,
            )
        except requests.exceptions.Timeout:
            raise NetworkError(f"HTTP {self.method} to {self.url} timeout")
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"HTTP {self.method} to {self.url} error: {e}")

        if response.status_code != 200:
            raise HttpStatusError(
                f"Non-200 response to {self.method} to URL: {self.url} : {response.status_code}",
                status_code=response.status_code,
                url=self.url,
            )
        return response.text

    def _send_http_message(self) -> None:
        try:
            response = self.execute()
        except SignalingError as e:
            logger.error(f"[HTTP] {e.message}")
            self.on_error(e)
            return
        self.on_complete(response)
