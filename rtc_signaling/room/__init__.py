"""룸 서버 HTTP 클라이언트."""

from .client import RoomClient
from .http import AsyncHttpRequest

__all__ = [
    "AsyncHttpRequest",
    "RoomClient",
]
