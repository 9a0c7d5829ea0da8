"""릴레이 WebSocket 시그널링 채널."""

from .signal_channel import SignalChannel, SignalChannelEvents
from .transport import TransportListener, WebSocketTransport

__all__ = [
    "SignalChannel",
    "SignalChannelEvents",
    "TransportListener",
    "WebSocketTransport",
]
