"""SDP 텍스트 재작성 함수.

코덱 선호도(m= 라인의 payload type 순서)와 시작 비트레이트(a=fmtp 파라미터)를
SDP 본문에 반영하는 순수 함수 모음입니다. 액터를 만들지 않고도 단독으로
테스트할 수 있습니다.

Note:
    - SDP는 CRLF로 구분된 라인으로 처리하고 CRLF로 다시 합칩니다.
    - 같은 코덱에 대해 두 번 호출하면 파라미터가 중복으로 추가됩니다.
      협상 라운드마다 한 번씩만 호출해야 합니다.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

VIDEO_CODEC_VP8 = "VP8"
VIDEO_CODEC_VP9 = "VP9"
VIDEO_CODEC_H264 = "H264"
AUDIO_CODEC_OPUS = "opus"
AUDIO_CODEC_ISAC = "ISAC"

VIDEO_CODEC_PARAM_START_BITRATE = "x-google-start-bitrate"
AUDIO_CODEC_PARAM_BITRATE = "maxaveragebitrate"

LINE_SEPARATOR = "\r\n"


@dataclass(frozen=True)
class MediaPreferences:
    """협상 라운드마다 SDP에 적용할 코덱/비트레이트 설정.

    Attributes:
        video_call_enabled (bool): False면 비디오 관련 재작성을 건너뜀
        video_codec (Optional[str]): 선호 비디오 코덱 (None이면 순서 유지)
        audio_codec (Optional[str]): 선호 오디오 코덱 (None이면 순서 유지)
        video_start_bitrate_kbps (int): 0보다 크면 VP8/VP9/H264에 적용
        audio_start_bitrate_kbps (int): 0보다 크면 opus에 적용
    """
    video_call_enabled: bool = True
    video_codec: Optional[str] = None
    audio_codec: Optional[str] = None
    video_start_bitrate_kbps: int = 0
    audio_start_bitrate_kbps: int = 0


def _rtpmap_pattern(codec: str) -> "re.Pattern":
    # a=rtpmap:<payload type> <encoding name>/<clock rate> [/<encoding parameters>]
    return re.compile(r"^a=rtpmap:(\d+) " + re.escape(codec) + r"(/\d+)+\r?$")


def _find_rtpmap(lines: List[str], codec: str) -> Tuple[int, Optional[str]]:
    pattern = _rtpmap_pattern(codec)
    for index, line in enumerate(lines):
        match = pattern.match(line)
        if match:
            return index, match.group(1)
    return -1, None


def prefer_codec(sdp: str, codec: str, is_audio: bool) -> str:
    """codec의 payload type을 m= 라인 payload 목록 맨 앞으로 옮깁니다.

    Args:
        sdp (str): SDP 본문
        codec (str): 인코딩 이름 (예: "VP8", "opus")
        is_audio (bool): True면 m=audio, False면 m=video 라인 대상

    Returns:
        str: 재작성된 SDP. m= 라인이나 rtpmap이 없으면 입력을 그대로 반환

    Examples:
        >>> sdp = "m=video 9 UDP/TLS/RTP/SAVPF 96 98 100\\r\\na=rtpmap:100 H264/90000"
        >>> prefer_codec(sdp, "H264", False).split("\\r\\n")[0]
        'm=video 9 UDP/TLS/RTP/SAVPF 100 96 98'
    """
    lines = sdp.split(LINE_SEPARATOR)
    media_description = "m=audio " if is_audio else "m=video "
    pattern = _rtpmap_pattern(codec)

    m_line_index = -1
    codec_payload: Optional[str] = None
    for index, line in enumerate(lines):
        if m_line_index == -1 and line.startswith(media_description):
            m_line_index = index
        elif codec_payload is None:
            match = pattern.match(line)
            if match:
                codec_payload = match.group(1)
        if m_line_index != -1 and codec_payload is not None:
            break

    if m_line_index == -1:
        logger.warning(f"[SDP] No {media_description.strip()} line, so can't prefer {codec}")
        return sdp
    if codec_payload is None:
        logger.warning(f"[SDP] No rtpmap for {codec}")
        return sdp

    logger.debug(f"[SDP] Found {codec} rtpmap {codec_payload}, prefer at {lines[m_line_index]}")
    # m=<media> <port> <proto> <fmt> ...
    parts = lines[m_line_index].split(" ")
    if len(parts) <= 3:
        logger.error(f"[SDP] Wrong SDP media description format: {lines[m_line_index]}")
        return sdp

    payloads = parts[3:]
    if codec_payload not in payloads:
        logger.warning(
            f"[SDP] {codec} payload {codec_payload} is not listed in {lines[m_line_index]}"
        )
        return sdp
    payloads.remove(codec_payload)
    lines[m_line_index] = " ".join(parts[:3] + [codec_payload] + payloads)
    logger.debug(f"[SDP] Change media description: {lines[m_line_index]}")
    return LINE_SEPARATOR.join(lines)


def set_start_bitrate(sdp: str, codec: str, is_video: bool, bitrate_kbps: int) -> str:
    """codec의 a=fmtp 라인에 시작 비트레이트 파라미터를 추가합니다.

    비디오는 x-google-start-bitrate=<kbps>, 오디오는 maxaveragebitrate=<bps>를
    사용합니다. fmtp 라인이 없으면 rtpmap 라인 바로 뒤에 새로 삽입합니다.

    Args:
        sdp (str): SDP 본문
        codec (str): 인코딩 이름
        is_video (bool): 비디오 코덱 여부
        bitrate_kbps (int): 비트레이트 (kbps)

    Returns:
        str: 재작성된 SDP. rtpmap이 없으면 입력을 그대로 반환
    """
    lines = sdp.split(LINE_SEPARATOR)
    rtpmap_index, codec_payload = _find_rtpmap(lines, codec)
    if codec_payload is None:
        logger.warning(f"[SDP] No rtpmap for {codec} codec")
        return sdp
    logger.debug(f"[SDP] Found {codec} rtpmap {codec_payload} at {lines[rtpmap_index]}")

    if is_video:
        param = f"{VIDEO_CODEC_PARAM_START_BITRATE}={bitrate_kbps}"
    else:
        param = f"{AUDIO_CODEC_PARAM_BITRATE}={bitrate_kbps * 1000}"

    fmtp_prefix = f"a=fmtp:{codec_payload} "
    for index, line in enumerate(lines):
        if line.startswith(fmtp_prefix):
            lines[index] = f"{line};{param}"
            logger.debug(f"[SDP] Update SDP line: {lines[index]}")
            return LINE_SEPARATOR.join(lines)

    new_line = f"{fmtp_prefix}{param}"
    lines.insert(rtpmap_index + 1, new_line)
    logger.debug(f"[SDP] Add SDP line: {new_line}")
    return LINE_SEPARATOR.join(lines)


def apply_media_preferences(sdp: str, preferences: MediaPreferences, remote: bool) -> str:
    """협상 라운드 한 번에 해당하는 재작성을 적용합니다.

    로컬/원격 SDP 모두 코덱 선호도를 적용하고, 원격 SDP에는 추가로
    시작 비트레이트를 적용합니다.
    """
    if preferences.audio_codec:
        sdp = prefer_codec(sdp, preferences.audio_codec, True)
    if preferences.video_call_enabled and preferences.video_codec:
        sdp = prefer_codec(sdp, preferences.video_codec, False)
    if not remote:
        return sdp

    if preferences.video_call_enabled and preferences.video_start_bitrate_kbps > 0:
        for codec in (VIDEO_CODEC_VP8, VIDEO_CODEC_VP9, VIDEO_CODEC_H264):
            sdp = set_start_bitrate(sdp, codec, True, preferences.video_start_bitrate_kbps)
    if preferences.audio_start_bitrate_kbps > 0:
        sdp = set_start_bitrate(sdp, AUDIO_CODEC_OPUS, False, preferences.audio_start_bitrate_kbps)
    return sdp
