"""Concrete microphone devices."""

import io
import wave
from typing import Optional

import structlog

from expense_tracker.services.audio.capture import (
    DeviceUnavailableError,
    MicrophoneDevice,
)


logger = structlog.get_logger(__name__)


WAV_FORMATS = {"wav", "wave", "x-wav", "vnd.wave"}


def trim_wav(data: bytes, max_seconds: float) -> bytes:
    """
    Cut a WAV clip down to its first `max_seconds`.
    
    Clips already within the limit are returned unchanged.
    
    Raises:
        wave.Error, EOFError: `data` is not a readable WAV file
    """
    with wave.open(io.BytesIO(data), "rb") as reader:
        params = reader.getparams()
        max_frames = int(params.framerate * max_seconds)
        if params.nframes <= max_frames:
            return data
        frames = reader.readframes(max_frames)
    
    out = io.BytesIO()
    with wave.open(out, "wb") as writer:
        writer.setparams(params)
        writer.writeframes(frames)
    return out.getvalue()


class RecordedClipDevice(MicrophoneDevice):
    """
    Replays a clip the browser already recorded.
    
    Streamlit's `st.audio_input` hands us the finished recording as bytes;
    this feeds it through the capture session in chunks so the same stop
    and release rules apply. A missing clip means the user denied
    microphone access or has no input device.
    
    The browser widget has no length limit, so a WAV clip longer than
    `max_seconds` is trimmed to that length before it is replayed.
    """
    
    def __init__(
        self,
        data: Optional[bytes],
        audio_format: str = "webm",
        chunk_size: int = 32 * 1024,
        max_seconds: Optional[float] = None,
    ):
        self.audio_format = audio_format
        self.trimmed = False
        if data and max_seconds is not None and audio_format.lower() in WAV_FORMATS:
            data = self._limit(data, max_seconds)
        self._data = data
        self._offset = 0
        self._chunk_size = chunk_size
        self._open = False
    
    def _limit(self, data: bytes, max_seconds: float) -> bytes:
        try:
            limited = trim_wav(data, max_seconds)
        except (wave.Error, EOFError) as e:
            logger.warning("clip_not_trimmed", audio_format=self.audio_format, error=str(e))
            return data
        if limited is not data:
            self.trimmed = True
            logger.info("clip_trimmed", max_seconds=max_seconds, original_bytes=len(data))
        return limited
    
    @property
    def is_open(self) -> bool:
        return self._open
    
    async def acquire(self) -> None:
        if not self._data:
            raise DeviceUnavailableError("No microphone recording available")
        self._open = True
        self._offset = 0
    
    async def read_chunk(self) -> Optional[bytes]:
        if not self._open or self._offset >= len(self._data):
            return None
        chunk = self._data[self._offset:self._offset + self._chunk_size]
        self._offset += len(chunk)
        return chunk
    
    async def release(self) -> None:
        self._open = False
