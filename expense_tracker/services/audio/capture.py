"""
Voice Capture

Records one short clip from a microphone device.

DESIGN DECISIONS:
1. A capture session is a small state machine: IDLE -> RECORDING -> STOPPED.
   The only way into STOPPED is `_finish()`, and it is guarded by the current
   state. Whichever of manual stop / auto-stop / end-of-stream arrives first
   wins; later arrivals find the session STOPPED and do nothing.
2. The auto-stop timer is the only timeout in the capture pipeline.
3. The device is released on every exit path: stop, auto-stop, a read
   error, and a failed acquisition after partial setup.
"""

import asyncio
import contextlib
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

import structlog
from pydantic import BaseModel, ConfigDict

from expense_tracker.config import get_settings
from expense_tracker.models.expense import AudioInput


logger = structlog.get_logger(__name__)


class DeviceUnavailableError(Exception):
    """Microphone permission denied, no device present, or device failed."""
    pass


class MicrophoneDevice(ABC):
    """
    A source of encoded audio chunks.
    
    Implementations wrap whatever actually owns the microphone (a browser
    widget, a sound card binding, a pre-recorded clip).
    """
    
    audio_format: str = "webm"
    
    @abstractmethod
    async def acquire(self) -> None:
        """
        Open the device.
        
        Raises:
            DeviceUnavailableError: Permission denied or no device
        """
        pass
    
    @abstractmethod
    async def read_chunk(self) -> Optional[bytes]:
        """Next chunk of encoded audio, or None when the stream has ended."""
        pass
    
    @abstractmethod
    async def release(self) -> None:
        """Close the device. Must be safe to call after a failed acquire."""
        pass


class RecordingState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    STOPPED = "stopped"


class StopReason(str, Enum):
    MANUAL = "manual"
    AUTO_STOP = "auto_stop"
    END_OF_STREAM = "end_of_stream"
    ERROR = "error"


class AudioClip(BaseModel):
    """A finished recording."""
    model_config = ConfigDict(frozen=True)
    
    data: bytes
    audio_format: str
    stop_reason: StopReason
    duration_seconds: float
    
    @property
    def is_empty(self) -> bool:
        return len(self.data) == 0
    
    def to_input(self) -> AudioInput:
        return AudioInput(audio=self.data, audio_format=self.audio_format)


class AudioCapture:
    """
    One recording session over a MicrophoneDevice.
    
    Usage:
        capture = AudioCapture(device)
        await capture.start()
        ...
        clip = await capture.stop()        # or: await capture.wait_clip()
    
    A session records once. Create a new one for the next recording.
    """
    
    def __init__(
        self,
        device: MicrophoneDevice,
        max_seconds: Optional[float] = None,
    ):
        self._device = device
        self._max_seconds = (
            max_seconds
            if max_seconds is not None
            else get_settings().capture.max_recording_seconds
        )
        self._state = RecordingState.IDLE
        self._chunks: list[bytes] = []
        self._started_at: Optional[float] = None
        self._reader: Optional[asyncio.Task] = None
        self._timer: Optional[asyncio.Task] = None
        self._clip: Optional[asyncio.Future] = None
    
    @property
    def state(self) -> RecordingState:
        return self._state
    
    @property
    def is_recording(self) -> bool:
        return self._state is RecordingState.RECORDING
    
    async def start(self) -> None:
        """
        Acquire the device and begin buffering chunks.
        
        Raises:
            DeviceUnavailableError: The device could not be opened.
                It has already been released when this is raised.
        """
        if self._state is not RecordingState.IDLE:
            raise RuntimeError(f"Capture session already {self._state.value}")
        
        try:
            await self._device.acquire()
        except DeviceUnavailableError:
            await self._release_device()
            raise
        except Exception as e:
            await self._release_device()
            raise DeviceUnavailableError(f"Failed to access microphone: {e}") from e
        
        loop = asyncio.get_running_loop()
        self._clip = loop.create_future()
        self._state = RecordingState.RECORDING
        self._started_at = time.monotonic()
        self._reader = asyncio.create_task(self._pump())
        self._timer = asyncio.create_task(self._auto_stop())
        logger.debug("recording_started", max_seconds=self._max_seconds)
    
    async def stop(self) -> AudioClip:
        """
        Stop recording and return the clip.
        
        If the session already stopped (e.g. the auto-stop fired first) this
        does nothing beyond returning the clip that was produced.
        """
        if self._state is RecordingState.IDLE:
            raise RuntimeError("Capture session was never started")
        await self._finish(StopReason.MANUAL)
        return await self.wait_clip()
    
    async def wait_clip(self) -> AudioClip:
        """Wait for the session to stop by any means and return the clip."""
        if self._clip is None:
            raise RuntimeError("Capture session was never started")
        return await asyncio.shield(self._clip)
    
    async def __aenter__(self) -> "AudioCapture":
        await self.start()
        return self
    
    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self._finish(StopReason.MANUAL if exc is None else StopReason.ERROR)
    
    async def _pump(self) -> None:
        try:
            while True:
                chunk = await self._device.read_chunk()
                if chunk is None:
                    break
                if chunk:
                    self._chunks.append(chunk)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            await self._finish(StopReason.ERROR, error=e)
            return
        await self._finish(StopReason.END_OF_STREAM)
    
    async def _auto_stop(self) -> None:
        await asyncio.sleep(self._max_seconds)
        await self._finish(StopReason.AUTO_STOP)
    
    async def _finish(
        self,
        reason: StopReason,
        error: Optional[BaseException] = None,
    ) -> bool:
        """
        The single RECORDING -> STOPPED transition.
        
        Returns False when the session was not recording (the caller lost
        the race, or start() never succeeded).
        """
        if self._state is not RecordingState.RECORDING:
            return False
        self._state = RecordingState.STOPPED
        
        current = asyncio.current_task()
        for task in (self._timer, self._reader):
            if task is not None and task is not current and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        
        await self._release_device()
        
        duration = time.monotonic() - (self._started_at or time.monotonic())
        logger.debug("recording_stopped", reason=reason.value, duration=round(duration, 2))
        
        if error is not None:
            self._clip.set_exception(
                DeviceUnavailableError(f"Recording interrupted: {error}")
            )
        else:
            self._clip.set_result(
                AudioClip(
                    data=b"".join(self._chunks),
                    audio_format=self._device.audio_format,
                    stop_reason=reason,
                    duration_seconds=duration,
                )
            )
        return True
    
    async def _release_device(self) -> None:
        try:
            await self._device.release()
        except Exception as e:
            logger.warning("device_release_failed", error=str(e))
