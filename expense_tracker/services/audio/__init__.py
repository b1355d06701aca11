"""Voice capture package."""

from expense_tracker.services.audio.capture import (
    AudioCapture,
    AudioClip,
    DeviceUnavailableError,
    MicrophoneDevice,
    RecordingState,
    StopReason,
)
from expense_tracker.services.audio.devices import RecordedClipDevice

__all__ = [
    "AudioCapture",
    "AudioClip",
    "DeviceUnavailableError",
    "MicrophoneDevice",
    "RecordedClipDevice",
    "RecordingState",
    "StopReason",
]
