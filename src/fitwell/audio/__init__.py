"""Microphone and speaker adapters."""

from fitwell.audio.capture import CaptureHandle, DisabledRecorder, Recorder, SoundDeviceRecorder
from fitwell.audio.playback import AudioPlayer, SilentPlayer, SoundDevicePlayer

__all__ = [
    "AudioPlayer",
    "CaptureHandle",
    "DisabledRecorder",
    "Recorder",
    "SilentPlayer",
    "SoundDevicePlayer",
    "SoundDeviceRecorder",
]
