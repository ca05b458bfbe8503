"""Speech synthesis and transcription."""

from fitwell.speech.local import LocalSpeech
from fitwell.speech.synthesis import (
    SpeechProvider,
    SpeechRequest,
    SpeechSynthesizer,
    build_speech_synthesizer,
)
from fitwell.speech.transcription import Recognizer, TranscriptionService

__all__ = [
    "LocalSpeech",
    "Recognizer",
    "SpeechProvider",
    "SpeechRequest",
    "SpeechSynthesizer",
    "TranscriptionService",
    "build_speech_synthesizer",
]
