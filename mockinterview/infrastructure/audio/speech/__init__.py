"""Speech-to-text and text-to-speech modules."""

from .stt import (
    recognize_google_sync,
    classify_api_error,
    StreamingConnection,
    GoogleStreamingConnection,
)
from .recognizer import RecognizerEngine, RecognizerCallbacks, VadRecognizerEngine
from .tts import SpeechSynthesizer, GoogleSpeechSynthesizer, select_voice

__all__ = [
    "recognize_google_sync",
    "classify_api_error",
    "StreamingConnection",
    "GoogleStreamingConnection",
    "RecognizerEngine",
    "RecognizerCallbacks",
    "VadRecognizerEngine",
    "SpeechSynthesizer",
    "GoogleSpeechSynthesizer",
    "select_voice",
]
