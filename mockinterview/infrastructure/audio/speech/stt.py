"""
Speech-to-text functionality using Google Cloud Speech.
"""
import logging
import queue
import threading
from abc import ABC, abstractmethod
from typing import Callable, Iterator, Optional

from google.api_core import exceptions as api_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import speech

from ....config import LANGUAGE_CODE, SAMPLE_RATE_TARGET, STREAMING_MODEL

logger = logging.getLogger("speech_stt")

ResultCallback = Callable[[str, bool], None]
ErrorCallback = Callable[[str], None]
ClosedCallback = Callable[[], None]


def recognize_google_sync(pcm16_bytes: bytes,
                          sr_hz: int = SAMPLE_RATE_TARGET,
                          language: str = LANGUAGE_CODE,
                          client: Optional[speech.SpeechClient] = None) -> str:
    """
    Synchronous Google Cloud Speech-to-Text recognition.
    Returns transcribed text or empty string if no speech detected.

    Raises:
        google.api_core.exceptions.GoogleAPICallError: transport/service failure
    """
    client = client or speech.SpeechClient()
    audio = speech.RecognitionAudio(content=pcm16_bytes)
    config = speech.RecognitionConfig(
        encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
        sample_rate_hertz=sr_hz,
        language_code=language,
        enable_automatic_punctuation=True,
    )

    resp = client.recognize(config=config, audio=audio)
    texts = [r.alternatives[0].transcript for r in resp.results if r.alternatives]
    return " ".join(texts).strip()


def classify_api_error(error: Exception) -> str:
    """Map a Google client exception onto a recognizer error code."""
    if isinstance(error, api_exceptions.PermissionDenied):
        return "not-allowed"
    if isinstance(error, (api_exceptions.Unauthenticated, auth_exceptions.GoogleAuthError)):
        return "service-not-allowed"
    if isinstance(error, (api_exceptions.GoogleAPICallError, api_exceptions.RetryError)):
        return "network"
    return "unknown"


class StreamingConnection(ABC):
    """Bidirectional transcription connection.

    Audio goes out with ``send``; results come back through ``on_result(text,
    is_final)`` on a worker thread. ``close`` is the graceful end-of-audio
    signal: the remote end flushes its last final results and the
    connection ends with ``on_closed``.
    """

    @abstractmethod
    def open(self, on_result: ResultCallback, on_error: ErrorCallback,
             on_closed: ClosedCallback) -> None:
        ...

    @abstractmethod
    def send(self, chunk: bytes) -> None:
        ...

    @abstractmethod
    def close(self) -> None:
        ...

    @abstractmethod
    def wait_closed(self, timeout: float) -> bool:
        """Block until the connection has ended. False on timeout."""


class GoogleStreamingConnection(StreamingConnection):
    """Google Cloud Speech ``streaming_recognize`` fed from a request queue."""

    def __init__(self,
                 language: str = LANGUAGE_CODE,
                 model: str = STREAMING_MODEL,
                 sr_hz: int = SAMPLE_RATE_TARGET,
                 interim_results: bool = True,
                 client: Optional[speech.SpeechClient] = None):
        self.language = language
        self.model = model
        self.sr_hz = sr_hz
        self.interim_results = interim_results
        self._client = client
        self._requests: "queue.Queue[Optional[bytes]]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._closed = threading.Event()

    def _streaming_config(self) -> speech.StreamingRecognitionConfig:
        return speech.StreamingRecognitionConfig(
            config=speech.RecognitionConfig(
                encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
                sample_rate_hertz=self.sr_hz,
                language_code=self.language,
                model=self.model,
                enable_automatic_punctuation=True,
            ),
            interim_results=self.interim_results,
        )

    def _request_stream(self) -> Iterator[speech.StreamingRecognizeRequest]:
        while True:
            chunk = self._requests.get()
            if chunk is None:
                return
            yield speech.StreamingRecognizeRequest(audio_content=chunk)

    def open(self, on_result: ResultCallback, on_error: ErrorCallback,
             on_closed: ClosedCallback) -> None:
        if self._thread is not None:
            raise RuntimeError("Streaming connection already opened")
        try:
            client = self._client or speech.SpeechClient()
        except auth_exceptions.GoogleAuthError as e:
            raise RuntimeError(f"Speech client unavailable: {e}")

        def consume():
            try:
                responses = client.streaming_recognize(
                    config=self._streaming_config(),
                    requests=self._request_stream(),
                )
                for response in responses:
                    for result in response.results:
                        if not result.alternatives:
                            continue
                        on_result(result.alternatives[0].transcript, bool(result.is_final))
            except Exception as e:
                logger.error(f"Streaming recognition failed: {e}")
                on_error(classify_api_error(e))
            finally:
                self._closed.set()
                on_closed()

        self._thread = threading.Thread(target=consume, name="stt-stream", daemon=True)
        self._thread.start()
        logger.info(f"Streaming connection opened (language={self.language}, model={self.model})")

    def send(self, chunk: bytes) -> None:
        if not self._closed.is_set():
            self._requests.put(chunk)

    def close(self) -> None:
        self._requests.put(None)

    def wait_closed(self, timeout: float) -> bool:
        if self._thread is None:
            return True
        return self._closed.wait(timeout)
