"""
Continuous local recognizer: microphone + RMS voice activity detection,
each utterance recognized with Google Cloud Speech.
"""
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List, Optional

from ....config import (
    LANGUAGE_CODE, SAMPLE_RATE_TARGET, VAD_SILENCE_THRESHOLD,
    VAD_SILENCE_DURATION, VAD_MIN_SPEECH_DURATION, NO_SPEECH_TIMEOUT_S,
    INTERIM_INTERVAL_S,
)
from ..processing.capture import AudioSource, MicrophoneStream, microphone_available
from ..processing.processing import pcm16_to_float, rms_level
from .stt import recognize_google_sync, classify_api_error

logger = logging.getLogger("speech_recognizer")


@dataclass
class RecognizerCallbacks:
    """Engine events. Invoked on the engine's worker thread."""
    on_start: Callable[[], None]
    on_result: Callable[[List[str]], None]
    on_error: Callable[[str], None]
    on_end: Callable[[], None]


class RecognizerEngine(ABC):
    """Local recognizer port.

    ``on_result`` always receives every segment of the session so far
    (finals plus, when interim results are on, the current partial as the
    last element).
    """

    @abstractmethod
    def is_available(self) -> bool:
        ...

    @abstractmethod
    def configure(self, language: str, continuous: bool, interim_results: bool) -> None:
        ...

    @abstractmethod
    def start(self, callbacks: RecognizerCallbacks) -> None:
        ...

    @abstractmethod
    def stop(self) -> None:
        """Finish the current utterance, deliver its result, then end."""

    @abstractmethod
    def abort(self) -> None:
        """End immediately; reports ``aborted``."""


@dataclass
class _RunControl:
    """Stop request for one recognizer run."""
    stop: threading.Event
    flush: bool = True


class VadRecognizerEngine(RecognizerEngine):
    """Segments microphone audio with RMS VAD and recognizes each utterance.

    Timing is measured in audio time (frames read), not wall time. A run
    started while the previous one is still winding down waits for it to
    release the device first.
    """

    def __init__(self,
                 source_factory: Callable[[], AudioSource] = MicrophoneStream,
                 recognize: Callable[..., str] = recognize_google_sync,
                 sr_hz: int = SAMPLE_RATE_TARGET,
                 silence_threshold: float = VAD_SILENCE_THRESHOLD,
                 silence_duration: float = VAD_SILENCE_DURATION,
                 min_speech_duration: float = VAD_MIN_SPEECH_DURATION,
                 no_speech_timeout: float = NO_SPEECH_TIMEOUT_S,
                 interim_interval: float = INTERIM_INTERVAL_S):
        self.source_factory = source_factory
        self.recognize = recognize
        self.sr_hz = sr_hz
        self.silence_threshold = silence_threshold
        self.silence_duration = silence_duration
        self.min_speech_duration = min_speech_duration
        self.no_speech_timeout = no_speech_timeout
        self.interim_interval = interim_interval

        self.language = LANGUAGE_CODE
        self.continuous = True
        self.interim_results = True

        self._thread: Optional[threading.Thread] = None
        self._control = _RunControl(threading.Event())

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def is_available(self) -> bool:
        return microphone_available()

    def configure(self, language: str, continuous: bool, interim_results: bool) -> None:
        self.language = language
        self.continuous = continuous
        self.interim_results = interim_results

    def start(self, callbacks: RecognizerCallbacks) -> None:
        previous = self._thread if self.is_running else None
        if previous is not None:
            if not self._control.stop.is_set():
                logger.debug("Recognizer already running")
                return
            logger.info("Previous recognizer run still ending; new run will wait for it")
        self._control = _RunControl(threading.Event())
        self._thread = threading.Thread(target=self._run, args=(callbacks, self._control, previous),
                                        name="vad-recognizer", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._control.flush = True
        self._control.stop.set()

    def abort(self) -> None:
        self._control.flush = False
        self._control.stop.set()

    def _transcribe(self, pcm: bytearray) -> str:
        return self.recognize(bytes(pcm), sr_hz=self.sr_hz, language=self.language)

    def _run(self, cb: RecognizerCallbacks, control: _RunControl,
             previous: Optional[threading.Thread] = None) -> None:
        if previous is not None:
            previous.join()
        if control.stop.is_set():
            if not control.flush:
                cb.on_error("aborted")
            cb.on_end()
            return

        source = self.source_factory()
        try:
            source.open()
            source.start()
        except RuntimeError as e:
            logger.error(f"Audio capture failed: {e}")
            cb.on_error("audio-capture")
            cb.on_end()
            return

        cb.on_start()
        segments: List[str] = []
        utterance = bytearray()
        t = 0.0                # audio time
        last_activity = 0.0    # last speech or no-speech report
        speech_start = None
        last_voice = 0.0
        last_interim = 0.0

        try:
            while not control.stop.is_set():
                frame = source.read_frame(timeout=0.2)
                if frame is None:
                    continue
                t += len(frame) / 2 / self.sr_hz
                level = rms_level(pcm16_to_float(frame))

                if level > self.silence_threshold:
                    if speech_start is None:
                        speech_start = t
                        last_interim = t
                        logger.debug(f"Speech detected (level: {level:.4f})")
                    last_voice = t
                    last_activity = t
                    utterance.extend(frame)
                elif speech_start is not None:
                    utterance.extend(frame)
                    if t - last_voice >= self.silence_duration:
                        spoke_for = last_voice - speech_start
                        if spoke_for >= self.min_speech_duration:
                            text = self._transcribe(utterance)
                            if text:
                                segments.append(text)
                                cb.on_result(list(segments))
                            if not self.continuous:
                                break
                        else:
                            logger.debug(f"Speech too short ({spoke_for:.1f}s), continuing")
                        utterance.clear()
                        speech_start = None
                        last_activity = t
                elif t - last_activity >= self.no_speech_timeout:
                    cb.on_error("no-speech")
                    last_activity = t
                    if not self.continuous:
                        break

                if (self.interim_results and speech_start is not None
                        and t - last_interim >= self.interim_interval):
                    last_interim = t
                    partial = self._transcribe(utterance)
                    if partial:
                        cb.on_result(segments + [partial])

            if control.stop.is_set():
                if control.flush and utterance:
                    text = self._transcribe(utterance)
                    if text:
                        segments.append(text)
                        cb.on_result(list(segments))
                elif not control.flush:
                    cb.on_error("aborted")
        except Exception as e:
            logger.error(f"Recognition failed: {e}")
            cb.on_error(classify_api_error(e))
        finally:
            try:
                source.stop()
            finally:
                source.release()
            cb.on_end()
