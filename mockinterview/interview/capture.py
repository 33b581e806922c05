"""
Speech capture: one contract, two backends (local continuous recognizer and
network streaming recognizer).

Engine and device callbacks arrive on worker threads; every one of them is
marshalled onto the event loop before it touches capture state.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, FrozenSet

from ..config import (
    LANGUAGE_CODE, LOCAL_INACTIVITY_TIMEOUT_S, STREAM_CHUNK_MS, FINAL_RESULT_GRACE_S,
)
from ..infrastructure.audio.processing.capture import AudioSource, MicrophoneStream, microphone_available
from ..infrastructure.audio.speech.recognizer import RecognizerEngine, RecognizerCallbacks
from ..infrastructure.audio.speech.stt import StreamingConnection

logger = logging.getLogger("speech_capture")

# How long stop_listening waits for the local engine to deliver its last result
LOCAL_STOP_TIMEOUT_S = 5.0


class CaptureStatus(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    ERROR = "error"


@dataclass(frozen=True)
class CaptureState:
    status: CaptureStatus = CaptureStatus.IDLE
    reason: Optional[str] = None


class ErrorKind(str, Enum):
    TRANSIENT = "transient"
    CANCELLED = "cancelled"
    FATAL = "fatal"


_TRANSIENT_ERRORS = frozenset({"no-speech"})
_CANCELLED_ERRORS = frozenset({"aborted"})


def classify_recognizer_error(code: str) -> ErrorKind:
    """no-speech is transient, aborted is a cancellation, anything else is fatal."""
    if code in _TRANSIENT_ERRORS:
        return ErrorKind.TRANSIENT
    if code in _CANCELLED_ERRORS:
        return ErrorKind.CANCELLED
    return ErrorKind.FATAL


class CaptureStateMachine:
    """Guarded idle/listening/error transitions. Illegal events are logged and ignored."""

    TRANSITIONS: Dict[str, Tuple[FrozenSet[CaptureStatus], CaptureStatus]] = {
        "start": (frozenset({CaptureStatus.IDLE, CaptureStatus.ERROR}), CaptureStatus.LISTENING),
        "stop": (frozenset({CaptureStatus.LISTENING}), CaptureStatus.IDLE),
        "fail": (frozenset({CaptureStatus.LISTENING, CaptureStatus.IDLE}), CaptureStatus.ERROR),
        "reset": (frozenset({CaptureStatus.ERROR}), CaptureStatus.IDLE),
    }

    def __init__(self, name: str = "capture"):
        self.name = name
        self._state = CaptureState()

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def status(self) -> CaptureStatus:
        return self._state.status

    def fire(self, event: str, reason: Optional[str] = None) -> bool:
        """Apply ``event``. Returns False when the current state does not allow it."""
        sources, target = self.TRANSITIONS[event]
        if self._state.status not in sources:
            logger.debug(f"[{self.name}] ignored '{event}' in state {self._state.status.value}")
            return False
        previous = self._state.status
        self._state = CaptureState(target, reason if target is CaptureStatus.ERROR else None)
        logger.debug(f"[{self.name}] {previous.value} -> {target.value}"
                     + (f" ({reason})" if reason else ""))
        return True

    def start(self) -> bool:
        return self.fire("start")

    def stop(self) -> bool:
        return self.fire("stop")

    def fail(self, reason: str) -> bool:
        return self.fire("fail", reason)

    def reset(self) -> bool:
        return self.fire("reset")


class SpeechCapture(ABC):
    """Capture contract the dialogue controller depends on.

    Callbacks:
        on_transcript(text): every partial and final result, for live preview
        on_auto_stop(): the backend stopped itself
        on_error(message): once per fatal error
    """

    def __init__(self, language: str = LANGUAGE_CODE):
        self.language = language
        self._fsm = CaptureStateMachine(type(self).__name__)
        self._transcript = ""
        self._preview = ""
        self._generation = 0
        self._stop_requested = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self.on_transcript: Optional[Callable[[str], None]] = None
        self.on_auto_stop: Optional[Callable[[], None]] = None
        self.on_error: Optional[Callable[[str], None]] = None
        self.is_supported: bool = self._check_support()

    @abstractmethod
    def _check_support(self) -> bool:
        ...

    @abstractmethod
    async def start_listening(self) -> None:
        ...

    @abstractmethod
    async def stop_listening(self) -> None:
        ...

    async def cancel(self) -> None:
        """Abandon the turn (session leave). Defaults to a normal stop."""
        await self.stop_listening()

    @property
    def state(self) -> CaptureState:
        return self._fsm.state

    @property
    def is_listening(self) -> bool:
        return self._fsm.status is CaptureStatus.LISTENING

    @property
    def error(self) -> Optional[str]:
        return self._fsm.state.reason

    @property
    def transcript(self) -> str:
        """Canonical text of the current turn."""
        return self._transcript

    @property
    def preview(self) -> str:
        return self._preview

    def _begin(self) -> bool:
        """Common start bookkeeping. False if capture cannot start."""
        if self.is_listening:
            logger.debug("start_listening ignored: already listening")
            return False
        self._loop = asyncio.get_running_loop()
        if not self.is_supported:
            self._fail("not-supported")
            return False
        self._fsm.start()
        self._transcript = ""
        self._preview = ""
        self._stop_requested = False
        self._generation += 1
        return True

    def _post(self, generation: int, fn: Callable, *args) -> None:
        """Run ``fn(*args)`` on the loop unless a newer turn has started. Thread-safe."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return

        def run():
            if generation == self._generation:
                fn(*args)
        loop.call_soon_threadsafe(run)

    def _emit_transcript(self, text: str) -> None:
        self._preview = text
        if self.on_transcript:
            self.on_transcript(text)

    def _fail(self, code: str) -> None:
        if self._fsm.fail(code):
            logger.error(f"Capture failed: {code}")
            if self.on_error:
                self.on_error(code)

    def _handle_error(self, code: str) -> None:
        kind = classify_recognizer_error(code)
        if kind is ErrorKind.TRANSIENT:
            logger.debug(f"Transient capture condition: {code}")
        elif kind is ErrorKind.CANCELLED:
            logger.info("Capture aborted")
            self._fsm.stop()
        else:
            self._fail(code)
            self._on_fatal()

    def _on_fatal(self) -> None:
        """Backend-specific cleanup after a fatal error."""

    def _auto_stopped(self) -> None:
        logger.info("Capture stopped by backend")
        if self.on_auto_stop:
            self.on_auto_stop()


class LocalSpeechCapture(SpeechCapture):
    """Continuous local recognizer with an inactivity ceiling."""

    def __init__(self, engine: RecognizerEngine, language: str = LANGUAGE_CODE,
                 inactivity_timeout: float = LOCAL_INACTIVITY_TIMEOUT_S,
                 stop_timeout: float = LOCAL_STOP_TIMEOUT_S):
        self.engine = engine
        self.inactivity_timeout = inactivity_timeout
        self.stop_timeout = stop_timeout
        self._timer: Optional[asyncio.TimerHandle] = None
        self._ended: Optional[asyncio.Event] = None
        self._auto_stop_task: Optional[asyncio.Task] = None
        super().__init__(language)

    def _check_support(self) -> bool:
        return self.engine.is_available()

    async def start_listening(self) -> None:
        if not self._begin():
            return
        generation = self._generation
        self._ended = asyncio.Event()
        self.engine.configure(self.language, continuous=True, interim_results=True)
        self.engine.start(RecognizerCallbacks(
            on_start=lambda: self._post(generation, logger.info, "Local recognizer started"),
            on_result=lambda segments: self._post(generation, self._handle_result, list(segments)),
            on_error=lambda code: self._post(generation, self._handle_error, code),
            on_end=lambda: self._post(generation, self._handle_end),
        ))
        self._arm_timer()

    def _handle_result(self, segments: List[str]) -> None:
        self._transcript = " ".join(s.strip() for s in segments if s and s.strip())
        self._emit_transcript(self._transcript)
        if self.is_listening:
            self._arm_timer()

    def _handle_end(self) -> None:
        self._cancel_timer()
        if self._ended is not None:
            self._ended.set()
        if self._fsm.stop() and not self._stop_requested:
            self._auto_stopped()

    def _on_fatal(self) -> None:
        self._cancel_timer()
        self.engine.abort()

    def _arm_timer(self) -> None:
        self._cancel_timer()
        self._timer = self._loop.call_later(self.inactivity_timeout, self._on_inactivity)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_inactivity(self) -> None:
        self._timer = None
        logger.info(f"No speech activity for {self.inactivity_timeout:.0f}s, stopping capture")
        self._auto_stop_task = self._loop.create_task(self._stop_then_notify())

    async def _stop_then_notify(self) -> None:
        await self.stop_listening()
        self._auto_stopped()

    async def _stop(self, abort: bool) -> None:
        if self.is_listening:
            self._stop_requested = True
            self._cancel_timer()
            self._fsm.stop()
            if abort:
                self.engine.abort()
            else:
                self.engine.stop()
        elif abort and self._ended is not None and not self._ended.is_set():
            # cancel during an in-flight stop drops the pending utterance
            self.engine.abort()
        ended = self._ended
        if ended is None or ended.is_set():
            return
        try:
            await asyncio.wait_for(ended.wait(), self.stop_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Recognizer did not end within {self.stop_timeout:.1f}s")

    async def stop_listening(self) -> None:
        await self._stop(abort=False)

    async def cancel(self) -> None:
        await self._stop(abort=True)


class StreamingSpeechCapture(SpeechCapture):
    """Persistent streaming connection fed with PCM16 chunks from the audio device."""

    def __init__(self,
                 connection_factory: Callable[[], StreamingConnection],
                 source_factory: Callable[[], AudioSource] = MicrophoneStream,
                 language: str = LANGUAGE_CODE,
                 chunk_ms: int = STREAM_CHUNK_MS,
                 final_grace: float = FINAL_RESULT_GRACE_S,
                 support_check: Callable[[], bool] = microphone_available):
        self.connection_factory = connection_factory
        self.source_factory = source_factory
        self.chunk_ms = chunk_ms
        self.final_grace = final_grace
        self._support_check = support_check
        self._connection: Optional[StreamingConnection] = None
        self._source: Optional[AudioSource] = None
        super().__init__(language)

    def _check_support(self) -> bool:
        return self._support_check()

    async def start_listening(self) -> None:
        if not self._begin():
            return
        generation = self._generation

        connection = self.connection_factory()
        try:
            connection.open(
                on_result=lambda text, is_final: self._post(generation, self._handle_result, text, is_final),
                on_error=lambda code: self._post(generation, self._handle_error, code),
                on_closed=lambda: self._post(generation, self._handle_closed),
            )
        except RuntimeError as e:
            logger.error(f"Could not open streaming connection: {e}")
            self._fail("network")
            return
        self._connection = connection

        source = self.source_factory()
        try:
            source.open()
            source.start(on_chunk=connection.send, chunk_ms=self.chunk_ms)
        except RuntimeError as e:
            logger.error(f"Could not acquire audio device: {e}")
            self._source = source
            self._fail("audio-capture")
            self._teardown()
            return
        self._source = source
        logger.info(f"Streaming capture started ({self.chunk_ms} ms chunks)")

    def _handle_result(self, text: str, is_final: bool) -> None:
        text = text.strip()
        if not text:
            return
        if is_final:
            self._transcript = f"{self._transcript} {text}".strip()
            self._emit_transcript(self._transcript)
        else:
            self._emit_transcript(f"{self._transcript} {text}".strip())

    def _handle_closed(self) -> None:
        if self._fsm.stop() and not self._stop_requested:
            self._teardown()
            self._auto_stopped()

    def _on_fatal(self) -> None:
        self._teardown()

    def _teardown(self) -> Optional[StreamingConnection]:
        """Close signal, stop recorder, release device. Each step runs even if another fails."""
        connection, self._connection = self._connection, None
        source, self._source = self._source, None
        if connection is not None:
            try:
                connection.close()
            except Exception as e:
                logger.warning(f"Close signal failed: {e}")
        if source is not None:
            try:
                source.stop()
            except Exception as e:
                logger.warning(f"Stopping recorder failed: {e}")
            try:
                source.release()
            except Exception as e:
                logger.warning(f"Releasing audio device failed: {e}")
        return connection

    async def stop_listening(self) -> None:
        if not self.is_listening:
            return
        self._stop_requested = True
        self._fsm.stop()
        connection = self._teardown()
        if connection is None:
            return
        # Remaining final results arrive while the remote end drains
        closed = await self._loop.run_in_executor(None, connection.wait_closed, self.final_grace)
        if not closed:
            logger.warning(f"Streaming connection still open after {self.final_grace:.1f}s")
        # Let results posted by the worker thread land before the caller reads the buffer
        await asyncio.sleep(0)
