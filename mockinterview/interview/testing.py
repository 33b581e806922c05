"""
Testing infrastructure with in-process fakes for the interview system.
"""
import asyncio
import threading
import time
from typing import Any, Dict, List, Optional, Sequence, Union

from ..infrastructure.audio.processing.capture import AudioSource, ChunkCallback
from ..infrastructure.audio.speech.recognizer import RecognizerEngine, RecognizerCallbacks
from ..infrastructure.audio.speech.stt import StreamingConnection
from ..infrastructure.audio.speech.tts import SpeechSynthesizer
from .capture import SpeechCapture
from .models import QuestionItem


async def settle(rounds: int = 10) -> None:
    """Let callbacks posted with call_soon_threadsafe run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeRecognizerEngine(RecognizerEngine):
    """Recognizer driven by the test. Events are delivered synchronously."""

    def __init__(self, available: bool = True, defer_end: bool = False):
        self.available = available
        self.defer_end = defer_end
        self.configured: Optional[Dict[str, Any]] = None
        self.callbacks: Optional[RecognizerCallbacks] = None
        self.start_count = 0
        self.stop_count = 0
        self.abort_count = 0
        self.final_on_stop: Optional[List[str]] = None

    def is_available(self) -> bool:
        return self.available

    def configure(self, language: str, continuous: bool, interim_results: bool) -> None:
        self.configured = {"language": language, "continuous": continuous,
                           "interim_results": interim_results}

    def start(self, callbacks: RecognizerCallbacks) -> None:
        self.start_count += 1
        self.callbacks = callbacks
        callbacks.on_start()

    def emit_result(self, segments: Sequence[str]) -> None:
        self.callbacks.on_result(list(segments))

    def emit_error(self, code: str) -> None:
        self.callbacks.on_error(code)

    def emit_end(self) -> None:
        self.callbacks.on_end()

    def stop(self) -> None:
        self.stop_count += 1
        if self.final_on_stop is not None:
            self.callbacks.on_result(self.final_on_stop)
        if not self.defer_end:
            self.callbacks.on_end()

    def abort(self) -> None:
        self.abort_count += 1
        self.callbacks.on_error("aborted")
        self.callbacks.on_end()


class FakeAudioSource(AudioSource):
    """Audio device that records lifecycle calls into a shared log."""

    def __init__(self, log: Optional[List[str]] = None, frames: Optional[List[bytes]] = None,
                 fail_on_open: bool = False, fail_on_stop: bool = False):
        self.log = log if log is not None else []
        self.frames = list(frames or [])
        self.fail_on_open = fail_on_open
        self.fail_on_stop = fail_on_stop
        self.on_chunk: Optional[ChunkCallback] = None
        self.chunk_ms: Optional[int] = None

    def open(self) -> None:
        self.log.append("source.open")
        if self.fail_on_open:
            raise RuntimeError("device busy")

    def start(self, on_chunk: Optional[ChunkCallback] = None, chunk_ms: int = 100) -> None:
        self.log.append("source.start")
        self.on_chunk = on_chunk
        self.chunk_ms = chunk_ms

    def push(self, chunk: bytes) -> None:
        self.on_chunk(chunk)

    def read_frame(self, timeout: float = 0.5) -> Optional[bytes]:
        if self.frames:
            return self.frames.pop(0)
        time.sleep(0.001)
        return None

    def stop(self) -> None:
        self.log.append("source.stop")
        if self.fail_on_stop:
            raise RuntimeError("recorder wedged")

    def release(self) -> None:
        self.log.append("source.release")


class FakeStreamingConnection(StreamingConnection):
    """Streaming connection driven by the test."""

    def __init__(self, log: Optional[List[str]] = None, fail_on_open: bool = False,
                 fail_on_close: bool = False, final_on_close: Optional[str] = None):
        self.log = log if log is not None else []
        self.fail_on_open = fail_on_open
        self.fail_on_close = fail_on_close
        self.final_on_close = final_on_close
        self.sent: List[bytes] = []
        self.on_result = None
        self.on_error = None
        self.on_closed = None
        self.closed = threading.Event()

    def open(self, on_result, on_error, on_closed) -> None:
        self.log.append("connection.open")
        if self.fail_on_open:
            raise RuntimeError("handshake refused")
        self.on_result = on_result
        self.on_error = on_error
        self.on_closed = on_closed

    def send(self, chunk: bytes) -> None:
        self.sent.append(chunk)

    def message(self, text: str, is_final: bool) -> None:
        self.on_result(text, is_final)

    def close(self) -> None:
        self.log.append("connection.close")
        if self.fail_on_close:
            raise RuntimeError("socket already gone")
        if self.final_on_close:
            self.on_result(self.final_on_close, True)
        self.closed.set()
        self.on_closed()

    def wait_closed(self, timeout: float) -> bool:
        return self.closed.wait(timeout)


class ScriptedCapture(SpeechCapture):
    """Capture whose buffer the test sets directly."""

    def __init__(self, supported: bool = True):
        self._supported = supported
        self.start_count = 0
        self.stop_count = 0
        self.cancel_count = 0
        super().__init__()

    def _check_support(self) -> bool:
        return self._supported

    async def start_listening(self) -> None:
        if not self._begin():
            return
        self.start_count += 1

    async def stop_listening(self) -> None:
        if not self.is_listening:
            return
        self.stop_count += 1
        self._fsm.stop()
        # stands in for waiting on the final result
        await asyncio.sleep(0)

    async def cancel(self) -> None:
        self.cancel_count += 1
        await self.stop_listening()

    def say(self, text: str) -> None:
        self._transcript = text
        self._emit_transcript(text)

    def fail(self, code: str) -> None:
        self._handle_error(code)

    def auto_stop(self) -> None:
        self._fsm.stop()
        self._auto_stopped()


class MockSynthesizer(SpeechSynthesizer):
    """Records what would have been spoken."""

    def __init__(self, fail: bool = False, hold: bool = False):
        self.spoken: List[Dict[str, str]] = []
        self.fail = fail
        self.stop_count = 0
        self.prepare_count = 0
        self._release = threading.Event()
        if not hold:
            self._release.set()

    def prepare(self) -> None:
        self.prepare_count += 1

    def speak(self, text: str, gender: str, language: str) -> None:
        self.spoken.append({"text": text, "gender": gender, "language": language})
        if self.fail:
            raise RuntimeError("synthesis backend unavailable")
        self._release.wait(5.0)

    def stop(self) -> None:
        self.stop_count += 1
        self._release.set()

    @property
    def texts(self) -> List[str]:
        return [entry["text"] for entry in self.spoken]


class MockLLMClient:
    """Mock reasoning collaborator for testing."""

    def __init__(self, mock_responses: List[Union[Dict[str, Any], Exception]]):
        self.mock_responses = mock_responses
        self.current_response_idx = 0
        self.request_history: List[Dict[str, Any]] = []

    def generate_json(self, prompt: str, temperature: float = 0.0, **kwargs) -> Dict[str, Any]:
        self.request_history.append({
            "prompt": prompt,
            "temperature": temperature,
            "kwargs": kwargs,
        })
        if self.current_response_idx >= len(self.mock_responses):
            raise ValueError("MockLLMClient ran out of responses")
        response = self.mock_responses[self.current_response_idx]
        self.current_response_idx += 1
        if isinstance(response, Exception):
            raise response
        return response


def assessment_payload(scores: Union[float, Dict[str, float]] = 80,
                       question_scores: Optional[Dict[str, float]] = None) -> Dict[str, Any]:
    """A well-formed collaborator response with the given category scores."""
    keys = ("technicalSkills", "problemSolving", "communication", "experience", "professionalism")
    if not isinstance(scores, dict):
        scores = {key: scores for key in keys}
    names = ("Technical Skills", "Problem-Solving", "Communication", "Experience", "Professionalism")
    return {
        "categoryScores": {
            key: {"score": scores[key], "justification": f"{key} evidence"} for key in keys
        },
        "strengths": ["Clear structure"],
        "weaknesses": ["Few metrics"],
        "detailedFeedback": [
            {"category": name, "rating": "Good", "comment": "Solid."} for name in names
        ],
        "improvementAreas": [
            {"area": "Metrics", "suggestion": "Quantify impact.", "priority": "High"},
        ],
        "interviewSummary": "A reasonable interview.",
        "recommendedActions": ["Practice system design"],
        "skillsRadar": [
            {"name": name, "score": 1, "maxScore": 100, "description": f"{name} summary"}
            for name in names
        ],
        "questionGrades": [
            {"questionId": qid, "score": score, "rationale": "compared with reference"}
            for qid, score in (question_scores or {}).items()
        ],
    }


def sample_questions(count: int = 5) -> List[QuestionItem]:
    return [
        QuestionItem(
            id=f"q{i + 1}",
            question=f"Question number {i + 1}: explain topic {i + 1}?",
            answer=f"Reference answer for topic {i + 1} with the key points.",
        )
        for i in range(count)
    ]
