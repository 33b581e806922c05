"""
Turn-taking dialogue controller.

Phases: not-started -> awaiting-answer <-> processing -> finished.
Capture only runs while awaiting an answer and is started after the
interviewer has finished speaking.
"""
import asyncio
import logging
import random
import time
import uuid
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Set

from ..config import InterviewerProfile, LANGUAGE_CODE, MIN_SUBMISSION_CHARS
from ..infrastructure.data import SessionStore
from .capture import SpeechCapture
from .events import (
    EventType, InterviewEventBus, QuestionAskedEvent, TurnRecordedEvent,
    SessionFinishedEvent, AssessmentCompletedEvent,
)
from .models import InterviewSession, QuestionItem, QuestionAnswerPair, Speaker, TranscriptEntry
from .prompts import (
    CLOSING_STATEMENT, EMPTY_TRANSCRIPT_NOTICE, ASSESSMENT_FAILED_NOTICE,
    CAPTURE_FAILED_NOTICE, SAVE_FAILED_NOTICE, random_transition,
)
from .schemas import AssessmentError, ControllerPhase, InterviewState
from .scoring import AssessmentEngine
from .services import SpeechSynthesisService
from .timeline import TranscriptTimeline

logger = logging.getLogger("controller")


def new_session_id() -> str:
    return f"{datetime.now():%Y%m%d_%H%M%S}_{uuid.uuid4().hex[:6]}"


class InterviewController:
    """
    Drives one interview session.

    The controller owns the timeline and the session record. Capture and
    synthesis are injected; capture and synthesis errors never surface here
    as exceptions. Only the assessment call is guarded, once.
    """

    def __init__(self,
                 questions: Sequence[QuestionItem],
                 capture: SpeechCapture,
                 synthesis: SpeechSynthesisService,
                 profile: InterviewerProfile,
                 engine: Optional[AssessmentEngine] = None,
                 store: Optional[SessionStore] = None,
                 event_bus: Optional[InterviewEventBus] = None,
                 language: str = LANGUAGE_CODE,
                 session_id: Optional[str] = None,
                 notify: Callable[[str], None] = print,
                 clock: Callable[[], float] = time.monotonic,
                 wall_clock: Callable[[], float] = time.time,
                 rng: Optional[random.Random] = None):
        if not questions:
            raise ValueError("An interview needs at least one question")
        self.questions: List[QuestionItem] = list(questions)
        self.capture = capture
        self.synthesis = synthesis
        self.profile = profile
        self.engine = engine
        self.store = store
        self.event_bus = event_bus or InterviewEventBus()
        self.notify = notify
        self._clock = clock
        self._wall_clock = wall_clock
        self._rng = rng or random.Random()

        self.state = InterviewState()
        self.timeline = TranscriptTimeline()
        self.question_pairs: List[QuestionAnswerPair] = []
        self.session = InterviewSession(
            session_id=session_id or new_session_id(),
            start_time=0,
            interviewer=profile,
            language=language,
        )
        self.result_path: Optional[str] = None
        self._started_at = 0.0
        self._completed = False
        self._done = asyncio.Event()
        self._tasks: Set[asyncio.Task] = set()

        self.capture.on_transcript = self._on_transcript
        self.capture.on_auto_stop = self._on_auto_stop
        self.capture.on_error = self._on_capture_error

    # ------------------------------------------------------------------ state

    @property
    def phase(self) -> ControllerPhase:
        return self.state.phase

    @property
    def current_question_index(self) -> int:
        return self.state.current_question_index

    @property
    def live_transcript(self) -> str:
        return self.state.live_transcript

    def _now_ms(self) -> int:
        return max(0, int((self._clock() - self._started_at) * 1000))

    def _emit(self, event_type: EventType, **data) -> None:
        self.event_bus.emit_simple(event_type, self.session.session_id, self._now_ms(), **data)

    # ------------------------------------------------------------- operations

    async def start(self) -> None:
        """Ask question 0, then open capture once it has been spoken."""
        if self.state.phase is not ControllerPhase.NOT_STARTED:
            logger.warning(f"start() ignored in phase {self.state.phase.value}")
            return
        self._started_at = self._clock()
        self.session.start_time = int(self._wall_clock() * 1000)
        # The interviewer holds the floor until the first question has been spoken
        self.state.phase = ControllerPhase.PROCESSING
        self._emit(EventType.SESSION_STARTED, questions=len(self.questions),
                   interviewer=self.profile.name)
        logger.info(f"Session {self.session.session_id} started with {len(self.questions)} questions")

        first = self.questions[0]
        self._ask(0, first.question, timestamp=0)
        await self.synthesis.speak(first.question)
        if self.state.is_finished:
            return
        self.state.phase = ControllerPhase.AWAITING_ANSWER
        await self._start_capture()

    async def submit(self) -> None:
        """User stop: accept, discard, or drop the current answer."""
        if self.state.phase is not ControllerPhase.AWAITING_ANSWER:
            if self.state.phase is ControllerPhase.PROCESSING:
                logger.info("Submission dropped: previous submission still processing")
                self._emit(EventType.SUBMISSION_DROPPED)
            else:
                logger.debug(f"submit() ignored in phase {self.state.phase.value}")
            return

        # Single flight: claimed before the first suspension point
        self.state.phase = ControllerPhase.PROCESSING
        try:
            await self.capture.stop_listening()
            if self.state.is_finished:
                return
            answer = self.capture.transcript.strip()

            if len(answer) <= MIN_SUBMISSION_CHARS:
                logger.info(f"Discarding too-short answer ({len(answer)} chars)")
                self._emit(EventType.TURN_DISCARDED, chars=len(answer))
                self.state.phase = ControllerPhase.AWAITING_ANSWER
                if self.state.capture_error is None:
                    await self._start_capture()
                else:
                    logger.info("Capture stays off until an explicit retry")
                return

            self._record_answer(answer)

            if self.state.current_question_index < len(self.questions):
                index = self.state.current_question_index
                spoken = f"{random_transition(self._rng)} {self.questions[index].question}"
                self._ask(index, spoken, timestamp=self._now_ms())
                await self.synthesis.speak(spoken)
                if self.state.is_finished:
                    return
                self.state.phase = ControllerPhase.AWAITING_ANSWER
                await self._start_capture()
            else:
                self.timeline.append(TranscriptEntry(
                    speaker=Speaker.INTERVIEWER,
                    message=CLOSING_STATEMENT,
                    timestamp=self._now_ms(),
                ))
                await self.synthesis.speak(CLOSING_STATEMENT)
                if self.state.is_finished:
                    return
                self.state.phase = ControllerPhase.FINISHED
                await self._complete("completed")
        finally:
            if self.state.phase is ControllerPhase.PROCESSING:
                self.state.phase = ControllerPhase.AWAITING_ANSWER

    async def leave(self) -> None:
        """End early: cancel speech and capture, then assess whatever was said."""
        if self.state.is_finished:
            logger.debug("leave() ignored: session already finished")
            return
        self.state.phase = ControllerPhase.FINISHED
        logger.info("Candidate left the session")
        await self.synthesis.cancel()
        await self.capture.cancel()
        await self._complete("left")

    async def retry_capture(self) -> None:
        """Explicit restart after a fatal capture error."""
        if self.state.phase is not ControllerPhase.AWAITING_ANSWER or self.capture.is_listening:
            logger.debug("retry_capture() ignored")
            return
        self.state.capture_error = None
        await self._start_capture()

    async def wait_finished(self) -> InterviewSession:
        await self._done.wait()
        return self.session

    # --------------------------------------------------------------- internals

    def _ask(self, index: int, spoken: str, timestamp: int) -> None:
        item = self.questions[index]
        question_id = item.id or f"q{index + 1}"
        self.timeline.append(TranscriptEntry(
            speaker=Speaker.INTERVIEWER,
            message=spoken,
            timestamp=timestamp,
            is_question=True,
            question_id=question_id,
        ))
        self.question_pairs.append(QuestionAnswerPair(
            question_id=question_id,
            question=item.question,
            expected_answer=item.answer,
            timestamp=timestamp,
        ))
        self.event_bus.emit(QuestionAskedEvent(self.session.session_id, timestamp, index,
                                               question_id, item.question))

    def _record_answer(self, answer: str) -> None:
        timestamp = self._now_ms()
        pair = self.question_pairs[-1]
        self.timeline.append(TranscriptEntry(
            speaker=Speaker.CANDIDATE,
            message=answer,
            timestamp=timestamp,
            question_id=pair.question_id,
        ))
        pair.candidate_answer = answer
        self.questions[self.state.current_question_index].candidate_answer = answer
        self.state.current_question_index += 1
        self.state.increment_turn()
        self.state.live_transcript = ""
        self.event_bus.emit(TurnRecordedEvent(self.session.session_id, timestamp,
                                              pair.question_id, answer))

    async def _start_capture(self) -> None:
        if self.state.phase is not ControllerPhase.AWAITING_ANSWER:
            return
        self.state.live_transcript = ""
        await self.capture.start_listening()
        if self.capture.is_listening:
            self.notify("🎧 Listening...")

    def _on_transcript(self, text: str) -> None:
        if self.state.phase is not ControllerPhase.FINISHED:
            self.state.live_transcript = text

    def _on_auto_stop(self) -> None:
        if self.state.phase is not ControllerPhase.AWAITING_ANSWER:
            return
        logger.info("Capture stopped itself; submitting")
        task = asyncio.get_running_loop().create_task(self.submit())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _on_capture_error(self, message: str) -> None:
        self.state.capture_error = message
        self.notify(f"❌ {CAPTURE_FAILED_NOTICE.format(reason=message)}")
        self._emit(EventType.CAPTURE_FAILED, reason=message)

    async def _complete(self, reason: str) -> None:
        """Stamp the session, assess it once, hand it to the store."""
        if self._completed:
            return
        self._completed = True
        try:
            self.state.set_termination(reason)
            self.session.transcript = list(self.timeline.all())
            self.session.question_pairs = list(self.question_pairs)
            self.session.finish(int(self._wall_clock() * 1000), reason)
            self.event_bus.emit(SessionFinishedEvent(self.session.session_id, self._now_ms(),
                                                     reason, self.state.turn_count))

            if self.timeline.is_empty():
                self.notify(f"⚠️  {EMPTY_TRANSCRIPT_NOTICE}")
                return

            if self.engine is not None:
                await self._assess()
            else:
                logger.info("No assessment engine configured; skipping assessment")

            if self.store is not None:
                self._save()
        finally:
            self._done.set()

    def _save(self) -> None:
        try:
            self.result_path = self.store.save(self.session)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Could not save session {self.session.session_id}: {e}")
            self.notify(f"❌ {SAVE_FAILED_NOTICE}")

    async def _assess(self) -> None:
        self.notify("🧮 Assessing your interview...")
        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(
                None, self.engine.score, self.profile, self.timeline.all(), list(self.question_pairs),
            )
        except AssessmentError as e:
            logger.error(f"Assessment failed: {e}")
            self.notify(f"❌ {ASSESSMENT_FAILED_NOTICE}")
            self._emit(EventType.ASSESSMENT_FAILED, error=str(e))
            return
        self.session.attach_assessment(result)
        self.event_bus.emit(AssessmentCompletedEvent(self.session.session_id, self._now_ms(),
                                                     result.overall_score, result.readiness_level.value))
