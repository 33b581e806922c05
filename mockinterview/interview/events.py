"""
Event-driven notifications for the interview controller.
"""
import logging
from typing import Dict, Any, List, Callable, Optional
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger("events")


class EventType(str, Enum):
    """Types of interview events."""
    SESSION_STARTED = "session_started"
    QUESTION_ASKED = "question_asked"
    TURN_RECORDED = "turn_recorded"
    TURN_DISCARDED = "turn_discarded"
    SUBMISSION_DROPPED = "submission_dropped"
    CAPTURE_FAILED = "capture_failed"
    SESSION_FINISHED = "session_finished"
    ASSESSMENT_COMPLETED = "assessment_completed"
    ASSESSMENT_FAILED = "assessment_failed"


@dataclass
class InterviewEvent:
    """Base class for all interview events."""
    event_type: EventType
    session_id: str
    timestamp: int  # ms since session start
    data: Dict[str, Any] = field(default_factory=dict)


class QuestionAskedEvent(InterviewEvent):
    """Event fired when the interviewer asks a question."""
    def __init__(self, session_id: str, timestamp: int, index: int, question_id: str, text: str):
        super().__init__(
            event_type=EventType.QUESTION_ASKED,
            session_id=session_id,
            timestamp=timestamp,
            data={"index": index, "question_id": question_id, "text": text},
        )


class TurnRecordedEvent(InterviewEvent):
    """Event fired when a candidate answer is accepted."""
    def __init__(self, session_id: str, timestamp: int, question_id: str, answer: str):
        super().__init__(
            event_type=EventType.TURN_RECORDED,
            session_id=session_id,
            timestamp=timestamp,
            data={"question_id": question_id, "chars": len(answer)},
        )


class SessionFinishedEvent(InterviewEvent):
    """Event fired once the session reaches its terminal phase."""
    def __init__(self, session_id: str, timestamp: int, reason: str, turn_count: int):
        super().__init__(
            event_type=EventType.SESSION_FINISHED,
            session_id=session_id,
            timestamp=timestamp,
            data={"reason": reason, "turn_count": turn_count},
        )


class AssessmentCompletedEvent(InterviewEvent):
    """Event fired when the assessment was attached to the session."""
    def __init__(self, session_id: str, timestamp: int, overall_score: float, readiness: str):
        super().__init__(
            event_type=EventType.ASSESSMENT_COMPLETED,
            session_id=session_id,
            timestamp=timestamp,
            data={"overall_score": overall_score, "readiness": readiness},
        )


EventHandler = Callable[[InterviewEvent], None]


class InterviewEventBus:
    """Event bus for interview system communication."""

    def __init__(self):
        self._handlers: Dict[EventType, List[EventHandler]] = {}
        self._global_handlers: List[EventHandler] = []

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """Subscribe to a specific event type."""
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(f"Subscribed handler to {event_type.value}")

    def subscribe_all(self, handler: EventHandler) -> None:
        """Subscribe to all events."""
        self._global_handlers.append(handler)

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        try:
            self._handlers.get(event_type, []).remove(handler)
        except ValueError:
            logger.warning(f"Handler not found for {event_type.value}")

    def emit(self, event: InterviewEvent) -> None:
        """
        Emit an event to all subscribers.

        Handler failures are logged and never reach the emitter.
        """
        logger.debug(f"Emitting {event.event_type.value} for session {event.session_id}")
        for handler in self._handlers.get(event.event_type, []) + self._global_handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in event handler for {event.event_type.value}: {e}")

    def emit_simple(self, event_type: EventType, session_id: str, timestamp: int,
                    **data: Any) -> None:
        """Emit an event that needs no dedicated class."""
        self.emit(InterviewEvent(event_type, session_id, timestamp, dict(data)))


class EventLogger:
    """Logs all events for debugging and analysis."""

    def __init__(self, log_level: int = logging.INFO):
        self.logger = logging.getLogger("event_logger")
        self.log_level = log_level

    def handle_event(self, event: InterviewEvent) -> None:
        self.logger.log(self.log_level, f"Event: {event.event_type.value} | Session: {event.session_id} "
                                        f"| t={event.timestamp}ms | Data: {event.data}")


class InterviewMetrics:
    """Counts interview events per type."""

    def __init__(self):
        self.counts: Dict[EventType, int] = {event_type: 0 for event_type in EventType}
        self.last_overall_score: Optional[float] = None

    def handle_event(self, event: InterviewEvent) -> None:
        self.counts[event.event_type] += 1
        if event.event_type is EventType.ASSESSMENT_COMPLETED:
            self.last_overall_score = event.data.get("overall_score")

    def get_metrics(self) -> Dict[str, Any]:
        """Get current metrics snapshot."""
        metrics: Dict[str, Any] = {event_type.value: count for event_type, count in self.counts.items()}
        metrics["last_overall_score"] = self.last_overall_score
        return metrics

    def reset(self) -> None:
        self.__init__()
