"""Interview system components.

This module contains the business logic of a mock interview session: speech
capture, turn-taking, the transcript timeline and assessment scoring.
"""

# Turn-taking controller
from .controller import InterviewController

# Data models
from .models import Speaker, TranscriptEntry, QuestionItem, QuestionAnswerPair, InterviewSession

# Structured schemas and state management
from .schemas import (
    AssessmentError, AssessmentResult, CategoryScore, CategoryScores,
    ControllerPhase, InterviewState, ReadinessLevel, ScoreBand,
    parse_assessment_response,
)

from .timeline import TranscriptTimeline

# Speech capture
from .capture import (
    SpeechCapture, LocalSpeechCapture, StreamingSpeechCapture,
    CaptureStateMachine, CaptureState, CaptureStatus, ErrorKind,
    classify_recognizer_error,
)

# Service classes
from .services import SpeechSynthesisService

# Scoring
from .scoring import AssessmentEngine, CategoryWeights, Persona, PERSONA_WEIGHTS, select_persona

# Event system
from .events import InterviewEventBus, EventLogger, InterviewMetrics, EventType, InterviewEvent

__all__ = [
    "InterviewController",
    "Speaker", "TranscriptEntry", "QuestionItem", "QuestionAnswerPair", "InterviewSession",
    "AssessmentError", "AssessmentResult", "CategoryScore", "CategoryScores",
    "ControllerPhase", "InterviewState", "ReadinessLevel", "ScoreBand",
    "parse_assessment_response",
    "TranscriptTimeline",
    "SpeechCapture", "LocalSpeechCapture", "StreamingSpeechCapture",
    "CaptureStateMachine", "CaptureState", "CaptureStatus", "ErrorKind",
    "classify_recognizer_error",
    "SpeechSynthesisService",
    "AssessmentEngine", "CategoryWeights", "Persona", "PERSONA_WEIGHTS", "select_persona",
    "InterviewEventBus", "EventLogger", "InterviewMetrics", "EventType", "InterviewEvent",
]
