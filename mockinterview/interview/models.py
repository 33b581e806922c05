"""
Data models for the interview system.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, List, Any, TYPE_CHECKING

from ..config import InterviewerProfile

if TYPE_CHECKING:
    from .schemas import AssessmentResult


class Speaker(str, Enum):
    """Who produced a transcript entry."""
    INTERVIEWER = "interviewer"
    CANDIDATE = "candidate"


@dataclass(frozen=True)
class TranscriptEntry:
    """A single turn. Created once, never mutated."""
    speaker: Speaker
    message: str
    timestamp: int  # ms since session start
    is_question: bool = False
    question_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "speaker": self.speaker.value,
            "message": self.message,
            "timestamp": self.timestamp,
        }
        if self.is_question:
            data["isQuestion"] = True
        if self.question_id is not None:
            data["questionId"] = self.question_id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TranscriptEntry':
        return cls(
            speaker=Speaker(data["speaker"]),
            message=data["message"],
            timestamp=int(data["timestamp"]),
            is_question=bool(data.get("isQuestion", False)),
            question_id=data.get("questionId"),
        )


@dataclass
class QuestionItem:
    """A question from the question bank with its reference answer."""
    question: str
    answer: str = ""
    id: Optional[str] = None
    category: Optional[str] = None
    importance: Optional[str] = None
    candidate_answer: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], index: int = 0) -> 'QuestionItem':
        """Build from a question bank record. Missing ids become q1, q2, ..."""
        question = (data.get("question") or "").strip()
        if not question:
            raise ValueError(f"Question bank entry {index} has no question text")
        return cls(
            question=question,
            answer=data.get("answer") or data.get("expectedAnswer") or "",
            id=str(data.get("id") or f"q{index + 1}"),
            category=data.get("category"),
            importance=data.get("importance"),
        )


@dataclass
class QuestionAnswerPair:
    """Question, reference answer and what the candidate actually said."""
    question_id: str
    question: str
    expected_answer: str
    timestamp: int
    candidate_answer: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "questionId": self.question_id,
            "question": self.question,
            "expectedAnswer": self.expected_answer,
            "candidateAnswer": self.candidate_answer,
            "timestamp": self.timestamp,
        }


@dataclass
class InterviewSession:
    """One interview attempt, from first question to termination."""
    session_id: str
    start_time: int  # epoch ms
    interviewer: InterviewerProfile
    language: str = "en-US"
    transcript: List[TranscriptEntry] = field(default_factory=list)
    question_pairs: List[QuestionAnswerPair] = field(default_factory=list)
    end_time: Optional[int] = None
    duration: Optional[int] = None  # seconds
    termination_reason: Optional[str] = None
    assessment: Optional['AssessmentResult'] = None

    @property
    def questions_asked(self) -> int:
        return sum(1 for entry in self.transcript if entry.is_question)

    def finish(self, end_time: int, reason: str) -> None:
        """Stamp end time and duration. Only the first call counts."""
        if self.end_time is not None:
            return
        self.end_time = end_time
        self.duration = max(0, (end_time - self.start_time) // 1000)
        self.termination_reason = reason

    def attach_assessment(self, assessment: 'AssessmentResult') -> None:
        """Attach the assessment. A session is assessed at most once."""
        if self.assessment is not None:
            raise ValueError(f"Session {self.session_id} already has an assessment")
        self.assessment = assessment

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.session_id,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "duration": self.duration,
            "language": self.language,
            "terminationReason": self.termination_reason,
            "interviewer": self.interviewer.to_dict(),
            "transcript": [entry.to_dict() for entry in self.transcript],
            "questionsAsked": [pair.to_dict() for pair in self.question_pairs],
            "assessment": self.assessment.to_dict() if self.assessment else None,
        }
