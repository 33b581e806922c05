"""
Structured data models and schemas for the interview system.
"""
from dataclasses import dataclass
from typing import Optional, Dict, Any, List, Literal
from enum import Enum
import re

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..infrastructure.llm.client import extract_json_object


class AssessmentError(Exception):
    """The assessment could not be produced (collaborator, transport or shape failure)."""


class ControllerPhase(str, Enum):
    """Turn-taking phases of a session."""
    NOT_STARTED = "not-started"
    AWAITING_ANSWER = "awaiting-answer"
    PROCESSING = "processing"
    FINISHED = "finished"


class ReadinessLevel(str, Enum):
    """Ordered hiring recommendation."""
    NO_HIRE = "No Hire"
    WEAK_MAYBE = "Weak Maybe"
    MAYBE = "Maybe"
    HIRE = "Hire"
    STRONG_HIRE = "Strong Hire"

    @property
    def rank(self) -> int:
        return list(ReadinessLevel).index(self)


class ScoreBand(str, Enum):
    """Per-question grading bands."""
    NO_ANSWER = "no-answer"
    WRONG = "wrong"                    # 0-39
    PARTIAL = "partial"                # 40-59
    MOSTLY_CORRECT = "mostly-correct"  # 60-74
    CORRECT = "correct"                # 75-89
    EXCEEDS = "exceeds"                # 90-100


CATEGORY_KEYS = (
    "technicalSkills",
    "problemSolving",
    "communication",
    "experience",
    "professionalism",
)


def clamp_score(value: Any) -> float:
    """Coerce a collaborator score into 0-100."""
    try:
        score = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Score is not a number: {value!r}")
    if score != score:  # NaN
        raise ValueError("Score is NaN")
    return max(0.0, min(100.0, score))


class _Schema(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class CategoryScore(_Schema):
    score: float
    justification: str = ""

    @field_validator("score", mode="before")
    @classmethod
    def _clamp(cls, value):
        return clamp_score(value)


class CategoryScores(_Schema):
    technical_skills: CategoryScore
    problem_solving: CategoryScore
    communication: CategoryScore
    experience: CategoryScore
    professionalism: CategoryScore

    def as_dict(self) -> Dict[str, CategoryScore]:
        """Category scores keyed by their camelCase name."""
        return {
            "technicalSkills": self.technical_skills,
            "problemSolving": self.problem_solving,
            "communication": self.communication,
            "experience": self.experience,
            "professionalism": self.professionalism,
        }


class DetailedFeedback(_Schema):
    category: str
    rating: Literal["Excellent", "Strong", "Good", "Fair", "Needs Improvement"]
    comment: str = ""


class ImprovementArea(_Schema):
    area: str
    suggestion: str = ""
    priority: Literal["High", "Medium", "Low"] = "Medium"


class SkillRadarPoint(_Schema):
    name: str
    score: float
    max_score: float = 100
    description: str = ""

    @field_validator("score", mode="before")
    @classmethod
    def _clamp(cls, value):
        return clamp_score(value)


class QuestionGrade(_Schema):
    question_id: str
    score: float
    band: ScoreBand
    rationale: str = ""

    @field_validator("score", mode="before")
    @classmethod
    def _clamp(cls, value):
        return clamp_score(value)


class AssessmentResult(_Schema):
    """Final structured assessment. Replace-only: build a new one, never patch."""
    category_scores: CategoryScores = Field(alias="scores")
    overall_score: float = Field(ge=0, le=100)
    readiness_level: ReadinessLevel
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    detailed_feedback: List[DetailedFeedback] = Field(default_factory=list)
    improvement_areas: List[ImprovementArea] = Field(default_factory=list)
    interview_summary: str = ""
    recommended_actions: List[str] = Field(default_factory=list)
    skills_radar: List[SkillRadarPoint] = Field(default_factory=list)
    question_grades: List[QuestionGrade] = Field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class CollaboratorAssessment(_Schema):
    """What the reasoning collaborator must return. Scores are raw judgments."""
    category_scores: CategoryScores
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    detailed_feedback: List[DetailedFeedback] = Field(default_factory=list)
    improvement_areas: List[ImprovementArea] = Field(default_factory=list)
    interview_summary: str = ""
    recommended_actions: List[str] = Field(default_factory=list)
    skills_radar: List[SkillRadarPoint] = Field(default_factory=list)
    question_grades: List[Dict[str, Any]] = Field(default_factory=list)


@dataclass
class InterviewState:
    """Manages controller state throughout the conversation."""
    phase: ControllerPhase = ControllerPhase.NOT_STARTED
    current_question_index: int = 0
    live_transcript: str = ""
    termination_reason: Optional[str] = None
    capture_error: Optional[str] = None
    turn_count: int = 0

    @property
    def is_finished(self) -> bool:
        return self.phase is ControllerPhase.FINISHED

    def set_termination(self, reason: str):
        """Set termination reason (first one wins)."""
        if self.termination_reason is None:
            self.termination_reason = reason

    def increment_turn(self):
        """Increment accepted candidate turn counter."""
        self.turn_count += 1


_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_assessment_response(raw: Any) -> CollaboratorAssessment:
    """
    Parse the collaborator's answer into a validated assessment shape.

    Args:
        raw: dict already decoded by the client, or raw text (possibly fenced)

    Returns:
        CollaboratorAssessment

    Raises:
        AssessmentError: If the response is not JSON or has the wrong shape
    """
    if isinstance(raw, dict):
        data = raw
    else:
        text = _FENCE_RE.sub("", str(raw or "").strip())
        try:
            data = extract_json_object(text)
        except ValueError as e:
            raise AssessmentError(f"Unusable assessment response: {e}") from e

    if not isinstance(data, dict):
        raise AssessmentError(f"Assessment response is not an object: {type(data).__name__}")
    if "categoryScores" not in data and "category_scores" not in data:
        if "scores" not in data:
            raise AssessmentError("Assessment response is missing categoryScores")
        data = {**data, "categoryScores": data["scores"]}
    return CollaboratorAssessment.model_validate(data)
