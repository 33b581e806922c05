"""
Assessment scoring engine: persona-weighted categories, per-question grading,
engagement override and readiness classification.

The semantic judgment (how good is this answer, how well did the candidate
communicate) comes from the reasoning collaborator. Everything numeric that
follows from those judgments is computed here.
"""
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from ..config import (
    InterviewerProfile, MIN_VALID_ANSWER_CHARS, ENGAGEMENT_THRESHOLD,
    ENGAGEMENT_SCORE_CEILING, ASSESSMENT_TEMPERATURE, MAX_OUTPUT_TOKENS,
)
from .models import Speaker, TranscriptEntry, QuestionAnswerPair
from .prompts import AssessmentPrompts
from .schemas import (
    AssessmentError, AssessmentResult, CategoryScores, CollaboratorAssessment,
    QuestionGrade, ReadinessLevel, ScoreBand, SkillRadarPoint, CATEGORY_KEYS,
    clamp_score, parse_assessment_response,
)

logger = logging.getLogger("scoring")


class Persona(str, Enum):
    HR = "hr-behavioral"
    TECH_LEAD = "technical-lead"
    ENGINEERING_MANAGER = "engineering-manager"
    PRODUCT_MANAGER = "product-manager"
    DATA_SCIENTIST = "data-scientist"
    DEFAULT = "default-technical"


@dataclass(frozen=True)
class CategoryWeights:
    """Percentage weight per category. Always sums to 100."""
    technical_skills: int
    problem_solving: int
    communication: int
    experience: int
    professionalism: int

    def __post_init__(self):
        if self.total != 100:
            raise ValueError(f"Category weights must sum to 100, got {self.total}")

    @property
    def total(self) -> int:
        return (self.technical_skills + self.problem_solving + self.communication
                + self.experience + self.professionalism)

    def as_dict(self) -> Dict[str, int]:
        return dict(zip(CATEGORY_KEYS, (
            self.technical_skills, self.problem_solving, self.communication,
            self.experience, self.professionalism,
        )))


PERSONA_WEIGHTS: Dict[Persona, CategoryWeights] = {
    Persona.HR: CategoryWeights(10, 15, 30, 15, 30),
    Persona.TECH_LEAD: CategoryWeights(25, 20, 20, 20, 15),
    Persona.ENGINEERING_MANAGER: CategoryWeights(15, 20, 25, 20, 20),
    Persona.PRODUCT_MANAGER: CategoryWeights(10, 30, 25, 20, 15),
    Persona.DATA_SCIENTIST: CategoryWeights(30, 30, 15, 15, 10),
    Persona.DEFAULT: CategoryWeights(25, 25, 20, 15, 15),
}

# First match wins
_PERSONA_RULES: Tuple[Tuple[Persona, Tuple[str, ...]], ...] = (
    (Persona.HR, (r"\bhr\b", r"human resources", r"recruit", r"talent", r"behavioral")),
    (Persona.ENGINEERING_MANAGER, (r"engineering manager", r"management")),
    (Persona.PRODUCT_MANAGER, (r"product",)),
    (Persona.DATA_SCIENTIST, (r"data scien", r"machine learning", r"analytics")),
    (Persona.TECH_LEAD, (r"tech lead", r"technical lead", r"team lead", r"leadership")),
)

RADAR_NAMES = {
    "technicalSkills": "Technical Skills",
    "problemSolving": "Problem-Solving",
    "communication": "Communication",
    "experience": "Experience",
    "professionalism": "Professionalism",
}

_READINESS_THRESHOLDS = (
    (85.0, ReadinessLevel.STRONG_HIRE),
    (70.0, ReadinessLevel.HIRE),
    (55.0, ReadinessLevel.MAYBE),
    (40.0, ReadinessLevel.WEAK_MAYBE),
)

_BANDS = (
    (90.0, ScoreBand.EXCEEDS),
    (75.0, ScoreBand.CORRECT),
    (60.0, ScoreBand.MOSTLY_CORRECT),
    (40.0, ScoreBand.PARTIAL),
)


def select_persona(profile: InterviewerProfile) -> Persona:
    """Map the interviewer's title, expertise and style onto a scoring persona."""
    haystack = " ".join((profile.title, profile.expertise, profile.interview_style)).lower()
    for persona, patterns in _PERSONA_RULES:
        if any(re.search(pattern, haystack) for pattern in patterns):
            return persona
    return Persona.DEFAULT


def weights_for(profile: InterviewerProfile) -> CategoryWeights:
    return PERSONA_WEIGHTS[select_persona(profile)]


def is_valid_answer(answer: Optional[str]) -> bool:
    return bool(answer) and len(answer.strip()) >= MIN_VALID_ANSWER_CHARS


def band_for(score: float) -> ScoreBand:
    for floor, band in _BANDS:
        if score >= floor:
            return band
    return ScoreBand.WRONG


def grade_answer(question_id: str, candidate_answer: Optional[str],
                 collaborator_score: Any, rationale: str = "") -> QuestionGrade:
    """Grade one answer. Missing or too-short answers score 0 whatever the collaborator said."""
    if not is_valid_answer(candidate_answer):
        return QuestionGrade(question_id=question_id, score=0, band=ScoreBand.NO_ANSWER,
                             rationale="No answer given")
    score = clamp_score(collaborator_score)
    return QuestionGrade(question_id=question_id, score=score, band=band_for(score),
                         rationale=rationale)


def readiness_for(score: float) -> ReadinessLevel:
    for floor, level in _READINESS_THRESHOLDS:
        if score >= floor:
            return level
    return ReadinessLevel.NO_HIRE


def weighted_overall(scores: CategoryScores, weights: CategoryWeights) -> float:
    by_key = scores.as_dict()
    total = sum(by_key[key].score * weight / 100 for key, weight in weights.as_dict().items())
    return round(max(0.0, min(100.0, total)), 1)


def apply_engagement_override(overall: float, valid_answers: int, total_questions: int) -> float:
    """Cap the overall score when fewer than half of the questions were answered."""
    if total_questions <= 0:
        return overall
    if valid_answers / total_questions < ENGAGEMENT_THRESHOLD:
        return min(overall, ENGAGEMENT_SCORE_CEILING)
    return overall


def derive_question_pairs(transcript: Sequence[TranscriptEntry]) -> List[QuestionAnswerPair]:
    """Pair each question with the candidate entry that follows it (if any)."""
    pairs: List[QuestionAnswerPair] = []
    current: Optional[QuestionAnswerPair] = None
    for entry in transcript:
        if entry.is_question:
            current = QuestionAnswerPair(
                question_id=entry.question_id or f"q{len(pairs) + 1}",
                question=entry.message,
                expected_answer="",
                timestamp=entry.timestamp,
            )
            pairs.append(current)
        elif entry.speaker is Speaker.CANDIDATE and current is not None and current.candidate_answer is None:
            current.candidate_answer = entry.message
    return pairs


def _radar_key(name: str) -> str:
    return re.sub(r"[^a-z]", "", name.lower())


class AssessmentEngine:
    """Turns a finished transcript into an AssessmentResult."""

    def __init__(self, llm_client, temperature: float = ASSESSMENT_TEMPERATURE,
                 max_output_tokens: int = MAX_OUTPUT_TOKENS):
        self.llm_client = llm_client
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens

    def score(self, profile: InterviewerProfile, transcript: Sequence[TranscriptEntry],
              question_pairs: Optional[Sequence[QuestionAnswerPair]] = None) -> AssessmentResult:
        """
        Assess a transcript.

        Args:
            profile: Interviewer conducting the session (selects the persona)
            transcript: Every entry of the session, in order
            question_pairs: Question/expected/actual triples; derived from the
                transcript when omitted

        Returns:
            AssessmentResult

        Raises:
            AssessmentError: empty transcript, collaborator failure or malformed response
        """
        transcript = list(transcript)
        if not transcript:
            raise AssessmentError("Transcript is empty")
        pairs = list(question_pairs) if question_pairs is not None else derive_question_pairs(transcript)
        persona = select_persona(profile)
        weights = PERSONA_WEIGHTS[persona]

        prompt = AssessmentPrompts.assessment_prompt(
            profile=profile,
            persona=persona.value,
            weights=weights.as_dict(),
            transcript=transcript,
            duration_seconds=transcript[-1].timestamp // 1000,
            question_pairs=pairs,
        )
        logger.info(f"Requesting assessment ({persona.value}, {len(transcript)} entries, {len(pairs)} questions)")

        try:
            raw = self.llm_client.generate_json(prompt, temperature=self.temperature,
                                                max_output_tokens=self.max_output_tokens)
        except Exception as e:
            raise AssessmentError(f"Assessment collaborator failed: {e}") from e

        try:
            collaborator = parse_assessment_response(raw)
        except ValidationError as e:
            raise AssessmentError(f"Malformed assessment response: {e}") from e

        return self.finalize(persona, transcript, pairs, collaborator)

    def finalize(self, persona: Persona, transcript: Sequence[TranscriptEntry],
                 pairs: Sequence[QuestionAnswerPair],
                 collaborator: CollaboratorAssessment) -> AssessmentResult:
        """Apply grading rules, weights, override and readiness to the collaborator's judgments."""
        weights = PERSONA_WEIGHTS[persona]
        grades = self._grade_questions(pairs, collaborator.question_grades)

        total_questions = sum(1 for e in transcript if e.is_question) or len(pairs)
        valid_answers = sum(1 for pair in pairs if is_valid_answer(pair.candidate_answer))

        weighted = weighted_overall(collaborator.category_scores, weights)
        overall = apply_engagement_override(weighted, valid_answers, total_questions)
        if overall != weighted:
            logger.info(f"Engagement override: {valid_answers}/{total_questions} valid answers, "
                        f"overall {weighted} -> {overall}")
        readiness = readiness_for(overall)
        logger.info(f"Assessment: overall={overall} readiness={readiness.value}")

        return AssessmentResult(
            category_scores=collaborator.category_scores,
            overall_score=overall,
            readiness_level=readiness,
            strengths=collaborator.strengths,
            weaknesses=collaborator.weaknesses,
            detailed_feedback=collaborator.detailed_feedback,
            improvement_areas=collaborator.improvement_areas,
            interview_summary=collaborator.interview_summary,
            recommended_actions=collaborator.recommended_actions,
            skills_radar=self._sync_radar(collaborator),
            question_grades=grades,
        )

    def _grade_questions(self, pairs: Sequence[QuestionAnswerPair],
                         raw_grades: List[Dict[str, Any]]) -> List[QuestionGrade]:
        by_id = {str(g.get("questionId") or g.get("question_id")): g for g in raw_grades if isinstance(g, dict)}
        grades = []
        for index, pair in enumerate(pairs):
            raw = by_id.get(pair.question_id)
            if raw is None and index < len(raw_grades) and isinstance(raw_grades[index], dict):
                raw = raw_grades[index]
            if raw is None and is_valid_answer(pair.candidate_answer):
                logger.warning(f"No grade returned for question {pair.question_id}")
                continue
            raw = raw or {}
            try:
                grades.append(grade_answer(pair.question_id, pair.candidate_answer,
                                           raw.get("score", 0), str(raw.get("rationale", ""))))
            except ValueError as e:
                logger.warning(f"Unusable grade for question {pair.question_id}: {e}")
        return grades

    def _sync_radar(self, collaborator: CollaboratorAssessment) -> List[SkillRadarPoint]:
        """Radar scores always mirror the category scores; descriptions come from the collaborator."""
        descriptions = {_radar_key(p.name): p.description for p in collaborator.skills_radar}
        radar = []
        for key, category in collaborator.category_scores.as_dict().items():
            name = RADAR_NAMES[key]
            radar.append(SkillRadarPoint(
                name=name,
                score=category.score,
                max_score=100,
                description=descriptions.get(_radar_key(name), ""),
            ))
        return radar
