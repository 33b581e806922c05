"""
Interview prompt templates and fixed interviewer lines.

This module contains the assessment prompt sent to the reasoning collaborator
and the spoken/printed lines used by the controller, keeping them separate
from the business logic for easier maintenance and editing.
"""

import json
import random
from typing import Dict, Any, List, Optional, Sequence

from ..config import InterviewerProfile
from .models import Speaker, TranscriptEntry, QuestionAnswerPair


TRANSITION_PHRASES = (
    "Thank you for your insight. Let's move on to our next question.",
    "I appreciate your detailed response. Now, could you tell me...",
    "Thanks for sharing that. I'd like to ask you another question.",
    "Your answer is much appreciated. Now, let's discuss...",
    "Thank you for that explanation. May we explore another aspect?",
    "I value your perspective. Let's transition to another topic.",
    "That was very helpful, thank you. Next, I'd like to ask...",
    "Thanks for your input. Let's proceed to the next question.",
    "I appreciate your thoughts. Now, can you elaborate on...",
    "Thank you for sharing your experience. Moving forward, could you...",
    "Great answer. Now, let's shift focus to another area.",
    "Thanks for that insight. Can we discuss another point?",
    "I appreciate your explanation. Let's now consider a different perspective.",
    "Thank you for your response. Next, I'd like to delve into...",
    "Your response was very informative. Let's move on to the next topic.",
    "I appreciate your answer. Now, can you tell me more about...",
    "Thanks for clarifying that. Let's now explore another question.",
    "Thank you for sharing your thoughts. Next, could you expand on...",
    "I value your input. Let's transition to discussing another aspect.",
    "Great, thanks for your answer. Now, let's take a look at another question.",
)

CLOSING_STATEMENT = "Thank you for your time. That concludes our interview. We'll be in touch soon!"

EMPTY_TRANSCRIPT_NOTICE = "Nothing to assess: the interview ended before anything was said."
ASSESSMENT_FAILED_NOTICE = "The assessment could not be generated. Your session was saved without it."
CAPTURE_FAILED_NOTICE = "Microphone capture stopped ({reason}). Press 'r' to try again."
SAVE_FAILED_NOTICE = "The session could not be saved. Check that the sessions directory is writable."


def random_transition(rng: Optional[random.Random] = None) -> str:
    """Pick a transition phrase uniformly at random."""
    return (rng or random).choice(TRANSITION_PHRASES)


def format_transcript(transcript: Sequence[TranscriptEntry], interviewer_name: str) -> str:
    """``[Ns] Speaker: message`` lines, one blank line apart."""
    lines = []
    for entry in transcript:
        speaker = interviewer_name if entry.speaker is Speaker.INTERVIEWER else "Candidate"
        lines.append(f"[{entry.timestamp // 1000}s] {speaker}: {entry.message}")
    return "\n\n".join(lines)


class AssessmentPrompts:
    """Collection of assessment prompts."""

    CATEGORY_GUIDES = """
#### 1. Technical Skills (technicalSkills, 0-100)
Accuracy and depth of technical answers, awareness of best practices, correct terminology.
- 90-100: Expert, deep understanding and accurate terminology
- 75-89: Advanced, strong and mostly accurate
- 60-74: Intermediate, basic understanding with gaps
- 40-59: Beginner, superficial and missing key concepts
- 0-39: Weak, incorrect or very incomplete

#### 2. Problem-Solving & Analytical Thinking (problemSolving, 0-100)
Structured approach, decomposition, trade-off analysis, alternatives considered.
- 90-100: Systematic, multiple angles, thorough trade-offs
- 75-89: Good structure, considers alternatives
- 60-74: Basic approach, some analysis
- 40-59: Unstructured, limited depth
- 0-39: No clear methodology

#### 3. Communication Skills (communication, 0-100)
Clarity, structure, conciseness, relevance, concrete examples.
- 90-100: Crystal clear and well organized
- 75-89: Clear and easy to follow
- 60-74: Understandable, somewhat organized
- 40-59: Unclear, lacks structure
- 0-39: Confusing, hard to follow

#### 4. Experience & Practical Knowledge (experience, 0-100)
Real-world examples, specific details, measurable results, implementation challenges.
- 90-100: Specific examples with measurable impact
- 75-89: Good examples with clear context
- 60-74: Basic examples, limited detail
- 40-59: Vague, mostly theoretical
- 0-39: No examples

#### 5. Professionalism & Soft Skills (professionalism, 0-100)
Enthusiasm, teamwork, adaptability, growth mindset, respectful attitude.
- 90-100: Highly professional and growth-focused
- 75-89: Professional and collaborative
- 60-74: Adequate
- 40-59: Some attitude concerns
- 0-39: Unprofessional
""".strip()

    QUESTION_BANDS = """
Grade every question in "questionGrades" by comparing the candidate's answer with the expected answer:
- 90-100: matches or exceeds the expected answer with added insight
- 75-89: correct and detailed
- 60-74: mostly correct, limited depth
- 40-59: partially correct, missing key points
- 0-39: wrong or irrelevant
An answer that is missing or shorter than 20 characters scores 0.
""".strip()

    @staticmethod
    def _output_shape() -> Dict[str, Any]:
        category = {"score": 0, "justification": "<evidence from the transcript>"}
        return {
            "categoryScores": {
                "technicalSkills": category,
                "problemSolving": category,
                "communication": category,
                "experience": category,
                "professionalism": category,
            },
            "strengths": ["<strength>"],
            "weaknesses": ["<weakness>"],
            "detailedFeedback": [{
                "category": "Technical Skills",
                "rating": "Excellent|Strong|Good|Fair|Needs Improvement",
                "comment": "<comment>",
            }],
            "improvementAreas": [{
                "area": "<area>",
                "suggestion": "<concrete suggestion>",
                "priority": "High|Medium|Low",
            }],
            "interviewSummary": "<narrative summary>",
            "recommendedActions": ["<next step>"],
            "skillsRadar": [{
                "name": "Technical Skills",
                "score": 0,
                "maxScore": 100,
                "description": "<short description>",
            }],
            "questionGrades": [{"questionId": "q1", "score": 0, "rationale": "<why>"}],
        }

    @staticmethod
    def assessment_prompt(
        profile: InterviewerProfile,
        persona: str,
        weights: Dict[str, int],
        transcript: Sequence[TranscriptEntry],
        duration_seconds: int,
        question_pairs: List[QuestionAnswerPair],
    ) -> str:
        """Full-transcript assessment prompt."""
        triples = [
            {
                "questionId": pair.question_id,
                "question": pair.question,
                "expectedAnswer": pair.expected_answer,
                "candidateAnswer": pair.candidate_answer or "",
            }
            for pair in question_pairs
        ]
        weight_formula = " + ".join(f"({key} * {value / 100:.2f})" for key, value in weights.items())
        focus_areas = ", ".join(profile.focus_areas) or "General"

        return f"""
You are an expert interviewer conducting a comprehensive performance assessment.

## Interview Context

**Interviewer Profile:**
- Name: {profile.name}
- Role: {profile.title}
- Expertise: {profile.expertise}
- Years of Experience: {profile.years_of_experience}
- Focus Areas: {focus_areas}
- Interview Style: {profile.interview_style}
- Scoring persona: {persona}

**Interview Details:**
- Duration: {duration_seconds // 60} minutes
- Total Exchanges: {len(transcript)}

## Complete Interview Transcript

{format_transcript(transcript, profile.name)}

## Questions With Expected Answers

{json.dumps(triples, ensure_ascii=False, indent=2)}

---

## Your Assessment Task

Analyze the entire transcript and give an objective assessment based only on what the candidate actually said.

### Scoring Criteria (each category 0-100)

{AssessmentPrompts.CATEGORY_GUIDES}

### Per-question grading

{AssessmentPrompts.QUESTION_BANDS}

### Required Output Format

Return ONLY valid JSON with this exact structure (five entries each in detailedFeedback and skillsRadar, one entry per question in questionGrades):

{json.dumps(AssessmentPrompts._output_shape(), indent=2)}

### Critical Requirements:
1. Base every score on transcript evidence and reference actual statements
2. Balance strengths and areas for improvement
3. Give concrete, actionable suggestions
4. Consider the interviewer's focus areas ({focus_areas})
5. A candidate who did not answer cannot score well on any category

The overall score will be computed as: {weight_formula}

Now analyze the interview and return the assessment JSON:
        """.strip()
