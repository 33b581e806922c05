"""
Question bank loading. The bank is a JSON list of
``{"id", "question", "answer", "category", "importance"}`` records.
"""
import json
import logging
from typing import Any, Dict, List

from ...interview.models import QuestionItem

logger = logging.getLogger("question_bank")


DEFAULT_QUESTIONS: List[Dict[str, Any]] = [
    {
        "id": "q1",
        "question": "Can you walk me through a recent project you are proud of and your role in it?",
        "answer": "Describes a concrete project, their specific responsibilities, technical decisions, "
                  "obstacles met and measurable outcomes.",
        "category": "experience",
    },
    {
        "id": "q2",
        "question": "How would you design a URL shortening service that handles millions of requests a day?",
        "answer": "Covers hashing or ID generation, a key-value store, caching hot links, read-heavy scaling, "
                  "collision handling, analytics and rate limiting.",
        "category": "system-design",
    },
    {
        "id": "q3",
        "question": "Tell me about a time you disagreed with a teammate on a technical decision.",
        "answer": "Uses a situation-task-action-result structure, shows listening, data-driven discussion, "
                  "compromise and a constructive outcome.",
        "category": "behavioral",
    },
    {
        "id": "q4",
        "question": "What is the difference between a process and a thread?",
        "answer": "Processes have separate address spaces; threads share memory within a process, are cheaper "
                  "to create and switch, and need synchronization for shared state.",
        "category": "fundamentals",
    },
    {
        "id": "q5",
        "question": "How do you make sure the code you ship is reliable?",
        "answer": "Automated tests at several levels, code review, CI, monitoring and alerting, gradual rollouts "
                  "and post-incident reviews.",
        "category": "practices",
    },
]


def parse_question_bank(records: Any) -> List[QuestionItem]:
    """Validate raw records into QuestionItems."""
    if isinstance(records, dict):
        records = records.get("questions", [])
    if not isinstance(records, list) or not records:
        raise ValueError("Question bank must be a non-empty list of questions")
    return [QuestionItem.from_dict(record, index) for index, record in enumerate(records)]


def load_question_bank(path: str) -> List[QuestionItem]:
    """Load questions from a JSON file."""
    with open(path, 'r', encoding='utf-8') as f:
        records = json.load(f)
    questions = parse_question_bank(records)
    logger.info(f"Loaded {len(questions)} questions from {path}")
    return questions


def default_questions() -> List[QuestionItem]:
    return parse_question_bank(DEFAULT_QUESTIONS)
