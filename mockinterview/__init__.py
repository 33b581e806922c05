"""
mockinterview: spoken mock interview sessions with persona-weighted assessment.

Asks a candidate a sequence of questions, captures spoken answers as text,
speaks the interviewer's turns and assesses the finished transcript.
"""

__version__ = "1.0.0"

# Main entry points
from .interview.controller import InterviewController
from .interview.models import InterviewSession, TranscriptEntry
from .interview.scoring import AssessmentEngine

__all__ = ["InterviewController", "InterviewSession", "TranscriptEntry", "AssessmentEngine"]
