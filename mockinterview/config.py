"""
Mock Interview Configuration System
===================================

This file contains ALL configuration for the mock interview engine.
- User settings at the top (things users might want to change)
- Interviewer profiles in the middle
- Internal constants at the bottom (technical defaults)
"""
import os
from dataclasses import dataclass, fields
from typing import Optional, Tuple, Dict, Any


# =============================================================================
# USER SETTINGS - Edit these to customize the interview
# =============================================================================

# REQUIRED: Set your Google Cloud project (Vertex AI assessment + Speech APIs)
GOOGLE_CLOUD_PROJECT = "your-project-id"  # Change this!
GOOGLE_APPLICATION_CREDENTIALS = None  # Optional: path to credentials JSON

# Capture backend: "streaming" (network streaming recognizer) or "local"
CAPTURE_BACKEND = "streaming"
LANGUAGE_CODE = "en-US"

# Speech settings
ENABLE_TTS = True
SPEAKER_VOLUME = 0.8

# Session settings
WORKDIR = "./_sessions"
QUESTIONS_FILE = None  # Optional: path to a question bank JSON file
INTERVIEWER_PRESET = "senior-engineer"

# Logging
LOG_FILE = "./_sessions/interview.log"
LOG_LEVEL = "INFO"


# =============================================================================
# INTERVIEWER PROFILES
# =============================================================================

@dataclass(frozen=True)
class InterviewerProfile:
    """Who is conducting the interview. Fixed for the whole session."""
    name: str = "Alex Nguyen"
    title: str = "Senior Software Engineer"
    gender: str = "male"
    age: int = 34
    voice_tone: str = "calm-technical"
    expertise: str = "Backend Development"
    years_of_experience: int = 10
    interview_style: str = "technical-deep-dive"
    personality: str = "Analytical, patient and detail-oriented"
    focus_areas: Tuple[str, ...] = ("System Design", "APIs", "Databases")
    question_types: Tuple[str, ...] = ("scenario-based", "architecture-design")

    @classmethod
    def from_preset(cls, preset_name: str) -> 'InterviewerProfile':
        """Create an interviewer from a preset."""
        presets = {
            "senior-engineer": cls(),
            "tech-lead": cls(
                name="Minh Tran", title="Technical Lead", age=38,
                voice_tone="mature-confident", expertise="Full-stack Architecture",
                years_of_experience=14, interview_style="leadership-focused",
                personality="Direct, pragmatic and mentoring",
                focus_areas=("Code Review", "Technical Decisions", "Mentoring"),
                question_types=("leadership-scenarios", "technical-decisions"),
            ),
            "hr-manager": cls(
                name="Linh Pham", title="HR Manager", gender="female", age=32,
                voice_tone="warm-professional", expertise="Talent Acquisition",
                years_of_experience=8, interview_style="behavioral-soft-skills",
                personality="Empathetic, encouraging and attentive",
                focus_areas=("Culture Fit", "Teamwork", "Communication"),
                question_types=("behavioral-questions", "company-culture-fit"),
            ),
            "product-manager": cls(
                name="Sarah Kim", title="Product Manager", gender="female", age=35,
                voice_tone="mature-dynamic", expertise="Product Strategy",
                years_of_experience=10, interview_style="product-thinking",
                personality="Curious, strategic and user-focused",
                focus_areas=("User Needs", "Prioritization", "Metrics"),
                question_types=("product-design", "prioritization-scenarios"),
            ),
            "data-scientist": cls(
                name="David Le", title="Data Scientist", age=31,
                voice_tone="calm-technical", expertise="Machine Learning",
                years_of_experience=7, interview_style="analytical-technical",
                personality="Rigorous, precise and inquisitive",
                focus_areas=("Statistics", "Model Selection", "Data Storytelling"),
                question_types=("data-problems", "case-studies"),
            ),
            "engineering-manager": cls(
                name="Thomas Vo", title="Engineering Manager", age=42,
                voice_tone="experienced-steady", expertise="Engineering Leadership",
                years_of_experience=18, interview_style="management-strategic",
                personality="Steady, supportive and strategic",
                focus_areas=("Team Building", "Delivery", "Career Development"),
                question_types=("management-scenarios", "team-challenges"),
            ),
        }
        if preset_name not in presets:
            raise ValueError(f"Unknown interviewer preset: {preset_name}")
        return presets[preset_name]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InterviewerProfile':
        """Build a profile from a camelCase or snake_case mapping."""
        aliases = {
            "voiceTone": "voice_tone",
            "yearsOfExperience": "years_of_experience",
            "interviewStyle": "interview_style",
            "focusAreas": "focus_areas",
            "questionTypes": "question_types",
        }
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in data.items():
            key = aliases.get(key, key)
            if key not in known:
                continue
            if key in ("focus_areas", "question_types") and value is not None:
                value = tuple(value)
            values[key] = value
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "title": self.title,
            "gender": self.gender,
            "age": self.age,
            "voiceTone": self.voice_tone,
            "expertise": self.expertise,
            "yearsOfExperience": self.years_of_experience,
            "interviewStyle": self.interview_style,
            "personality": self.personality,
            "focusAreas": list(self.focus_areas),
            "questionTypes": list(self.question_types),
        }


# =============================================================================
# INTERNAL CONSTANTS - Don't change these unless you know what you're doing
# =============================================================================

# Audio capture
SAMPLE_RATE_TARGET = 16000
CHANNELS = 1
FRAME_MS = 100
STREAM_CHUNK_MS = 250

# Local recognizer
LOCAL_INACTIVITY_TIMEOUT_S = 30.0
VAD_SILENCE_THRESHOLD = 0.01
VAD_SILENCE_DURATION = 1.2
VAD_MIN_SPEECH_DURATION = 0.3
NO_SPEECH_TIMEOUT_S = 8.0
INTERIM_INTERVAL_S = 2.0

# Streaming recognizer
STREAMING_MODEL = "latest_long"
FINAL_RESULT_GRACE_S = 2.0

# Dialogue
MIN_SUBMISSION_CHARS = 2  # trimmed answers must be longer than this

# Scoring
MIN_VALID_ANSWER_CHARS = 20
ENGAGEMENT_THRESHOLD = 0.5
ENGAGEMENT_SCORE_CEILING = 30.0
ASSESSMENT_TEMPERATURE = 0.7

# TTS
TTS_PREFERRED_VENDOR = "Neural2"
TTS_SPEAKING_RATE = 0.9
TTS_PITCH_FEMALE = 2.0
TTS_PITCH_MALE = -2.0
TTS_SAMPLE_RATE = 16000

# LLM
VERTEX_LOCATION = "us-central1"
MODEL_NAME = "gemini-2.5-flash"
LLM_TIMEOUT = 90
MAX_OUTPUT_TOKENS = 4096
LLM_MAX_RETRIES = 3
LLM_BACKOFF_BASE_S = 2.0


# =============================================================================
# MAIN CONFIG OBJECT
# =============================================================================

@dataclass
class Config:
    """Main configuration object."""
    google_cloud_project: str
    google_application_credentials: Optional[str] = None
    capture_backend: str = CAPTURE_BACKEND
    language_code: str = LANGUAGE_CODE
    enable_tts: bool = ENABLE_TTS
    speaker_volume: float = SPEAKER_VOLUME
    workdir: str = WORKDIR
    questions_file: Optional[str] = QUESTIONS_FILE
    interviewer_preset: str = INTERVIEWER_PRESET
    log_file: str = LOG_FILE
    log_level: str = LOG_LEVEL
    vertex_location: str = VERTEX_LOCATION
    model_name: str = MODEL_NAME
    inactivity_timeout_s: float = LOCAL_INACTIVITY_TIMEOUT_S
    stream_chunk_ms: int = STREAM_CHUNK_MS
    streaming_model: str = STREAMING_MODEL


def get_config() -> Config:
    """Load configuration."""
    project = os.getenv("GOOGLE_CLOUD_PROJECT") or GOOGLE_CLOUD_PROJECT
    credentials = os.getenv("GOOGLE_APPLICATION_CREDENTIALS") or GOOGLE_APPLICATION_CREDENTIALS

    if project == "your-project-id":
        raise ValueError("Please set GOOGLE_CLOUD_PROJECT in config.py or as environment variable")

    backend = os.getenv("MOCKINTERVIEW_BACKEND") or CAPTURE_BACKEND
    if backend not in ("streaming", "local"):
        raise ValueError(f"Unknown capture backend: {backend}")

    return Config(
        google_cloud_project=project,
        google_application_credentials=credentials,
        capture_backend=backend,
        language_code=os.getenv("MOCKINTERVIEW_LANGUAGE") or LANGUAGE_CODE,
        questions_file=os.getenv("MOCKINTERVIEW_QUESTIONS") or QUESTIONS_FILE,
        interviewer_preset=os.getenv("MOCKINTERVIEW_INTERVIEWER") or INTERVIEWER_PRESET,
        log_level=os.getenv("MOCKINTERVIEW_LOG_LEVEL") or LOG_LEVEL,
    )
