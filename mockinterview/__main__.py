#!/usr/bin/env python3
"""
Main entry point for the mock interview engine.
Allows running the package with: python -m mockinterview
"""
import asyncio
import sys
import threading
from typing import Optional

from .config import get_config, Config, InterviewerProfile
from .infrastructure.audio.processing.capture import MicrophoneStream
from .infrastructure.audio.speech.recognizer import VadRecognizerEngine
from .infrastructure.audio.speech.stt import GoogleStreamingConnection
from .infrastructure.audio.speech.tts import GoogleSpeechSynthesizer
from .infrastructure.data import SessionStore
from .infrastructure.data.questions import load_question_bank, default_questions
from .infrastructure.llm import VertexRestClient
from .interview.capture import LocalSpeechCapture, StreamingSpeechCapture, SpeechCapture
from .interview.controller import InterviewController
from .interview.events import InterviewEventBus, EventLogger, InterviewMetrics
from .interview.models import InterviewSession
from .interview.scoring import AssessmentEngine, select_persona
from .interview.services import SpeechSynthesisService
from .utils import setup_logging


def _flag_value(name: str) -> Optional[str]:
    prefix = f"--{name}="
    for arg in sys.argv[1:]:
        if arg.startswith(prefix):
            return arg[len(prefix):]
    return None


def build_capture(config: Config) -> SpeechCapture:
    if config.capture_backend == "local":
        return LocalSpeechCapture(
            VadRecognizerEngine(),
            language=config.language_code,
            inactivity_timeout=config.inactivity_timeout_s,
        )
    return StreamingSpeechCapture(
        connection_factory=lambda: GoogleStreamingConnection(
            language=config.language_code, model=config.streaming_model,
        ),
        source_factory=MicrophoneStream,
        language=config.language_code,
        chunk_ms=config.stream_chunk_ms,
    )


def _start_stdin_reader(loop: asyncio.AbstractEventLoop, commands: asyncio.Queue) -> None:
    """Feed stdin lines into the loop from a daemon thread."""
    def read():
        for line in sys.stdin:
            if loop.is_closed():
                return
            loop.call_soon_threadsafe(commands.put_nowait, line.strip().lower())
        if not loop.is_closed():
            loop.call_soon_threadsafe(commands.put_nowait, "q")

    threading.Thread(target=read, name="stdin-reader", daemon=True).start()


async def run_session(controller: InterviewController) -> InterviewSession:
    loop = asyncio.get_running_loop()
    commands: asyncio.Queue = asyncio.Queue()
    _start_stdin_reader(loop, commands)

    await controller.start()
    finished = asyncio.ensure_future(controller.wait_finished())
    while not finished.done():
        getter = asyncio.ensure_future(commands.get())
        done, _ = await asyncio.wait({getter, finished}, return_when=asyncio.FIRST_COMPLETED)
        if getter not in done:
            getter.cancel()
            break
        command = getter.result()
        if command == "q":
            await controller.leave()
        elif command == "r":
            await controller.retry_capture()
        else:
            await controller.submit()
    return await finished


def display_results(session: InterviewSession, path: Optional[str], log_file: str, metrics) -> None:
    print("\n" + "=" * 50)
    if session.termination_reason == "left":
        print("🚪 INTERVIEW ENDED EARLY")
    else:
        print("🎯 INTERVIEW COMPLETE")
    print("=" * 50)
    result = session.assessment
    if result is not None:
        print(f"📊 Readiness: {result.readiness_level.value}")
        print(f"🔢 Overall Score: {result.overall_score:.1f}/100")
        for name, category in result.category_scores.as_dict().items():
            print(f"   • {name}: {category.score:.0f}")
        if result.interview_summary:
            print(f"📝 Summary: {result.interview_summary}")
    else:
        print("📭 No assessment available")
    if path:
        print(f"💾 Session saved to: {path}")
    print(f"📁 Full details logged to: {log_file}")
    print(f"📈 Session metrics: {metrics.get_metrics()}")


def main():
    """Command-line interface for a mock interview session."""

    # Load configuration from environment
    try:
        config = get_config()
    except ValueError as e:
        print(f"❌ Configuration Error: {e}")
        sys.exit(1)

    # Explicit flags take precedence over config
    if "--text" in sys.argv or "--no-tts" in sys.argv:
        config.enable_tts = False
    elif "--tts" in sys.argv:
        config.enable_tts = True
    if "--local" in sys.argv:
        config.capture_backend = "local"
    elif "--streaming" in sys.argv:
        config.capture_backend = "streaming"
    config.questions_file = _flag_value("questions") or config.questions_file
    config.interviewer_preset = _flag_value("interviewer") or config.interviewer_preset
    config.language_code = _flag_value("lang") or config.language_code

    setup_logging(config.log_file, config.log_level)

    try:
        profile = InterviewerProfile.from_preset(config.interviewer_preset)
        questions = load_question_bank(config.questions_file) if config.questions_file else default_questions()
    except (ValueError, OSError) as e:
        print(f"❌ Configuration Error: {e}")
        sys.exit(1)

    # Show configuration
    print(f"👤 Interviewer: {profile.name}, {profile.title} (persona: {select_persona(profile).value})")
    print(f"🎙️  Capture: {config.capture_backend} ({config.language_code})")
    if config.enable_tts:
        print("🔊 TTS Mode: interviewer speaks aloud (use --text or --no-tts to disable)")
    else:
        print("📝 Text Mode: questions are displayed as text only")
    print(f"❓ {len(questions)} questions. Press Enter to submit an answer, 'q' + Enter to leave.")
    print("=" * 50)

    event_bus = InterviewEventBus()
    metrics = InterviewMetrics()
    event_bus.subscribe_all(EventLogger().handle_event)
    event_bus.subscribe_all(metrics.handle_event)

    synthesis = SpeechSynthesisService(
        GoogleSpeechSynthesizer(volume=config.speaker_volume) if config.enable_tts else None,
        use_tts=config.enable_tts,
        language=config.language_code,
        gender=profile.gender,
    )
    llm_client = VertexRestClient(
        project=config.google_cloud_project,
        location=config.vertex_location,
        model=config.model_name,
        credentials_json=config.google_application_credentials,
    )
    controller = InterviewController(
        questions=questions,
        capture=build_capture(config),
        synthesis=synthesis,
        profile=profile,
        engine=AssessmentEngine(llm_client),
        store=SessionStore(config.workdir),
        event_bus=event_bus,
        language=config.language_code,
    )
    if not controller.capture.is_supported:
        print("⚠️  No usable microphone found; capture will report an error.")

    try:
        session = asyncio.run(run_session(controller))
    except KeyboardInterrupt:
        print("\n🛑 Interview interrupted.")
        sys.exit(130)

    display_results(session, controller.result_path, config.log_file, metrics)


if __name__ == "__main__":
    main()
