"""
Service classes for the interview system.
"""
import asyncio
import logging
from typing import Callable, Dict, List, Optional

from ..config import LANGUAGE_CODE
from ..infrastructure.audio.speech.tts import SpeechSynthesizer

logger = logging.getLogger("services")

SPEECH_START = "speech_start"
SPEECH_END = "speech_end"

# Upper bound on waiting for an interrupted utterance to wind down
CANCEL_WAIT_S = 2.0


class SpeechSynthesisService:
    """Speaks interviewer turns, one utterance at a time.

    Owned by the controller and passed in explicitly. Playback runs in the
    default executor; ``speak`` resolves when playback ends, is cancelled,
    or fails. Failures are logged, never raised.
    """

    def __init__(self,
                 synthesizer: Optional[SpeechSynthesizer] = None,
                 use_tts: bool = True,
                 language: str = LANGUAGE_CODE,
                 gender: str = "female"):
        self.synthesizer = synthesizer
        self.use_tts = use_tts and synthesizer is not None
        self.language = language
        self.gender = gender
        self._current: Optional[asyncio.Future] = None
        self._listeners: Dict[str, List[Callable[[str], None]]] = {
            SPEECH_START: [],
            SPEECH_END: [],
        }

    @property
    def is_speaking(self) -> bool:
        return self._current is not None and not self._current.done()

    def add_listener(self, event: str, callback: Callable[[str], None]) -> None:
        if event not in self._listeners:
            raise ValueError(f"Unknown speech event: {event}")
        self._listeners[event].append(callback)

    def _emit(self, event: str, text: str) -> None:
        for callback in self._listeners[event]:
            try:
                callback(text)
            except Exception as e:
                logger.error(f"Speech listener for {event} failed: {e}")

    def speak_or_print(self, message: str, prefix: str = "🤖") -> None:
        """Print the line; used when TTS is disabled or unavailable."""
        print(f"{prefix} {message}")

    async def speak(self, text: str, voice_gender: Optional[str] = None) -> None:
        if not text.strip():
            return
        await self.cancel()

        self._emit(SPEECH_START, text)
        if not self.use_tts:
            self.speak_or_print(text)
            self._emit(SPEECH_END, text)
            return

        gender = voice_gender or self.gender
        self.synthesizer.prepare()
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(None, self.synthesizer.speak, text, gender, self.language)
        self._current = future
        try:
            await future
        except asyncio.CancelledError:
            self.synthesizer.stop()
            raise
        except Exception as e:
            logger.warning(f"Speech synthesis failed: {e}")
            self.speak_or_print(text)
        finally:
            if self._current is future:
                self._current = None
            self._emit(SPEECH_END, text)

    async def cancel(self) -> None:
        """Stop the current utterance (if any) and wait for it to wind down."""
        future = self._current
        if future is None or future.done():
            return
        logger.debug("Cancelling current utterance")
        self.synthesizer.stop()
        await asyncio.wait({future}, timeout=CANCEL_WAIT_S)
