"""
Text-to-speech functionality using Google Cloud TTS.
"""
import math
import os
import shutil
import subprocess
import tempfile
import threading
import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from ....config import (
    LANGUAGE_CODE, SPEAKER_VOLUME, TTS_PREFERRED_VENDOR, TTS_SPEAKING_RATE,
    TTS_PITCH_FEMALE, TTS_PITCH_MALE, TTS_SAMPLE_RATE,
)
from ....utils import with_suppressed_audio_warnings

logger = logging.getLogger("speech_tts")


class SpeechSynthesizer(ABC):
    """Blocking speech output. ``stop`` may be called from another thread.

    ``prepare`` is called by the owner before each utterance is handed to a
    worker; a ``stop`` that lands after it applies to that utterance.
    """

    def prepare(self) -> None:
        """Arm for the next utterance."""

    @abstractmethod
    def speak(self, text: str, gender: str, language: str) -> None:
        ...

    @abstractmethod
    def stop(self) -> None:
        ...


def _gender_name(value) -> str:
    return str(getattr(value, "name", value)).lower()


def select_voice(voices: Iterable, language: str, gender: str,
                 preferred_vendor: str = TTS_PREFERRED_VENDOR) -> Optional[str]:
    """
    Pick a voice name for (language, gender).

    Order: preferred vendor + gender in the exact language, then gender in
    the exact language, then any voice in the exact language, then a voice
    of the base language (gender first). None means "let the service pick".
    """
    voices = list(voices)
    gender = gender.lower()
    base = language.split("-")[0].lower()

    exact = [v for v in voices if language in v.language_codes]
    same_base = [v for v in voices
                 if any(code.lower().split("-")[0] == base for code in v.language_codes)]

    for candidates in (
        [v for v in exact if preferred_vendor in v.name and _gender_name(v.ssml_gender) == gender],
        [v for v in exact if _gender_name(v.ssml_gender) == gender],
        exact,
        [v for v in same_base if _gender_name(v.ssml_gender) == gender],
        same_base,
    ):
        if candidates:
            return candidates[0].name
    return None


def _player_command(path: str) -> List[str]:
    # macOS first, then ALSA
    if shutil.which("afplay"):
        return ["afplay", path]
    if shutil.which("aplay"):
        return ["aplay", "-q", path]
    raise RuntimeError("No audio player found (afplay/aplay)")


class GoogleSpeechSynthesizer(SpeechSynthesizer):
    """Google Cloud TTS rendered to LINEAR16 and played with afplay/aplay."""

    def __init__(self, volume: float = SPEAKER_VOLUME, client=None):
        self.volume = max(0.0, min(1.0, volume))
        self._client = client
        self._voices: Dict[str, list] = {}
        self._process: Optional[subprocess.Popen] = None
        self._lock = threading.Lock()
        self._stopped = threading.Event()

    def _get_client(self):
        if self._client is None:
            from google.cloud import texttospeech
            self._client = texttospeech.TextToSpeechClient()
        return self._client

    def _voice_name(self, language: str, gender: str) -> Optional[str]:
        base = language.split("-")[0]
        if base not in self._voices:
            response = self._get_client().list_voices(language_code=base)
            self._voices[base] = list(response.voices)
            logger.info(f"Loaded {len(self._voices[base])} voices for '{base}'")
        return select_voice(self._voices[base], language, gender)

    def _volume_gain_db(self) -> float:
        if self.volume <= 0:
            return -96.0
        return max(-96.0, min(16.0, 20 * math.log10(self.volume)))

    @with_suppressed_audio_warnings
    def speak(self, text: str, gender: str = "female", language: str = LANGUAGE_CODE) -> None:
        if not text.strip() or self._stopped.is_set():
            return
        from google.cloud import texttospeech

        voice_name = self._voice_name(language, gender)
        ssml_gender = (texttospeech.SsmlVoiceGender.FEMALE if gender.lower() == "female"
                       else texttospeech.SsmlVoiceGender.MALE)
        voice_params = texttospeech.VoiceSelectionParams(
            language_code=language,
            name=voice_name or "",
            ssml_gender=ssml_gender,
        )
        audio_config = texttospeech.AudioConfig(
            audio_encoding=texttospeech.AudioEncoding.LINEAR16,
            sample_rate_hertz=TTS_SAMPLE_RATE,
            speaking_rate=TTS_SPEAKING_RATE,
            pitch=TTS_PITCH_FEMALE if gender.lower() == "female" else TTS_PITCH_MALE,
            volume_gain_db=self._volume_gain_db(),
        )
        response = self._get_client().synthesize_speech(
            input=texttospeech.SynthesisInput(text=text),
            voice=voice_params,
            audio_config=audio_config,
        )
        logger.debug(f"Synthesized {len(response.audio_content)} bytes with voice {voice_name or 'default'}")

        if self._stopped.is_set():
            return

        with tempfile.NamedTemporaryFile(suffix='.wav', delete=False) as tmp_file:
            wav_path = tmp_file.name
            tmp_file.write(response.audio_content)
        try:
            command = _player_command(wav_path)
            with self._lock:
                if self._stopped.is_set():
                    return
                process = self._process = subprocess.Popen(
                    command, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL,
                )
            process.wait()
        finally:
            with self._lock:
                self._process = None
            try:
                os.unlink(wav_path)
            except OSError:
                pass

    def prepare(self) -> None:
        with self._lock:
            self._stopped.clear()

    def stop(self) -> None:
        with self._lock:
            self._stopped.set()
            process = self._process
        if process is not None and process.poll() is None:
            process.terminate()
            logger.debug("Playback terminated")
