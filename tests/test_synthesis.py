import asyncio
from types import SimpleNamespace

from mockinterview.infrastructure.audio.speech import tts
from mockinterview.infrastructure.audio.speech.tts import GoogleSpeechSynthesizer, select_voice
from mockinterview.interview.services import SPEECH_END, SPEECH_START, SpeechSynthesisService
from mockinterview.interview.testing import MockSynthesizer


def voice(name, language, gender):
    return SimpleNamespace(name=name, language_codes=[language], ssml_gender=SimpleNamespace(name=gender))


def test_speak_plays_with_configured_voice_and_notifies():
    async def scenario():
        synthesizer = MockSynthesizer()
        service = SpeechSynthesisService(synthesizer, language="en-GB", gender="female")
        events = []
        service.add_listener(SPEECH_START, lambda text: events.append(("start", text)))
        service.add_listener(SPEECH_END, lambda text: events.append(("end", text)))

        await service.speak("Tell me about yourself.")
        await service.speak("And your last project?", voice_gender="male")

        assert synthesizer.spoken == [
            {"text": "Tell me about yourself.", "gender": "female", "language": "en-GB"},
            {"text": "And your last project?", "gender": "male", "language": "en-GB"},
        ]
        assert events == [
            ("start", "Tell me about yourself."), ("end", "Tell me about yourself."),
            ("start", "And your last project?"), ("end", "And your last project?"),
        ]
        assert not service.is_speaking
        assert synthesizer.prepare_count == 2

    asyncio.run(scenario())


def test_failure_falls_back_to_printing(capsys):
    async def scenario():
        service = SpeechSynthesisService(MockSynthesizer(fail=True))
        ended = []
        service.add_listener(SPEECH_END, ended.append)
        await service.speak("Why this role?")
        assert ended == ["Why this role?"]

    asyncio.run(scenario())
    assert "🤖 Why this role?" in capsys.readouterr().out


def test_text_mode_prints(capsys):
    async def scenario():
        synthesizer = MockSynthesizer()
        service = SpeechSynthesisService(synthesizer, use_tts=False)
        await service.speak("What is a deadlock?")
        await service.speak("   ")
        assert synthesizer.spoken == []

    asyncio.run(scenario())
    assert capsys.readouterr().out == "🤖 What is a deadlock?\n"


def test_new_utterance_interrupts_the_current_one():
    async def scenario():
        synthesizer = MockSynthesizer(hold=True)
        service = SpeechSynthesisService(synthesizer)
        first = asyncio.ensure_future(service.speak("first"))
        while not synthesizer.spoken:
            await asyncio.sleep(0.01)
        assert service.is_speaking

        await service.speak("second")
        assert first.done()
        assert synthesizer.stop_count == 1
        assert synthesizer.texts == ["first", "second"]

    asyncio.run(scenario())


def test_listener_errors_are_contained():
    async def scenario():
        service = SpeechSynthesisService(MockSynthesizer())

        def broken(text):
            raise RuntimeError("listener bug")

        service.add_listener(SPEECH_START, broken)
        await service.speak("Still spoken")
        assert service.synthesizer.texts == ["Still spoken"]

    asyncio.run(scenario())


def test_select_voice_prefers_vendor_and_gender():
    voices = [
        voice("en-US-Standard-C", "en-US", "FEMALE"),
        voice("en-US-Neural2-D", "en-US", "MALE"),
        voice("en-US-Neural2-F", "en-US", "FEMALE"),
    ]
    assert select_voice(voices, "en-US", "female") == "en-US-Neural2-F"
    assert select_voice(voices, "en-US", "male") == "en-US-Neural2-D"


def test_select_voice_fallbacks():
    standard_only = [voice("en-US-Standard-A", "en-US", "MALE"),
                     voice("en-US-Standard-C", "en-US", "FEMALE")]
    assert select_voice(standard_only, "en-US", "female") == "en-US-Standard-C"

    male_only = [voice("de-DE-Neural2-B", "de-DE", "MALE")]
    assert select_voice(male_only, "de-DE", "female") == "de-DE-Neural2-B"

    # en-AU requested, only en-US and en-GB voices available
    other_region = [voice("en-GB-Neural2-B", "en-GB", "MALE"),
                    voice("en-US-Neural2-F", "en-US", "FEMALE")]
    assert select_voice(other_region, "en-AU", "female") == "en-US-Neural2-F"
    assert select_voice(other_region, "en-AU", "neutral") == "en-GB-Neural2-B"

    assert select_voice(other_region, "vi-VN", "female") is None
    assert select_voice([], "en-US", "female") is None


class FakeTTSClient:
    def __init__(self):
        self.requests = []

    def list_voices(self, language_code):
        return SimpleNamespace(voices=[voice("en-US-Neural2-A", "en-US", "FEMALE")])

    def synthesize_speech(self, input, voice, audio_config):
        self.requests.append(input.text)
        return SimpleNamespace(audio_content=b"RIFF0000WAVE")


class FakePlayer:
    launched = []

    def __init__(self, command, **kwargs):
        FakePlayer.launched.append(command)
        self.terminated = False

    def wait(self):
        return 0

    def poll(self):
        return 0

    def terminate(self):
        self.terminated = True


def google_synthesizer(monkeypatch, client, on_player=None):
    FakePlayer.launched = []

    def player_command(path):
        if on_player:
            on_player()
        return ["player", path]

    monkeypatch.setattr(tts, "_player_command", player_command)
    monkeypatch.setattr(tts.subprocess, "Popen", FakePlayer)
    return GoogleSpeechSynthesizer(client=client)


def test_google_synthesizer_plays_after_prepare(monkeypatch):
    client = FakeTTSClient()
    synthesizer = google_synthesizer(monkeypatch, client)
    synthesizer.prepare()
    synthesizer.speak("Hello there", gender="female", language="en-US")

    assert client.requests == ["Hello there"]
    assert len(FakePlayer.launched) == 1
    assert FakePlayer.launched[0][0] == "player"


def test_stop_before_the_worker_starts_is_not_lost(monkeypatch):
    client = FakeTTSClient()
    synthesizer = google_synthesizer(monkeypatch, client)
    synthesizer.prepare()
    synthesizer.stop()
    synthesizer.speak("Hello there", gender="female", language="en-US")

    assert client.requests == []
    assert FakePlayer.launched == []

    synthesizer.prepare()
    synthesizer.speak("Hello again", gender="female", language="en-US")
    assert len(FakePlayer.launched) == 1


def test_stop_just_before_playback_skips_the_player(monkeypatch):
    client = FakeTTSClient()
    synthesizer = google_synthesizer(monkeypatch, client, on_player=lambda: synthesizer.stop())
    synthesizer.prepare()
    synthesizer.speak("Hello there", gender="female", language="en-US")

    assert client.requests == ["Hello there"]
    assert FakePlayer.launched == []
