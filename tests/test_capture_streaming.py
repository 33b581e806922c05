import asyncio

from mockinterview.interview.capture import CaptureStatus, StreamingSpeechCapture
from mockinterview.interview.testing import FakeAudioSource, FakeStreamingConnection, settle


def make_capture(connection, source, **kwargs):
    capture = StreamingSpeechCapture(
        connection_factory=lambda: connection,
        source_factory=lambda: source,
        support_check=lambda: True,
        final_grace=kwargs.pop("final_grace", 0.5),
        **kwargs,
    )
    errors, auto_stops, previews = [], [], []
    capture.on_error = errors.append
    capture.on_auto_stop = lambda: auto_stops.append(True)
    capture.on_transcript = previews.append
    return capture, errors, auto_stops, previews


def test_start_opens_connection_before_device():
    async def scenario():
        log = []
        connection, source = FakeStreamingConnection(log), FakeAudioSource(log)
        capture, _, _, _ = make_capture(connection, source)
        await capture.start_listening()

        assert log == ["connection.open", "source.open", "source.start"]
        assert source.chunk_ms == 250
        source.push(b"\x00\x01" * 4)
        assert connection.sent == [b"\x00\x01" * 4]
        await capture.stop_listening()

    asyncio.run(scenario())


def test_partials_preview_but_only_finals_are_kept():
    async def scenario():
        connection, source = FakeStreamingConnection(), FakeAudioSource()
        capture, _, _, previews = make_capture(connection, source)
        await capture.start_listening()

        connection.message("hello wor", False)
        await settle()
        assert capture.preview == "hello wor"
        assert capture.transcript == ""

        connection.message("hello world", True)
        await settle()
        assert capture.transcript == "hello world"

        await capture.stop_listening()
        assert capture.transcript == "hello world"
        assert previews == ["hello wor", "hello world"]

    asyncio.run(scenario())


def test_finals_are_joined_with_spaces():
    async def scenario():
        connection, source = FakeStreamingConnection(), FakeAudioSource()
        capture, _, _, _ = make_capture(connection, source)
        await capture.start_listening()
        connection.message("first part", True)
        connection.message("  ", True)
        connection.message("second part", True)
        await settle()
        assert capture.transcript == "first part second part"
        await capture.stop_listening()

    asyncio.run(scenario())


def test_stop_tears_down_in_order_and_keeps_late_final():
    async def scenario():
        log = []
        connection = FakeStreamingConnection(log, final_on_close="and that is all")
        source = FakeAudioSource(log)
        capture, _, auto_stops, _ = make_capture(connection, source)
        await capture.start_listening()
        connection.message("my answer", True)
        await settle()

        await capture.stop_listening()
        assert log[-3:] == ["connection.close", "source.stop", "source.release"]
        assert capture.transcript == "my answer and that is all"
        assert capture.state.status is CaptureStatus.IDLE
        assert auto_stops == []

    asyncio.run(scenario())


def test_teardown_steps_run_even_when_one_fails():
    async def scenario():
        log = []
        connection = FakeStreamingConnection(log, fail_on_close=True)
        source = FakeAudioSource(log, fail_on_stop=True)
        capture, errors, _, _ = make_capture(connection, source, final_grace=0.05)
        await capture.start_listening()

        await capture.stop_listening()
        assert log[-3:] == ["connection.close", "source.stop", "source.release"]
        assert capture.state.status is CaptureStatus.IDLE
        assert errors == []

    asyncio.run(scenario())


def test_connection_open_failure_is_a_network_error():
    async def scenario():
        log = []
        connection = FakeStreamingConnection(log, fail_on_open=True)
        source = FakeAudioSource(log)
        capture, errors, _, _ = make_capture(connection, source)
        await capture.start_listening()

        assert errors == ["network"]
        assert capture.error == "network"
        assert "source.open" not in log

    asyncio.run(scenario())


def test_device_failure_is_an_audio_capture_error():
    async def scenario():
        log = []
        connection = FakeStreamingConnection(log)
        source = FakeAudioSource(log, fail_on_open=True)
        capture, errors, auto_stops, _ = make_capture(connection, source)
        await capture.start_listening()
        await settle()

        assert errors == ["audio-capture"]
        assert capture.state.status is CaptureStatus.ERROR
        assert "connection.close" in log
        assert log[-2:] == ["source.stop", "source.release"]
        assert auto_stops == []

    asyncio.run(scenario())


def test_remote_error_is_fatal_and_releases_device():
    async def scenario():
        log = []
        connection, source = FakeStreamingConnection(log), FakeAudioSource(log)
        capture, errors, _, _ = make_capture(connection, source)
        await capture.start_listening()

        connection.on_error("service-not-allowed")
        await settle()
        assert errors == ["service-not-allowed"]
        assert log[-3:] == ["connection.close", "source.stop", "source.release"]

        # retry opens a fresh pipeline
        await capture.start_listening()
        assert capture.is_listening

    asyncio.run(scenario())


def test_remote_close_while_listening_is_an_auto_stop():
    async def scenario():
        log = []
        connection, source = FakeStreamingConnection(log), FakeAudioSource(log)
        capture, errors, auto_stops, _ = make_capture(connection, source)
        await capture.start_listening()

        connection.message("everything I had to say", True)
        connection.on_closed()
        await settle()
        assert auto_stops == [True]
        assert errors == []
        assert not capture.is_listening
        assert capture.transcript == "everything I had to say"
        assert "source.release" in log

    asyncio.run(scenario())
