import asyncio

from mockinterview.interview.capture import (
    CaptureStateMachine, CaptureStatus, ErrorKind, LocalSpeechCapture, classify_recognizer_error,
)
from mockinterview.interview.testing import FakeRecognizerEngine, settle


def make_capture(engine=None, **kwargs):
    engine = engine or FakeRecognizerEngine()
    capture = LocalSpeechCapture(engine, **kwargs)
    seen, errors, auto_stops = [], [], []
    capture.on_transcript = seen.append
    capture.on_error = errors.append
    capture.on_auto_stop = lambda: auto_stops.append(True)
    return engine, capture, seen, errors, auto_stops


def test_state_machine_transitions():
    fsm = CaptureStateMachine()
    assert fsm.status is CaptureStatus.IDLE
    assert not fsm.stop()
    assert fsm.start()
    assert not fsm.start()
    assert fsm.fail("network")
    assert fsm.state.reason == "network"
    assert not fsm.fail("network")
    assert fsm.start()
    assert fsm.state.reason is None
    assert fsm.stop()
    assert fsm.status is CaptureStatus.IDLE


def test_error_classification():
    assert classify_recognizer_error("no-speech") is ErrorKind.TRANSIENT
    assert classify_recognizer_error("aborted") is ErrorKind.CANCELLED
    for code in ("not-allowed", "service-not-allowed", "network", "audio-capture",
                 "not-supported", "something-new"):
        assert classify_recognizer_error(code) is ErrorKind.FATAL


def test_full_text_is_rebuilt_from_all_segments():
    async def scenario():
        engine, capture, seen, _, _ = make_capture(language="en-GB")
        await capture.start_listening()
        assert engine.configured == {"language": "en-GB", "continuous": True, "interim_results": True}

        engine.emit_result(["I built"])
        engine.emit_result(["I built", " a payment service "])
        await settle()
        assert capture.transcript == "I built a payment service"
        assert seen == ["I built", "I built a payment service"]
        await capture.stop_listening()

    asyncio.run(scenario())


def test_start_while_listening_is_a_no_op():
    async def scenario():
        engine, capture, _, _, _ = make_capture()
        await capture.start_listening()
        await capture.start_listening()
        assert engine.start_count == 1
        assert capture.is_listening
        await capture.stop_listening()

    asyncio.run(scenario())


def test_no_speech_keeps_listening():
    async def scenario():
        engine, capture, _, errors, _ = make_capture()
        await capture.start_listening()
        engine.emit_error("no-speech")
        await settle()
        assert capture.is_listening
        assert capture.error is None
        assert errors == []
        await capture.stop_listening()

    asyncio.run(scenario())


def test_aborted_goes_idle_without_error():
    async def scenario():
        engine, capture, _, errors, auto_stops = make_capture()
        await capture.start_listening()
        engine.emit_error("aborted")
        await settle()
        assert capture.state.status is CaptureStatus.IDLE
        assert capture.error is None
        assert errors == []
        assert auto_stops == []

    asyncio.run(scenario())


def test_fatal_error_is_reported_once():
    async def scenario():
        engine, capture, _, errors, _ = make_capture()
        await capture.start_listening()
        engine.emit_error("not-allowed")
        await settle()
        assert capture.state.status is CaptureStatus.ERROR
        assert capture.error == "not-allowed"
        assert errors == ["not-allowed"]
        assert engine.abort_count == 1

        engine.emit_error("network")
        await settle()
        assert errors == ["not-allowed"]
        assert capture.error == "not-allowed"

        # restart clears the error and the buffer
        await capture.start_listening()
        assert capture.is_listening
        assert capture.error is None
        assert capture.transcript == ""
        await capture.stop_listening()

    asyncio.run(scenario())


def test_unsupported_engine_reports_not_supported():
    async def scenario():
        engine, capture, _, errors, _ = make_capture(FakeRecognizerEngine(available=False))
        assert not capture.is_supported
        await capture.start_listening()
        assert errors == ["not-supported"]
        assert capture.error == "not-supported"
        assert engine.start_count == 0

    asyncio.run(scenario())


def test_stop_waits_for_final_result():
    async def scenario():
        engine, capture, _, _, auto_stops = make_capture()
        engine.final_on_stop = ["final words here"]
        await capture.start_listening()
        await capture.stop_listening()
        assert capture.transcript == "final words here"
        assert not capture.is_listening
        assert auto_stops == []

    asyncio.run(scenario())


def test_second_stop_waits_for_the_pending_end():
    async def scenario():
        engine, capture, _, _, _ = make_capture(FakeRecognizerEngine(defer_end=True))
        await capture.start_listening()
        first = asyncio.ensure_future(capture.stop_listening())
        second = asyncio.ensure_future(capture.stop_listening())
        await settle()
        assert not first.done()
        assert not second.done()
        assert engine.stop_count == 1

        engine.emit_result(["last words"])
        engine.emit_end()
        await asyncio.wait_for(asyncio.gather(first, second), 1.0)
        assert capture.transcript == "last words"

    asyncio.run(scenario())


def test_restart_after_slow_stop_listens_again():
    async def scenario():
        engine, capture, _, _, auto_stops = make_capture(FakeRecognizerEngine(defer_end=True),
                                                         stop_timeout=0.05)
        await capture.start_listening()
        await capture.stop_listening()
        previous = engine.callbacks

        await capture.start_listening()
        assert engine.start_count == 2
        assert capture.is_listening

        previous.on_end()
        await settle()
        assert capture.is_listening
        assert auto_stops == []

        engine.defer_end = False
        await capture.stop_listening()
        assert not capture.is_listening

    asyncio.run(scenario())


def test_cancel_aborts_engine():
    async def scenario():
        engine, capture, _, errors, auto_stops = make_capture()
        await capture.start_listening()
        await capture.cancel()
        await settle()
        assert engine.abort_count == 1
        assert engine.stop_count == 0
        assert capture.state.status is CaptureStatus.IDLE
        assert errors == []
        assert auto_stops == []

    asyncio.run(scenario())


def test_inactivity_timeout_stops_and_notifies():
    async def scenario():
        engine, capture, _, _, auto_stops = make_capture(inactivity_timeout=0.05)
        await capture.start_listening()
        await asyncio.sleep(0.3)
        assert engine.stop_count == 1
        assert not capture.is_listening
        assert auto_stops == [True]

    asyncio.run(scenario())


def test_results_rearm_inactivity_timer():
    async def scenario():
        engine, capture, _, _, auto_stops = make_capture(inactivity_timeout=0.25)
        await capture.start_listening()
        for i in range(4):
            await asyncio.sleep(0.1)
            engine.emit_result([f"segment {i}"])
            await settle()
        assert capture.is_listening
        assert auto_stops == []

        await asyncio.sleep(0.6)
        assert not capture.is_listening
        assert auto_stops == [True]

    asyncio.run(scenario())


def test_engine_ending_on_its_own_counts_as_auto_stop():
    async def scenario():
        engine, capture, _, _, auto_stops = make_capture()
        await capture.start_listening()
        engine.emit_result(["half an answer"])
        engine.emit_end()
        await settle()
        assert not capture.is_listening
        assert capture.transcript == "half an answer"
        assert auto_stops == [True]

    asyncio.run(scenario())


def test_callbacks_from_previous_turn_are_ignored():
    async def scenario():
        engine, capture, _, _, _ = make_capture()
        await capture.start_listening()
        old_callbacks = engine.callbacks
        await capture.stop_listening()

        await capture.start_listening()
        old_callbacks.on_result(["stale text"])
        await settle()
        assert capture.transcript == ""
        await capture.stop_listening()

    asyncio.run(scenario())
