from mockinterview.interview.events import (
    EventType, InterviewEventBus, InterviewMetrics, AssessmentCompletedEvent, TurnRecordedEvent,
)


def test_handler_failures_do_not_reach_emitter():
    bus = InterviewEventBus()
    received = []

    def broken(event):
        raise RuntimeError("handler bug")

    bus.subscribe(EventType.TURN_RECORDED, broken)
    bus.subscribe(EventType.TURN_RECORDED, received.append)
    bus.emit(TurnRecordedEvent("s1", 1200, "q1", "an answer"))

    assert len(received) == 1
    assert received[0].data == {"question_id": "q1", "chars": 9}


def test_unsubscribe_and_global_handlers():
    bus = InterviewEventBus()
    specific, everything = [], []
    bus.subscribe(EventType.SESSION_STARTED, specific.append)
    bus.subscribe_all(everything.append)

    bus.emit_simple(EventType.SESSION_STARTED, "s1", 0, questions=5)
    bus.unsubscribe(EventType.SESSION_STARTED, specific.append)
    bus.emit_simple(EventType.SESSION_STARTED, "s1", 0, questions=5)

    assert len(specific) == 1
    assert len(everything) == 2
    assert everything[0].data == {"questions": 5}


def test_metrics_count_events():
    bus = InterviewEventBus()
    metrics = InterviewMetrics()
    bus.subscribe_all(metrics.handle_event)

    bus.emit_simple(EventType.TURN_DISCARDED, "s1", 10, chars=2)
    bus.emit_simple(EventType.TURN_DISCARDED, "s1", 20, chars=1)
    bus.emit(AssessmentCompletedEvent("s1", 30, 72.5, "Hire"))

    snapshot = metrics.get_metrics()
    assert snapshot["turn_discarded"] == 2
    assert snapshot["assessment_completed"] == 1
    assert snapshot["last_overall_score"] == 72.5

    metrics.reset()
    assert metrics.get_metrics()["turn_discarded"] == 0
    assert metrics.last_overall_score is None
