import threading
from types import SimpleNamespace

import numpy as np
from google.api_core import exceptions as api_exceptions
from google.auth import exceptions as auth_exceptions

from mockinterview.infrastructure.audio.processing.processing import (
    pcm16_to_float, resample_to_target, stereo_to_mono, to_pcm16,
)
from mockinterview.infrastructure.audio.speech.stt import (
    GoogleStreamingConnection, classify_api_error, recognize_google_sync,
)


def result(text, is_final):
    return SimpleNamespace(alternatives=[SimpleNamespace(transcript=text)], is_final=is_final)


class FakeSpeechClient:
    def __init__(self, error=None):
        self.error = error
        self.chunks = []
        self.config = None

    def streaming_recognize(self, config, requests):
        self.config = config
        for request in requests:
            self.chunks.append(request.audio_content)
            yield SimpleNamespace(results=[result(f"heard {len(self.chunks)}", False)])
        if self.error is not None:
            raise self.error
        yield SimpleNamespace(results=[result("all done", True), SimpleNamespace(alternatives=[], is_final=True)])

    def recognize(self, config, audio):
        self.config = config
        return SimpleNamespace(results=[result("hello", True), result("world", True)])


class Collector:
    def __init__(self):
        self.results = []
        self.errors = []
        self.closed = threading.Event()


def open_connection(client, language="en-GB"):
    connection = GoogleStreamingConnection(language=language, client=client)
    collector = Collector()
    connection.open(
        on_result=lambda text, is_final: collector.results.append((text, is_final)),
        on_error=collector.errors.append,
        on_closed=collector.closed.set,
    )
    return connection, collector


def test_streaming_connection_delivers_partials_and_finals():
    client = FakeSpeechClient()
    connection, collector = open_connection(client)
    connection.send(b"\x01\x00")
    connection.send(b"\x02\x00")
    connection.close()

    assert connection.wait_closed(2.0)
    assert collector.closed.wait(2.0)
    assert client.chunks == [b"\x01\x00", b"\x02\x00"]
    assert collector.results == [("heard 1", False), ("heard 2", False), ("all done", True)]
    assert collector.errors == []
    assert client.config.config.language_code == "en-GB"
    assert client.config.config.model == "latest_long"
    assert client.config.interim_results


def test_streaming_connection_reports_api_errors():
    client = FakeSpeechClient(error=api_exceptions.PermissionDenied("no access"))
    connection, collector = open_connection(client)
    connection.close()

    assert connection.wait_closed(2.0)
    assert collector.errors == ["not-allowed"]
    assert collector.closed.is_set()


def test_classify_api_error():
    assert classify_api_error(api_exceptions.PermissionDenied("x")) == "not-allowed"
    assert classify_api_error(api_exceptions.Unauthenticated("x")) == "service-not-allowed"
    assert classify_api_error(auth_exceptions.DefaultCredentialsError("x")) == "service-not-allowed"
    assert classify_api_error(api_exceptions.ServiceUnavailable("x")) == "network"
    assert classify_api_error(KeyError("x")) == "unknown"


def test_recognize_google_sync_joins_results():
    client = FakeSpeechClient()
    assert recognize_google_sync(b"\x00\x00" * 10, sr_hz=16000, language="en-US", client=client) == "hello world"
    assert client.config.sample_rate_hertz == 16000


def test_device_audio_becomes_16k_mono_pcm():
    stereo = np.stack([np.full(4800, 0.5), np.full(4800, -0.1)], axis=1).astype(np.float32)
    mono = stereo_to_mono(stereo)
    assert mono.shape == (4800,)
    assert np.allclose(mono, 0.2)

    resampled = resample_to_target(mono, 48000, 16000)
    assert resampled.dtype == np.float32
    assert resampled.shape == (1600,)

    pcm = to_pcm16(np.array([0.0, 0.5, -1.0, 2.0], dtype=np.float32))
    assert len(pcm) == 8
    back = pcm16_to_float(pcm)
    assert back[0] == 0.0
    assert abs(back[1] - 0.5) < 1e-3
    assert back[3] < 1.0


def test_processing_package_exports_resolve():
    from mockinterview.infrastructure.audio import processing

    for name in processing.__all__:
        assert hasattr(processing, name), name
