"""
Tests for UnlockSignalClient: requesting and decoding open signals.
"""

import base64

import numpy as np
import pytest

from box_unlock.errors import BackendError, DecodeError, NetworkError
from box_unlock.signal.client import SignalPayload, UnlockSignalClient, sniff_suffix
from box_unlock.testing import FakeSignalSource, create_test_signal

from conftest import log_events, run


@pytest.fixture
def source():
    return FakeSignalSource(data=create_test_signal())


@pytest.fixture
def client(source, signal_dir, events):
    return UnlockSignalClient(source, cache_dir=signal_dir, events=events)


def _payload(data: str) -> SignalPayload:
    return SignalPayload(box_id=42, host_id=7, data=data)


class TestRequestSignal:

    def test_single_request(self, client, source):
        payload = run(client.request_signal(42, 7))

        assert source.call_count("open_box") == 1
        assert source.calls[0].args == (42, 7)
        assert payload.box_id == 42
        assert payload.host_id == 7
        assert payload.token_format == "audio"
        assert not payload.consumed

    def test_backend_failure_is_network_error(self, client, source):
        source.fail_on("open_box", BackendError("connection refused"))

        with pytest.raises(NetworkError) as exc_info:
            run(client.request_signal(42, 7))

        assert isinstance(exc_info.value.cause, BackendError)
        assert source.call_count("open_box") == 1

    @pytest.mark.parametrize("body", [
        {},
        {"data": None},
        {"data": ""},
        {"data": 123},
        {"result": "error", "errorNumber": 4},
    ])
    def test_missing_data_is_decode_error(self, signal_dir, body):
        client = UnlockSignalClient(FakeSignalSource(body=body), cache_dir=signal_dir)

        with pytest.raises(DecodeError):
            run(client.request_signal(42, 7))

    def test_request_is_logged(self, client, log_stream):
        run(client.request_signal(42, 7))

        events = [e for e in log_events(log_stream) if e["event"] == "signal_requested"]
        assert events[0]["host_id"] == 7
        assert events[0]["box_id"] == 42


class TestDecode:

    def test_decodes_to_temp_file(self, client, signal_dir):
        resource = client.decode(_payload(create_test_signal(duration=0.5, sample_rate=8000)))

        assert resource.path.exists()
        assert resource.path.parent == signal_dir
        assert resource.path.name.startswith("box_open_audio")
        assert resource.path.suffix == ".wav"
        assert resource.sample_rate == 8000
        assert resource.samples.dtype == np.float32
        assert resource.duration_seconds == pytest.approx(0.5)

    def test_flac_payload(self, client):
        resource = client.decode(_payload(create_test_signal(audio_format="FLAC")))
        assert resource.path.suffix == ".flac"
        assert len(resource.samples) > 0

    def test_release_deletes_file(self, client):
        resource = client.decode(_payload(create_test_signal()))

        resource.release()
        resource.release()

        assert resource.released
        assert not resource.path.exists()

    def test_payload_is_single_use(self, client):
        payload = _payload(create_test_signal())
        client.decode(payload).release()

        assert payload.consumed
        with pytest.raises(DecodeError):
            client.decode(payload)

    def test_invalid_base64(self, client, signal_dir):
        with pytest.raises(DecodeError):
            client.decode(_payload("not base64!!"))
        assert list(signal_dir.glob("box_open_audio*")) == []

    def test_garbage_audio_leaves_no_file(self, client, signal_dir):
        garbage = base64.b64encode(b"\x00\x01 definitely not audio " * 8).decode()

        with pytest.raises(DecodeError):
            client.decode(_payload(garbage))

        assert list(signal_dir.glob("box_open_audio*")) == []

    def test_line_wrapped_base64(self, client):
        wrapped = base64.encodebytes(base64.b64decode(create_test_signal(duration=0.5))).decode()
        assert "\n" in wrapped

        resource = client.decode(_payload(wrapped))

        assert resource.path.suffix == ".wav"
        assert resource.duration_seconds == pytest.approx(0.5)

    def test_failed_payload_stays_consumed(self, client):
        payload = _payload("not base64!!")
        with pytest.raises(DecodeError):
            client.decode(payload)
        assert payload.consumed


class TestSniffSuffix:

    @pytest.mark.parametrize("header,expected", [
        (b"RIFF\x00\x00\x00\x00WAVE", ".wav"),
        (b"OggS\x00\x02", ".ogg"),
        (b"fLaC\x00\x00", ".flac"),
        (b"ID3\x04\x00", ".mp3"),
        (b"\xff\xfb\x90", ".mp3"),
    ])
    def test_known_headers(self, header, expected):
        assert sniff_suffix(header) == expected

    def test_custom_default(self):
        assert sniff_suffix(b"????", default=".m4a") == ".m4a"
