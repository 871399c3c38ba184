from __future__ import annotations

import sys

import pytest

from kvbench.client import (
    ClientProc,
    Get,
    Put,
    Scan,
    Swap,
    decode_response,
    encode_call,
)
from kvbench.errors import ChannelClosed, ClientError, ResponseTimeout
from kvbench.ycsb.keys import KnownKeySet
from kvbench.ycsb.translator import interpret


@pytest.fixture
def client(fake_client_script, tmp_path):
    proc = ClientProc(
        [str(fake_client_script)],
        command=sys.executable,
        name="test-client",
        stderr_path=tmp_path / "logs" / "test-client.log",
    )
    yield proc
    proc.stop()


def test_encode_call_matches_client_line_protocol():
    assert encode_call(Put("k1", "v1")) == "PUT k1 v1"
    assert encode_call(Swap("k1", "v2")) == "SWAP k1 v2"
    assert encode_call(Get("k1")) == "GET k1"
    assert encode_call(Scan("a", "z")) == "SCAN a z"
    with pytest.raises(TypeError):
        encode_call("GET k1")


@pytest.mark.parametrize(
    "line, op, found, value",
    [
        ("PUT k1 found", "PUT", True, None),
        ("PUT k1 not_found", "PUT", False, None),
        ("GET k1 null", "GET", False, None),
        ("GET k1 hello_world", "GET", True, "hello_world"),
        ("SWAP k1 old_value", "SWAP", True, "old_value"),
        ("SCAN a z BEGIN", "SCAN", True, "z"),
    ],
)
def test_decode_response(line, op, found, value):
    response = decode_response(line)
    assert (response.op, response.key, response.found, response.value) == (
        op,
        "k1" if op != "SCAN" else "a",
        found,
        value,
    )


@pytest.mark.parametrize("line", ["", "SCAN END", "hello", "DELETE k1 found", "SCAN a z"])
def test_decode_response_ignores_noise(line):
    assert decode_response(line) is None


def test_round_trip_against_client_process(client):
    client.send_call(Put("user1_field0", "alpha"))
    assert client.await_response(5).found is False

    client.send_call(Swap("user1_field0", "beta"))
    swapped = client.await_response(5)
    assert (swapped.op, swapped.value) == ("SWAP", "alpha")

    client.send_call(Put("user2_field0", "gamma"))
    client.await_response(5)

    client.send_call(Get("user1_field0"))
    assert client.await_response(5).value == "beta"

    client.send_call(Scan("user0", "zzzzzzzz"))
    scanned = client.await_response(5)
    assert scanned.pairs == [("user1_field0", "beta"), ("user2_field0", "gamma")]


def test_silent_client_times_out(fake_client_script):
    proc = ClientProc([str(fake_client_script), "--silent"], command=sys.executable)
    try:
        proc.send_call(Get("k"))
        with pytest.raises(ResponseTimeout):
            proc.await_response(0.2)
    finally:
        proc.stop()


def test_closed_output_raises_channel_closed(client):
    client.stop()

    with pytest.raises(ChannelClosed):
        client.await_response(5)
    with pytest.raises(ChannelClosed):
        client.await_response(5)


def test_send_after_stop_is_rejected(client):
    client.stop()
    client.stop()

    with pytest.raises(ClientError):
        client.send_call(Get("k"))


def test_launch_failure_raises_client_error(tmp_path):
    with pytest.raises(ClientError):
        ClientProc([], command=str(tmp_path / "no-such-client"))


def test_empty_values_keep_three_fields():
    assert encode_call(Put("k1", "")) == "PUT k1 _"
    assert encode_call(Swap("k1", "")) == "SWAP k1 _"


def test_empty_insert_value_gets_a_response(client):
    translation = interpret("INSERT usertable user1 [ ]", KnownKeySet())
    assert translation.call == Put("usertable_user1", "")

    client.send_call(translation.call)
    response = client.await_response(5)

    assert (response.op, response.key, response.found) == ("PUT", "usertable_user1", False)
    client.send_call(Get("usertable_user1"))
    assert client.await_response(5).value == "_"
