"""
Basic client tests.
"""

import json

from playroom.client import NetworkClient
from playroom.shared.constants import MSG_UNO_PLAY_CARD


class RecordingSocket:
    def __init__(self):
        self.data = b""

    def sendall(self, payload):
        self.data += payload

    def lines(self):
        return [json.loads(line) for line in self.data.decode("utf-8").splitlines()]


def test_play_card_payload():
    client = NetworkClient()
    client.sock = RecordingSocket()
    client.play_card({"color": "wild", "value": "wild"}, "red")
    assert client.sock.lines() == [
        {"type": MSG_UNO_PLAY_CARD, "data": {"card": {"color": "wild", "value": "wild"}, "chosen_color": "red"}}
    ]


def test_send_without_connection_is_noop():
    client = NetworkClient()
    client.make_move(3)
    assert not client.connected


def test_incoming_lines_become_events():
    client = NetworkClient()
    client._handle_raw(b'{"type": "ttt:state", "data": {"turn": "X"}}')
    client._handle_raw(b"garbage")
    events = client.drain_events()
    assert len(events) == 1
    assert events[0].type == "ttt:state"
    assert client.drain_events() == []


class ClosingSocket:
    def __init__(self, chunks=()):
        self.chunks = list(chunks)
        self.shutdowns = 0
        self.closes = 0

    def recv(self, size):
        return self.chunks.pop(0) if self.chunks else b""

    def shutdown(self, how):
        self.shutdowns += 1

    def close(self):
        self.closes += 1


def test_close_twice_closes_socket_once():
    client = NetworkClient()
    sock = ClosingSocket()
    client.sock = sock
    client._running.set()
    client.close()
    client.close()
    assert client.sock is None
    assert sock.closes == 1
    assert not client.connected


def test_receive_loop_without_socket_is_noop():
    client = NetworkClient()
    client._running.set()
    client._recv_loop()
    assert client.sock is None


def test_receive_loop_closes_on_server_hangup():
    client = NetworkClient()
    sock = ClosingSocket([b'{"type": "ack", "data": {}}\n'])
    client.sock = sock
    client._running.set()
    client._recv_loop()
    assert client.sock is None
    assert sock.closes == 1
    assert [m.type for m in client.drain_events()] == ["ack"]
