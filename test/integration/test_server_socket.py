"""
End-to-end tests: a real NetworkServer on a free port with socket clients.
"""

import json
import socket

import pytest

from playroom.client import NetworkClient
from playroom.server.network import NetworkServer
from playroom.shared.constants import (
    ERR_NOT_YOUR_TURN,
    ERR_PERMISSION_DENIED,
    ERR_ROOM_NOT_FOUND,
    GAME_TICTACTOE,
    GAME_UNO,
    MSG_ACK,
    MSG_CHAT,
    MSG_CREATE_ROOM,
    MSG_ERROR,
    MSG_GAME_STARTED,
    MSG_JOIN_ROOM,
    MSG_TTT_STATE,
    MSG_UNO_STATE,
)


def wait_matching(client, msg_type, pred=lambda m: True, timeout=5.0):
    while True:
        msg = client.wait_for(msg_type, timeout=timeout)
        assert msg is not None, f"timed out waiting for {msg_type}"
        if pred(msg):
            return msg


@pytest.fixture
def server():
    srv = NetworkServer("127.0.0.1", 0)
    srv.start()
    yield srv
    srv.stop()


@pytest.fixture
def clients(server):
    made = []

    def make(name, pid):
        c = NetworkClient("127.0.0.1", server.port)
        assert c.connect(name, pid)
        wait_matching(c, MSG_ACK)
        made.append(c)
        return c

    yield make
    for c in made:
        c.close()


@pytest.fixture
def room_pair(clients):
    alice = clients("Alice", "p1")
    bob = clients("Bob", "p2")
    alice.create_room("Fun")
    ack = wait_matching(alice, MSG_ACK, lambda m: m.data.get("event") == MSG_CREATE_ROOM)
    room_id = ack.data["room_id"]
    bob.join_room(room_id)
    wait_matching(bob, MSG_ACK, lambda m: m.data.get("event") == MSG_JOIN_ROOM)
    return alice, bob, room_id


def test_request_before_connect_is_refused(server):
    with socket.create_connection(("127.0.0.1", server.port), timeout=5) as sock:
        sock.sendall(b'{"type": "create_room", "data": {}}\n')
        line = sock.makefile("r", encoding="utf-8").readline()
    reply = json.loads(line)
    assert reply["type"] == MSG_ERROR
    assert reply["data"]["kind"] == ERR_PERMISSION_DENIED


def test_join_unknown_room(clients):
    alice = clients("Alice", "p1")
    alice.join_room("404")
    err = wait_matching(alice, MSG_ERROR)
    assert err.data["kind"] == ERR_ROOM_NOT_FOUND


def test_chat_reaches_room(room_pair):
    alice, bob, _ = room_pair
    alice.send_chat("hi")
    msg = wait_matching(bob, MSG_CHAT)
    assert msg.data == {"by": "p1", "by_name": "Alice", "text": "hi"}


def test_only_owner_can_start(room_pair):
    _, bob, _ = room_pair
    bob.start_game(GAME_TICTACTOE)
    err = wait_matching(bob, MSG_ERROR)
    assert err.data["kind"] == ERR_PERMISSION_DENIED


def test_tictactoe_over_sockets(room_pair):
    alice, bob, _ = room_pair
    alice.start_game(GAME_TICTACTOE)
    started = wait_matching(bob, MSG_GAME_STARTED)
    assert started.data["game"] == GAME_TICTACTOE

    assert wait_matching(alice, MSG_TTT_STATE).data["my_mark"] == "X"
    assert wait_matching(bob, MSG_TTT_STATE).data["my_mark"] == "O"

    bob.make_move(0)
    err = wait_matching(bob, MSG_ERROR)
    assert err.data["kind"] == ERR_NOT_YOUR_TURN

    alice.make_move(4)
    state = wait_matching(bob, MSG_TTT_STATE, lambda m: m.data["board"][4] == "X")
    assert state.data["turn"] == "O"


def test_uno_hands_stay_private(room_pair):
    alice, bob, _ = room_pair
    alice.start_game(GAME_UNO)
    a_state = wait_matching(alice, MSG_UNO_STATE)
    b_state = wait_matching(bob, MSG_UNO_STATE)

    assert len(a_state.data["my_hand"]) >= 7
    assert len(b_state.data["my_hand"]) >= 7
    for view in (a_state.data, b_state.data):
        assert [p["id"] for p in view["players"]] == ["p1", "p2"]
        assert all("hand" not in p for p in view["players"])
    bob_count = [p["card_count"] for p in a_state.data["players"] if p["id"] == "p2"][0]
    assert bob_count == len(b_state.data["my_hand"])


def test_duplicate_player_id_is_refused(server, room_pair):
    alice, bob, room_id = room_pair
    impostor = NetworkClient("127.0.0.1", server.port)
    try:
        assert impostor.connect("Mallory", "p1")
        err = wait_matching(impostor, MSG_ERROR)
        assert err.data["kind"] == ERR_PERMISSION_DENIED

        impostor.join_room(room_id)
        assert wait_matching(impostor, MSG_ERROR).data["kind"] == ERR_PERMISSION_DENIED

        alice.start_game(GAME_UNO)
        wait_matching(alice, MSG_UNO_STATE)
        wait_matching(bob, MSG_UNO_STATE)
        assert impostor.wait_for(MSG_UNO_STATE, timeout=0.5) is None
    finally:
        impostor.close()


def test_tictactoe_seats_first_two_members(clients, room_pair):
    alice, bob, room_id = room_pair
    carol = clients("Carol", "p3")
    carol.join_room(room_id)
    wait_matching(carol, MSG_ACK, lambda m: m.data.get("event") == MSG_JOIN_ROOM)

    alice.start_game(GAME_TICTACTOE)
    started = wait_matching(carol, MSG_GAME_STARTED)
    assert [p["id"] for p in started.data["players"]] == ["p1", "p2"]
    assert wait_matching(carol, MSG_TTT_STATE).data["my_mark"] == "spectator"
    assert wait_matching(bob, MSG_TTT_STATE).data["my_mark"] == "O"
