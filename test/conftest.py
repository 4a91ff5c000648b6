"""
Pytest configuration and shared fixtures for the playroom server.
"""

import os
import random
import sys

import pytest

# Add src to path for testing
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from playroom.server.game.uno import UnoGame  # noqa: E402


class FakeTransport:
    """Records everything the router sends instead of writing to sockets."""

    def __init__(self, members=None):
        self.members = members or {}
        self.sent = []  # (player_id, Message)
        self.broadcasts = []  # (room_id, Message)

    def send_to_player(self, player_id, msg):
        self.sent.append((player_id, msg))

    def broadcast_room(self, room_id, msg):
        self.broadcasts.append((room_id, msg))

    def room_members(self, room_id):
        return list(self.members.get(room_id, []))

    def sent_to(self, player_id, msg_type=None):
        return [m for pid, m in self.sent if pid == player_id and (msg_type is None or m.type == msg_type)]


@pytest.fixture
def three_players():
    return [("p1", "Alice"), ("p2", "Bob"), ("p3", "Carol")]


@pytest.fixture
def two_players():
    return [("p1", "Alice"), ("p2", "Bob")]


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def uno_game(three_players):
    """A started three-player game with a fixed seed."""
    game = UnoGame("room-1", rng=random.Random(7))
    game.start(three_players)
    return game


def rig_uno(game, top, active_color=None, hands=None, draw_pile=None, current=0, direction=1):
    """Put a started UnoGame into a known position while keeping 108 cards in play.

    Cards not placed in hands, on the discard pile or in draw_pile go
    underneath the given discard top.
    """
    from playroom.server.game.cards import build_deck

    remaining = build_deck()
    placed = [top]
    for hand in (hands or {}).values():
        placed.extend(hand)
    placed.extend(draw_pile or [])
    for card in placed:
        remaining.remove(card)

    for player in game.players:
        player.hand = list((hands or {}).get(player.id, []))
        player.declared_uno = False
    if draw_pile is None:
        game.draw_pile = remaining
        game.discard_pile = [top]
    else:
        game.draw_pile = list(draw_pile)
        game.discard_pile = remaining + [top]
    game.active_color = active_color or top.color
    game.pending_color_player = None
    game.current_index = current
    game.direction = direction
    game.has_drawn = False
    return game


@pytest.fixture
def rig():
    return rig_uno
