"""
游戏逻辑模块

实现各游戏的核心规则：牌堆、出牌/落子校验、回合顺序、胜负判定。
每局游戏是一个 GameSession，通过 apply() 同步处理玩家动作并返回通知。
"""

from .base import GameSession, Notification
from .cards import Card, build_deck, is_valid_play, shuffle
from .errors import GameError
from .tictactoe import TicTacToeGame, check_winner
from .uno import UnoGame, UnoPlayer

__all__ = [
    "Card",
    "GameError",
    "GameSession",
    "Notification",
    "TicTacToeGame",
    "UnoGame",
    "UnoPlayer",
    "build_deck",
    "check_winner",
    "is_valid_play",
    "shuffle",
]
