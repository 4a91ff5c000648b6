"""
井字棋游戏逻辑

3x3 棋盘、X/O 座位分配、轮次、胜负判定与再来一局协商。
"""

import logging
from typing import Any, Dict, List, Optional, Set, Tuple

from playroom.shared.constants import (
    ERR_INVALID_MOVE,
    ERR_NOT_A_PLAYER,
    ERR_NOT_YOUR_TURN,
    ERR_PLAYER_COUNT,
    ERR_WRONG_STATE,
    GAME_TICTACTOE,
    MSG_TTT_ASSIGNED,
    MSG_TTT_JOIN,
    MSG_TTT_LEAVE,
    MSG_TTT_MAKE_MOVE,
    MSG_TTT_REMATCH,
    MSG_TTT_ROUND_OVER,
    MSG_TTT_STATE,
    MSG_TTT_SYNC,
    STATUS_ENDED,
    STATUS_PLAYING,
    STATUS_WAITING,
    TTT_CELLS,
    TTT_PLAYERS,
)

from .base import GameSession, Notification, parse_players
from .errors import GameError

logger = logging.getLogger(__name__)

X = "X"
O = "O"  # noqa: E741
DRAW = "draw"
SPECTATOR = "spectator"
MARKS = (X, O)

WINNING_LINES: Tuple[Tuple[int, int, int], ...] = (
    (0, 1, 2), (3, 4, 5), (6, 7, 8),  # 行
    (0, 3, 6), (1, 4, 7), (2, 5, 8),  # 列
    (0, 4, 8), (2, 4, 6),  # 对角线
)


def check_winner(board: List[Optional[str]]) -> Tuple[Optional[str], Optional[List[int]]]:
    """返回 (winner, line)。winner 为 X/O/draw/None，line 为获胜的三个格子"""
    for a, b, c in WINNING_LINES:
        if board[a] and board[a] == board[b] == board[c]:
            return board[a], [a, b, c]
    if all(cell is not None for cell in board):
        return DRAW, None
    return None, None


def other_mark(mark: str) -> str:
    return O if mark == X else X


class TicTacToeGame(GameSession):
    """管理单个房间内的井字棋对局"""

    game_type = GAME_TICTACTOE
    state_event = MSG_TTT_STATE

    def __init__(self, room_id: str):
        super().__init__(room_id)
        self.board: List[Optional[str]] = [None] * TTT_CELLS
        self.seats: Dict[str, Optional[str]] = {X: None, O: None}
        self.names: Dict[str, str] = {}
        self.turn = X
        self.starting_mark = X
        self.winner: Optional[str] = None
        self.winning_line: Optional[List[int]] = None
        self.rematch_requests: Set[str] = set()
        self.status = STATUS_WAITING

    def _handlers(self):
        return {
            MSG_TTT_MAKE_MOVE: lambda pid, d: self.make_move(pid, d.get("index")),
            MSG_TTT_REMATCH: lambda pid, d: self.request_rematch(pid),
            MSG_TTT_LEAVE: lambda pid, d: self.leave(pid),
            MSG_TTT_JOIN: lambda pid, d: self.join(pid, d.get("name")),
            MSG_TTT_SYNC: lambda pid, d: self.sync(pid),
        }

    # --- 查询 ---

    def mark_of(self, player_id: Optional[str]) -> Optional[str]:
        for mark in MARKS:
            if player_id is not None and self.seats[mark] == player_id:
                return mark
        return None

    def has_player(self, player_id: str) -> bool:
        return self.mark_of(player_id) is not None

    @property
    def is_empty(self) -> bool:
        return self.seats[X] is None and self.seats[O] is None

    @property
    def is_over(self) -> bool:
        return self.is_empty

    # --- 动作 ---

    def start(self, players) -> List[Notification]:
        """需要恰好两名玩家，第一位执 X 先手"""
        if self.status != STATUS_WAITING:
            raise GameError(ERR_WRONG_STATE, "The game has already started.")
        parsed = parse_players(players)
        if len(parsed) != TTT_PLAYERS or parsed[0]["id"] == parsed[1]["id"]:
            raise GameError(ERR_PLAYER_COUNT, f"Tic-Tac-Toe requires exactly {TTT_PLAYERS} players.")
        for mark, p in zip(MARKS, parsed):
            self.seats[mark] = p["id"]
            self.names[p["id"]] = p["name"]
        self._new_round(X)
        logger.info(f"[TTT {self.room_id}] 开局: X={parsed[0]['name']}, O={parsed[1]['name']}")
        self._emit_state()
        return self._flush()

    def join(self, player_id: str, name: Optional[str] = None) -> List[Notification]:
        """入座空位；两个座位都有人且处于等待状态时开始新的一局"""
        mark = self.mark_of(player_id)
        if mark is None:
            for candidate in MARKS:
                if self.seats[candidate] is None:
                    self.seats[candidate] = player_id
                    mark = candidate
                    break
        if mark is not None:
            self.names[player_id] = str(name or self.names.get(player_id) or player_id)
        self._emit(MSG_TTT_ASSIGNED, {"mark": mark or SPECTATOR}, to=player_id)

        if self.seats[X] and self.seats[O] and self.status == STATUS_WAITING:
            self._new_round(X)
            logger.info(f"[TTT {self.room_id}] 双方入座，开始新的一局")
        self._emit_state()
        return self._flush()

    def make_move(self, player_id: str, index: Any) -> List[Notification]:
        if self.status != STATUS_PLAYING:
            raise GameError(ERR_WRONG_STATE, "Game not in playing state.")
        mark = self.mark_of(player_id)
        if mark is None:
            raise GameError(ERR_NOT_A_PLAYER, "Spectators cannot move.")
        if mark != self.turn:
            raise GameError(ERR_NOT_YOUR_TURN, "Not your turn.")
        if (
            not isinstance(index, int)
            or isinstance(index, bool)
            or not 0 <= index < TTT_CELLS
            or self.board[index] is not None
        ):
            raise GameError(ERR_INVALID_MOVE, "Invalid move.")

        self.board[index] = mark
        winner, line = check_winner(self.board)
        if winner:
            self.status = STATUS_ENDED
            self.winner = winner
            self.winning_line = line
            logger.info(f"[TTT {self.room_id}] 对局结束，结果: {winner}")
            self._emit_state()
            self._emit(MSG_TTT_ROUND_OVER, {"winner": winner, "winning_line": line})
            return self._flush()

        self.turn = other_mark(self.turn)
        self._emit_state()
        return self._flush()

    def request_rematch(self, player_id: str) -> List[Notification]:
        """双方都请求后重置棋盘，由上一局后手的一方先手"""
        if self.mark_of(player_id) is None:
            raise GameError(ERR_NOT_A_PLAYER, "Spectators cannot request a rematch.")
        if self.status != STATUS_ENDED:
            raise GameError(ERR_WRONG_STATE, "The round has not ended yet.")
        self.rematch_requests.add(player_id)
        if all(self.seats[m] in self.rematch_requests for m in MARKS):
            self._new_round(other_mark(self.starting_mark))
            logger.info(f"[TTT {self.room_id}] 再来一局，{self.starting_mark} 先手")
        self._emit_state()
        return self._flush()

    def leave(self, player_id: str) -> List[Notification]:
        """让出座位，对局回到等待状态"""
        mark = self.mark_of(player_id)
        if mark is None:
            raise GameError(ERR_NOT_A_PLAYER, "You are not seated in this game.")
        self.seats[mark] = None
        self.rematch_requests.discard(player_id)
        self.status = STATUS_WAITING
        logger.info(f"[TTT {self.room_id}] 玩家 {self.names.get(player_id, player_id)} 离开 {mark} 座位")
        if not self.is_empty:
            self._emit_state()
        return self._flush()

    def sync(self, player_id: str) -> List[Notification]:
        return [Notification(self.state_event, to=player_id, tailored=True)]

    def _new_round(self, starting_mark: str) -> None:
        self.board = [None] * TTT_CELLS
        self.starting_mark = starting_mark
        self.turn = starting_mark
        self.winner = None
        self.winning_line = None
        self.rematch_requests.clear()
        self.status = STATUS_PLAYING

    # --- 视图 ---

    def snapshot_for(self, player_id: Optional[str]) -> Dict[str, Any]:
        return {
            "room_id": self.room_id,
            "game": self.game_type,
            "board": list(self.board),
            "players": {
                mark: (self.names.get(pid, pid) if pid else None) for mark, pid in self.seats.items()
            },
            "my_mark": self.mark_of(player_id) or SPECTATOR,
            "turn": self.turn,
            "status": self.status,
            "winner": self.winner,
            "winning_line": self.winning_line,
            "rematch_count": len(self.rematch_requests),
        }
