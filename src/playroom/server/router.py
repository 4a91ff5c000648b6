"""
会话路由

- SessionStore: 房间 id -> 对局会话，每个房间至多一个会话
- SessionRouter: 创建/结束对局，按事件名把玩家动作分发给房间内的会话，
  并通过传输层把会话产生的通知发送出去

传输层只需提供三个方法：
- send_to_player(player_id, message)
- broadcast_room(room_id, message)
- room_members(room_id) -> List[player_id]
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from playroom.shared.constants import (
    ERR_SESSION_NOT_FOUND,
    ERR_UNKNOWN_GAME,
    ERR_WRONG_STATE,
    GAME_EVENT_PREFIXES,
    GAME_TICTACTOE,
    GAME_UNO,
    MSG_ERROR,
    MSG_GAME_ENDED,
    MSG_GAME_STARTED,
    MSG_TTT_LEAVE,
)
from playroom.shared.protocols import Message

from .game import GameError, GameSession, Notification, TicTacToeGame, UnoGame
from .game.base import parse_players

logger = logging.getLogger(__name__)

GAME_FACTORIES: Dict[str, Callable[[str], GameSession]] = {
    GAME_UNO: UnoGame,
    GAME_TICTACTOE: TicTacToeGame,
}


class SessionStore:
    """房间到对局会话的映射，同一房间同一时刻只允许一个会话"""

    def __init__(self):
        self._sessions: Dict[str, GameSession] = {}

    def create(self, room_id: str, session: GameSession) -> GameSession:
        if room_id in self._sessions:
            raise GameError(ERR_WRONG_STATE, "A game is already in progress in this room.")
        self._sessions[room_id] = session
        return session

    def get(self, room_id: str) -> Optional[GameSession]:
        return self._sessions.get(room_id)

    def delete(self, room_id: str) -> Optional[GameSession]:
        return self._sessions.pop(room_id, None)

    def rooms(self) -> List[str]:
        return list(self._sessions)

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)


class SessionRouter:
    """把玩家动作路由到房间内的对局，并转发对局产生的通知"""

    def __init__(self, store: SessionStore, transport: Any, factories: Optional[Dict[str, Callable]] = None):
        self.store = store
        self.transport = transport
        self.factories = dict(factories or GAME_FACTORIES)

    def start_game(
        self, room_id: str, game_type: str, players, actor_id: Optional[str] = None
    ) -> List[Notification]:
        """创建并开始一局游戏；失败时不留下会话"""
        try:
            factory = self.factories.get(game_type)
            if factory is None:
                raise GameError(ERR_UNKNOWN_GAME, f"Unknown game: {game_type}")
            if room_id in self.store:
                raise GameError(ERR_WRONG_STATE, "A game is already in progress in this room.")
            session = factory(room_id)
            notes = session.start(players)
            self.store.create(room_id, session)
        except GameError as e:
            return self._reject(actor_id, e)

        logger.info(f"[Router] 房间 {room_id} 开始 {game_type}，{len(players)} 名玩家")
        started = Notification(MSG_GAME_STARTED, {"game": game_type, "players": parse_players(players)})
        notes = [started] + notes
        self.relay(room_id, session, notes)
        return notes

    def dispatch(
        self, room_id: str, player_id: str, event: str, data: Optional[Dict[str, Any]] = None
    ) -> List[Notification]:
        """按事件前缀找到当前会话并执行动作"""
        session = self.store.get(room_id)
        game_type = GAME_EVENT_PREFIXES.get(event.split(":", 1)[0])
        if session is None or session.game_type != game_type:
            return self._reject(player_id, GameError(ERR_SESSION_NOT_FOUND, "No such game is active in this room."))

        notes = session.apply(player_id, event, data)
        self.relay(room_id, session, notes)
        if session.is_over:
            self.store.delete(room_id)
            logger.info(f"[Router] 房间 {room_id} 的 {session.game_type} 会话已结束并移除")
        return notes

    def end_game(self, room_id: str, reason: str = "") -> bool:
        """显式结束房间内的对局"""
        session = self.store.delete(room_id)
        if session is None:
            return False
        logger.info(f"[Router] 房间 {room_id} 的 {session.game_type} 被终止: {reason}")
        self.transport.broadcast_room(
            room_id, Message(MSG_GAME_ENDED, {"game": session.game_type, "message": reason})
        )
        return True

    def player_left(self, room_id: str, player_id: str, name: Optional[str] = None) -> List[Notification]:
        """玩家离开房间：井字棋让出座位；UNO 无法缺人继续，直接结束"""
        session = self.store.get(room_id)
        if session is None or not session.has_player(player_id):
            return []
        if session.game_type == GAME_TICTACTOE:
            notes = session.apply(player_id, MSG_TTT_LEAVE)
            self.relay(room_id, session, notes)
            if session.is_over:
                self.store.delete(room_id)
            return notes
        self.end_game(room_id, f"{name or player_id} left. The game has ended.")
        return []

    def relay(self, room_id: str, session: GameSession, notes: List[Notification]) -> None:
        """通过传输层发送通知；完整状态按接收者逐个定制"""
        for note in notes:
            if note.tailored:
                targets = [note.to] if note.to else self.transport.room_members(room_id)
                for pid in targets:
                    self.transport.send_to_player(pid, Message(note.type, session.snapshot_for(pid)))
            elif note.to:
                self.transport.send_to_player(note.to, note.to_message())
            else:
                self.transport.broadcast_room(room_id, note.to_message())

    def _reject(self, actor_id: Optional[str], error: GameError) -> List[Notification]:
        note = Notification(MSG_ERROR, error.to_dict(), to=actor_id)
        logger.debug(f"[Router] 拒绝请求 from {actor_id}: {error.kind}")
        if actor_id:
            self.transport.send_to_player(actor_id, note.to_message())
        return [note]
