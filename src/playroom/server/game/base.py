"""
游戏会话基类

UNO 与井字棋两种会话共享同一组能力：
- apply: 按事件名执行动作并返回通知列表（同步命令处理）
- snapshot_for: 为指定接收者生成定制视图
- status: 生命周期状态
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from playroom.shared.constants import ERR_UNKNOWN_ACTION, MSG_ERROR
from playroom.shared.protocols import Message

from .errors import GameError

logger = logging.getLogger(__name__)


@dataclass
class Notification:
    """引擎产生的出站通知。

    - to 为 None: 广播到整个房间
    - to 为玩家 id: 只发给该玩家
    - tailored 为 True: 完整状态广播，由路由层按接收者调用 snapshot_for 逐个生成
    """

    type: str
    data: Dict[str, Any] = field(default_factory=dict)
    to: Optional[str] = None
    tailored: bool = False

    def to_message(self) -> Message:
        return Message(self.type, self.data)

    @property
    def is_error(self) -> bool:
        return self.type == MSG_ERROR


def parse_players(players) -> List[Dict[str, str]]:
    """把 (id, name) 元组或 {"id", "name"} 字典统一为字典列表"""
    parsed = []
    for p in players:
        if isinstance(p, dict):
            pid, name = p.get("id"), p.get("name")
        else:
            pid, name = p
        pid = str(pid)
        parsed.append({"id": pid, "name": str(name or pid)})
    return parsed


class GameSession:
    """单个房间内的一局游戏"""

    game_type = ""
    state_event = ""

    def __init__(self, room_id: str):
        self.room_id = room_id
        self.status = ""
        self._outbox: List[Notification] = []

    # 子类实现
    def _handlers(self) -> Dict[str, Callable[[str, Dict[str, Any]], List[Notification]]]:
        raise NotImplementedError

    def snapshot_for(self, player_id: Optional[str]) -> Dict[str, Any]:
        raise NotImplementedError

    def has_player(self, player_id: str) -> bool:
        raise NotImplementedError

    @property
    def is_over(self) -> bool:
        """会话是否应当被路由层丢弃"""
        return False

    # 命令处理
    def apply(self, player_id: str, event: str, data: Optional[Dict[str, Any]] = None) -> List[Notification]:
        """执行一个玩家动作，校验失败时返回只发给操作者的错误通知"""
        handler = self._handlers().get(event)
        try:
            if handler is None:
                raise GameError(ERR_UNKNOWN_ACTION, f"unknown action: {event}")
            return handler(player_id, data or {})
        except GameError as e:
            self._outbox.clear()
            logger.debug(f"[{self.game_type} {self.room_id}] 拒绝动作 {event} from {player_id}: {e.kind}")
            return [Notification(MSG_ERROR, e.to_dict(), to=player_id)]

    # 通知收集
    def _emit(self, msg_type: str, data: Optional[Dict[str, Any]] = None, to: Optional[str] = None) -> None:
        self._outbox.append(Notification(msg_type, data or {}, to=to))

    def _emit_state(self) -> None:
        self._outbox.append(Notification(self.state_event, tailored=True))

    def _flush(self) -> List[Notification]:
        out, self._outbox = self._outbox, []
        return out

    def __repr__(self) -> str:
        return f"<{type(self).__name__} room={self.room_id} status={self.status}>"
