from typing import Dict, List, Optional

from playroom.shared.constants import MAX_ROOM_MEMBERS


class Room:
    """
    房间类，只负责成员名单与房主。对局状态由 SessionRouter 管理。
    """

    def __init__(self, room_id: str, name: Optional[str] = None):
        self.room_id = room_id
        self.name = name or f"Room {room_id}"
        self.players: Dict[str, str] = {}  # player_id -> name，按加入顺序
        self.owner_id: Optional[str] = None

    def add_player(self, player_id: str, player_name: str) -> bool:
        """添加玩家到房间"""
        if player_id in self.players:
            return True
        if len(self.players) >= MAX_ROOM_MEMBERS:
            return False

        # 如果是第一个玩家，设为房主
        if not self.players:
            self.owner_id = player_id

        self.players[player_id] = player_name
        return True

    def remove_player(self, player_id: str) -> None:
        """从房间移除玩家"""
        if player_id not in self.players:
            return
        del self.players[player_id]

        # 如果房主离开，移交房主权限
        if self.owner_id == player_id:
            self.owner_id = next(iter(self.players), None)

    def members(self) -> List[Dict[str, str]]:
        return [{"id": pid, "name": name} for pid, name in self.players.items()]

    def get_public_state(self, game: Optional[str] = None, game_status: Optional[str] = None) -> dict:
        """获取房间的公开状态（用于广播给所有成员）"""
        return {
            "room_id": self.room_id,
            "name": self.name,
            "owner_id": self.owner_id,
            "players": self.members(),
            "game": game,
            "game_status": game_status,
        }
