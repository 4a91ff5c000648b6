"""
游戏错误

引擎内的所有校验失败都抛出 GameError，由会话边界（GameSession.apply）
捕获并转换为只发给操作者的错误通知，不会影响房间或其他会话。
"""


class GameError(Exception):
    """带错误类型的游戏异常"""

    def __init__(self, kind: str, message: str = ""):
        super().__init__(message or kind)
        self.kind = kind
        self.message = message or kind

    def to_dict(self) -> dict:
        return {"kind": self.kind, "msg": self.message}
