"""
通信协议

基于 JSON 的消息格式。每条消息形如 {"type": str, "data": dict}，
网络层按行分隔传输（Message.to_json() + "\\n"）。
"""

import json
from typing import Any, Dict, Optional

from .constants import MSG_ERROR


class Message:
    """网络消息"""

    def __init__(self, msg_type: str, data: Optional[Dict[str, Any]] = None):
        self.type = msg_type
        self.data = data or {}

    def to_json(self) -> str:
        return json.dumps({"type": self.type, "data": self.data}, ensure_ascii=False)

    @classmethod
    def from_json(cls, json_str: str) -> "Message":
        obj = json.loads(json_str)
        if not isinstance(obj, dict) or not isinstance(obj.get("type"), str):
            raise ValueError("message must be an object with a string 'type'")
        data = obj.get("data") or {}
        if not isinstance(data, dict):
            raise ValueError("message 'data' must be an object")
        return cls(obj["type"], data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Message):
            return NotImplemented
        return self.type == other.type and self.data == other.data

    def __repr__(self) -> str:
        return f"Message({self.type!r}, {self.data!r})"


def error_message(kind: str, msg: str) -> Message:
    """构造错误消息"""
    return Message(MSG_ERROR, {"kind": kind, "msg": msg})
