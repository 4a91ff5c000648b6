"""
共享模块

存放客户端和服务器共用的代码，如常量、协议定义等。

组件说明：
- constants: 网络端口、游戏参数、消息类型与错误类型
- protocols: 基于 JSON 的消息格式（Message）

提示：
- 协议层约定按行分隔的 JSON 串，网络层直接透传 Message.to_json() + "\\n"
- 游戏内事件以游戏前缀区分，例如 "uno:play_card"、"ttt:make_move"
"""

from . import constants, protocols

__all__ = ["constants", "protocols"]
