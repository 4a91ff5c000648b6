"""
服务器端模块

负责处理客户端连接、房间管理与对局逻辑等服务器功能。

模块组成：
- game: UNO 与井字棋的对局状态机（牌堆、回合、胜负判定）
- router: 房间 -> 对局会话的存储与动作分发
- room: 房间成员名单与房主
- network: TCP 会话、消息路由与广播

使用方式：
- 入口参见 playroom/server/main.py，启动 NetworkServer
"""

from . import game, network, room, router

__all__ = ["game", "network", "room", "router"]
