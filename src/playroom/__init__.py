"""
Playroom - 多人回合制小游戏服务器

A multiplayer room server that runs UNO and Tic-Tac-Toe matches with
server-side authority over rules, turn order and hidden hands.
"""

__version__ = "0.1.0"
__author__ = "Playroom Team"
__license__ = "MIT"

# 导出主要组件
from . import client, server, shared

__all__ = ["client", "server", "shared", "__version__"]
