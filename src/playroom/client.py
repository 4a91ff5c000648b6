"""
简单的客户端网络封装：负责连接服务器、收发消息并提供事件队列。
"""
from __future__ import annotations

import socket
import threading
import time
import uuid
from queue import Empty, SimpleQueue
from typing import Any, Dict, List, Optional

from playroom.shared.constants import (
    BUFFER_SIZE,
    DEFAULT_HOST,
    DEFAULT_PORT,
    MSG_CHAT,
    MSG_CONNECT,
    MSG_CREATE_ROOM,
    MSG_END_GAME,
    MSG_JOIN_ROOM,
    MSG_LEAVE_ROOM,
    MSG_LIST_ROOMS,
    MSG_START_GAME,
    MSG_TTT_JOIN,
    MSG_TTT_LEAVE,
    MSG_TTT_MAKE_MOVE,
    MSG_TTT_REMATCH,
    MSG_TTT_SYNC,
    MSG_UNO_CHOOSE_COLOR,
    MSG_UNO_DECLARE,
    MSG_UNO_DRAW_CARD,
    MSG_UNO_PASS_TURN,
    MSG_UNO_PLAY_CARD,
    MSG_UNO_SYNC,
)
from playroom.shared.protocols import Message


class NetworkClient:
    """线程驱动的轻量客户端，收到的消息放入事件队列。"""

    def __init__(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> None:
        self.host = host
        self.port = port
        self.sock: Optional[socket.socket] = None
        self._recv_thread: Optional[threading.Thread] = None
        self._running = threading.Event()
        self._close_lock = threading.Lock()
        self._buf = bytearray()
        self.events: SimpleQueue[Message] = SimpleQueue()
        self.player_id: Optional[str] = None
        self.player_name: Optional[str] = None

    @property
    def connected(self) -> bool:
        return bool(self.sock) and self._running.is_set()

    def connect(self, player_name: str, player_id: Optional[str] = None) -> bool:
        """连接服务器并注册身份。"""
        if self.connected:
            return True
        self.player_id = player_id or str(uuid.uuid4())
        self.player_name = player_name or "Player"
        try:
            self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            # 设置连接超时
            self.sock.settimeout(5.0)
            self.sock.connect((self.host, self.port))
            self.sock.settimeout(None)
            self._running.set()
            self._recv_thread = threading.Thread(target=self._recv_loop, daemon=True)
            self._recv_thread.start()
            self._send(Message(MSG_CONNECT, {"player_id": self.player_id, "name": self.player_name}))
            return True
        except OSError:
            self.close()
            return False

    # 房间
    def create_room(self, room_name: str = "New Room") -> None:
        self._send(Message(MSG_CREATE_ROOM, {"name": room_name}))

    def join_room(self, room_id: str) -> None:
        self._send(Message(MSG_JOIN_ROOM, {"room_id": room_id}))

    def list_rooms(self) -> None:
        self._send(Message(MSG_LIST_ROOMS, {}))

    def leave_room(self) -> None:
        self._send(Message(MSG_LEAVE_ROOM, {}))

    def send_chat(self, text: str) -> None:
        if not text:
            return
        self._send(Message(MSG_CHAT, {"text": text}))

    def start_game(self, game: str) -> None:
        self._send(Message(MSG_START_GAME, {"game": game}))

    def end_game(self) -> None:
        self._send(Message(MSG_END_GAME, {}))

    # UNO
    def play_card(self, card: Dict[str, str], chosen_color: Optional[str] = None) -> None:
        payload: Dict[str, Any] = {"card": card}
        if chosen_color:
            payload["chosen_color"] = chosen_color
        self._send(Message(MSG_UNO_PLAY_CARD, payload))

    def draw_card(self) -> None:
        self._send(Message(MSG_UNO_DRAW_CARD, {}))

    def pass_turn(self) -> None:
        self._send(Message(MSG_UNO_PASS_TURN, {}))

    def declare_uno(self) -> None:
        self._send(Message(MSG_UNO_DECLARE, {}))

    def choose_color(self, color: str) -> None:
        self._send(Message(MSG_UNO_CHOOSE_COLOR, {"color": color}))

    def sync_uno(self) -> None:
        self._send(Message(MSG_UNO_SYNC, {}))

    # 井字棋
    def make_move(self, index: int) -> None:
        self._send(Message(MSG_TTT_MAKE_MOVE, {"index": index}))

    def request_rematch(self) -> None:
        self._send(Message(MSG_TTT_REMATCH, {}))

    def join_board(self) -> None:
        self._send(Message(MSG_TTT_JOIN, {"name": self.player_name}))

    def leave_board(self) -> None:
        self._send(Message(MSG_TTT_LEAVE, {}))

    def sync_board(self) -> None:
        self._send(Message(MSG_TTT_SYNC, {}))

    # 事件
    def drain_events(self) -> List[Message]:
        items: List[Message] = []
        while True:
            try:
                items.append(self.events.get_nowait())
            except Empty:
                break
        return items

    def wait_for(self, msg_type: str, timeout: float = 5.0) -> Optional[Message]:
        """阻塞等待指定类型的消息，期间收到的其他消息被丢弃"""
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            try:
                msg = self.events.get(timeout=max(0.0, deadline - time.monotonic()))
            except Empty:
                break
            if msg.type == msg_type:
                return msg
        return None

    def close(self) -> None:
        self._running.clear()
        # 先取走套接字，接收线程的 finally 再调用 close 时不会重复关闭
        with self._close_lock:
            sock, self.sock = self.sock, None
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        sock.close()

    # 内部方法
    def _send(self, msg: Message) -> None:
        sock = self.sock
        if not sock:
            return
        try:
            payload = msg.to_json() + "\n"
            sock.sendall(payload.encode("utf-8"))
        except OSError:
            self.close()

    def _recv_loop(self) -> None:
        sock = self.sock
        try:
            while self._running.is_set() and sock:
                data = sock.recv(BUFFER_SIZE)
                if not data:
                    break
                self._buf.extend(data)
                while True:
                    try:
                        idx = self._buf.index(ord("\n"))
                    except ValueError:
                        break
                    raw = bytes(self._buf[:idx])
                    del self._buf[: idx + 1]
                    self._handle_raw(raw)
        except OSError:
            pass
        finally:
            # 主动 close 时套接字已被取走，这里无需再关
            if self.sock is sock:
                self.close()

    def _handle_raw(self, raw: bytes) -> None:
        try:
            text = raw.decode("utf-8", errors="replace")
            self.events.put(Message.from_json(text))
        except ValueError:
            # 忽略无法解析的消息
            pass


__all__ = ["NetworkClient"]
