"""
网络通信模块

处理 Socket 连接、消息收发、协议解析，并作为 SessionRouter 的传输层：
- send_to_player: 发给单个玩家
- broadcast_room: 广播给房间内所有成员
- room_members: 房间成员列表

所有入站消息在同一把锁下逐条处理，一条消息（含状态修改与全部通知）
处理完毕后才会处理下一条，无论来自哪个房间。
"""

from __future__ import annotations

import itertools
import logging
import socket
import threading
from queue import SimpleQueue
from typing import Dict, List, Optional, Tuple

from playroom.shared.constants import (
	DEFAULT_HOST,
	DEFAULT_PORT,
	BUFFER_SIZE,
	ERR_PERMISSION_DENIED,
	ERR_ROOM_NOT_FOUND,
	ERR_UNKNOWN_ACTION,
	GAME_TICTACTOE,
	MSG_ACK,
	MSG_CHAT,
	MSG_CONNECT,
	MSG_CREATE_ROOM,
	MSG_DISCONNECT,
	MSG_END_GAME,
	MSG_JOIN_ROOM,
	MSG_LEAVE_ROOM,
	MSG_LIST_ROOMS,
	MSG_ROOM_UPDATE,
	MSG_ROOMS_UPDATE,
	MSG_START_GAME,
	TTT_PLAYERS,
)
from playroom.shared.protocols import Message, error_message
from playroom.server.room import Room
from playroom.server.router import SessionRouter, SessionStore

logger = logging.getLogger(__name__)


class ClientSession:
	"""客户端会话，封装连接与玩家信息"""

	def __init__(self, sid: int, conn: socket.socket, addr: Tuple[str, int]):
		self.sid = sid
		self.conn = conn
		self.addr = addr
		self.player_id: Optional[str] = None
		self.player_name: Optional[str] = None
		self.room_id: Optional[str] = None
		self.closed = False
		self._recv_buffer = bytearray()
		# 出站消息队列，由写线程发送，处理消息时不直接阻塞在 sendall 上
		self.outbox: SimpleQueue = SimpleQueue()

	def close(self) -> None:
		if self.closed:
			return
		self.closed = True
		self.outbox.put(None)
		try:
			self.conn.close()
		except OSError:
			pass


class NetworkServer:
	"""网络服务器，负责会话管理与消息路由"""

	def __init__(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT):
		self.host = host
		self.port = port
		self._sock: Optional[socket.socket] = None
		self._accept_thread: Optional[threading.Thread] = None
		self._running = threading.Event()
		# // 全局串行处理：同一时刻只处理一条消息
		self._lock = threading.RLock()
		self._sids = itertools.count(1)
		self._room_ids = itertools.count(1)
		self.sessions: Dict[int, ClientSession] = {}
		self.rooms: Dict[str, Room] = {}
		self.store = SessionStore()
		self.router = SessionRouter(self.store, self)

	# 传输层接口（供 SessionRouter 调用）
	def send_to_player(self, player_id: str, msg: Message) -> None:
		for s in list(self.sessions.values()):
			if s.player_id == player_id:
				self._send(s, msg)

	def broadcast_room(self, room_id: str, msg: Message, exclude: Optional[ClientSession] = None) -> None:
		"""向特定房间广播消息"""
		for s in list(self.sessions.values()):
			if s.room_id == room_id:
				if exclude and s is exclude:
					continue
				self._send(s, msg)

	def room_members(self, room_id: str) -> List[str]:
		room = self.rooms.get(room_id)
		return list(room.players) if room else []

	def _rooms_snapshot(self) -> list:
		"""构建当前房间的简要列表快照。"""
		rooms = []
		for rid, r in self.rooms.items():
			session = self.store.get(rid)
			rooms.append({
				"room_id": rid,
				"name": r.name,
				"player_count": len(r.players),
				"game": session.game_type if session else None,
			})
		return rooms

	def broadcast_rooms_update(self) -> None:
		"""向所有连接广播房间列表更新。"""
		payload = {"rooms": self._rooms_snapshot()}
		for s in list(self.sessions.values()):
			self._send(s, Message(MSG_ROOMS_UPDATE, payload))

	def broadcast_room_state(self, room_id: str) -> None:
		"""向房间广播成员名单与当前对局类型"""
		room = self.rooms.get(room_id)
		if room is None:
			return
		session = self.store.get(room_id)
		state = room.get_public_state(
			game=session.game_type if session else None,
			game_status=session.status if session else None,
		)
		self.broadcast_room(room_id, Message(MSG_ROOM_UPDATE, state))

	# 服务器生命周期
	def start(self) -> None:
		"""启动服务器并进入 Accept 循环"""
		self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
		# // 允许快速重启服务
		self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
		self._sock.bind((self.host, self.port))
		# // 端口为 0 时由系统分配
		self.port = self._sock.getsockname()[1]
		self._sock.listen(32)
		self._running.set()
		self._accept_thread = threading.Thread(target=self._accept_loop, name="accept-loop", daemon=True)
		self._accept_thread.start()
		logger.info(f"服务器已启动: {self.host}:{self.port}")

	def stop(self) -> None:
		"""停止服务器并关闭所有会话"""
		self._running.clear()
		try:
			if self._sock:
				# // 触发 accept 退出
				try:
					self._sock.shutdown(socket.SHUT_RDWR)
				except OSError:
					pass
				self._sock.close()
		finally:
			self._sock = None
		# // 关闭所有客户端连接
		with self._lock:
			for sess in list(self.sessions.values()):
				sess.close()
			self.sessions.clear()

	# 接入与会话线程
	def _accept_loop(self) -> None:
		"""Accept 新连接并为其创建会话线程"""
		while self._running.is_set():
			try:
				conn, addr = self._sock.accept()  # type: ignore[union-attr]
			except OSError:
				# // 套接字已关闭或出错，退出循环
				break
			sess = ClientSession(next(self._sids), conn, addr)
			with self._lock:
				self.sessions[sess.sid] = sess
			logger.info(f"客户端连接: {addr}")
			threading.Thread(target=self._writer_loop, args=(sess,), daemon=True).start()
			t = threading.Thread(target=self._session_loop, args=(sess,), daemon=True)
			t.start()

	def _session_loop(self, sess: ClientSession) -> None:
		"""单会话收发循环：按行（\\n）读取 JSON 消息并路由"""
		conn = sess.conn
		try:
			while self._running.is_set() and not sess.closed:
				data = conn.recv(BUFFER_SIZE)
				if not data:
					break
				sess._recv_buffer.extend(data)
				# // 简单分包：按换行符划分消息
				while True:
					try:
						idx = sess._recv_buffer.index(ord("\n"))
					except ValueError:
						break
					raw = bytes(sess._recv_buffer[:idx])
					del sess._recv_buffer[: idx + 1]
					self._handle_raw_message(sess, raw)
		except OSError:
			pass
		except Exception:
			logger.error(f"会话处理异常: {sess.addr}", exc_info=True)
		finally:
			self._on_disconnect(sess)

	# 消息处理
	def _handle_raw_message(self, sess: ClientSession, raw: bytes) -> None:
		"""原始字节消息 -> JSON -> Message 并路由"""
		try:
			text = raw.decode("utf-8", errors="replace")
			msg = Message.from_json(text)
		except ValueError:
			# // 非法消息，忽略
			logger.warning(f"忽略非法消息 from {sess.addr}")
			return
		with self._lock:
			self._route_message(sess, msg)

	def _route_message(self, sess: ClientSession, msg: Message) -> None:
		"""根据消息类型路由到对应处理函数"""
		t = msg.type
		data = msg.data
		logger.info(f"收到消息: type={t}, from={sess.player_name or sess.addr}")

		if t == MSG_CONNECT:
			# // 注册玩家，要求 data: {player_id, name}
			player_id = str(data.get("player_id") or f"{sess.addr[0]}:{sess.addr[1]}")
			# // 同一 player_id 只允许一个在线连接
			if any(s is not sess and s.player_id == player_id for s in self.sessions.values()):
				logger.warning(f"拒绝重复的 player_id: {player_id} from {sess.addr}")
				self._send(sess, error_message(ERR_PERMISSION_DENIED, "Player id already in use"))
				return
			if sess.player_id and sess.player_id != player_id:
				# // 换身份前先离开原房间
				self._leave_current_room(sess)
			sess.player_id = player_id
			sess.player_name = str(data.get("name") or f"Player-{sess.addr[1]}")
			self._send(sess, Message(MSG_ACK, {"ok": True, "event": MSG_CONNECT, "player_id": sess.player_id}))

		elif t == MSG_DISCONNECT:
			self._on_disconnect(sess)

		elif not sess.player_id:
			self._send(sess, error_message(ERR_PERMISSION_DENIED, "Connect first"))

		elif t == MSG_CREATE_ROOM:
			# 创建房间并自动加入
			self._leave_current_room(sess)
			room_id = str(next(self._room_ids))
			room = Room(room_id, data.get("name"))
			self.rooms[room_id] = room
			room.add_player(sess.player_id, sess.player_name)
			sess.room_id = room_id
			self._send(sess, Message(MSG_ACK, {"ok": True, "event": MSG_CREATE_ROOM, "room_id": room_id}))
			self.broadcast_room_state(room_id)
			# 广播房间列表更新，便于其他客户端立刻看到新房间
			self.broadcast_rooms_update()

		elif t == MSG_LIST_ROOMS:
			self._send(sess, Message(MSG_ACK, {"ok": True, "event": MSG_LIST_ROOMS, "rooms": self._rooms_snapshot()}))

		elif t == MSG_JOIN_ROOM:
			target_room_id = str(data.get("room_id"))
			room = self.rooms.get(target_room_id)
			if room is None:
				self._send(sess, error_message(ERR_ROOM_NOT_FOUND, "Room not found"))
				return
			if sess.room_id != target_room_id:
				self._leave_current_room(sess)
			if not room.add_player(sess.player_id, sess.player_name):
				self._send(sess, error_message(ERR_PERMISSION_DENIED, "Room is full"))
				return
			sess.room_id = target_room_id
			self._send(sess, Message(MSG_ACK, {"ok": True, "event": MSG_JOIN_ROOM, "room_id": target_room_id}))
			self.broadcast_room_state(target_room_id)
			self.broadcast_rooms_update()

		elif t == MSG_LEAVE_ROOM:
			self._leave_current_room(sess)
			self._send(sess, Message(MSG_ACK, {"ok": True, "event": MSG_LEAVE_ROOM}))

		elif t == MSG_CHAT:
			if sess.room_id:
				payload = {
					"by": sess.player_id,
					"by_name": sess.player_name,
					"text": str(data.get("text") or ""),
				}
				self.broadcast_room(sess.room_id, Message(MSG_CHAT, payload))

		elif t == MSG_START_GAME:
			room = self._current_room(sess)
			if room is None:
				return
			if room.owner_id != sess.player_id:
				self._send(sess, error_message(ERR_PERMISSION_DENIED, "Only the host can start a game."))
				return
			# 房间成员按加入顺序入局；井字棋只让前两位入座，其余成员观战
			game = str(data.get("game"))
			players = room.members()
			if game == GAME_TICTACTOE:
				players = players[:TTT_PLAYERS]
			self.router.start_game(room.room_id, game, players, actor_id=sess.player_id)
			self.broadcast_room_state(room.room_id)
			self.broadcast_rooms_update()

		elif t == MSG_END_GAME:
			room = self._current_room(sess)
			if room is None:
				return
			if self.router.end_game(room.room_id, f"{sess.player_name} returned to the lobby, ending the game."):
				self.broadcast_room_state(room.room_id)
				self.broadcast_rooms_update()

		elif ":" in t:
			# 游戏内动作交给 SessionRouter
			room = self._current_room(sess)
			if room is None:
				return
			self.router.dispatch(room.room_id, sess.player_id, t, data)
			if room.room_id not in self.store:
				self.broadcast_room_state(room.room_id)

		else:
			self._send(sess, error_message(ERR_UNKNOWN_ACTION, f"unknown type: {t}"))

	def _current_room(self, sess: ClientSession) -> Optional[Room]:
		room = self.rooms.get(sess.room_id) if sess.room_id else None
		if room is None:
			self._send(sess, error_message(ERR_ROOM_NOT_FOUND, "Room not found"))
		return room

	def _leave_current_room(self, sess: ClientSession) -> None:
		"""离开当前房间，必要时结束对局并清理空房间"""
		room_id = sess.room_id
		if not room_id or room_id not in self.rooms:
			sess.room_id = None
			return
		room = self.rooms[room_id]
		sess.room_id = None
		if sess.player_id:
			room.remove_player(sess.player_id)
			self.router.player_left(room_id, sess.player_id, sess.player_name)
		if not room.players:
			self.store.delete(room_id)
			del self.rooms[room_id]
		else:
			self.broadcast_room_state(room_id)
		# 广播房间列表更新（人数变化或房间清理）
		self.broadcast_rooms_update()

	# 发送
	def _send(self, sess: ClientSession, msg: Message) -> None:
		"""放入会话的出站队列，不在持锁时阻塞"""
		if sess.closed:
			return
		sess.outbox.put(msg.to_json() + "\n")

	def _writer_loop(self, sess: ClientSession) -> None:
		"""逐条发送出站队列；慢客户端只会阻塞自己的写线程"""
		while True:
			text = sess.outbox.get()
			if text is None:
				break
			try:
				sess.conn.sendall(text.encode("utf-8"))
			except OSError:
				self._on_disconnect(sess)
				break

	# 断开清理
	def _on_disconnect(self, sess: ClientSession) -> None:
		with self._lock:
			if self.sessions.pop(sess.sid, None) is None:
				return
			logger.info(f"客户端断开: {sess.player_name or sess.addr}")
			sess.close()
			self._leave_current_room(sess)


__all__ = [
	"ClientSession",
	"NetworkServer",
]
