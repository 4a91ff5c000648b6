"""
常量定义

定义服务器、客户端与游戏引擎共用的各种常量。
"""

# 网络配置
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 5555
BUFFER_SIZE = 4096

# 房间配置
MAX_ROOM_MEMBERS = 10

# 游戏类型
GAME_UNO = "uno"
GAME_TICTACTOE = "tictactoe"

# UNO 配置
UNO_MIN_PLAYERS = 2
UNO_MAX_PLAYERS = 10
UNO_HAND_SIZE = 7
UNO_DECK_SIZE = 108
UNO_FORGOT_PENALTY = 2

# 井字棋配置
TTT_PLAYERS = 2
TTT_CELLS = 9

# 生命周期状态
STATUS_WAITING = "waiting"
STATUS_PLAYING = "playing"
STATUS_FINISHED = "finished"  # UNO 回合结束
STATUS_ENDED = "ended"  # 井字棋回合结束

# 消息类型 - 房间/连接
MSG_CONNECT = "connect"
MSG_DISCONNECT = "disconnect"
MSG_JOIN_ROOM = "join_room"
MSG_CREATE_ROOM = "create_room"
MSG_LIST_ROOMS = "list_rooms"
MSG_LEAVE_ROOM = "leave_room"
MSG_ROOM_UPDATE = "room_update"  # 用于同步房间状态（成员列表等）
MSG_ROOMS_UPDATE = "rooms_update"
MSG_CHAT = "chat"
MSG_START_GAME = "start_game"
MSG_END_GAME = "end_game"
MSG_GAME_STARTED = "game_started"
MSG_GAME_ENDED = "game_ended"
MSG_ACK = "ack"
MSG_ERROR = "error"

# 消息类型 - UNO（客户端 -> 服务器）
MSG_UNO_PLAY_CARD = "uno:play_card"
MSG_UNO_DRAW_CARD = "uno:draw_card"
MSG_UNO_PASS_TURN = "uno:pass_turn"
MSG_UNO_DECLARE = "uno:declare_uno"
MSG_UNO_CHOOSE_COLOR = "uno:choose_color"
MSG_UNO_SYNC = "uno:sync"

# 消息类型 - UNO（服务器 -> 客户端）
MSG_UNO_STATE = "uno:state"
MSG_UNO_MESSAGE = "uno:message"
MSG_UNO_DRAWN_PLAYABLE = "uno:drawn_playable"
MSG_UNO_STATUS = "uno:uno_status"
MSG_UNO_DECLARED = "uno:uno_declared"
MSG_UNO_COLOR_CHOSEN = "uno:color_chosen"
MSG_UNO_DIRECTION = "uno:direction_changed"
MSG_UNO_DECK_REFILLED = "uno:deck_refilled"
MSG_UNO_ROUND_OVER = "uno:round_over"

# 消息类型 - 井字棋
MSG_TTT_MAKE_MOVE = "ttt:make_move"
MSG_TTT_REMATCH = "ttt:request_rematch"
MSG_TTT_LEAVE = "ttt:leave"
MSG_TTT_JOIN = "ttt:join"
MSG_TTT_SYNC = "ttt:sync"
MSG_TTT_STATE = "ttt:state"
MSG_TTT_ASSIGNED = "ttt:player_assigned"
MSG_TTT_ROUND_OVER = "ttt:round_over"

# 事件前缀 -> 游戏类型
GAME_EVENT_PREFIXES = {
    "uno": GAME_UNO,
    "ttt": GAME_TICTACTOE,
}

# 错误类型（仅发送给操作者本人）
ERR_NOT_YOUR_TURN = "NotYourTurn"
ERR_INVALID_PLAY = "InvalidPlay"
ERR_CARD_NOT_HELD = "CardNotHeld"
ERR_INVALID_MOVE = "InvalidMove"
ERR_NOT_A_PLAYER = "NotAPlayer"
ERR_INVALID_DECLARE = "InvalidDeclare"
ERR_NOT_AUTHORIZED = "NotAuthorized"
ERR_SESSION_NOT_FOUND = "SessionNotFound"
ERR_WRONG_STATE = "WrongLifecycleState"
ERR_PLAYER_COUNT = "InvalidPlayerCount"
ERR_UNKNOWN_GAME = "UnknownGame"
ERR_UNKNOWN_ACTION = "UnknownAction"
ERR_PERMISSION_DENIED = "PermissionDenied"
ERR_ROOM_NOT_FOUND = "RoomNotFound"
