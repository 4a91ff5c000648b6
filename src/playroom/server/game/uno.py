"""
UNO 游戏逻辑

一个房间内的一局 UNO：摸牌堆、弃牌堆、手牌、出牌顺序、方向、当前颜色
以及 UNO 宣告。所有公开动作要么抛出 GameError 且不修改状态，要么修改
状态并返回本次产生的通知列表。
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from playroom.shared.constants import (
    ERR_CARD_NOT_HELD,
    ERR_INVALID_DECLARE,
    ERR_INVALID_PLAY,
    ERR_NOT_A_PLAYER,
    ERR_NOT_AUTHORIZED,
    ERR_NOT_YOUR_TURN,
    ERR_PLAYER_COUNT,
    ERR_WRONG_STATE,
    GAME_UNO,
    MSG_UNO_CHOOSE_COLOR,
    MSG_UNO_COLOR_CHOSEN,
    MSG_UNO_DECK_REFILLED,
    MSG_UNO_DECLARE,
    MSG_UNO_DECLARED,
    MSG_UNO_DIRECTION,
    MSG_UNO_DRAW_CARD,
    MSG_UNO_DRAWN_PLAYABLE,
    MSG_UNO_MESSAGE,
    MSG_UNO_PASS_TURN,
    MSG_UNO_PLAY_CARD,
    MSG_UNO_ROUND_OVER,
    MSG_UNO_STATE,
    MSG_UNO_STATUS,
    MSG_UNO_SYNC,
    STATUS_FINISHED,
    STATUS_PLAYING,
    STATUS_WAITING,
    UNO_FORGOT_PENALTY,
    UNO_HAND_SIZE,
    UNO_MAX_PLAYERS,
    UNO_MIN_PLAYERS,
)

from .base import GameSession, Notification, parse_players
from .cards import (
    COLORS,
    DRAW_FOUR,
    DRAW_TWO,
    REVERSE,
    SKIP,
    Card,
    build_deck,
    is_valid_play,
    shuffle,
)
from .errors import GameError

logger = logging.getLogger(__name__)


@dataclass
class UnoPlayer:
    """UNO 玩家：身份、昵称、手牌与是否已宣告 UNO"""

    id: str
    name: str
    hand: List[Card] = field(default_factory=list)
    declared_uno: bool = False

    @property
    def card_count(self) -> int:
        return len(self.hand)


class UnoGame(GameSession):
    """管理单个房间内的一局 UNO"""

    game_type = GAME_UNO
    state_event = MSG_UNO_STATE

    def __init__(self, room_id: str, rng: Optional[random.Random] = None):
        super().__init__(room_id)
        self.rng = rng or random.Random()
        self.players: List[UnoPlayer] = []
        self.draw_pile: List[Card] = []
        self.discard_pile: List[Card] = []
        self.current_index = 0
        self.direction = 1  # 1 顺时针，-1 逆时针
        self.active_color: Optional[str] = None
        # 打出万能牌但未选色时，由该玩家负责选色
        self.pending_color_player: Optional[str] = None
        # 本回合已摸过牌（摸到可出的牌后等待出牌或过牌）
        self.has_drawn = False
        self.winner_id: Optional[str] = None
        self.status = STATUS_WAITING

    def _handlers(self):
        return {
            MSG_UNO_PLAY_CARD: lambda pid, d: self.play_card(pid, d.get("card"), d.get("chosen_color")),
            MSG_UNO_DRAW_CARD: lambda pid, d: self.draw_card(pid),
            MSG_UNO_PASS_TURN: lambda pid, d: self.pass_turn(pid),
            MSG_UNO_DECLARE: lambda pid, d: self.declare_uno(pid),
            MSG_UNO_CHOOSE_COLOR: lambda pid, d: self.choose_color(pid, d.get("color")),
            MSG_UNO_SYNC: lambda pid, d: self.sync(pid),
        }

    # --- 查询 ---

    @property
    def current_player(self) -> Optional[UnoPlayer]:
        if not self.players:
            return None
        return self.players[self.current_index]

    @property
    def top_card(self) -> Optional[Card]:
        return self.discard_pile[-1] if self.discard_pile else None

    @property
    def is_over(self) -> bool:
        return self.status == STATUS_FINISHED

    def has_player(self, player_id: str) -> bool:
        return self._find(player_id) is not None

    def total_cards(self) -> int:
        """摸牌堆 + 弃牌堆 + 所有手牌，任何时刻都应为 108"""
        return len(self.draw_pile) + len(self.discard_pile) + sum(p.card_count for p in self.players)

    # --- 开局 ---

    def start(self, players) -> List[Notification]:
        """洗牌、每人发 7 张、翻开首张牌并处理首张牌效果"""
        if self.status != STATUS_WAITING:
            raise GameError(ERR_WRONG_STATE, "The game has already started.")
        parsed = parse_players(players)
        count = len(parsed)
        if not UNO_MIN_PLAYERS <= count <= UNO_MAX_PLAYERS:
            raise GameError(
                ERR_PLAYER_COUNT,
                f"UNO requires {UNO_MIN_PLAYERS}-{UNO_MAX_PLAYERS} players, but you have {count}.",
            )
        if len({p["id"] for p in parsed}) != count:
            raise GameError(ERR_PLAYER_COUNT, "Each player can only be seated once.")

        self.players = [UnoPlayer(p["id"], p["name"]) for p in parsed]
        self.draw_pile = shuffle(build_deck(), self.rng)
        self.discard_pile = []
        self.current_index = 0
        self.direction = 1
        self.pending_color_player = None
        self.has_drawn = False
        self.winner_id = None

        for player in self.players:
            self._give(player, self.draw_cards(UNO_HAND_SIZE))

        # 首张为 +4 时放回牌堆重新洗牌再翻
        first = self.draw_pile.pop()
        while first.value == DRAW_FOUR:
            self.draw_pile.append(first)
            self.draw_pile = shuffle(self.draw_pile, self.rng)
            first = self.draw_pile.pop()
        self.discard_pile.append(first)
        self.status = STATUS_PLAYING
        self._apply_first_card(first)

        logger.info(
            f"[UNO {self.room_id}] 开局，{count} 名玩家，首张牌: {first}，"
            f"当前玩家: {self.current_player.name}"
        )
        self._emit_state()
        return self._flush()

    def _apply_first_card(self, card: Card) -> None:
        """首张牌的效果作用于第一位玩家"""
        first = self.players[0]
        if card.is_wild:
            self.active_color = None
            self.pending_color_player = first.id
            return
        self.active_color = card.color
        if card.value == DRAW_TWO:
            self._penalize(first, 2)
            self._advance()
        elif card.value == SKIP or (card.value == REVERSE and len(self.players) == 2):
            self._emit(MSG_UNO_MESSAGE, {"message": "Your turn was skipped!"}, to=first.id)
            self._advance()
        elif card.value == REVERSE:
            self.direction = -1
            self._emit(MSG_UNO_DIRECTION, {"direction": self._direction_name()})

    # --- 玩家动作 ---

    def play_card(self, player_id: str, card: Any, chosen_color: Optional[str] = None) -> List[Notification]:
        player = self._require_turn(player_id)
        if not isinstance(card, Card):
            card = Card.from_dict(card)
        if card.is_wild and chosen_color is not None and chosen_color not in COLORS:
            raise GameError(ERR_INVALID_PLAY, f"Unknown color: {chosen_color}.")
        if not is_valid_play(card, self.top_card, self.active_color):
            raise GameError(ERR_INVALID_PLAY, "Invalid card. Try again.")
        if card not in player.hand:
            raise GameError(ERR_CARD_NOT_HELD, "You don't have that card.")

        player.hand.remove(card)
        self.discard_pile.append(card)
        self.has_drawn = False

        if card.is_wild:
            if chosen_color:
                self.active_color = chosen_color
                self._emit(MSG_UNO_COLOR_CHOSEN, {"color": chosen_color})
            else:
                self.active_color = None
                self.pending_color_player = player.id
        else:
            self.active_color = card.color

        if not player.hand:
            if player.declared_uno:
                return self._end_round(player)
            self._emit(MSG_UNO_MESSAGE, {"message": "You forgot to call UNO! You draw 2 cards."}, to=player.id)
            self._give(player, self.draw_cards(UNO_FORGOT_PENALTY))

        if player.card_count == 1:
            # 进入宣告窗口：已剩一张但尚未宣告
            player.declared_uno = False
            self._emit(MSG_UNO_STATUS, {"player_id": player.id, "name": player.name, "has_uno": True})

        self._apply_effect(card)
        self._emit_state()
        return self._flush()

    def draw_card(self, player_id: str) -> List[Notification]:
        player = self._require_turn(player_id)
        if self.has_drawn:
            raise GameError(ERR_WRONG_STATE, "You already drew a card this turn. Play it or pass.")

        drawn = self.draw_cards(1)
        if not drawn:
            self._emit(MSG_UNO_MESSAGE, {"message": "The deck is empty! Your turn passes."}, to=player.id)
            self._advance()
        else:
            card = drawn[0]
            self._give(player, drawn)
            if is_valid_play(card, self.top_card, self.active_color):
                # 不自动出牌，由玩家决定出牌或过牌
                self.has_drawn = True
                self._emit(MSG_UNO_DRAWN_PLAYABLE, {"card": card.to_dict()}, to=player.id)
            else:
                self._emit(MSG_UNO_MESSAGE, {"message": f"You drew a {card}. It's not playable."}, to=player.id)
                self._advance()
        self._emit_state()
        return self._flush()

    def pass_turn(self, player_id: str) -> List[Notification]:
        self._require_turn(player_id)
        self._advance()
        self._emit_state()
        return self._flush()

    def declare_uno(self, player_id: str) -> List[Notification]:
        """宣告 UNO，不要求轮到自己"""
        self._require_status()
        player = self._find(player_id)
        if player is None:
            raise GameError(ERR_NOT_A_PLAYER, "You are not playing in this game.")
        if player.card_count != 1:
            raise GameError(ERR_INVALID_DECLARE, "You can only call UNO! with one card left.")
        player.declared_uno = True
        self._emit(MSG_UNO_DECLARED, {"player_id": player.id, "name": player.name})
        self._emit_state()
        return self._flush()

    def choose_color(self, player_id: str, color: Optional[str]) -> List[Notification]:
        """为未定色的万能牌选色，只有负责选色的玩家可以操作"""
        self._require_status()
        if self.pending_color_player is None or self.pending_color_player != player_id:
            raise GameError(ERR_NOT_AUTHORIZED, "You can't choose a color right now.")
        if color not in COLORS:
            raise GameError(ERR_INVALID_PLAY, f"Unknown color: {color}.")
        self.active_color = color
        self.pending_color_player = None
        self._emit(MSG_UNO_COLOR_CHOSEN, {"color": color})
        self._emit_state()
        return self._flush()

    def sync(self, player_id: str) -> List[Notification]:
        """只向请求者重发定制状态"""
        return [Notification(self.state_event, to=player_id, tailored=True)]

    # --- 牌堆 ---

    def draw_cards(self, count: int) -> List[Card]:
        """从摸牌堆摸 count 张；摸牌堆空时用弃牌堆（除顶牌外）洗牌补充，
        全部耗尽时返回不足 count 张"""
        cards = []
        for _ in range(count):
            if not self.draw_pile:
                self._refill_draw_pile()
            if not self.draw_pile:
                break
            cards.append(self.draw_pile.pop())
        return cards

    def _refill_draw_pile(self) -> None:
        if self.draw_pile or len(self.discard_pile) <= 1:
            return
        top = self.discard_pile.pop()
        self.draw_pile = shuffle(self.discard_pile, self.rng)
        self.discard_pile = [top]
        self._emit(MSG_UNO_DECK_REFILLED, {"draw_pile_count": len(self.draw_pile)})
        logger.info(f"[UNO {self.room_id}] 弃牌堆洗入摸牌堆，共 {len(self.draw_pile)} 张")

    # --- 规则辅助 ---

    def _apply_effect(self, card: Card) -> None:
        """结算功能牌效果并推进回合"""
        if card.value == SKIP or (card.value == REVERSE and len(self.players) == 2):
            # 两人局中反转等同于跳过
            self._emit(MSG_UNO_MESSAGE, {"message": "Your turn was skipped!"}, to=self._next_player().id)
            self._advance(2)
        elif card.value == REVERSE:
            self.direction *= -1
            self._emit(MSG_UNO_DIRECTION, {"direction": self._direction_name()})
            self._advance()
        elif card.value == DRAW_TWO:
            self._penalize(self._next_player(), 2)
            self._advance(2)
        elif card.value == DRAW_FOUR:
            self._penalize(self._next_player(), 4)
            self._advance(2)
        else:
            self._advance()

    def _penalize(self, player: UnoPlayer, count: int) -> None:
        self._give(player, self.draw_cards(count))
        self._emit(MSG_UNO_MESSAGE, {"message": f"You must draw {count} cards and skip your turn."}, to=player.id)

    def _give(self, player: UnoPlayer, cards: List[Card]) -> None:
        player.hand.extend(cards)
        if player.card_count > 1:
            player.declared_uno = False

    def _next_index(self) -> int:
        count = len(self.players)
        return (self.current_index + self.direction + count) % count

    def _next_player(self) -> UnoPlayer:
        return self.players[self._next_index()]

    def _advance(self, steps: int = 1) -> None:
        for _ in range(steps):
            self.current_index = self._next_index()
        self.has_drawn = False

    def _direction_name(self) -> str:
        return "clockwise" if self.direction == 1 else "counter-clockwise"

    def _find(self, player_id: str) -> Optional[UnoPlayer]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def _require_status(self) -> None:
        if self.status != STATUS_PLAYING:
            raise GameError(ERR_WRONG_STATE, f"The game is {self.status}.")

    def _require_turn(self, player_id: str) -> UnoPlayer:
        self._require_status()
        player = self.current_player
        if player.id != player_id:
            raise GameError(ERR_NOT_YOUR_TURN, "It's not your turn.")
        if self.pending_color_player is not None:
            raise GameError(ERR_WRONG_STATE, "A color must be chosen first.")
        return player

    def _end_round(self, winner: UnoPlayer) -> List[Notification]:
        self.status = STATUS_FINISHED
        self.winner_id = winner.id
        self.pending_color_player = None
        self._emit(MSG_UNO_ROUND_OVER, {"winner": winner.id, "winner_name": winner.name})
        logger.info(f"[UNO {self.room_id}] 回合结束，胜者: {winner.name}")
        self._emit_state()
        return self._flush()

    # --- 视图 ---

    def snapshot_for(self, player_id: Optional[str]) -> Dict[str, Any]:
        """定制视图：只包含接收者自己的手牌，其他玩家只显示张数"""
        me = self._find(player_id) if player_id else None
        current = self.current_player
        top = self.top_card
        return {
            "room_id": self.room_id,
            "game": self.game_type,
            "status": self.status,
            "my_hand": [c.to_dict() for c in me.hand] if me else [],
            "players": [
                {
                    "id": p.id,
                    "name": p.name,
                    "card_count": p.card_count,
                    "is_current": self.status == STATUS_PLAYING and current is p,
                    "declared_uno": p.declared_uno,
                }
                for p in self.players
            ],
            "current_player_id": current.id if current and self.status == STATUS_PLAYING else None,
            "discard_top": top.to_dict() if top else None,
            "active_color": self.active_color,
            "direction": self._direction_name(),
            "draw_pile_count": len(self.draw_pile),
            "pending_color_player": self.pending_color_player,
            "winner": self.winner_id,
        }
