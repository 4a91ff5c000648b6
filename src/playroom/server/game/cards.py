"""
UNO 牌与牌堆

- Card: 不可变的牌值（颜色 + 点数/功能），按 (color, value) 结构相等
- build_deck: 按固定顺序生成 108 张标准牌
- shuffle: 返回均匀随机排列的新列表（Fisher-Yates）
- is_valid_play: 出牌合法性判断
"""

import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from playroom.shared.constants import ERR_INVALID_PLAY

from .errors import GameError

RED = "red"
YELLOW = "yellow"
GREEN = "green"
BLUE = "blue"
WILD = "wild"

COLORS = (RED, YELLOW, GREEN, BLUE)
ALL_COLORS = COLORS + (WILD,)

SKIP = "skip"
REVERSE = "reverse"
DRAW_TWO = "drawTwo"
DRAW_FOUR = "drawFour"

NUMBER_VALUES = tuple(str(n) for n in range(10))
ACTION_VALUES = (SKIP, REVERSE, DRAW_TWO)
WILD_VALUES = (WILD, DRAW_FOUR)
ALL_VALUES = NUMBER_VALUES + ACTION_VALUES + WILD_VALUES


@dataclass(frozen=True)
class Card:
    """一张 UNO 牌"""

    color: str
    value: str

    @property
    def is_wild(self) -> bool:
        return self.color == WILD

    def to_dict(self) -> Dict[str, str]:
        return {"color": self.color, "value": self.value}

    @classmethod
    def from_dict(cls, data: Any) -> "Card":
        """从线上格式解析，非法输入抛出 InvalidPlay"""
        if not isinstance(data, dict):
            raise GameError(ERR_INVALID_PLAY, "Malformed card.")
        color, value = data.get("color"), str(data.get("value"))
        if color not in ALL_COLORS or value not in ALL_VALUES:
            raise GameError(ERR_INVALID_PLAY, "Unknown card.")
        # 万能牌只能是 wild 色，普通牌不能是 wild 色
        if (color == WILD) != (value in WILD_VALUES):
            raise GameError(ERR_INVALID_PLAY, "Unknown card.")
        return cls(color, value)

    def __str__(self) -> str:
        return f"{self.color} {self.value}"


def build_deck() -> List[Card]:
    """生成 108 张牌：每色一张 0，1-9 与功能牌各两张；万能牌与 +4 各四张"""
    deck = []
    for color in COLORS:
        deck.append(Card(color, "0"))
        for value in NUMBER_VALUES[1:] + ACTION_VALUES:
            deck.append(Card(color, value))
            deck.append(Card(color, value))
    for value in WILD_VALUES:
        deck.extend(Card(WILD, value) for _ in range(4))
    return deck


def shuffle(cards: Sequence[Card], rng: Optional[random.Random] = None) -> List[Card]:
    """返回洗好的新列表，不修改输入"""
    shuffled = list(cards)
    (rng or random).shuffle(shuffled)
    return shuffled


def is_valid_play(card: Card, top_card: Card, active_color: Optional[str]) -> bool:
    """万能牌总是可出；否则颜色与当前颜色相同，或点数与弃牌堆顶相同"""
    if card.is_wild:
        return True
    return card.color == active_color or card.value == top_card.value
