"""
抽獎服務：依下注金額加權選出得主

純計算邏輯，不碰資料庫也不改變回合狀態
"""
import random
from typing import Iterable, List, Optional, Tuple


def draw_number(pool: int, rng: Optional[random.Random] = None) -> int:
    """
    抽出 [0, pool] 之間（含兩端）的均勻亂數

    參數：
        pool: 本局獎金池（必須 > 0）
        rng: 亂數來源，預設使用 random.SystemRandom

    返回：
        抽獎號碼
    """
    if pool <= 0:
        raise ValueError(f"Cannot draw from an empty pool: {pool}")
    rng = rng or random.SystemRandom()
    return rng.randint(0, pool)


def select_winner(entries: Iterable[Tuple[str, int]], draw: int) -> str:
    """
    累積權重相減法選出得主

    規則：
    - 計數器從 draw 開始
    - 依序減去每位玩家的下注金額
    - 第一個讓計數器 <= 0 的玩家得獎

    下注越多，涵蓋的號碼區間越大，得獎機率與下注金額成正比。

    參數：
        entries: (玩家 ID, 下注金額) 列表，順序必須固定
        draw: 抽獎號碼，介於 [0, 總金額]

    返回：
        得主的玩家 ID

    範例：
        select_winner([("A", 300), ("B", 900)], 250) -> "A"
        select_winner([("A", 300), ("B", 900)], 301) -> "B"
    """
    entries: List[Tuple[str, int]] = list(entries)
    total = sum(weight for _, weight in entries)
    if not entries or total <= 0:
        raise ValueError("Winner selection needs at least one positive wager")

    counter = draw
    for participant_id, weight in entries:
        counter -= weight
        if counter <= 0:
            return participant_id

    # draw 超出總金額：歸給最後一位，與 draw = 總金額 的結果相同
    return entries[-1][0]
