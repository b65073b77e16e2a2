"""
Round Manager：管理回合的完整生命週期

職責：
1. 開啟第一局（或沿用資料庫裡尚未開獎的回合）
2. 開獎：快照 -> 抽獎 -> 派彩 -> 清空 -> 換局
3. 換局

原則：
- 開獎整個流程在同一個 transaction，任何一步失敗都 rollback：
  不換局、不清空下注，獎金池留到下次重試
- 呼叫者負責持有 RoundGate 獨占鎖（見 Ledger.resolving）
"""
import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import delete
from sqlalchemy.orm import Session

from models import GameRound, Participant, Wager, as_utc, utcnow
from core.locks import with_round_lock
from core.ledger import clear_round, credit_winnings, snapshot_round
from services.winner_service import draw_number, select_winner
from database import transactional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoundResult:
    round_number: int
    pool: int
    winner: Optional[str]
    draw: Optional[int]
    participant_count: int
    next_round: int
    resolved_at: datetime

    def to_dict(self):
        return {
            "round": self.round_number,
            "pool": self.pool,
            "winner": self.winner,
            "draw": self.draw,
            "participants": self.participant_count,
            "resolved_at": self.resolved_at.isoformat()
        }


class RoundManager:
    """Round 生命週期管理器"""

    @staticmethod
    @transactional
    def open_round(db: Session, reset: bool = False) -> Tuple[int, datetime]:
        """
        開啟目前回合

        流程：
        1. reset=True 時清空所有玩家、下注與回合（每次啟動都是新遊戲）
        2. 資料庫已有開放中的回合就沿用（重啟後繼續倒數）
        3. 否則建立 Round 1

        返回：
            (局數, 開始時間)
        """
        if reset:
            db.execute(delete(Wager))
            db.execute(delete(Participant))
            db.execute(delete(GameRound))
            logger.warning("Ledger reset: all balances and wagers cleared")

        game_round = db.get(GameRound, GameRound.CURRENT_ID)
        if game_round is None:
            game_round = GameRound(id=GameRound.CURRENT_ID, number=1, started_at=utcnow())
            db.add(game_round)
            db.flush()
            logger.info(f"Round {game_round.number} start")
        else:
            logger.info(f"Resuming round {game_round.number} started at {game_round.started_at}")

        return game_round.number, as_utc(game_round.started_at)

    @staticmethod
    @transactional
    def resolve_round(db: Session, rng: Optional[random.Random] = None) -> RoundResult:
        """
        開獎（OPEN(n) -> RESOLVING(n) -> OPEN(n+1)）

        流程：
        1. 鎖定並讀取目前回合
        2. 快照本局所有下注
        3. 沒有下注：直接換局
        4. 獎金池 = 下注加總，抽出 [0, 獎金池] 的號碼選得主
        5. 派彩給得主
        6. 清空本局下注
        7. 換局，記錄新局開始時間

        參數：
            db: SQLAlchemy Session
            rng: 亂數來源（測試時可注入固定種子）

        返回：
            RoundResult

        異常：
            StoreUnavailable / SQLAlchemyError：整個 transaction rollback，不換局
        """
        # 1. 鎖定目前回合
        game_round = with_round_lock(db).first()
        if game_round is None:
            raise RuntimeError("No open round to resolve")
        round_number = game_round.number

        # 2. 快照
        wagers = snapshot_round(db, round_number)

        # 3. 沒人下注
        if not wagers:
            logger.info(f"Round {round_number}: no wagers placed")
            next_round = RoundManager.advance_round(db, game_round)
            return RoundResult(
                round_number=round_number,
                pool=0,
                winner=None,
                draw=None,
                participant_count=0,
                next_round=next_round,
                resolved_at=utcnow()
            )

        # 4. 抽獎
        pool = sum(amount for _, amount in wagers)
        draw = draw_number(pool, rng)
        winner = select_winner(wagers, draw)

        # 5. 派彩
        balance = credit_winnings(db, winner, pool)
        logger.info(
            f"Round {round_number}: pool {pool}, draw {draw}, winner {winner} "
            f"(new balance {balance}, {len(wagers)} participants)"
        )

        # 6. 清空
        clear_round(db, round_number)

        # 7. 換局
        next_round = RoundManager.advance_round(db, game_round)

        return RoundResult(
            round_number=round_number,
            pool=pool,
            winner=winner,
            draw=draw,
            participant_count=len(wagers),
            next_round=next_round,
            resolved_at=utcnow()
        )

    @staticmethod
    def advance_round(db: Session, game_round: GameRound) -> int:
        """
        換局：局數 +1，記錄新局開始時間

        注意：
            - 只 flush 不 commit（讓外層 transaction 處理）
        """
        game_round.number += 1
        game_round.started_at = utcnow()
        db.flush()
        logger.info(f"Round {game_round.number} start")
        return game_round.number
