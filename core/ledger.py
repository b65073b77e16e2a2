"""
Ledger：玩家餘額與本局下注的一致性包裝

職責：
1. 查詢餘額（第一次查詢自動註冊，給預設餘額）
2. 下注：檢查餘額 + 扣款 + 記錄下注，在同一個 transaction 內完成
3. 派彩：得主餘額原子性增加
4. 開獎用的快照與清空

並發模型：
- 同一玩家的餘額讀寫由 KeyedLock 依序處理
- 扣款用條件式 UPDATE（balance >= amount），資料庫層級也不會超扣
- 下注持有 RoundGate 共享鎖；開獎持有獨占鎖，快照和清空之間不會有下注插入
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from models import GameRound, Participant, Wager, as_utc
from core.locks import KeyedLock, RoundGate
from core.exceptions import (
    EmptyRoundError,
    InsufficientFunds,
    StoreUnavailable,
    UnknownParticipant,
    ValidationError
)
from services.wager_service import parse_amount
from database import transactional

logger = logging.getLogger(__name__)

MAX_SQL_INTEGER = 2 ** 63 - 1


@dataclass(frozen=True)
class WagerReceipt:
    participant_id: str
    round_number: int
    amount: int
    balance: int
    round_total: int


@dataclass(frozen=True)
class RoundStatus:
    number: int
    started_at: datetime
    pool: int


# ============ 單一 Session 內的原子操作 ============

def current_round(db: Session) -> GameRound:
    game_round = db.get(GameRound, GameRound.CURRENT_ID)
    if game_round is None:
        raise StoreUnavailable("round state is not initialised")
    return game_round


def debit_for_wager(db: Session, participant_id: str, amount: int) -> int:
    """
    檢查餘額並扣款（單一條件式 UPDATE）

    不會有「兩個請求都通過同一個扣款前餘額檢查」的空窗：
    檢查和扣款是同一個 SQL statement。

    返回：
        扣款後餘額

    異常：
        ValidationError: amount <= 0
        UnknownParticipant: 玩家不存在
        InsufficientFunds: 餘額不足
    """
    if amount <= 0:
        raise ValidationError()

    if amount > MAX_SQL_INTEGER:
        # 超出 64-bit INTEGER，不能綁進 SQL；餘額也不可能這麼多
        balance = db.execute(
            select(Participant.balance).where(Participant.id == participant_id)
        ).scalar_one_or_none()
        if balance is None:
            raise UnknownParticipant(participant_id)
        raise InsufficientFunds(participant_id, balance, amount)

    result = db.execute(
        update(Participant)
        .where(Participant.id == participant_id, Participant.balance >= amount)
        .values(balance=Participant.balance - amount)
        .execution_options(synchronize_session=False)
    )
    balance = db.execute(
        select(Participant.balance).where(Participant.id == participant_id)
    ).scalar_one_or_none()

    if result.rowcount == 0:
        if balance is None:
            raise UnknownParticipant(participant_id)
        raise InsufficientFunds(participant_id, balance, amount)
    return balance


def record_wager(db: Session, round_number: int, participant_id: str, amount: int) -> int:
    """
    累加玩家在某局的下注（每位玩家每局只有一筆）

    返回：
        玩家本局累計下注
    """
    result = db.execute(
        update(Wager)
        .where(Wager.round_number == round_number, Wager.participant_id == participant_id)
        .values(amount=Wager.amount + amount)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.add(Wager(round_number=round_number, participant_id=participant_id, amount=amount))
        db.flush()

    return db.execute(
        select(Wager.amount).where(
            Wager.round_number == round_number,
            Wager.participant_id == participant_id
        )
    ).scalar_one()


def credit_winnings(db: Session, participant_id: str, amount: int) -> int:
    """得主餘額原子性增加，返回派彩後餘額"""
    result = db.execute(
        update(Participant)
        .where(Participant.id == participant_id)
        .values(balance=Participant.balance + amount)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise UnknownParticipant(participant_id)
    return db.execute(
        select(Participant.balance).where(Participant.id == participant_id)
    ).scalar_one()


def snapshot_round(db: Session, round_number: int) -> List[Tuple[str, int]]:
    """
    取得某局所有下注（依金額由小到大，同金額依玩家 ID）

    排序固定，抽獎結果只由抽獎號碼決定
    """
    rows = db.execute(
        select(Wager.participant_id, Wager.amount)
        .where(Wager.round_number == round_number)
        .order_by(Wager.amount, Wager.participant_id)
    ).all()
    return [(participant_id, amount) for participant_id, amount in rows]


def clear_round(db: Session, round_number: int) -> int:
    result = db.execute(
        delete(Wager)
        .where(Wager.round_number == round_number)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def round_pool(db: Session, round_number: int) -> int:
    return db.execute(
        select(func.coalesce(func.sum(Wager.amount), 0))
        .where(Wager.round_number == round_number)
    ).scalar_one()


@transactional
def apply_wager(db: Session, participant_id: str, amount: int) -> WagerReceipt:
    """扣款 + 記錄下注；任一步失敗整筆 rollback"""
    round_number = current_round(db).number
    balance = debit_for_wager(db, participant_id, amount)
    round_total = record_wager(db, round_number, participant_id, amount)
    return WagerReceipt(
        participant_id=participant_id,
        round_number=round_number,
        amount=amount,
        balance=balance,
        round_total=round_total
    )


# ============ 跨請求共用的 Ledger ============

class Ledger:
    """玩家餘額與本局下注的存取入口（API 與排程器共用一個實例）"""

    def __init__(self, session_factory: Callable[[], Session], default_balance: int = 1000):
        self.session_factory = session_factory
        self.default_balance = default_balance
        self.participant_locks = KeyedLock()
        self.round_gate = RoundGate()

    @contextmanager
    def session(self):
        """
        提供 Session，結束後關閉

        SQLAlchemy 的錯誤一律轉成 StoreUnavailable
        """
        db = self.session_factory()
        try:
            yield db
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Store operation failed: {e}")
            raise StoreUnavailable() from e
        finally:
            db.close()

    @contextmanager
    def resolving(self):
        """
        開獎專用：獨占 RoundGate 後提供 Session

        進入時等待所有進行中的下注完成，期間新下注會等待
        """
        with self.round_gate.exclusive(), self.session() as db:
            yield db

    def get_balance(self, participant_id: str) -> int:
        """
        查詢餘額；查無此玩家就用預設餘額註冊

        同一玩家只會註冊一次：process 內靠 KeyedLock，
        跨 process 的重複 INSERT 會撞 primary key，改讀對方寫入的結果
        """
        with self.participant_locks.hold(participant_id), self.session() as db:
            balance = db.execute(
                select(Participant.balance).where(Participant.id == participant_id)
            ).scalar_one_or_none()
            if balance is not None:
                return balance

            db.add(Participant(id=participant_id, balance=self.default_balance))
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                return db.execute(
                    select(Participant.balance).where(Participant.id == participant_id)
                ).scalar_one()

            logger.info(f"Registered participant {participant_id} with balance {self.default_balance}")
            return self.default_balance

    def place_wager(self, participant_id: str, amount) -> WagerReceipt:
        """
        下注

        流程：
        1. 驗證金額（正整數）
        2. 取得本局共享鎖（開獎中會等待，之後下注算進下一局）
        3. 取得玩家鎖
        4. 讀取局數、扣款、記錄下注，同一個 transaction

        異常：
            ValidationError, UnknownParticipant, InsufficientFunds, StoreUnavailable
        """
        amount = parse_amount(amount)

        with self.round_gate.shared(), self.participant_locks.hold(participant_id), self.session() as db:
            receipt = apply_wager(db, participant_id, amount)

        logger.info(
            f"Wager accepted: {participant_id} bet {amount} in round {receipt.round_number} "
            f"(round total {receipt.round_total}, balance {receipt.balance})"
        )
        return receipt

    def current_pool(self) -> int:
        """本局獎金池 = 本局所有下注加總"""
        with self.round_gate.shared(), self.session() as db:
            return round_pool(db, current_round(db).number)

    def open_wagers(self) -> Tuple[int, List[Tuple[str, int]]]:
        """
        本局所有下注

        返回：
            (局數, [(玩家 ID, 金額), ...])

        異常：
            EmptyRoundError: 本局還沒有人下注
        """
        with self.round_gate.shared(), self.session() as db:
            round_number = current_round(db).number
            wagers = snapshot_round(db, round_number)

        if not wagers:
            raise EmptyRoundError(round_number)
        return round_number, wagers

    def round_status(self) -> RoundStatus:
        with self.round_gate.shared(), self.session() as db:
            game_round = current_round(db)
            return RoundStatus(
                number=game_round.number,
                started_at=as_utc(game_round.started_at),
                pool=round_pool(db, game_round.number)
            )
