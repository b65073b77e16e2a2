"""
資料表定義

- Participant：玩家與餘額（跨回合保存）
- Wager：本局下注，每位玩家每局一筆，重複下注會累加
- GameRound：目前開放中的回合（只有一筆）
"""
import enum
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String

from database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite 讀回來的 datetime 不帶時區，一律視為 UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class RoundPhase(str, enum.Enum):
    OPEN = "OPEN"            # 接受下注
    RESOLVING = "RESOLVING"  # 開獎中，暫停接受下注


class Participant(Base):
    __tablename__ = "participants"

    # 玩家 ID 區分大小寫
    id = Column(String, primary_key=True)
    balance = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_participant_balance_non_negative"),
    )


class Wager(Base):
    __tablename__ = "wagers"

    round_number = Column(Integer, primary_key=True)
    participant_id = Column(String, ForeignKey("participants.id"), primary_key=True)
    amount = Column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_wager_amount_positive"),
        Index("ix_wagers_round_amount", "round_number", "amount"),
    )


class GameRound(Base):
    __tablename__ = "game_rounds"

    CURRENT_ID = 1

    id = Column(Integer, primary_key=True)
    number = Column(Integer, nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("number >= 1", name="ck_round_number_positive"),
    )
