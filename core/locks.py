"""
並發控制工具

防止競態條件（Race Condition），分兩層：

1. Process 內：
   - KeyedLock：每位玩家一把鎖，同一玩家的下注依序處理
   - RoundGate：共享／獨占閘門，下注持有共享、開獎持有獨占
2. Database-level：
   - with_round_lock：SELECT ... FOR UPDATE 鎖住目前回合那一列
"""
import threading
from contextlib import contextmanager

from sqlalchemy.orm import Session, Query

from models import GameRound


class KeyedLock:
    """
    依 key 取得獨立的鎖（玩家 ID -> threading.Lock）

    沒有人持有或等待的鎖會被移除，玩家再多也不會累積
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._entries = {}

    @contextmanager
    def hold(self, key):
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = [threading.Lock(), 0]
            entry[1] += 1

        entry[0].acquire()
        try:
            yield
        finally:
            entry[0].release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._entries[key]

    def __len__(self):
        with self._guard:
            return len(self._entries)


class RoundGate:
    """
    回合切換閘門（共享／獨占）

    使用場景：
    - shared()：下注、查詢本局下注列表；彼此不互斥
    - exclusive()：開獎（快照 + 清空 + 換局）；等所有 shared 離開後才進入

    一旦開獎要求獨占，新的 shared 會先等待，開獎不會被持續湧入的下注餓死。
    這就是「凍結本局下注」的那一刻：在這之前回傳成功的下注都算進本局，
    之後的下注都會進下一局。
    """

    def __init__(self):
        self._cond = threading.Condition()
        self._active = 0
        self._closing = False

    @contextmanager
    def shared(self):
        with self._cond:
            while self._closing:
                self._cond.wait()
            self._active += 1
        try:
            yield
        finally:
            with self._cond:
                self._active -= 1
                if self._active == 0:
                    self._cond.notify_all()

    @contextmanager
    def exclusive(self):
        with self._cond:
            while self._closing:
                self._cond.wait()
            self._closing = True
            while self._active:
                self._cond.wait()
        try:
            yield
        finally:
            with self._cond:
                self._closing = False
                self._cond.notify_all()

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closing


def with_round_lock(db: Session) -> Query:
    """
    鎖定目前回合（行級鎖）

    使用場景：
    - 開獎時讀取回合編號並換局，確保整個 transaction 期間不被其他 process 修改

    返回：
        Query object（需要呼叫 .first() 或 .one() 來取得結果）

    注意：
        - SQLite 不支援 FOR UPDATE，會被忽略；單一 process 內由 RoundGate 保證
        - 必須在 transaction 內使用（確保有 commit 或 rollback）
    """
    return db.query(GameRound).filter(
        GameRound.id == GameRound.CURRENT_ID
    ).with_for_update(nowait=False)
