"""
Round Scheduler - 固定週期自動開獎
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from starlette.concurrency import run_in_threadpool

from models import RoundPhase, utcnow
from core.ledger import Ledger
from core.round_manager import RoundManager, RoundResult

logger = logging.getLogger(__name__)


@dataclass
class SchedulerState:
    """排程器自己的狀態（不放在模組層級的全域變數）"""

    phase: RoundPhase = RoundPhase.OPEN
    is_running: bool = False
    last_result: Optional[RoundResult] = None
    last_attempt: Optional[datetime] = None
    consecutive_failures: int = 0
    last_error: Optional[str] = None

    def record_attempt(self) -> None:
        self.phase = RoundPhase.RESOLVING
        self.last_attempt = utcnow()

    def record_success(self, result: RoundResult) -> None:
        self.phase = RoundPhase.OPEN
        self.last_result = result
        self.consecutive_failures = 0
        self.last_error = None

    def record_failure(self, error: Exception) -> None:
        # 開獎失敗時本局維持開放，下注照常進入同一局
        self.phase = RoundPhase.OPEN
        self.consecutive_failures += 1
        self.last_error = str(error)


class RoundScheduler:
    """依固定週期推進回合並開獎"""

    def __init__(
        self,
        ledger: Ledger,
        round_seconds: float = 60,
        retry_seconds: float = 5,
        rng: Optional[random.Random] = None
    ):
        self.ledger = ledger
        self.round_seconds = round_seconds
        self.retry_seconds = retry_seconds
        self.rng = rng or random.SystemRandom()
        self.state = SchedulerState()
        self.scheduler_task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    def open(self, reset: bool = False) -> int:
        """開啟目前回合，返回局數"""
        with self.ledger.session() as db:
            number, started_at = RoundManager.open_round(db, reset=reset)
        logger.info(f"Round {number} open since {started_at.isoformat()}, period {self.round_seconds}s")
        return number

    def resolve(self) -> RoundResult:
        """
        開獎一次（同步，於 threadpool 執行）

        失敗時不換局也不清空下注，例外往上拋由排程迴圈決定何時重試
        """
        self.state.record_attempt()
        try:
            with self.ledger.resolving() as db:
                result = RoundManager.resolve_round(db, self.rng)
        except Exception as e:
            self.state.record_failure(e)
            raise

        self.state.record_success(result)
        return result

    def seconds_until_close(self, started_at: Optional[datetime] = None) -> float:
        """
        距離本局開獎的秒數

        參數：
            started_at: 已經讀到的本局開始時間；省略時重新讀取
        """
        if started_at is None:
            started_at = self.ledger.round_status().started_at
        closes_at = started_at + timedelta(seconds=self.round_seconds)
        return max(0.0, (closes_at - utcnow()).total_seconds())

    async def start(self, reset: bool = False):
        """Start the round scheduler"""
        await run_in_threadpool(self.open, reset)
        self.state.is_running = True
        self._stop_event = asyncio.Event()
        logger.info("Starting round scheduler")
        self.scheduler_task = asyncio.create_task(self._scheduler_loop())

    async def stop(self):
        """
        Stop the round scheduler

        不取消 task：進行中的開獎在 threadpool 裡跑完、commit 之後迴圈才結束
        """
        self.state.is_running = False
        if self._stop_event:
            self._stop_event.set()
        if self.scheduler_task:
            await self.scheduler_task
            self.scheduler_task = None
        logger.info("Round scheduler stopped")

    async def _wait(self, seconds: float) -> bool:
        """等待 seconds 秒；期間呼叫 stop() 會提早返回 True"""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False

    async def _scheduler_loop(self):
        """Main scheduler loop"""
        while self.state.is_running:
            try:
                delay = await run_in_threadpool(self.seconds_until_close)
            except Exception as e:
                self.state.record_failure(e)
                logger.error(
                    f"Cannot read round countdown ({self.state.consecutive_failures} failures in a row), "
                    f"retrying in {self.retry_seconds}s: {e}",
                    exc_info=True
                )
                if await self._wait(self.retry_seconds):
                    break
                continue

            if await self._wait(delay):
                break

            try:
                await run_in_threadpool(self.resolve)
            except Exception as e:
                logger.error(
                    f"Round resolution failed ({self.state.consecutive_failures} in a row), "
                    f"retrying in {self.retry_seconds}s: {e}",
                    exc_info=True
                )
                if await self._wait(self.retry_seconds):
                    break
