"""
Round API Endpoints

前端倒數計時用：目前局數、剩餘秒數、獎金池、上一局結果
"""
from fastapi import APIRouter, Depends, Request
import logging

from schemas import ApiResponse, RoundStatusOut
from core.round_scheduler import RoundScheduler
from core.exceptions import LotteryException

router = APIRouter(tags=["rounds"])
logger = logging.getLogger(__name__)


def get_scheduler(request: Request) -> RoundScheduler:
    return request.app.state.scheduler


@router.get("/round", response_model=ApiResponse)
def get_current_round(scheduler: RoundScheduler = Depends(get_scheduler)):
    """
    取得目前回合資訊

    返回：
        - round: 局數
        - started_at: 開始時間（ISO 8601, UTC）
        - closes_in: 距離開獎秒數
        - pool: 目前獎金池
        - phase: OPEN / RESOLVING
        - last_result: 上一局開獎結果（啟動後尚未開獎則為 null）
    """
    try:
        status = scheduler.ledger.round_status()
        last_result = scheduler.state.last_result

        return ApiResponse.ok(RoundStatusOut(
            round=status.number,
            started_at=status.started_at.isoformat(),
            closes_in=scheduler.seconds_until_close(status.started_at),
            pool=status.pool,
            phase=scheduler.state.phase.value,
            last_result=last_result.to_dict() if last_result else None
        ))

    except LotteryException as e:
        return ApiResponse.failed(str(e))
    except Exception as e:
        logger.error(f"Failed to get current round: {e}", exc_info=True)
        return ApiResponse.failed("internal error")
