"""
Betting API Endpoints

職責：
1. 玩家註冊 / 查詢餘額（不須密碼，填入 ID 即可，ID 區分大小寫）
2. 對目前的回合下注
3. 查詢本局獎金池與所有下注

所有錯誤都轉成 {"status": "failed", "msg": ...}，HTTP status 固定 200
"""
from fastapi import APIRouter, Depends, Request
import logging

from schemas import ApiResponse, ParticipantOut, WagerOut
from core.ledger import Ledger
from core.exceptions import LotteryException

router = APIRouter(tags=["bets"])
logger = logging.getLogger(__name__)


def get_ledger(request: Request) -> Ledger:
    """FastAPI dependency：整個 app 共用同一個 Ledger"""
    return request.app.state.ledger


@router.get("/bet", response_model=ApiResponse)
def list_bets(ledger: Ledger = Depends(get_ledger)):
    """
    本局所有玩家目前的下注

    返回：
        [{"Id": ..., "Round": ..., "Amount": ...}, ...]
        本局沒有下注時 status=failed
    """
    try:
        round_number, wagers = ledger.open_wagers()
        return ApiResponse.ok([
            WagerOut(id=participant_id, round=round_number, amount=amount)
            for participant_id, amount in wagers
        ])

    except LotteryException as e:
        return ApiResponse.failed(str(e))
    except Exception as e:
        logger.error(f"Failed to list bets: {e}", exc_info=True)
        return ApiResponse.failed("internal error")


@router.get("/bet/{participant_id}", response_model=ApiResponse)
def get_balance(participant_id: str, ledger: Ledger = Depends(get_ledger)):
    """
    查詢餘額（下注前先查詢，查無此玩家會自動註冊，預設餘額 1000）

    返回：
        {"Id": ..., "balance": ...}
    """
    try:
        balance = ledger.get_balance(participant_id)
        return ApiResponse.ok(ParticipantOut(id=participant_id, balance=balance))

    except LotteryException as e:
        return ApiResponse.failed(str(e))
    except Exception as e:
        logger.error(f"Failed to get balance: {e}", exc_info=True)
        return ApiResponse.failed("internal error")


@router.get("/bet/{participant_id}/{amount}", response_model=ApiResponse)
def place_bet(participant_id: str, amount: str, ledger: Ledger = Depends(get_ledger)):
    """
    對目前的回合下注

    前置條件：
    - amount 必須是正整數
    - 玩家必須已註冊（先呼叫 GET /bet/{participant_id}）
    - amount 不能超過餘額

    返回：
        下注後的 {"Id": ..., "balance": ...}
        失敗時 msg 為 invalid amount / unknown participant / insufficient funds
    """
    try:
        receipt = ledger.place_wager(participant_id, amount)
        return ApiResponse.ok(ParticipantOut(id=participant_id, balance=receipt.balance))

    except LotteryException as e:
        logger.info(f"Wager rejected for {participant_id} ({amount}): {e}")
        return ApiResponse.failed(str(e))
    except Exception as e:
        logger.error(f"Failed to place bet: {e}", exc_info=True)
        return ApiResponse.failed("internal error")


@router.get("/prize", response_model=ApiResponse)
def get_prize(ledger: Ledger = Depends(get_ledger)):
    """此局目前的獎金池（所有下注加總）"""
    try:
        return ApiResponse.ok(ledger.current_pool())

    except LotteryException as e:
        return ApiResponse.failed(str(e))
    except Exception as e:
        logger.error(f"Failed to get prize: {e}", exc_info=True)
        return ApiResponse.failed("internal error")
