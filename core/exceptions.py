"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一轉成回應信封（status=failed, msg=...）
"""


class LotteryException(Exception):
    """所有遊戲異常的基類"""
    message = "lottery error"

    def __init__(self, message=None):
        super().__init__(message or self.message)


# ============ 下注相關異常 ============

class ValidationError(LotteryException):
    """下注金額格式錯誤或不是正整數"""
    message = "invalid amount"


class InsufficientFunds(LotteryException):
    """餘額不足"""
    message = "insufficient funds"

    def __init__(self, participant_id, balance=None, amount=None):
        self.participant_id = participant_id
        self.balance = balance
        self.amount = amount
        super().__init__()


class UnknownParticipant(LotteryException):
    """查無此玩家（下注前必須先查詢餘額完成註冊）"""
    message = "unknown participant"

    def __init__(self, participant_id):
        self.participant_id = participant_id
        super().__init__()


# ============ Round 相關異常 ============

class EmptyRoundError(LotteryException):
    """本局沒有任何下注（只在查詢下注列表時回報，開獎時不算錯誤）"""
    message = "no wagers in current round"

    def __init__(self, round_number=None):
        self.round_number = round_number
        super().__init__()


# ============ 儲存層異常 ============

class StoreUnavailable(LotteryException):
    """底層資料庫無法存取"""
    message = "store unavailable"
