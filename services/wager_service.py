"""
下注金額驗證
"""
import re

from core.exceptions import ValidationError

_AMOUNT_PATTERN = re.compile(r"[+-]?[0-9]+")


def parse_amount(raw) -> int:
    """
    把下注金額轉成正整數

    接受 int 或十進位字串（可帶正負號），其他格式（小數、空白、底線分隔）
    以及 <= 0 的金額一律 ValidationError。
    """
    if isinstance(raw, bool):
        raise ValidationError()
    if isinstance(raw, int):
        amount = raw
    elif isinstance(raw, str) and _AMOUNT_PATTERN.fullmatch(raw):
        amount = int(raw)
    else:
        raise ValidationError()

    if amount <= 0:
        raise ValidationError()
    return amount
